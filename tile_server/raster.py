from __future__ import annotations

import logging
import os
import threading
from typing import Any, Dict, Optional, Protocol, Sequence, Tuple

import numpy as np
import rasterio
from rasterio.enums import Resampling
from rasterio.errors import CRSError as RasterioCRSError, RasterioError
from rasterio.windows import Window

from common.types import PixelWindow, RasterInfo
from tile_server.errors import ProjectionError, RasterInitError, RasterReadError
from tile_server.projection import native_to_lonlat


log = logging.getLogger(__name__)


class RasterSource(Protocol):
    """
    What the tile pipeline needs from a raster file.

    `read_window` returns one band's samples for the window as a flat, row-major
    array of length w*h (or out_shape[0]*out_shape[1] when decimating).
    """
    width: int
    height: int
    band_count: int
    geotransform: Sequence[float]
    crs: Optional[str]

    def tags(self) -> Dict[str, str]: ...

    def read_window(
        self, band: int, x: int, y: int, w: int, h: int, out_shape: Optional[Tuple[int, int]] = None
    ) -> np.ndarray: ...

    def close(self) -> None: ...


class RasterioSource:
    """RasterSource over a rasterio dataset (GeoTIFF, COG, anything GDAL opens)."""

    def __init__(self, path: str):
        self.path = path
        try:
            self._ds = rasterio.open(path)
        except RasterioError as e:
            raise RasterInitError(f"cannot open raster {path}: {e}") from e
        self.width = int(self._ds.width)
        self.height = int(self._ds.height)
        self.band_count = int(self._ds.count)
        self.geotransform = tuple(self._ds.transform.to_gdal())
        self.crs = self._crs_wkt()

    def _crs_wkt(self) -> Optional[str]:
        if self._ds.crs is None:
            return None
        try:
            return self._ds.crs.to_wkt()
        except RasterioCRSError as e:
            log.error("Cannot export raster CRS as WKT: %s", e)
            return None

    def tags(self) -> Dict[str, str]:
        return dict(self._ds.tags())

    def read_window(
        self, band: int, x: int, y: int, w: int, h: int, out_shape: Optional[Tuple[int, int]] = None
    ) -> np.ndarray:
        kwargs: Dict[str, Any] = {"window": Window(x, y, w, h)}
        if out_shape is not None:
            kwargs["out_shape"] = out_shape
            kwargs["resampling"] = Resampling.average
        try:
            data = self._ds.read(band, **kwargs)
        except (RasterioError, IndexError, ValueError) as e:
            raise RasterReadError(f"band {band} window ({x},{y},{w},{h}): {e}") from e
        return data.ravel()

    def close(self) -> None:
        self._ds.close()


class RasterService:
    """
    Owns the raster handle and its RasterInfo for the lifetime of the process.

    - Reads are serialized through a mutex: rasterio dataset handles are not
      safe to use from several threads at once.
    - Needs at least 3 bands (R, G, B); fewer is a configuration error.
    - If the raster carries no CRS, `fallback_crs` is reported instead (may be None).
    """

    def __init__(self, source: RasterSource, fallback_crs: Optional[str] = None):
        if source.band_count < 3:
            raise RasterInitError(f"raster has {source.band_count} band(s); 3 are required")
        self.source = source
        self._lock = threading.Lock()
        projection = source.crs or fallback_crs
        if source.crs is None and fallback_crs:
            log.warning("Raster has no CRS; using fallback %s", fallback_crs)
        try:
            self.info = RasterInfo.from_geotransform(
                source.width, source.height, source.geotransform, projection
            )
        except ValueError as e:
            raise RasterInitError(f"unusable georeferencing: {e}") from e

    @classmethod
    def open(cls, path: str, fallback_crs: Optional[str] = None) -> "RasterService":
        if not os.path.exists(path):
            raise RasterInitError(f"raster file not found: {path}")
        source = RasterioSource(path)
        try:
            svc = cls(source, fallback_crs=fallback_crs)
        except RasterInitError:
            source.close()
            raise
        log.info("Raster opened", extra={"path": path, "info": svc.info.to_dict(), "wgs84": svc.wgs84_bounds()})
        return svc

    @property
    def band_count(self) -> int:
        return self.source.band_count

    def read_band(self, band: int, window: PixelWindow, out_shape: Optional[Tuple[int, int]] = None) -> np.ndarray:
        with self._lock:
            return self.source.read_window(band, window.x, window.y, window.width, window.height, out_shape=out_shape)

    def wgs84_bounds(self) -> Optional[Dict[str, Dict[str, float]]]:
        """North-west and south-east raster corners in lon/lat, or None if not reprojectable."""
        b = self.info.bounds
        try:
            nw = native_to_lonlat(b.min_x, b.max_y, self.info.projection)
            se = native_to_lonlat(b.max_x, b.min_y, self.info.projection)
        except ProjectionError as e:
            log.warning("Cannot convert raster bounds to WGS84: %s", e)
            return None
        return {
            "northwest": {"lon": nw[0], "lat": nw[1]},
            "southeast": {"lon": se[0], "lat": se[1]},
        }

    def describe(self) -> Dict[str, Any]:
        """Detailed info document for /api/tif-info-detailed."""
        info = self.info
        doc: Dict[str, Any] = {
            "size": {"width": info.width, "height": info.height},
            "bands": self.band_count,
            "srs": self.source.crs,
            "projection": info.projection,
            "geoTransform": list(info.geotransform),
            "metadata": self.source.tags(),
            "bounds": info.bounds.to_dict(),
        }
        wgs84 = self.wgs84_bounds()
        if wgs84 is not None:
            doc["wgs84Bounds"] = wgs84
        return doc

    def close(self) -> None:
        with self._lock:
            self.source.close()
