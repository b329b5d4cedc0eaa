"""
Shared fixtures: in-memory raster sources and Web Mercator-aligned raster geometry.
"""

import os
import sys
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
sys.path.append(project_root)

from common.geo import tile_center
from common.types import TileKey
from tile_server.config import ServerConfig
from tile_server.errors import RasterReadError
from tile_server.projection import lonlat_to_native
from tile_server.raster import RasterService


EARTH_HALF = 20037508.342789244
MERCATOR = "EPSG:3857"
# Parses as a CRS but has no transformation to or from WGS84.
LOCAL_CRS = 'LOCAL_CS["arbitrary",UNIT["metre",1]]'

# The big test raster's top-left pixel is the top-left of this z=12 tile.
Z0, X0, Y0 = 12, 1476, 2276


def tile_span_m(z: int) -> float:
    return 2.0 * EARTH_HALF / (2 ** z)


def mercator_geotransform(z: int = Z0, x: int = X0, y: int = Y0, px_per_tile: int = 256):
    """GDAL geotransform whose origin is the NW corner of tile (z, x, y), `px_per_tile` pixels per tile."""
    span = tile_span_m(z)
    pw = span / px_per_tile
    return (-EARTH_HALF + x * span, pw, 0.0, EARTH_HALF - y * span, 0.0, -pw)


def centered_geotransform(key: TileKey, size_px: int, pixel_m: float):
    """Geotransform of a size_px square raster centered on the tile's center."""
    cx, cy = lonlat_to_native(*tile_center(key), MERCATOR)
    half = size_px / 2.0 * pixel_m
    return (cx - half, pixel_m, 0.0, cy + half, 0.0, -pixel_m)


class FakeRasterSource:
    """
    RasterSource backed by constant per-band values or a (bands, H, W) array.
    Records every read; `fail_reads=True` makes reads raise RasterReadError.
    """

    def __init__(
        self,
        width: int,
        height: int,
        geotransform: Sequence[float],
        crs: Optional[str] = MERCATOR,
        values: Sequence[int] = (10, 20, 30),
        data: Optional[np.ndarray] = None,
        fail_reads: bool = False,
    ):
        self.width = width
        self.height = height
        self.geotransform = tuple(geotransform)
        self.crs = crs
        self.values = tuple(values)
        self.data = data
        self.band_count = int(data.shape[0]) if data is not None else len(self.values)
        self.fail_reads = fail_reads
        self.reads = []
        self.closed = False

    def tags(self) -> Dict[str, str]:
        return {"SOURCE": "fake"}

    def read_window(self, band, x, y, w, h, out_shape: Optional[Tuple[int, int]] = None):
        self.reads.append((band, x, y, w, h, out_shape))
        if self.fail_reads:
            raise RasterReadError("disk on fire")
        if x < 0 or y < 0 or x + w > self.width or y + h > self.height:
            raise RasterReadError(f"window ({x},{y},{w},{h}) outside raster")
        oh, ow = out_shape if out_shape is not None else (h, w)
        if self.data is None:
            return np.full(ow * oh, self.values[band - 1], dtype=np.uint8)
        rows = np.linspace(y, y + h - 1, oh).round().astype(int)
        cols = np.linspace(x, x + w - 1, ow).round().astype(int)
        return self.data[band - 1][np.ix_(rows, cols)].ravel()

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def mercator_source():
    """4096x4096 px raster covering 16x16 tiles at z=12, one raster px per tile px."""
    return FakeRasterSource(4096, 4096, mercator_geotransform())


@pytest.fixture
def mercator_service(mercator_source):
    return RasterService(mercator_source)


@pytest.fixture
def small_service():
    """100x100 px raster, 10 m pixels, centered on z=14 tile (5904, 9104); much smaller than that tile."""
    key = TileKey(14, X0 * 4, Y0 * 4)
    return RasterService(FakeRasterSource(100, 100, centered_geotransform(key, 100, 10.0)))


@pytest.fixture
def local_service():
    """Mercator-sized raster whose CRS is a local engineering frame."""
    return RasterService(FakeRasterSource(4096, 4096, mercator_geotransform(), crs=LOCAL_CRS))


@pytest.fixture
def config():
    return ServerConfig()
