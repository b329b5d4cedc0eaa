"""
Point reprojection between CRSs (pyproj).

All coordinates are (x, y) = (lon, lat) / (easting, northing) order; transformers
are built with always_xy=True so axis order never depends on the CRS definition.
"""
from __future__ import annotations

import logging
import math
import threading
from typing import Dict, Optional, Tuple

from pyproj import Transformer
from pyproj.exceptions import ProjError

from tile_server.errors import ProjectionError


log = logging.getLogger(__name__)

WGS84 = "EPSG:4326"

# Transformers are cached per thread; pyproj objects should not be shared across threads.
_local = threading.local()


def _transformer(src_crs: str, dst_crs: str) -> Transformer:
    cache: Dict[Tuple[str, str], Transformer] = getattr(_local, "transformers", None)
    if cache is None:
        cache = _local.transformers = {}
    key = (src_crs, dst_crs)
    tr = cache.get(key)
    if tr is None:
        try:
            tr = Transformer.from_crs(src_crs, dst_crs, always_xy=True)
        except ProjError as e:
            # CRSError (unparsable) is a ProjError; so is a CRS with no path to dst_crs
            raise ProjectionError(f"no transformation {src_crs!r} -> {dst_crs!r}: {e}") from e
        cache[key] = tr
    return tr


def reproject(src_crs: Optional[str], dst_crs: Optional[str], x: float, y: float) -> Tuple[float, float]:
    """
    Convert a single point from `src_crs` to `dst_crs`.

    Raises:
        ProjectionError: a CRS is missing/malformed, or the point is outside the
        valid domain of the transformation (PROJ error or non-finite result).
    """
    if not src_crs or not dst_crs:
        raise ProjectionError("missing CRS")
    tr = _transformer(src_crs, dst_crs)
    try:
        ox, oy = tr.transform(x, y, errcheck=True)
    except ProjError as e:
        raise ProjectionError(f"cannot reproject ({x}, {y}): {e}") from e
    if not (math.isfinite(ox) and math.isfinite(oy)):
        raise ProjectionError(f"cannot reproject ({x}, {y}): non-finite result")
    return float(ox), float(oy)


def lonlat_to_native(lon: float, lat: float, native_crs: Optional[str]) -> Tuple[float, float]:
    """WGS84 lon/lat (deg) -> raster-native projected coordinates."""
    return reproject(WGS84, native_crs, lon, lat)


def native_to_lonlat(px: float, py: float, native_crs: Optional[str]) -> Tuple[float, float]:
    """Raster-native projected coordinates -> WGS84 lon/lat (deg)."""
    return reproject(native_crs, WGS84, px, py)
