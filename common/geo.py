from __future__ import annotations

from typing import Dict, Tuple
import math

from common.types import RasterInfo, TileKey


# -------------------------
# Slippy tile <-> lon/lat (Web Mercator)
# -------------------------
def tile_to_lonlat(x: float, y: float, z: int) -> Tuple[float, float]:
    """
    Lon/lat (deg) of the north-west corner of tile (x, y) at zoom z.

    Fractional and out-of-range x/y are accepted (x+1, y+1 give the far corners);
    results for y outside [0, 2^z] are not meaningful and callers must bound-check.
    """
    n = 2.0 ** z
    lon = x / n * 360.0 - 180.0
    m = math.pi - 2.0 * math.pi * y / n
    lat = math.degrees(math.atan(math.sinh(m)))
    return lon, lat


def lonlat_to_tile(lon: float, lat: float, z: int) -> Tuple[float, float]:
    """Fractional tile coordinates for lon/lat (deg); inverse of tile_to_lonlat()."""
    n = 2.0 ** z
    x = (lon + 180.0) / 360.0 * n
    phi = math.radians(lat)
    y = (1.0 - math.asinh(math.tan(phi)) / math.pi) / 2.0 * n
    return x, y


def tile_corners(key: TileKey) -> Dict[str, Tuple[float, float]]:
    """Lon/lat of the four tile corners keyed nw/ne/sw/se."""
    x, y, z = key.x, key.y, key.z
    return {
        "nw": tile_to_lonlat(x, y, z),
        "ne": tile_to_lonlat(x + 1, y, z),
        "sw": tile_to_lonlat(x, y + 1, z),
        "se": tile_to_lonlat(x + 1, y + 1, z),
    }


def tile_center(key: TileKey) -> Tuple[float, float]:
    """Midpoint of the nw and se corners in lon/lat (not the Mercator center)."""
    nw_lon, nw_lat = tile_to_lonlat(key.x, key.y, key.z)
    se_lon, se_lat = tile_to_lonlat(key.x + 1, key.y + 1, key.z)
    return (0.5 * (nw_lon + se_lon), 0.5 * (nw_lat + se_lat))


# -------------------------
# Native projected coords <-> raster pixels
# -------------------------
def round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def native_to_pixel(px: float, py: float, info: RasterInfo) -> Tuple[int, int]:
    """
    Projected (px, py) to integer (col, row) in the raster.

    NOTE: skew terms are ignored; rasters served here are north-up.
    """
    col = round_half_up((px - info.origin_x) / info.pixel_width)
    row = round_half_up((py - info.origin_y) / info.pixel_height)
    return col, row


def pixel_to_native(col: float, row: float, info: RasterInfo) -> Tuple[float, float]:
    """Pixel (col, row) to projected coordinates; same no-skew assumption."""
    return (info.origin_x + col * info.pixel_width, info.origin_y + row * info.pixel_height)
