"""
Unit tests for slippy tile and pixel math
"""

import math
import os
import sys

import pytest

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.geo import (
    lonlat_to_tile,
    native_to_pixel,
    pixel_to_native,
    tile_center,
    tile_corners,
    tile_to_lonlat,
)
from common.types import RasterInfo, TileKey
from tile_server.projection import lonlat_to_native
from tests.conftest import EARTH_HALF, tile_span_m


class TestTileMath:
    """Web Mercator tile <-> lon/lat"""

    def test_world_corners(self):
        lon, lat = tile_to_lonlat(0, 0, 0)
        assert lon == pytest.approx(-180.0)
        assert lat == pytest.approx(85.0511287798, abs=1e-9)
        lon, lat = tile_to_lonlat(1, 1, 0)
        assert lon == pytest.approx(180.0)
        assert lat == pytest.approx(-85.0511287798, abs=1e-9)

    def test_center_of_world(self):
        lon, lat = tile_to_lonlat(1, 1, 1)
        assert lon == pytest.approx(0.0)
        assert lat == pytest.approx(0.0, abs=1e-12)

    @pytest.mark.parametrize("z", [10, 12, 14, 16, 18])
    @pytest.mark.parametrize("fx, fy", [(0.0, 0.0), (0.37, 0.61), (0.999, 0.001)])
    def test_lonlat_to_tile_inverts_tile_to_lonlat(self, z, fx, fy):
        n = 2 ** z
        x, y = int(fx * (n - 1)), int(fy * (n - 1))
        lon, lat = tile_to_lonlat(x, y, z)
        tx, ty = lonlat_to_tile(lon, lat, z)
        assert tx == pytest.approx(x, abs=1e-6)
        assert ty == pytest.approx(y, abs=1e-6)

    @pytest.mark.parametrize("z, x, y", [(10, 369, 569), (14, 5904, 9104), (18, 94464, 145664)])
    def test_corner_reprojects_to_mercator_grid(self, z, x, y):
        """Tile corners land exactly on the EPSG:3857 tile grid."""
        lon, lat = tile_to_lonlat(x, y, z)
        mx, my = lonlat_to_native(lon, lat, "EPSG:3857")
        span = tile_span_m(z)
        assert mx == pytest.approx(-EARTH_HALF + x * span, abs=1e-3)
        assert my == pytest.approx(EARTH_HALF - y * span, abs=1e-3)

    def test_corners_and_center(self):
        key = TileKey(12, 1476, 2276)
        c = tile_corners(key)
        assert set(c) == {"nw", "ne", "sw", "se"}
        assert c["nw"][0] == pytest.approx(c["sw"][0])
        assert c["ne"][0] == pytest.approx(c["se"][0])
        assert c["nw"][1] == pytest.approx(c["ne"][1])
        assert c["nw"][1] > c["sw"][1]
        lon, lat = tile_center(key)
        assert lon == pytest.approx(0.5 * (c["nw"][0] + c["se"][0]))
        assert lat == pytest.approx(0.5 * (c["nw"][1] + c["se"][1]))


class TestPixelMath:
    """Native projected coords <-> raster pixels"""

    info = RasterInfo(width=100, height=50, origin_x=1000.0, origin_y=5000.0, pixel_width=10.0, pixel_height=-10.0)

    def test_origin_is_pixel_zero(self):
        assert native_to_pixel(1000.0, 5000.0, self.info) == (0, 0)

    def test_native_to_pixel(self):
        assert native_to_pixel(1234.0, 4321.0, self.info) == (23, 68)

    def test_rounds_half_up(self):
        assert native_to_pixel(1025.0, 5000.0, self.info) == (3, 0)
        assert native_to_pixel(975.0, 5000.0, self.info) == (-2, 0)

    def test_pixel_to_native_roundtrip(self):
        px, py = pixel_to_native(40, 20, self.info)
        assert (px, py) == (1400.0, 4800.0)
        assert native_to_pixel(px, py, self.info) == (40, 20)

    def test_skew_is_ignored(self):
        skewed = RasterInfo(100, 50, 1000.0, 5000.0, 10.0, -10.0, skew_x=3.0, skew_y=-2.0)
        assert native_to_pixel(1234.0, 4321.0, skewed) == native_to_pixel(1234.0, 4321.0, self.info)
