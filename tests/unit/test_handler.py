"""
Unit tests for the tile request pipeline
"""

import io
import os
import sys

import pytest
from PIL import Image

# Add project root to path
project_root = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
sys.path.append(project_root)

from common.types import TileKey
from tile_server.codec import empty_tile
from tile_server.config import ServerConfig
from tile_server.errors import RasterInitError
from tile_server.handler import HIT, MISS, TileRequestHandler
from tile_server.raster import RasterService
from tile_server.tile_cache import TileCache
from tests.conftest import X0, Y0, FakeRasterSource, mercator_geotransform


def _decode(png: bytes) -> Image.Image:
    return Image.open(io.BytesIO(png))


@pytest.fixture
def handler(mercator_service, config):
    return TileRequestHandler(mercator_service, TileCache(config.cache_capacity), config)


class TestTileRequestHandler:
    def test_covered_tile_then_cache_hit(self, handler):
        first = handler.get_tile(12, X0 + 3, Y0 + 5)
        second = handler.get_tile(12, X0 + 3, Y0 + 5)
        assert first.cache_status == MISS
        assert first.outcome == "clamped"
        assert second.cache_status == HIT
        assert second.outcome == "cached"
        assert first.content == second.content
        assert first.headers == {"X-Cache": "MISS", "X-Tile-Outcome": "clamped"}
        img = _decode(first.content)
        assert img.size == (256, 256)
        assert img.mode == "RGB"

    def test_hit_skips_raster(self, handler, mercator_source):
        handler.get_tile(12, X0, Y0)
        n = len(mercator_source.reads)
        handler.get_tile(12, X0, Y0)
        assert len(mercator_source.reads) == n

    def test_string_indices(self, handler):
        assert handler.get_tile("12", str(X0), str(Y0)).outcome == "clamped"

    def test_no_coverage_is_empty_and_not_cached(self, handler):
        t = handler.get_tile(12, X0 + 40, Y0)
        assert t.content == empty_tile(256)
        assert t.cache_status == MISS
        assert t.outcome == "no_coverage"
        assert TileKey(12, X0 + 40, Y0) not in handler.cache

    @pytest.mark.parametrize("z, x, y", [(12, -1, 0), (3, 8, 0), (-1, 0, 0), (31, 0, 0), ("a", "b", "c"), (12, "1.5", 3)])
    def test_invalid_key_is_empty(self, handler, z, x, y):
        t = handler.get_tile(z, x, y)
        assert t.content == empty_tile(256)
        assert t.cache_status == MISS

    def test_fixed_fallback_tile(self, small_service, config):
        h = TileRequestHandler(small_service, TileCache(), config)
        t = h.get_tile(14, X0 * 4, Y0 * 4)
        assert t.outcome == "fixed_fallback"
        img = _decode(t.content)
        assert img.size == (256, 256)
        assert img.mode == "RGB"
        assert t.content != empty_tile(256)
        assert small_service.source.reads[0][1:5] == (45, 45, 10, 10)

    def test_read_error_is_empty_and_not_cached(self, config):
        svc = RasterService(FakeRasterSource(4096, 4096, mercator_geotransform(), fail_reads=True))
        h = TileRequestHandler(svc, TileCache(), config)
        t = h.get_tile(12, X0, Y0)
        assert t.content == empty_tile(256)
        assert t.outcome == "error"
        assert len(h.cache) == 0

    def test_unexpected_error_is_empty(self, handler, monkeypatch):
        def boom(window):
            raise RuntimeError("unexpected")

        monkeypatch.setattr(handler, "render", boom)
        t = handler.get_tile(12, X0, Y0)
        assert t.content == empty_tile(256)
        assert t.outcome == "error"

    def test_no_raster_loaded(self, config):
        h = TileRequestHandler(None, TileCache(), config)
        t = h.get_tile(12, X0, Y0)
        assert t.content == empty_tile(256)
        assert t.outcome == "error"

    def test_custom_tile_size(self, mercator_service):
        cfg = ServerConfig(tile_size=512)
        h = TileRequestHandler(mercator_service, TileCache(), cfg)
        assert _decode(h.get_tile(12, X0, Y0).content).size == (512, 512)
        assert _decode(h.get_tile(12, 0, 0).content).size == (512, 512)


class TestPreview:
    def test_downsamples_longest_side(self, config):
        svc = RasterService(FakeRasterSource(4096, 2048, mercator_geotransform()))
        h = TileRequestHandler(svc, TileCache(), config)
        img = _decode(h.render_preview())
        assert img.size == (1024, 512)
        assert svc.source.reads[0] == (1, 0, 0, 4096, 2048, (512, 1024))

    def test_small_raster_not_upscaled(self, config):
        svc = RasterService(FakeRasterSource(300, 200, mercator_geotransform()))
        h = TileRequestHandler(svc, TileCache(), config)
        assert _decode(h.render_preview()).size == (300, 200)

    def test_no_raster(self, config):
        with pytest.raises(RasterInitError):
            TileRequestHandler(None, TileCache(), config).render_preview()
