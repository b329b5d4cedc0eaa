from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from common.types import PixelWindow, TileKey
from tile_server.codec import empty_tile, encode_rgb
from tile_server.compositor import composite_rgb
from tile_server.config import ServerConfig
from tile_server.errors import RasterInitError, TileServerError
from tile_server.raster import RasterService
from tile_server.tile_cache import TileCache
from tile_server.window import WindowResolver


log = logging.getLogger(__name__)

HIT = "HIT"
MISS = "MISS"


@dataclass(frozen=True)
class TileResponse:
    content: bytes
    cache_status: str  # HIT | MISS
    outcome: str       # cached | clamped | fixed_fallback | no_coverage | error

    @property
    def headers(self):
        return {"X-Cache": self.cache_status, "X-Tile-Outcome": self.outcome}


class TileRequestHandler:
    """
    Per-request tile pipeline:

        cache lookup ── HIT ──────────────────────────────────────────> bytes
            └─ MISS ─> resolve window ── no coverage ─────────────────> empty tile
                          └─ covered ─> composite -> encode -> store ─> bytes

    Any failure on the way degrades to the transparent empty tile; callers never
    see an exception. `raster` may be None when the file failed to open at startup.
    """

    def __init__(self, raster: Optional[RasterService], cache: TileCache, config: ServerConfig):
        self.raster = raster
        self.cache = cache
        self.config = config
        self.resolver: Optional[WindowResolver] = None
        if raster is not None:
            self.resolver = WindowResolver(
                raster.info,
                high_zoom_threshold=config.high_zoom_threshold,
                oversize_ratio=config.oversize_ratio,
                fallback_divisor=config.fallback_divisor,
            )

    # -------- tiles --------

    def empty(self, outcome: str) -> TileResponse:
        return TileResponse(empty_tile(self.config.tile_size), MISS, outcome)

    def get_tile(self, z, x, y) -> TileResponse:
        """z/x/y may be ints or raw path strings; anything unparsable yields the empty tile."""
        t0 = time.perf_counter()
        try:
            key = TileKey(int(z), int(x), int(y))
        except ValueError as e:
            log.info("Invalid tile request %s/%s/%s: %s", z, x, y, e)
            return self.empty("no_coverage")

        cached = self.cache.get(key)
        if cached is not None:
            return TileResponse(cached, HIT, "cached")

        if self.raster is None or self.resolver is None:
            log.warning("Tile %s requested but no raster is loaded", key)
            return self.empty("error")

        try:
            resolution = self.resolver.resolve(key)
            if not resolution.covered:
                log.debug("Tile %s: no coverage (%s)", key, resolution.reason)
                return self.empty(resolution.outcome.value)
            png = self.render(resolution.window)
        except TileServerError as e:
            log.error("Tile %s failed: %s", key, e)
            return self.empty("error")
        except Exception:  # last resort: tile clients must always get an image
            log.exception("Unexpected error rendering tile %s", key)
            return self.empty("error")

        self.cache.put(key, png)
        log.info(
            "Tile %s rendered", key,
            extra={"outcome": resolution.outcome.value, "ms": round((time.perf_counter() - t0) * 1e3, 1)},
        )
        return TileResponse(png, MISS, resolution.outcome.value)

    def render(self, window: PixelWindow) -> bytes:
        rgb = composite_rgb(self.raster, window)
        size = self.config.tile_size
        return encode_rgb(rgb, window.width, window.height, (size, size), self.config.enhance)

    # -------- preview --------

    def render_preview(self) -> bytes:
        """
        Whole raster scaled to fit `preview_max_size` on its longest side (never
        upscaled), with the same enhancement as tiles.

        Raises:
            RasterInitError: no raster loaded
            RasterReadError / CodecError: rendering failed
        """
        if self.raster is None:
            raise RasterInitError("no raster loaded")
        info = self.raster.info
        m = self.config.preview_max_size
        scale = min(1.0, m / info.width, m / info.height)
        pw = max(1, int(round(info.width * scale)))
        ph = max(1, int(round(info.height * scale)))
        full = PixelWindow(0, 0, info.width, info.height)
        rgb = composite_rgb(self.raster, full, out_shape=(ph, pw))
        return encode_rgb(rgb, pw, ph, (pw, ph), self.config.enhance)
