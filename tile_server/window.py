"""
Tile -> raster pixel window resolution.

    corners (lon/lat) -> native CRS -> pixels -> bounding window
        ├─ no intersection / degenerate      -> NO_COVERAGE
        ├─ oversized (> ratio of raster dim)
        │     ├─ z >= high_zoom_threshold     -> FIXED_FALLBACK (square around tile center)
        │     └─ otherwise                    -> NO_COVERAGE
        └─ accepted                            -> CLAMPED (intersected with raster)

A resolution never carries a window that reaches outside the raster.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from common.geo import round_half_up, native_to_pixel, tile_center, tile_corners
from common.types import PixelWindow, RasterInfo, TileKey
from tile_server.errors import ProjectionError
from tile_server.projection import lonlat_to_native


log = logging.getLogger(__name__)

# (lon, lat, native_crs) -> (px, py)
ToNative = Callable[[float, float, Optional[str]], Tuple[float, float]]


class WindowOutcome(str, Enum):
    CLAMPED = "clamped"
    FIXED_FALLBACK = "fixed_fallback"
    NO_COVERAGE = "no_coverage"


@dataclass(frozen=True)
class WindowResolution:
    outcome: WindowOutcome
    window: Optional[PixelWindow] = None
    reason: str = ""

    @property
    def covered(self) -> bool:
        return self.outcome is not WindowOutcome.NO_COVERAGE

    @classmethod
    def no_coverage(cls, reason: str) -> "WindowResolution":
        return cls(WindowOutcome.NO_COVERAGE, None, reason)


class WindowResolver:
    def __init__(
        self,
        info: RasterInfo,
        *,
        high_zoom_threshold: int = 14,
        oversize_ratio: float = 0.5,
        fallback_divisor: int = 10,
        to_native: ToNative = lonlat_to_native,
    ):
        """
        Params:
            info: georeferencing of the raster being served
            high_zoom_threshold: min zoom at which oversized windows use the fixed fallback
            oversize_ratio: window width/height above this share of the raster dim is suspect
            fallback_divisor: fallback side = min(raster width, height) / divisor
            to_native: lon/lat -> native CRS point transform (pyproj by default)
        """
        self.info = info
        self.high_zoom_threshold = int(high_zoom_threshold)
        self.oversize_ratio = float(oversize_ratio)
        self.fallback_divisor = int(fallback_divisor)
        self._to_native = to_native

    # -------- public API --------

    def resolve(self, key: TileKey) -> WindowResolution:
        try:
            candidate = self.candidate_window(key)
        except ProjectionError as e:
            log.info("Tile %s not reprojectable: %s", key, e)
            return WindowResolution.no_coverage(f"projection: {e}")

        W, H = self.info.width, self.info.height
        if not candidate.intersects(W, H):
            return WindowResolution.no_coverage("outside raster")

        if self._oversized(candidate):
            if key.z < self.high_zoom_threshold:
                log.info(
                    "Tile %s window too large, likely a projection artifact", key,
                    extra={"window": candidate.to_dict(), "raster": [W, H]},
                )
                return WindowResolution.no_coverage("oversized window")
            return self._fixed_fallback(key, candidate)

        window = candidate.clamped_to(W, H)
        if window.is_empty:
            return WindowResolution.no_coverage("empty after clamping")
        return WindowResolution(WindowOutcome.CLAMPED, window)

    def candidate_window(self, key: TileKey) -> PixelWindow:
        """
        Bounding pixel window of the tile's four corners, unvalidated.
        Each corner is reprojected separately: the projection is not affine over the tile.
        """
        cols: List[int] = []
        rows: List[int] = []
        for lon, lat in tile_corners(key).values():
            col, row = self._lonlat_to_pixel(lon, lat)
            cols.append(col)
            rows.append(row)
        x, y = min(cols), min(rows)
        return PixelWindow(x=x, y=y, width=max(cols) - x, height=max(rows) - y)

    # -------- internals --------

    def _lonlat_to_pixel(self, lon: float, lat: float) -> Tuple[int, int]:
        px, py = self._to_native(lon, lat, self.info.projection)
        return native_to_pixel(px, py, self.info)

    def _oversized(self, w: PixelWindow) -> bool:
        return (
            w.width > self.info.width * self.oversize_ratio
            or w.height > self.info.height * self.oversize_ratio
        )

    def _fixed_fallback(self, key: TileKey, candidate: PixelWindow) -> WindowResolution:
        """Square window around the tile center; trades precision for a non-empty tile at extreme zoom."""
        try:
            cx, cy = self._lonlat_to_pixel(*tile_center(key))
        except ProjectionError as e:
            return WindowResolution.no_coverage(f"projection: {e}")
        side = round_half_up(min(self.info.width, self.info.height) / self.fallback_divisor)
        half = side // 2
        window = PixelWindow(x=cx - half, y=cy - half, width=side, height=side).clamped_to(
            self.info.width, self.info.height
        )
        if window.is_empty:
            return WindowResolution.no_coverage("fallback window outside raster")
        log.info(
            "Tile %s using fixed window around center", key,
            extra={"candidate": candidate.to_dict(), "window": window.to_dict()},
        )
        return WindowResolution(WindowOutcome.FIXED_FALLBACK, window)
