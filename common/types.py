from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Any, Dict, Optional, Sequence, Tuple


# Slippy tile indices above this zoom overflow float math and are not served.
MAX_ZOOM = 30


@dataclass(frozen=True, slots=True)
class Bounds:
    """Axis-aligned extent in the raster's native projection."""
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    def to_dict(self) -> Dict[str, float]:
        return {"minX": self.min_x, "minY": self.min_y, "maxX": self.max_x, "maxY": self.max_y}


@dataclass(frozen=True, slots=True)
class RasterInfo:
    """
    Georeferencing summary of a raster, computed once when the file is opened.

    Attributes:
        width, height: raster size in pixels.
        origin_x, origin_y: projected coordinates of pixel (0, 0).
        pixel_width, pixel_height: affine scale terms (pixel_height is usually negative).
        skew_x, skew_y: affine rotation terms (ignored by pixel math, reported only).
        projection: CRS descriptor (WKT, PROJ string or "EPSG:xxxx"), or None.
    """
    width: int
    height: int
    origin_x: float
    origin_y: float
    pixel_width: float
    pixel_height: float
    skew_x: float = 0.0
    skew_y: float = 0.0
    projection: Optional[str] = None

    def __post_init__(self) -> None:
        if self.width <= 0 or self.height <= 0:
            raise ValueError("raster width/height must be > 0")
        if self.pixel_width == 0 or self.pixel_height == 0:
            raise ValueError("pixel size must be non-zero")

    @classmethod
    def from_geotransform(
        cls,
        width: int,
        height: int,
        geotransform: Sequence[float],
        projection: Optional[str] = None,
    ) -> "RasterInfo":
        """Build from a GDAL-ordered geotransform [x0, dx, skew_x, y0, skew_y, dy]."""
        if len(geotransform) != 6:
            raise ValueError("geotransform must have 6 coefficients")
        x0, dx, sx, y0, sy, dy = (float(v) for v in geotransform)
        return cls(
            width=int(width),
            height=int(height),
            origin_x=x0,
            origin_y=y0,
            pixel_width=dx,
            pixel_height=dy,
            skew_x=sx,
            skew_y=sy,
            projection=projection,
        )

    @property
    def geotransform(self) -> Tuple[float, float, float, float, float, float]:
        return (self.origin_x, self.pixel_width, self.skew_x, self.origin_y, self.skew_y, self.pixel_height)

    @property
    def bounds(self) -> Bounds:
        # min/max follow the usual north-up convention (dx > 0, dy < 0)
        return Bounds(
            min_x=self.origin_x,
            min_y=self.origin_y + self.height * self.pixel_height,
            max_x=self.origin_x + self.width * self.pixel_width,
            max_y=self.origin_y,
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON document served by /api/tif-info."""
        return {
            "width": self.width,
            "height": self.height,
            "originX": self.origin_x,
            "originY": self.origin_y,
            "pixelWidth": self.pixel_width,
            "pixelHeight": self.pixel_height,
            "skewX": self.skew_x,
            "skewY": self.skew_y,
            "projection": self.projection,
            "bounds": self.bounds.to_dict(),
        }


@dataclass(frozen=True, slots=True)
class TileKey:
    """Slippy tile address; x and y must lie in [0, 2^z)."""
    z: int
    x: int
    y: int

    def __post_init__(self) -> None:
        if not (0 <= self.z <= MAX_ZOOM):
            raise ValueError(f"zoom out of range: {self.z}")
        n = 1 << self.z
        if not (0 <= self.x < n) or not (0 <= self.y < n):
            raise ValueError(f"tile {self.x}/{self.y} outside [0, {n}) at z={self.z}")

    @property
    def zxy(self) -> Tuple[int, int, int]:
        return (self.z, self.x, self.y)

    def __str__(self) -> str:
        return f"{self.z}/{self.x}/{self.y}"


@dataclass(frozen=True, slots=True)
class PixelWindow:
    """
    Sub-rectangle of raster pixel space. Unvalidated windows may extend past
    the raster; use `clamped_to` before reading.
    """
    x: int
    y: int
    width: int
    height: int

    @property
    def is_empty(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def size(self) -> int:
        return max(self.width, 0) * max(self.height, 0)

    def intersects(self, raster_width: int, raster_height: int) -> bool:
        return (
            not self.is_empty
            and self.x < raster_width
            and self.y < raster_height
            and self.x + self.width > 0
            and self.y + self.height > 0
        )

    def clamped_to(self, raster_width: int, raster_height: int) -> "PixelWindow":
        """Intersection with [0, raster_width) x [0, raster_height); may come back empty."""
        x0 = max(0, self.x)
        y0 = max(0, self.y)
        x1 = min(raster_width, self.x + self.width)
        y1 = min(raster_height, self.y + self.height)
        return PixelWindow(x=x0, y=y0, width=x1 - x0, height=y1 - y0)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)
