"""
Tile server exceptions.

Only RasterInitError is fatal, and only at startup; everything on the tile path
degrades to an empty tile.
"""


class TileServerError(Exception):
    """Base exception for the tile server"""

    pass


class ConfigError(TileServerError):
    """Configuration file or value is invalid"""

    pass


class RasterInitError(TileServerError):
    """Raster file missing, unreadable, or unusable (fewer than 3 bands)"""

    pass


class RasterReadError(TileServerError):
    """Reading band samples from the raster failed"""

    pass


class ProjectionError(TileServerError):
    """CRS missing/malformed, or a point is outside the CRS's valid domain"""

    pass


class CodecError(TileServerError):
    """Resizing, enhancing or encoding an image failed"""

    pass
