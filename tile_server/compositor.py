from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from common.types import PixelWindow
from tile_server.errors import RasterReadError
from tile_server.raster import RasterService


RGB_BANDS = (1, 2, 3)


def interleave(bands, n: int) -> np.ndarray:
    """
    Pack equally sized flat band arrays into one RGBRGB... uint8 buffer of length 3*n.

    Samples are clipped to 0..255 before the uint8 cast so wider data saturates
    instead of wrapping; no rescaling is applied. NaN (float nodata) becomes 0.
    """
    out = np.empty(n * len(bands), dtype=np.uint8)
    for i, b in enumerate(bands):
        a = np.asarray(b).ravel()
        if a.size != n:
            raise RasterReadError(f"band {i + 1} returned {a.size} samples, expected {n}")
        a = np.nan_to_num(a, nan=0.0, posinf=255.0, neginf=0.0)
        out[i::len(bands)] = np.clip(a, 0, 255).astype(np.uint8, copy=False)
    return out


def composite_rgb(
    raster: RasterService,
    window: PixelWindow,
    out_shape: Optional[Tuple[int, int]] = None,
) -> np.ndarray:
    """
    Read bands 1-3 over `window` and interleave them.

    Returns a flat uint8 array of length w*h*3, where (h, w) is `out_shape` when
    decimating and the window size otherwise.
    """
    h, w = out_shape if out_shape is not None else (window.height, window.width)
    bands = [raster.read_band(b, window, out_shape=out_shape) for b in RGB_BANDS]
    return interleave(bands, w * h)
