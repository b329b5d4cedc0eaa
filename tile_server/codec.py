from __future__ import annotations

import io
from functools import lru_cache
from typing import Tuple

import cv2
import numpy as np
from PIL import Image, ImageEnhance

from tile_server.config import EnhanceConfig
from tile_server.errors import CodecError


@lru_cache(maxsize=8)
def _gamma_lut(gamma: float) -> np.ndarray:
    x = np.arange(256, dtype=np.float32) / 255.0
    lut = np.clip(np.power(x, 1.0 / gamma) * 255.0 + 0.5, 0, 255).astype(np.uint8)
    return lut


def _normalize(img: np.ndarray) -> np.ndarray:
    """Stretch the 1st..99th percentile to 0..255; flat images are left alone."""
    p1, p99 = np.percentile(img, 1), np.percentile(img, 99)
    if p99 - p1 < 1.0:
        return img
    out = np.clip((img.astype(np.float32) - p1) / (p99 - p1), 0, 1) * 255.0
    return out.astype(np.uint8)


def enhance_rgb(img: np.ndarray, size: Tuple[int, int], cfg: EnhanceConfig) -> Image.Image:
    """
    Resize an (H, W, 3) uint8 image to `size` (w, h) and apply the color pipeline:
    gamma -> normalize -> brightness -> saturation.
    """
    w, h = size
    if (img.shape[1], img.shape[0]) != (w, h):
        img = cv2.resize(img, (w, h), interpolation=cv2.INTER_LANCZOS4)
    if cfg.gamma != 1.0:
        img = cv2.LUT(img, _gamma_lut(cfg.gamma))
    if cfg.normalize:
        img = _normalize(img)
    pil = Image.fromarray(np.ascontiguousarray(img))
    if cfg.brightness != 1.0:
        pil = ImageEnhance.Brightness(pil).enhance(cfg.brightness)
    if cfg.saturation != 1.0:
        pil = ImageEnhance.Color(pil).enhance(cfg.saturation)
    return pil


def to_png(img: Image.Image, compress_level: int = 9) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG", compress_level=compress_level)
    return buf.getvalue()


def encode_rgb(
    rgb: np.ndarray,
    width: int,
    height: int,
    out_size: Tuple[int, int],
    cfg: EnhanceConfig,
) -> bytes:
    """
    Interleaved RGB buffer (length width*height*3) -> enhanced PNG of `out_size` (w, h).

    Raises:
        CodecError: buffer does not match the given size, or resize/encode failed.
    """
    if rgb.size != width * height * 3:
        raise CodecError(f"buffer has {rgb.size} bytes, expected {width * height * 3}")
    try:
        img = np.asarray(rgb, dtype=np.uint8).reshape(height, width, 3)
        return to_png(enhance_rgb(img, out_size, cfg), cfg.compress_level)
    except (cv2.error, OSError, ValueError) as e:
        raise CodecError(f"cannot encode {width}x{height} -> {out_size}: {e}") from e


@lru_cache(maxsize=8)
def empty_tile(size: int = 256) -> bytes:
    """Fully transparent RGBA PNG placeholder."""
    img = Image.new("RGBA", (size, size), (255, 255, 255, 0))
    return to_png(img)
