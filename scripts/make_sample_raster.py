#!/usr/bin/env python3
"""
Write a synthetic 3-band (RGB, uint8) GeoTIFF for running the tile server locally.

The image is a smooth color gradient with a grid and noise so that tiles, the
preview and the high-zoom fallback are easy to eyeball. Default placement is a
10 km square in UTM 22S (EPSG:32722) around Iturama, MG.

Examples:
  python scripts/make_sample_raster.py --out data/raster.tif
  python scripts/make_sample_raster.py --out data/raster.tif --crs EPSG:3857 \
      --origin -5588000 -2235000 --pixel-size 10 --size 2048 2048
"""
from __future__ import annotations

import argparse
from pathlib import Path
from typing import Optional, Tuple

import numpy as np
import rasterio
from rasterio.transform import from_origin

from common.logging_setup import get_logger


log = get_logger("make_sample_raster")


def synthesize_rgb(width: int, height: int, seed: int = 1234) -> np.ndarray:
    """(3, H, W) uint8 gradient + grid + noise."""
    rng = np.random.default_rng(seed)
    yy, xx = np.mgrid[0:height, 0:width].astype(np.float32)
    r = 255.0 * xx / max(width - 1, 1)
    g = 255.0 * yy / max(height - 1, 1)
    b = 128.0 + 64.0 * np.sin(xx / 37.0) * np.cos(yy / 53.0)
    rgb = np.stack([r, g, b]) + rng.normal(0, 6, size=(3, height, width))
    step = max(min(width, height) // 16, 1)
    rgb[:, ::step, :] = 40.0
    rgb[:, :, ::step] = 40.0
    return np.clip(rgb, 0, 255).astype(np.uint8)


def write_sample_raster(
    path: Path,
    size: Tuple[int, int] = (1000, 1000),
    origin: Tuple[float, float] = (580000.0, 7826000.0),
    pixel_size: float = 10.0,
    crs: Optional[str] = "EPSG:32722",
    seed: int = 1234,
    data: Optional[np.ndarray] = None,
) -> Path:
    """
    Write a north-up GeoTIFF whose top-left corner is `origin` (native CRS units).

    `data` may be a (bands, H, W) uint8 array to write instead of the synthetic image.
    """
    w, h = size
    if data is None:
        data = synthesize_rgb(w, h, seed=seed)
    if data.shape[1:] != (h, w):
        raise ValueError(f"data shape {data.shape} does not match size {w}x{h}")
    transform = from_origin(origin[0], origin[1], pixel_size, pixel_size)
    profile = {
        "driver": "GTiff",
        "height": h,
        "width": w,
        "count": int(data.shape[0]),
        "dtype": rasterio.uint8,
        "crs": crs,
        "transform": transform,
    }
    path.parent.mkdir(parents=True, exist_ok=True)
    with rasterio.open(path, "w", **profile) as dst:
        dst.write(data)
        dst.update_tags(SOURCE="make_sample_raster", SEED=str(seed))
    return path


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--out", default="data/raster.tif", help="Output GeoTIFF path")
    ap.add_argument("--size", nargs=2, type=int, default=[1000, 1000], metavar=("W", "H"), help="Raster size in pixels")
    ap.add_argument("--origin", nargs=2, type=float, default=[580000.0, 7826000.0], metavar=("X", "Y"),
                    help="Top-left corner in native CRS units")
    ap.add_argument("--pixel-size", type=float, default=10.0, help="Ground size of one pixel (CRS units)")
    ap.add_argument("--crs", default="EPSG:32722", help="Native CRS (EPSG code, WKT or PROJ string)")
    ap.add_argument("--seed", type=int, default=1234, help="Seed for the noise layer")
    args = ap.parse_args()

    out = write_sample_raster(
        Path(args.out),
        size=(args.size[0], args.size[1]),
        origin=(args.origin[0], args.origin[1]),
        pixel_size=args.pixel_size,
        crs=args.crs,
        seed=args.seed,
    )
    log.info("Wrote sample raster", extra={"out": str(out), "size": args.size, "crs": args.crs})
    print("Start the server with:")
    print("  python -m tile_server.server")


if __name__ == "__main__":
    main()
