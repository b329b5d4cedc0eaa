"""
Tile Server Test Suite

Structure:
- unit/: pure math, window resolution, compositing, codec, cache, handler, config
- integration/: FastAPI endpoints and real GeoTIFF files through rasterio
"""
