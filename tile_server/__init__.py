"""
Tile Server: slippy-map tiles cut from a single georeferenced raster

- Resolves z/x/y tiles to raster pixel windows (pyproj reprojection, high-zoom fallback)
- Composites three bands into RGB, enhances and encodes PNG (cv2 + Pillow)
- Keeps a bounded FIFO cache of encoded tiles
- Serves /api/tiles/{z}/{x}/{y}, /api/tif-info, /api/tif-info-detailed, /api/preview, /health, /stats
"""
