from __future__ import annotations

import time
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from common.logging_setup import get_logger, setup_logging
from tile_server.config import ServerConfig, load_config
from tile_server.errors import RasterInitError, TileServerError
from tile_server.handler import TileRequestHandler
from tile_server.raster import RasterService
from tile_server.tile_cache import TileCache


P = load_config()
setup_logging(default=P.log_level)
log = get_logger(__name__)


def _open_raster(config: ServerConfig):
    """Open the configured raster; a failure is logged and leaves the server in empty-tile mode."""
    try:
        return RasterService.open(config.raster_path, fallback_crs=config.fallback_crs), None
    except RasterInitError as e:
        log.error("Raster initialization failed: %s", e)
        return None, str(e)


def create_app(
    config: ServerConfig,
    raster: Optional[RasterService] = None,
    cache: Optional[TileCache] = None,
) -> FastAPI:
    """
    Build the API. Pass `raster` to inject an already-open service (tests, embedding);
    otherwise `config.raster_path` is opened here.
    """
    init_error: Optional[str] = None
    if raster is None:
        raster, init_error = _open_raster(config)
    cache = cache if cache is not None else TileCache(config.cache_capacity)
    handler = TileRequestHandler(raster, cache, config)

    app = FastAPI(title="GeoTIFF Tile Server", version="1.0.0")
    app.state.handler = handler

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        t0 = time.perf_counter()
        response = await call_next(request)
        log.info(
            "%s %s", request.method, request.url.path,
            extra={"status": response.status_code, "ms": round((time.perf_counter() - t0) * 1e3, 1)},
        )
        return response

    def _unavailable() -> JSONResponse:
        return JSONResponse(
            {"error": "raster_unavailable", "message": init_error or "no raster loaded"}, status_code=503
        )

    @app.get("/health")
    def health():
        return {
            "status": "ok" if raster is not None else "degraded",
            "raster": {"loaded": raster is not None, "path": config.raster_path, "init_error": init_error},
            "tiles": cache.stats(),
        }

    @app.get("/stats")
    def stats():
        return {"tiles": cache.stats()}

    @app.get("/api/tif-info")
    def tif_info():
        if raster is None:
            return _unavailable()
        return raster.info.to_dict()

    @app.get("/api/tif-info-detailed")
    def tif_info_detailed():
        if raster is None:
            return _unavailable()
        return raster.describe()

    @app.get("/api/tiles/{z}/{x}/{y}")
    def tile(z: str, x: str, y: str):
        """PNG tile; always 200 (even for malformed indices), transparent placeholder when there is nothing to draw."""
        t = handler.get_tile(z, x, y)
        return Response(content=t.content, media_type="image/png", headers=t.headers)

    @app.get("/api/preview")
    def preview():
        if raster is None:
            return _unavailable()
        try:
            png = handler.render_preview()
        except TileServerError as e:
            log.error("Preview failed: %s", e)
            return JSONResponse({"error": "preview_failed", "message": str(e)}, status_code=500)
        return Response(content=png, media_type="image/png")

    return app


app = create_app(P)


def main() -> None:
    uvicorn.run(app, host=P.host, port=P.port)


# -------- local dev entrypoint --------
if __name__ == "__main__":
    main()
