import logging
import time
from contextlib import asynccontextmanager
from pathlib import Path

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import FileResponse, JSONResponse

from api.config import Settings, load_settings
from api.query.endpoints import router as query_router
from api.query.models import QueryResponse
from warehouse.clickhouse import ClickHouseClient

LOG = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).resolve().parent / "static"
STATIC_CACHE_CONTROL = "public, max-age=1209600, s-maxage=86400"


def build_client(settings: Settings) -> ClickHouseClient:
    return ClickHouseClient(
        settings.url,
        settings.user,
        settings.password,
        timeout=settings.timeout,
        max_execution_time=settings.max_execution_time,
    )


def install_static_routes(app: FastAPI) -> None:
    @app.get("/", include_in_schema=False)
    def index():
        return FileResponse(STATIC_DIR / "index.html", media_type="text/html")

    @app.get("/style.css", include_in_schema=False)
    def style():
        return FileResponse(
            STATIC_DIR / "style.css",
            media_type="text/css",
            headers={"Cache-Control": STATIC_CACHE_CONTROL},
        )

    @app.get("/app.js", include_in_schema=False)
    def script():
        return FileResponse(
            STATIC_DIR / "app.js",
            media_type="application/javascript",
            headers={"Cache-Control": STATIC_CACHE_CONTROL},
        )


def install_logging_middleware(app: FastAPI) -> None:
    @app.middleware("http")
    async def _log_request(request: Request, call_next):
        start = time.perf_counter()
        response = await call_next(request)
        duration_ms = (time.perf_counter() - start) * 1000
        LOG.info(
            "Handled %s %s status=%s duration_ms=%.2f",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
        )
        return response


def install_exception_handlers(app: FastAPI) -> None:
    # Query failures never get here; this only catches bugs, and still answers
    # with the envelope the browser knows how to show.
    @app.exception_handler(Exception)
    def _handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        LOG.exception("Unhandled error on %s %s", request.method, request.url.path)
        payload = QueryResponse(error="internal server error")
        return JSONResponse(status_code=500, content=payload.model_dump())


def create_app(settings: Settings, client=None) -> FastAPI:
    """Build the app around one shared ClickHouse client, creating it from ``settings`` unless given."""
    if client is None:
        client = build_client(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            yield
        finally:
            app.state.client.close()

    app = FastAPI(
        title="clickterm",
        description="Web SQL console for ClickHouse",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.client = client

    app.add_middleware(GZipMiddleware)
    install_logging_middleware(app)
    install_exception_handlers(app)

    app.include_router(query_router, prefix="/api")
    install_static_routes(app)

    @app.get("/healthz")
    def healthz():
        return {"status": "ok"}

    return app


def main(argv=None) -> None:
    settings = load_settings(argv)
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = create_app(settings)
    LOG.info("Server running at http://%s", settings.address)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
