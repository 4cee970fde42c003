"""HTTP server exposing the exporter via FastAPI.

Every ``GET /metrics`` runs exactly one collection cycle and renders it in
the Prometheus text format. The initial token is fetched in the application
lifespan, on the same event loop that serves scrapes; a failure there aborts
startup.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import Any, Optional

import psutil
from fastapi import FastAPI, Request
from fastapi.responses import HTMLResponse, JSONResponse, Response
from pydantic import BaseModel
from starlette.middleware.base import BaseHTTPMiddleware

from .. import __version__
from ..config.models import AppConfig, EnvSettings
from ..observability import setup_logging
from ..utils.correlation import ensure_request_id, set_request_id
from .app import ExporterServer
from .exposition import render

logger = logging.getLogger(__name__)

SCRAPE_TIMEOUT_HEADER = "X-Prometheus-Scrape-Timeout-Seconds"

LANDING_PAGE = """<html>
<head><title>Azure Exporter</title></head>
<body>
<h1>Azure Exporter</h1>
<p><a href="/metrics">Metrics</a></p>
</body>
</html>
"""


class RequestLoggingMiddleware(
    BaseHTTPMiddleware
):  # pylint: disable=too-few-public-methods
    """Bind a correlation id per request and log scrape timing."""

    async def dispatch(self, request: Request, call_next):
        start_time = time.time()
        path = request.url.path
        set_request_id("")
        req_id = ensure_request_id(request.headers.get("x-correlation-id"))

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error(
                "http.request.failed",
                extra={
                    "req_id": req_id,
                    "method": request.method,
                    "path": path,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "duration_ms": int((time.time() - start_time) * 1000),
                },
                exc_info=True,
            )
            raise

        if path == "/metrics":
            logger.info(
                "http.scrape.completed",
                extra={
                    "req_id": req_id,
                    "status": response.status_code,
                    "client": request.client.host if request.client else "unknown",
                    "duration_ms": int((time.time() - start_time) * 1000),
                },
            )
        response.headers["X-Correlation-Id"] = req_id
        return response


class HealthResponse(BaseModel):
    """Simple health/readiness response model."""

    status: str


def scrape_timeout_from(request: Request) -> Optional[float]:
    """Read the scraper's timeout header; ``None`` when absent or invalid."""
    raw = request.headers.get(SCRAPE_TIMEOUT_HEADER)
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.debug("http.scrape_timeout.invalid", extra={"value": raw})
        return None
    return value if value > 0 else None


def _log_memory() -> None:
    try:
        mem_info = psutil.Process().memory_info()
    except (psutil.Error, OSError):  # pragma: no cover
        return
    logger.info(
        "http.startup.memory",
        extra={
            "rss_mb": round(mem_info.rss / 1024 / 1024, 1),
            "vms_mb": round(mem_info.vms / 1024 / 1024, 1),
        },
    )


def _register_health(app: FastAPI, server: ExporterServer) -> None:
    """Register health and readiness endpoints."""

    @app.get("/health", response_model=HealthResponse, summary="Liveness probe")
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/ready", response_model=HealthResponse, summary="Readiness probe")
    async def ready() -> Any:
        if not server.started:
            return JSONResponse(status_code=503, content={"status": "starting"})
        return HealthResponse(status="ready")

    _ = (health, ready)


def _register_metrics(app: FastAPI, server: ExporterServer) -> None:
    """Register the landing page and the scrape endpoint."""

    @app.get("/", response_class=HTMLResponse, include_in_schema=False)
    async def landing() -> str:
        return LANDING_PAGE

    @app.get("/metrics", summary="Run one collection cycle")
    async def metrics(request: Request) -> Response:
        result = await server.collector.collect(timeout=scrape_timeout_from(request))
        body, content_type = render(result)
        return Response(content=body, media_type=content_type)

    _ = (landing, metrics)


def create_app(cfg: AppConfig, *, server: Optional[ExporterServer] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    cfg: AppConfig
        Loaded exporter configuration.
    server: Optional[ExporterServer]
        Pre-built runtime (tests inject one backed by fakes); built from
        ``cfg`` when omitted.
    """
    settings = EnvSettings()
    # Respect prior logging configuration from CLI; otherwise use env setting
    if not logging.getLogger().hasHandlers():
        setup_logging(settings.log_level)
    runtime = server or ExporterServer(cfg)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        logger.info("http.startup", extra={"version": __version__})
        _log_memory()
        await runtime.start()
        try:
            yield
        finally:
            logger.info("http.shutdown")
            await runtime.stop()

    app = FastAPI(title="Azure Metrics Exporter", version=__version__, lifespan=lifespan)
    app.add_middleware(RequestLoggingMiddleware)
    _register_health(app, runtime)
    _register_metrics(app, runtime)
    return app
