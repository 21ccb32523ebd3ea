from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Optional

from fastapi import APIRouter, FastAPI, Request, Response
from fastapi.responses import JSONResponse, PlainTextResponse

from tile38_exporter import __version__
from tile38_exporter.core.catalog import METRICS
from tile38_exporter.core.infrastructure.tile38_client import Tile38Client
from tile38_exporter.core.render import render_catalog, stats_from_status
from tile38_exporter.core.settings import Settings
from tile38_exporter.utils.exceptions import ExporterError
from tile38_exporter.utils.logging import LogTimer, get_logger, set_correlation_id
from tile38_exporter.utils.metrics import atimer, export_text, inc

logger = get_logger(__name__)

CONTENT_TYPE_LATEST = "text/plain; version=0.0.4; charset=utf-8"

router = APIRouter()


# ---------------- Tile38 scrape ----------------

@router.get("/metrics", response_class=PlainTextResponse)
async def metrics_endpoint(request: Request) -> Response:
    """
    One scrape = one SERVER ext round trip.
    A failed fetch answers 500 with the error text and no metric lines.
    """
    client: Tile38Client = request.app.state.client
    settings: Settings = request.app.state.settings

    inc("tile38_exporter_scrapes_total")
    try:
        async with atimer("tile38_exporter_scrape_duration_seconds"):
            doc = await client.fetch_status()
    except ExporterError as exc:
        inc("tile38_exporter_scrape_errors_total", kind=type(exc).__name__)
        logger.warning(
            "scrape_failed",
            extra={"tile38_addr": settings.TILE38_ADDR, "error": str(exc), "error_type": type(exc).__name__},
        )
        return PlainTextResponse(f"{exc}\n", status_code=500)

    with LogTimer(logger, "render_catalog", level=logging.DEBUG, entries=len(METRICS)):
        body = render_catalog(stats_from_status(doc), METRICS, settings.NAMESPACE)
    return PlainTextResponse(body, media_type=CONTENT_TYPE_LATEST)


# ---------------- health ----------------

@router.get("/health", response_class=JSONResponse)
async def health() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready", response_class=JSONResponse)
async def ready(request: Request) -> Response:
    client: Tile38Client = request.app.state.client
    try:
        await client.ping()
    except ExporterError as exc:
        return JSONResponse({"status": "unavailable", "error": str(exc)}, status_code=503)
    return JSONResponse({"status": "ready"})


# ---------------- exporter self-metrics ----------------

@router.get("/exporter/metrics", response_class=PlainTextResponse)
async def exporter_metrics() -> Response:
    return PlainTextResponse(export_text(), media_type=CONTENT_TYPE_LATEST)


# ---------------- middleware ----------------

async def _request_middleware(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    # one correlation id per request, echoed back to the caller
    cid = request.headers.get("x-request-id") or uuid.uuid4().hex
    set_correlation_id(cid)
    status = 500
    try:
        response = await call_next(request)
        status = response.status_code
        response.headers["X-Request-ID"] = cid
        return response
    finally:
        # route template, not the raw URL: keeps label cardinality bounded
        route = request.scope.get("route")
        path = getattr(route, "path", "unmatched")
        inc("tile38_exporter_http_requests_total", path=path, method=request.method, status=status)
        set_correlation_id(None)


# ---------------- app factory ----------------

def create_app(settings: Optional[Settings] = None, client: Optional[Tile38Client] = None) -> FastAPI:
    """
    Build the exporter application.

    The Tile38 client (and its pool) lives for the lifespan of the app and is
    closed on shutdown. ``client`` may be injected (tests).
    """
    settings = settings or Settings.load()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        app.state.client = client or Tile38Client.from_settings(settings)
        logger.info(
            "exporter_started",
            extra={"tile38_addr": settings.TILE38_ADDR, "http_addr": settings.HTTP_ADDR,
                   "namespace": settings.NAMESPACE, "metrics": len(METRICS)},
        )
        try:
            yield
        finally:
            await app.state.client.close()
            logger.info("exporter_stopped")

    app = FastAPI(title="tile38-exporter", version=__version__, lifespan=lifespan)
    app.middleware("http")(_request_middleware)
    app.include_router(router)
    return app


__all__ = ["CONTENT_TYPE_LATEST", "create_app", "router"]
