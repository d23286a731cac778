"""FastAPI application factory.

Error contract (body is always ``{"error": <message>}``):
- ProxyError subclasses -> their own status and message
- Upstream HTTP errors that escape retries -> upstream 4xx status, or 502 for 5xx
- Upstream transport failures -> 502
- Anything else -> 500 with a generic message; details only go to the log
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from meli_proxy import __version__
from meli_proxy.config import Settings, get_settings
from meli_proxy.errors import ProxyError
from meli_proxy.middleware import install_middleware
from meli_proxy.reports.routes import register_report_routes
from meli_proxy.timefmt import format_ts, utcnow
from meli_proxy.webhooks.buffer import EventRingBuffer
from meli_proxy.webhooks.handlers import register_webhook_routes

logger = logging.getLogger(__name__)


def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code, headers=headers)


async def _proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return _error(exc.status_code, exc.message, headers)


async def _upstream_status_handler(request: Request, exc: httpx.HTTPStatusError) -> JSONResponse:
    status = exc.response.status_code
    logger.warning(
        "Upstream %s %s answered %d", exc.request.method, exc.request.url.path, status
    )
    if 400 <= status < 500:
        return _error(status, "Upstream request failed")
    return _error(502, "Bad Gateway")


async def _upstream_transport_handler(request: Request, exc: httpx.TransportError) -> JSONResponse:
    logger.warning("Upstream unreachable: %s", type(exc).__name__)
    return _error(502, "Bad Gateway")


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error on %s %s", request.method, request.url.path, exc_info=exc
    )
    return _error(500, "Internal Server Error")


def create_app(settings: Settings | None = None, buffer: EventRingBuffer | None = None) -> FastAPI:
    """Build the proxy app with a fresh (or given) event buffer."""
    settings = settings or get_settings()
    buffer = buffer or EventRingBuffer(settings.webhook_buffer_size)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "meli-proxy %s starting (buffer=%d, tz=%s, window=%sh)",
            __version__,
            buffer.capacity,
            settings.tz,
            settings.date_window_hours,
        )
        yield
        logger.info("meli-proxy stopping (%d buffered events dropped)", len(buffer))

    app = FastAPI(title="meli-proxy", version=__version__, lifespan=lifespan)
    app.state.event_buffer = buffer
    app.dependency_overrides[get_settings] = lambda: settings

    @app.get("/health")
    async def health():
        """Liveness probe."""
        return {"ok": True, "time": format_ts(utcnow())}

    register_webhook_routes(app, buffer)
    register_report_routes(app)

    app.add_exception_handler(ProxyError, _proxy_error_handler)
    app.add_exception_handler(httpx.HTTPStatusError, _upstream_status_handler)
    app.add_exception_handler(httpx.TransportError, _upstream_transport_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_error_handler)

    install_middleware(app, settings.cors_allowed_origins)
    return app
