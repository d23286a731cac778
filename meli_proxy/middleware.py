"""HTTP middleware: request logging and CORS.

Middleware ordering (outermost first):
1. CORS -- answers OPTIONS preflight before anything else
2. Request logging -- one line per request, credentials redacted
"""

from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware

from meli_proxy.logging_setup import redact_headers

logger = logging.getLogger("meli_proxy.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log method, path, status and latency for every request."""

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            elapsed_ms = (time.perf_counter() - start) * 1000
            logger.error(
                "%s %s -> unhandled error in %.1fms",
                request.method,
                request.url.path,
                elapsed_ms,
            )
            raise
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s -> %d in %.1fms",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )
        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Request headers: %s", redact_headers(request.headers))
        return response


def install_middleware(app: FastAPI, cors_origins: list[str]) -> None:
    """Install middleware. Last added runs first."""
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
