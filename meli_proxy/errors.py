"""Proxy error hierarchy.

Errors raised by route code carry their own HTTP status and a message that is
safe to return to the caller. Upstream httpx errors are never wrapped: they
propagate untouched so status codes stay inspectable, and are mapped to
responses by the handlers in ``meli_proxy.app``.
"""

from __future__ import annotations


class ProxyError(Exception):
    """Base error with an HTTP status and a caller-safe message."""

    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ClientInputError(ProxyError):
    """Bad or missing caller input (auth header, date range)."""

    status_code = 400


class UpstreamIdentityError(ProxyError):
    """The token could not be resolved to a seller id."""

    status_code = 502


class UpstreamStreamError(ProxyError):
    """An upstream binary stream failed before any byte was sent."""

    status_code = 502


class UpstreamPayloadError(ProxyError):
    """A successful upstream response carried a body that is not valid JSON."""

    status_code = 502
