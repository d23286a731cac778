"""Bearer-token pass-through.

The proxy does not authenticate callers itself: it forwards the caller's
Mercado Libre access token upstream. Only the header shape is checked here.
"""

from __future__ import annotations

from fastapi import Request

from meli_proxy.errors import ClientInputError


def extract_bearer_token(auth_header: str | None) -> str | None:
    """Token from an ``Authorization: Bearer <token>`` value, else None."""
    if not auth_header:
        return None
    scheme, _, token = auth_header.strip().partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def require_access_token(request: Request) -> str:
    """FastAPI dependency: the caller's bearer token, or a 401."""
    auth_header = request.headers.get("authorization")
    if not auth_header:
        raise ClientInputError("Missing Authorization header", status_code=401)
    token = extract_bearer_token(auth_header)
    if not token:
        raise ClientInputError("Authorization header must be a Bearer token", status_code=401)
    return token
