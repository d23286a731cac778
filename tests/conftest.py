"""Shared fixtures for the meli-proxy test suite."""

from __future__ import annotations

from collections.abc import Callable
from functools import partial
from unittest.mock import AsyncMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from meli_proxy.app import create_app
from meli_proxy.config import Settings
from meli_proxy.upstream.client import MeliClient
from meli_proxy.webhooks.buffer import EventRingBuffer

UPSTREAM_BASE = "https://upstream.test"


def _status_error(code: int, url: str = f"{UPSTREAM_BASE}/x") -> httpx.HTTPStatusError:
    request = httpx.Request("GET", url)
    response = httpx.Response(code, request=request)
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


@pytest.fixture()
def status_error() -> Callable[..., httpx.HTTPStatusError]:
    """Factory for HTTPStatusError as raised by ``Response.raise_for_status``."""
    return _status_error


@pytest.fixture()
def no_sleep():
    """Patch the backoff sleep so retries are instant; yields the mock."""
    with patch("meli_proxy.upstream.retry._sleep", new_callable=AsyncMock) as mock_sleep:
        yield mock_sleep


@pytest.fixture()
def make_client() -> Callable[[Callable[[httpx.Request], httpx.Response]], MeliClient]:
    """Build a MeliClient whose upstream is a MockTransport handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]) -> MeliClient:
        return MeliClient(
            "test-token", base_url=UPSTREAM_BASE, transport=httpx.MockTransport(handler)
        )

    return _make


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        webhook_buffer_size=5,
        date_window_hours=72,
        unshipped_statuses=["ready_to_ship", "to_be_picked_up"],
        tz="America/Santiago",
        meli_api_base_url=UPSTREAM_BASE,
    )


@pytest.fixture()
def buffer(settings: Settings) -> EventRingBuffer:
    return EventRingBuffer(settings.webhook_buffer_size)


@pytest.fixture()
def app(settings: Settings, buffer: EventRingBuffer):
    return create_app(settings, buffer)


@pytest.fixture()
def client(app):
    with TestClient(app, raise_server_exceptions=False) as c:
        yield c


@pytest.fixture()
def upstream():
    """Route MeliClient instances built by the report routes to a fake upstream.

    Set ``upstream.handler`` to a function ``(httpx.Request) -> httpx.Response``.
    """

    class _Upstream:
        handler: Callable[[httpx.Request], httpx.Response] | None = None
        requests: list[httpx.Request] = []

        def __call__(self, request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            assert self.handler is not None, "upstream.handler not set"
            return self.handler(request)

    fake = _Upstream()
    fake.requests = []
    factory = partial(MeliClient, transport=httpx.MockTransport(fake))
    with patch("meli_proxy.reports.routes.MeliClient", side_effect=factory):
        yield fake
