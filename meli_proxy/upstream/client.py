"""Mercado Libre REST API client.

One ``MeliClient`` per caller token and request. Each call goes through
``with_backoff`` and raises ``httpx.HTTPStatusError`` for non-2xx responses,
so retry classification and error mapping both see the upstream status.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from meli_proxy.config import settings
from meli_proxy.errors import UpstreamPayloadError
from meli_proxy.upstream.retry import BackoffPolicy, with_backoff

logger = logging.getLogger(__name__)

USER_AGENT = "meli-proxy/1.0"
DEFAULT_TIMEOUT = 15.0
LABEL_TIMEOUT = 30.0


class MeliClient:
    """Async client bound to one seller access token."""

    def __init__(
        self,
        access_token: str,
        *,
        base_url: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not access_token:
            raise ValueError("Access token is required")
        self._http = httpx.AsyncClient(
            base_url=base_url or settings.meli_api_base_url,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Accept": "application/json",
                "User-Agent": USER_AGENT,
            },
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> MeliClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _get_json(
        self,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        backoff: BackoffPolicy | None = None,
    ) -> Any:
        async def attempt(_: int) -> Any:
            response = await self._http.get(path, params=params)
            response.raise_for_status()
            try:
                return response.json()
            except ValueError as e:
                logger.warning("Upstream %s returned a non-JSON body", path)
                raise UpstreamPayloadError("Malformed upstream response") from e

        return await with_backoff(attempt, backoff)

    async def get_users_me(self, *, backoff: BackoffPolicy | None = None) -> dict:
        """Identity of the token's owner."""
        return await self._get_json("/users/me", backoff=backoff)

    async def get_order(self, order_id: str, *, backoff: BackoffPolicy | None = None) -> dict:
        if not order_id:
            raise ValueError("order_id is required")
        return await self._get_json(f"/orders/{order_id}", backoff=backoff)

    async def get_shipment(
        self, shipment_id: str | int, *, backoff: BackoffPolicy | None = None
    ) -> dict:
        if not shipment_id:
            raise ValueError("shipment_id is required")
        return await self._get_json(f"/shipments/{shipment_id}", backoff=backoff)

    async def search_orders(
        self,
        *,
        seller_id: str | int | None = None,
        status: str | None = None,
        sort: str | None = None,
        limit: int | None = None,
        offset: int | None = None,
        date_from: str | None = None,
        date_to: str | None = None,
        backoff: BackoffPolicy | None = None,
    ) -> dict:
        """One page of ``/orders/search``. Unset filters are omitted."""
        params: dict[str, Any] = {}
        if seller_id:
            params["seller"] = seller_id
        if status:
            params["order.status"] = status
        if sort:
            params["sort"] = sort
        if limit is not None:
            params["limit"] = limit
        if offset is not None:
            params["offset"] = offset
        if date_from:
            params["order.date_created.from"] = date_from
        if date_to:
            params["order.date_created.to"] = date_to
        return await self._get_json("/orders/search", params=params, backoff=backoff)

    async def open_label_pdf(
        self, shipment_id: str, *, backoff: BackoffPolicy | None = None
    ) -> httpx.Response:
        """Open the shipment label as a streaming response.

        The caller owns the returned response and must ``aclose()`` it.
        """
        if not shipment_id:
            raise ValueError("shipment_id is required")
        request = self._http.build_request(
            "GET",
            f"/marketplace/shipments/{shipment_id}/labels",
            headers={"Accept": "application/pdf"},
            timeout=LABEL_TIMEOUT,
        )

        async def attempt(_: int) -> httpx.Response:
            response = await self._http.send(request, stream=True)
            if response.is_error:
                await response.aread()
                await response.aclose()
                response.raise_for_status()
            return response

        return await with_backoff(attempt, backoff)
