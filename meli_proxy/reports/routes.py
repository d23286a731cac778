"""Report and label routes.

Each request builds its own ``MeliClient`` from the caller's bearer token and
closes it when done; nothing is shared between requests.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

import httpx
from fastapi import Depends, FastAPI, Query
from fastapi.responses import StreamingResponse

from meli_proxy.config import Settings, get_settings
from meli_proxy.errors import UpstreamIdentityError, UpstreamStreamError
from meli_proxy.reports.enrichment import enrich_orders
from meli_proxy.reports.pagination import fetch_paid_orders
from meli_proxy.reports.projection import pluck
from meli_proxy.reports.window import resolve_window
from meli_proxy.security.auth import require_access_token
from meli_proxy.upstream.client import MeliClient
from meli_proxy.upstream.retry import DEFAULT_POLICY

logger = logging.getLogger(__name__)

# Report and label calls start backing off a bit slower than the default.
REPORT_BACKOFF = DEFAULT_POLICY.with_overrides(base_delay=0.3)


async def resolve_seller_id(client: MeliClient) -> str | int:
    """Seller id owning the client's token. Any failure is a 502."""
    try:
        me = await client.get_users_me(backoff=REPORT_BACKOFF)
    except Exception as e:
        logger.warning("Seller identity lookup failed: %s", type(e).__name__)
        raise UpstreamIdentityError("Could not resolve seller id from token") from e
    seller_id = pluck(me, "id")
    if not seller_id:
        raise UpstreamIdentityError("Seller id not found for token")
    return seller_id


async def _stream_label(
    client: MeliClient, response: httpx.Response, shipment_id: str
) -> StreamingResponse:
    chunks = response.aiter_bytes()
    try:
        first = await anext(chunks, b"")
    except httpx.HTTPError as e:
        await response.aclose()
        await client.aclose()
        logger.warning("Label stream for shipment %s failed before first byte", shipment_id)
        raise UpstreamStreamError("Label stream failed") from e

    async def body() -> AsyncIterator[bytes]:
        try:
            if first:
                yield first
            async for chunk in chunks:
                yield chunk
        except httpx.HTTPError:
            logger.exception("Label stream for shipment %s broke mid-transfer", shipment_id)
            raise
        finally:
            await response.aclose()
            await client.aclose()

    return StreamingResponse(
        body(),
        media_type="application/pdf",
        headers={
            "Content-Disposition": f'inline; filename="shipment_{shipment_id}.pdf"',
            "Cache-Control": "no-store",
        },
    )


def register_report_routes(app: FastAPI) -> None:
    """Register /meli/orders/unshipped and /meli/labels/{shipment_id}."""

    @app.get("/meli/orders/unshipped")
    async def unshipped_orders(
        date_from: str | None = Query(None, alias="from"),
        date_to: str | None = Query(None, alias="to"),
        access_token: str = Depends(require_access_token),
        settings: Settings = Depends(get_settings),
    ):
        """Paid orders in the window whose shipment is still waiting to ship."""
        window = resolve_window(
            date_from,
            date_to,
            tz=settings.zone,
            default_hours=settings.date_window_hours,
        )
        async with MeliClient(access_token, base_url=settings.meli_api_base_url) as client:
            seller_id = await resolve_seller_id(client)
            orders = await fetch_paid_orders(
                client, seller_id, window, tz=settings.zone, backoff=REPORT_BACKOFF
            )
            rows = await enrich_orders(
                client, orders, settings.unshipped_statuses, backoff=REPORT_BACKOFF
            )
        logger.info(
            "Unshipped report: seller=%s window=%s..%s orders=%d rows=%d",
            seller_id,
            window.from_iso,
            window.to_iso,
            len(orders),
            len(rows),
        )
        return [row.model_dump() for row in rows]

    @app.get("/meli/labels/{shipment_id}")
    async def shipment_label(
        shipment_id: str,
        access_token: str = Depends(require_access_token),
        settings: Settings = Depends(get_settings),
    ):
        """Stream the shipment label PDF from upstream."""
        client = MeliClient(access_token, base_url=settings.meli_api_base_url)
        try:
            response = await client.open_label_pdf(shipment_id, backoff=REPORT_BACKOFF)
        except BaseException:
            await client.aclose()
            raise
        return await _stream_label(client, response, shipment_id)
