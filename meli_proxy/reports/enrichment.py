"""Join orders with their shipments and keep the ones not yet shipped."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

import httpx

from meli_proxy.reports.projection import ReportRow, pluck
from meli_proxy.upstream.client import MeliClient
from meli_proxy.upstream.retry import BackoffPolicy

logger = logging.getLogger(__name__)


def is_unshipped(status: Any, allowed_statuses: Iterable[str]) -> bool:
    """Case-insensitive membership of ``status`` in ``allowed_statuses``.

    An empty status or an empty allow-list never matches.
    """
    if not status:
        return False
    allowed = {str(s).lower() for s in allowed_statuses}
    return str(status).lower() in allowed


async def enrich_orders(
    client: MeliClient,
    orders: Iterable[dict],
    allowed_statuses: Iterable[str],
    *,
    backoff: BackoffPolicy | None = None,
) -> list[ReportRow]:
    """One report row per order whose shipment status is allowed.

    Orders without a shipment reference are skipped, as are shipments the
    upstream no longer knows (404). Any other shipment failure aborts the
    whole batch.
    """
    allowed = list(allowed_statuses)
    rows: list[ReportRow] = []
    for order in orders:
        shipment_id = pluck(order, "shipping", "id")
        if not shipment_id:
            continue

        try:
            shipment = await client.get_shipment(shipment_id, backoff=backoff)
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 404:
                logger.warning(
                    "Shipment %s not found (order=%s), skipping", shipment_id, pluck(order, "id")
                )
                continue
            raise

        if not isinstance(shipment, dict) or not is_unshipped(shipment.get("status"), allowed):
            continue

        rows.append(ReportRow.from_upstream(order, shipment, shipment_id))
    return rows
