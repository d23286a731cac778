"""Paginated ``/orders/search`` scan for paid orders inside a window.

Upstream filters by date too, but every item is re-checked locally: items
with a missing, unparsable or out-of-window ``date_created`` are dropped.

Stop conditions, checked after each page:
- empty page
- page shorter than requested (last page)
- offset reached the upstream ``paging.total``, when one is reported
- offset reached the scan cap (logged, not an error)

The offset advances by the number of items actually returned. When upstream
totals and real items diverge (concurrent writes), results are best-effort.
"""

from __future__ import annotations

import logging
from datetime import tzinfo

from meli_proxy.config import settings
from meli_proxy.reports.projection import pluck
from meli_proxy.reports.window import FetchWindow, parse_upstream_datetime
from meli_proxy.upstream.client import MeliClient
from meli_proxy.upstream.retry import BackoffPolicy

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
SCAN_CAP = 500


async def fetch_paid_orders(
    client: MeliClient,
    seller_id: str | int,
    window: FetchWindow,
    *,
    tz: tzinfo | None = None,
    page_size: int = DEFAULT_PAGE_SIZE,
    scan_cap: int = SCAN_CAP,
    backoff: BackoffPolicy | None = None,
) -> list[dict]:
    """Paid orders for ``seller_id`` created within ``window``, newest first."""
    tz = tz or settings.zone
    offset = 0
    orders: list[dict] = []

    while True:
        data = await client.search_orders(
            seller_id=seller_id,
            status="paid",
            sort="date_desc",
            limit=page_size,
            offset=offset,
            date_from=window.from_iso,
            date_to=window.to_iso,
            backoff=backoff,
        )
        page = pluck(data, "results")
        if not isinstance(page, list) or not page:
            break

        for order in page:
            created = parse_upstream_datetime(pluck(order, "date_created"), tz)
            if created is None or not window.contains(created):
                continue
            orders.append(order)

        if len(page) < page_size:
            break

        offset += len(page)

        total = pluck(data, "paging", "total")
        if isinstance(total, (int, float)) and not isinstance(total, bool) and offset >= total:
            break

        if offset >= scan_cap:
            logger.warning(
                "Stopping pagination after scanning %d orders (seller=%s)", offset, seller_id
            )
            break

    return orders
