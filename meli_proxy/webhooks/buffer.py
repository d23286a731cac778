"""In-memory ring buffer of order notifications.

Fixed capacity, arrival order, oldest entry evicted on overflow. Readers get a
newest-first view deduplicated by order id; ``consume`` returns that view and
purges every buffered event for the returned ids in the same critical section.

Nothing here awaits, so on the event loop each operation runs to completion
without interleaving. The lock covers handlers run from a worker thread.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime

from meli_proxy.timefmt import format_ts, utcnow

ORDERS_TOPIC = "orders_v2"


@dataclass(frozen=True)
class WebhookEvent:
    """An order notification as stored in the buffer."""

    order_id: str | None
    seller_id: str | None
    topic: str = ORDERS_TOPIC
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, str | None]:
        return {
            "order_id": self.order_id,
            "seller_id": self.seller_id,
            "ts": format_ts(self.timestamp),
        }


def dedupe_by_order_id(events: Iterable[WebhookEvent]) -> list[WebhookEvent]:
    """Keep the first event seen per order id, preserving input order.

    Pass events newest-first to keep the most recent occurrence. Events
    without an order id are never collapsed.
    """
    seen: set[str] = set()
    deduped: list[WebhookEvent] = []
    for event in events:
        key = event.order_id
        if key:
            if key in seen:
                continue
            seen.add(key)
        deduped.append(event)
    return deduped


class EventRingBuffer:
    """Bounded FIFO of ``WebhookEvent`` with dedup-consume."""

    def __init__(self, capacity: int = 500) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._events: deque[WebhookEvent] = deque()
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._events)

    def push(self, event: WebhookEvent) -> None:
        """Append, evicting the oldest event first when full."""
        with self._lock:
            if len(self._events) >= self._capacity:
                self._events.popleft()
            self._events.append(event)

    def events(self) -> list[WebhookEvent]:
        """Raw contents, oldest first."""
        with self._lock:
            return list(self._events)

    def _latest_per_order(self) -> list[WebhookEvent]:
        return dedupe_by_order_id(reversed(self._events))

    def snapshot(self) -> list[WebhookEvent]:
        """Newest-first, one event per order id. Non-destructive."""
        with self._lock:
            return self._latest_per_order()

    def consume(self) -> list[WebhookEvent]:
        """Return the snapshot and drop every event for the returned order ids."""
        with self._lock:
            latest = self._latest_per_order()
            consumed_ids = frozenset(e.order_id for e in latest if e.order_id)
            self._events = deque(
                e for e in self._events if e.order_id not in consumed_ids
            )
            return latest

    def clear(self) -> int:
        """Drop everything. Returns how many events were removed."""
        with self._lock:
            removed = len(self._events)
            self._events.clear()
            return removed
