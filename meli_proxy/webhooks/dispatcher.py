"""Webhook notification parsing.

Mercado Libre posts ``{topic, user_id, resource, id, ...}``. Only ``orders_v2``
notifications that name both a seller and an order become buffer entries;
everything else is reported back as an ignore reason for the audit log.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any

from meli_proxy.webhooks.buffer import ORDERS_TOPIC, WebhookEvent

# Trailing numeric path segment, query string ignored: "/orders/123?x=1" -> "123"
_RESOURCE_ID_PATTERN = re.compile(r"/(\d+)(?:\?.*)?$")


@dataclass(frozen=True)
class ParseResult:
    """Outcome of parsing one notification body."""

    event: WebhookEvent | None
    reason: str = "stored"


def parse_resource_id(resource: Any) -> str | None:
    """Last numeric segment of a resource path, or None."""
    if not resource or not isinstance(resource, str):
        return None
    match = _RESOURCE_ID_PATTERN.search(resource)
    return match.group(1) if match else None


def _as_id(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list, bool)):
        return None
    text = str(value).strip()
    return text or None


def parse_notification(payload: Any) -> ParseResult:
    """Turn a raw notification body into a storable event, if it is one."""
    if not isinstance(payload, dict):
        return ParseResult(None, "invalid_body")

    topic = payload.get("topic")
    if topic != ORDERS_TOPIC:
        return ParseResult(None, "ignored_topic")

    order_id = _as_id(payload.get("id")) or parse_resource_id(payload.get("resource"))
    seller_id = _as_id(payload.get("user_id"))
    if not order_id or not seller_id:
        return ParseResult(None, "missing_ids")

    return ParseResult(WebhookEvent(order_id=order_id, seller_id=seller_id))
