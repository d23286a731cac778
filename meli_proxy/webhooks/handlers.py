"""Webhook HTTP handlers: intake plus buffer listing, consume and clear.

Intake contract:
- Always answer 200 ``{"ok": true}``, whatever happened (the sender only
  needs an ack and retries on anything else)
- Malformed or ignored notifications degrade to a log line
- Only ``orders_v2`` notifications with seller and order ids are buffered

All handlers are ``async def`` with no awaits around buffer calls, so each
buffer operation runs on the event loop without interleaving.
"""

from __future__ import annotations

import json
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from meli_proxy.webhooks.buffer import EventRingBuffer
from meli_proxy.webhooks.dispatcher import parse_notification

logger = logging.getLogger(__name__)

WEBHOOK_PREFIX = "/meli/webhook"


def _ack() -> JSONResponse:
    return JSONResponse({"ok": True}, status_code=200)


async def _handle_notification(request: Request, buffer: EventRingBuffer) -> JSONResponse:
    try:
        body = await request.body()
        try:
            payload = json.loads(body) if body else None
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Webhook body is not valid JSON (%d bytes)", len(body))
            return _ack()

        result = parse_notification(payload)
        if result.event is None:
            if result.reason == "ignored_topic":
                logger.info("Webhook ignored (topic=%s)", payload.get("topic"))
            else:
                logger.warning("Webhook not stored (%s): %s", result.reason, payload)
            return _ack()

        buffer.push(result.event)
        logger.info(
            "Webhook stored: order=%s seller=%s (buffered=%d)",
            result.event.order_id,
            result.event.seller_id,
            len(buffer),
        )
    except Exception:
        logger.exception("Webhook intake failed")
    return _ack()


def register_webhook_routes(app: FastAPI, buffer: EventRingBuffer) -> None:
    """Register intake and buffer routes under /meli/webhook."""

    @app.post(WEBHOOK_PREFIX)
    async def receive_notification(request: Request):
        """Receive a marketplace notification."""
        return await _handle_notification(request, buffer)

    @app.get(f"{WEBHOOK_PREFIX}/events")
    async def list_events():
        """Buffered orders, newest first, one per order id (non-destructive)."""
        return [e.to_dict() for e in buffer.snapshot()]

    @app.get(f"{WEBHOOK_PREFIX}/consume")
    async def consume_events():
        """Buffered orders, newest first, then purge them from the buffer."""
        consumed = buffer.consume()
        if consumed:
            logger.info("Consumed %d orders (%d events left)", len(consumed), len(buffer))
        return [e.to_dict() for e in consumed]

    @app.delete(f"{WEBHOOK_PREFIX}/events")
    async def clear_events():
        """Empty the buffer."""
        removed = buffer.clear()
        logger.info("Webhook buffer cleared (%d events dropped)", removed)
        return {"ok": True, "cleared": True}
