"""Tests for webhook intake and the buffer HTTP endpoints.

Tests:
- Notification parsing (topic filter, id fallback from resource)
- Intake always acks 200, even for junk
- Listing / consume / clear over HTTP
- End-to-end: duplicate notification -> one entry with the later timestamp
"""

from __future__ import annotations

from unittest.mock import patch

import pytest
from freezegun import freeze_time

from meli_proxy.webhooks.dispatcher import parse_notification, parse_resource_id


# ── Parsing ───────────────────────────────────────────────────────────────


class TestParseResourceId:
    @pytest.mark.parametrize(
        "resource, expected",
        [
            ("/orders/1234567890", "1234567890"),
            ("/orders/1234567890?foo=bar", "1234567890"),
            ("/orders/v2/555", "555"),
            ("/orders/abc", None),
            ("", None),
            (None, None),
            (12345, None),
        ],
    )
    def test_trailing_numeric_segment(self, resource, expected):
        assert parse_resource_id(resource) == expected


class TestParseNotification:
    def test_orders_v2_with_id(self):
        result = parse_notification({"topic": "orders_v2", "user_id": 42, "id": 123})
        assert result.event is not None
        assert result.event.order_id == "123"
        assert result.event.seller_id == "42"
        assert result.event.topic == "orders_v2"

    def test_falls_back_to_resource(self):
        result = parse_notification(
            {"topic": "orders_v2", "user_id": "S1", "resource": "/orders/2000001?x=1"}
        )
        assert result.event is not None
        assert result.event.order_id == "2000001"

    def test_other_topic_ignored(self):
        result = parse_notification({"topic": "items", "user_id": "S1", "id": "1"})
        assert result.event is None
        assert result.reason == "ignored_topic"

    def test_missing_seller_not_stored(self):
        result = parse_notification({"topic": "orders_v2", "id": "1"})
        assert result.event is None
        assert result.reason == "missing_ids"

    def test_missing_order_id_not_stored(self):
        result = parse_notification({"topic": "orders_v2", "user_id": "S1", "resource": "/orders/"})
        assert result.event is None
        assert result.reason == "missing_ids"

    @pytest.mark.parametrize("payload", [None, [], "orders_v2", 5])
    def test_non_object_body(self, payload):
        assert parse_notification(payload).reason == "invalid_body"


# ── Intake over HTTP ──────────────────────────────────────────────────────


class TestWebhookIntake:
    def test_stores_order_notification(self, client, buffer):
        resp = client.post("/meli/webhook", json={"topic": "orders_v2", "user_id": "S1", "id": "123"})
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}
        assert len(buffer) == 1

    def test_ignored_topic_still_acks(self, client, buffer):
        resp = client.post("/meli/webhook", json={"topic": "questions", "user_id": "S1", "id": "9"})
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}
        assert len(buffer) == 0

    def test_invalid_json_still_acks(self, client, buffer):
        resp = client.post(
            "/meli/webhook", content=b"{not json", headers={"Content-Type": "application/json"}
        )
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}
        assert len(buffer) == 0

    def test_empty_body_still_acks(self, client):
        resp = client.post("/meli/webhook")
        assert resp.status_code == 200

    def test_internal_failure_still_acks(self, client, buffer):
        with patch.object(buffer, "push", side_effect=RuntimeError("boom")):
            resp = client.post(
                "/meli/webhook", json={"topic": "orders_v2", "user_id": "S1", "id": "1"}
            )
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

    def test_capacity_respected_over_http(self, client, buffer):
        for i in range(buffer.capacity + 3):
            client.post("/meli/webhook", json={"topic": "orders_v2", "user_id": "S1", "id": str(i)})
        assert len(buffer) == buffer.capacity
        listed = [e["order_id"] for e in client.get("/meli/webhook/events").json()]
        assert listed == [str(i) for i in range(buffer.capacity + 2, 2, -1)]


# ── Listing / consume / clear ─────────────────────────────────────────────


class TestBufferEndpoints:
    def _post(self, client, order_id, seller_id="S1"):
        client.post("/meli/webhook", json={"topic": "orders_v2", "user_id": seller_id, "id": order_id})

    def test_duplicate_notification_end_to_end(self, client):
        with freeze_time("2026-03-01T10:00:00Z", real_asyncio=True):
            self._post(client, "123")
        with freeze_time("2026-03-01T10:05:00Z", real_asyncio=True):
            self._post(client, "123")

        listed = client.get("/meli/webhook/events").json()
        assert listed == [{"order_id": "123", "seller_id": "S1", "ts": "2026-03-01T10:05:00.000Z"}]

        consumed = client.get("/meli/webhook/consume").json()
        assert consumed == listed

        assert client.get("/meli/webhook/events").json() == []

    def test_consume_twice(self, client):
        self._post(client, "1")
        self._post(client, "2")
        assert len(client.get("/meli/webhook/consume").json()) == 2
        assert client.get("/meli/webhook/consume").json() == []

    def test_listing_is_newest_first(self, client):
        for order_id in ("1", "2", "3"):
            self._post(client, order_id)
        assert [e["order_id"] for e in client.get("/meli/webhook/events").json()] == ["3", "2", "1"]

    def test_post_after_consume_is_listed(self, client):
        self._post(client, "A")
        client.get("/meli/webhook/consume")
        self._post(client, "B")
        assert [e["order_id"] for e in client.get("/meli/webhook/events").json()] == ["B"]

    def test_clear(self, client, buffer):
        self._post(client, "1")
        resp = client.delete("/meli/webhook/events")
        assert resp.status_code == 200
        assert resp.json() == {"ok": True, "cleared": True}
        assert len(buffer) == 0

    def test_clear_when_empty(self, client):
        assert client.delete("/meli/webhook/events").json() == {"ok": True, "cleared": True}
