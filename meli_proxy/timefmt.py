"""Timestamp helpers shared by the webhook buffer and the report window."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_ts(value: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a ``Z`` suffix."""
    iso = value.astimezone(timezone.utc).isoformat(timespec="milliseconds")
    return iso.replace("+00:00", "Z")
