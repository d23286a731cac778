"""Report date window: parsing, defaulting, and local bounds checks."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from typing import Any

from dateutil import parser as date_parser

from meli_proxy.errors import ClientInputError
from meli_proxy.timefmt import format_ts


@dataclass(frozen=True)
class FetchWindow:
    """Closed interval ``[date_from, date_to]`` of timezone-aware datetimes."""

    date_from: datetime
    date_to: datetime

    def __post_init__(self) -> None:
        if self.date_from.tzinfo is None or self.date_to.tzinfo is None:
            raise ValueError("FetchWindow bounds must be timezone-aware")
        if self.date_from > self.date_to:
            raise ValueError("date_from must not be after date_to")

    @property
    def from_iso(self) -> str:
        return format_ts(self.date_from)

    @property
    def to_iso(self) -> str:
        return format_ts(self.date_to)

    def contains(self, moment: datetime) -> bool:
        return self.date_from <= moment <= self.date_to


def parse_upstream_datetime(value: Any, tz: tzinfo) -> datetime | None:
    """Parse an upstream ISO-8601 timestamp; None when missing or unparsable.

    Naive values are read as wall time in ``tz``.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = date_parser.isoparse(value)
    except (ValueError, OverflowError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _parse_query_datetime(raw: str, tz: tzinfo, name: str) -> datetime:
    try:
        parsed = date_parser.parse(raw)
    except (ValueError, OverflowError):
        raise ClientInputError(f"Invalid {name} parameter") from None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=tz)
    return parsed.astimezone(tz)


def _shift(moment: datetime, delta: timedelta, tz: tzinfo) -> datetime:
    # shift in UTC so a DST change in ``tz`` keeps the span in elapsed hours
    return (moment.astimezone(timezone.utc) + delta).astimezone(tz)


def resolve_window(
    raw_from: str | None,
    raw_to: str | None,
    *,
    tz: tzinfo,
    default_hours: float,
    now: datetime | None = None,
) -> FetchWindow:
    """Build the report window from optional ``from``/``to`` query values.

    A missing bound is derived from the other one (or from ``now``) using
    ``default_hours``. Raises ClientInputError (400) on unparsable input or
    an inverted range.
    """
    span = timedelta(hours=default_hours)
    date_from = _parse_query_datetime(raw_from, tz, "from") if raw_from else None
    date_to = _parse_query_datetime(raw_to, tz, "to") if raw_to else None

    if date_from is None and date_to is None:
        date_to = (now or datetime.now(timezone.utc)).astimezone(tz)
        date_from = _shift(date_to, -span, tz)
    elif date_to is None:
        date_to = _shift(date_from, span, tz)
    elif date_from is None:
        date_from = _shift(date_to, -span, tz)

    if date_from > date_to:
        raise ClientInputError("`from` must be earlier than `to`")
    return FetchWindow(date_from=date_from, date_to=date_to)
