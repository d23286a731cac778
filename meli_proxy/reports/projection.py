"""Optional projection over untrusted upstream JSON, and the report row model."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

_MISSING = object()

Scalar = int | float | str | None


def pluck(data: Any, *path: str | int, default: Any = None) -> Any:
    """Follow ``path`` through nested dicts/lists; ``default`` on any gap.

    ``pluck(order, "buyer", "nickname")`` never raises: a missing key, a None
    along the way, an out-of-range index or a wrong container type all
    yield ``default``.
    """
    current = data
    for step in path:
        if isinstance(step, int) and isinstance(current, list):
            current = current[step] if -len(current) <= step < len(current) else _MISSING
        elif isinstance(step, str) and isinstance(current, dict):
            current = current.get(step, _MISSING)
        else:
            current = _MISSING
        if current is _MISSING or current is None:
            return default
    return current


def _scalar_or_none(value: Any) -> Any:
    return value if isinstance(value, (int, float, str)) else None


class Buyer(BaseModel):
    id: Scalar = None
    nickname: Scalar = None

    @field_validator("*", mode="before")
    @classmethod
    def _scalar_only(cls, v: Any) -> Any:
        return _scalar_or_none(v)


class ReportRow(BaseModel):
    """One unshipped order, as returned by the report endpoint."""

    order_id: Scalar = None
    date_created: Scalar = None
    buyer: Buyer = Field(default_factory=Buyer)
    title: Scalar = None
    quantity: Scalar = None
    unit_price: Scalar = None
    shipment_id: Scalar = None
    shipment_status: Scalar = None

    @field_validator(
        "order_id",
        "date_created",
        "title",
        "quantity",
        "unit_price",
        "shipment_id",
        "shipment_status",
        mode="before",
    )
    @classmethod
    def _scalar_only(cls, v: Any) -> Any:
        return _scalar_or_none(v)

    @classmethod
    def from_upstream(cls, order: dict, shipment: dict, shipment_id: Any) -> ReportRow:
        """Project an order and its shipment; the first line item stands for the order."""
        item = pluck(order, "order_items", 0)
        return cls(
            order_id=pluck(order, "id"),
            date_created=pluck(order, "date_created"),
            buyer=Buyer(
                id=pluck(order, "buyer", "id"),
                nickname=pluck(order, "buyer", "nickname"),
            ),
            title=pluck(item, "item", "title"),
            quantity=pluck(item, "quantity"),
            unit_price=pluck(item, "unit_price"),
            shipment_id=pluck(shipment, "id", default=shipment_id),
            shipment_status=pluck(shipment, "status"),
        )
