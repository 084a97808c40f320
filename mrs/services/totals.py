"""
Monetary helpers for material requests.

total = sum(quantity * (unit_price or 0)) + freight - discount

Always recomputed server-side from the stored item/freight/discount values.
"""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Optional

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convert Numeric/float/str/None to Decimal safely (None -> 0)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> Decimal:
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def _get(item: Any, name: str):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


def line_total(quantity, unit_price) -> Optional[Decimal]:
    """Denormalized per-item total; None when the item has no price."""
    if unit_price is None:
        return None
    return money(to_decimal(quantity) * to_decimal(unit_price))


def items_subtotal(items: Iterable[Any]) -> Decimal:
    subtotal = Decimal("0")
    for item in items:
        subtotal += to_decimal(_get(item, "quantity")) * to_decimal(_get(item, "unit_price"))
    return subtotal


def compute_total(items: Iterable[Any], freight=0, discount=0) -> Decimal:
    """Request total. Items may be ORM rows, pydantic models or dicts."""
    return money(items_subtotal(items) + to_decimal(freight) - to_decimal(discount))
