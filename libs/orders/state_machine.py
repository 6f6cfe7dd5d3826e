"""Order status transition table."""
from __future__ import annotations

from enum import Enum
from typing import Dict, FrozenSet, Optional


class OrderStatus(str, Enum):
    AWAITING_PAYMENT = "awaiting_payment"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


VALID_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.AWAITING_PAYMENT: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.OUT_FOR_DELIVERY, OrderStatus.CANCELLED}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Column stamped when an order enters the status.
TIMESTAMP_FIELDS: Dict[OrderStatus, str] = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.OUT_FOR_DELIVERY: "out_for_delivery_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


def parse_status(value: object) -> Optional[OrderStatus]:
    """Return the :class:`OrderStatus` for ``value`` or ``None`` if unknown."""

    if isinstance(value, OrderStatus):
        return value
    try:
        return OrderStatus(str(value))
    except ValueError:
        return None


def can_transition(current: object, requested: object) -> bool:
    source = parse_status(current)
    target = parse_status(requested)
    if source is None or target is None:
        return False
    return target in VALID_TRANSITIONS[source]


__all__ = [
    "OrderStatus",
    "TIMESTAMP_FIELDS",
    "VALID_TRANSITIONS",
    "can_transition",
    "parse_status",
]
