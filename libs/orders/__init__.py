"""Order lifecycle: transition table and guarded mutations."""
from __future__ import annotations

from .lifecycle import (
    ORDER_CREATED,
    ORDER_STATUS_UPDATED,
    ORDER_TARGET_TYPE,
    PAYMENT_CONFIRMED,
    OrderLifecycle,
    TransitionResult,
)
from .pricing import CartLine, PricedCart, PricedLine, price_cart
from .state_machine import (
    TIMESTAMP_FIELDS,
    VALID_TRANSITIONS,
    OrderStatus,
    can_transition,
    parse_status,
)

__all__ = [
    "CartLine",
    "ORDER_CREATED",
    "ORDER_STATUS_UPDATED",
    "ORDER_TARGET_TYPE",
    "PAYMENT_CONFIRMED",
    "OrderLifecycle",
    "OrderStatus",
    "PricedCart",
    "PricedLine",
    "TIMESTAMP_FIELDS",
    "TransitionResult",
    "VALID_TRANSITIONS",
    "can_transition",
    "parse_status",
    "price_cart",
]
