"""Guarded, audited order creation and status mutations."""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional

from prometheus_client import Counter
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from infra import Order, OrderItem
from libs.audit import AuditPipeline
from libs.errors import Conflict, InvalidInput, InvalidTransition, NotFound, UpstreamFailure

from .pricing import PricedCart
from .state_machine import TIMESTAMP_FIELDS, OrderStatus, can_transition, parse_status

logger = logging.getLogger(__name__)

ORDER_CREATED = "order_created"
ORDER_STATUS_UPDATED = "order_status_updated"
PAYMENT_CONFIRMED = "payment_confirmed"
ORDER_TARGET_TYPE = "orders"

_TRANSITIONS = Counter(
    "order_transitions_total",
    "Order status transitions by outcome",
    labelnames=("source", "target", "outcome"),
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _order_number(now: datetime) -> str:
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


@dataclass(frozen=True)
class TransitionResult:
    order_id: str
    previous: OrderStatus
    current: OrderStatus
    occurred_at: datetime


@dataclass(frozen=True)
class _OrderSnapshot:
    status: str
    total: int


class OrderLifecycle:
    """Create orders and move them through :data:`~libs.orders.state_machine.VALID_TRANSITIONS`.

    Every write is conditioned on the status read by the same call, so two
    concurrent callers starting from the same status cannot both commit: the
    loser gets :class:`~libs.errors.Conflict`. The audit entry is appended only
    after the write committed.
    """

    def __init__(
        self,
        db: Session,
        audit: AuditPipeline,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._audit = audit
        self._clock = clock

    def create_order(
        self,
        customer_id: str,
        cart: PricedCart,
        *,
        delivery_address: str,
        customer_name: str,
        customer_phone: str,
        notes: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> Order:
        """Insert a new ``awaiting_payment`` order owned by ``customer_id``.

        Amounts come from ``cart``, which was priced from stored menu prices;
        nothing the client sent is trusted for money. The order and its lines
        commit together, then ``order_created`` is appended.
        """

        now = self._clock()
        order = Order(
            order_number=_order_number(now),
            customer_id=customer_id,
            restaurant_id=cart.restaurant_id,
            status=OrderStatus.AWAITING_PAYMENT.value,
            subtotal=cart.subtotal,
            delivery_fee=cart.delivery_fee,
            total=cart.total,
            delivery_address=delivery_address,
            customer_name=customer_name,
            customer_phone=customer_phone,
            notes=notes,
            created_at=now,
            updated_at=now,
        )
        order.items = [
            OrderItem(
                menu_item_id=line.menu_item_id,
                name=line.name,
                price=line.price,
                quantity=line.quantity,
                subtotal=line.subtotal,
                notes=line.notes,
            )
            for line in cart.lines
        ]
        try:
            self._db.add(order)
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error(
                "Order insert failed",
                exc_info=True,
                extra={"customer_id": customer_id, "restaurant_id": cart.restaurant_id},
            )
            raise UpstreamFailure() from exc

        logger.info(
            "Order created",
            extra={"order_id": order.id, "order_number": order.order_number, "total": order.total},
        )
        self._audit.append(
            ORDER_CREATED,
            actor_id=customer_id,
            target_type=ORDER_TARGET_TYPE,
            target_id=order.id,
            ip_address=ip_address,
            metadata={
                "order_number": order.order_number,
                "restaurant_id": cart.restaurant_id,
                "subtotal": cart.subtotal,
                "total": cart.total,
                "item_count": len(cart.lines),
            },
        )
        return order

    def apply_transition(
        self,
        order_id: str,
        requested: OrderStatus | str,
        *,
        actor_id: Optional[str],
        ip_address: Optional[str] = None,
        cancellation_reason: Optional[str] = None,
        audit_action: str = ORDER_STATUS_UPDATED,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> TransitionResult:
        target = parse_status(requested)
        if target is None:
            raise InvalidInput(f"Unknown order status: {requested}")

        snapshot = self._read(order_id)
        source = self._checked_source(snapshot.status, target)

        now = self._clock()
        values: Dict[str, Any] = {"status": target.value, TIMESTAMP_FIELDS[target]: now}
        if target is OrderStatus.CANCELLED and cancellation_reason:
            values["cancellation_reason"] = cancellation_reason

        self._conditional_write(order_id, source, target, values)

        self._audit.append(
            audit_action,
            actor_id=actor_id,
            target_type=ORDER_TARGET_TYPE,
            target_id=order_id,
            ip_address=ip_address,
            metadata={**(metadata or {}), "from": source.value, "to": target.value},
        )
        return TransitionResult(order_id=order_id, previous=source, current=target, occurred_at=now)

    def confirm_payment(
        self,
        order_id: str,
        *,
        actor_id: str,
        ip_address: Optional[str] = None,
        payment_reference: Optional[str] = None,
    ) -> TransitionResult:
        """Confirm an order that is still awaiting payment.

        Only ``awaiting_payment`` qualifies; confirming twice fails with
        :class:`~libs.errors.InvalidTransition`.
        """

        snapshot = self._read(order_id)
        if snapshot.status != OrderStatus.AWAITING_PAYMENT.value:
            _TRANSITIONS.labels(snapshot.status, OrderStatus.CONFIRMED.value, "rejected").inc()
            raise InvalidTransition(
                snapshot.status,
                OrderStatus.CONFIRMED.value,
                message=f"Order is {snapshot.status}, not awaiting payment",
            )

        now = self._clock()
        values: Dict[str, Any] = {
            "status": OrderStatus.CONFIRMED.value,
            "confirmed_at": now,
            "payment_reference": payment_reference,
            "payment_confirmed_by": actor_id,
            "payment_confirmed_at": now,
        }
        self._conditional_write(
            order_id, OrderStatus.AWAITING_PAYMENT, OrderStatus.CONFIRMED, values
        )

        self._audit.append(
            PAYMENT_CONFIRMED,
            actor_id=actor_id,
            target_type=ORDER_TARGET_TYPE,
            target_id=order_id,
            ip_address=ip_address,
            metadata={
                "from": OrderStatus.AWAITING_PAYMENT.value,
                "to": OrderStatus.CONFIRMED.value,
                "total": snapshot.total,
                "payment_reference": payment_reference,
            },
        )
        return TransitionResult(
            order_id=order_id,
            previous=OrderStatus.AWAITING_PAYMENT,
            current=OrderStatus.CONFIRMED,
            occurred_at=now,
        )

    def _read(self, order_id: str) -> _OrderSnapshot:
        try:
            row = self._db.execute(
                select(Order.status, Order.total).where(Order.id == order_id)
            ).first()
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error("Order read failed", exc_info=True, extra={"order_id": order_id})
            raise UpstreamFailure() from exc
        if row is None:
            raise NotFound("Order not found")
        return _OrderSnapshot(status=row.status, total=row.total)

    def _checked_source(self, current: str, target: OrderStatus) -> OrderStatus:
        source = parse_status(current)
        if source is None or not can_transition(source, target):
            _TRANSITIONS.labels(current, target.value, "rejected").inc()
            raise InvalidTransition(current, target.value)
        return source

    def _conditional_write(
        self,
        order_id: str,
        expected: OrderStatus,
        target: OrderStatus,
        values: Dict[str, Any],
    ) -> None:
        statement = (
            update(Order)
            .where(Order.id == order_id, Order.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self._db.execute(statement)
            affected = result.rowcount
            if affected:
                self._db.commit()
            else:
                self._db.rollback()
        except SQLAlchemyError as exc:
            self._db.rollback()
            _TRANSITIONS.labels(expected.value, target.value, "error").inc()
            logger.error(
                "Order status write failed",
                exc_info=True,
                extra={"order_id": order_id, "from_status": expected.value, "to_status": target.value},
            )
            raise UpstreamFailure() from exc

        if not affected:
            _TRANSITIONS.labels(expected.value, target.value, "conflict").inc()
            logger.warning(
                "Order status changed concurrently",
                extra={"order_id": order_id, "from_status": expected.value, "to_status": target.value},
            )
            raise Conflict()
        _TRANSITIONS.labels(expected.value, target.value, "committed").inc()


__all__ = [
    "ORDER_CREATED",
    "ORDER_STATUS_UPDATED",
    "ORDER_TARGET_TYPE",
    "OrderLifecycle",
    "PAYMENT_CONFIRMED",
    "TransitionResult",
]
