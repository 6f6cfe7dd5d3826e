"""Cancellation of orders whose payment never arrived."""
from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List

from sqlalchemy import select
from sqlalchemy.orm import Session

from infra import Order
from libs.errors import Conflict, InvalidTransition, NotFound
from libs.orders import OrderLifecycle, OrderStatus

logger = logging.getLogger(__name__)

ORDER_AUTO_CANCELLED = "order_auto_cancelled"
SYSTEM_ACTOR = "system"
PAYMENT_TIMEOUT_REASON = "payment_timeout"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SweepReport:
    scanned: int = 0
    cancelled: int = 0
    conflicts: int = 0
    skipped: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class AutoCancellationSweeper:
    """Cancel ``awaiting_payment`` orders older than ``timeout``.

    Each cancellation goes through :meth:`OrderLifecycle.apply_transition`, so
    a payment confirmed while the sweep runs wins the conditional write and
    the sweeper records a conflict instead of overwriting it. Running the
    sweep twice is harmless.
    """

    def __init__(
        self,
        db: Session,
        lifecycle: OrderLifecycle,
        *,
        timeout: timedelta = timedelta(hours=2),
        batch_size: int = 500,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._lifecycle = lifecycle
        self._timeout = timeout
        self._batch_size = batch_size
        self._clock = clock

    def stale_order_ids(self) -> List[str]:
        cutoff = self._clock() - self._timeout
        statement = (
            select(Order.id)
            .where(
                Order.status == OrderStatus.AWAITING_PAYMENT.value,
                Order.created_at < cutoff,
            )
            .order_by(Order.created_at)
            .limit(self._batch_size)
        )
        return list(self._db.scalars(statement))

    def run(self) -> SweepReport:
        report = SweepReport()
        for order_id in self.stale_order_ids():
            report.scanned += 1
            try:
                self._lifecycle.apply_transition(
                    order_id,
                    OrderStatus.CANCELLED,
                    actor_id=None,
                    cancellation_reason=PAYMENT_TIMEOUT_REASON,
                    audit_action=ORDER_AUTO_CANCELLED,
                    metadata={"reason": PAYMENT_TIMEOUT_REASON, "actor": SYSTEM_ACTOR},
                )
            except Conflict:
                report.conflicts += 1
            except (InvalidTransition, NotFound):
                report.skipped += 1
            else:
                report.cancelled += 1
        logger.info("Auto-cancellation sweep finished", extra=report.as_dict())
        return report
