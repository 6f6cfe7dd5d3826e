"""Read-side queries for the back office."""
from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from infra import Order
from libs.errors import NotFound, UpstreamFailure
from libs.orders import OrderStatus

logger = logging.getLogger(__name__)

PAGE_SIZE = 20
MAX_PAGE = 10_000


class OrderQueries:
    def __init__(self, db: Session) -> None:
        self._db = db

    def get(self, order_id: str) -> Order:
        try:
            order = self._db.get(Order, order_id)
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error("Order lookup failed", exc_info=True, extra={"order_id": order_id})
            raise UpstreamFailure() from exc
        if order is None:
            raise NotFound("Order not found")
        return order

    def page(self, *, status: Optional[str], page: int) -> Tuple[List[Order], int]:
        """Return one page of orders, newest first, and the filtered total."""

        filters = [Order.status == status] if status else []
        statement = (
            select(Order)
            .where(*filters)
            .order_by(Order.created_at.desc(), Order.id)
            .offset((page - 1) * PAGE_SIZE)
            .limit(PAGE_SIZE)
        )
        try:
            orders = list(self._db.scalars(statement).all())
            total = self._db.scalar(select(func.count()).select_from(Order).where(*filters)) or 0
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error("Order listing failed", exc_info=True)
            raise UpstreamFailure() from exc
        return orders, int(total)

    def stats(self) -> Tuple[Dict[str, int], int]:
        """Return counts per status and the revenue of delivered orders.

        Revenue deliberately excludes every status other than ``delivered``.
        """

        try:
            rows = self._db.execute(
                select(Order.status, func.count()).group_by(Order.status)
            ).all()
            revenue = self._db.scalar(
                select(func.coalesce(func.sum(Order.total), 0)).where(
                    Order.status == OrderStatus.DELIVERED.value
                )
            )
        except SQLAlchemyError as exc:
            self._db.rollback()
            logger.error("Order statistics failed", exc_info=True)
            raise UpstreamFailure() from exc
        counts = {status.value: 0 for status in OrderStatus}
        for status, count in rows:
            counts[status] = int(count)
        return counts, int(revenue or 0)
