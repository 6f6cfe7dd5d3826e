from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from libs.db.db import get_db
from libs.errors import InvalidInput
from libs.orders import OrderLifecycle, parse_status
from schemas.ordering import (
    ConfirmPaymentRequest,
    OrderPage,
    OrderRecord,
    OrderStats,
    StatusUpdateRequest,
    TransitionAck,
)

from ..dependencies import Identity, client_origin, get_order_lifecycle, require_admin
from ..queries import MAX_PAGE, PAGE_SIZE, OrderQueries

router = APIRouter(prefix="/admin", tags=["admin"])


def get_order_queries(db: Session = Depends(get_db)) -> OrderQueries:
    return OrderQueries(db)


@router.get("/orders", response_model=OrderPage)
def list_orders(
    status: Optional[str] = None,
    page: int = Query(1, ge=1, le=MAX_PAGE),
    _: Identity = Depends(require_admin),
    queries: OrderQueries = Depends(get_order_queries),
):
    if status and parse_status(status) is None:
        raise InvalidInput(f"Unknown order status: {status}")
    orders, total = queries.page(status=status, page=page)
    return OrderPage(
        orders=[OrderRecord.model_validate(order) for order in orders],
        total=total,
        page=page,
        limit=PAGE_SIZE,
    )


@router.get("/orders/{order_id}", response_model=OrderRecord)
def get_order(
    order_id: str,
    _: Identity = Depends(require_admin),
    queries: OrderQueries = Depends(get_order_queries),
):
    return OrderRecord.model_validate(queries.get(order_id))


@router.patch("/orders/{order_id}", response_model=TransitionAck)
def update_order_status(
    order_id: str,
    payload: StatusUpdateRequest,
    admin: Identity = Depends(require_admin),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    ip_address: str = Depends(client_origin),
):
    result = lifecycle.apply_transition(
        order_id,
        payload.status,
        actor_id=admin.user_id,
        ip_address=ip_address,
        cancellation_reason=payload.cancellation_reason,
    )
    return TransitionAck(
        order_id=order_id,
        previous_status=result.previous.value,
        status=result.current.value,
    )


@router.post("/confirm-payment", response_model=TransitionAck)
def confirm_payment(
    payload: ConfirmPaymentRequest,
    admin: Identity = Depends(require_admin),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    ip_address: str = Depends(client_origin),
):
    result = lifecycle.confirm_payment(
        payload.order_id,
        actor_id=admin.user_id,
        ip_address=ip_address,
        payment_reference=payload.payment_reference,
    )
    return TransitionAck(
        order_id=payload.order_id,
        previous_status=result.previous.value,
        status=result.current.value,
    )


@router.get("/stats", response_model=OrderStats)
def order_stats(
    _: Identity = Depends(require_admin),
    queries: OrderQueries = Depends(get_order_queries),
):
    counts, revenue = queries.stats()
    return OrderStats(total_orders=sum(counts.values()), by_status=counts, revenue=revenue)
