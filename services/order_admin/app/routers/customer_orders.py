from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from libs.db.db import get_db
from libs.orders import CartLine, OrderLifecycle, price_cart
from schemas.ordering import CreateOrderRequest, OrderCreated

from ..dependencies import Identity, client_origin, get_order_lifecycle, require_auth

router = APIRouter(tags=["orders"])


@router.post("/orders", response_model=OrderCreated, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: CreateOrderRequest,
    customer: Identity = Depends(require_auth),
    db: Session = Depends(get_db),
    lifecycle: OrderLifecycle = Depends(get_order_lifecycle),
    ip_address: str = Depends(client_origin),
):
    cart = price_cart(
        db,
        payload.restaurant_id,
        [
            CartLine(menu_item_id=line.menu_item_id, quantity=line.quantity, notes=line.notes)
            for line in payload.items
        ],
    )
    order = lifecycle.create_order(
        customer.user_id,
        cart,
        delivery_address=payload.delivery_address,
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
        notes=payload.notes,
        ip_address=ip_address,
    )
    return OrderCreated(
        order_id=order.id,
        order_number=order.order_number,
        status=order.status,
        subtotal=order.subtotal,
        delivery_fee=order.delivery_fee,
        total=order.total,
    )
