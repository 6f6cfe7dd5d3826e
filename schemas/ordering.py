"""Pydantic schemas for order administration and account export payloads."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field

NIGERIAN_PHONE_PATTERN = r"^(\+234|0)[789][01]\d{8}$"


class OrderRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str | None = None
    customer_id: str | None = None
    status: str
    subtotal: int = 0
    delivery_fee: int = 0
    total: int
    delivery_address: str | None = None
    customer_name: str | None = None
    customer_phone: str | None = None
    notes: str | None = None
    payment_reference: str | None = None
    payment_confirmed_by: str | None = None
    payment_confirmed_at: datetime | None = None
    confirmed_at: datetime | None = None
    preparing_at: datetime | None = None
    out_for_delivery_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancellation_reason: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class OrderPage(BaseModel):
    orders: List[OrderRecord]
    total: int
    page: int
    limit: int


class CartLineRequest(BaseModel):
    """A requested menu item. Prices are never accepted from the client."""

    menu_item_id: str = Field(..., min_length=1, max_length=64)
    quantity: int = Field(..., ge=1, le=20)
    notes: str | None = Field(None, max_length=500)


class CreateOrderRequest(BaseModel):
    restaurant_id: str = Field(..., min_length=1, max_length=64)
    items: List[CartLineRequest] = Field(..., min_length=1, max_length=20)
    delivery_address: str = Field(..., min_length=5, max_length=500)
    customer_name: str = Field(..., min_length=2, max_length=255)
    customer_phone: str = Field(..., pattern=NIGERIAN_PHONE_PATTERN)
    notes: str | None = Field(None, max_length=1000)


class OrderCreated(BaseModel):
    ok: bool = True
    order_id: str
    order_number: str
    status: str
    subtotal: int
    delivery_fee: int
    total: int


class ConfirmPaymentRequest(BaseModel):
    order_id: str = Field(..., min_length=1, max_length=64)
    payment_reference: str | None = Field(None, max_length=128)


class StatusUpdateRequest(BaseModel):
    """Requested destination status; unknown values are refused by the lifecycle."""

    status: str = Field(..., min_length=1, max_length=32)
    cancellation_reason: str | None = Field(None, max_length=500)


class TransitionAck(BaseModel):
    ok: bool = True
    order_id: str
    previous_status: str
    status: str


class OrderStats(BaseModel):
    """Back-office dashboard figures.

    ``revenue`` sums ``total`` over delivered orders only.
    """

    total_orders: int
    by_status: Dict[str, int]
    revenue: int


class ProfileRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str
    full_name: str | None = None
    phone: str | None = None
    default_address: str | None = None
    created_at: datetime | None = None


class AccountExport(BaseModel):
    exported_at: datetime
    data_controller: str
    subject: ProfileRecord | None
    orders: List[OrderRecord]


__all__ = [
    "AccountExport",
    "CartLineRequest",
    "ConfirmPaymentRequest",
    "CreateOrderRequest",
    "OrderCreated",
    "OrderPage",
    "OrderRecord",
    "OrderStats",
    "ProfileRecord",
    "StatusUpdateRequest",
    "TransitionAck",
]
