"""SQLAlchemy models for customer profiles and orders."""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

OrderingBase = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Profile(OrderingBase):
    """A platform identity and its single role."""

    __tablename__ = "profiles"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    email: str = Column(String(255), nullable=False, unique=True, index=True)
    role: str = Column(String(32), nullable=False, default="customer", index=True)
    full_name: Optional[str] = Column(String(255))
    phone: Optional[str] = Column(String(32))
    default_address: Optional[str] = Column(Text)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    orders = relationship("Order", back_populates="customer")


class Restaurant(OrderingBase):
    """The slice of a restaurant that order pricing reads."""

    __tablename__ = "restaurants"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    owner_id: Optional[str] = Column(String(36), ForeignKey("profiles.id", ondelete="SET NULL"))
    name: str = Column(String(255), nullable=False)
    delivery_fee: int = Column(Integer, nullable=False, default=0)
    is_open: bool = Column(Boolean, nullable=False, default=True)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    menu_items = relationship("MenuItem", back_populates="restaurant")


class MenuItem(OrderingBase):
    __tablename__ = "menu_items"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    restaurant_id: str = Column(
        String(36), ForeignKey("restaurants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: str = Column(String(255), nullable=False)
    price: int = Column(Integer, nullable=False)
    is_available: bool = Column(Boolean, nullable=False, default=True)

    restaurant = relationship("Restaurant", back_populates="menu_items")


class Order(OrderingBase):
    """A customer order.

    ``status`` only changes through :mod:`libs.orders`; rows are never deleted.
    """

    __tablename__ = "orders"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    order_number: Optional[str] = Column(String(32), unique=True)
    customer_id: str = Column(
        String(36), ForeignKey("profiles.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    restaurant_id: Optional[str] = Column(
        String(36), ForeignKey("restaurants.id", ondelete="RESTRICT"), index=True
    )
    status: str = Column(String(32), nullable=False, default="awaiting_payment", index=True)
    subtotal: int = Column(Integer, nullable=False, default=0)
    delivery_fee: int = Column(Integer, nullable=False, default=0)
    total: int = Column(Integer, nullable=False, default=0)
    delivery_address: Optional[str] = Column(Text)
    customer_name: Optional[str] = Column(String(255))
    customer_phone: Optional[str] = Column(String(32))
    notes: Optional[str] = Column(Text)

    payment_reference: Optional[str] = Column(String(128))
    payment_confirmed_by: Optional[str] = Column(String(36))
    payment_confirmed_at: Optional[datetime] = Column(DateTime(timezone=True))

    confirmed_at: Optional[datetime] = Column(DateTime(timezone=True))
    preparing_at: Optional[datetime] = Column(DateTime(timezone=True))
    out_for_delivery_at: Optional[datetime] = Column(DateTime(timezone=True))
    delivered_at: Optional[datetime] = Column(DateTime(timezone=True))
    cancelled_at: Optional[datetime] = Column(DateTime(timezone=True))
    cancellation_reason: Optional[str] = Column(Text)

    created_at: datetime = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: datetime = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    customer = relationship("Profile", back_populates="orders")
    items = relationship("OrderItem", back_populates="order")

    __table_args__ = (
        Index("ix_orders_status_created_at", "status", "created_at"),
        Index("ix_orders_customer_created_at", "customer_id", "created_at"),
    )


class OrderItem(OrderingBase):
    """A line of an order with the name and price frozen at order time."""

    __tablename__ = "order_items"

    id: str = Column(String(36), primary_key=True, default=_new_id)
    order_id: str = Column(
        String(36), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    menu_item_id: str = Column(
        String(36), ForeignKey("menu_items.id", ondelete="RESTRICT"), nullable=False
    )
    name: str = Column(String(255), nullable=False)
    price: int = Column(Integer, nullable=False)
    quantity: int = Column(Integer, nullable=False)
    subtotal: int = Column(Integer, nullable=False)
    notes: Optional[str] = Column(Text)

    order = relationship("Order", back_populates="items")


__all__ = ["MenuItem", "Order", "OrderItem", "OrderingBase", "Profile", "Restaurant"]
