"""Persistence models shared across services."""

from .audit_models import AuditLog
from .audit_models import Base as AuditBase
from .ordering_models import MenuItem, Order, OrderingBase, OrderItem, Profile, Restaurant

__all__ = [
    "AuditBase",
    "AuditLog",
    "MenuItem",
    "Order",
    "OrderItem",
    "OrderingBase",
    "Profile",
    "Restaurant",
]
