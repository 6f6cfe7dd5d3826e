"""Server-side pricing of a customer's cart against the menu."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from infra import MenuItem, Restaurant
from libs.errors import InvalidInput, NotFound, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CartLine:
    """What the customer asked for. Carries no price."""

    menu_item_id: str
    quantity: int
    notes: Optional[str] = None


@dataclass(frozen=True)
class PricedLine:
    menu_item_id: str
    name: str
    price: int
    quantity: int
    notes: Optional[str] = None

    @property
    def subtotal(self) -> int:
        return self.price * self.quantity


@dataclass(frozen=True)
class PricedCart:
    restaurant_id: str
    lines: Tuple[PricedLine, ...]
    delivery_fee: int

    @property
    def subtotal(self) -> int:
        return sum(line.subtotal for line in self.lines)

    @property
    def total(self) -> int:
        return self.subtotal + self.delivery_fee


def price_cart(db: Session, restaurant_id: str, lines: Sequence[CartLine]) -> PricedCart:
    """Price ``lines`` from stored menu prices and the restaurant's delivery fee.

    Every item must exist, be available and belong to ``restaurant_id``, and
    the restaurant must be open.
    """

    if not lines:
        raise InvalidInput("Order must have at least 1 item")

    wanted = {line.menu_item_id for line in lines}
    try:
        items: Dict[str, MenuItem] = {
            item.id: item
            for item in db.scalars(select(MenuItem).where(MenuItem.id.in_(wanted)))
        }
        restaurant = db.get(Restaurant, restaurant_id)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Menu lookup failed", exc_info=True, extra={"restaurant_id": restaurant_id})
        raise UpstreamFailure() from exc

    if restaurant is None:
        raise NotFound("Restaurant not found")
    if not (restaurant.is_active and restaurant.is_open):
        raise InvalidInput("This restaurant is currently closed")

    priced = []
    for line in lines:
        item = items.get(line.menu_item_id)
        if item is None:
            raise InvalidInput("An item in this order no longer exists")
        if not item.is_available:
            raise InvalidInput(f'"{item.name}" is currently unavailable')
        if item.restaurant_id != restaurant_id:
            raise InvalidInput("Cart contains items from multiple restaurants")
        priced.append(
            PricedLine(
                menu_item_id=item.id,
                name=item.name,
                price=item.price,
                quantity=line.quantity,
                notes=line.notes,
            )
        )

    return PricedCart(
        restaurant_id=restaurant_id,
        lines=tuple(priced),
        delivery_fee=restaurant.delivery_fee,
    )


__all__ = ["CartLine", "PricedCart", "PricedLine", "price_cart"]
