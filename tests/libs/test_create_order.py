from __future__ import annotations

import re

import pytest
from sqlalchemy import select

from infra import AuditLog, MenuItem, Order, OrderItem, Profile, Restaurant
from libs.audit import AuditPipeline
from libs.errors import InvalidInput, NotFound
from libs.orders import CartLine, OrderLifecycle, price_cart


@pytest.fixture
def customer(db_session) -> Profile:
    profile = Profile(email="ada@example.com", role="customer")
    db_session.add(profile)
    db_session.commit()
    return profile


@pytest.fixture
def menu(db_session):
    restaurant = Restaurant(name="Mama Put", delivery_fee=500)
    other = Restaurant(name="Suya Spot", delivery_fee=300)
    db_session.add_all([restaurant, other])
    db_session.flush()
    items = {
        "jollof": MenuItem(restaurant_id=restaurant.id, name="Jollof Rice", price=2500),
        "plantain": MenuItem(restaurant_id=restaurant.id, name="Dodo", price=800),
        "pepper_soup": MenuItem(
            restaurant_id=restaurant.id, name="Pepper Soup", price=3000, is_available=False
        ),
        "suya": MenuItem(restaurant_id=other.id, name="Suya", price=1500),
    }
    db_session.add_all(items.values())
    db_session.commit()
    return restaurant, items


def _create(db_session, clock, customer, restaurant, lines, **fields):
    lifecycle = OrderLifecycle(db_session, AuditPipeline(db_session, clock=clock), clock=clock)
    cart = price_cart(db_session, restaurant.id, lines)
    fields.setdefault("delivery_address", "12 Allen Avenue, Ikeja")
    fields.setdefault("customer_name", "Ada Obi")
    fields.setdefault("customer_phone", "08031234567")
    return lifecycle.create_order(customer.id, cart, **fields)


def test_new_order_is_priced_from_the_menu_and_awaits_payment(db_session, clock, customer, menu):
    restaurant, items = menu

    order = _create(
        db_session,
        clock,
        customer,
        restaurant,
        [
            CartLine(items["jollof"].id, 2, notes="extra pepper"),
            CartLine(items["plantain"].id, 1),
        ],
        ip_address="203.0.113.9",
    )

    db_session.expire_all()
    stored = db_session.get(Order, order.id)
    assert stored.status == "awaiting_payment"
    assert stored.customer_id == customer.id
    assert stored.restaurant_id == restaurant.id
    assert stored.subtotal == 2 * 2500 + 800
    assert stored.delivery_fee == 500
    assert stored.total == 2 * 2500 + 800 + 500
    assert re.fullmatch(r"ORD-20260115-[0-9A-F]{6}", stored.order_number)

    lines = sorted(
        db_session.scalars(select(OrderItem).where(OrderItem.order_id == order.id)),
        key=lambda line: line.name,
    )
    assert [(line.name, line.price, line.quantity, line.subtotal) for line in lines] == [
        ("Dodo", 800, 1, 800),
        ("Jollof Rice", 2500, 2, 5000),
    ]
    assert lines[1].notes == "extra pepper"

    [entry] = db_session.scalars(select(AuditLog)).all()
    assert entry.action == "order_created"
    assert entry.actor_id == customer.id
    assert entry.target_type == "orders"
    assert entry.target_id == order.id
    assert entry.ip_address == "203.0.113.9"
    assert entry.details == {
        "order_number": stored.order_number,
        "restaurant_id": restaurant.id,
        "subtotal": 5800,
        "total": 6300,
        "item_count": 2,
    }


def test_line_prices_are_frozen_at_order_time(db_session, clock, customer, menu):
    restaurant, items = menu
    order = _create(db_session, clock, customer, restaurant, [CartLine(items["jollof"].id, 1)])

    items["jollof"].price = 9999
    db_session.commit()

    db_session.expire_all()
    [line] = db_session.get(Order, order.id).items
    assert line.price == 2500
    assert db_session.get(Order, order.id).total == 3000


@pytest.mark.parametrize(
    "key,message",
    [
        ("pepper_soup", '"Pepper Soup" is currently unavailable'),
        ("suya", "Cart contains items from multiple restaurants"),
    ],
)
def test_cart_with_unorderable_item_is_refused(db_session, customer, menu, key, message):
    restaurant, items = menu

    with pytest.raises(InvalidInput) as excinfo:
        price_cart(
            db_session,
            restaurant.id,
            [CartLine(items["jollof"].id, 1), CartLine(items[key].id, 1)],
        )

    assert excinfo.value.message == message
    assert db_session.scalars(select(Order)).all() == []


def test_unknown_item_and_empty_cart_are_refused(db_session, menu):
    restaurant, _ = menu

    with pytest.raises(InvalidInput, match="no longer exists"):
        price_cart(db_session, restaurant.id, [CartLine("missing-item", 1)])
    with pytest.raises(InvalidInput, match="at least 1 item"):
        price_cart(db_session, restaurant.id, [])


def test_closed_or_unknown_restaurant_is_refused(db_session, menu):
    restaurant, items = menu
    restaurant.is_open = False
    db_session.commit()

    with pytest.raises(InvalidInput, match="currently closed"):
        price_cart(db_session, restaurant.id, [CartLine(items["jollof"].id, 1)])
    with pytest.raises(NotFound):
        price_cart(db_session, "no-such-restaurant", [CartLine(items["jollof"].id, 1)])
