from datetime import datetime, timedelta, timezone

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.orm import Session

from infra import AuditLog, Order
from libs.audit import AuditPipeline
from libs.db.db import get_db
from libs.orders import OrderLifecycle
from libs.orders.lifecycle import _OrderSnapshot
from services.order_admin.app.dependencies import get_order_lifecycle
from services.order_admin.app.main import app


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers(make_profile, auth_headers):
    return auth_headers(make_profile("admin"))


def _audit_entries(db_session, action):
    db_session.expire_all()
    return list(db_session.scalars(select(AuditLog).where(AuditLog.action == action)))


def test_admin_routes_require_a_session(client, make_order):
    order = make_order()
    assert client.get("/admin/orders").status_code == 401
    assert client.get(f"/admin/orders/{order.id}").status_code == 401
    response = client.post("/admin/confirm-payment", json={"order_id": order.id})
    assert response.status_code == 401
    assert response.json() == {"error": "Authentication required"}


@pytest.mark.parametrize("role", ["customer", "restaurant_owner"])
def test_non_admin_roles_are_forbidden(client, make_profile, make_order, auth_headers, role):
    order = make_order()
    headers = auth_headers(make_profile(role))

    assert client.get("/admin/stats", headers=headers).status_code == 403
    response = client.patch(
        f"/admin/orders/{order.id}", json={"status": "cancelled"}, headers=headers
    )
    assert response.status_code == 403
    assert response.json() == {"error": "Insufficient permissions"}


def test_role_is_read_from_storage_on_every_request(client, db_session, make_profile, auth_headers):
    admin = make_profile("admin")
    headers = auth_headers(admin)
    assert client.get("/admin/stats", headers=headers).status_code == 200

    admin.role = "customer"
    db_session.commit()

    assert client.get("/admin/stats", headers=headers).status_code == 403


def test_unknown_order_is_not_found(client, admin_headers):
    response = client.get("/admin/orders/does-not-exist", headers=admin_headers)
    assert response.status_code == 404
    assert response.json() == {"error": "Order not found"}


def test_listing_filters_by_status_and_paginates(client, make_profile, make_order, admin_headers):
    customer = make_profile("customer")
    base = datetime(2024, 3, 1, tzinfo=timezone.utc)
    for index in range(23):
        make_order(customer=customer, created_at=base + timedelta(minutes=index))
    make_order(customer=customer, status="delivered", created_at=base - timedelta(days=1))

    first = client.get("/admin/orders", headers=admin_headers).json()
    assert first["total"] == 24
    assert first["limit"] == 20
    assert first["page"] == 1
    assert len(first["orders"]) == 20
    created = [order["created_at"] for order in first["orders"]]
    assert created == sorted(created, reverse=True)

    second = client.get("/admin/orders", params={"page": 2}, headers=admin_headers).json()
    assert len(second["orders"]) == 4
    assert second["orders"][-1]["status"] == "delivered"

    delivered = client.get(
        "/admin/orders", params={"status": "delivered"}, headers=admin_headers
    ).json()
    assert delivered["total"] == 1
    assert [order["status"] for order in delivered["orders"]] == ["delivered"]


def test_listing_rejects_unknown_status_filter(client, admin_headers):
    response = client.get("/admin/orders", params={"status": "lost"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Unknown order status: lost"}


@pytest.mark.parametrize("page", [0, -3, 10_001, 10**30])
def test_listing_rejects_out_of_range_pages(client, admin_headers, page):
    response = client.get("/admin/orders", params={"page": page}, headers=admin_headers)
    assert response.status_code == 400
    assert "page" in response.json()["error"]


def test_confirm_payment_then_confirm_again(client, db_session, make_order, admin_headers):
    order = make_order(total=5000)
    headers = {**admin_headers, "X-Forwarded-For": "198.51.100.7"}

    response = client.post(
        "/admin/confirm-payment",
        json={"order_id": order.id, "payment_reference": "REF123"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "order_id": order.id,
        "previous_status": "awaiting_payment",
        "status": "confirmed",
    }

    record = client.get(f"/admin/orders/{order.id}", headers=admin_headers).json()
    assert record["status"] == "confirmed"
    assert record["payment_reference"] == "REF123"
    assert record["confirmed_at"] is not None

    [entry] = _audit_entries(db_session, "payment_confirmed")
    assert entry.target_id == order.id
    assert entry.ip_address == "198.51.100.7"
    assert entry.details["total"] == 5000
    assert entry.details["payment_reference"] == "REF123"

    again = client.post(
        "/admin/confirm-payment",
        json={"order_id": order.id, "payment_reference": "REF123"},
        headers=admin_headers,
    )
    assert again.status_code == 422
    assert again.json() == {"error": "Order is confirmed, not awaiting payment"}
    assert len(_audit_entries(db_session, "payment_confirmed")) == 1


def test_backwards_transition_is_refused(client, db_session, make_order, admin_headers):
    order = make_order(status="preparing")

    response = client.patch(
        f"/admin/orders/{order.id}", json={"status": "confirmed"}, headers=admin_headers
    )

    assert response.status_code == 422
    assert response.json() == {"error": "Cannot transition from preparing to confirmed"}
    db_session.expire_all()
    assert db_session.get(Order, order.id).status == "preparing"
    assert _audit_entries(db_session, "order_status_updated") == []


def test_forward_transition_sets_timestamp_and_audits(client, db_session, make_order, admin_headers):
    order = make_order(status="confirmed")

    response = client.patch(
        f"/admin/orders/{order.id}", json={"status": "preparing"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["previous_status"] == "confirmed"
    db_session.expire_all()
    stored = db_session.get(Order, order.id)
    assert stored.status == "preparing"
    assert stored.preparing_at is not None
    [entry] = _audit_entries(db_session, "order_status_updated")
    assert entry.details["from"] == "confirmed"
    assert entry.details["to"] == "preparing"
    assert entry.ip_address == "testclient"


def test_cancellation_keeps_reason(client, db_session, make_order, admin_headers):
    order = make_order()

    response = client.patch(
        f"/admin/orders/{order.id}",
        json={"status": "cancelled", "cancellation_reason": "customer request"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    db_session.expire_all()
    stored = db_session.get(Order, order.id)
    assert stored.cancellation_reason == "customer request"
    assert stored.cancelled_at is not None


@pytest.mark.parametrize(
    "payload,message",
    [
        ({"status": "teleported"}, "Unknown order status: teleported"),
        ({}, "status: Field required"),
    ],
)
def test_status_update_validates_input(client, make_order, admin_headers, payload, message):
    order = make_order()
    response = client.patch(f"/admin/orders/{order.id}", json=payload, headers=admin_headers)
    assert response.status_code == 400
    assert response.json() == {"error": message}


def test_concurrent_status_change_is_reported_as_conflict(client, make_order, admin_headers):
    order = make_order(status="preparing")

    def stale_lifecycle(db: Session = Depends(get_db)) -> OrderLifecycle:
        lifecycle = OrderLifecycle(db, AuditPipeline(db))
        lifecycle._read = lambda order_id: _OrderSnapshot(status="confirmed", total=order.total)
        return lifecycle

    app.dependency_overrides[get_order_lifecycle] = stale_lifecycle

    response = client.patch(
        f"/admin/orders/{order.id}", json={"status": "preparing"}, headers=admin_headers
    )

    assert response.status_code == 409


def test_stats_count_every_status_and_only_delivered_revenue(
    client, make_profile, make_order, admin_headers
):
    customer = make_profile("customer")
    make_order(customer=customer, status="delivered", total=4000)
    make_order(customer=customer, status="delivered", total=2500)
    make_order(customer=customer, status="cancelled", total=9000)
    make_order(customer=customer, status="awaiting_payment", total=1200)

    stats = client.get("/admin/stats", headers=admin_headers).json()

    assert stats["total_orders"] == 4
    assert stats["revenue"] == 6500
    assert stats["by_status"]["delivered"] == 2
    assert stats["by_status"]["preparing"] == 0
    assert set(stats["by_status"]) == {
        "awaiting_payment",
        "confirmed",
        "preparing",
        "out_for_delivery",
        "delivered",
        "cancelled",
    }


def test_health_and_metrics_routes(client):
    assert client.get("/health").json() == {"status": "ok", "service": "order-admin"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "ordering_http_requests_total" in metrics.text
