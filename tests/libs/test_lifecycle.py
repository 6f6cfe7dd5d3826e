from __future__ import annotations

import logging

import pytest
from prometheus_client import REGISTRY
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from infra import AuditLog, Order, OrderingBase
from libs.audit import AuditPipeline
from libs.errors import Conflict, InvalidInput, InvalidTransition, NotFound
from libs.orders import OrderLifecycle, OrderStatus
from libs.orders.lifecycle import _OrderSnapshot


def _lifecycle(session: Session, clock) -> OrderLifecycle:
    return OrderLifecycle(session, AuditPipeline(session, clock=clock), clock=clock)


def _reload(session: Session, order_id: str) -> Order:
    session.expire_all()
    return session.get(Order, order_id)


def _audit_entries(session: Session):
    return list(session.scalars(select(AuditLog).order_by(AuditLog.id)))


def _append_failures(action: str) -> float:
    return REGISTRY.get_sample_value("audit_append_failures_total", {"action": action}) or 0.0


def test_confirm_payment_records_reference_and_audits_once(db_session, make_order, clock):
    order = make_order(total=5000)
    lifecycle = _lifecycle(db_session, clock)

    result = lifecycle.confirm_payment(
        order.id, actor_id="admin-1", ip_address="203.0.113.9", payment_reference="REF123"
    )

    assert result.previous is OrderStatus.AWAITING_PAYMENT
    assert result.current is OrderStatus.CONFIRMED
    stored = _reload(db_session, order.id)
    assert stored.status == "confirmed"
    assert stored.payment_reference == "REF123"
    assert stored.payment_confirmed_by == "admin-1"
    assert stored.confirmed_at is not None
    assert stored.payment_confirmed_at is not None
    assert stored.preparing_at is None

    entries = _audit_entries(db_session)
    assert [entry.action for entry in entries] == ["payment_confirmed"]
    assert entries[0].actor_id == "admin-1"
    assert entries[0].ip_address == "203.0.113.9"
    assert entries[0].target_type == "orders"
    assert entries[0].target_id == order.id
    assert entries[0].details == {
        "from": "awaiting_payment",
        "to": "confirmed",
        "total": 5000,
        "payment_reference": "REF123",
    }

    with pytest.raises(InvalidTransition) as excinfo:
        lifecycle.confirm_payment(order.id, actor_id="admin-1", payment_reference="REF123")
    assert excinfo.value.current == "confirmed"
    assert excinfo.value.message == "Order is confirmed, not awaiting payment"
    assert len(_audit_entries(db_session)) == 1


def test_preparing_order_cannot_be_moved_back_to_confirmed(db_session, make_order, clock):
    order = make_order(status="preparing")
    lifecycle = _lifecycle(db_session, clock)

    with pytest.raises(InvalidTransition) as excinfo:
        lifecycle.apply_transition(order.id, "confirmed", actor_id="admin-1")

    assert excinfo.value.current == "preparing"
    assert excinfo.value.requested == "confirmed"
    assert excinfo.value.status_code == 422
    assert _reload(db_session, order.id).status == "preparing"
    assert _audit_entries(db_session) == []


def test_happy_path_stamps_every_status_on_the_way(db_session, make_order, clock):
    order = make_order()
    lifecycle = _lifecycle(db_session, clock)

    path = ["confirmed", "preparing", "out_for_delivery", "delivered"]
    for status in path:
        clock.advance(minutes=10)
        lifecycle.apply_transition(order.id, status, actor_id="admin-1", ip_address="10.0.0.1")

    stored = _reload(db_session, order.id)
    assert stored.status == "delivered"
    assert stored.confirmed_at is not None
    assert stored.preparing_at is not None
    assert stored.out_for_delivery_at is not None
    assert stored.delivered_at is not None
    assert stored.cancelled_at is None
    assert stored.cancellation_reason is None

    entries = _audit_entries(db_session)
    assert [entry.action for entry in entries] == ["order_status_updated"] * 4
    assert [(entry.details["from"], entry.details["to"]) for entry in entries] == [
        ("awaiting_payment", "confirmed"),
        ("confirmed", "preparing"),
        ("preparing", "out_for_delivery"),
        ("out_for_delivery", "delivered"),
    ]


def test_cancellation_persists_reason_only_when_given(db_session, make_order, clock):
    with_reason = make_order(status="confirmed")
    without_reason = make_order(status="out_for_delivery")
    lifecycle = _lifecycle(db_session, clock)

    lifecycle.apply_transition(
        with_reason.id, "cancelled", actor_id="admin-1", cancellation_reason="Customer request"
    )
    lifecycle.apply_transition(without_reason.id, OrderStatus.CANCELLED, actor_id="admin-1")

    first = _reload(db_session, with_reason.id)
    assert first.status == "cancelled"
    assert first.cancelled_at is not None
    assert first.cancellation_reason == "Customer request"

    second = _reload(db_session, without_reason.id)
    assert second.cancelled_at is not None
    assert second.cancellation_reason is None


def test_unknown_order_and_unknown_status_are_rejected(db_session, make_order, clock):
    order = make_order()
    lifecycle = _lifecycle(db_session, clock)

    with pytest.raises(NotFound):
        lifecycle.apply_transition("does-not-exist", "confirmed", actor_id="admin-1")
    with pytest.raises(InvalidInput):
        lifecycle.apply_transition(order.id, "refunded", actor_id="admin-1")
    assert _audit_entries(db_session) == []


def test_stale_read_loses_the_race_with_conflict(session_factory, make_order, clock):
    order = make_order(status="confirmed")
    winner_session = session_factory()
    loser_session = session_factory()
    winner = _lifecycle(winner_session, clock)
    loser = _lifecycle(loser_session, clock)

    # both callers observed "confirmed"; the winner commits first
    winner.apply_transition(order.id, "cancelled", actor_id="admin-1")
    loser._read = lambda order_id: _OrderSnapshot(status="confirmed", total=5000)

    with pytest.raises(Conflict):
        loser.apply_transition(order.id, "preparing", actor_id="admin-2")

    check = session_factory()
    stored = check.get(Order, order.id)
    assert stored.status == "cancelled"
    assert stored.cancelled_at is not None
    assert stored.preparing_at is None
    entries = _audit_entries(check)
    assert len(entries) == 1
    assert entries[0].details == {"from": "confirmed", "to": "cancelled"}
    for session in (winner_session, loser_session, check):
        session.close()


def test_sequential_double_transition_is_rejected_not_duplicated(db_session, make_order, clock):
    order = make_order(status="out_for_delivery")
    lifecycle = _lifecycle(db_session, clock)

    lifecycle.apply_transition(order.id, "delivered", actor_id="admin-1")
    with pytest.raises(InvalidTransition):
        lifecycle.apply_transition(order.id, "delivered", actor_id="admin-1")

    assert len(_audit_entries(db_session)) == 1


def test_audit_failure_does_not_unwind_committed_transition(db_session, make_order, clock, caplog):
    order = make_order()
    # an audit store without the audit table: every append fails
    broken_engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    OrderingBase.metadata.create_all(broken_engine)
    broken_session = sessionmaker(bind=broken_engine)()
    lifecycle = OrderLifecycle(db_session, AuditPipeline(broken_session, clock=clock), clock=clock)
    failures_before = _append_failures("order_status_updated")

    with caplog.at_level(logging.ERROR, logger="libs.audit"):
        result = lifecycle.apply_transition(order.id, "cancelled", actor_id="admin-1")

    assert result.current is OrderStatus.CANCELLED
    assert _reload(db_session, order.id).status == "cancelled"
    assert _append_failures("order_status_updated") == failures_before + 1
    [record] = [r for r in caplog.records if r.name == "libs.audit"]
    assert record.levelno == logging.ERROR
    assert record.audit_action == "order_status_updated"
    assert record.target_id == order.id
    broken_session.close()
    broken_engine.dispose()
