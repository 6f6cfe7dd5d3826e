from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterator

import pytest

os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+pysqlite:///" + os.getenv("TEST_DATABASE_PATH", "/tmp/ordering_platform_tests.db"),
)
os.environ.setdefault("SESSION_SECRET", "test-session-secret")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from infra import AuditBase, Order, OrderingBase, Profile  # noqa: E402


class FrozenClock:
    """Settable UTC clock for time-dependent components."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def _restore_disabled_loggers():
    # alembic's env.py calls logging.config.fileConfig, which disables every
    # logger that already exists; undo that so later caplog assertions see records.
    yield
    for existing in logging.Logger.manager.loggerDict.values():
        if isinstance(existing, logging.Logger):
            existing.disabled = False


@pytest.fixture
def session_factory() -> Iterator[sessionmaker]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    OrderingBase.metadata.create_all(engine)
    AuditBase.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    finally:
        engine.dispose()


@pytest.fixture
def db_session(session_factory: sessionmaker) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def make_order(db_session: Session) -> Callable[..., Order]:
    customer = Profile(email="customer@example.com", role="customer")
    db_session.add(customer)
    db_session.commit()

    def factory(status: str = "awaiting_payment", total: int = 5000, **fields) -> Order:
        order = Order(customer_id=customer.id, status=status, total=total, subtotal=total, **fields)
        db_session.add(order)
        db_session.commit()
        return order

    return factory
