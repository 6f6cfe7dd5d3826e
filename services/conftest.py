import os
from pathlib import Path

import pytest

TEST_DB = os.getenv("TEST_DATABASE_PATH", "/tmp/ordering_platform_tests.db")
os.environ.setdefault("DATABASE_URL", f"sqlite+pysqlite:///{TEST_DB}")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")

from sqlalchemy import create_engine, delete  # noqa: E402

from libs.db import db  # noqa: E402

connect_args = (
    {"check_same_thread": False} if os.environ["DATABASE_URL"].startswith("sqlite") else {}
)

if str(db.engine.url) != os.environ["DATABASE_URL"]:
    db.engine.dispose()
    new_engine = create_engine(os.environ["DATABASE_URL"], future=True, connect_args=connect_args)
    db.engine = new_engine
    db.SessionLocal.configure(bind=new_engine)

if os.environ["DATABASE_URL"].startswith("sqlite"):
    Path(TEST_DB).touch()

from infra import (  # noqa: E402
    AuditBase,
    AuditLog,
    MenuItem,
    Order,
    OrderingBase,
    OrderItem,
    Profile,
    Restaurant,
)
from libs.session_guard import issue_session_token  # noqa: E402
from services.auth_service.app.models import Base as CredentialBase  # noqa: E402
from services.auth_service.app.models import AuthCode, Credential  # noqa: E402

OrderingBase.metadata.drop_all(bind=db.engine)
OrderingBase.metadata.create_all(bind=db.engine)
AuditBase.metadata.drop_all(bind=db.engine)
AuditBase.metadata.create_all(bind=db.engine)
CredentialBase.metadata.drop_all(bind=db.engine)
CredentialBase.metadata.create_all(bind=db.engine)


@pytest.fixture(autouse=True)
def _clean_tables():
    yield
    with db.SessionLocal() as session:
        for model in (
            AuditLog,
            AuthCode,
            Credential,
            OrderItem,
            Order,
            MenuItem,
            Restaurant,
            Profile,
        ):
            session.execute(delete(model))
        session.commit()


@pytest.fixture
def db_session():
    session = db.SessionLocal(expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_profile(db_session):
    def factory(role: str = "customer", email: str | None = None, **fields) -> Profile:
        profile = Profile(
            email=email or f"{role}-{os.urandom(4).hex()}@example.com",
            role=role,
            **fields,
        )
        db_session.add(profile)
        db_session.commit()
        return profile

    return factory


@pytest.fixture
def make_order(db_session, make_profile):
    def factory(customer: Profile | None = None, status: str = "awaiting_payment", total: int = 5000, **fields) -> Order:
        owner = customer or make_profile("customer")
        order = Order(customer_id=owner.id, status=status, total=total, **fields)
        db_session.add(order)
        db_session.commit()
        return order

    return factory


@pytest.fixture
def auth_headers():
    def build(profile: Profile) -> dict:
        return {"Authorization": f"Bearer {issue_session_token(profile.id)}"}

    return build


@pytest.fixture
def make_menu(db_session):
    def factory(prices=(2500, 1200), *, delivery_fee: int = 500, **fields):
        restaurant = Restaurant(name="Mama Put", delivery_fee=delivery_fee, **fields)
        db_session.add(restaurant)
        db_session.flush()
        items = [
            MenuItem(restaurant_id=restaurant.id, name=f"Dish {index}", price=price)
            for index, price in enumerate(prices, start=1)
        ]
        db_session.add_all(items)
        db_session.commit()
        return restaurant, items

    return factory
