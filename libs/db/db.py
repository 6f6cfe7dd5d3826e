"""Database session wiring shared across services.

Each request (or scheduled job) receives its own session through
:func:`get_db`; nothing outside this module holds a long-lived handle.
"""
from __future__ import annotations

from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from libs.env import get_database_url


def _connect_args(url: str) -> dict[str, object]:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


DB_URL = get_database_url()

engine = create_engine(DB_URL, future=True, connect_args=_connect_args(DB_URL))
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
