"""Append-only audit trail model."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """A privileged action, recorded after its effect was committed.

    Rows are never updated or deleted by application code.
    """

    __tablename__ = "audit_log"

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    action: str = Column(String(64), nullable=False, index=True)
    actor_id: Optional[str] = Column(String(36), nullable=True, index=True)
    target_type: Optional[str] = Column(String(64), nullable=True)
    target_id: Optional[str] = Column(String(64), nullable=True)
    ip_address: Optional[str] = Column(String(64), nullable=True)
    # ``metadata`` is reserved on declarative classes, the column keeps the name.
    details: Dict[str, object] = Column("metadata", JSON, nullable=False, default=dict)
    created_at: datetime = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, index=True
    )

    __table_args__ = (Index("ix_audit_log_target", "target_type", "target_id"),)


__all__ = ["Base", "AuditLog"]
