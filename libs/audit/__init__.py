"""Audit trail pipeline for privileged mutations."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from prometheus_client import Counter
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from infra import AuditLog

logger = logging.getLogger(__name__)

_APPEND_FAILURES = Counter(
    "audit_append_failures_total",
    "Audit entries that could not be written after their mutation committed",
    labelnames=("action",),
)

Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditPipeline:
    """Append and query audit entries through an injected session.

    ``append`` is called after the triggering mutation committed. A failed
    append is logged and counted but never raised: the mutation stands.
    """

    def __init__(self, db: Session, *, clock: Clock = _utcnow) -> None:
        self._db = db
        self._clock = clock

    def append(
        self,
        action: str,
        *,
        actor_id: Optional[str] = None,
        target_type: Optional[str] = None,
        target_id: Optional[str] = None,
        ip_address: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        entry = AuditLog(
            action=action,
            actor_id=actor_id,
            target_type=target_type,
            target_id=target_id,
            ip_address=ip_address,
            details=dict(metadata or {}),
            created_at=self._clock(),
        )
        try:
            self._db.add(entry)
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            _APPEND_FAILURES.labels(action).inc()
            logger.error(
                "Audit append failed; mutation already committed",
                exc_info=True,
                extra={"audit_action": action, "target_type": target_type, "target_id": target_id},
            )
            return None
        return entry

    def recent_window(self, duration: timedelta) -> List[AuditLog]:
        """Return entries created within ``duration`` of now, newest first."""

        since = self._clock() - duration
        statement = (
            select(AuditLog)
            .where(AuditLog.created_at >= since)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        )
        return list(self._db.scalars(statement))

    def count_older_than(self, cutoff: datetime) -> int:
        statement = select(func.count(AuditLog.id)).where(AuditLog.created_at < cutoff)
        return int(self._db.scalar(statement) or 0)


__all__ = ["AuditPipeline"]
