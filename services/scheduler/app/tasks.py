"""The daily maintenance batch."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict

from sqlalchemy.orm import Session

from libs.audit import AuditPipeline
from libs.orders import OrderLifecycle

from .config import Settings
from .monitor import AUDIT_TARGET_TYPE, DAILY_SECURITY_CHECK, AnomalyMonitor
from .sweeper import AutoCancellationSweeper

logger = logging.getLogger(__name__)

DAILY_LOG_EXPORT_CHECK = "daily_log_export_check"
TASK_FAILED = "Task failed"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DailyTasks:
    """Run the sweep, the archive check and the daily security check.

    A failing task is reported under ``<name>_error`` and the remaining tasks
    still run.
    """

    def __init__(
        self,
        db: Session,
        audit: AuditPipeline,
        lifecycle: OrderLifecycle,
        settings: Settings,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._db = db
        self._audit = audit
        self._lifecycle = lifecycle
        self._settings = settings
        self._clock = clock

    def cancel_unpaid_orders(self) -> Dict[str, int]:
        sweeper = AutoCancellationSweeper(
            self._db,
            self._lifecycle,
            timeout=timedelta(minutes=self._settings.payment_timeout_minutes),
            batch_size=self._settings.sweep_batch_size,
            clock=self._clock,
        )
        return sweeper.run().as_dict()

    def check_archive_backlog(self) -> Dict[str, Any]:
        cutoff = self._clock() - timedelta(days=self._settings.archive_after_days)
        eligible = self._audit.count_older_than(cutoff)
        metadata = {"eligible_for_archive": eligible, "cutoff": cutoff.isoformat()}
        self._audit.append(DAILY_LOG_EXPORT_CHECK, target_type=AUDIT_TARGET_TYPE, metadata=metadata)
        return metadata

    def daily_security_check(self) -> Dict[str, Any]:
        monitor = AnomalyMonitor(
            self._audit,
            window=timedelta(hours=self._settings.daily_window_hours),
            action=DAILY_SECURITY_CHECK,
        )
        return monitor.run()

    def run(self) -> Dict[str, Any]:
        results: Dict[str, Any] = {}
        for name, task in (
            ("auto_cancellation", self.cancel_unpaid_orders),
            ("audit_archive", self.check_archive_backlog),
            ("security_check", self.daily_security_check),
        ):
            try:
                results[name] = task()
            except Exception:
                self._db.rollback()
                logger.exception("Daily task failed", extra={"task": name})
                results[f"{name}_error"] = TASK_FAILED
        return results
