"""Periodic summary of recent audit activity."""
from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta
from typing import Any, Dict

from libs.audit import AuditPipeline
from libs.orders import PAYMENT_CONFIRMED

from .sweeper import ORDER_AUTO_CANCELLED

logger = logging.getLogger(__name__)

SECURITY_MONITOR_CHECK = "security_monitor_check"
DAILY_SECURITY_CHECK = "daily_security_check"
AUDIT_TARGET_TYPE = "audit_log"


def _period_label(window: timedelta) -> str:
    seconds = int(window.total_seconds())
    if seconds % 3600 == 0:
        return f"{seconds // 3600}h"
    if seconds % 60 == 0:
        return f"{seconds // 60}m"
    return f"{seconds}s"


class AnomalyMonitor:
    """Count recent audit actions and record the counts as an audit entry.

    The monitor raises no alerts; downstream alerting reads the recorded
    snapshots.
    """

    def __init__(
        self,
        audit: AuditPipeline,
        *,
        window: timedelta = timedelta(minutes=5),
        action: str = SECURITY_MONITOR_CHECK,
    ) -> None:
        self._audit = audit
        self._window = window
        self._action = action

    def run(self) -> Dict[str, Any]:
        entries = self._audit.recent_window(self._window)
        counts = Counter(entry.action for entry in entries)
        snapshot: Dict[str, Any] = {
            "period": _period_label(self._window),
            "action_summary": dict(counts),
            "payment_confirmations": counts.get(PAYMENT_CONFIRMED, 0),
            "auto_cancellations": counts.get(ORDER_AUTO_CANCELLED, 0),
        }
        self._audit.append(self._action, target_type=AUDIT_TARGET_TYPE, metadata=snapshot)
        logger.info(
            "Audit activity summarised",
            extra={"audit_action": self._action, "entries": len(entries)},
        )
        return snapshot
