from __future__ import annotations

import hmac
import logging
from datetime import datetime, timedelta, timezone

from fastapi import Depends, FastAPI, Header
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from libs.audit import AuditPipeline
from libs.db.db import get_db
from libs.errors import Unauthorized, UpstreamFailure, install_error_handlers
from libs.observability import instrument
from libs.orders import OrderLifecycle

from .config import Settings, get_settings
from .monitor import AnomalyMonitor
from .tasks import DailyTasks

SERVICE_NAME = "scheduler"

logger = logging.getLogger(__name__)


def require_cron_secret(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Accept only ``Authorization: Bearer <cron secret>``.

    With no secret configured every call is refused.
    """

    secret = settings.cron_secret
    if not secret or not authorization:
        raise Unauthorized("Unauthorized")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() != "bearer" or not hmac.compare_digest(
        credentials.encode("utf-8"), secret.encode("utf-8")
    ):
        raise Unauthorized("Unauthorized")


def get_audit_pipeline(db: Session = Depends(get_db)) -> AuditPipeline:
    return AuditPipeline(db)


def get_daily_tasks(
    db: Session = Depends(get_db),
    audit: AuditPipeline = Depends(get_audit_pipeline),
    settings: Settings = Depends(get_settings),
) -> DailyTasks:
    return DailyTasks(db, audit, OrderLifecycle(db, audit), settings)


def create_app() -> FastAPI:
    app = FastAPI(title="Scheduler Service", version="0.1.0")
    instrument(app, service_name=SERVICE_NAME)
    install_error_handlers(app)

    @app.get("/cron/security-monitor", dependencies=[Depends(require_cron_secret)])
    def security_monitor(
        db: Session = Depends(get_db),
        audit: AuditPipeline = Depends(get_audit_pipeline),
        settings: Settings = Depends(get_settings),
    ):
        monitor = AnomalyMonitor(audit, window=timedelta(minutes=settings.monitor_window_minutes))
        try:
            snapshot = monitor.run()
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Security monitor failed", exc_info=True)
            raise UpstreamFailure() from exc
        return {
            "ok": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "period": snapshot["period"],
            "action_counts": snapshot["action_summary"],
        }

    @app.get("/cron/daily-tasks", dependencies=[Depends(require_cron_secret)])
    def daily_tasks(tasks: DailyTasks = Depends(get_daily_tasks)):
        return {
            "ok": True,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "results": tasks.run(),
        }

    return app


app = create_app()
