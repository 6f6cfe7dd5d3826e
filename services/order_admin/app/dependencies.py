from __future__ import annotations

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from libs.audit import AuditPipeline
from libs.db.db import get_db
from libs.network import get_client_ip
from libs.orders import OrderLifecycle
from libs.session_guard import Identity, Role, require_auth, require_role

require_admin = require_role(Role.ADMIN)


def get_audit_pipeline(db: Session = Depends(get_db)) -> AuditPipeline:
    return AuditPipeline(db)


def get_order_lifecycle(
    db: Session = Depends(get_db),
    audit: AuditPipeline = Depends(get_audit_pipeline),
) -> OrderLifecycle:
    return OrderLifecycle(db, audit)


def client_origin(request: Request) -> str:
    return get_client_ip(request)


__all__ = [
    "Identity",
    "client_origin",
    "get_audit_pipeline",
    "get_order_lifecycle",
    "require_admin",
    "require_auth",
]
