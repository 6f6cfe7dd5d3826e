"""Self-service personal data export."""
from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from infra import Order, Profile
from libs.db.db import get_db
from libs.errors import UpstreamFailure
from libs.session_guard import Identity, require_auth
from schemas.ordering import AccountExport, OrderRecord, ProfileRecord

logger = logging.getLogger(__name__)

DATA_CONTROLLER = "Ordering Platform"

router = APIRouter(tags=["account"])


@router.get("/account/export", response_model=AccountExport)
def export_account(
    identity: Identity = Depends(require_auth),
    db: Session = Depends(get_db),
) -> JSONResponse:
    """Return the caller's profile and order history as a download.

    Only rows owned by the caller are read, whatever their role.
    """

    try:
        profile = db.get(Profile, identity.user_id)
        orders = db.scalars(
            select(Order)
            .where(Order.customer_id == identity.user_id)
            .order_by(Order.created_at.desc())
        ).all()
    except SQLAlchemyError as exc:
        logger.error("Account export failed", exc_info=True, extra={"user_id": identity.user_id})
        raise UpstreamFailure() from exc

    document = AccountExport(
        exported_at=datetime.now(timezone.utc),
        data_controller=DATA_CONTROLLER,
        subject=ProfileRecord.model_validate(profile) if profile is not None else None,
        orders=[OrderRecord.model_validate(order) for order in orders],
    )
    logger.info(
        "Account data exported",
        extra={"user_id": identity.user_id, "orders": len(document.orders)},
    )
    return JSONResponse(
        content=document.model_dump(mode="json"),
        headers={
            "Content-Disposition": f'attachment; filename="data-export-{identity.user_id}.json"'
        },
    )
