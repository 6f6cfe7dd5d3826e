"""FastAPI dependencies resolving the caller and enforcing roles."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from infra import Profile
from libs.db.db import get_db
from libs.errors import Forbidden, Unauthorized, UpstreamFailure

from .tokens import SESSION_TOKEN, InvalidSessionToken, decode_subject

logger = logging.getLogger(__name__)

SESSION_COOKIE = "session"

bearer = HTTPBearer(auto_error=False)


class Role(str, Enum):
    CUSTOMER = "customer"
    RESTAURANT_OWNER = "restaurant_owner"
    ADMIN = "admin"


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str
    role: str


def _session_token(request: Request, creds: HTTPAuthorizationCredentials | None) -> str | None:
    if creds and creds.credentials:
        return creds.credentials
    return request.cookies.get(SESSION_COOKIE)


def get_current_identity(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> Identity:
    """Resolve the caller from its session token and look up its role.

    Missing, expired and forged tokens produce the same ``Unauthorized``
    response. The role comes from ``profiles`` on every call.
    """

    token = _session_token(request, creds)
    if not token:
        raise Unauthorized()
    try:
        user_id = decode_subject(token, expected_type=SESSION_TOKEN)
    except InvalidSessionToken:
        logger.info("Rejected session token", extra={"path": request.url.path})
        raise Unauthorized() from None

    try:
        profile = db.get(Profile, user_id)
    except SQLAlchemyError as exc:
        logger.error("Role lookup failed", exc_info=True)
        raise UpstreamFailure() from exc
    if profile is None:
        raise Unauthorized()
    return Identity(user_id=profile.id, email=profile.email, role=profile.role)


def require_auth(identity: Identity = Depends(get_current_identity)) -> Identity:
    return identity


def require_role(role: Role) -> Callable[..., Identity]:
    def checker(identity: Identity = Depends(get_current_identity)) -> Identity:
        if identity.role != role.value:
            raise Forbidden()
        return identity

    return checker


__all__ = [
    "Identity",
    "Role",
    "SESSION_COOKIE",
    "get_current_identity",
    "require_auth",
    "require_role",
]
