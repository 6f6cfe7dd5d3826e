"""Signed session and authorization-code tokens."""
from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import JWTError, jwt

from libs.secrets import get_secret

SESSION_SECRET = get_secret("SESSION_SECRET", default="dev-session-secret-change-me")
SESSION_ALG = "HS256"
SESSION_TTL_MINUTES = int(os.getenv("SESSION_TTL_MINUTES", "720"))
AUTH_CODE_TTL_SECONDS = int(os.getenv("AUTH_CODE_TTL_SECONDS", "600"))

SESSION_TOKEN = "session"
AUTH_CODE_TOKEN = "auth_code"


class InvalidSessionToken(ValueError):
    """The token is malformed, expired, forged or of the wrong type."""


def _encode(
    subject: str,
    token_type: str,
    lifetime: timedelta,
    now: datetime | None,
    **extra: Any,
) -> str:
    issued_at = now or datetime.now(timezone.utc)
    claims: Dict[str, Any] = {
        "sub": subject,
        "type": token_type,
        "iat": int(issued_at.timestamp()),
        "exp": int((issued_at + lifetime).timestamp()),
        **extra,
    }
    return jwt.encode(claims, SESSION_SECRET, algorithm=SESSION_ALG)


def _decode(token: str, expected_type: str) -> Dict[str, Any]:
    try:
        payload = jwt.decode(token, SESSION_SECRET, algorithms=[SESSION_ALG])
    except JWTError as exc:
        raise InvalidSessionToken(str(exc)) from exc
    if payload.get("type") != expected_type:
        raise InvalidSessionToken("Unexpected token type")
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidSessionToken("Missing subject")
    return payload


@dataclass(frozen=True)
class AuthCodeClaims:
    subject: str
    code_id: str


def issue_session_token(user_id: str, *, now: datetime | None = None) -> str:
    """Return a session token naming ``user_id``.

    Roles are deliberately absent: they are looked up on every request.
    """

    return _encode(user_id, SESSION_TOKEN, timedelta(minutes=SESSION_TTL_MINUTES), now)


def issue_auth_code(
    user_id: str,
    *,
    code_id: str | None = None,
    now: datetime | None = None,
) -> str:
    """Return a short-lived code exchangeable for a session at the callback.

    ``code_id`` travels as the ``jti`` claim; the identity provider records it
    so the code can be redeemed once.
    """

    return _encode(
        user_id,
        AUTH_CODE_TOKEN,
        timedelta(seconds=AUTH_CODE_TTL_SECONDS),
        now,
        jti=code_id or str(uuid.uuid4()),
    )


def decode_subject(token: str, *, expected_type: str) -> str:
    return _decode(token, expected_type)["sub"]


def decode_auth_code(token: str) -> AuthCodeClaims:
    payload = _decode(token, AUTH_CODE_TOKEN)
    code_id = payload.get("jti")
    if not isinstance(code_id, str) or not code_id:
        raise InvalidSessionToken("Missing code id")
    return AuthCodeClaims(subject=payload["sub"], code_id=code_id)


__all__ = [
    "AUTH_CODE_TOKEN",
    "AUTH_CODE_TTL_SECONDS",
    "AuthCodeClaims",
    "InvalidSessionToken",
    "SESSION_TOKEN",
    "decode_auth_code",
    "decode_subject",
    "issue_auth_code",
    "issue_session_token",
]
