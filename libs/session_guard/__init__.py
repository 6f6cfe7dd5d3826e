"""Session resolution and role enforcement for privileged endpoints."""
from __future__ import annotations

from .fastapi import (
    SESSION_COOKIE,
    Identity,
    Role,
    get_current_identity,
    require_auth,
    require_role,
)
from .tokens import (
    AuthCodeClaims,
    InvalidSessionToken,
    decode_auth_code,
    decode_subject,
    issue_auth_code,
    issue_session_token,
)

__all__ = [
    "AuthCodeClaims",
    "Identity",
    "InvalidSessionToken",
    "Role",
    "SESSION_COOKIE",
    "decode_auth_code",
    "decode_subject",
    "get_current_identity",
    "issue_auth_code",
    "issue_session_token",
    "require_auth",
    "require_role",
]
