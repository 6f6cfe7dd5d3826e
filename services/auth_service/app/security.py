"""Password hashing and strength rules for the local identity provider."""
from __future__ import annotations

from passlib.context import CryptContext

pwd = CryptContext(schemes=["bcrypt"], deprecated="auto")

PASSWORD_MIN_LENGTH = 6
PASSWORD_REQUIREMENTS_MESSAGE = f"Password must be at least {PASSWORD_MIN_LENGTH} characters"


def validate_password_requirements(password: str) -> tuple[bool, str | None]:
    """Return ``(is_valid, message)`` for ``password``.

    bcrypt only reads the first 72 bytes, so longer passwords are refused
    rather than silently truncated.
    """

    if len(password) < PASSWORD_MIN_LENGTH:
        return False, PASSWORD_REQUIREMENTS_MESSAGE
    if len(password.encode("utf-8")) > 72:
        return False, "Password must be at most 72 bytes"
    return True, None


def hash_password(password: str) -> str:
    return pwd.hash(password)


def verify_password(password: str, hashed: str | None) -> bool:
    if hashed is None:
        # keep unknown accounts as slow as wrong passwords
        pwd.dummy_verify()
        return False
    return pwd.verify(password, hashed)


__all__ = [
    "PASSWORD_MIN_LENGTH",
    "PASSWORD_REQUIREMENTS_MESSAGE",
    "hash_password",
    "validate_password_requirements",
    "verify_password",
]
