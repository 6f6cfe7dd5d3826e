"""Identity provider used by the login, signup and callback endpoints.

The provider owns credentials; the service only sees profiles and the
provider's failure categories, which it maps to stable client messages.
"""
from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Protocol

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from infra import Profile
from libs.session_guard import InvalidSessionToken, decode_auth_code, issue_auth_code
from libs.session_guard.tokens import AUTH_CODE_TTL_SECONDS

from .models import AuthCode, Credential
from .security import hash_password, validate_password_requirements, verify_password

logger = logging.getLogger(__name__)

CUSTOMER_ROLE = "customer"


class IdentityProviderError(Exception):
    """Base class for failures reported by an identity provider."""


class InvalidCredentials(IdentityProviderError):
    pass


class DuplicateAccount(IdentityProviderError):
    pass


class WeakPassword(IdentityProviderError):
    pass


class InvalidEmail(IdentityProviderError):
    pass


class InvalidAuthCode(IdentityProviderError):
    pass


class ProviderRateLimited(IdentityProviderError):
    def __init__(self, retry_after: int = 60) -> None:
        super().__init__(f"provider throttled, retry after {retry_after}s")
        self.retry_after = retry_after


class ProviderUnavailable(IdentityProviderError):
    pass


class IdentityProvider(Protocol):
    def sign_in(self, email: str, password: str) -> Profile:
        ...

    def sign_up(
        self,
        *,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Profile:
        ...

    def issue_code(self, user_id: str) -> str:
        ...

    def exchange_code(self, code: str) -> Profile:
        ...


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def normalise_email(email: str) -> str:
    try:
        result = validate_email(email, check_deliverability=False)
    except EmailNotValidError as exc:
        raise InvalidEmail(str(exc)) from exc
    return result.normalized.lower()


class LocalIdentityProvider:
    """Password identity provider backed by the ``auth_credentials`` table."""

    def __init__(self, db: Session, *, clock: Callable[[], datetime] = _utcnow) -> None:
        self._db = db
        self._clock = clock

    def sign_in(self, email: str, password: str) -> Profile:
        try:
            normalised = normalise_email(email)
        except InvalidEmail as exc:
            raise InvalidCredentials("malformed email") from exc

        try:
            profile = self._db.scalar(select(Profile).where(Profile.email == normalised))
            credential = self._db.get(Credential, profile.id) if profile is not None else None
        except SQLAlchemyError as exc:
            raise ProviderUnavailable("credential lookup failed") from exc

        hashed = credential.password_hash if credential is not None else None
        if not verify_password(password, hashed):
            raise InvalidCredentials("email or password mismatch")

        credential.last_sign_in_at = self._clock()
        try:
            self._db.commit()
        except SQLAlchemyError:
            self._db.rollback()
            logger.warning("Could not record sign-in time", exc_info=True)
        return profile

    def sign_up(
        self,
        *,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Profile:
        """Create a customer account.

        The role is always ``customer``; a client can never pick its own.
        """

        normalised = normalise_email(email)
        valid, message = validate_password_requirements(password)
        if not valid:
            raise WeakPassword(message or "weak password")

        try:
            if self._db.scalar(select(Profile.id).where(Profile.email == normalised)):
                raise DuplicateAccount(normalised)
            profile = Profile(
                email=normalised,
                role=CUSTOMER_ROLE,
                full_name=full_name,
                phone=phone,
            )
            self._db.add(profile)
            self._db.flush()
            self._db.add(Credential(user_id=profile.id, password_hash=hash_password(password)))
            self._db.commit()
        except IntegrityError as exc:
            self._db.rollback()
            raise DuplicateAccount(normalised) from exc
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise ProviderUnavailable("account creation failed") from exc
        self._db.refresh(profile)
        logger.info("Account created", extra={"user_id": profile.id})
        return profile

    def issue_code(self, user_id: str) -> str:
        """Record and return a one-time code for ``user_id``.

        Codes whose lifetime has ended are purged on the way.
        """

        now = self._clock()
        code_id = str(uuid.uuid4())
        try:
            self._db.execute(delete(AuthCode).where(AuthCode.expires_at <= now))
            self._db.add(
                AuthCode(
                    code_id=code_id,
                    user_id=user_id,
                    expires_at=now + timedelta(seconds=AUTH_CODE_TTL_SECONDS),
                    created_at=now,
                )
            )
            self._db.commit()
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise ProviderUnavailable("code issuance failed") from exc
        return issue_auth_code(user_id, code_id=code_id, now=now)

    def exchange_code(self, code: str) -> Profile:
        """Redeem ``code`` exactly once.

        The redemption is a conditional update on an unredeemed, unexpired
        row, so a replayed or concurrently reused code affects no row.
        """

        try:
            claims = decode_auth_code(code)
        except InvalidSessionToken as exc:
            raise InvalidAuthCode(str(exc)) from exc

        now = self._clock()
        statement = (
            update(AuthCode)
            .where(
                AuthCode.code_id == claims.code_id,
                AuthCode.user_id == claims.subject,
                AuthCode.redeemed_at.is_(None),
                AuthCode.expires_at > now,
            )
            .values(redeemed_at=now)
            .execution_options(synchronize_session=False)
        )
        try:
            redeemed = self._db.execute(statement).rowcount
            self._db.commit()
            profile = self._db.get(Profile, claims.subject) if redeemed else None
        except SQLAlchemyError as exc:
            self._db.rollback()
            raise ProviderUnavailable("code redemption failed") from exc
        if not redeemed:
            raise InvalidAuthCode("code unknown, expired or already redeemed")
        if profile is None:
            raise InvalidAuthCode("unknown subject")
        return profile


__all__ = [
    "CUSTOMER_ROLE",
    "DuplicateAccount",
    "IdentityProvider",
    "IdentityProviderError",
    "InvalidAuthCode",
    "InvalidCredentials",
    "InvalidEmail",
    "LocalIdentityProvider",
    "ProviderRateLimited",
    "ProviderUnavailable",
    "WeakPassword",
    "normalise_email",
]
