from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, String, event
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Credential(Base):
    """Password material owned by the identity provider.

    ``user_id`` matches ``profiles.id``; the profile row carries everything
    else about the account.
    """

    __tablename__ = "auth_credentials"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )
    last_sign_in_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class AuthCode(Base):
    """An issued one-time authorization code.

    The signed code carries ``code_id``; ``redeemed_at`` is set by the single
    successful exchange. Rows past ``expires_at`` are useless and get purged.
    """

    __tablename__ = "auth_codes"

    code_id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    redeemed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, nullable=False
    )


def _ensure_timezone(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@event.listens_for(Credential, "load")
def _credential_load_timezone(target: Credential, context) -> None:  # pragma: no cover - SQLAlchemy hook
    target.created_at = _ensure_timezone(target.created_at)
    target.last_sign_in_at = _ensure_timezone(target.last_sign_in_at)
