from __future__ import annotations

import functools

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from libs.db.db import get_db
from libs.network import get_client_ip
from libs.ratelimit import (
    LOGIN_LIMIT,
    SIGNUP_LIMIT,
    InMemoryCounterStore,
    RateLimitConfig,
    RateLimiter,
    RedisCounterStore,
)

from .config import get_settings
from .identity import IdentityProvider, LocalIdentityProvider
from .links import LinkSender, LoggingLinkSender


def get_identity_provider(db: Session = Depends(get_db)) -> IdentityProvider:
    return LocalIdentityProvider(db)


@functools.lru_cache
def get_rate_limiter() -> RateLimiter:
    settings = get_settings()
    if settings.rate_limit_backend == "redis":
        store = RedisCounterStore.from_url(
            settings.redis_url, timeout=settings.redis_timeout_seconds
        )
    else:
        store = InMemoryCounterStore()
    return RateLimiter(store)


def _enforce(config: RateLimitConfig):
    def dependency(request: Request, limiter: RateLimiter = Depends(get_rate_limiter)) -> None:
        limiter.check(config, get_client_ip(request)).raise_for_limit()

    return dependency


enforce_login_rate_limit = _enforce(LOGIN_LIMIT)
enforce_signup_rate_limit = _enforce(SIGNUP_LIMIT)


def get_link_sender() -> LinkSender:
    return LoggingLinkSender()
