"""Fixed-window rate limiting keyed by client and route class."""
from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from prometheus_client import Counter

from libs.errors import RateLimited

from .stores import CounterStore, CounterStoreUnavailable

logger = logging.getLogger(__name__)

_CHECKS = Counter(
    "rate_limit_checks_total",
    "Rate limit checks by route class and result",
    labelnames=("route", "result"),
)


@dataclass(frozen=True)
class RateLimitConfig:
    """Budget for one route class."""

    route: str
    max_requests: int
    window_seconds: int

    def __post_init__(self) -> None:
        if self.max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")


LOGIN_LIMIT = RateLimitConfig(route="login", max_requests=5, window_seconds=15 * 60)
SIGNUP_LIMIT = RateLimitConfig(route="signup", max_requests=3, window_seconds=60 * 60)


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    degraded: bool = False

    def raise_for_limit(self) -> None:
        if not self.allowed:
            raise RateLimited(
                limit=self.limit,
                remaining=self.remaining,
                reset_at=self.reset_at,
                retry_after=self.retry_after,
            )


class RateLimiter:
    """Count attempts per ``(route, client_key)`` in fixed windows.

    When the store is unreachable the check fails open: the caller is let
    through and the outage is logged and counted so a silently disabled
    limiter shows up in monitoring.
    """

    def __init__(
        self,
        store: CounterStore,
        *,
        prefix: str = "ordering:ratelimit",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._prefix = prefix
        self._clock = clock

    def check(self, config: RateLimitConfig, client_key: str) -> RateLimitDecision:
        now = self._clock()
        window = int(now // config.window_seconds)
        reset_at = (window + 1) * config.window_seconds
        retry_after = max(math.ceil(reset_at - now), 0)
        key = f"{self._prefix}:{config.route}:{client_key}:{window}"

        try:
            count = self._store.increment(key, config.window_seconds)
        except CounterStoreUnavailable:
            _CHECKS.labels(config.route, "fail_open").inc()
            logger.warning(
                "Rate limit store unavailable, allowing request",
                exc_info=True,
                extra={"route": config.route, "store": self._store.name},
            )
            return RateLimitDecision(
                allowed=True,
                limit=config.max_requests,
                remaining=config.max_requests,
                reset_at=reset_at,
                retry_after=0,
                degraded=True,
            )

        allowed = count <= config.max_requests
        _CHECKS.labels(config.route, "allowed" if allowed else "blocked").inc()
        if not allowed:
            logger.info(
                "Rate limit exceeded",
                extra={"route": config.route, "attempts": count},
            )
        return RateLimitDecision(
            allowed=allowed,
            limit=config.max_requests,
            remaining=max(config.max_requests - count, 0),
            reset_at=reset_at,
            retry_after=retry_after if not allowed else 0,
        )


__all__ = [
    "LOGIN_LIMIT",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimiter",
    "SIGNUP_LIMIT",
]
