"""Rate limiting for authentication routes."""
from __future__ import annotations

from .limiter import LOGIN_LIMIT, SIGNUP_LIMIT, RateLimitConfig, RateLimitDecision, RateLimiter
from .stores import (
    CounterStore,
    CounterStoreUnavailable,
    InMemoryCounterStore,
    RedisCounterStore,
)

__all__ = [
    "CounterStore",
    "CounterStoreUnavailable",
    "InMemoryCounterStore",
    "LOGIN_LIMIT",
    "RateLimitConfig",
    "RateLimitDecision",
    "RateLimiter",
    "RedisCounterStore",
    "SIGNUP_LIMIT",
]
