"""Counter stores backing the fixed-window rate limiter."""
from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Protocol, Tuple

from redis import Redis
from redis.exceptions import RedisError


class CounterStoreUnavailable(RuntimeError):
    """Raised when the backing store cannot be reached."""


class CounterStore(Protocol):
    name: str

    def increment(self, key: str, ttl_seconds: int) -> int:
        """Increment ``key`` and return the new count.

        The key must disappear ``ttl_seconds`` after it was created. Raise
        :class:`CounterStoreUnavailable` when the store is unreachable.
        """


class InMemoryCounterStore:
    """Process-local store, suitable for development and tests.

    Expired counters are dropped at most once per ``prune_interval`` seconds,
    so the map holds roughly one entry per active client and window.
    """

    name = "memory"

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        prune_interval: float = 60.0,
    ) -> None:
        self._clock = clock
        self._prune_interval = prune_interval
        self._next_prune = 0.0
        self._counters: Dict[str, Tuple[int, float]] = {}
        self._lock = threading.Lock()

    def increment(self, key: str, ttl_seconds: int) -> int:
        now = self._clock()
        with self._lock:
            if now >= self._next_prune:
                self._prune(now)
            count, expires_at = self._counters.get(key, (0, now + ttl_seconds))
            if expires_at <= now:
                count, expires_at = 0, now + ttl_seconds
            count += 1
            self._counters[key] = (count, expires_at)
            return count

    def _prune(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._counters.items() if expires_at <= now]
        for key in expired:
            del self._counters[key]
        self._next_prune = now + self._prune_interval


class RedisCounterStore:
    """Counters kept in Redis with ``INCR`` and ``EXPIRE`` in one round trip."""

    name = "redis"

    def __init__(self, redis: Redis) -> None:
        self._redis = redis

    @classmethod
    def from_url(cls, url: str, *, timeout: float = 0.5) -> "RedisCounterStore":
        client = Redis.from_url(
            url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            decode_responses=True,
        )
        return cls(client)

    def increment(self, key: str, ttl_seconds: int) -> int:
        try:
            pipeline = self._redis.pipeline()
            pipeline.incr(key)
            pipeline.expire(key, ttl_seconds)
            count, _ = pipeline.execute()
        except (RedisError, OSError) as exc:
            raise CounterStoreUnavailable(str(exc)) from exc
        return int(count)


__all__ = [
    "CounterStore",
    "CounterStoreUnavailable",
    "InMemoryCounterStore",
    "RedisCounterStore",
]
