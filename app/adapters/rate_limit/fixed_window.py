"""Fixed-window rate limiter over a pluggable record store.

A client's window opens with its first request and lasts ``window_seconds``;
once it is over, the next request replaces the record and starts a new window
with a count of one.

The read-check-write sequence below is not atomic. Two interleaved requests
for the same key may both read a stale count and both be admitted, which can
exceed the limit slightly. This is accepted for the single event loop model.
"""

from __future__ import annotations

import math
import time
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    AbstractRateLimitStore,
    RateLimitRecord,
    RateLimitResult,
)
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore


class FixedWindowRateLimiter(AbstractRateLimiter):
    """Limit requests per key within a fixed window (e.g. 100 per 15 minutes)."""

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: float,
        store: AbstractRateLimitStore | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            limit: Maximum number of admitted requests per window.
            window_seconds: Window length in seconds.
            store: Record storage; a fresh in-memory store when omitted.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        self._limit = limit
        self._window_seconds = window_seconds
        self._store = store if store is not None else InMemoryRateLimitStore()
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def store(self) -> AbstractRateLimitStore:
        return self._store

    def _allowed(self, count: int, reset_at: float) -> RateLimitResult:
        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=max(0, self._limit - count),
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=None,
        )

    def _blocked(self, now: float, reset_at: float) -> RateLimitResult:
        return RateLimitResult(
            allowed=False,
            limit=self._limit,
            remaining=0,
            reset_at=int(math.ceil(reset_at)),
            retry_after_seconds=max(0, int(math.ceil(reset_at - now))),
        )

    async def consume(self, key: str) -> RateLimitResult:
        """Admit or reject one request for ``key``.

        Raises:
            ValueError: If key is empty.
        """
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()
        record = await self._store.get(key)

        if record is None or now > record.reset_at:
            record = RateLimitRecord(count=1, reset_at=now + self._window_seconds)
            await self._store.set(key, record)
            return self._allowed(record.count, record.reset_at)

        if record.count < self._limit:
            count = await self._store.increment(key)
            return self._allowed(count, record.reset_at)

        return self._blocked(now, record.reset_at)
