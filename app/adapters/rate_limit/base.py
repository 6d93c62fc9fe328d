"""Rate limiter interfaces.

The HTTP layer depends on these abstractions (not the concrete storage) so the
per-client counters can live in process memory for a single instance or in a
shared store (Redis) when several gateway replicas run side by side.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitRecord:
    """Counter state for one client key.

    Attributes:
        count: Requests admitted in the current window.
        reset_at: UNIX time (seconds) after which the window is over.
    """

    count: int
    reset_at: float


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit consume operation.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


class AbstractRateLimitStore(ABC):
    """Storage for per-key rate limit records."""

    @abstractmethod
    async def get(self, key: str) -> RateLimitRecord | None:
        """Return the record for ``key`` or None when absent/expired."""
        raise NotImplementedError

    @abstractmethod
    async def set(self, key: str, record: RateLimitRecord) -> None:
        """Replace the record for ``key``; it may be dropped after ``record.reset_at``."""
        raise NotImplementedError

    @abstractmethod
    async def increment(self, key: str) -> int:
        """Increment the count of an existing record and return the new count."""
        raise NotImplementedError

    async def close(self) -> None:  # pragma: no cover - default no-op
        return None


class AbstractRateLimiter(ABC):
    """Interface for rate limiters."""

    @abstractmethod
    async def consume(self, key: str) -> RateLimitResult:
        """Consume one unit of budget for a given key.

        Args:
            key: Client identifier (e.g. forwarded IP address).

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError
