"""Redis-backed rate limit store for multi-instance deployments.

Each client key maps to a hash ``{count, reset_at}`` that Redis expires at the
end of its window, so the store does not grow without bound and every gateway
replica sees the same counters.
"""

from __future__ import annotations

import logging
import math

from redis import asyncio as aioredis

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitRecord

logger = logging.getLogger(__name__)


class RedisRateLimitStore(AbstractRateLimitStore):
    """Store rate limit records in Redis hashes."""

    def __init__(self, client: aioredis.Redis, *, prefix: str = "ratelimit:") -> None:
        """
        Args:
            client: ``redis.asyncio`` client instance.
            prefix: Namespace prepended to every client key.
        """
        self._redis = client
        self._prefix = prefix

    @classmethod
    def from_url(cls, url: str, **kwargs) -> "RedisRateLimitStore":
        return cls(aioredis.Redis.from_url(url, decode_responses=True), **kwargs)

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    async def get(self, key: str) -> RateLimitRecord | None:
        data = await self._redis.hgetall(self._key(key))
        if "reset_at" not in data:
            # missing, or re-created by HINCRBY after expiring mid-request
            return None
        return RateLimitRecord(count=int(data["count"]), reset_at=float(data["reset_at"]))

    async def set(self, key: str, record: RateLimitRecord) -> None:
        redis_key = self._key(key)
        pipe = self._redis.pipeline()
        pipe.delete(redis_key)
        pipe.hset(redis_key, mapping={"count": record.count, "reset_at": record.reset_at})
        pipe.pexpireat(redis_key, int(math.ceil(record.reset_at * 1000)))
        await pipe.execute()

    async def increment(self, key: str) -> int:
        return int(await self._redis.hincrby(self._key(key), "count", 1))

    async def close(self) -> None:
        await self._redis.aclose()
        logger.info("rate_limit.redis_closed")
