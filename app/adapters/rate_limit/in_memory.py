"""In-process rate limit store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Records are replaced when a window rolls over but never evicted, so the map
  grows with the number of distinct client keys seen.
- No lock: the gateway runs on a single event loop and none of these methods
  await, so each call completes without interleaving.
"""

from __future__ import annotations

from dataclasses import replace

from app.adapters.rate_limit.base import AbstractRateLimitStore, RateLimitRecord


class InMemoryRateLimitStore(AbstractRateLimitStore):
    """Dictionary-backed store keyed by client key."""

    def __init__(self) -> None:
        self._records: dict[str, RateLimitRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    async def get(self, key: str) -> RateLimitRecord | None:
        return self._records.get(key)

    async def set(self, key: str, record: RateLimitRecord) -> None:
        self._records[key] = record

    async def increment(self, key: str) -> int:
        record = self._records.get(key)
        if record is None:
            raise KeyError(key)
        record = replace(record, count=record.count + 1)
        self._records[key] = record
        return record.count

    def clear(self) -> None:
        self._records.clear()
