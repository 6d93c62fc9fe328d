"""Shop catalog collaborator boundary.

The storefront route only needs an async callable returning the catalog
payload, or ``None`` when nothing could be generated. Content generation
(item rotation, pricing) is provided by whoever builds the application; the
default below serves an empty storefront listing that refreshes daily.
"""

from __future__ import annotations

from datetime import datetime, time, timedelta, timezone
from typing import Any, Awaitable, Callable

from app.utils.clock import to_iso, utc_now

CatalogGenerator = Callable[[], Awaitable[dict[str, Any] | None]]


def next_rotation(now: datetime) -> datetime:
    """Return the next daily shop rotation (UTC midnight) after ``now``."""

    tomorrow = (now.astimezone(timezone.utc) + timedelta(days=1)).date()
    return datetime.combine(tomorrow, time.min, tzinfo=timezone.utc)


async def generate_empty_catalog() -> dict[str, Any]:
    """Default generator: a valid catalog envelope with no storefronts."""

    return {
        "refreshIntervalHrs": 24,
        "dailyPurchaseHrs": 24,
        "expiration": to_iso(next_rotation(utc_now())),
        "storefronts": [],
    }
