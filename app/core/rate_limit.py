"""Rate limiting stage of the gateway middleware chain.

This module wires the rate limiting adapter into the HTTP layer.

Strategy:
- Fixed window per client key, 100 requests per 15 minutes by default.
- The client key comes from the proxy headers (``CF-Connecting-IP`` then
  ``X-Forwarded-For``); requests without them share the ``anonymous`` bucket.
- The limiter lives on ``app.state`` so tests and deployments can inject one
  backed by a different store.
"""

from __future__ import annotations

import hashlib
import logging

from fastapi import Request, Response

from app.adapters.rate_limit.base import AbstractRateLimiter, AbstractRateLimitStore
from app.adapters.rate_limit.fixed_window import FixedWindowRateLimiter
from app.adapters.rate_limit.in_memory import InMemoryRateLimitStore
from app.core.config import AppSettings, get_app_settings, settings
from app.core.errors import RateLimitAppError

logger = logging.getLogger(__name__)

CLIENT_KEY_HEADERS = ("CF-Connecting-IP", "X-Forwarded-For")
ANONYMOUS_CLIENT_KEY = "anonymous"


def build_rate_limit_store(app_settings: AppSettings | None = None) -> AbstractRateLimitStore:
    """Pick the record store: Redis when a URL is configured, else in-memory."""

    cfg = app_settings or settings.app
    if cfg.rate_limit_redis_url:
        from app.adapters.rate_limit.redis_store import RedisRateLimitStore

        logger.info("rate_limit.store_selected", extra={"store": "redis"})
        return RedisRateLimitStore.from_url(cfg.rate_limit_redis_url)

    logger.info("rate_limit.store_selected", extra={"store": "memory"})
    return InMemoryRateLimitStore()


def build_rate_limiter(app_settings: AppSettings | None = None) -> AbstractRateLimiter:
    """Build the process-wide limiter from configuration.

    Returns:
        AbstractRateLimiter: Configured limiter instance.
    """

    cfg = app_settings or settings.app
    return FixedWindowRateLimiter(
        limit=cfg.rate_limit_requests,
        window_seconds=cfg.rate_limit_window_seconds,
        store=build_rate_limit_store(cfg),
    )


def get_client_key(request: Request) -> str:
    """Derive the rate limit bucket for the current request.

    Args:
        request: FastAPI request.

    Returns:
        str: Raw value of the first trusted proxy header present, or
            ``"anonymous"`` when none is set.
    """

    for header in CLIENT_KEY_HEADERS:
        value = request.headers.get(header)
        if value:
            return value
    return ANONYMOUS_CLIENT_KEY


def _hash_client_key(key: str) -> str:
    """Hash the client key for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


async def rate_limit_middleware(request: Request, call_next) -> Response:
    """Admit the request or reject it with 429 once the client's window is used up.

    Raises:
        RateLimitAppError: When the client key exceeded its budget.
    """

    cfg = get_app_settings(request)
    if not cfg.rate_limit_enabled:
        return await call_next(request)

    limiter: AbstractRateLimiter = request.app.state.rate_limiter
    key = get_client_key(request)
    request.state.client_key = key

    result = await limiter.consume(key)
    if result.allowed:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": _hash_client_key(key),
                "limit": result.limit,
                "remaining": result.remaining,
            },
        )
        return await call_next(request)

    retry_after = result.retry_after_seconds or 0
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "key_hash": _hash_client_key(key),
            "anonymous": key == ANONYMOUS_CLIENT_KEY,
            "limit": result.limit,
            "retry_after_s": retry_after,
        },
    )

    headers: dict[str, str] = {}
    if cfg.rate_limit_include_headers:
        headers["Retry-After"] = str(retry_after)
        headers["X-RateLimit-Limit"] = str(result.limit)
        headers["X-RateLimit-Remaining"] = str(result.remaining)
        headers["X-RateLimit-Reset"] = str(result.reset_at)

    raise RateLimitAppError(headers=headers)
