"""
Fixed-window request rate limiting backed by Redis.

Counters live under ``ratelimit:{client}:{window_index}`` and expire with
their window. Requests are allowed when limiting is disabled or Redis is
not initialized.
"""

import logging
import time

from fastapi import Request

from .config import get_settings
from .exceptions import RateLimitError
from .redis import get_redis, is_redis_available

logger = logging.getLogger(__name__)


class RateLimiter:
    """Counts requests per client in fixed windows."""

    def __init__(self, redis_client, limit: int, window_seconds: int):
        self._redis = redis_client
        self.limit = limit
        self.window_seconds = window_seconds

    def _key(self, client_id: str, now: float) -> str:
        window_index = int(now // self.window_seconds)
        return f"ratelimit:{client_id}:{window_index}"

    async def hit(self, client_id: str, now: float | None = None) -> tuple[bool, int]:
        """
        Register one request for a client.

        Returns:
            (allowed, remaining) for the current window
        """
        now = time.time() if now is None else now
        key = self._key(client_id, now)

        async with self._redis.pipeline() as pipe:
            pipe.incrby(key, 1)
            pipe.expire(key, self.window_seconds)
            count, _ = await pipe.execute()

        remaining = max(0, self.limit - int(count))
        return int(count) <= self.limit, remaining


def _client_id(request: Request, trust_forwarded: bool = False) -> str:
    """Peer address, or the first X-Forwarded-For hop when a proxy is trusted."""
    if trust_forwarded:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request) -> None:
    """FastAPI dependency that rejects clients over the configured limit."""
    settings = get_settings()
    if not settings.rate_limit_enabled or not is_redis_available():
        return

    limiter = RateLimiter(
        await get_redis(),
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window,
    )
    client_id = _client_id(request, settings.rate_limit_trust_forwarded)

    try:
        allowed, _ = await limiter.hit(client_id)
    except Exception as e:
        logger.warning(f"Rate limiter unavailable, allowing request: {e}")
        return

    if not allowed:
        raise RateLimitError(
            details={
                "limit": settings.rate_limit_requests,
                "window_seconds": settings.rate_limit_window,
            }
        )
