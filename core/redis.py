"""
Redis client lifecycle.

Redis only backs the request rate limiter. The API keeps serving when it
is down, so callers check ``is_redis_available()`` before using it.
"""

import logging
import time
from typing import Optional

from redis.asyncio import ConnectionPool, Redis

from .config import get_settings

logger = logging.getLogger(__name__)

_pool: Optional[ConnectionPool] = None
_client: Optional[Redis] = None


async def init_redis() -> Redis:
    """
    Connect to ``settings.redis_url`` and keep the client for the process.

    Raises:
        redis.exceptions.ConnectionError: If the server does not answer PING
    """
    global _pool, _client

    settings = get_settings()
    pool = ConnectionPool.from_url(
        settings.redis_url,
        max_connections=settings.redis_max_connections,
        decode_responses=True,
    )
    client = Redis(connection_pool=pool)

    try:
        await client.ping()
    except Exception as e:
        logger.error(f"Redis at {settings.redis_url} is unreachable: {e}")
        await pool.disconnect()
        raise

    _pool, _client = pool, client
    logger.info("Redis connected, rate limiting active")
    return client


async def close_redis() -> None:
    """Drop the client and its pool. Safe to call when never connected."""
    global _pool, _client

    if _client is not None:
        await _client.close()
        _client = None
    if _pool is not None:
        await _pool.disconnect()
        _pool = None
    logger.info("Redis connection closed")


def is_redis_available() -> bool:
    return _client is not None


async def get_redis() -> Redis:
    """
    The shared client.

    Raises:
        RuntimeError: If ``init_redis()`` has not succeeded
    """
    if _client is None:
        raise RuntimeError("Redis is not initialized")
    return _client


async def check_redis_health() -> dict:
    """PING Redis and report status with latency, like ``check_database_health``."""
    if _client is None:
        return {"status": "not_initialized", "latency_ms": None}

    try:
        start = time.perf_counter()
        await _client.ping()
        latency_ms = (time.perf_counter() - start) * 1000
        return {"status": "healthy", "latency_ms": round(latency_ms, 2)}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e), "latency_ms": None}
