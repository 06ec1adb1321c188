"""
Async SQLAlchemy engine and sessions for FitLife Notifications.

The API process, the arq worker and the seed script each call
``init_database()`` once. Without a configured ``DATABASE_URL`` the module
stays uninitialized and callers see ``is_database_available() == False``.
"""

import logging
import time
from collections.abc import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import get_settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_async_session_factory: async_sessionmaker[AsyncSession] | None = None

_ASYNC_DRIVERS = {
    "postgres://": "postgresql+asyncpg://",
    "postgresql://": "postgresql+asyncpg://",
}


def async_database_url(url: str) -> str:
    """Point plain PostgreSQL URLs at the asyncpg driver."""
    for prefix, replacement in _ASYNC_DRIVERS.items():
        if url.startswith(prefix):
            return replacement + url[len(prefix):]
    return url


async def init_database() -> None:
    """Create the engine and session factory if a database is configured."""
    global _engine, _async_session_factory

    settings = get_settings()
    if not settings.is_database_configured:
        logger.warning("Database disabled or DATABASE_URL missing, skipping initialization")
        return

    _engine = create_async_engine(
        async_database_url(settings.database_url),
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=settings.debug and settings.db_echo,
    )
    _async_session_factory = async_sessionmaker(
        bind=_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    logger.info("Database engine ready")


async def close_database() -> None:
    """Dispose of the engine. Safe to call when never initialized."""
    global _engine, _async_session_factory

    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _async_session_factory = None
    logger.info("Database connection closed")


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """
    Session factory for code that owns its transactions, such as scheduler tasks.

    Raises:
        RuntimeError: If ``init_database()`` did not create an engine
    """
    if _async_session_factory is None:
        raise RuntimeError("Database not initialized, check DATABASE_URL")
    return _async_session_factory


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """One session per request: committed on success, rolled back on error."""
    async with get_session_factory()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def is_database_available() -> bool:
    return _async_session_factory is not None


async def check_database_health() -> dict:
    """Run ``SELECT 1`` and report status with latency."""
    if _engine is None:
        return {"status": "not_initialized", "latency_ms": None}

    try:
        start = time.perf_counter()
        async with _engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        latency_ms = (time.perf_counter() - start) * 1000
        return {"status": "healthy", "latency_ms": round(latency_ms, 2)}
    except Exception as e:
        return {"status": "unhealthy", "error": str(e), "latency_ms": None}


__all__ = [
    "async_database_url",
    "init_database",
    "close_database",
    "get_session",
    "get_session_factory",
    "is_database_available",
    "check_database_health",
]
