"""
FastAPI dependency injection for database sessions, repositories and
application services.
"""

import logging
from collections.abc import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import AuthenticatedUser, require_current_user
from core.config import get_settings
from core.exceptions import AuthenticationError, DatabaseUnavailableError
from database import get_session, is_database_available
from database.models import User
from database.repositories import NotificationRepository, UserRepository
from services.recommendation_client import RecommendationClient
from services.scheduler import NotificationScheduler

logger = logging.getLogger(__name__)


async def get_db_session() -> AsyncGenerator[AsyncSession | None, None]:
    """
    Get database session dependency.

    Returns None if database is not configured/available.
    """
    if not is_database_available():
        yield None
        return

    async for session in get_session():
        yield session


async def require_db_session(
    session: AsyncSession | None = Depends(get_db_session),
) -> AsyncSession:
    """Database session, or 503 when the database is unavailable."""
    if session is None:
        raise DatabaseUnavailableError()
    return session


async def get_user_repository(
    session: AsyncSession = Depends(require_db_session),
) -> UserRepository:
    """Get UserRepository dependency."""
    return UserRepository(session)


async def get_notification_repository(
    session: AsyncSession = Depends(require_db_session),
) -> NotificationRepository:
    """Get NotificationRepository dependency."""
    settings = get_settings()
    return NotificationRepository(
        session,
        ttl_days=settings.notification_ttl_days,
        max_attempts=settings.max_delivery_attempts,
    )


async def require_db_user(
    user: AuthenticatedUser = Depends(require_current_user),
    user_repo: UserRepository = Depends(get_user_repository),
) -> User:
    """
    The authenticated caller's account.

    Raises 401 when the token's user does not exist or is deactivated.
    """
    db_user = await user_repo.get_by_id(user.id)
    if db_user is None or not db_user.is_active:
        raise AuthenticationError(message="User not found or inactive")
    return db_user


def get_recommendation_client(request: Request) -> RecommendationClient:
    """Recommendation client created at startup."""
    client = getattr(request.app.state, "recommendation_client", None)
    if client is None:
        client = RecommendationClient.from_settings()
        request.app.state.recommendation_client = client
    return client


def get_scheduler(request: Request) -> NotificationScheduler | None:
    """Scheduler created at startup, None when the database is unavailable."""
    return getattr(request.app.state, "scheduler", None)
