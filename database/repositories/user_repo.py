"""
User repository: lookups used by the API and the notification scheduler.
"""

from collections.abc import Iterable
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import User


class UserRepository:
    """Repository for User model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        """Get user by email."""
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def create(self, name: str, email: str | None = None, **fields: Any) -> User:
        """Create a new user."""
        user = User(name=name, email=email, **fields)
        self.session.add(user)
        await self.session.flush()
        return user

    def _notifiable(self):
        return select(User).where(
            User.is_active.is_(True),
            User.notifications_enabled.is_(True),
        )

    async def list_notifiable_ids(self) -> list[UUID]:
        result = await self.session.execute(
            select(User.id)
            .where(User.is_active.is_(True), User.notifications_enabled.is_(True))
            .order_by(User.created_at)
        )
        return list(result.scalars().all())

    async def list_by_reminder_times(self, reminder_times: Iterable[str]) -> list[User]:
        """Notifiable users whose daily reminder time is one of ``reminder_times``."""
        times = list(reminder_times)
        if not times:
            return []
        result = await self.session.execute(
            self._notifiable().where(User.reminder_time.in_(times)).order_by(User.created_at)
        )
        return list(result.scalars().all())

    async def sample_notifiable(self, size: int) -> list[User]:
        """Random sample of at most ``size`` notifiable users."""
        result = await self.session.execute(
            self._notifiable().order_by(func.random()).limit(size)
        )
        return list(result.scalars().all())

    async def list_streak_candidates(self, inactive_since: datetime) -> list[User]:
        """
        Users due a streak message.

        Either the current streak is a positive multiple of seven, or the
        streak is broken and the user has not been active since
        ``inactive_since``.
        """
        result = await self.session.execute(
            self._notifiable()
            .where(
                or_(
                    and_(User.current_streak > 0, User.current_streak % 7 == 0),
                    and_(User.current_streak == 0, User.last_active < inactive_since),
                )
            )
            .order_by(User.created_at)
        )
        return list(result.scalars().all())
