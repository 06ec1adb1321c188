"""
Goal repository.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Goal, GoalStatus, User


class GoalRepository:
    """Repository for Goal model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: UUID,
        title: str,
        deadline: datetime,
        **fields: Any,
    ) -> Goal:
        """Create a new goal."""
        goal = Goal(user_id=user_id, title=title, deadline=deadline, **fields)
        self.session.add(goal)
        await self.session.flush()
        return goal

    async def list_by_user(
        self,
        user_id: UUID,
        since: datetime | None = None,
        limit: int = 20,
    ) -> list[Goal]:
        """Goals of a user, newest first."""
        query = select(Goal).where(Goal.user_id == user_id)
        if since is not None:
            query = query.where(Goal.created_at >= since)
        result = await self.session.execute(query.order_by(desc(Goal.created_at)).limit(limit))
        return list(result.scalars().all())

    async def find_approaching_deadlines(
        self,
        start: datetime,
        end: datetime,
    ) -> list[tuple[Goal, User]]:
        """
        Active, incomplete goals due in ``(start, end]``.

        Only goals owned by notifiable users are returned.
        """
        result = await self.session.execute(
            select(Goal, User)
            .join(User, Goal.user_id == User.id)
            .where(
                Goal.status == GoalStatus.ACTIVE.value,
                Goal.completed.is_(False),
                Goal.deadline > start,
                Goal.deadline <= end,
                User.is_active.is_(True),
                User.notifications_enabled.is_(True),
            )
            .order_by(Goal.deadline)
        )
        return [(goal, user) for goal, user in result.all()]
