"""
Workout repository.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import Workout


class WorkoutRepository:
    """Repository for Workout model operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        user_id: UUID,
        title: str,
        type: str,
        duration_minutes: int,
        **fields: Any,
    ) -> Workout:
        """Create a new workout."""
        workout = Workout(
            user_id=user_id,
            title=title,
            type=type,
            duration_minutes=duration_minutes,
            **fields,
        )
        self.session.add(workout)
        await self.session.flush()
        return workout

    async def list_recent(
        self,
        user_id: UUID,
        since: datetime,
        limit: int = 50,
    ) -> list[Workout]:
        """Workouts since ``since``, most recent first."""
        result = await self.session.execute(
            select(Workout)
            .where(Workout.user_id == user_id, Workout.date >= since)
            .order_by(desc(Workout.date))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def summarize(self, user_id: UUID, since: datetime) -> dict[str, int]:
        """Completed workout count and total minutes since ``since``."""
        result = await self.session.execute(
            select(
                func.count(),
                func.coalesce(func.sum(Workout.duration_minutes), 0),
            ).where(
                Workout.user_id == user_id,
                Workout.completed.is_(True),
                Workout.date >= since,
            )
        )
        count, minutes = result.one()
        return {"workouts": int(count), "minutes": int(minutes)}
