"""
Goal model.
"""

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, Float, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from .user import User


class GoalStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class Goal(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A user's measurable fitness target with a deadline."""

    __tablename__ = "goals"

    goal_id: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        nullable=False,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False, default="fitness")
    target_value: Mapped[float] = mapped_column(Float, nullable=False, default=1.0)
    current_value: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    unit: Mapped[str | None] = mapped_column(String(20), nullable=True)
    deadline: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=GoalStatus.ACTIVE.value)

    user: Mapped["User"] = relationship("User", back_populates="goals")

    def __repr__(self) -> str:
        return f"<Goal(goal_id={self.goal_id}, title={self.title}, status={self.status})>"

    @property
    def completion_percentage(self) -> int:
        if not self.target_value:
            return 0
        return min(100, round(self.current_value / self.target_value * 100))


# Indexes
Index("idx_goals_deadline", Goal.status, Goal.completed, Goal.deadline)
