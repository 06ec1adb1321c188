"""
Workout model.
"""

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from .user import User


class Workout(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A logged training session."""

    __tablename__ = "workouts"

    workout_id: Mapped[str] = mapped_column(
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
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    intensity: Mapped[str] = mapped_column(String(16), nullable=False, default="moderate")
    completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)

    user: Mapped["User"] = relationship("User", back_populates="workouts")

    def __repr__(self) -> str:
        return f"<Workout(workout_id={self.workout_id}, type={self.type}, date={self.date})>"


# Indexes
Index("idx_workouts_user_date", Workout.user_id, Workout.date)
