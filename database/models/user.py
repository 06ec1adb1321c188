"""
User model: the profile, preference and stats fields notifications depend on.

Accounts are created and updated by the account service; this service
reads them.
"""

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Float, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship, validates

from .base import Base, JSONType, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from .goal import Goal
    from .notification import Notification
    from .workout import Workout


def normalize_reminder_time(value: str) -> str:
    """
    Normalize "H:MM" / "HH:MM" to zero-padded "HH:MM".

    Raises:
        ValueError: If the value is not a valid 24h clock time
    """
    hours, _, minutes = str(value).strip().partition(":")
    if not hours.isdigit() or not minutes.isdigit() or len(minutes) != 2:
        raise ValueError(f"Invalid reminder time: {value!r}")
    h, m = int(hours), int(minutes)
    if not (0 <= h < 24 and 0 <= m < 60):
        raise ValueError(f"Invalid reminder time: {value!r}")
    return f"{h:02d}:{m:02d}"


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """A FitLife member."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Preferences
    notifications_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    email_notifications: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reminder_time: Mapped[str] = mapped_column(String(5), nullable=False, default="20:00")
    weekly_goal: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    # Stats
    current_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    longest_streak: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_workouts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    average_workout_duration: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    last_active: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Profile
    fitness_level: Mapped[str] = mapped_column(String(20), nullable=False, default="beginner")
    fitness_goals: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    preferred_workout_types: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Relationships
    notifications: Mapped[list["Notification"]] = relationship(
        "Notification",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    goals: Mapped[list["Goal"]] = relationship(
        "Goal",
        back_populates="user",
        cascade="all, delete-orphan",
    )
    workouts: Mapped[list["Workout"]] = relationship(
        "Workout",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, name={self.name})>"

    @validates("reminder_time")
    def _validate_reminder_time(self, key, value):
        return normalize_reminder_time(value)

    @property
    def is_notifiable(self) -> bool:
        return self.is_active and self.notifications_enabled


# Indexes
Index("idx_users_reminder", User.is_active, User.notifications_enabled, User.reminder_time)
