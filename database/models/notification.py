"""
Notification model with delivery, analytics and recurrence bookkeeping.
"""

from datetime import datetime
from enum import StrEnum
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin, utcnow

if TYPE_CHECKING:
    from .user import User


class NotificationType(StrEnum):
    REMINDER = "reminder"
    ACHIEVEMENT = "achievement"
    RECOMMENDATION = "recommendation"
    GOAL_DEADLINE = "goal-deadline"
    WORKOUT_STREAK = "workout-streak"
    MILESTONE = "milestone"
    ENCOURAGEMENT = "encouragement"
    WARNING = "warning"
    SYSTEM = "system"
    SOCIAL = "social"
    CHALLENGE = "challenge"
    TIP = "tip"


class NotificationCategory(StrEnum):
    WORKOUT = "workout"
    GOAL = "goal"
    HEALTH = "health"
    SOCIAL = "social"
    SYSTEM = "system"
    ACHIEVEMENT = "achievement"


class NotificationPriority(StrEnum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class NotificationStatus(StrEnum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class Channel(StrEnum):
    IN_APP = "in-app"
    EMAIL = "email"
    PUSH = "push"
    SMS = "sms"


class RecurrenceFrequency(StrEnum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class RelatedModel(StrEnum):
    WORKOUT = "Workout"
    GOAL = "Goal"
    USER = "User"
    ACHIEVEMENT = "Achievement"


# Allowed per-channel delivery states
CHANNEL_STATES: dict[str, frozenset[str]] = {
    Channel.IN_APP: frozenset({"pending", "delivered", "failed"}),
    Channel.EMAIL: frozenset({"pending", "sent", "delivered", "bounced", "failed"}),
    Channel.PUSH: frozenset({"pending", "sent", "delivered", "failed"}),
    Channel.SMS: frozenset({"pending", "sent", "delivered", "failed"}),
}

PRIORITY_RANK: dict[str, int] = {
    NotificationPriority.LOW.value: 0,
    NotificationPriority.NORMAL.value: 1,
    NotificationPriority.HIGH.value: 2,
    NotificationPriority.URGENT.value: 3,
}


def new_notification_id() -> str:
    return str(uuid4())


class Notification(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """
    A message addressed to one user.

    ``status`` only moves forward through pending, sent, delivered and read;
    ``failed`` is terminal. Transitions go through
    ``services.notification_lifecycle`` rather than direct assignment.
    JSON columns are reassigned, never mutated in place, so the ORM sees
    every change.
    """

    __tablename__ = "notifications"

    # Public identifier, distinct from the storage key
    notification_id: Mapped[str] = mapped_column(
        String(36),
        unique=True,
        nullable=False,
        default=new_notification_id,
    )

    # Recipient
    user_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Content
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    category: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=NotificationCategory.SYSTEM.value,
    )
    priority: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=NotificationPriority.NORMAL.value,
    )
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False)

    # Delivery
    channels: Mapped[list] = mapped_column(
        JSONType,
        nullable=False,
        default=lambda: [Channel.IN_APP.value],
    )
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default=NotificationStatus.PENDING.value,
    )
    scheduled_for: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
    )
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    # Metadata
    related_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    related_model: Mapped[str | None] = mapped_column(String(32), nullable=True)
    action_url: Mapped[str | None] = mapped_column(String(200), nullable=True)
    action_label: Mapped[str | None] = mapped_column(String(50), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(200), nullable=True)
    custom_data: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)
    tags: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Delivery bookkeeping
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_attempt: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    delivery_errors: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    delivery_status: Mapped[dict] = mapped_column(JSONType, nullable=False, default=dict)

    # Analytics
    opened: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    opened_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    clicked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    clicked_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    action_taken: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    action_taken_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Recurrence
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    recurrence_frequency: Mapped[str | None] = mapped_column(String(16), nullable=True)
    recurrence_interval: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    recurrence_days_of_week: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    recurrence_end_date: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    next_scheduled: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Relationship
    user: Mapped["User"] = relationship(
        "User",
        back_populates="notifications",
    )

    def __repr__(self) -> str:
        return (
            f"<Notification(notification_id={self.notification_id}, "
            f"type={self.type}, status={self.status})>"
        )

    @property
    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= utcnow()

    @property
    def is_overdue(self) -> bool:
        return (
            self.status == NotificationStatus.PENDING
            and self.scheduled_for is not None
            and self.scheduled_for < utcnow()
        )

    @property
    def time_ago(self) -> str:
        """Human readable age of the notification, e.g. "3 hours ago"."""
        if self.created_at is None:
            return "Just now"
        seconds = int((utcnow() - self.created_at).total_seconds())
        for unit, size in (("day", 86400), ("hour", 3600), ("minute", 60)):
            count = seconds // size
            if count > 0:
                return f"{count} {unit}{'s' if count > 1 else ''} ago"
        return "Just now"

    @property
    def delivery_success_rate(self) -> float:
        """Percentage of selected channels whose delivery is confirmed."""
        channels = self.channels or []
        if not channels:
            return 0.0
        statuses = self.delivery_status or {}
        delivered = sum(1 for c in channels if statuses.get(c) == "delivered")
        return round(delivered / len(channels) * 100, 1)


# Indexes
Index("idx_notifications_user_status", Notification.user_id, Notification.status)
Index("idx_notifications_pending", Notification.status, Notification.scheduled_for)
Index("idx_notifications_expires_at", Notification.expires_at)
Index("idx_notifications_user_type_created", Notification.user_id, Notification.type, Notification.created_at)
