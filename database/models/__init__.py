"""
SQLAlchemy models for FitLife Notifications.
"""

from .base import Base, TimestampMixin, UTCDateTime, UUIDPrimaryKeyMixin
from .goal import Goal, GoalStatus
from .notification import (
    CHANNEL_STATES,
    PRIORITY_RANK,
    Channel,
    Notification,
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    RecurrenceFrequency,
    RelatedModel,
)
from .user import User, normalize_reminder_time
from .workout import Workout

__all__ = [
    # Base
    "Base",
    "TimestampMixin",
    "UUIDPrimaryKeyMixin",
    "UTCDateTime",
    # Models
    "User",
    "Goal",
    "Workout",
    "Notification",
    # Enums and constants
    "GoalStatus",
    "NotificationType",
    "NotificationCategory",
    "NotificationPriority",
    "NotificationStatus",
    "Channel",
    "RecurrenceFrequency",
    "RelatedModel",
    "CHANNEL_STATES",
    "PRIORITY_RANK",
    "normalize_reminder_time",
]
