"""
Repository layer for database access.

Provides async CRUD operations for all models.
"""

from .goal_repo import GoalRepository
from .notification_repo import NotificationRepository
from .user_repo import UserRepository
from .workout_repo import WorkoutRepository

__all__ = [
    "UserRepository",
    "GoalRepository",
    "WorkoutRepository",
    "NotificationRepository",
]
