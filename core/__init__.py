"""
Core modules for FitLife Notifications API.

This package contains fundamental utilities used across the application:
- config: Application settings and configuration
- security: JWT token handling and authentication
- redis: Redis connection management
- rate_limit: Fixed-window request limiting backed by Redis
- exceptions: Custom exception classes
"""

from .config import Settings, get_settings
from .exceptions import (
    AppException,
    AuthenticationError,
    AuthorizationError,
    DatabaseUnavailableError,
    InvalidNotificationError,
    NotFoundError,
    NotificationNotFoundError,
    RateLimitError,
    SchedulerTaskNotFoundError,
    ValidationError,
)

__all__ = [
    # Config
    "get_settings",
    "Settings",
    # Exceptions
    "AppException",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ValidationError",
    "RateLimitError",
    "DatabaseUnavailableError",
    "NotificationNotFoundError",
    "InvalidNotificationError",
    "SchedulerTaskNotFoundError",
]
