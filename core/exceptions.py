"""
Application errors.

Every error the API reports derives from AppException, which carries the
HTTP status, a machine-readable ``error_code`` and optional ``details``.
The handlers in ``api.middleware.error_handler`` render them as
``{"success": false, "error": {...}}``.
"""

from typing import Any


class AppException(Exception):
    """Base exception for all application errors."""

    error_code: str = "internal_error"
    message: str = "An unexpected error occurred"
    status_code: int = 500

    def __init__(
        self,
        message: str | None = None,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.error_code = error_code or self.error_code
        self.details = details or {}
        super().__init__(self.message)


# ============ Auth ============


class AuthenticationError(AppException):
    """Missing, malformed or expired bearer token, or an unknown account."""

    error_code = "authentication_failed"
    message = "Authentication failed"
    status_code = 401


class AuthorizationError(AppException):
    """Authenticated caller acting on another user's data or without admin scope."""

    error_code = "authorization_failed"
    message = "You do not have permission to perform this action"
    status_code = 403


# ============ Request ============


class NotFoundError(AppException):
    error_code = "not_found"
    message = "Resource not found"
    status_code = 404


class ValidationError(AppException):
    error_code = "validation_error"
    message = "Invalid input"
    status_code = 422


class RateLimitError(AppException):
    """Client exceeded the fixed-window request limit."""

    error_code = "rate_limit_exceeded"
    message = "Too many requests, please try again later"
    status_code = 429


class DatabaseUnavailableError(AppException):
    """Raised when the database is not configured or not reachable."""

    error_code = "database_unavailable"
    message = "Database is not available"
    status_code = 503


# ============ Notifications ============


class NotificationNotFoundError(NotFoundError):
    """No notification with that id belongs to the caller."""

    error_code = "notification_not_found"
    message = "Notification not found"


class InvalidNotificationError(ValidationError):
    """
    Notification fields violate the data model.

    ``details["errors"]`` lists ``{"field", "message"}`` entries.
    """

    error_code = "invalid_notification"
    message = "Invalid notification"


class SchedulerTaskNotFoundError(NotFoundError):
    """Raised when an unknown scheduler task is requested."""

    error_code = "scheduler_task_not_found"
    message = "Scheduler task not found"
