"""
Pydantic schemas for API request/response models.
"""

from .common import (
    ComponentHealth,
    DetailedHealthCheckResponse,
    ErrorDetail,
    ErrorResponse,
    HealthCheckResponse,
    HealthStatus,
)
from .notifications import (
    AnalyticsFlags,
    CreateNotificationRequest,
    DeleteNotificationResponse,
    DeliveryInfo,
    GetNotificationResponse,
    ListNotificationsResponse,
    MarkReadRequest,
    MarkReadResponse,
    NotificationActionResponse,
    NotificationAnalyticsResponse,
    NotificationInfo,
    RecurrenceInfo,
    UnreadCountResponse,
    UnreadNotificationsResponse,
)
from .recommendations import (
    PatternInsightResponse,
    RecommendationResponse,
    WorkoutSuggestionResponse,
)
from .scheduler import RunTaskResponse, SchedulerStatusResponse

__all__ = [
    # Common
    "ComponentHealth",
    "DetailedHealthCheckResponse",
    "ErrorDetail",
    "ErrorResponse",
    "HealthCheckResponse",
    "HealthStatus",
    # Notifications
    "AnalyticsFlags",
    "CreateNotificationRequest",
    "DeleteNotificationResponse",
    "DeliveryInfo",
    "GetNotificationResponse",
    "ListNotificationsResponse",
    "MarkReadRequest",
    "MarkReadResponse",
    "NotificationActionResponse",
    "NotificationAnalyticsResponse",
    "NotificationInfo",
    "RecurrenceInfo",
    "UnreadCountResponse",
    "UnreadNotificationsResponse",
    # Recommendations
    "PatternInsightResponse",
    "RecommendationResponse",
    "WorkoutSuggestionResponse",
    # Scheduler
    "RunTaskResponse",
    "SchedulerStatusResponse",
]
