"""
Pydantic schemas for notifications API.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from database.models import (
    Channel,
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    RecurrenceFrequency,
    RelatedModel,
)


class RecurrenceInfo(BaseModel):
    """Recurrence settings of a notification."""

    frequency: RecurrenceFrequency = Field(..., description="daily, weekly or monthly")
    interval: int = Field(default=1, ge=1, description="Repeat every N periods")
    days_of_week: list[int] = Field(
        default_factory=list,
        description="Allowed weekdays, 0 (Sunday) to 6",
    )
    end_date: datetime | None = Field(None, description="No occurrences after this time")
    next_scheduled: datetime | None = Field(None, description="Next occurrence")

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, value: list[int]) -> list[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("days_of_week must contain values from 0 (Sunday) to 6")
        return sorted(set(value))


class DeliveryInfo(BaseModel):
    """Delivery bookkeeping of a notification."""

    attempts: int = Field(..., description="Delivery attempts so far (max 5)")
    last_attempt: datetime | None = Field(None, description="Time of the last attempt")
    errors: list[dict[str, Any]] = Field(default_factory=list, description="Failed attempts")
    status_by_channel: dict[str, str] = Field(default_factory=dict)
    success_rate: float = Field(..., description="Percent of channels delivered")


class AnalyticsFlags(BaseModel):
    """Engagement flags of a notification."""

    opened: bool = False
    opened_at: datetime | None = None
    clicked: bool = False
    clicked_at: datetime | None = None
    action_taken: bool = False
    action_taken_at: datetime | None = None


class NotificationInfo(BaseModel):
    """Notification information."""

    id: str = Field(..., description="Notification ID")
    user_id: str = Field(..., description="Recipient user ID")
    type: NotificationType = Field(..., description="Notification type")
    category: NotificationCategory = Field(..., description="Notification category")
    priority: NotificationPriority = Field(..., description="Notification priority")
    title: str = Field(..., description="Notification title")
    message: str = Field(..., description="Notification message")
    channels: list[Channel] = Field(default_factory=list)
    status: NotificationStatus = Field(..., description="Lifecycle status")
    scheduled_for: datetime
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None
    expires_at: datetime
    related_id: str | None = None
    related_model: RelatedModel | None = None
    action_url: str | None = None
    action_label: str | None = None
    image_url: str | None = None
    custom_data: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list)
    delivery: DeliveryInfo
    analytics: AnalyticsFlags
    recurrence: RecurrenceInfo | None = None
    time_ago: str = Field(..., description="Human readable age")
    created_at: datetime = Field(..., description="Creation timestamp")


# ============ Request/Response Schemas ============


class CreateNotificationRequest(BaseModel):
    """Request for creating a notification for the current user."""

    type: NotificationType
    title: str = Field(..., min_length=1, max_length=100)
    message: str = Field(..., min_length=1, max_length=500)
    category: NotificationCategory = NotificationCategory.SYSTEM
    priority: NotificationPriority = NotificationPriority.NORMAL
    channels: list[Channel] = Field(default_factory=lambda: [Channel.IN_APP], min_length=1)
    scheduled_for: datetime | None = None
    expires_at: datetime | None = None
    related_id: str | None = Field(None, max_length=64)
    related_model: RelatedModel | None = None
    action_url: str | None = Field(None, max_length=200)
    action_label: str | None = Field(None, max_length=50)
    image_url: str | None = Field(None, max_length=200)
    custom_data: dict[str, Any] = Field(default_factory=dict)
    tags: list[str] = Field(default_factory=list, max_length=10)
    recurrence: RecurrenceInfo | None = None

    @field_validator("title", "message")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class ListNotificationsResponse(BaseModel):
    """Response for listing notifications."""

    notifications: list[NotificationInfo] = Field(default_factory=list)
    total: int = Field(..., description="Total number of notifications")
    unread_count: int = Field(..., description="Number of unread notifications")
    limit: int = Field(..., description="Items per page")
    offset: int = Field(..., description="Current offset")
    has_more: bool = Field(..., description="Whether more items exist")


class UnreadNotificationsResponse(BaseModel):
    """Response for the unread notification feed."""

    notifications: list[NotificationInfo] = Field(default_factory=list)
    unread_count: int = Field(..., description="Number of unread notifications")


class UnreadCountResponse(BaseModel):
    """Response for getting unread count."""

    unread_count: int = Field(..., description="Number of unread notifications")


class MarkReadRequest(BaseModel):
    """Request for marking notifications as read."""

    notification_ids: list[str] = Field(
        ...,
        min_length=1,
        max_length=100,
        description="Notification IDs to mark as read",
    )


class MarkReadResponse(BaseModel):
    """Response for marking notifications as read."""

    success: bool = True
    marked_count: int = Field(..., description="Number of notifications marked as read")


class NotificationActionResponse(BaseModel):
    """Response for read/click/action updates on one notification."""

    success: bool = True
    changed: bool = Field(..., description="False when the update was already applied")
    notification: NotificationInfo


class DeleteNotificationResponse(BaseModel):
    """Response for deleting a notification."""

    success: bool = True
    message: str = Field(default="Notification deleted successfully")


class GetNotificationResponse(BaseModel):
    """Response for getting a single notification."""

    notification: NotificationInfo


class NotificationAnalyticsResponse(BaseModel):
    """Engagement analytics for the current user."""

    period_days: int
    total: int
    opened: int
    clicked: int
    action_taken: int
    open_rate: float = Field(..., description="Opened / total, percent")
    click_rate: float = Field(..., description="Clicked / opened, percent")
    action_rate: float = Field(..., description="Action taken / clicked, percent")
    by_type: dict[str, int] = Field(default_factory=dict)
    by_priority: dict[str, int] = Field(default_factory=dict)
