"""
Notifications router.

Endpoints:
- POST /api/notifications - Create a notification for the current user
- GET /api/notifications - List notifications
- GET /api/notifications/user/{user_id} - List notifications of a user (self only)
- GET /api/notifications/unread - Unread notifications, most important first
- GET /api/notifications/unread-count - Get unread count
- GET /api/notifications/analytics - Engagement analytics
- GET /api/notifications/{id} - Get one notification
- POST /api/notifications/{id}/read - Mark one notification as read
- POST /api/notifications/{id}/click - Record a click
- POST /api/notifications/{id}/action - Record the call to action
- POST /api/notifications/mark-read - Mark notifications as read
- POST /api/notifications/mark-all-read - Mark all as read
- DELETE /api/notifications/{id} - Delete notification
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from api.dependencies import get_notification_repository, require_db_user
from api.schemas.notifications import (
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
from core.exceptions import AuthorizationError, NotificationNotFoundError
from database.models import Notification, NotificationStatus, User
from database.repositories import NotificationRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["notifications"])


# ============ Helpers ============


def notification_to_info(notification: Notification) -> NotificationInfo:
    """Convert database notification to response model."""
    recurrence = None
    if notification.is_recurring and notification.recurrence_frequency:
        recurrence = RecurrenceInfo(
            frequency=notification.recurrence_frequency,
            interval=notification.recurrence_interval,
            days_of_week=notification.recurrence_days_of_week or [],
            end_date=notification.recurrence_end_date,
            next_scheduled=notification.next_scheduled,
        )

    return NotificationInfo(
        id=notification.notification_id,
        user_id=str(notification.user_id),
        type=notification.type,
        category=notification.category,
        priority=notification.priority,
        title=notification.title,
        message=notification.message,
        channels=notification.channels or [],
        status=notification.status,
        scheduled_for=notification.scheduled_for,
        sent_at=notification.sent_at,
        delivered_at=notification.delivered_at,
        read_at=notification.read_at,
        expires_at=notification.expires_at,
        related_id=notification.related_id,
        related_model=notification.related_model,
        action_url=notification.action_url,
        action_label=notification.action_label,
        image_url=notification.image_url,
        custom_data=notification.custom_data or {},
        tags=notification.tags or [],
        delivery=DeliveryInfo(
            attempts=notification.attempts,
            last_attempt=notification.last_attempt,
            errors=notification.delivery_errors or [],
            status_by_channel=notification.delivery_status or {},
            success_rate=notification.delivery_success_rate,
        ),
        analytics=AnalyticsFlags(
            opened=notification.opened,
            opened_at=notification.opened_at,
            clicked=notification.clicked,
            clicked_at=notification.clicked_at,
            action_taken=notification.action_taken,
            action_taken_at=notification.action_taken_at,
        ),
        recurrence=recurrence,
        time_ago=notification.time_ago,
        created_at=notification.created_at,
    )


async def get_owned_notification(
    notification_id: str,
    user: User,
    notification_repo: NotificationRepository,
) -> Notification:
    """Fetch a notification of the current user or raise 404."""
    notification = await notification_repo.get_by_notification_id(notification_id, user_id=user.id)
    if notification is None:
        raise NotificationNotFoundError(details={"notification_id": notification_id})
    return notification


async def list_for_user(
    user_id: UUID,
    notification_status: NotificationStatus | None,
    limit: int,
    offset: int,
    notification_repo: NotificationRepository,
) -> ListNotificationsResponse:
    status_value = notification_status.value if notification_status else None
    notifications = await notification_repo.list_by_user(
        user_id=user_id,
        status=status_value,
        limit=limit + 1,
        offset=offset,
    )

    has_more = len(notifications) > limit
    notifications = notifications[:limit]

    total = await notification_repo.count_by_user(user_id, status=status_value)
    unread_count = await notification_repo.count_unread(user_id)

    return ListNotificationsResponse(
        notifications=[notification_to_info(n) for n in notifications],
        total=total,
        unread_count=unread_count,
        limit=limit,
        offset=offset,
        has_more=has_more,
    )


# ============ Endpoints ============


@router.post("", response_model=GetNotificationResponse, status_code=status.HTTP_201_CREATED)
async def create_notification(
    request: CreateNotificationRequest,
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Create a notification addressed to the current user."""
    fields = request.model_dump(exclude={"recurrence"}, mode="python")
    if request.recurrence:
        fields.update(
            is_recurring=True,
            recurrence_frequency=request.recurrence.frequency,
            recurrence_interval=request.recurrence.interval,
            recurrence_days_of_week=request.recurrence.days_of_week,
            recurrence_end_date=request.recurrence.end_date,
        )
    fields["channels"] = [str(channel) for channel in request.channels]

    notification = await notification_repo.create(user_id=user.id, **fields)
    logger.info(f"Created notification {notification.notification_id} for user {user.id}")
    return GetNotificationResponse(notification=notification_to_info(notification))


@router.get("", response_model=ListNotificationsResponse)
async def list_notifications(
    notification_status: NotificationStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """List notifications for the current user."""
    return await list_for_user(user.id, notification_status, limit, offset, notification_repo)


@router.get("/user/{user_id}", response_model=ListNotificationsResponse)
async def list_user_notifications(
    user_id: UUID,
    notification_status: NotificationStatus | None = Query(default=None, alias="status"),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """List notifications of a user; callers may only read their own."""
    if user_id != user.id:
        raise AuthorizationError(message="You can only view your own notifications")
    return await list_for_user(user_id, notification_status, limit, offset, notification_repo)


@router.get("/unread", response_model=UnreadNotificationsResponse)
async def get_unread(
    limit: int = Query(default=20, ge=1, le=100),
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Unread notifications, most important first."""
    notifications = await notification_repo.find_unread(user.id, limit=limit)
    count = await notification_repo.count_unread(user.id)
    return UnreadNotificationsResponse(
        notifications=[notification_to_info(n) for n in notifications],
        unread_count=count,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Get the count of unread notifications."""
    count = await notification_repo.count_unread(user.id)
    return UnreadCountResponse(unread_count=count)


@router.get("/analytics", response_model=NotificationAnalyticsResponse)
async def get_analytics(
    days: int = Query(default=30, ge=1, le=365),
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Open, click and action rates over the last ``days`` days."""
    analytics = await notification_repo.get_analytics(user.id, days=days)
    return NotificationAnalyticsResponse(**analytics)


@router.post("/mark-read", response_model=MarkReadResponse)
async def mark_read(
    request: MarkReadRequest,
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Mark specific notifications as read."""
    marked = await notification_repo.mark_multiple_as_read(user.id, request.notification_ids)
    return MarkReadResponse(success=True, marked_count=marked)


@router.post("/mark-all-read", response_model=MarkReadResponse)
async def mark_all_read(
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Mark all notifications as read."""
    marked = await notification_repo.mark_all_as_read(user.id)
    return MarkReadResponse(success=True, marked_count=marked)


@router.get("/{notification_id}", response_model=GetNotificationResponse)
async def get_notification(
    notification_id: str,
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Get a specific notification."""
    notification = await get_owned_notification(notification_id, user, notification_repo)
    return GetNotificationResponse(notification=notification_to_info(notification))


@router.post("/{notification_id}/read", response_model=NotificationActionResponse)
async def mark_one_read(
    notification_id: str,
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Mark one notification as read. Repeating the call changes nothing."""
    notification = await get_owned_notification(notification_id, user, notification_repo)
    changed = await notification_repo.mark_as_read(notification)
    return NotificationActionResponse(changed=changed, notification=notification_to_info(notification))


@router.post("/{notification_id}/click", response_model=NotificationActionResponse)
async def record_click(
    notification_id: str,
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Record that the user clicked the notification."""
    notification = await get_owned_notification(notification_id, user, notification_repo)
    changed = await notification_repo.mark_clicked(notification)
    return NotificationActionResponse(changed=changed, notification=notification_to_info(notification))


@router.post("/{notification_id}/action", response_model=NotificationActionResponse)
async def record_action(
    notification_id: str,
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Record that the user followed the notification's call to action."""
    notification = await get_owned_notification(notification_id, user, notification_repo)
    changed = await notification_repo.mark_action_taken(notification)
    return NotificationActionResponse(changed=changed, notification=notification_to_info(notification))


@router.delete("/{notification_id}", response_model=DeleteNotificationResponse)
async def delete_notification(
    notification_id: str,
    user: User = Depends(require_db_user),
    notification_repo: NotificationRepository = Depends(get_notification_repository),
):
    """Delete a notification."""
    deleted = await notification_repo.delete_for_user(user.id, notification_id)
    if not deleted:
        raise NotificationNotFoundError(details={"notification_id": notification_id})
    return DeleteNotificationResponse(success=True)
