"""
Notification lifecycle rules.

Pure functions over ``Notification`` instances: the status state machine,
delivery attempt bookkeeping, lazy expiry, recurrence and creation-time
validation. Nothing here touches the database; the repository calls
``prepare_for_save`` right before it flushes.

Status moves forward only::

    pending -> sent -> delivered -> read
       \\________\\__________\\______-> failed (expiry or exhausted attempts)

``read`` and ``failed`` are terminal.
"""

import calendar
import logging
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from core.exceptions import InvalidNotificationError
from database.models.notification import (
    CHANNEL_STATES,
    Channel,
    Notification,
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    RecurrenceFrequency,
    RelatedModel,
    new_notification_id,
)

logger = logging.getLogger(__name__)

MAX_DELIVERY_ATTEMPTS = 5
DEFAULT_TTL_DAYS = 30

TITLE_MAX_LENGTH = 100
MESSAGE_MAX_LENGTH = 500
URL_MAX_LENGTH = 200
ACTION_LABEL_MAX_LENGTH = 50
MAX_TAGS = 10

_ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    NotificationStatus.PENDING: frozenset({
        NotificationStatus.SENT,
        NotificationStatus.DELIVERED,
        NotificationStatus.READ,
        NotificationStatus.FAILED,
    }),
    NotificationStatus.SENT: frozenset({
        NotificationStatus.DELIVERED,
        NotificationStatus.READ,
        NotificationStatus.FAILED,
    }),
    NotificationStatus.DELIVERED: frozenset({
        NotificationStatus.READ,
        NotificationStatus.FAILED,
    }),
    NotificationStatus.READ: frozenset(),
    NotificationStatus.FAILED: frozenset(),
}

UNREAD_STATUSES = (
    NotificationStatus.PENDING.value,
    NotificationStatus.SENT.value,
    NotificationStatus.DELIVERED.value,
)


def _utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _now(now: datetime | None) -> datetime:
    return _utc(now) if now is not None else datetime.now(UTC)


# ============ State machine ============


def can_transition(current: str, target: str) -> bool:
    """Check whether ``current -> target`` is a forward transition."""
    return target in _ALLOWED_TRANSITIONS.get(current, frozenset())


def transition(notification: Notification, target: str, now: datetime | None = None) -> bool:
    """
    Move a notification to ``target`` if the state machine allows it.

    Lifecycle timestamps are stamped only the first time their state is
    entered. Backward or repeated updates are ignored.

    Returns:
        True if the status changed
    """
    if not can_transition(notification.status, target):
        return False

    now = _now(now)
    notification.status = str(target)

    if target == NotificationStatus.SENT and notification.sent_at is None:
        notification.sent_at = now
    elif target == NotificationStatus.DELIVERED and notification.delivered_at is None:
        notification.delivered_at = now
    elif target == NotificationStatus.READ:
        if notification.read_at is None:
            notification.read_at = now
        if not notification.opened:
            notification.opened = True
            notification.opened_at = now

    return True


def mark_sent(notification: Notification, now: datetime | None = None) -> bool:
    return transition(notification, NotificationStatus.SENT, now)


def mark_read(notification: Notification, now: datetime | None = None) -> bool:
    return transition(notification, NotificationStatus.READ, now)


def mark_clicked(notification: Notification, now: datetime | None = None) -> bool:
    if notification.clicked:
        return False
    notification.clicked = True
    notification.clicked_at = _now(now)
    return True


def mark_action_taken(notification: Notification, now: datetime | None = None) -> bool:
    if notification.action_taken:
        return False
    notification.action_taken = True
    notification.action_taken_at = _now(now)
    return True


def apply_lazy_expiry(notification: Notification, now: datetime | None = None) -> bool:
    """Fail a pending notification whose expiry has passed."""
    if notification.status != NotificationStatus.PENDING or notification.expires_at is None:
        return False
    if _utc(notification.expires_at) > _now(now):
        return False
    return transition(notification, NotificationStatus.FAILED, now)


# ============ Delivery attempts ============


def record_delivery_attempt(
    notification: Notification,
    channel: str,
    success: bool,
    error: str | None = None,
    now: datetime | None = None,
    max_attempts: int = MAX_DELIVERY_ATTEMPTS,
) -> bool:
    """
    Record one delivery attempt on one channel.

    A success marks the channel delivered and promotes pending/sent to
    delivered. A failure marks the channel failed and appends an error
    entry; reaching ``max_attempts`` fails the notification unless it has
    already been read.

    Returns:
        False when the attempt cap was already reached and nothing changed

    Raises:
        InvalidNotificationError: If the channel is unknown
    """
    if channel not in CHANNEL_STATES:
        raise InvalidNotificationError(
            message=f"Unknown delivery channel: {channel}",
            details={"channel": channel},
        )

    attempts = notification.attempts or 0
    if attempts >= max_attempts:
        logger.warning(
            "Delivery attempt ignored for %s: attempt cap %d reached",
            notification.notification_id,
            max_attempts,
        )
        return False

    now = _now(now)
    notification.attempts = attempts + 1
    notification.last_attempt = now
    statuses = dict(notification.delivery_status or {})

    if success:
        statuses[channel] = "delivered"
        transition(notification, NotificationStatus.DELIVERED, now)
    else:
        statuses[channel] = "failed"
        notification.delivery_errors = [
            *(notification.delivery_errors or []),
            {
                "channel": channel,
                "error": error or "Unknown delivery error",
                "timestamp": now.isoformat(),
            },
        ]
        if notification.attempts >= max_attempts:
            transition(notification, NotificationStatus.FAILED, now)

    notification.delivery_status = statuses
    return True


# ============ Recurrence ============


def add_months(value: datetime, months: int) -> datetime:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def _sunday_first_weekday(value: datetime) -> int:
    # 0 = Sunday ... 6 = Saturday
    return (value.weekday() + 1) % 7


def compute_next_scheduled(
    scheduled_for: datetime,
    frequency: str,
    interval: int = 1,
    days_of_week: list[int] | None = None,
    end_date: datetime | None = None,
) -> datetime | None:
    """
    Next occurrence of a recurring notification.

    Returns:
        The next occurrence, or None when it falls after ``end_date``
    """
    interval = max(1, interval or 1)
    scheduled_for = _utc(scheduled_for)

    if frequency == RecurrenceFrequency.DAILY:
        next_run = scheduled_for + timedelta(days=interval)
    elif frequency == RecurrenceFrequency.WEEKLY:
        next_run = scheduled_for + timedelta(weeks=interval)
    elif frequency == RecurrenceFrequency.MONTHLY:
        next_run = add_months(scheduled_for, interval)
    else:
        return None

    allowed_days = set(days_of_week or [])
    if allowed_days:
        for _ in range(7):
            if _sunday_first_weekday(next_run) in allowed_days:
                break
            next_run += timedelta(days=1)

    if end_date is not None and next_run > _utc(end_date):
        return None
    return next_run


def prepare_for_save(notification: Notification, now: datetime | None = None) -> Notification:
    """Apply the derived-field rules before a notification is persisted."""
    now = _now(now)
    apply_lazy_expiry(notification, now)

    if (
        notification.is_recurring
        and notification.recurrence_frequency
        and notification.next_scheduled is None
    ):
        notification.next_scheduled = compute_next_scheduled(
            notification.scheduled_for or now,
            notification.recurrence_frequency,
            notification.recurrence_interval,
            notification.recurrence_days_of_week,
            notification.recurrence_end_date,
        )
    return notification


# ============ Creation ============


def _check_choice(errors: list, field: str, value: Any, choices: type, required: bool = True) -> None:
    if value is None:
        if required:
            errors.append({"field": field, "error": "is required"})
        return
    allowed = {member.value for member in choices}
    if value not in allowed:
        errors.append({"field": field, "error": f"must be one of {sorted(allowed)}"})


def _check_length(errors: list, field: str, value: str | None, limit: int) -> None:
    if value is not None and len(value) > limit:
        errors.append({"field": field, "error": f"must be at most {limit} characters"})


def validate_new_notification(
    *,
    user_id: UUID,
    type: str,
    title: str,
    message: str,
    category: str | None = None,
    priority: str | None = None,
    channels: list[str] | None = None,
    scheduled_for: datetime | None = None,
    expires_at: datetime | None = None,
    related_id: str | None = None,
    related_model: str | None = None,
    action_url: str | None = None,
    action_label: str | None = None,
    image_url: str | None = None,
    custom_data: dict | None = None,
    tags: list[str] | None = None,
    is_recurring: bool = False,
    recurrence_frequency: str | None = None,
    recurrence_interval: int | None = None,
    recurrence_days_of_week: list[int] | None = None,
    recurrence_end_date: datetime | None = None,
    now: datetime | None = None,
    ttl_days: int = DEFAULT_TTL_DAYS,
) -> dict[str, Any]:
    """
    Validate and normalize the fields of a new notification.

    Returns:
        Column values ready for ``Notification(**values)``

    Raises:
        InvalidNotificationError: With every violated field in ``details``
    """
    now = _now(now)
    errors: list[dict[str, str]] = []

    if user_id is None:
        errors.append({"field": "user_id", "error": "is required"})

    title = (title or "").strip()
    message = (message or "").strip()
    if not title:
        errors.append({"field": "title", "error": "is required"})
    if not message:
        errors.append({"field": "message", "error": "is required"})
    _check_length(errors, "title", title, TITLE_MAX_LENGTH)
    _check_length(errors, "message", message, MESSAGE_MAX_LENGTH)
    _check_length(errors, "action_url", action_url, URL_MAX_LENGTH)
    _check_length(errors, "action_label", action_label, ACTION_LABEL_MAX_LENGTH)
    _check_length(errors, "image_url", image_url, URL_MAX_LENGTH)

    category = category or NotificationCategory.SYSTEM.value
    priority = priority or NotificationPriority.NORMAL.value
    _check_choice(errors, "type", type, NotificationType)
    _check_choice(errors, "category", category, NotificationCategory)
    _check_choice(errors, "priority", priority, NotificationPriority)
    _check_choice(errors, "related_model", related_model, RelatedModel, required=False)

    normalized_channels: list[str] = []
    for channel in channels if channels is not None else [Channel.IN_APP.value]:
        if channel not in CHANNEL_STATES:
            errors.append({"field": "channels", "error": f"unknown channel {channel!r}"})
        elif channel not in normalized_channels:
            normalized_channels.append(str(channel))
    if not normalized_channels and not any(e["field"] == "channels" for e in errors):
        errors.append({"field": "channels", "error": "at least one channel is required"})

    tags = list(tags or [])
    if len(tags) > MAX_TAGS:
        errors.append({"field": "tags", "error": f"at most {MAX_TAGS} tags allowed"})

    interval = recurrence_interval if recurrence_interval is not None else 1
    days_of_week = sorted(set(recurrence_days_of_week or []))
    if is_recurring:
        _check_choice(errors, "recurrence_frequency", recurrence_frequency, RecurrenceFrequency)
    if interval < 1:
        errors.append({"field": "recurrence_interval", "error": "must be at least 1"})
    if any(day < 0 or day > 6 for day in days_of_week):
        errors.append({"field": "recurrence_days_of_week", "error": "days must be 0 (Sunday) to 6"})

    if errors:
        raise InvalidNotificationError(details={"errors": errors})

    scheduled_for = _utc(scheduled_for) if scheduled_for else now
    expires_at = _utc(expires_at) if expires_at else now + timedelta(days=ttl_days)

    return {
        "notification_id": new_notification_id(),
        "created_at": now,
        "user_id": user_id,
        "type": str(type),
        "category": str(category),
        "priority": str(priority),
        "title": title,
        "message": message,
        "channels": normalized_channels,
        "status": NotificationStatus.PENDING.value,
        "scheduled_for": scheduled_for,
        "expires_at": expires_at,
        "related_id": related_id,
        "related_model": str(related_model) if related_model else None,
        "action_url": action_url,
        "action_label": action_label,
        "image_url": image_url,
        "custom_data": dict(custom_data or {}),
        "tags": tags,
        "attempts": 0,
        "delivery_errors": [],
        "delivery_status": {channel: "pending" for channel in normalized_channels},
        "opened": False,
        "clicked": False,
        "action_taken": False,
        "is_recurring": bool(is_recurring),
        "recurrence_frequency": recurrence_frequency if is_recurring else None,
        "recurrence_interval": interval,
        "recurrence_days_of_week": days_of_week,
        "recurrence_end_date": _utc(recurrence_end_date) if recurrence_end_date else None,
        "next_scheduled": None,
    }


def recurring_instance_fields(
    notification: Notification,
    now: datetime | None = None,
    ttl_days: int = DEFAULT_TTL_DAYS,
) -> dict[str, Any] | None:
    """
    Creation fields for the next occurrence of a recurring notification.

    Returns:
        None when the notification does not recur any more
    """
    if not notification.is_recurring or notification.next_scheduled is None:
        return None

    now = _now(now)
    end_date = notification.recurrence_end_date
    if end_date is not None and now > _utc(end_date):
        return None

    next_run = _utc(notification.next_scheduled)
    return {
        "user_id": notification.user_id,
        "type": notification.type,
        "category": notification.category,
        "priority": notification.priority,
        "title": notification.title,
        "message": notification.message,
        "channels": list(notification.channels or []),
        "scheduled_for": next_run,
        "expires_at": next_run + timedelta(days=ttl_days),
        "related_id": notification.related_id,
        "related_model": notification.related_model,
        "action_url": notification.action_url,
        "action_label": notification.action_label,
        "image_url": notification.image_url,
        "custom_data": dict(notification.custom_data or {}),
        "tags": list(notification.tags or []),
        "is_recurring": True,
        "recurrence_frequency": notification.recurrence_frequency,
        "recurrence_interval": notification.recurrence_interval,
        "recurrence_days_of_week": list(notification.recurrence_days_of_week or []),
        "recurrence_end_date": end_date,
    }
