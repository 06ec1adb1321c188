"""
Delivery of due notifications over their selected channels.

In-app delivery completes once the notification is stored. Email goes out
through ``EmailService``. Push and SMS have no transport yet and are
recorded as failed attempts. Failed notifications stay pending and are
retried on the next dispatch run until the attempt cap fails them.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from database.models import Channel, Notification, NotificationStatus, User
from database.repositories import NotificationRepository
from services.email_service import EmailService

logger = logging.getLogger(__name__)

_DONE_CHANNEL_STATES = ("sent", "delivered")


@dataclass(frozen=True)
class DispatchOutcome:
    notification_id: str
    status: str
    attempts: int
    delivered_channels: list[str] = field(default_factory=list)
    failed_channels: list[str] = field(default_factory=list)
    recurring_instance_id: str | None = None


class NotificationDispatcher:
    """Attempts delivery of one notification and records each attempt."""

    def __init__(self, email_service: EmailService):
        self.email_service = email_service

    async def _deliver(
        self,
        channel: str,
        notification: Notification,
        user: User,
    ) -> tuple[bool, str | None]:
        if channel == Channel.IN_APP:
            return True, None

        if channel == Channel.EMAIL:
            if not user.email:
                return False, "User has no email address"
            if not user.email_notifications:
                return False, "Email notifications disabled by user"
            result = await self.email_service.send_notification(user.email, user.name, notification)
            return result.success, result.error

        return False, f"No transport configured for channel {channel}"

    async def dispatch(
        self,
        repo: NotificationRepository,
        notification: Notification,
        user: User,
        now: datetime | None = None,
    ) -> DispatchOutcome:
        """
        Try every channel not yet delivered and record the outcomes.

        Returns:
            Summary of the attempts made
        """
        now = now or datetime.now(UTC)
        was_pending = notification.status == NotificationStatus.PENDING
        channel_states = notification.delivery_status or {}

        results: list[tuple[str, bool, str | None]] = []
        for channel in notification.channels or []:
            if channel_states.get(channel) in _DONE_CHANNEL_STATES:
                continue
            success, error = await self._deliver(channel, notification, user)
            results.append((channel, success, error))

        if any(success for _, success, _ in results):
            await repo.mark_sent(notification, now)

        for channel, success, error in results:
            await repo.record_delivery_attempt(notification, channel, success, error, now)

        instance = None
        if was_pending and notification.status != NotificationStatus.PENDING:
            instance = await repo.create_recurring_instance(notification, now)

        failed = [channel for channel, success, _ in results if not success]
        if failed:
            logger.warning(
                "Delivery failed for %s on %s (attempts=%d, status=%s)",
                notification.notification_id,
                ", ".join(failed),
                notification.attempts,
                notification.status,
            )

        return DispatchOutcome(
            notification_id=notification.notification_id,
            status=notification.status,
            attempts=notification.attempts,
            delivered_channels=[channel for channel, success, _ in results if success],
            failed_channels=failed,
            recurring_instance_id=instance.notification_id if instance else None,
        )
