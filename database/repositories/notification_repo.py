"""
Notification repository: creation, queries, bulk updates and the delivery
recorder.

Writes go through ``services.notification_lifecycle`` so every persisted
notification has been validated and had its derived fields applied.
"""

from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import and_, case, delete, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from database.models import PRIORITY_RANK, Notification, NotificationStatus
from services import notification_lifecycle as lifecycle

_priority_rank = case(PRIORITY_RANK, value=Notification.priority, else_=0)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(UTC)


class NotificationRepository:
    """Repository for Notification model operations."""

    def __init__(
        self,
        session: AsyncSession,
        ttl_days: int = lifecycle.DEFAULT_TTL_DAYS,
        max_attempts: int = lifecycle.MAX_DELIVERY_ATTEMPTS,
    ):
        self.session = session
        self.ttl_days = ttl_days
        self.max_attempts = max_attempts

    # ============ Create ============

    async def create(
        self,
        user_id: UUID,
        type: str,
        title: str,
        message: str,
        now: datetime | None = None,
        **fields: Any,
    ) -> Notification:
        """
        Create a notification.

        Raises:
            InvalidNotificationError: If any field violates the data model
        """
        now = _now(now)
        values = lifecycle.validate_new_notification(
            user_id=user_id,
            type=type,
            title=title,
            message=message,
            now=now,
            ttl_days=self.ttl_days,
            **fields,
        )
        notification = Notification(**values)
        lifecycle.prepare_for_save(notification, now)
        self.session.add(notification)
        await self.session.flush()
        return notification

    async def create_recurring_instance(
        self,
        notification: Notification,
        now: datetime | None = None,
    ) -> Notification | None:
        """Create the next occurrence of a recurring notification, if any."""
        fields = lifecycle.recurring_instance_fields(notification, now, self.ttl_days)
        if fields is None:
            return None
        return await self.create(now=now, **fields)

    async def save(self, notification: Notification, now: datetime | None = None) -> Notification:
        """Apply derived-field rules and flush pending changes."""
        lifecycle.prepare_for_save(notification, _now(now))
        await self.session.flush()
        return notification

    # ============ Read ============

    async def get_by_id(self, id: UUID, now: datetime | None = None) -> Notification | None:
        """Get notification by storage key."""
        result = await self.session.execute(select(Notification).where(Notification.id == id))
        return await self._with_expiry(result.scalar_one_or_none(), now)

    async def get_by_notification_id(
        self,
        notification_id: str,
        user_id: UUID | None = None,
        now: datetime | None = None,
    ) -> Notification | None:
        """Get notification by public id, optionally scoped to its owner."""
        query = select(Notification).where(Notification.notification_id == notification_id)
        if user_id is not None:
            query = query.where(Notification.user_id == user_id)
        result = await self.session.execute(query)
        return await self._with_expiry(result.scalar_one_or_none(), now)

    async def _with_expiry(
        self,
        notification: Notification | None,
        now: datetime | None,
    ) -> Notification | None:
        if notification is not None and lifecycle.apply_lazy_expiry(notification, _now(now)):
            await self.session.flush()
        return notification

    async def expire_due(self, user_id: UUID | None = None, now: datetime | None = None) -> int:
        """Fail pending notifications past their expiry."""
        conditions = [
            Notification.status == NotificationStatus.PENDING.value,
            Notification.expires_at <= _now(now),
        ]
        if user_id is not None:
            conditions.append(Notification.user_id == user_id)

        result = await self.session.execute(
            update(Notification)
            .where(*conditions)
            .values(status=NotificationStatus.FAILED.value)
        )
        return result.rowcount

    async def find_pending(self, limit: int = 100, now: datetime | None = None) -> list[Notification]:
        """
        Pending notifications that are due and not expired.

        Ordered by priority (urgent first), then oldest schedule first.
        """
        now = _now(now)
        result = await self.session.execute(
            select(Notification)
            .where(
                Notification.status == NotificationStatus.PENDING.value,
                Notification.scheduled_for <= now,
                Notification.expires_at > now,
            )
            .order_by(desc(_priority_rank), Notification.scheduled_for)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def find_unread(
        self,
        user_id: UUID,
        limit: int = 20,
        now: datetime | None = None,
    ) -> list[Notification]:
        """Unread, unexpired notifications for a user, most important first."""
        result = await self.session.execute(
            select(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.status.in_(lifecycle.UNREAD_STATUSES),
                Notification.expires_at > _now(now),
            )
            .order_by(desc(_priority_rank), desc(Notification.scheduled_for))
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_by_user(
        self,
        user_id: UUID,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
        now: datetime | None = None,
    ) -> list[Notification]:
        """List notifications for a user, newest first."""
        await self.expire_due(user_id, now)
        query = select(Notification).where(Notification.user_id == user_id)
        if status:
            query = query.where(Notification.status == status)

        query = query.order_by(desc(Notification.created_at)).limit(limit).offset(offset)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def count_by_user(self, user_id: UUID, status: str | None = None) -> int:
        """Count notifications for a user."""
        query = (
            select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
        )
        if status:
            query = query.where(Notification.status == status)

        result = await self.session.execute(query)
        return result.scalar_one()

    async def count_unread(self, user_id: UUID, now: datetime | None = None) -> int:
        """Count unread, unexpired notifications for a user."""
        result = await self.session.execute(
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.status.in_(lifecycle.UNREAD_STATUSES),
                Notification.expires_at > _now(now),
            )
        )
        return result.scalar_one()

    async def has_recent(
        self,
        user_id: UUID,
        type: str,
        since: datetime,
    ) -> bool:
        """Check if the user received a notification of ``type`` since ``since``."""
        result = await self.session.execute(
            select(Notification.id)
            .where(
                Notification.user_id == user_id,
                Notification.type == type,
                Notification.created_at >= since,
            )
            .limit(1)
        )
        return result.first() is not None

    # ============ Update ============

    async def mark_as_read(self, notification: Notification, now: datetime | None = None) -> bool:
        """Mark one notification read. Returns False if it already was (or failed)."""
        changed = lifecycle.mark_read(notification, _now(now))
        if changed:
            await self.session.flush()
        return changed

    async def mark_clicked(self, notification: Notification, now: datetime | None = None) -> bool:
        changed = lifecycle.mark_clicked(notification, _now(now))
        if changed:
            await self.session.flush()
        return changed

    async def mark_action_taken(self, notification: Notification, now: datetime | None = None) -> bool:
        changed = lifecycle.mark_action_taken(notification, _now(now))
        if changed:
            await self.session.flush()
        return changed

    async def mark_sent(self, notification: Notification, now: datetime | None = None) -> bool:
        changed = lifecycle.mark_sent(notification, _now(now))
        if changed:
            await self.session.flush()
        return changed

    async def mark_multiple_as_read(
        self,
        user_id: UUID,
        notification_ids: list[str],
        now: datetime | None = None,
    ) -> int:
        """
        Mark the user's listed notifications read in one statement.

        Only unread notifications that have not expired while pending are
        touched, so repeating the call changes nothing.

        Returns:
            Number of notifications updated
        """
        if not notification_ids:
            return 0
        return await self._bulk_mark_read(
            _now(now),
            Notification.user_id == user_id,
            Notification.notification_id.in_(notification_ids),
        )

    async def mark_all_as_read(self, user_id: UUID, now: datetime | None = None) -> int:
        """Mark every unread notification of a user read."""
        return await self._bulk_mark_read(_now(now), Notification.user_id == user_id)

    async def _bulk_mark_read(self, now: datetime, *conditions) -> int:
        result = await self.session.execute(
            update(Notification)
            .where(
                *conditions,
                Notification.status.in_(lifecycle.UNREAD_STATUSES),
                or_(
                    Notification.status != NotificationStatus.PENDING.value,
                    Notification.expires_at > now,
                ),
            )
            .values(
                status=NotificationStatus.READ.value,
                read_at=now,
                opened=True,
                opened_at=now,
            )
        )
        return result.rowcount

    async def record_delivery_attempt(
        self,
        notification: Notification,
        channel: str,
        success: bool,
        error: str | None = None,
        now: datetime | None = None,
    ) -> bool:
        """
        Delivery recorder: persist the outcome of one channel attempt.

        Delivery failures are recorded as data; only storage errors raise.

        Raises:
            InvalidNotificationError: If the channel is unknown
        """
        recorded = lifecycle.record_delivery_attempt(
            notification,
            channel,
            success,
            error,
            _now(now),
            max_attempts=self.max_attempts,
        )
        if recorded:
            await self.session.flush()
        return recorded

    # ============ Delete ============

    async def delete_for_user(self, user_id: UUID, notification_id: str) -> bool:
        """Delete a notification owned by a specific user."""
        result = await self.session.execute(
            select(Notification).where(
                Notification.notification_id == notification_id,
                Notification.user_id == user_id,
            )
        )
        notification = result.scalar_one_or_none()
        if notification:
            await self.session.delete(notification)
            await self.session.flush()
            return True
        return False

    async def cleanup_expired(self, now: datetime | None = None) -> int:
        """
        Hard-delete expired notifications that were never read.

        Returns:
            Number of notifications deleted
        """
        result = await self.session.execute(
            delete(Notification)
            .where(
                Notification.expires_at < _now(now),
                Notification.status != NotificationStatus.READ.value,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount

    # ============ Analytics ============

    async def get_analytics(
        self,
        user_id: UUID,
        days: int = 30,
        now: datetime | None = None,
    ) -> dict[str, Any]:
        """Engagement counters and rates for the last ``days`` days."""
        window = and_(
            Notification.user_id == user_id,
            Notification.created_at >= _now(now) - timedelta(days=days),
        )

        def _flag_sum(column):
            return func.coalesce(func.sum(case((column.is_(True), 1), else_=0)), 0)

        totals = (
            await self.session.execute(
                select(
                    func.count(),
                    _flag_sum(Notification.opened),
                    _flag_sum(Notification.clicked),
                    _flag_sum(Notification.action_taken),
                ).where(window)
            )
        ).one()
        total, opened, clicked, actions = (int(value or 0) for value in totals)

        by_type = await self.session.execute(
            select(Notification.type, func.count()).where(window).group_by(Notification.type)
        )
        by_priority = await self.session.execute(
            select(Notification.priority, func.count()).where(window).group_by(Notification.priority)
        )

        def _rate(part: int, whole: int) -> float:
            return round(part / whole * 100, 1) if whole else 0.0

        return {
            "period_days": days,
            "total": total,
            "opened": opened,
            "clicked": clicked,
            "action_taken": actions,
            "open_rate": _rate(opened, total),
            "click_rate": _rate(clicked, opened),
            "action_rate": _rate(actions, clicked),
            "by_type": {row[0]: row[1] for row in by_type.all()},
            "by_priority": {row[0]: row[1] for row in by_priority.all()},
        }
