"""
Unit tests for NotificationRepository against an in-memory database.
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy import select

from core.exceptions import InvalidNotificationError
from database.models import Notification, NotificationStatus
from database.repositories import NotificationRepository
from tests.conftest import NOW, create_user


@pytest.fixture
def repo(session) -> NotificationRepository:
    return NotificationRepository(session)


async def _create(repo, user, **fields):
    values = {"type": "reminder", "title": "Move", "message": "Time to train", "now": NOW}
    values.update(fields)
    return await repo.create(user_id=user.id, **values)


class TestCreate:
    """Tests for NotificationRepository.create."""

    @pytest.mark.asyncio
    async def test_create_with_defaults(self, repo, user):
        notification = await _create(repo, user)

        stored = await repo.get_by_notification_id(notification.notification_id, now=NOW)
        assert stored.status == NotificationStatus.PENDING
        assert stored.channels == ["in-app"]
        assert stored.expires_at == NOW + timedelta(days=30)

    @pytest.mark.asyncio
    async def test_invalid_channel_rejected(self, repo, user, session):
        with pytest.raises(InvalidNotificationError):
            await _create(repo, user, channels=["carrier-pigeon"])

        count = (await session.execute(select(Notification))).scalars().all()
        assert count == []

    @pytest.mark.asyncio
    async def test_recurring_gets_next_scheduled(self, repo, user):
        notification = await _create(repo, user, is_recurring=True, recurrence_frequency="daily")
        assert notification.next_scheduled == NOW + timedelta(days=1)

    @pytest.mark.asyncio
    async def test_get_scoped_to_owner(self, repo, user, session):
        other = await create_user(session, name="Sam")
        notification = await _create(repo, user)

        assert await repo.get_by_notification_id(notification.notification_id, other.id) is None
        assert await repo.get_by_notification_id(notification.notification_id, user.id) is not None


class TestFindPending:
    """Tests for find_pending ordering and filters."""

    @pytest.mark.asyncio
    async def test_filters_future_and_expired(self, repo, user):
        due = await _create(repo, user, scheduled_for=NOW - timedelta(minutes=5))
        await _create(repo, user, scheduled_for=NOW + timedelta(hours=1))
        await _create(
            repo,
            user,
            scheduled_for=NOW - timedelta(days=2),
            expires_at=NOW - timedelta(days=1),
            now=NOW - timedelta(days=2),
        )
        delivered = await _create(repo, user, scheduled_for=NOW - timedelta(minutes=1))
        await repo.record_delivery_attempt(delivered, "in-app", True, now=NOW)

        pending = await repo.find_pending(now=NOW)

        assert [n.notification_id for n in pending] == [due.notification_id]

    @pytest.mark.asyncio
    async def test_orders_by_priority_then_schedule(self, repo, user):
        low = await _create(repo, user, priority="low", scheduled_for=NOW - timedelta(hours=3))
        urgent = await _create(repo, user, priority="urgent", scheduled_for=NOW - timedelta(minutes=1))
        normal_old = await _create(repo, user, scheduled_for=NOW - timedelta(hours=2))
        normal_new = await _create(repo, user, scheduled_for=NOW - timedelta(hours=1))

        pending = await repo.find_pending(now=NOW)

        assert [n.id for n in pending] == [urgent.id, normal_old.id, normal_new.id, low.id]

    @pytest.mark.asyncio
    async def test_respects_limit(self, repo, user):
        for _ in range(3):
            await _create(repo, user)
        assert len(await repo.find_pending(limit=2, now=NOW + timedelta(seconds=1))) == 2


class TestUnread:
    """Tests for find_unread and unread counts."""

    @pytest.mark.asyncio
    async def test_find_unread(self, repo, user):
        high = await _create(repo, user, priority="high")
        normal = await _create(repo, user)
        read = await _create(repo, user, priority="urgent")
        await repo.mark_as_read(read, NOW)
        await _create(repo, user, expires_at=NOW + timedelta(minutes=1))

        unread = await repo.find_unread(user.id, now=NOW + timedelta(minutes=2))

        assert [n.id for n in unread] == [high.id, normal.id]
        assert await repo.count_unread(user.id, now=NOW + timedelta(minutes=2)) == 2


class TestMarkRead:
    """Tests for single and bulk read updates."""

    @pytest.mark.asyncio
    async def test_mark_multiple_is_idempotent(self, repo, user, session):
        first = await _create(repo, user)
        second = await _create(repo, user)
        untouched = await _create(repo, user)
        ids = [first.notification_id, second.notification_id]

        assert await repo.mark_multiple_as_read(user.id, ids, now=NOW) == 2
        assert await repo.mark_multiple_as_read(user.id, ids, now=NOW + timedelta(hours=1)) == 0

        await session.refresh(first)
        await session.refresh(untouched)
        assert first.status == NotificationStatus.READ
        assert first.read_at == NOW
        assert first.opened is True
        assert untouched.status == NotificationStatus.PENDING

    @pytest.mark.asyncio
    async def test_mark_multiple_ignores_other_users(self, repo, user, session):
        other = await create_user(session, name="Sam")
        theirs = await _create(repo, other)

        assert await repo.mark_multiple_as_read(user.id, [theirs.notification_id], now=NOW) == 0

    @pytest.mark.asyncio
    async def test_mark_all_skips_failed_and_expired(self, repo, user):
        await _create(repo, user)
        await _create(repo, user, expires_at=NOW + timedelta(minutes=1))
        failing = await _create(repo, user)
        for _ in range(5):
            await repo.record_delivery_attempt(failing, "in-app", False, "boom", NOW)

        assert await repo.mark_all_as_read(user.id, now=NOW + timedelta(minutes=5)) == 1

    @pytest.mark.asyncio
    async def test_mark_as_read_once(self, repo, user):
        notification = await _create(repo, user)

        assert await repo.mark_as_read(notification, NOW) is True
        assert await repo.mark_as_read(notification, NOW + timedelta(hours=1)) is False
        assert notification.read_at == NOW


class TestExpiryAndCleanup:
    """Tests for lazy expiry and cleanup_expired."""

    @pytest.mark.asyncio
    async def test_list_marks_expired_pending_failed(self, repo, user):
        notification = await _create(repo, user, expires_at=NOW + timedelta(hours=1))

        listed = await repo.list_by_user(user.id, now=NOW + timedelta(hours=2))

        assert listed[0].id == notification.id
        assert listed[0].status == NotificationStatus.FAILED

    @pytest.mark.asyncio
    async def test_cleanup_keeps_read(self, repo, user, session):
        expired = await _create(repo, user, expires_at=NOW + timedelta(hours=1))
        expired_read = await _create(repo, user, expires_at=NOW + timedelta(hours=1))
        await repo.mark_as_read(expired_read, NOW)
        fresh = await _create(repo, user)

        deleted = await repo.cleanup_expired(now=NOW + timedelta(days=1))

        assert deleted == 1
        remaining = (await session.execute(select(Notification.id))).scalars().all()
        assert set(remaining) == {expired_read.id, fresh.id}
        assert expired.id not in remaining

    @pytest.mark.asyncio
    async def test_delete_for_user(self, repo, user, session):
        notification = await _create(repo, user)
        other = await create_user(session, name="Sam")

        assert await repo.delete_for_user(other.id, notification.notification_id) is False
        assert await repo.delete_for_user(user.id, notification.notification_id) is True
        assert await repo.get_by_notification_id(notification.notification_id) is None


class TestRecurringInstances:
    """Tests for create_recurring_instance."""

    @pytest.mark.asyncio
    async def test_creates_next_occurrence(self, repo, user):
        notification = await _create(repo, user, is_recurring=True, recurrence_frequency="weekly")

        instance = await repo.create_recurring_instance(notification, NOW)

        assert instance.scheduled_for == NOW + timedelta(weeks=1)
        assert instance.next_scheduled == NOW + timedelta(weeks=2)
        assert instance.status == NotificationStatus.PENDING
        assert instance.notification_id != notification.notification_id

    @pytest.mark.asyncio
    async def test_save_derives_next_scheduled(self, repo, user):
        notification = await _create(repo, user)
        notification.is_recurring = True
        notification.recurrence_frequency = "monthly"

        await repo.save(notification, NOW)

        assert notification.next_scheduled == datetime(2026, 4, 10, 12, 0, tzinfo=UTC)

    @pytest.mark.asyncio
    async def test_one_off_has_no_instance(self, repo, user):
        notification = await _create(repo, user)
        assert await repo.create_recurring_instance(notification, NOW) is None


class TestAnalytics:
    """Tests for get_analytics."""

    @pytest.mark.asyncio
    async def test_rates(self, repo, user):
        notifications = [await _create(repo, user, type=t) for t in ("reminder", "reminder", "tip", "system")]
        await repo.mark_as_read(notifications[0], NOW)
        await repo.mark_as_read(notifications[1], NOW)
        await repo.mark_clicked(notifications[0], NOW)
        await repo.mark_action_taken(notifications[0], NOW)

        analytics = await repo.get_analytics(user.id, days=30, now=NOW + timedelta(hours=1))

        assert analytics["total"] == 4
        assert analytics["opened"] == 2
        assert analytics["open_rate"] == 50.0
        assert analytics["click_rate"] == 50.0
        assert analytics["action_rate"] == 100.0
        assert analytics["by_type"] == {"reminder": 2, "tip": 1, "system": 1}
        assert analytics["by_priority"] == {"normal": 4}
