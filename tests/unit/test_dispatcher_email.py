"""
Unit tests for NotificationDispatcher and EmailService.
"""

import smtplib
from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest

from core.config import Settings
from database.models import NotificationStatus
from database.repositories import NotificationRepository
from services.email_service import NOT_CONFIGURED, EmailResult, EmailService
from services.notification_dispatcher import NotificationDispatcher
from tests.conftest import NOW, create_user


@pytest.fixture
def repo(session) -> NotificationRepository:
    return NotificationRepository(session)


@pytest.fixture
def smtp_settings() -> Settings:
    return Settings(
        smtp_host="smtp.example.com",
        smtp_user="mailer",
        smtp_password="secret",
        frontend_url="https://fitlife.example.com/",
    )


async def _create(repo, user, **fields):
    values = {"type": "reminder", "title": "Workout time", "message": "Let's go", "now": NOW}
    values.update(fields)
    return await repo.create(user_id=user.id, **values)


class TestDispatcher:
    """Tests for NotificationDispatcher.dispatch."""

    @pytest.mark.asyncio
    async def test_in_app_delivers(self, repo, user, mock_email_service):
        notification = await _create(repo, user)

        outcome = await NotificationDispatcher(mock_email_service).dispatch(repo, notification, user, NOW)

        assert outcome.status == NotificationStatus.DELIVERED
        assert outcome.delivered_channels == ["in-app"]
        assert notification.sent_at == NOW
        assert notification.delivered_at == NOW
        mock_email_service.send_notification.assert_not_called()

    @pytest.mark.asyncio
    async def test_email_sent_through_service(self, repo, user, mock_email_service):
        notification = await _create(repo, user, channels=["email"])

        outcome = await NotificationDispatcher(mock_email_service).dispatch(repo, notification, user, NOW)

        assert outcome.delivered_channels == ["email"]
        mock_email_service.send_notification.assert_awaited_once_with(user.email, user.name, notification)

    @pytest.mark.asyncio
    async def test_email_without_address_fails(self, repo, session, mock_email_service):
        user = await create_user(session, email=None)
        notification = await _create(repo, user, channels=["email"])

        outcome = await NotificationDispatcher(mock_email_service).dispatch(repo, notification, user, NOW)

        assert outcome.failed_channels == ["email"]
        assert outcome.status == NotificationStatus.PENDING
        assert notification.delivery_errors[0]["error"] == "User has no email address"

    @pytest.mark.asyncio
    async def test_email_opt_out_fails(self, repo, session, mock_email_service):
        user = await create_user(session, email_notifications=False)
        notification = await _create(repo, user, channels=["in-app", "email"])

        outcome = await NotificationDispatcher(mock_email_service).dispatch(repo, notification, user, NOW)

        assert outcome.status == NotificationStatus.DELIVERED
        assert notification.delivery_status == {"in-app": "delivered", "email": "failed"}
        assert notification.attempts == 2

    @pytest.mark.asyncio
    async def test_push_has_no_transport(self, repo, user, mock_email_service):
        notification = await _create(repo, user, channels=["push"])

        outcome = await NotificationDispatcher(mock_email_service).dispatch(repo, notification, user, NOW)

        assert outcome.failed_channels == ["push"]
        assert notification.delivery_errors[0]["error"] == "No transport configured for channel push"
        assert notification.sent_at is None

    @pytest.mark.asyncio
    async def test_retries_until_cap(self, repo, user, mock_email_service):
        mock_email_service.send_notification = AsyncMock(
            return_value=EmailResult(success=False, error="bounced")
        )
        dispatcher = NotificationDispatcher(mock_email_service)
        notification = await _create(repo, user, channels=["email"])

        for i in range(4):
            outcome = await dispatcher.dispatch(repo, notification, user, NOW + timedelta(minutes=i))
            assert outcome.status == NotificationStatus.PENDING

        outcome = await dispatcher.dispatch(repo, notification, user, NOW + timedelta(minutes=5))

        assert outcome.status == NotificationStatus.FAILED
        assert outcome.attempts == 5

    @pytest.mark.asyncio
    async def test_delivered_channels_not_retried(self, repo, user, mock_email_service):
        mock_email_service.send_notification = AsyncMock(
            side_effect=[EmailResult(success=False, error="timeout"), EmailResult(success=True)]
        )
        dispatcher = NotificationDispatcher(mock_email_service)
        notification = await _create(repo, user, channels=["in-app", "email"])

        await dispatcher.dispatch(repo, notification, user, NOW)
        outcome = await dispatcher.dispatch(repo, notification, user, NOW + timedelta(minutes=1))

        assert outcome.delivered_channels == ["email"]
        assert notification.attempts == 3
        assert notification.delivery_status == {"in-app": "delivered", "email": "delivered"}

    @pytest.mark.asyncio
    async def test_recurring_spawns_next_instance(self, repo, user, mock_email_service):
        notification = await _create(repo, user, is_recurring=True, recurrence_frequency="daily")

        outcome = await NotificationDispatcher(mock_email_service).dispatch(repo, notification, user, NOW)

        assert outcome.recurring_instance_id is not None
        instance = await repo.get_by_notification_id(outcome.recurring_instance_id, now=NOW)
        assert instance.scheduled_for == NOW + timedelta(days=1)
        assert instance.status == NotificationStatus.PENDING

    @pytest.mark.asyncio
    async def test_one_off_spawns_nothing(self, repo, user, mock_email_service):
        notification = await _create(repo, user)

        outcome = await NotificationDispatcher(mock_email_service).dispatch(repo, notification, user, NOW)

        assert outcome.recurring_instance_id is None


class TestEmailService:
    """Tests for EmailService."""

    @pytest.mark.asyncio
    async def test_not_configured(self, repo, user):
        service = EmailService(Settings(smtp_host=None))
        notification = await _create(repo, user)

        result = await service.send_notification("a@example.com", "Alex", notification)

        assert service.is_configured is False
        assert result == EmailResult(success=False, error=NOT_CONFIGURED)

    @pytest.mark.asyncio
    async def test_send_success(self, repo, user, smtp_settings):
        service = EmailService(smtp_settings)
        notification = await _create(repo, user)

        with patch.object(service, "_send") as send:
            result = await service.send_notification("a@example.com", "Alex", notification)

        assert result.success is True
        send.assert_called_once()
        assert send.call_args.args[0]["To"] == "a@example.com"

    @pytest.mark.asyncio
    async def test_smtp_error_is_reported(self, repo, user, smtp_settings):
        service = EmailService(smtp_settings)
        notification = await _create(repo, user)

        with patch.object(service, "_send", side_effect=smtplib.SMTPAuthenticationError(535, b"bad")):
            result = await service.send_notification("a@example.com", "Alex", notification)

        assert result.success is False
        assert result.error

    @pytest.mark.asyncio
    async def test_connection_error_is_reported(self, repo, user, smtp_settings):
        service = EmailService(smtp_settings)
        notification = await _create(repo, user)

        with patch.object(service, "_send", side_effect=ConnectionRefusedError("refused")):
            result = await service.send_notification("a@example.com", "Alex", notification)

        assert result == EmailResult(success=False, error="refused")

    @pytest.mark.asyncio
    async def test_build_message(self, repo, user, smtp_settings):
        service = EmailService(smtp_settings)
        notification = await _create(
            repo,
            user,
            title="Goal <deadline>",
            action_url="/goals/1",
            action_label="View goal",
        )

        msg = service.build_message("a@example.com", "Alex", notification)

        assert msg["Subject"] == "Goal <deadline>"
        assert msg["From"] == "FitLife <noreply@fitlife.app>"
        text_part, html_part = msg.get_payload()
        text = text_part.get_payload(decode=True).decode()
        body = html_part.get_payload(decode=True).decode()
        assert "Hi Alex" in text
        assert "View goal: https://fitlife.example.com/goals/1" in text
        assert "Goal &lt;deadline&gt;" in body
        assert 'href="https://fitlife.example.com/goals/1"' in body
