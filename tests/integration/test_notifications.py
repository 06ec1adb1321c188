"""
Integration tests for notification, recommendation and scheduler endpoints.
"""

import uuid

import pytest

from database.repositories import NotificationRepository
from services.notification_dispatcher import NotificationDispatcher
from services.scheduler import NotificationScheduler
from tests.conftest import auth_headers_for, create_user


async def _post(async_client, headers, **body):
    payload = {"type": "reminder", "title": "Workout time", "message": "Let's move"}
    payload.update(body)
    return await async_client.post("/api/notifications", json=payload, headers=headers)


class TestCreateNotification:
    """Tests for POST /api/notifications."""

    @pytest.mark.asyncio
    async def test_create_defaults(self, async_client, auth_headers, user):
        response = await _post(async_client, auth_headers)

        assert response.status_code == 201
        data = response.json()["notification"]
        assert data["user_id"] == str(user.id)
        assert data["status"] == "pending"
        assert data["channels"] == ["in-app"]
        assert data["priority"] == "normal"
        assert data["delivery"]["attempts"] == 0
        assert data["recurrence"] is None
        assert data["time_ago"] == "Just now"

    @pytest.mark.asyncio
    async def test_create_recurring(self, async_client, auth_headers):
        response = await _post(
            async_client,
            auth_headers,
            channels=["in-app", "email"],
            recurrence={"frequency": "weekly", "interval": 2},
        )

        assert response.status_code == 201
        recurrence = response.json()["notification"]["recurrence"]
        assert recurrence["frequency"] == "weekly"
        assert recurrence["interval"] == 2
        assert recurrence["next_scheduled"] is not None

    @pytest.mark.asyncio
    async def test_invalid_type_rejected(self, async_client, auth_headers):
        response = await _post(async_client, auth_headers, type="party")

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error"]["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_title_too_long_rejected(self, async_client, auth_headers):
        response = await _post(async_client, auth_headers, title="x" * 101)
        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_requires_token(self, async_client):
        response = await _post(async_client, {})

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "authentication_failed"

    @pytest.mark.asyncio
    async def test_unknown_user_rejected(self, async_client):
        response = await _post(async_client, auth_headers_for(uuid.uuid4()))
        assert response.status_code == 401


class TestListNotifications:
    """Tests for the listing endpoints."""

    @pytest.mark.asyncio
    async def test_list_with_pagination(self, async_client, auth_headers):
        for i in range(3):
            await _post(async_client, auth_headers, title=f"Reminder {i}")

        response = await async_client.get("/api/notifications?limit=2", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert len(data["notifications"]) == 2
        assert data["total"] == 3
        assert data["unread_count"] == 3
        assert data["has_more"] is True

    @pytest.mark.asyncio
    async def test_status_filter(self, async_client, auth_headers):
        created = (await _post(async_client, auth_headers)).json()["notification"]
        await _post(async_client, auth_headers)
        await async_client.post(f"/api/notifications/{created['id']}/read", headers=auth_headers)

        response = await async_client.get("/api/notifications?status=read", headers=auth_headers)

        data = response.json()
        assert [n["id"] for n in data["notifications"]] == [created["id"]]
        assert data["total"] == 1

    @pytest.mark.asyncio
    async def test_user_listing_is_self_only(self, async_client, auth_headers, user, session):
        other = await create_user(session, name="Sam")

        own = await async_client.get(f"/api/notifications/user/{user.id}", headers=auth_headers)
        theirs = await async_client.get(f"/api/notifications/user/{other.id}", headers=auth_headers)

        assert own.status_code == 200
        assert theirs.status_code == 403
        assert theirs.json()["error"]["code"] == "authorization_failed"

    @pytest.mark.asyncio
    async def test_unread_feed_ordered_by_priority(self, async_client, auth_headers):
        await _post(async_client, auth_headers, priority="low", title="Low")
        await _post(async_client, auth_headers, priority="urgent", title="Urgent")

        response = await async_client.get("/api/notifications/unread", headers=auth_headers)

        data = response.json()
        assert [n["title"] for n in data["notifications"]] == ["Urgent", "Low"]
        assert data["unread_count"] == 2


class TestReadAndEngagement:
    """Tests for read, click, action and delete endpoints."""

    @pytest.mark.asyncio
    async def test_mark_one_read_is_idempotent(self, async_client, auth_headers):
        created = (await _post(async_client, auth_headers)).json()["notification"]
        url = f"/api/notifications/{created['id']}/read"

        first = await async_client.post(url, headers=auth_headers)
        second = await async_client.post(url, headers=auth_headers)

        assert first.json()["changed"] is True
        assert second.json()["changed"] is False
        notification = second.json()["notification"]
        assert notification["status"] == "read"
        assert notification["analytics"]["opened"] is True
        assert notification["read_at"] == first.json()["notification"]["read_at"]

    @pytest.mark.asyncio
    async def test_mark_read_bulk_and_count(self, async_client, auth_headers):
        ids = [(await _post(async_client, auth_headers)).json()["notification"]["id"] for _ in range(3)]

        response = await async_client.post(
            "/api/notifications/mark-read",
            json={"notification_ids": ids[:2]},
            headers=auth_headers,
        )
        count = await async_client.get("/api/notifications/unread-count", headers=auth_headers)

        assert response.json() == {"success": True, "marked_count": 2}
        assert count.json() == {"unread_count": 1}

    @pytest.mark.asyncio
    async def test_mark_all_read(self, async_client, auth_headers):
        for _ in range(2):
            await _post(async_client, auth_headers)

        response = await async_client.post("/api/notifications/mark-all-read", headers=auth_headers)

        assert response.json()["marked_count"] == 2

    @pytest.mark.asyncio
    async def test_click_and_action(self, async_client, auth_headers):
        created = (await _post(async_client, auth_headers, action_url="/goals")).json()["notification"]

        click = await async_client.post(f"/api/notifications/{created['id']}/click", headers=auth_headers)
        action = await async_client.post(f"/api/notifications/{created['id']}/action", headers=auth_headers)

        assert click.json()["notification"]["analytics"]["clicked"] is True
        assert action.json()["notification"]["analytics"]["action_taken"] is True

    @pytest.mark.asyncio
    async def test_other_users_notification_not_found(self, async_client, auth_headers, session):
        other = await create_user(session, name="Sam")
        theirs = await NotificationRepository(session).create(
            user_id=other.id, type="tip", title="Hydrate", message="Drink water"
        )

        response = await async_client.get(
            f"/api/notifications/{theirs.notification_id}", headers=auth_headers
        )

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "notification_not_found"

    @pytest.mark.asyncio
    async def test_delete(self, async_client, auth_headers):
        created = (await _post(async_client, auth_headers)).json()["notification"]

        deleted = await async_client.delete(f"/api/notifications/{created['id']}", headers=auth_headers)
        again = await async_client.delete(f"/api/notifications/{created['id']}", headers=auth_headers)

        assert deleted.json()["success"] is True
        assert again.status_code == 404

    @pytest.mark.asyncio
    async def test_analytics(self, async_client, auth_headers):
        created = (await _post(async_client, auth_headers)).json()["notification"]
        await _post(async_client, auth_headers, type="tip")
        await async_client.post(f"/api/notifications/{created['id']}/read", headers=auth_headers)

        response = await async_client.get("/api/notifications/analytics?days=7", headers=auth_headers)

        data = response.json()
        assert data["period_days"] == 7
        assert data["total"] == 2
        assert data["open_rate"] == 50.0
        assert data["by_type"] == {"reminder": 1, "tip": 1}

    @pytest.mark.asyncio
    async def test_analytics_days_bounds(self, async_client, auth_headers):
        response = await async_client.get("/api/notifications/analytics?days=0", headers=auth_headers)
        assert response.status_code == 422


class TestRecommendations:
    """Tests for the recommendation endpoints without Gemini."""

    @pytest.mark.asyncio
    async def test_fallback_recommendation(self, async_client, auth_headers):
        response = await async_client.get("/api/recommendations", headers=auth_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["source"] == "fallback"
        assert data["reason"]
        assert data["content"]

    @pytest.mark.asyncio
    async def test_fallback_workout(self, async_client, auth_headers):
        response = await async_client.get("/api/recommendations/workout?type=strength", headers=auth_headers)

        data = response.json()
        assert data["source"] == "fallback"
        assert data["title"] == "Strength Training Session"

    @pytest.mark.asyncio
    async def test_patterns_need_data(self, async_client, auth_headers):
        response = await async_client.get("/api/recommendations/patterns", headers=auth_headers)

        assert response.json()["reason"] == "insufficient_data"


class TestSchedulerEndpoints:
    """Tests for the scheduler status and manual run endpoints."""

    @pytest.mark.asyncio
    async def test_status_without_scheduler(self, async_client):
        response = await async_client.get("/api/scheduler/status")

        assert response.status_code == 200
        data = response.json()
        assert data["is_running"] is False
        assert data["timezone"] == "UTC"

    @pytest.mark.asyncio
    async def test_run_requires_admin(self, async_client):
        response = await async_client.post(
            "/api/scheduler/tasks/cleanup/run",
            headers=auth_headers_for(uuid.uuid4()),
        )
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_run_without_database(self, async_client):
        response = await async_client.post(
            "/api/scheduler/tasks/cleanup/run",
            headers=auth_headers_for(uuid.uuid4(), scopes=["admin"]),
        )
        assert response.status_code == 503

    @pytest.mark.asyncio
    async def test_admin_run(self, async_client, session_factory, mock_recommendation_client, mock_email_service):
        from api.main import app

        app.state.scheduler = NotificationScheduler(
            session_factory,
            mock_recommendation_client,
            NotificationDispatcher(mock_email_service),
        )
        headers = auth_headers_for(uuid.uuid4(), scopes=["admin"])

        ok = await async_client.post(
            "/api/scheduler/tasks/cleanup/run", headers=headers
        )
        unknown = await async_client.post("/api/scheduler/tasks/nap/run", headers=headers)

        assert ok.status_code == 200
        assert ok.json() == {"task": "cleanup", "items": 0}
        assert unknown.status_code == 404
        assert unknown.json()["error"]["code"] == "scheduler_task_not_found"
