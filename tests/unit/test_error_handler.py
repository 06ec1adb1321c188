"""
Unit tests for error handler middleware.
"""

import pytest
from fastapi import FastAPI, Query
from fastapi.testclient import TestClient

from api.middleware.error_handler import setup_exception_handlers
from core.exceptions import (
    AppException,
    DatabaseUnavailableError,
    InvalidNotificationError,
    NotificationNotFoundError,
    RateLimitError,
    SchedulerTaskNotFoundError,
)


def _create_test_app() -> FastAPI:
    """Create a minimal FastAPI app with exception handlers for testing."""
    app = FastAPI()
    setup_exception_handlers(app)

    @app.get("/raise-app-exception")
    async def raise_app_exception():
        raise AppException(message="Something broke", error_code="test_error")

    @app.get("/raise-notification-not-found")
    async def raise_notification_not_found():
        raise NotificationNotFoundError()

    @app.get("/raise-invalid-notification")
    async def raise_invalid_notification():
        raise InvalidNotificationError(
            details={"errors": [{"field": "title", "message": "too long"}]}
        )

    @app.get("/raise-rate-limit")
    async def raise_rate_limit():
        raise RateLimitError(details={"limit": 100, "window_seconds": 60})

    @app.get("/raise-database-unavailable")
    async def raise_database_unavailable():
        raise DatabaseUnavailableError()

    @app.get("/raise-unknown-task")
    async def raise_unknown_task():
        raise SchedulerTaskNotFoundError(message="Unknown scheduler task: nap")

    @app.get("/query")
    async def query(days: int = Query(..., ge=1)):
        return {"days": days}

    @app.get("/raise-unexpected")
    async def raise_unexpected():
        raise RuntimeError("Something unexpected")

    return app


@pytest.fixture
def test_client():
    app = _create_test_app()
    return TestClient(app, raise_server_exceptions=False)


class TestAppExceptionHandler:
    """Test that AppException subclasses produce structured responses."""

    def test_base_exception(self, test_client):
        resp = test_client.get("/raise-app-exception")
        assert resp.status_code == 500
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "test_error"
        assert body["error"]["message"] == "Something broke"

    def test_notification_not_found(self, test_client):
        resp = test_client.get("/raise-notification-not-found")
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "notification_not_found"

    def test_invalid_notification_with_details(self, test_client):
        resp = test_client.get("/raise-invalid-notification")
        assert resp.status_code == 422
        body = resp.json()
        assert body["error"]["code"] == "invalid_notification"
        assert body["error"]["details"]["errors"][0]["field"] == "title"

    def test_rate_limit(self, test_client):
        resp = test_client.get("/raise-rate-limit")
        assert resp.status_code == 429
        assert resp.json()["error"]["details"]["limit"] == 100

    def test_database_unavailable(self, test_client):
        resp = test_client.get("/raise-database-unavailable")
        assert resp.status_code == 503
        assert resp.json()["error"]["code"] == "database_unavailable"

    def test_unknown_task(self, test_client):
        resp = test_client.get("/raise-unknown-task")
        assert resp.status_code == 404
        assert resp.json()["error"]["message"] == "Unknown scheduler task: nap"


class TestValidationHandler:
    """Test request validation errors."""

    def test_query_validation(self, test_client):
        resp = test_client.get("/query?days=0")
        assert resp.status_code == 422
        body = resp.json()
        assert body["success"] is False
        assert body["error"]["code"] == "validation_error"
        assert body["error"]["details"]["errors"][0]["field"] == "query -> days"


class TestUnhandledExceptions:
    """Test the catch-all handler."""

    def test_unexpected_error_shows_type_outside_production(self, test_client):
        resp = test_client.get("/raise-unexpected")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"]["code"] == "internal_error"
        assert body["error"]["message"] == "Something unexpected"
        assert body["error"]["details"]["type"] == "RuntimeError"

    def test_unexpected_error_hidden_in_production(self, test_client, monkeypatch):
        from core.config import get_settings

        monkeypatch.setenv("ENVIRONMENT", "production")
        get_settings.cache_clear()
        try:
            resp = test_client.get("/raise-unexpected")
        finally:
            get_settings.cache_clear()

        assert resp.status_code == 500
        assert resp.json()["error"]["message"] == "An unexpected error occurred"
