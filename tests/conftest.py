"""
Pytest configuration and fixtures.
"""

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta
from typing import Any
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Set test environment before importing app
os.environ["ENVIRONMENT"] = "testing"
os.environ["DEBUG"] = "true"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-32chars!"
os.environ["REDIS_URL"] = "redis://localhost:6379/15"
os.environ["DATABASE_ENABLED"] = "false"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["GEMINI_API_KEY"] = ""
os.environ["SMTP_HOST"] = ""

from database.models import Base, Goal, User, Workout  # noqa: E402

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


# ============ Database Fixtures ============


@pytest.fixture
async def engine():
    """In-memory SQLite engine shared by every session of a test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


# ============ Test Data Builders ============


async def create_user(session: AsyncSession, **overrides: Any) -> User:
    values = {
        "name": "Alex",
        "email": f"alex-{os.urandom(4).hex()}@example.com",
        "reminder_time": "20:00",
        "current_streak": 3,
        "fitness_level": "intermediate",
        "fitness_goals": ["endurance"],
        "preferred_workout_types": ["cardio"],
    }
    values.update(overrides)
    user = User(**values)
    session.add(user)
    await session.flush()
    return user


async def create_goal(session: AsyncSession, user: User, **overrides: Any) -> Goal:
    values = {
        "user_id": user.id,
        "title": "Run 50 km",
        "target_value": 50,
        "current_value": 20,
        "unit": "km",
        "deadline": NOW + timedelta(days=7),
    }
    values.update(overrides)
    goal = Goal(**values)
    session.add(goal)
    await session.flush()
    return goal


async def create_workout(session: AsyncSession, user: User, **overrides: Any) -> Workout:
    values = {
        "user_id": user.id,
        "title": "Morning run",
        "type": "cardio",
        "duration_minutes": 30,
        "intensity": "moderate",
        "date": NOW - timedelta(days=1),
        "rating": 4,
    }
    values.update(overrides)
    workout = Workout(**values)
    session.add(workout)
    await session.flush()
    return workout


@pytest.fixture
async def user(session) -> User:
    """A notifiable user."""
    return await create_user(session)


# ============ Auth Fixtures ============


def auth_headers_for(user_id, scopes: list[str] | None = None) -> dict[str, str]:
    from core.security import create_access_token

    claims: dict[str, Any] = {"sub": str(user_id)}
    if scopes:
        claims["scopes"] = scopes
    return {"Authorization": f"Bearer {create_access_token(claims)}"}


@pytest.fixture
def auth_headers(user) -> dict[str, str]:
    """Bearer token for the ``user`` fixture."""
    return auth_headers_for(user.id)


@pytest.fixture
def admin_headers(user) -> dict[str, str]:
    return auth_headers_for(user.id, scopes=["admin"])


# ============ App Fixtures ============


@pytest.fixture
def mock_recommendation_client():
    """Recommendation client that always falls back."""
    from services.recommendation_client import RecommendationClient

    return RecommendationClient(api_key=None)


@pytest.fixture
async def async_client(session, mock_recommendation_client) -> AsyncGenerator[AsyncClient, None]:
    """Asynchronous test client bound to the test session."""
    from api.dependencies import get_db_session, get_recommendation_client
    from api.main import app

    async def override_session():
        yield session

    app.dependency_overrides[get_db_session] = override_session
    app.dependency_overrides[get_recommendation_client] = lambda: mock_recommendation_client
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
        app.state.scheduler = None


# ============ Mock Redis ============


class MockRedis:
    """Mock Redis client for testing."""

    def __init__(self):
        self._data: dict[str, Any] = {}
        self._expiry: dict[str, int] = {}

    async def get(self, key: str) -> str | None:
        return self._data.get(key)

    async def incrby(self, key: str, amount: int = 1) -> int:
        new_value = int(self._data.get(key, 0)) + amount
        self._data[key] = str(new_value)
        return new_value

    async def expire(self, key: str, seconds: int) -> bool:
        self._expiry[key] = seconds
        return True

    async def ping(self) -> bool:
        return True

    def pipeline(self):
        return MockPipeline(self)

    async def close(self):
        pass


class MockPipeline:
    """Mock Redis pipeline."""

    def __init__(self, redis: MockRedis):
        self._redis = redis
        self._commands = []

    def incrby(self, key: str, amount: int):
        self._commands.append(("incrby", key, amount))
        return self

    def expire(self, key: str, seconds: int):
        self._commands.append(("expire", key, seconds))
        return self

    async def execute(self):
        results = []
        for cmd in self._commands:
            if cmd[0] == "incrby":
                results.append(await self._redis.incrby(cmd[1], cmd[2]))
            elif cmd[0] == "expire":
                results.append(await self._redis.expire(cmd[1], cmd[2]))
        return results

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        pass


@pytest.fixture
def mock_redis():
    """Create a mock Redis instance."""
    return MockRedis()


@pytest.fixture
def mock_redis_fixture(mock_redis):
    """Fixture that makes the rate limiter see the mock as the live client."""

    async def get_mock_redis():
        return mock_redis

    with patch("core.rate_limit.get_redis", get_mock_redis):
        with patch("core.rate_limit.is_redis_available", return_value=True):
            yield mock_redis


# ============ Mock Services ============


@pytest.fixture
def mock_email_service():
    """EmailService whose sends succeed."""
    from services.email_service import EmailResult

    mock = MagicMock()
    mock.is_configured = True
    mock.send_notification = AsyncMock(return_value=EmailResult(success=True))
    return mock


# ============ Test Settings ============


@pytest.fixture
def test_settings(monkeypatch):
    """Override settings for testing."""
    monkeypatch.setenv("ENVIRONMENT", "testing")
    monkeypatch.setenv("SCHEDULER_TIMEZONE", "UTC")

    from core.config import get_settings

    get_settings.cache_clear()

    yield get_settings()

    get_settings.cache_clear()
