"""
Health check endpoints.

Endpoints:
- GET /api/health - Basic check for load balancers
- GET /api/health/live - Liveness check
- GET /api/health/detailed - Database, Redis, scheduler and Gemini status
"""

import time
from datetime import UTC, datetime

from fastapi import APIRouter, Depends

from api.dependencies import get_scheduler
from api.schemas.common import (
    ComponentHealth,
    DetailedHealthCheckResponse,
    HealthCheckResponse,
    HealthStatus,
)
from core.config import Settings, get_settings
from core.redis import check_redis_health
from database import check_database_health
from services.scheduler import NotificationScheduler

router = APIRouter(prefix="/health", tags=["health"])

# Track application start time for uptime calculation
_start_time = time.time()


def _component(check: dict) -> ComponentHealth:
    healthy = check["status"] == "healthy"
    return ComponentHealth(
        status=HealthStatus.HEALTHY if healthy else HealthStatus.UNHEALTHY,
        latency_ms=check.get("latency_ms"),
        error=check.get("error") or (None if healthy else check["status"]),
    )


@router.get("", response_model=HealthCheckResponse, summary="Basic health check")
async def health_check() -> HealthCheckResponse:
    """Healthy whenever the API process answers."""
    return HealthCheckResponse(status=HealthStatus.HEALTHY, timestamp=datetime.now(UTC))


@router.get("/live", response_model=HealthCheckResponse, summary="Liveness check")
async def liveness_check() -> HealthCheckResponse:
    return HealthCheckResponse(status=HealthStatus.HEALTHY, timestamp=datetime.now(UTC))


@router.get("/detailed", response_model=DetailedHealthCheckResponse, summary="Detailed health check")
async def detailed_health_check(
    settings: Settings = Depends(get_settings),
    scheduler: NotificationScheduler | None = Depends(get_scheduler),
) -> DetailedHealthCheckResponse:
    """
    Detailed health check with component status.

    The database is required; Redis (rate limiting), the scheduler and
    Gemini only degrade the service when missing.
    """
    components: dict[str, ComponentHealth] = {}
    overall_status = HealthStatus.HEALTHY

    components["database"] = _component(await check_database_health())
    if components["database"].status != HealthStatus.HEALTHY:
        overall_status = HealthStatus.UNHEALTHY

    components["redis"] = _component(await check_redis_health())
    if components["redis"].status != HealthStatus.HEALTHY:
        components["redis"].status = HealthStatus.DEGRADED

    if scheduler is not None and scheduler.is_running:
        status = scheduler.get_status()
        components["scheduler"] = ComponentHealth(
            status=HealthStatus.HEALTHY,
            details={"timezone": status["timezone"], "active_tasks": status["active_tasks"]},
        )
    else:
        components["scheduler"] = ComponentHealth(
            status=HealthStatus.DEGRADED,
            error="Scheduler not running",
        )

    if settings.is_gemini_configured:
        components["gemini_api"] = ComponentHealth(
            status=HealthStatus.HEALTHY,
            details={"model": settings.gemini_model},
        )
    else:
        components["gemini_api"] = ComponentHealth(
            status=HealthStatus.DEGRADED,
            error="Gemini API key not configured, recommendations use fallbacks",
        )

    if overall_status == HealthStatus.HEALTHY and any(
        c.status != HealthStatus.HEALTHY for c in components.values()
    ):
        overall_status = HealthStatus.DEGRADED

    return DetailedHealthCheckResponse(
        status=overall_status,
        timestamp=datetime.now(UTC),
        version=settings.app_version,
        environment=settings.environment,
        uptime_seconds=round(time.time() - _start_time, 2),
        components=components,
    )
