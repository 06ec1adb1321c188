"""
Common Pydantic schemas used across the API.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class ErrorDetail(BaseModel):
    """Error body returned with ``success: false``."""

    code: str = Field(..., description="Machine-readable error code")
    message: str = Field(..., description="Human-readable error message")
    details: dict[str, Any] | None = Field(default=None, description="Additional error details")


class ErrorResponse(BaseModel):
    """Envelope of every error response."""

    success: bool = False
    error: ErrorDetail


class HealthStatus(str, Enum):
    """Health check status enum."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"


class ComponentHealth(BaseModel):
    """Health status of a single component."""

    status: HealthStatus
    latency_ms: float | None = None
    error: str | None = None
    details: dict[str, Any] | None = None


class HealthCheckResponse(BaseModel):
    """Basic health check response."""

    status: HealthStatus
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class DetailedHealthCheckResponse(HealthCheckResponse):
    """Health check with per-component status."""

    version: str
    environment: str
    uptime_seconds: float
    components: dict[str, ComponentHealth] = Field(default_factory=dict)
