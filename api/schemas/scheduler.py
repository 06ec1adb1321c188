"""
Pydantic schemas for the scheduler API.
"""

from typing import Any

from pydantic import BaseModel, Field


class SchedulerStatusResponse(BaseModel):
    """Scheduler state."""

    is_running: bool
    timezone: str
    active_tasks: list[str] = Field(default_factory=list)
    next_runs: dict[str, str] = Field(default_factory=dict, description="ISO trigger times")
    last_runs: dict[str, dict[str, Any]] = Field(default_factory=dict)


class RunTaskResponse(BaseModel):
    """Result of a manually triggered task."""

    task: str
    items: int = Field(..., description="Items the task produced")
