"""
Scheduler router.

Endpoints:
- GET /api/scheduler/status - Scheduler state and next trigger times
- POST /api/scheduler/tasks/{name}/run - Run a task immediately (admin)
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_scheduler
from api.schemas.scheduler import RunTaskResponse, SchedulerStatusResponse
from core.auth import AuthenticatedUser, require_admin
from core.config import get_settings
from core.exceptions import DatabaseUnavailableError
from services.scheduler import NotificationScheduler

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduler", tags=["scheduler"])


@router.get("/status", response_model=SchedulerStatusResponse)
async def get_scheduler_status(
    scheduler: NotificationScheduler | None = Depends(get_scheduler),
):
    """Current scheduler state."""
    if scheduler is None:
        return SchedulerStatusResponse(
            is_running=False,
            timezone=get_settings().scheduler_timezone,
        )
    return SchedulerStatusResponse(**scheduler.get_status())


@router.post("/tasks/{name}/run", response_model=RunTaskResponse)
async def run_scheduler_task(
    name: str,
    admin: AuthenticatedUser = Depends(require_admin),
    scheduler: NotificationScheduler | None = Depends(get_scheduler),
):
    """Run one task body now, outside its schedule."""
    if scheduler is None:
        raise DatabaseUnavailableError()

    logger.info(f"Admin {admin.id} triggered scheduler task {name}")
    items = await scheduler.run_task(name)
    return RunTaskResponse(task=name, items=items)
