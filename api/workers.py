"""
ARQ worker that runs the notification tasks out of the API process.

Run with:
    arq api.workers.WorkerSettings

Deployments using the worker set ``SCHEDULER_ENABLED=false`` on the API so
each task fires once. Cron jobs use the same schedules as the in-process
scheduler and call ``NotificationScheduler.run_task``.
"""

import logging
from urllib.parse import urlparse
from zoneinfo import ZoneInfo

from arq import cron
from arq.connections import RedisSettings

from core.config import get_settings
from database import close_database, get_session_factory, init_database
from services.email_service import EmailService
from services.notification_dispatcher import NotificationDispatcher
from services.recommendation_client import RecommendationClient
from services.scheduler import TASK_SCHEDULES, NotificationScheduler

logger = logging.getLogger(__name__)

# Configure logging for the worker process
logging.basicConfig(
    level=get_settings().log_level.upper(),
    format=get_settings().log_format,
)


# ── Lifecycle hooks ──────────────────────────────────────────────────────────


async def startup(ctx: dict) -> None:
    """Initialise the database and build the scheduler the jobs delegate to."""
    logger.info("ARQ worker starting up...")
    settings = get_settings()

    await init_database()
    ctx["scheduler"] = NotificationScheduler(
        get_session_factory(),
        RecommendationClient.from_settings(settings),
        NotificationDispatcher(EmailService(settings)),
        settings,
    )
    logger.info("Notification scheduler ready")


async def shutdown(ctx: dict) -> None:
    """Clean up resources on worker shutdown."""
    logger.info("ARQ worker shutting down...")
    await close_database()


# ── Tasks ────────────────────────────────────────────────────────────────────


def _task_job(task_name: str):
    async def job(ctx: dict) -> int:
        scheduler: NotificationScheduler = ctx["scheduler"]
        return await scheduler.run_task(task_name)

    job.__name__ = job.__qualname__ = f"run_{task_name}"
    return job


async def run_scheduler_task(ctx: dict, name: str) -> int:
    """Run one task on demand, e.g. ``enqueue_job("run_scheduler_task", "cleanup")``."""
    scheduler: NotificationScheduler = ctx["scheduler"]
    return await scheduler.run_task(name)


# ── ARQ configuration ───────────────────────────────────────────────────────


def _parse_redis_settings() -> RedisSettings:
    """Parse REDIS_URL into arq RedisSettings."""
    url = get_settings().redis_url
    parsed = urlparse(url)
    return RedisSettings(
        host=parsed.hostname or "localhost",
        port=parsed.port or 6379,
        database=int(parsed.path.lstrip("/") or 0),
        password=parsed.password,
    )


class WorkerSettings:
    """ARQ worker configuration."""

    functions = [run_scheduler_task]

    cron_jobs = [
        cron(
            _task_job(name),
            name=f"cron:{name}",
            second=0,
            microsecond=0,
            run_at_startup=False,
            **schedule.as_cron_kwargs(),
        )
        for name, schedule in TASK_SCHEDULES.items()
    ]

    on_startup = startup
    on_shutdown = shutdown

    redis_settings = _parse_redis_settings()

    # Cron jobs fire in the same timezone as the in-process scheduler
    timezone = ZoneInfo(get_settings().scheduler_timezone)

    max_jobs = 4
    job_timeout = 3600
