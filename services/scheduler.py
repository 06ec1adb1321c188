"""
Time-triggered notification tasks.

``NotificationScheduler`` is constructed explicitly with its collaborators
and owns one asyncio loop per task. Each loop computes the next trigger
with arq's cron matcher in the configured scheduler timezone, sleeps, runs
the task body and only then computes the following trigger, so a task
never overlaps itself.

Task bodies take an optional ``now`` and return the number of items they
produced. Every user, goal or notification is handled in its own
transaction; a failure is logged and the batch moves on.
"""

import asyncio
import logging
import math
import random
import time
from collections.abc import Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID
from zoneinfo import ZoneInfo

from arq.cron import next_cron
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.config import Settings, get_settings
from core.exceptions import SchedulerTaskNotFoundError
from database.models import (
    Channel,
    Goal,
    Notification,
    NotificationCategory,
    NotificationPriority,
    NotificationStatus,
    NotificationType,
    RelatedModel,
    User,
)
from database.repositories import (
    GoalRepository,
    NotificationRepository,
    UserRepository,
    WorkoutRepository,
)
from services.notification_dispatcher import NotificationDispatcher
from services.recommendation_client import GeneratedRecommendation, RecommendationClient

logger = logging.getLogger(__name__)

MOTIVATION_PREVIEW_LENGTH = 200

REMINDER_MESSAGES = [
    "Hi {name}! Time for your daily workout. Your fitness goals are waiting! 💪",
    "{name}, let's keep that {streak}-day streak going! Time to exercise! 🔥",
    "Ready for today's workout, {name}? Your future self will thank you! 🏃",
    "{name}, consistency is key! Let's make today count with a great workout! ⚡",
]

MOTIVATION_MESSAGES = [
    "{name}, every workout brings you closer to your goals! 🎯",
    "Remember {name}, progress not perfection. Keep moving forward! 🚀",
    "{name}, your only competition is who you were yesterday! 💪",
    "Small steps daily lead to big changes yearly, {name}! 📈",
]


@dataclass(frozen=True)
class CronSchedule:
    """
    Trigger times in arq's cron terms.

    ``weekday`` follows ``datetime.weekday()`` (Monday is 0). Fields left
    as None match every value.
    """

    minute: int | set[int] | None = 0
    hour: int | set[int] | None = None
    weekday: int | None = None

    def as_cron_kwargs(self) -> dict[str, Any]:
        options = {"weekday": self.weekday, "hour": self.hour, "minute": self.minute}
        return {key: value for key, value in options.items() if value is not None}

    def next_run(self, after: datetime) -> datetime:
        return next_cron(after, microsecond=0, **self.as_cron_kwargs())


@dataclass(frozen=True)
class ScheduledTask:
    name: str
    schedule: CronSchedule
    handler: Callable[[datetime | None], Awaitable[int]]


TASK_SCHEDULES: dict[str, CronSchedule] = {
    "daily_reminders": CronSchedule(minute=0),
    "goal_deadlines": CronSchedule(hour=9, minute=0),
    "workout_streaks": CronSchedule(hour=20, minute=0),
    "weekly_progress": CronSchedule(weekday=6, hour=18, minute=0),
    "motivation": CronSchedule(hour={10, 14, 18}, minute=0),
    "cleanup": CronSchedule(hour=2, minute=0),
    "dispatch": CronSchedule(minute=set(range(0, 60, 5))),
}


def reminder_window(local_now: datetime, minutes: int = 2) -> set[str]:
    """"HH:MM" strings within ``minutes`` of ``local_now``, wrapping midnight."""
    return {
        (local_now + timedelta(minutes=offset)).strftime("%H:%M")
        for offset in range(-minutes, minutes + 1)
    }


def days_until(deadline: datetime, now: datetime) -> int:
    return math.ceil((deadline - now).total_seconds() / 86400)


def truncate_message(text: str, limit: int = MOTIVATION_PREVIEW_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[:limit].rstrip() + "..."


class NotificationScheduler:
    """
    Runs the notification tasks on their schedules.

    Args:
        session_factory: Creates the sessions task bodies work in
        recommendation_client: Source of AI motivational text
        dispatcher: Delivers pending notifications
        settings: Scheduler settings (timezone, batch sizes)
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        recommendation_client: RecommendationClient,
        dispatcher: NotificationDispatcher,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.recommendation_client = recommendation_client
        self.dispatcher = dispatcher
        self.settings = settings or get_settings()
        self.tz = ZoneInfo(self.settings.scheduler_timezone)

        handlers = {
            "daily_reminders": self.check_daily_reminders,
            "goal_deadlines": self.check_goal_deadlines,
            "workout_streaks": self.check_workout_streaks,
            "weekly_progress": self.send_weekly_progress_reports,
            "motivation": self.send_motivational_messages,
            "cleanup": self.cleanup_expired_notifications,
            "dispatch": self.dispatch_pending_notifications,
        }
        self.tasks: dict[str, ScheduledTask] = {
            name: ScheduledTask(name, TASK_SCHEDULES[name], handler)
            for name, handler in handlers.items()
        }

        self._is_running = False
        self._loops: dict[str, asyncio.Task] = {}
        self._in_flight: set[asyncio.Task] = set()
        self._running_bodies: set[str] = set()
        self._next_runs: dict[str, datetime] = {}
        self._last_runs: dict[str, dict[str, Any]] = {}

    # ============ Control ============

    @property
    def is_running(self) -> bool:
        return self._is_running

    async def start(self) -> bool:
        """
        Start one trigger loop per task.

        Returns:
            False if the scheduler was already running
        """
        if self._is_running:
            logger.warning("Notification scheduler is already running")
            return False

        for task in self.tasks.values():
            self._loops[task.name] = asyncio.create_task(
                self._run_forever(task),
                name=f"scheduler:{task.name}",
            )
        self._is_running = True
        logger.info(f"Notification scheduler started with {len(self.tasks)} tasks")
        return True

    async def stop(self) -> None:
        """Cancel the trigger loops. Task bodies already running finish on their own."""
        if not self._is_running:
            return

        loops = list(self._loops.values())
        for loop_task in loops:
            loop_task.cancel()
        await asyncio.gather(*loops, return_exceptions=True)

        self._loops.clear()
        self._next_runs.clear()
        self._is_running = False
        logger.info("Notification scheduler stopped")

    def get_status(self) -> dict[str, Any]:
        return {
            "is_running": self._is_running,
            "timezone": self.settings.scheduler_timezone,
            "active_tasks": sorted(self._loops) if self._is_running else [],
            "next_runs": {
                name: next_run.isoformat() for name, next_run in sorted(self._next_runs.items())
            },
            "last_runs": dict(self._last_runs),
        }

    async def _run_forever(self, task: ScheduledTask) -> None:
        while True:
            next_run = task.schedule.next_run(datetime.now(self.tz))
            self._next_runs[task.name] = next_run
            delay = (next_run - datetime.now(self.tz)).total_seconds()
            await asyncio.sleep(max(0.0, delay))

            body = asyncio.create_task(self.run_task(task.name))
            self._in_flight.add(body)
            body.add_done_callback(self._in_flight.discard)
            await asyncio.shield(body)

    async def run_task(self, name: str, now: datetime | None = None) -> int:
        """
        Run one task body now.

        Returns:
            Items produced, 0 if the body failed or was already running

        Raises:
            SchedulerTaskNotFoundError: If no task has that name
        """
        task = self.tasks.get(name)
        if task is None:
            raise SchedulerTaskNotFoundError(details={"task": name})

        if name in self._running_bodies:
            logger.warning(f"Scheduler task {name} is still running, skipping this trigger")
            return 0

        self._running_bodies.add(name)
        started = time.perf_counter()
        succeeded = True
        try:
            count = await task.handler(now)
        except Exception:
            logger.exception(f"Scheduler task {name} failed")
            count, succeeded = 0, False
        finally:
            self._running_bodies.discard(name)

        duration = time.perf_counter() - started
        self._last_runs[name] = {
            "finished_at": datetime.now(UTC).isoformat(),
            "items": count,
            "succeeded": succeeded,
            "duration_seconds": round(duration, 3),
        }
        logger.info(f"Scheduler task {name} finished: {count} items in {duration:.2f}s")
        return count

    # ============ Helpers ============

    @asynccontextmanager
    async def _transaction(self):
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    def _notifications(self, session: AsyncSession) -> NotificationRepository:
        return NotificationRepository(
            session,
            ttl_days=self.settings.notification_ttl_days,
            max_attempts=self.settings.max_delivery_attempts,
        )

    def _now(self, now: datetime | None) -> datetime:
        if now is None:
            return datetime.now(UTC)
        if now.tzinfo is None:
            return now.replace(tzinfo=self.tz).astimezone(UTC)
        return now.astimezone(UTC)

    async def _for_each(
        self,
        task_name: str,
        items: list[Any],
        handler: Callable[[AsyncSession, Any], Awaitable[int]],
    ) -> int:
        total = 0
        for item in items:
            try:
                async with self._transaction() as session:
                    total += await handler(session, item)
            except Exception:
                logger.exception(f"Scheduler task {task_name} failed for item {item}")
        return total

    @staticmethod
    def _channels_for(user: User) -> list[str]:
        channels = [Channel.IN_APP.value]
        if user.email_notifications:
            channels.append(Channel.EMAIL.value)
        return channels

    # ============ Task bodies ============

    async def check_daily_reminders(self, now: datetime | None = None) -> int:
        """Remind users whose reminder time falls in the current window."""
        now = self._now(now)
        window = reminder_window(now.astimezone(self.tz), self.settings.reminder_window_minutes)

        async with self._transaction() as session:
            users = await UserRepository(session).list_by_reminder_times(window)
            user_ids = [user.id for user in users]

        async def remind(session: AsyncSession, user_id: UUID) -> int:
            user = await session.get(User, user_id)
            if user is None or not user.is_notifiable:
                return 0
            template = random.choice(REMINDER_MESSAGES)
            await self._notifications(session).create(
                user_id=user.id,
                type=NotificationType.REMINDER,
                category=NotificationCategory.WORKOUT,
                priority=NotificationPriority.NORMAL,
                title="Daily Workout Reminder",
                message=template.format(name=user.name, streak=user.current_streak),
                channels=self._channels_for(user),
                action_url="/workouts",
                action_label="Start Workout",
                now=now,
            )
            return 1

        created = await self._for_each("daily_reminders", user_ids, remind)
        logger.info(f"Created {created} daily reminders for window {sorted(window)}")
        return created

    async def check_goal_deadlines(self, now: datetime | None = None) -> int:
        """Warn about goals due in exactly 1 day (urgent) or 7 days (normal)."""
        now = self._now(now)

        async with self._transaction() as session:
            rows = await GoalRepository(session).find_approaching_deadlines(
                now, now + timedelta(days=7)
            )
            goal_ids = [goal.id for goal, _ in rows]

        async def warn(session: AsyncSession, goal_id: UUID) -> int:
            goal = await session.get(Goal, goal_id)
            if goal is None:
                return 0
            user = await session.get(User, goal.user_id)
            if user is None or not user.is_notifiable:
                return 0

            days_remaining = days_until(goal.deadline, now)
            if days_remaining == 1:
                priority = NotificationPriority.URGENT
                title = "⏰ Goal Deadline Tomorrow!"
                message = (
                    f'Your goal "{goal.title}" is due tomorrow! '
                    f"You're {goal.completion_percentage}% complete."
                )
            elif days_remaining == 7:
                priority = NotificationPriority.NORMAL
                title = "📅 Goal Deadline Approaching"
                message = (
                    f'Your goal "{goal.title}" is due in {days_remaining} days. '
                    f"You're {goal.completion_percentage}% complete."
                )
            else:
                return 0

            await self._notifications(session).create(
                user_id=user.id,
                type=NotificationType.GOAL_DEADLINE,
                category=NotificationCategory.GOAL,
                priority=priority,
                title=title,
                message=message,
                channels=self._channels_for(user),
                related_id=goal.goal_id,
                related_model=RelatedModel.GOAL,
                action_url=f"/goals/{goal.goal_id}",
                action_label="Update Goal",
                now=now,
            )
            return 1

        created = await self._for_each("goal_deadlines", goal_ids, warn)
        logger.info(f"Created {created} goal deadline notifications from {len(goal_ids)} goals")
        return created

    async def check_workout_streaks(self, now: datetime | None = None) -> int:
        """Celebrate weekly streak milestones and nudge users whose streak broke."""
        now = self._now(now)
        inactive_since = now - timedelta(days=1)

        async with self._transaction() as session:
            users = await UserRepository(session).list_streak_candidates(inactive_since)
            user_ids = [user.id for user in users]

        async def notify(session: AsyncSession, user_id: UUID) -> int:
            user = await session.get(User, user_id)
            if user is None or not user.is_notifiable:
                return 0

            streak = user.current_streak
            repo = self._notifications(session)
            if streak > 0 and streak % 7 == 0:
                await repo.create(
                    user_id=user.id,
                    type=NotificationType.ACHIEVEMENT,
                    category=NotificationCategory.ACHIEVEMENT,
                    priority=NotificationPriority.HIGH,
                    title=f"🔥 {streak} Day Streak!",
                    message=(
                        f"Congratulations {user.name}! You've maintained a {streak}-day "
                        "workout streak. Keep up the amazing work!"
                    ),
                    action_url="/stats",
                    action_label="View Stats",
                    custom_data={"streak": streak},
                    now=now,
                )
                return 1

            if streak == 0 and user.last_active is not None and user.last_active < inactive_since:
                await repo.create(
                    user_id=user.id,
                    type=NotificationType.ENCOURAGEMENT,
                    category=NotificationCategory.WORKOUT,
                    priority=NotificationPriority.NORMAL,
                    title="Ready for a Fresh Start?",
                    message=(
                        f"{user.name}, every champion has setbacks. Let's get back on "
                        "track and start a new streak today! 💪"
                    ),
                    action_url="/workouts",
                    action_label="Start Workout",
                    now=now,
                )
                return 1
            return 0

        created = await self._for_each("workout_streaks", user_ids, notify)
        logger.info(f"Created {created} streak notifications")
        return created

    async def send_weekly_progress_reports(self, now: datetime | None = None) -> int:
        """Send every notifiable user a summary of the last seven days."""
        now = self._now(now)
        since = now - timedelta(days=7)

        async with self._transaction() as session:
            user_ids = await UserRepository(session).list_notifiable_ids()

        async def report(session: AsyncSession, user_id: UUID) -> int:
            user = await session.get(User, user_id)
            if user is None or not user.is_notifiable:
                return 0

            summary = await WorkoutRepository(session).summarize(user.id, since)
            workouts = summary["workouts"]
            goal_note = (
                "You hit your weekly goal!"
                if workouts >= user.weekly_goal
                else f"Your weekly goal is {user.weekly_goal} workouts."
            )
            await self._notifications(session).create(
                user_id=user.id,
                type=NotificationType.SYSTEM,
                category=NotificationCategory.SYSTEM,
                priority=NotificationPriority.NORMAL,
                title="📊 Your Weekly Progress Report",
                message=(
                    f"{user.name}, this week you completed {workouts} "
                    f"workout{'s' if workouts != 1 else ''} ({summary['minutes']} minutes). "
                    f"{goal_note} Current streak: {user.current_streak} days."
                ),
                action_url="/stats?period=week",
                action_label="View Report",
                custom_data={**summary, "weekly_goal": user.weekly_goal},
                now=now,
            )
            return 1

        created = await self._for_each("weekly_progress", user_ids, report)
        logger.info(f"Created {created} weekly progress reports")
        return created

    async def send_motivational_messages(self, now: datetime | None = None) -> int:
        """Encourage a random sample of users, at most once per local day."""
        now = self._now(now)
        local_now = now.astimezone(self.tz)
        start_of_day = local_now.replace(hour=0, minute=0, second=0, microsecond=0).astimezone(UTC)

        async with self._transaction() as session:
            users = await UserRepository(session).sample_notifiable(
                self.settings.motivation_sample_size
            )
            user_ids = [user.id for user in users]

        async def motivate(session: AsyncSession, user_id: UUID) -> int:
            user = await session.get(User, user_id)
            if user is None or not user.is_notifiable:
                return 0

            repo = self._notifications(session)
            if await repo.has_recent(user.id, NotificationType.ENCOURAGEMENT, start_of_day):
                return 0

            recommendation = await self.recommendation_client.generate_recommendations(
                session, user.id
            )
            if isinstance(recommendation, GeneratedRecommendation):
                message = truncate_message(recommendation.content)
            else:
                message = random.choice(MOTIVATION_MESSAGES).format(name=user.name)

            await repo.create(
                user_id=user.id,
                type=NotificationType.ENCOURAGEMENT,
                category=NotificationCategory.WORKOUT,
                priority=NotificationPriority.LOW,
                title="Daily Motivation",
                message=message,
                channels=[Channel.IN_APP.value],
                action_url="/workouts",
                action_label="Get Started",
                custom_data={"source": recommendation.source},
                now=now,
            )
            return 1

        created = await self._for_each("motivation", user_ids, motivate)
        logger.info(f"Created {created} motivational notifications for {len(user_ids)} sampled users")
        return created

    async def cleanup_expired_notifications(self, now: datetime | None = None) -> int:
        """Delete expired notifications that were never read."""
        now = self._now(now)
        async with self._transaction() as session:
            deleted = await self._notifications(session).cleanup_expired(now)
        logger.info(f"Cleaned up {deleted} expired notifications")
        return deleted

    async def dispatch_pending_notifications(self, now: datetime | None = None) -> int:
        """Attempt delivery of due pending notifications, most urgent first."""
        now = self._now(now)

        async with self._transaction() as session:
            pending = await self._notifications(session).find_pending(
                self.settings.dispatch_batch_size, now
            )
            notification_ids = [notification.id for notification in pending]

        async def deliver(session: AsyncSession, notification_id: UUID) -> int:
            notification = await session.get(Notification, notification_id)
            if notification is None or notification.status != NotificationStatus.PENDING:
                return 0
            user = await session.get(User, notification.user_id)
            if user is None:
                return 0
            outcome = await self.dispatcher.dispatch(
                self._notifications(session), notification, user, now
            )
            return 1 if outcome.delivered_channels else 0

        delivered = await self._for_each("dispatch", notification_ids, deliver)
        logger.info(f"Dispatched {delivered} of {len(notification_ids)} pending notifications")
        return delivered
