"""Seed script: create a demo user with goals and workouts, then print a bearer token.

Usage:
    python scripts/seed_demo_data.py                      # demo@fitlife.local
    python scripts/seed_demo_data.py --email me@x.io      # custom address
    python scripts/seed_demo_data.py --admin              # token carries the admin scope
"""

import argparse
import asyncio
import logging
import random
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from datetime import UTC, datetime, timedelta  # noqa: E402

from core.security import create_access_token  # noqa: E402
from database import close_database, get_session, init_database  # noqa: E402
from database.repositories import (  # noqa: E402
    GoalRepository,
    UserRepository,
    WorkoutRepository,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
logger = logging.getLogger(__name__)

WORKOUT_TYPES = ["cardio", "strength", "yoga", "hiit"]

GOALS = [
    # (title, days until deadline, target, current, unit)
    ("Run 20 km this week", 1, 20, 12, "km"),
    ("Complete 12 strength sessions", 7, 12, 5, "sessions"),
    ("Hold a 3 minute plank", 30, 180, 90, "seconds"),
]


async def seed(email: str, admin: bool) -> None:
    await init_database()
    now = datetime.now(UTC)

    async for session in get_session():
        users = UserRepository(session)
        user = await users.get_by_email(email)
        if user is None:
            user = await users.create(
                name="Demo Athlete",
                email=email,
                reminder_time=now.strftime("%H:00"),
                current_streak=7,
                longest_streak=12,
                total_workouts=24,
                average_workout_duration=42.5,
                last_active=now - timedelta(hours=3),
                fitness_level="intermediate",
                fitness_goals=["endurance", "strength"],
                preferred_workout_types=["cardio", "strength"],
            )
            logger.info("Created user %s", user.id)
        else:
            logger.info("User %s already exists, adding goals and workouts", user.id)

        goals = GoalRepository(session)
        for title, days, target, current, unit in GOALS:
            await goals.create(
                user_id=user.id,
                title=title,
                deadline=now + timedelta(days=days, minutes=-5),
                target_value=target,
                current_value=current,
                unit=unit,
            )

        workouts = WorkoutRepository(session)
        for day in range(1, 15, 2):
            workout_type = random.choice(WORKOUT_TYPES)
            await workouts.create(
                user_id=user.id,
                title=f"{workout_type.capitalize()} session",
                type=workout_type,
                duration_minutes=random.randint(25, 60),
                intensity=random.choice(["low", "moderate", "high"]),
                date=now - timedelta(days=day),
                rating=random.randint(3, 5),
            )

        user_id = user.id

    await close_database()

    claims = {"sub": str(user_id), "email": email}
    if admin:
        claims["scopes"] = ["admin"]
    token = create_access_token(claims, expires_delta=timedelta(days=7))
    print(f"\nUser ID: {user_id}")
    print(f"Authorization: Bearer {token}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed demo data for the notifications API")
    parser.add_argument("--email", default="demo@fitlife.local", help="Demo user email")
    parser.add_argument("--admin", action="store_true", help="Grant the admin scope")
    args = parser.parse_args()

    asyncio.run(seed(args.email, args.admin))
