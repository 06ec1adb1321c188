"""
Gemini-backed fitness recommendations.

Every public method returns a typed result and never raises for external
failures: a missing API key, an unknown user, network errors, timeouts and
blocked or empty responses all produce a fallback result carrying the reason.
"""

import asyncio
import json
import logging
import random
import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any, Literal
from uuid import UUID

from google import genai
from google.genai import types
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, get_settings
from database.models import User, Workout
from database.repositories import GoalRepository, UserRepository, WorkoutRepository

logger = logging.getLogger(__name__)

HARM_CATEGORIES = [
    types.HarmCategory.HARM_CATEGORY_HARASSMENT,
    types.HarmCategory.HARM_CATEGORY_HATE_SPEECH,
    types.HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT,
    types.HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT,
]

FALLBACK_RECOMMENDATIONS = [
    "Stay consistent with your workout routine - consistency is key to success!",
    "Try incorporating different types of exercises to work all muscle groups.",
    "Set realistic goals and celebrate small victories along the way.",
    "Listen to your body and ensure adequate rest between intense workouts.",
    "Track your progress regularly to stay motivated and see improvements.",
]

FALLBACK_WORKOUTS: dict[str, dict[str, Any]] = {
    "cardio": {
        "title": "Quick Cardio Blast",
        "exercises": ["Jumping Jacks", "High Knees", "Burpees", "Mountain Climbers"],
        "duration": 20,
    },
    "strength": {
        "title": "Strength Training Session",
        "exercises": ["Push-ups", "Squats", "Lunges", "Plank"],
        "duration": 30,
    },
    "yoga": {
        "title": "Relaxing Yoga Flow",
        "exercises": ["Sun Salutation", "Warrior Pose", "Tree Pose", "Savasana"],
        "duration": 25,
    },
}

MIN_WORKOUTS_FOR_PATTERNS = 5

_JSON_FENCE = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL)


class RecommendationUnavailable(Exception):
    """Internal signal that the model could not produce usable text."""


# ============ Result types ============


@dataclass(frozen=True)
class GeneratedRecommendation:
    content: str
    generated_at: datetime
    source: Literal["gemini"] = "gemini"


@dataclass(frozen=True)
class FallbackRecommendation:
    content: str
    reason: str
    generated_at: datetime
    source: Literal["fallback"] = "fallback"


Recommendation = GeneratedRecommendation | FallbackRecommendation


@dataclass(frozen=True)
class WorkoutSuggestion:
    title: str
    workout_type: str
    source: Literal["gemini", "fallback"]
    generated_at: datetime
    exercises: list[Any] = field(default_factory=list)
    estimated_duration: int | None = None
    description: str | None = None
    plan: dict[str, Any] | None = None
    reason: str | None = None


@dataclass(frozen=True)
class PatternInsight:
    insight: str
    source: Literal["gemini", "fallback"]
    analysis_date: datetime
    recommendations: list[str] = field(default_factory=list)
    reason: str | None = None


# ============ Helpers ============


def most_common_workout_type(workouts: list[Workout]) -> str:
    if not workouts:
        return "None"
    return Counter(w.type for w in workouts).most_common(1)[0][0]


def average_rating(workouts: list[Workout]) -> float:
    ratings = [w.rating for w in workouts if w.rating]
    if not ratings:
        return 0
    return round(sum(ratings) / len(ratings), 1)


def parse_workout_plan(text: str) -> dict[str, Any] | None:
    """Parse a JSON workout plan, also when wrapped in a markdown fence."""
    candidate = text.strip()
    match = _JSON_FENCE.search(candidate)
    if match:
        candidate = match.group(1)
    try:
        plan = json.loads(candidate)
    except (json.JSONDecodeError, TypeError):
        return None
    return plan if isinstance(plan, dict) else None


def fallback_workout(workout_type: str | None, reason: str) -> WorkoutSuggestion:
    key = workout_type if workout_type in FALLBACK_WORKOUTS else "cardio"
    template = FALLBACK_WORKOUTS[key]
    return WorkoutSuggestion(
        title=template["title"],
        workout_type=key,
        source="fallback",
        generated_at=datetime.now(UTC),
        exercises=list(template["exercises"]),
        estimated_duration=template["duration"],
        reason=reason,
    )


# ============ Client ============


class RecommendationClient:
    """
    Async wrapper around the Gemini text model.

    Args:
        api_key: Gemini API key; without one every call falls back
        model: Gemini model id
        timeout: Seconds before a generation call is abandoned
        client: Preconfigured ``genai.Client`` (tests inject a mock)
    """

    def __init__(
        self,
        api_key: str | None,
        model: str = "gemini-2.0-flash",
        timeout: float = 30.0,
        client: genai.Client | None = None,
    ):
        self.model = model
        self.timeout = timeout
        self._client = client
        if self._client is None and api_key:
            self._client = genai.Client(api_key=api_key)

        if self._client is None:
            logger.warning("[Recommendations] Gemini API key not provided, using fallbacks")

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RecommendationClient":
        settings = settings or get_settings()
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            timeout=settings.gemini_timeout_seconds,
        )

    @property
    def is_available(self) -> bool:
        return self._client is not None

    def _config(self) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            temperature=0.7,
            top_k=1,
            top_p=1,
            max_output_tokens=2048,
            safety_settings=[
                types.SafetySetting(
                    category=category,
                    threshold=types.HarmBlockThreshold.BLOCK_MEDIUM_AND_ABOVE,
                )
                for category in HARM_CATEGORIES
            ],
        )

    async def generate_text(self, prompt: str) -> str:
        """
        Run one generation call.

        Raises:
            RecommendationUnavailable: If no text could be produced
        """
        if self._client is None:
            raise RecommendationUnavailable("Gemini API key not configured")

        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=self.model,
                    contents=prompt,
                    config=self._config(),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise RecommendationUnavailable(
                f"Gemini request timed out after {self.timeout}s"
            ) from e
        except Exception as e:
            raise RecommendationUnavailable(f"Gemini request failed: {e}") from e

        candidates = getattr(response, "candidates", None) or []
        if candidates and str(getattr(candidates[0], "finish_reason", "")).endswith("SAFETY"):
            raise RecommendationUnavailable("Content blocked by safety filter")

        text = getattr(response, "text", None)
        if not text or not text.strip():
            raise RecommendationUnavailable("No response from Gemini")
        return text.strip()

    # ============ Recommendations ============

    async def _user(self, session: AsyncSession, user_id: UUID) -> User:
        user = await UserRepository(session).get_by_id(user_id)
        if user is None:
            raise RecommendationUnavailable("User not found")
        return user

    async def build_recommendation_prompt(self, session: AsyncSession, user: User) -> str:
        since = datetime.now(UTC) - timedelta(days=30)
        workouts = await WorkoutRepository(session).list_recent(user.id, since)
        goals = await GoalRepository(session).list_by_user(user.id, since=since)

        return f"""
You are a professional fitness coach analyzing a user's workout and goal data. Based on the following information, provide personalized fitness recommendations.

User Profile:
- Name: {user.name}
- Fitness Level: {user.fitness_level}
- Fitness Goals: {", ".join(user.fitness_goals or [])}
- Current Streak: {user.current_streak} days
- Total Workouts: {user.total_workouts}
- Average Workout Duration: {user.average_workout_duration} minutes
- Preferred Workout Types: {", ".join(user.preferred_workout_types or [])}

Recent Performance (Last 30 days):
- Workouts Completed: {sum(1 for w in workouts if w.completed)}
- Goals Completed: {sum(1 for g in goals if g.completed)}
- Most Common Workout Type: {most_common_workout_type(workouts)}
- Average Workout Rating: {average_rating(workouts)}/5

Please provide:
1. 2-3 specific workout recommendations
2. 1-2 goal suggestions
3. General motivational advice
4. Areas for improvement

Keep the response motivational, practical, and under 300 words. Focus on actionable advice.
"""

    async def generate_recommendations(
        self,
        session: AsyncSession,
        user_id: UUID,
    ) -> Recommendation:
        """Personalized coaching text for a user, or a canned tip."""
        try:
            user = await self._user(session, user_id)
            prompt = await self.build_recommendation_prompt(session, user)
            content = await self.generate_text(prompt)
        except RecommendationUnavailable as e:
            logger.warning(f"[Recommendations] Falling back for user {user_id}: {e}")
            return FallbackRecommendation(
                content=random.choice(FALLBACK_RECOMMENDATIONS),
                reason=str(e),
                generated_at=datetime.now(UTC),
            )

        return GeneratedRecommendation(content=content, generated_at=datetime.now(UTC))

    async def generate_workout_suggestion(
        self,
        session: AsyncSession,
        user_id: UUID,
        workout_type: str | None = None,
    ) -> WorkoutSuggestion:
        """A workout plan for the user; falls back to a static plan per type."""
        try:
            user = await self._user(session, user_id)
        except RecommendationUnavailable as e:
            return fallback_workout(workout_type, str(e))

        target_type = workout_type or next(iter(user.preferred_workout_types or []), "cardio")
        prompt = f"""
Create a {target_type} workout plan for a {user.fitness_level} level fitness enthusiast.

User Details:
- Fitness Level: {user.fitness_level}
- Fitness Goals: {", ".join(user.fitness_goals or [])}
- Average Workout Duration: {user.average_workout_duration} minutes

Please provide:
1. Workout title
2. 5-8 specific exercises with sets/reps/duration
3. Estimated total duration
4. Difficulty level
5. Equipment needed (if any)

Format as JSON with this structure:
{{
  "title": "workout title",
  "type": "{target_type}",
  "exercises": [
    {{"name": "exercise name", "sets": 3, "reps": 12, "duration": 30, "notes": "form tips"}}
  ],
  "estimatedDuration": 30,
  "difficulty": "intermediate",
  "equipment": ["dumbbells", "yoga mat"]
}}
"""
        try:
            text = await self.generate_text(prompt)
        except RecommendationUnavailable as e:
            logger.warning(f"[Recommendations] Workout suggestion fallback for {user_id}: {e}")
            return fallback_workout(target_type, str(e))

        plan = parse_workout_plan(text)
        if plan is None:
            return WorkoutSuggestion(
                title=f"{target_type.capitalize()} Workout",
                workout_type=target_type,
                source="gemini",
                generated_at=datetime.now(UTC),
                description=text,
            )

        duration = plan.get("estimatedDuration")
        return WorkoutSuggestion(
            title=str(plan.get("title") or f"{target_type.capitalize()} Workout"),
            workout_type=str(plan.get("type") or target_type),
            source="gemini",
            generated_at=datetime.now(UTC),
            exercises=list(plan.get("exercises") or []),
            estimated_duration=int(duration) if isinstance(duration, (int, float)) else None,
            plan=plan,
        )

    async def analyze_workout_patterns(
        self,
        session: AsyncSession,
        user_id: UUID,
    ) -> PatternInsight:
        """Consistency and trend insights from the last 60 days of workouts."""
        now = datetime.now(UTC)
        workouts = await WorkoutRepository(session).list_recent(
            user_id, now - timedelta(days=60), limit=200
        )

        if len(workouts) < MIN_WORKOUTS_FOR_PATTERNS:
            return PatternInsight(
                insight=(
                    "Not enough workout data for pattern analysis. Keep logging your "
                    "workouts to get personalized insights!"
                ),
                source="fallback",
                analysis_date=now,
                recommendations=["Log at least 5 workouts to unlock pattern analysis"],
                reason="insufficient_data",
            )

        lines = "\n".join(
            f"Date: {w.date.date().isoformat()}\n"
            f"Type: {w.type}\n"
            f"Duration: {w.duration_minutes} minutes\n"
            f"Intensity: {w.intensity}\n"
            f"Completed: {w.completed}\n"
            f"Rating: {w.rating or 'N/A'}\n"
            for w in sorted(workouts, key=lambda w: w.date)
        )
        prompt = f"""
Analyze the following workout data and provide insights about patterns, consistency, and recommendations:

{lines}

Provide insights about:
1. Workout consistency patterns
2. Preferred workout types and times
3. Performance trends
4. Recommendations for improvement

Keep response under 200 words and focus on actionable insights.
"""
        try:
            insight = await self.generate_text(prompt)
        except RecommendationUnavailable as e:
            logger.warning(f"[Recommendations] Pattern analysis fallback for {user_id}: {e}")
            return PatternInsight(
                insight="Unable to analyze patterns at this time. Please try again later.",
                source="fallback",
                analysis_date=now,
                recommendations=["Continue logging workouts regularly"],
                reason=str(e),
            )

        return PatternInsight(insight=insight, source="gemini", analysis_date=now)
