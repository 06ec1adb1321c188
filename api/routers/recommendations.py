"""
Recommendations router.

Endpoints:
- GET /api/recommendations - Personalized coaching text
- GET /api/recommendations/workout - Suggested workout plan
- GET /api/recommendations/patterns - Workout pattern analysis

Every endpoint answers 200; ``source`` tells whether Gemini or the
built-in fallback produced the result.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_recommendation_client, require_db_session, require_db_user
from api.schemas.recommendations import (
    PatternInsightResponse,
    RecommendationResponse,
    WorkoutSuggestionResponse,
)
from database.models import User
from services.recommendation_client import FallbackRecommendation, RecommendationClient

router = APIRouter(prefix="/recommendations", tags=["recommendations"])


@router.get("", response_model=RecommendationResponse)
async def get_recommendations(
    user: User = Depends(require_db_user),
    session: AsyncSession = Depends(require_db_session),
    client: RecommendationClient = Depends(get_recommendation_client),
):
    """Personalized recommendations from recent workouts and goals."""
    result = await client.generate_recommendations(session, user.id)
    return RecommendationResponse(
        content=result.content,
        source=result.source,
        reason=result.reason if isinstance(result, FallbackRecommendation) else None,
        generated_at=result.generated_at,
    )


@router.get("/workout", response_model=WorkoutSuggestionResponse)
async def get_workout_suggestion(
    workout_type: str | None = Query(default=None, alias="type", max_length=30),
    user: User = Depends(require_db_user),
    session: AsyncSession = Depends(require_db_session),
    client: RecommendationClient = Depends(get_recommendation_client),
):
    """Suggest a workout, optionally of a given type."""
    suggestion = await client.generate_workout_suggestion(session, user.id, workout_type)
    return WorkoutSuggestionResponse(
        title=suggestion.title,
        workout_type=suggestion.workout_type,
        source=suggestion.source,
        exercises=suggestion.exercises,
        estimated_duration=suggestion.estimated_duration,
        description=suggestion.description,
        plan=suggestion.plan,
        reason=suggestion.reason,
        generated_at=suggestion.generated_at,
    )


@router.get("/patterns", response_model=PatternInsightResponse)
async def get_workout_patterns(
    user: User = Depends(require_db_user),
    session: AsyncSession = Depends(require_db_session),
    client: RecommendationClient = Depends(get_recommendation_client),
):
    """Analyze the last 60 days of workouts."""
    insight = await client.analyze_workout_patterns(session, user.id)
    return PatternInsightResponse(
        insight=insight.insight,
        source=insight.source,
        recommendations=insight.recommendations,
        reason=insight.reason,
        analysis_date=insight.analysis_date,
    )
