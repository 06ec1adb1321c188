"""
Pydantic schemas for the recommendations API.
"""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

RecommendationSource = Literal["gemini", "fallback"]


class RecommendationResponse(BaseModel):
    """Personalized coaching text."""

    content: str = Field(..., description="Recommendation text")
    source: RecommendationSource = Field(..., description="gemini or fallback")
    reason: str | None = Field(None, description="Why the fallback was used")
    generated_at: datetime


class WorkoutSuggestionResponse(BaseModel):
    """Suggested workout plan."""

    title: str
    workout_type: str
    source: RecommendationSource
    exercises: list[Any] = Field(default_factory=list)
    estimated_duration: int | None = Field(None, description="Minutes")
    description: str | None = Field(None, description="Raw text when no plan could be parsed")
    plan: dict[str, Any] | None = None
    reason: str | None = None
    generated_at: datetime


class PatternInsightResponse(BaseModel):
    """Workout pattern analysis."""

    insight: str
    source: RecommendationSource
    recommendations: list[str] = Field(default_factory=list)
    reason: str | None = None
    analysis_date: datetime
