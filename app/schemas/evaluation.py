"""Unlock evaluation request schemas."""

from datetime import datetime

from pydantic import Field

from app.schemas.common import CamelModel


class PerformanceRecordIn(CamelModel):
    score: float = Field(..., ge=0, le=100)
    completed_at: datetime
    attempt_id: str | None = None
    subject: str | None = None
    time_taken: float | None = Field(None, ge=0)


class SubjectStatsIn(CamelModel):
    attempts: int = Field(0, ge=0)
    average_score: float = 0


class WeeklyStatsIn(CamelModel):
    total_attempts: int = Field(0, ge=0)
    average_score: float = 0
    subject_breakdown: dict[str, SubjectStatsIn] = Field(default_factory=dict)
    streak_days: int = Field(0, ge=0)


class EvaluationContextIn(CamelModel):
    # Categorical fields stay plain strings: an unknown value just never matches.
    user_id: str = Field(..., min_length=1)
    score: float = Field(..., ge=0, le=100)
    subject: str
    year_level: int
    exercise_type: str
    difficulty: str
    time_taken: float = Field(..., ge=0, description="Seconds")
    completed_at: datetime
    is_correct: bool
    attempt_id: str | None = None
    consecutive_successes: int | None = None
    current_streak: int | None = None
    recent_performance: list[PerformanceRecordIn] = Field(default_factory=list)
    today_attempts: int | None = None
    weekly_stats: WeeklyStatsIn | None = None


class UnlockEvaluationRequestIn(CamelModel):
    user_id: str = Field(..., min_length=1)
    context: EvaluationContextIn
    rules: list[str] | None = Field(None, description="Restrict evaluation to these rule ids")
