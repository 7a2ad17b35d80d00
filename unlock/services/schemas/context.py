"""Evaluation context and request dataclasses.

The context is an immutable snapshot of one graded attempt. Categorical fields are
kept as plain strings so an unexpected value just fails to match a criterion.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from unlock.services._helpers import parse_datetime, pick
from unlock.services.errors import InvalidRequestError

Number = int | float


def _required(data: Mapping[str, object], snake: str, camel: str) -> object:
    value: object = pick(data, snake, camel)
    if value is None:
        raise InvalidRequestError(f"context.{camel} is required")
    return value


def _required_number(data: Mapping[str, object], snake: str, camel: str) -> Number:
    value: object = _required(data, snake, camel)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidRequestError(f"context.{camel} must be a number, got {value!r}")
    return value


def _required_bool(data: Mapping[str, object], snake: str, camel: str) -> bool:
    value: object = _required(data, snake, camel)
    if not isinstance(value, bool):
        raise InvalidRequestError(f"context.{camel} must be true or false, got {value!r}")
    return value


def _optional_number(data: Mapping[str, object], snake: str, camel: str) -> Number | None:
    value: object = pick(data, snake, camel)
    if value is None or isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value


def _label(value: object) -> str:
    return value.value if isinstance(value, Enum) else str(value)


@dataclass(frozen=True, slots=True)
class PerformanceRecord:
    score: Number
    completed_at: datetime
    attempt_id: str | None = None
    subject: str | None = None
    time_taken: Number | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "PerformanceRecord":
        completed_at: datetime | None = parse_datetime(pick(data, "completed_at", "completedAt"))
        if completed_at is None:
            raise InvalidRequestError("recentPerformance entries need completedAt")
        subject: object = data.get("subject")
        attempt_id: object = pick(data, "attempt_id", "attemptId")
        return cls(
            score=_required_number(data, "score", "score"),
            completed_at=completed_at,
            attempt_id=str(attempt_id) if attempt_id is not None else None,
            subject=_label(subject) if subject is not None else None,
            time_taken=_optional_number(data, "time_taken", "timeTaken"),
        )


@dataclass(frozen=True, slots=True)
class SubjectStats:
    attempts: int = 0
    average_score: Number = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "SubjectStats":
        return cls(
            attempts=int(_optional_number(data, "attempts", "attempts") or 0),
            average_score=_optional_number(data, "average_score", "averageScore") or 0,
        )


@dataclass(frozen=True, slots=True)
class WeeklyStats:
    total_attempts: int = 0
    average_score: Number = 0
    subject_breakdown: Mapping[str, SubjectStats] = field(default_factory=dict)
    streak_days: int = 0

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "WeeklyStats":
        raw: object = pick(data, "subject_breakdown", "subjectBreakdown") or {}
        breakdown: dict[str, SubjectStats] = (
            {
                _label(k): SubjectStats.from_dict(v)
                for k, v in raw.items()
                if isinstance(v, Mapping)
            }
            if isinstance(raw, Mapping)
            else {}
        )
        return cls(
            total_attempts=int(_optional_number(data, "total_attempts", "totalAttempts") or 0),
            average_score=_optional_number(data, "average_score", "averageScore") or 0,
            subject_breakdown=breakdown,
            streak_days=int(_optional_number(data, "streak_days", "streakDays") or 0),
        )


@dataclass(frozen=True, slots=True)
class EvaluationContext:
    user_id: str
    score: Number
    subject: str
    year_level: int
    exercise_type: str
    difficulty: str
    time_taken: Number
    completed_at: datetime
    is_correct: bool
    attempt_id: str | None = None
    consecutive_successes: int | None = None
    current_streak: int | None = None
    recent_performance: tuple[PerformanceRecord, ...] = ()
    today_attempts: int | None = None
    weekly_stats: WeeklyStats | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "EvaluationContext":
        completed_at: datetime | None = parse_datetime(
            _required(data, "completed_at", "completedAt")
        )
        if completed_at is None:
            raise InvalidRequestError("context.completedAt must be an ISO-8601 timestamp")

        raw_history: object = pick(data, "recent_performance", "recentPerformance") or []
        if not isinstance(raw_history, (list, tuple)):
            raise InvalidRequestError("context.recentPerformance must be a list")
        weekly: object = pick(data, "weekly_stats", "weeklyStats")
        streak: Number | None = _optional_number(data, "current_streak", "currentStreak")
        successes: Number | None = _optional_number(
            data, "consecutive_successes", "consecutiveSuccesses"
        )
        today: Number | None = _optional_number(data, "today_attempts", "todayAttempts")
        attempt_id: object = pick(data, "attempt_id", "attemptId")

        return cls(
            user_id=str(_required(data, "user_id", "userId")),
            score=_required_number(data, "score", "score"),
            subject=_label(_required(data, "subject", "subject")),
            year_level=int(_required_number(data, "year_level", "yearLevel")),
            exercise_type=_label(_required(data, "exercise_type", "exerciseType")),
            difficulty=_label(_required(data, "difficulty", "difficulty")),
            time_taken=_required_number(data, "time_taken", "timeTaken"),
            completed_at=completed_at,
            is_correct=_required_bool(data, "is_correct", "isCorrect"),
            attempt_id=str(attempt_id) if attempt_id is not None else None,
            consecutive_successes=int(successes) if successes is not None else None,
            current_streak=int(streak) if streak is not None else None,
            recent_performance=tuple(
                PerformanceRecord.from_dict(r) for r in raw_history if isinstance(r, Mapping)
            ),
            today_attempts=int(today) if today is not None else None,
            weekly_stats=WeeklyStats.from_dict(weekly) if isinstance(weekly, Mapping) else None,
        )


@dataclass(frozen=True, slots=True)
class UnlockEvaluationRequest:
    user_id: str
    context: EvaluationContext
    rules: tuple[str, ...] | None = None  # explicit rule-id subset; None or empty means all

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "UnlockEvaluationRequest":
        raw_context: object = data.get("context")
        if not isinstance(raw_context, Mapping):
            raise InvalidRequestError("request.context is required")
        user_id: object = pick(data, "user_id", "userId")
        if not user_id:
            raise InvalidRequestError("request.userId is required")
        raw_rules: object = data.get("rules")
        if raw_rules is not None and not isinstance(raw_rules, (list, tuple)):
            raise InvalidRequestError("request.rules must be a list of rule ids")
        return cls(
            user_id=str(user_id),
            context=EvaluationContext.from_dict(raw_context),
            rules=tuple(str(r) for r in raw_rules) if raw_rules is not None else None,
        )
