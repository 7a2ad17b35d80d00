"""Enumeration types for the Unlock Rules Engine."""

from enum import Enum


class Subject(str, Enum):
    """Learning subject an attempt belongs to."""

    ENGLISH = "english"
    MATHEMATICS = "mathematics"
    HASS = "hass"
    SCIENCE = "science"
    ALL = "all"  # Wildcard, only meaningful inside rule criteria


class ExerciseType(str, Enum):
    """Kind of exercise that was attempted."""

    HOMEWORK = "homework"
    PRACTICE = "practice"
    TEST = "test"
    REVIEW = "review"


class Difficulty(str, Enum):
    """Difficulty band of an exercise."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    CHALLENGE = "challenge"


class DayOfWeek(str, Enum):
    """Weekday names, Monday first (matches ``datetime.weekday()``)."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"


class RuleCategory(str, Enum):
    """Free-form grouping for authored rules."""

    ACADEMIC = "academic"
    BEHAVIORAL = "behavioral"
    BONUS = "bonus"
    PENALTY = "penalty"
    EMERGENCY = "emergency"


class ConditionOperator(str, Enum):
    """Operators accepted by generic field-path conditions."""

    EQUALS = "equals"
    GREATER_THAN = "greaterThan"
    LESS_THAN = "lessThan"
    CONTAINS = "contains"
    BETWEEN = "between"


class WarningSeverity(str, Enum):
    """Severity attached to rule validation warnings."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class BlockReason(str, Enum):
    """Why a triggered rule was held back by its usage limits."""

    DAILY_LIMIT = "daily_limit"
    WEEKLY_LIMIT = "weekly_limit"
    COOLDOWN = "cooldown"
    MAX_TRIGGERS = "max_triggers"
    APPROVAL_REQUIRED = "approval_required"
