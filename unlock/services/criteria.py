"""Criteria evaluation: one rule's criteria against one attempt context.

Every criterion category has a check function ``(criteria, context) -> checks``.
The checks are listed explicitly in ``CRITERIA_CHECKS``; an unset criterion yields
no checks, so it passes without being recorded as matched.
"""

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum

from db.enums import ConditionOperator, DayOfWeek, Subject
from unlock.services.behavior import improvement_rate, mistake_reduction
from unlock.services.field_path import resolve_path
from unlock.services.schemas.context import EvaluationContext
from unlock.services.schemas.rules import CustomCondition, RuleCriteria


@dataclass(slots=True)
class CriterionCheck:
    category: str  # criteria key the check belongs to, e.g. "timeLimit"
    passed: bool
    token: str


@dataclass(slots=True)
class CriteriaVerdict:
    checks: list[CriterionCheck] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return all(c.passed for c in self.checks)

    @property
    def matched(self) -> list[str]:
        return [c.token for c in self.checks if c.passed]

    @property
    def failed(self) -> list[str]:
        return [c.token for c in self.checks if not c.passed]


CheckFn = Callable[[RuleCriteria, EvaluationContext], list[CriterionCheck]]


def _fmt(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, Enum):
        return str(value.value)
    if isinstance(value, (list, tuple)):
        return ",".join(_fmt(v) for v in value)
    return str(value)


def _membership(
    category: str, actual: object, allowed: Sequence[object], *, wildcard: object = None
) -> list[CriterionCheck]:
    if not allowed:
        return []
    ok: bool = actual in allowed or (wildcard is not None and wildcard in allowed)
    token: str = (
        f"{category}:{_fmt(actual)}" if ok else f"{category}:{_fmt(actual)}_not_in_{_fmt(allowed)}"
    )
    return [CriterionCheck(category, ok, token)]


# -- Per-category checks -----------------------------------------------------


def check_subject(criteria: RuleCriteria, context: EvaluationContext) -> list[CriterionCheck]:
    return _membership(
        "subject", context.subject, criteria.subject or [], wildcard=Subject.ALL.value
    )


def check_year_level(criteria: RuleCriteria, context: EvaluationContext) -> list[CriterionCheck]:
    return _membership("yearLevel", context.year_level, criteria.year_level or [])


def check_score(criteria: RuleCriteria, context: EvaluationContext) -> list[CriterionCheck]:
    checks: list[CriterionCheck] = []
    score: str = _fmt(context.score)
    if criteria.min_score is not None:
        ok: bool = context.score >= criteria.min_score
        limit: str = _fmt(criteria.min_score)
        checks.append(
            CriterionCheck(
                "minScore", ok, f"minScore:{score}>={limit}" if ok else f"minScore:{score}<{limit}"
            )
        )
    if criteria.max_score is not None:
        ok = context.score <= criteria.max_score
        limit = _fmt(criteria.max_score)
        checks.append(
            CriterionCheck(
                "maxScore", ok, f"maxScore:{score}<={limit}" if ok else f"maxScore:{score}>{limit}"
            )
        )
    return checks


def check_time_limit(criteria: RuleCriteria, context: EvaluationContext) -> list[CriterionCheck]:
    limit = criteria.time_limit
    if limit is None:
        return []
    checks: list[CriterionCheck] = []
    taken: str = _fmt(context.time_taken)
    if limit.max_seconds is not None:
        ok: bool = context.time_taken <= limit.max_seconds
        cap: str = _fmt(limit.max_seconds)
        checks.append(
            CriterionCheck(
                "timeLimit", ok, f"maxTime:{taken}<={cap}" if ok else f"maxTime:{taken}>{cap}"
            )
        )
    if limit.bonus_under_seconds is not None:
        # Informational only: recorded as matched either way.
        under: str = _fmt(limit.bonus_under_seconds)
        token: str = (
            f"bonusTime:{taken}<={under}"
            if context.time_taken <= limit.bonus_under_seconds
            else f"bonusTime:not_eligible:{taken}>{under}"
        )
        checks.append(CriterionCheck("timeLimit", True, token))
    return checks


def check_exercise_type(
    criteria: RuleCriteria, context: EvaluationContext
) -> list[CriterionCheck]:
    return _membership("exerciseType", context.exercise_type, criteria.exercise_type or [])


def check_difficulty(criteria: RuleCriteria, context: EvaluationContext) -> list[CriterionCheck]:
    return _membership("difficulty", context.difficulty, criteria.difficulty or [])


def check_time_of_day(criteria: RuleCriteria, context: EvaluationContext) -> list[CriterionCheck]:
    window = criteria.time_of_day
    if window is None:
        return []
    hour: int = context.completed_at.hour
    ok: bool = window.start_hour <= hour <= window.end_hour
    span: str = f"{window.start_hour}-{window.end_hour}"
    token: str = f"timeOfDay:{hour}_in_{span}" if ok else f"timeOfDay:{hour}_not_in_{span}"
    return [CriterionCheck("timeOfDay", ok, token)]


def check_day_of_week(criteria: RuleCriteria, context: EvaluationContext) -> list[CriterionCheck]:
    day: str = list(DayOfWeek)[context.completed_at.weekday()].value
    return _membership("dayOfWeek", day, criteria.day_of_week or [])


def check_behavior_modifiers(
    criteria: RuleCriteria, context: EvaluationContext
) -> list[CriterionCheck]:
    modifiers = criteria.behavior_modifiers
    if modifiers is None:
        return []
    checks: list[CriterionCheck] = []

    if modifiers.completion_streak is not None:
        streak: int = context.current_streak or 0
        need: str = _fmt(modifiers.completion_streak)
        ok: bool = streak >= modifiers.completion_streak
        checks.append(
            CriterionCheck(
                "behaviorModifiers",
                ok,
                f"completionStreak:{streak}>={need}" if ok else f"completionStreak:{streak}<{need}",
            )
        )

    if modifiers.improvement_rate is not None:
        rate: float = improvement_rate(context.recent_performance)
        need = _fmt(modifiers.improvement_rate)
        ok = rate >= modifiers.improvement_rate
        checks.append(
            CriterionCheck(
                "behaviorModifiers",
                ok,
                f"improvementRate:{rate:.1f}>={need}" if ok else f"improvementRate:{rate:.1f}<{need}",
            )
        )

    if modifiers.mistake_reduction is not None:
        reduction: float = mistake_reduction(context.recent_performance)
        need = _fmt(modifiers.mistake_reduction)
        ok = reduction >= modifiers.mistake_reduction
        checks.append(
            CriterionCheck(
                "behaviorModifiers",
                ok,
                f"mistakeReduction:{reduction:.2f}>={need}"
                if ok
                else f"mistakeReduction:{reduction:.2f}<{need}",
            )
        )

    return checks


# -- Custom conditions -------------------------------------------------------


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _op_equals(actual: object, expected: object) -> bool:
    if isinstance(actual, bool) or isinstance(expected, bool):
        return isinstance(actual, bool) and isinstance(expected, bool) and actual == expected
    return actual == expected


def _op_greater_than(actual: object, expected: object) -> bool:
    return _is_number(actual) and _is_number(expected) and actual > expected  # type: ignore[operator]


def _op_less_than(actual: object, expected: object) -> bool:
    return _is_number(actual) and _is_number(expected) and actual < expected  # type: ignore[operator]


def _op_contains(actual: object, expected: object) -> bool:
    if isinstance(actual, Mapping):
        try:
            return expected in actual
        except TypeError:  # unhashable key
            return False
    if isinstance(actual, Sequence) and not isinstance(actual, (str, bytes)):
        return expected in actual
    return _fmt(expected) in _fmt(actual)


def _op_between(actual: object, expected: object) -> bool:
    if not _is_number(actual) or not isinstance(expected, (list, tuple)) or len(expected) != 2:
        return False
    low, high = expected
    return _is_number(low) and _is_number(high) and low <= actual <= high  # type: ignore[operator]


_OPERATORS: dict[str, Callable[[object, object], bool]] = {
    ConditionOperator.EQUALS.value: _op_equals,
    ConditionOperator.GREATER_THAN.value: _op_greater_than,
    ConditionOperator.LESS_THAN.value: _op_less_than,
    ConditionOperator.CONTAINS.value: _op_contains,
    ConditionOperator.BETWEEN.value: _op_between,
}


def evaluate_condition(condition: CustomCondition, context: EvaluationContext) -> bool:
    actual: object = resolve_path(context, condition.field)
    if actual is None:
        return False
    op = _OPERATORS.get(condition.operator)
    if op is None:
        return False
    return op(actual, condition.value)


def check_custom_conditions(
    criteria: RuleCriteria, context: EvaluationContext
) -> list[CriterionCheck]:
    checks: list[CriterionCheck] = []
    for condition in criteria.custom_conditions or []:
        ok: bool = evaluate_condition(condition, context)
        token: str = f"custom:{condition.field}_{condition.operator}_{_fmt(condition.value)}"
        checks.append(CriterionCheck("customConditions", ok, token))
        if not ok:
            break
    return checks


CRITERIA_CHECKS: tuple[CheckFn, ...] = (
    check_subject,
    check_year_level,
    check_score,
    check_time_limit,
    check_exercise_type,
    check_difficulty,
    check_time_of_day,
    check_day_of_week,
    check_behavior_modifiers,
    check_custom_conditions,
)


def evaluate_criteria(
    criteria: RuleCriteria,
    context: EvaluationContext,
    verdict: CriteriaVerdict | None = None,
) -> CriteriaVerdict:
    """Run every check. Pass a ``verdict`` to keep partial results if a check raises."""
    verdict = verdict if verdict is not None else CriteriaVerdict()
    for check in CRITERIA_CHECKS:
        verdict.checks.extend(check(criteria, context))
    return verdict
