"""Authoring-time validation of candidate rule definitions.

Works on the raw mapping an editor submits, so partially filled rules can still be
reported on field by field. Never raises: problems come back as structured errors
(which block activation) and warnings (which do not).
"""

from collections.abc import Mapping

import structlog

from db.enums import ConditionOperator, WarningSeverity
from unlock.services._helpers import pick
from unlock.services.schemas.results import (
    RuleValidationResult,
    ValidationIssue,
    ValidationWarning,
)

logger = structlog.get_logger(__name__)

DEFAULT_EXCESSIVE_UNLOCK_MINUTES: int = 480  # 8 hours

_KNOWN_OPERATORS: set[str] = {op.value for op in ConditionOperator}


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


class RuleValidator:
    """Checks a candidate rule before it is stored or activated."""

    def __init__(self, excessive_unlock_minutes: int = DEFAULT_EXCESSIVE_UNLOCK_MINUTES) -> None:
        self.excessive_unlock_minutes: int = excessive_unlock_minutes

    def validate(self, candidate: Mapping[str, object]) -> RuleValidationResult:
        errors: list[ValidationIssue] = []
        warnings: list[ValidationWarning] = []

        if not candidate.get("name"):
            errors.append(ValidationIssue("name", "Rule name is required", "required"))

        criteria: object = candidate.get("criteria")
        action: object = candidate.get("action")
        limits: object = candidate.get("limits")

        if criteria is None:
            errors.append(ValidationIssue("criteria", "Rule criteria is required", "required"))
        elif not isinstance(criteria, Mapping):
            errors.append(ValidationIssue("criteria", "Rule criteria must be an object", "type"))
        else:
            self._check_criteria(criteria, errors)

        if action is None:
            errors.append(ValidationIssue("action", "Rule action is required", "required"))
        elif not isinstance(action, Mapping):
            errors.append(ValidationIssue("action", "Rule action must be an object", "type"))
        else:
            self._check_action(action, errors, warnings)

        if isinstance(limits, Mapping):
            self._check_limits(limits, errors, warnings)

        result = RuleValidationResult(valid=not errors, errors=errors, warnings=warnings)
        logger.debug(
            "Rule validated",
            name=candidate.get("name"),
            valid=result.valid,
            errors=len(errors),
            warnings=len(warnings),
        )
        return result

    def _check_criteria(self, criteria: Mapping[str, object], errors: list[ValidationIssue]) -> None:
        subject: object = criteria.get("subject")
        if not isinstance(subject, (list, tuple)) or not subject:
            errors.append(
                ValidationIssue(
                    "criteria.subject", "At least one subject must be specified", "required"
                )
            )

        min_score: object = pick(criteria, "min_score", "minScore")
        max_score: object = pick(criteria, "max_score", "maxScore")
        for name, value in (("minScore", min_score), ("maxScore", max_score)):
            if value is None:
                continue
            if not _is_number(value):
                errors.append(
                    ValidationIssue(f"criteria.{name}", f"{name} must be a number", "type")
                )
            elif not 0 <= value <= 100:  # type: ignore[operator]
                label: str = "Minimum" if name == "minScore" else "Maximum"
                errors.append(
                    ValidationIssue(
                        f"criteria.{name}", f"{label} score must be between 0 and 100", "range"
                    )
                )
        if _is_number(min_score) and _is_number(max_score) and min_score > max_score:  # type: ignore[operator]
            errors.append(
                ValidationIssue(
                    "criteria.minScore",
                    "Minimum score cannot be greater than maximum score",
                    "inverted_range",
                )
            )

        time_of_day: object = pick(criteria, "time_of_day", "timeOfDay")
        if isinstance(time_of_day, Mapping):
            start: object = pick(time_of_day, "start_hour", "startHour")
            end: object = pick(time_of_day, "end_hour", "endHour")
            if not (_is_number(start) and _is_number(end)):
                errors.append(
                    ValidationIssue(
                        "criteria.timeOfDay", "startHour and endHour are required", "required"
                    )
                )
            elif not (0 <= start <= 23 and 0 <= end <= 23):  # type: ignore[operator]
                errors.append(
                    ValidationIssue(
                        "criteria.timeOfDay", "Hours must be between 0 and 23", "range"
                    )
                )
            elif start > end:  # type: ignore[operator]
                errors.append(
                    ValidationIssue(
                        "criteria.timeOfDay",
                        "startHour cannot be later than endHour",
                        "inverted_range",
                    )
                )

        conditions: object = pick(criteria, "custom_conditions", "customConditions")
        if isinstance(conditions, (list, tuple)):
            for i, condition in enumerate(conditions):
                where: str = f"criteria.customConditions[{i}]"
                if not isinstance(condition, Mapping) or not condition.get("field"):
                    errors.append(ValidationIssue(where, "Condition needs a field path", "required"))
                    continue
                if condition.get("operator") not in _KNOWN_OPERATORS:
                    errors.append(
                        ValidationIssue(
                            f"{where}.operator",
                            f"Unknown operator '{condition.get('operator')}'",
                            "unknown_operator",
                        )
                    )

    def _check_action(
        self,
        action: Mapping[str, object],
        errors: list[ValidationIssue],
        warnings: list[ValidationWarning],
    ) -> None:
        minutes: object = pick(action, "unlock_minutes", "unlockMinutes")
        if not _is_number(minutes) or minutes < 0:  # type: ignore[operator]
            errors.append(
                ValidationIssue(
                    "action.unlockMinutes",
                    "Unlock minutes must be specified and non-negative",
                    "required",
                )
            )
        elif minutes > self.excessive_unlock_minutes:  # type: ignore[operator]
            warnings.append(
                ValidationWarning(
                    "action.unlockMinutes",
                    f"Unlock minutes exceeds {self.excessive_unlock_minutes / 60:g} hours"
                    " - this may be excessive",
                    WarningSeverity.HIGH,
                )
            )

    def _check_limits(
        self,
        limits: Mapping[str, object],
        errors: list[ValidationIssue],
        warnings: list[ValidationWarning],
    ) -> None:
        max_daily: object = pick(limits, "max_daily", "maxDaily")
        max_weekly: object = pick(limits, "max_weekly", "maxWeekly")
        if _is_number(max_daily) and max_daily < 0:  # type: ignore[operator]
            errors.append(
                ValidationIssue("limits.maxDaily", "Daily limit cannot be negative", "range")
            )
        if _is_number(max_weekly) and max_weekly < 0:  # type: ignore[operator]
            errors.append(
                ValidationIssue("limits.maxWeekly", "Weekly limit cannot be negative", "range")
            )
        if _is_number(max_daily) and _is_number(max_weekly) and max_daily * 7 > max_weekly:  # type: ignore[operator]
            warnings.append(
                ValidationWarning(
                    "limits.maxWeekly",
                    "Daily limit * 7 exceeds weekly limit",
                    WarningSeverity.LOW,
                )
            )


def validate_rule(candidate: Mapping[str, object]) -> RuleValidationResult:
    return RuleValidator().validate(candidate)
