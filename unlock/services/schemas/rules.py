"""Rule definition dataclasses.

Rules are authored as camelCase JSON; ``from_dict`` also accepts snake_case so the
same parser serves the API layer (``model_dump``) and stored JSON columns.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field, fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import cast

from pydantic.alias_generators import to_camel

from unlock.services._helpers import JsonDict, parse_datetime, pick
from unlock.services.errors import InvalidRuleError

Number = int | float


def _text(value: object) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _number(data: Mapping[str, object], snake: str, camel: str) -> Number | None:
    raw: object = pick(data, snake, camel)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        raise InvalidRuleError(f"{camel} must be a number, got {raw!r}")
    return raw


def _str_list(data: Mapping[str, object], snake: str, camel: str) -> list[str] | None:
    raw: object = pick(data, snake, camel)
    if raw is None:
        return None
    if not isinstance(raw, (list, tuple)):
        raise InvalidRuleError(f"{camel} must be a list, got {raw!r}")
    return [_text(v) for v in raw]


def _int_list(data: Mapping[str, object], snake: str, camel: str) -> list[int] | None:
    raw: object = pick(data, snake, camel)
    if raw is None:
        return None
    if not isinstance(raw, (list, tuple)):
        raise InvalidRuleError(f"{camel} must be a list, got {raw!r}")
    try:
        return [int(v) for v in raw]
    except (TypeError, ValueError) as e:
        raise InvalidRuleError(f"{camel} must contain integers: {e}") from e


def _mapping(data: Mapping[str, object], snake: str, camel: str) -> Mapping[str, object] | None:
    raw: object = pick(data, snake, camel)
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise InvalidRuleError(f"{camel} must be an object, got {raw!r}")
    return raw


def _optional_str(data: Mapping[str, object], snake: str, camel: str) -> str | None:
    raw: object = pick(data, snake, camel)
    return _text(raw) if raw is not None else None


def to_camel_dict(obj: object) -> object:
    """Serialize a dataclass tree to camelCase JSON-ready data, dropping unset fields."""
    if is_dataclass(obj) and not isinstance(obj, type):
        out: JsonDict = {}
        for f in fields(obj):
            value: object = getattr(obj, f.name)
            if value is None:
                continue
            out[to_camel(f.name)] = to_camel_dict(value)
        return out
    if isinstance(obj, (list, tuple)):
        return [to_camel_dict(v) for v in obj]
    if isinstance(obj, Mapping):
        return {str(k): to_camel_dict(v) for k, v in obj.items()}
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    return obj


# -- Criteria ----------------------------------------------------------------


@dataclass(slots=True)
class TimeLimit:
    max_seconds: Number | None = None
    bonus_under_seconds: Number | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "TimeLimit":
        return cls(
            max_seconds=_number(data, "max_seconds", "maxSeconds"),
            bonus_under_seconds=_number(data, "bonus_under_seconds", "bonusUnderSeconds"),
        )


@dataclass(slots=True)
class HourRange:
    start_hour: int
    end_hour: int

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "HourRange":
        start: Number | None = _number(data, "start_hour", "startHour")
        end: Number | None = _number(data, "end_hour", "endHour")
        if start is None or end is None:
            raise InvalidRuleError("timeOfDay needs both startHour and endHour")
        return cls(start_hour=int(start), end_hour=int(end))


@dataclass(slots=True)
class BehaviorModifiers:
    completion_streak: Number | None = None
    improvement_rate: Number | None = None
    mistake_reduction: Number | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "BehaviorModifiers":
        return cls(
            completion_streak=_number(data, "completion_streak", "completionStreak"),
            improvement_rate=_number(data, "improvement_rate", "improvementRate"),
            mistake_reduction=_number(data, "mistake_reduction", "mistakeReduction"),
        )


@dataclass(slots=True)
class CustomCondition:
    field: str
    operator: str
    value: object = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "CustomCondition":
        path: object = data.get("field")
        operator: object = data.get("operator")
        if not isinstance(path, str) or not path:
            raise InvalidRuleError("custom condition needs a field path")
        if operator is None:
            raise InvalidRuleError(f"custom condition on '{path}' needs an operator")
        return cls(field=path, operator=_text(operator), value=data.get("value"))


@dataclass(slots=True)
class RuleCriteria:
    """Conjunction of optional predicates. ``None`` means "not specified"."""

    subject: list[str] | None = None
    year_level: list[int] | None = None
    min_score: Number | None = None
    max_score: Number | None = None
    time_limit: TimeLimit | None = None
    exercise_type: list[str] | None = None
    difficulty: list[str] | None = None
    time_of_day: HourRange | None = None
    day_of_week: list[str] | None = None
    behavior_modifiers: BehaviorModifiers | None = None
    custom_conditions: list[CustomCondition] | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "RuleCriteria":
        time_limit = _mapping(data, "time_limit", "timeLimit")
        time_of_day = _mapping(data, "time_of_day", "timeOfDay")
        modifiers = _mapping(data, "behavior_modifiers", "behaviorModifiers")
        raw_conditions: object = pick(data, "custom_conditions", "customConditions")
        conditions: list[CustomCondition] | None = None
        if raw_conditions is not None:
            if not isinstance(raw_conditions, (list, tuple)):
                raise InvalidRuleError("customConditions must be a list")
            conditions = [
                CustomCondition.from_dict(c) for c in raw_conditions if isinstance(c, Mapping)
            ]
        days: list[str] | None = _str_list(data, "day_of_week", "dayOfWeek")
        return cls(
            subject=_str_list(data, "subject", "subject"),
            year_level=_int_list(data, "year_level", "yearLevel"),
            min_score=_number(data, "min_score", "minScore"),
            max_score=_number(data, "max_score", "maxScore"),
            time_limit=TimeLimit.from_dict(time_limit) if time_limit is not None else None,
            exercise_type=_str_list(data, "exercise_type", "exerciseType"),
            difficulty=_str_list(data, "difficulty", "difficulty"),
            time_of_day=HourRange.from_dict(time_of_day) if time_of_day is not None else None,
            day_of_week=[d.lower() for d in days] if days is not None else None,
            behavior_modifiers=(
                BehaviorModifiers.from_dict(modifiers) if modifiers is not None else None
            ),
            custom_conditions=conditions,
        )

    def present_fields(self) -> list[str]:
        """Criterion categories that are set on this rule (camelCase keys)."""
        return [to_camel(f.name) for f in fields(self) if getattr(self, f.name) is not None]


# -- Action / limits / metadata ----------------------------------------------


@dataclass(slots=True)
class TimeWindow:
    start_time: str  # HH:MM
    end_time: str  # HH:MM

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "TimeWindow":
        start: str | None = _optional_str(data, "start_time", "startTime")
        end: str | None = _optional_str(data, "end_time", "endTime")
        if start is None or end is None:
            raise InvalidRuleError("time window needs startTime and endTime")
        return cls(start_time=start, end_time=end)


@dataclass(slots=True)
class Restrictions:
    allowed_apps: list[str] = field(default_factory=list)
    blocked_apps: list[str] = field(default_factory=list)
    time_windows: list[TimeWindow] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "Restrictions":
        raw_windows: object = pick(data, "time_windows", "timeWindows") or []
        windows: list[TimeWindow] = (
            [TimeWindow.from_dict(w) for w in raw_windows if isinstance(w, Mapping)]
            if isinstance(raw_windows, (list, tuple))
            else []
        )
        return cls(
            allowed_apps=_str_list(data, "allowed_apps", "allowedApps") or [],
            blocked_apps=_str_list(data, "blocked_apps", "blockedApps") or [],
            time_windows=windows,
        )


@dataclass(slots=True)
class RuleAction:
    unlock_minutes: Number
    bonus_minutes: Number | None = None
    message: str | None = None
    achievements: list[str] | None = None
    parent_notification: bool = False
    restrictions: Restrictions | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "RuleAction":
        minutes: Number | None = _number(data, "unlock_minutes", "unlockMinutes")
        if minutes is None:
            raise InvalidRuleError("action.unlockMinutes is required")
        restrictions = _mapping(data, "restrictions", "restrictions")
        return cls(
            unlock_minutes=minutes,
            bonus_minutes=_number(data, "bonus_minutes", "bonusMinutes"),
            message=_optional_str(data, "message", "message"),
            achievements=_str_list(data, "achievements", "achievements"),
            parent_notification=bool(pick(data, "parent_notification", "parentNotification")),
            restrictions=Restrictions.from_dict(restrictions) if restrictions is not None else None,
        )


@dataclass(slots=True)
class RuleLimits:
    max_daily: int | None = None
    max_weekly: int | None = None
    cooldown_minutes: Number | None = None
    max_triggers: int | None = None
    requires_parental_approval: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "RuleLimits":
        max_daily = _number(data, "max_daily", "maxDaily")
        max_weekly = _number(data, "max_weekly", "maxWeekly")
        max_triggers = _number(data, "max_triggers", "maxTriggers")
        return cls(
            max_daily=int(max_daily) if max_daily is not None else None,
            max_weekly=int(max_weekly) if max_weekly is not None else None,
            cooldown_minutes=_number(data, "cooldown_minutes", "cooldownMinutes"),
            max_triggers=int(max_triggers) if max_triggers is not None else None,
            requires_parental_approval=bool(
                pick(data, "requires_parental_approval", "requiresParentalApproval")
            ),
        )

    def is_empty(self) -> bool:
        return (
            self.max_daily is None
            and self.max_weekly is None
            and self.cooldown_minutes is None
            and self.max_triggers is None
            and not self.requires_parental_approval
        )


@dataclass(slots=True)
class RuleMetadata:
    tags: list[str] = field(default_factory=list)
    category: str | None = None
    version: str | None = None
    notes: str | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "RuleMetadata":
        return cls(
            tags=_str_list(data, "tags", "tags") or [],
            category=_optional_str(data, "category", "category"),
            version=_optional_str(data, "version", "version"),
            notes=_optional_str(data, "notes", "notes"),
        )


# -- Rule --------------------------------------------------------------------


@dataclass(slots=True)
class UnlockRule:
    id: str
    name: str
    action: RuleAction
    criteria: RuleCriteria = field(default_factory=RuleCriteria)
    description: str | None = None
    is_active: bool = True
    priority: int = 0
    limits: RuleLimits | None = None
    stackable: bool = True
    valid_from: datetime | None = None
    valid_to: datetime | None = None
    applies_to: list[str] = field(default_factory=list)
    metadata: RuleMetadata | None = None
    created_by: str = "system"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> "UnlockRule":
        rule_id: object = data.get("id")
        name: object = data.get("name")
        if not isinstance(rule_id, str) or not rule_id:
            raise InvalidRuleError("rule id is required")
        if not isinstance(name, str) or not name:
            raise InvalidRuleError(f"rule {rule_id}: name is required")

        action = _mapping(data, "action", "action")
        if action is None:
            raise InvalidRuleError(f"rule {rule_id}: action is required")
        criteria = _mapping(data, "criteria", "criteria") or {}
        limits = _mapping(data, "limits", "limits")
        metadata = _mapping(data, "metadata", "metadata")
        priority: Number | None = _number(data, "priority", "priority")
        is_active: object = pick(data, "is_active", "isActive", True)
        stackable: object = pick(data, "stackable", "stackable", True)

        return cls(
            id=rule_id,
            name=name,
            description=_optional_str(data, "description", "description"),
            is_active=bool(is_active),
            priority=int(priority) if priority is not None else 0,
            criteria=RuleCriteria.from_dict(criteria),
            action=RuleAction.from_dict(action),
            limits=RuleLimits.from_dict(limits) if limits is not None else None,
            stackable=bool(stackable),
            valid_from=parse_datetime(pick(data, "valid_from", "validFrom")),
            valid_to=parse_datetime(pick(data, "valid_to", "validTo")),
            applies_to=_str_list(data, "applies_to", "appliesTo") or [],
            metadata=RuleMetadata.from_dict(metadata) if metadata is not None else None,
            created_by=_optional_str(data, "created_by", "createdBy") or "system",
            created_at=parse_datetime(pick(data, "created_at", "createdAt")),
            updated_at=parse_datetime(pick(data, "updated_at", "updatedAt")),
        )

    def to_dict(self) -> JsonDict:
        return cast(JsonDict, to_camel_dict(self))
