"""Shared dataclasses for unlock services."""

from unlock.services.schemas.context import (
    EvaluationContext,
    PerformanceRecord,
    SubjectStats,
    UnlockEvaluationRequest,
    WeeklyStats,
)
from unlock.services.schemas.results import (
    BlockedRule,
    CombinedRestrictions,
    DailyUsageSummary,
    EvaluationMetadata,
    EvaluationSummary,
    GrantRecord,
    LimitDecision,
    ParentNotification,
    RuleEvaluationResult,
    RuleGrantBreakdown,
    RuleUsage,
    RuleValidationResult,
    UnlockEvaluationResponse,
    ValidationIssue,
    ValidationWarning,
)
from unlock.services.schemas.rules import (
    BehaviorModifiers,
    CustomCondition,
    HourRange,
    Restrictions,
    RuleAction,
    RuleCriteria,
    RuleLimits,
    RuleMetadata,
    TimeLimit,
    TimeWindow,
    UnlockRule,
)

__all__ = [
    # Rule schemas
    "BehaviorModifiers",
    "CustomCondition",
    "HourRange",
    "Restrictions",
    "RuleAction",
    "RuleCriteria",
    "RuleLimits",
    "RuleMetadata",
    "TimeLimit",
    "TimeWindow",
    "UnlockRule",
    # Context schemas
    "EvaluationContext",
    "PerformanceRecord",
    "SubjectStats",
    "UnlockEvaluationRequest",
    "WeeklyStats",
    # Result schemas
    "BlockedRule",
    "CombinedRestrictions",
    "DailyUsageSummary",
    "EvaluationMetadata",
    "EvaluationSummary",
    "GrantRecord",
    "LimitDecision",
    "ParentNotification",
    "RuleEvaluationResult",
    "RuleGrantBreakdown",
    "RuleUsage",
    "RuleValidationResult",
    "UnlockEvaluationResponse",
    "ValidationIssue",
    "ValidationWarning",
]
