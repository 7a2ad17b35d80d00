"""Result dataclasses returned by service operations."""

from dataclasses import dataclass, field
from datetime import date, datetime

from db.enums import BlockReason, WarningSeverity
from unlock.services.schemas.rules import Number, Restrictions, TimeWindow


@dataclass
class EvaluationMetadata:
    evaluated_at: datetime
    processing_time: float  # milliseconds
    criteria_matched: list[str] = field(default_factory=list)
    criteria_failed: list[str] = field(default_factory=list)


@dataclass
class RuleEvaluationResult:
    rule_id: str
    rule_name: str
    triggered: bool
    confidence: float
    unlock_minutes: Number
    metadata: EvaluationMetadata
    reason: str | None = None
    bonus_minutes: Number | None = None
    message: str | None = None
    achievements: list[str] | None = None
    restrictions: Restrictions | None = None
    parent_notification: bool = False


@dataclass
class ParentNotification:
    rule_id: str
    rule_name: str
    message: str
    unlock_minutes: Number
    timestamp: datetime


@dataclass
class CombinedRestrictions:
    effective_until: datetime
    allowed_apps: list[str] = field(default_factory=list)
    blocked_apps: list[str] = field(default_factory=list)
    time_windows: list[TimeWindow] = field(default_factory=list)


@dataclass
class EvaluationSummary:
    rules_evaluated: int
    rules_triggered: int
    rules_blocked: int
    evaluation_time: float  # milliseconds
    highest_priority_rule: str | None = None
    next_eligible_evaluation: datetime | None = None


@dataclass
class UnlockEvaluationResponse:
    user_id: str
    total_unlock_minutes: Number
    total_bonus_minutes: Number
    triggered_rules: list[RuleEvaluationResult]
    combined_message: str
    achievements: list[str]
    restrictions: CombinedRestrictions
    parent_notifications: list[ParentNotification]
    summary: EvaluationSummary


# -- Limits ------------------------------------------------------------------


@dataclass
class RuleUsage:
    """Ledger snapshot for one (user, rule) pair."""

    today_count: int = 0
    week_count: int = 0
    total_count: int = 0
    last_granted_at: datetime | None = None
    has_parental_approval: bool = False


@dataclass
class BlockedRule:
    rule_id: str
    reason: BlockReason
    detail: str


@dataclass
class LimitDecision:
    allowed: list[RuleEvaluationResult]
    blocked: list[BlockedRule] = field(default_factory=list)

    @property
    def blocked_count(self) -> int:
        return len(self.blocked)


# -- Grant history -----------------------------------------------------------


@dataclass
class GrantRecord:
    id: str
    rule_id: str
    unlock_minutes: Number
    bonus_minutes: Number
    granted_at: datetime
    rule_name: str | None = None  # None once the rule row is gone


@dataclass
class RuleGrantBreakdown:
    rule_id: str
    grants: int
    unlocked: Number
    bonus: Number
    rule_name: str | None = None


@dataclass
class DailyUsageSummary:
    """Grants for one user on one UTC calendar day."""

    user_id: str
    date: date
    total_unlocked: Number
    total_bonus: Number
    grant_count: int
    rule_breakdown: list[RuleGrantBreakdown] = field(default_factory=list)


# -- Validation --------------------------------------------------------------


@dataclass
class ValidationIssue:
    field: str
    message: str
    code: str


@dataclass
class ValidationWarning:
    field: str
    message: str
    severity: WarningSeverity = WarningSeverity.MEDIUM


@dataclass
class RuleValidationResult:
    valid: bool
    errors: list[ValidationIssue]
    warnings: list[ValidationWarning]
