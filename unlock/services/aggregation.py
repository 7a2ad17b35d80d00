"""Aggregation of triggered rule results into one unlock response."""

from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta

import structlog

from unlock.services.schemas.results import (
    CombinedRestrictions,
    EvaluationSummary,
    LimitDecision,
    ParentNotification,
    RuleEvaluationResult,
    UnlockEvaluationResponse,
)
from unlock.services.schemas.rules import Number, TimeWindow

logger = structlog.get_logger(__name__)

DEFAULT_THROTTLE_SECONDS: int = 60
DEFAULT_RESTRICTIONS_TTL_HOURS: int = 24


def _ordered_union(groups: Iterable[Iterable[str]]) -> list[str]:
    seen: dict[str, None] = {}
    for group in groups:
        for item in group:
            seen.setdefault(item, None)
    return list(seen)


def encouragement_message(total_minutes: Number) -> str:
    if total_minutes > 0:
        shown: Number = (
            int(total_minutes) if float(total_minutes).is_integer() else round(total_minutes, 1)
        )
        return f"Great work! You've earned {shown} minutes of unlock time!"
    return "Keep up the good work!"


class ResultAggregator:
    """Folds the results that survived limit enforcement into a response."""

    def __init__(
        self,
        throttle_seconds: int = DEFAULT_THROTTLE_SECONDS,
        restrictions_ttl_hours: int = DEFAULT_RESTRICTIONS_TTL_HOURS,
    ) -> None:
        self.throttle: timedelta = timedelta(seconds=throttle_seconds)
        self.restrictions_ttl: timedelta = timedelta(hours=restrictions_ttl_hours)

    def aggregate(
        self,
        user_id: str,
        decision: LimitDecision,
        rules_evaluated: int,
        now: datetime,
        evaluation_time: float,
    ) -> UnlockEvaluationResponse:
        triggered: list[RuleEvaluationResult] = decision.allowed

        total_unlock: Number = sum(r.unlock_minutes for r in triggered)
        total_bonus: Number = sum(r.bonus_minutes or 0 for r in triggered)

        response = UnlockEvaluationResponse(
            user_id=user_id,
            total_unlock_minutes=total_unlock,
            total_bonus_minutes=total_bonus,
            triggered_rules=list(triggered),
            combined_message=self.combine_messages(triggered, total_unlock),
            achievements=_ordered_union(r.achievements or [] for r in triggered),
            restrictions=self.combine_restrictions(triggered, now),
            parent_notifications=self.parent_notifications(triggered, now),
            summary=EvaluationSummary(
                rules_evaluated=rules_evaluated,
                rules_triggered=len(triggered),
                rules_blocked=decision.blocked_count,
                evaluation_time=evaluation_time,
                highest_priority_rule=triggered[0].rule_id if triggered else None,
                next_eligible_evaluation=now + self.throttle,
            ),
        )
        logger.debug(
            "Results aggregated",
            user_id=user_id,
            triggered=len(triggered),
            blocked=decision.blocked_count,
            total_unlock_minutes=total_unlock,
        )
        return response

    @staticmethod
    def combine_messages(triggered: Sequence[RuleEvaluationResult], total_minutes: Number) -> str:
        messages: list[str] = [r.message for r in triggered if r.message]
        if messages:
            return " ".join(messages)
        return encouragement_message(total_minutes)

    def combine_restrictions(
        self, triggered: Sequence[RuleEvaluationResult], now: datetime
    ) -> CombinedRestrictions:
        present = [r.restrictions for r in triggered if r.restrictions is not None]
        windows: list[TimeWindow] = [w for r in present for w in r.time_windows]
        return CombinedRestrictions(
            effective_until=now + self.restrictions_ttl,
            allowed_apps=_ordered_union(r.allowed_apps for r in present),
            blocked_apps=_ordered_union(r.blocked_apps for r in present),
            time_windows=windows,
        )

    @staticmethod
    def parent_notifications(
        triggered: Sequence[RuleEvaluationResult], now: datetime
    ) -> list[ParentNotification]:
        return [
            ParentNotification(
                rule_id=r.rule_id,
                rule_name=r.rule_name,
                message=r.message,
                unlock_minutes=r.unlock_minutes,
                timestamp=now,
            )
            for r in triggered
            if r.parent_notification and r.message
        ]
