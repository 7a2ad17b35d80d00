"""Tests for unlock.services.aggregation."""

from datetime import datetime, timedelta

import pytest

from db.enums import BlockReason
from unlock.services.aggregation import ResultAggregator, encouragement_message
from unlock.services.schemas import (
    BlockedRule,
    EvaluationMetadata,
    LimitDecision,
    Restrictions,
    RuleEvaluationResult,
    TimeWindow,
    UnlockEvaluationResponse,
)


def _result(rule_id: str, now: datetime, **kwargs: object) -> RuleEvaluationResult:
    defaults: dict[str, object] = {
        "rule_id": rule_id,
        "rule_name": f"Rule {rule_id}",
        "triggered": True,
        "confidence": 1.0,
        "unlock_minutes": 10,
        "metadata": EvaluationMetadata(evaluated_at=now, processing_time=0.2),
    }
    defaults.update(kwargs)
    return RuleEvaluationResult(**defaults)  # type: ignore[arg-type]


def _aggregate(
    results: list[RuleEvaluationResult],
    now: datetime,
    blocked: list[BlockedRule] | None = None,
    evaluated: int | None = None,
) -> UnlockEvaluationResponse:
    decision: LimitDecision = LimitDecision(allowed=results, blocked=blocked or [])
    return ResultAggregator().aggregate(
        "student-1",
        decision,
        rules_evaluated=evaluated if evaluated is not None else len(results),
        now=now,
        evaluation_time=1.5,
    )


class TestTotals:
    def test_minutes_sum(self, now: datetime) -> None:
        response: UnlockEvaluationResponse = _aggregate(
            [
                _result("a", now, unlock_minutes=30, bonus_minutes=5),
                _result("b", now, unlock_minutes=15),
            ],
            now,
        )
        assert response.total_unlock_minutes == 45
        assert response.total_bonus_minutes == 5

    def test_empty(self, now: datetime) -> None:
        response: UnlockEvaluationResponse = _aggregate([], now, evaluated=3)
        assert response.total_unlock_minutes == 0
        assert response.triggered_rules == []
        assert response.summary.rules_evaluated == 3
        assert response.summary.highest_priority_rule is None
        assert response.combined_message == "Keep up the good work!"


class TestMessages:
    def test_messages_joined_in_order(self, now: datetime) -> None:
        response: UnlockEvaluationResponse = _aggregate(
            [
                _result("a", now, message="Great score!"),
                _result("b", now, message=""),
                _result("c", now, message="Fast too!"),
            ],
            now,
        )
        assert response.combined_message == "Great score! Fast too!"

    def test_fallback_mentions_minutes(self, now: datetime) -> None:
        response: UnlockEvaluationResponse = _aggregate([_result("a", now, unlock_minutes=30)], now)
        assert response.combined_message == "Great work! You've earned 30 minutes of unlock time!"

    def test_fallback_never_empty(self) -> None:
        assert encouragement_message(0)
        assert encouragement_message(12.5) == "Great work! You've earned 12.5 minutes of unlock time!"


class TestAchievementsAndRestrictions:
    def test_achievements_union_first_appearance(self, now: datetime) -> None:
        response: UnlockEvaluationResponse = _aggregate(
            [
                _result("a", now, achievements=["high-achiever", "streak"]),
                _result("b", now, achievements=["streak", "speed-demon"]),
            ],
            now,
        )
        assert response.achievements == ["high-achiever", "streak", "speed-demon"]

    def test_restrictions_merge(self, now: datetime) -> None:
        morning: TimeWindow = TimeWindow("07:00", "08:00")
        evening: TimeWindow = TimeWindow("18:00", "19:00")
        response: UnlockEvaluationResponse = _aggregate(
            [
                _result(
                    "a",
                    now,
                    restrictions=Restrictions(
                        allowed_apps=["reader", "maths-game"],
                        blocked_apps=["video"],
                        time_windows=[morning],
                    ),
                ),
                _result(
                    "b",
                    now,
                    restrictions=Restrictions(
                        allowed_apps=["maths-game", "paint"],
                        blocked_apps=["video"],
                        time_windows=[morning, evening],
                    ),
                ),
            ],
            now,
        )
        assert response.restrictions.allowed_apps == ["reader", "maths-game", "paint"]
        assert response.restrictions.blocked_apps == ["video"]
        assert response.restrictions.time_windows == [morning, morning, evening]
        assert response.restrictions.effective_until == now + timedelta(hours=24)


class TestParentNotifications:
    def test_only_flagged_results_with_message(self, now: datetime) -> None:
        response: UnlockEvaluationResponse = _aggregate(
            [
                _result("a", now, parent_notification=True, message="Top marks"),
                _result("b", now, parent_notification=True),
                _result("c", now, message="No flag"),
            ],
            now,
        )
        assert len(response.parent_notifications) == 1
        notification = response.parent_notifications[0]
        assert notification.rule_id == "a"
        assert notification.rule_name == "Rule a"
        assert notification.message == "Top marks"
        assert notification.timestamp == now


class TestSummary:
    def test_counts_and_throttle(self, now: datetime) -> None:
        blocked: list[BlockedRule] = [BlockedRule("c", BlockReason.COOLDOWN, "2 min ago")]
        response: UnlockEvaluationResponse = _aggregate(
            [_result("a", now), _result("b", now)], now, blocked=blocked, evaluated=5
        )
        assert response.summary.rules_evaluated == 5
        assert response.summary.rules_triggered == 2
        assert response.summary.rules_blocked == 1
        assert response.summary.highest_priority_rule == "a"
        assert response.summary.evaluation_time == pytest.approx(1.5)
        assert response.summary.next_eligible_evaluation == now + timedelta(seconds=60)

    def test_custom_windows(self, now: datetime) -> None:
        aggregator: ResultAggregator = ResultAggregator(throttle_seconds=5, restrictions_ttl_hours=1)
        response: UnlockEvaluationResponse = aggregator.aggregate(
            "student-1", LimitDecision(allowed=[]), rules_evaluated=0, now=now, evaluation_time=0
        )
        assert response.summary.next_eligible_evaluation == now + timedelta(seconds=5)
        assert response.restrictions.effective_until == now + timedelta(hours=1)
