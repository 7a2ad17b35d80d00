"""Tests for the rule/context dataclass parsers and camelCase serialization."""

from datetime import UTC, datetime

import pytest

from unlock.services.errors import InvalidRequestError, InvalidRuleError
from unlock.services.schemas import EvaluationContext, UnlockEvaluationRequest, UnlockRule
from unlock.services.schemas.rules import to_camel_dict


class TestUnlockRuleFromDict:
    def test_camel_and_snake_keys(self) -> None:
        camel: UnlockRule = UnlockRule.from_dict(
            {
                "id": "r1",
                "name": "Rule",
                "isActive": False,
                "criteria": {"minScore": 80, "timeOfDay": {"startHour": 15, "endHour": 18}},
                "action": {"unlockMinutes": 20, "parentNotification": True},
            }
        )
        snake: UnlockRule = UnlockRule.from_dict(
            {
                "id": "r1",
                "name": "Rule",
                "is_active": False,
                "criteria": {"min_score": 80, "time_of_day": {"start_hour": 15, "end_hour": 18}},
                "action": {"unlock_minutes": 20, "parent_notification": True},
            }
        )
        assert camel == snake
        assert camel.is_active is False
        assert camel.criteria.time_of_day is not None
        assert camel.criteria.time_of_day.end_hour == 18

    def test_defaults(self) -> None:
        rule: UnlockRule = UnlockRule.from_dict(
            {"id": "r1", "name": "Rule", "action": {"unlockMinutes": 5}}
        )
        assert rule.is_active is True
        assert rule.priority == 0
        assert rule.stackable is True
        assert rule.limits is None
        assert rule.criteria.present_fields() == []
        assert rule.created_by == "system"

    def test_day_names_lowercased(self) -> None:
        rule: UnlockRule = UnlockRule.from_dict(
            {
                "id": "r1",
                "name": "Rule",
                "criteria": {"dayOfWeek": ["Saturday", "SUNDAY"]},
                "action": {"unlockMinutes": 5},
            }
        )
        assert rule.criteria.day_of_week == ["saturday", "sunday"]

    @pytest.mark.parametrize(
        "data",
        [
            {"name": "No id", "action": {"unlockMinutes": 5}},
            {"id": "r1", "action": {"unlockMinutes": 5}},
            {"id": "r1", "name": "No action"},
            {"id": "r1", "name": "Rule", "action": {}},
            {"id": "r1", "name": "Rule", "action": {"unlockMinutes": "ten"}},
            {"id": "r1", "name": "Rule", "action": {"unlockMinutes": 5}, "criteria": []},
            {
                "id": "r1",
                "name": "Rule",
                "action": {"unlockMinutes": 5},
                "criteria": {"subject": "mathematics"},
            },
            {
                "id": "r1",
                "name": "Rule",
                "action": {"unlockMinutes": 5},
                "criteria": {"timeOfDay": {"startHour": 9}},
            },
        ],
    )
    def test_malformed_rejected(self, data: dict[str, object]) -> None:
        with pytest.raises(InvalidRuleError):
            UnlockRule.from_dict(data)


class TestToCamelDict:
    def test_rule_serialization_drops_unset(self) -> None:
        rule: UnlockRule = UnlockRule.from_dict(
            {
                "id": "r1",
                "name": "Rule",
                "criteria": {"subject": ["mathematics"]},
                "action": {"unlockMinutes": 5},
                "validFrom": "2026-01-01T00:00:00Z",
            }
        )
        data = rule.to_dict()
        assert data["criteria"] == {"subject": ["mathematics"]}
        assert data["validFrom"] == "2026-01-01T00:00:00+00:00"
        assert "description" not in data
        assert "limits" not in data

    def test_reparses_to_same_rule(self) -> None:
        rule: UnlockRule = UnlockRule.from_dict(
            {
                "id": "r1",
                "name": "Rule",
                "criteria": {
                    "customConditions": [
                        {"field": "score", "operator": "between", "value": [80, 90]}
                    ]
                },
                "action": {"unlockMinutes": 5, "restrictions": {"blockedApps": ["games"]}},
                "limits": {"cooldownMinutes": 15},
            }
        )
        assert UnlockRule.from_dict(rule.to_dict()) == rule

    def test_datetimes_in_nested_lists(self) -> None:
        ts: datetime = datetime(2026, 3, 11, tzinfo=UTC)
        assert to_camel_dict({"at": [ts]}) == {"at": ["2026-03-11T00:00:00+00:00"]}


class TestContextFromDict:
    def test_parses_camel_context(self, context_data: dict[str, object]) -> None:
        ctx: EvaluationContext = EvaluationContext.from_dict(context_data)
        assert ctx.user_id == "student-1"
        assert ctx.completed_at == datetime(2026, 3, 11, 15, 0, tzinfo=UTC)
        assert ctx.weekly_stats is not None
        assert ctx.weekly_stats.subject_breakdown["mathematics"].average_score == 88

    @pytest.mark.parametrize("missing", ["score", "subject", "completedAt", "isCorrect"])
    def test_required_fields(self, context_data: dict[str, object], missing: str) -> None:
        del context_data[missing]
        with pytest.raises(InvalidRequestError):
            EvaluationContext.from_dict(context_data)

    @pytest.mark.parametrize("flag", ["false", 0, 1, None])
    def test_is_correct_must_be_boolean(
        self, context_data: dict[str, object], flag: object
    ) -> None:
        context_data["isCorrect"] = flag
        with pytest.raises(InvalidRequestError):
            EvaluationContext.from_dict(context_data)

    def test_bad_timestamp(self, context_data: dict[str, object]) -> None:
        context_data["completedAt"] = "yesterday"
        with pytest.raises(InvalidRequestError):
            EvaluationContext.from_dict(context_data)

    def test_request_needs_user_id(self, context_data: dict[str, object]) -> None:
        with pytest.raises(InvalidRequestError):
            UnlockEvaluationRequest.from_dict({"context": context_data})

    def test_request_rule_subset(self, context_data: dict[str, object]) -> None:
        request: UnlockEvaluationRequest = UnlockEvaluationRequest.from_dict(
            {"userId": "student-1", "context": context_data, "rules": ["a", "b"]}
        )
        assert request.rules == ("a", "b")
