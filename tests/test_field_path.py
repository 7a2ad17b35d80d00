"""Tests for unlock.services.field_path."""

from datetime import UTC, datetime

from unlock.services.field_path import resolve_path
from unlock.services.schemas import EvaluationContext


def _context(context_data: dict[str, object]) -> EvaluationContext:
    return EvaluationContext.from_dict(context_data)


class TestResolvePath:
    def test_top_level_camel_and_snake(self, context_data: dict[str, object]) -> None:
        ctx: EvaluationContext = _context(context_data)
        assert resolve_path(ctx, "yearLevel") == 5
        assert resolve_path(ctx, "year_level") == 5

    def test_nested_dataclass(self, context_data: dict[str, object]) -> None:
        ctx: EvaluationContext = _context(context_data)
        assert resolve_path(ctx, "weeklyStats.streakDays") == 4

    def test_mapping_then_dataclass(self, context_data: dict[str, object]) -> None:
        ctx: EvaluationContext = _context(context_data)
        assert resolve_path(ctx, "weeklyStats.subjectBreakdown.mathematics.attempts") == 7

    def test_sequence_index(self, context_data: dict[str, object]) -> None:
        context_data["recentPerformance"] = [
            {"score": 70, "completedAt": "2026-03-10T10:00:00Z"},
            {"score": 80, "completedAt": "2026-03-10T11:00:00Z"},
        ]
        ctx: EvaluationContext = _context(context_data)
        assert resolve_path(ctx, "recentPerformance.1.score") == 80
        assert resolve_path(ctx, "recentPerformance.5.score") is None

    def test_missing_segments_are_none(self, context_data: dict[str, object]) -> None:
        ctx: EvaluationContext = _context(context_data)
        assert resolve_path(ctx, "nope") is None
        assert resolve_path(ctx, "weeklyStats.nope.deeper") is None
        assert resolve_path(ctx, "score.value") is None

    def test_absent_optional_block(self, context_data: dict[str, object]) -> None:
        del context_data["weeklyStats"]
        ctx: EvaluationContext = _context(context_data)
        assert resolve_path(ctx, "weeklyStats.streakDays") is None

    def test_datetime_leaf(self, context_data: dict[str, object]) -> None:
        ctx: EvaluationContext = _context(context_data)
        assert resolve_path(ctx, "completedAt") == datetime(2026, 3, 11, 15, tzinfo=UTC)
