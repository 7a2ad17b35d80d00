"""Tests for unlock.services.behavior."""

from datetime import UTC, datetime, timedelta

import pytest

from unlock.services.behavior import improvement_rate, mistake_reduction
from unlock.services.schemas import PerformanceRecord

_START: datetime = datetime(2026, 3, 1, 9, tzinfo=UTC)


def _history(*scores: float) -> tuple[PerformanceRecord, ...]:
    return tuple(
        PerformanceRecord(score=s, completed_at=_START + timedelta(days=i))
        for i, s in enumerate(scores)
    )


class TestImprovementRate:
    def test_fifty_to_seventy_five(self) -> None:
        assert improvement_rate(_history(50, 75)) == pytest.approx(50.0)

    def test_from_zero_is_full_improvement(self) -> None:
        assert improvement_rate(_history(0, 10)) == 100.0

    def test_zero_to_zero(self) -> None:
        assert improvement_rate(_history(0, 0)) == 0.0

    def test_decline_is_negative(self) -> None:
        assert improvement_rate(_history(80, 60)) == pytest.approx(-25.0)

    def test_needs_two_entries(self) -> None:
        assert improvement_rate(()) == 0.0
        assert improvement_rate(_history(90)) == 0.0

    def test_uses_chronological_order(self) -> None:
        history: tuple[PerformanceRecord, ...] = tuple(reversed(_history(50, 60, 75)))
        assert improvement_rate(history) == pytest.approx(50.0)

    def test_does_not_reorder_input(self) -> None:
        history: list[PerformanceRecord] = list(reversed(_history(50, 75)))
        improvement_rate(history)
        assert [r.score for r in history] == [75, 50]

    def test_mixed_naive_and_aware_timestamps(self) -> None:
        history: tuple[PerformanceRecord, ...] = (
            PerformanceRecord(score=75, completed_at=datetime(2026, 3, 2, 9, tzinfo=UTC)),
            PerformanceRecord(score=50, completed_at=datetime(2026, 3, 1, 9)),
        )
        assert improvement_rate(history) == pytest.approx(50.0)


class TestMistakeReduction:
    def test_two_entries(self) -> None:
        # mistake rates 0.5 then 0.25
        assert mistake_reduction(_history(50, 75)) == pytest.approx(0.25)

    def test_odd_count_puts_middle_in_first_half(self) -> None:
        # first half [40, 60] -> 0.5, second half [100] -> 0.0
        assert mistake_reduction(_history(40, 60, 100)) == pytest.approx(0.5)

    def test_never_negative(self) -> None:
        assert mistake_reduction(_history(90, 40)) == 0.0

    def test_needs_two_entries(self) -> None:
        assert mistake_reduction(_history(10)) == 0.0
