"""Performance-trend math behind the behaviour-modifier criteria."""

import math
from collections.abc import Sequence

from unlock.services._helpers import as_utc
from unlock.services.schemas.context import PerformanceRecord


def _chronological(history: Sequence[PerformanceRecord]) -> list[PerformanceRecord]:
    return sorted(history, key=lambda r: as_utc(r.completed_at))


def improvement_rate(history: Sequence[PerformanceRecord]) -> float:
    """Percentage change from the earliest to the latest score.

    Fewer than two attempts gives 0. An earliest score of 0 gives 100 when the
    latest score is positive, else 0.
    """
    if len(history) < 2:
        return 0.0
    ordered: list[PerformanceRecord] = _chronological(history)
    earliest: float = float(ordered[0].score)
    latest: float = float(ordered[-1].score)
    if earliest == 0:
        return 100.0 if latest > 0 else 0.0
    return (latest - earliest) / earliest * 100


def _mistake_rate(records: Sequence[PerformanceRecord]) -> float:
    return 1 - sum(float(r.score) for r in records) / len(records) / 100


def mistake_reduction(history: Sequence[PerformanceRecord]) -> float:
    """Drop in mistake rate between the older and newer half of the history.

    The older half takes the extra entry when the count is odd. Never negative.
    """
    if len(history) < 2:
        return 0.0
    ordered: list[PerformanceRecord] = _chronological(history)
    split: int = math.ceil(len(ordered) / 2)
    first_half: list[PerformanceRecord] = ordered[:split]
    second_half: list[PerformanceRecord] = ordered[split:]
    return max(0.0, _mistake_rate(first_half) - _mistake_rate(second_half))
