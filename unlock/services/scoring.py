"""Confidence scoring for triggered rules.

Diagnostic only; it never decides whether a rule triggers.
"""

from unlock.services.criteria import CriteriaVerdict
from unlock.services.schemas.rules import RuleCriteria


def calculate_confidence(verdict: CriteriaVerdict, criteria: RuleCriteria) -> float:
    """Share of the rule's criterion categories that matched, clamped to [0, 1]."""
    present: list[str] = criteria.present_fields()
    failed: set[str] = {c.category for c in verdict.checks if not c.passed}
    matched: set[str] = {
        c.category for c in verdict.checks if c.passed and c.category not in failed
    }
    ratio: float = len(matched & set(present)) / max(1, len(present))
    return min(1.0, max(0.0, ratio))
