"""Applicability filtering: which rules are even considered for a request."""

from collections.abc import Iterable
from datetime import datetime

from unlock.services._helpers import as_utc
from unlock.services.schemas.context import UnlockEvaluationRequest
from unlock.services.schemas.rules import UnlockRule


def is_applicable(rule: UnlockRule, request: UnlockEvaluationRequest, now: datetime) -> bool:
    if not rule.is_active:
        return False

    current: datetime = as_utc(now)
    if rule.valid_from is not None and as_utc(rule.valid_from) > current:
        return False
    if rule.valid_to is not None and as_utc(rule.valid_to) < current:
        return False

    if rule.applies_to and request.user_id not in rule.applies_to:
        return False

    if request.rules:
        return rule.id in request.rules

    return True


def filter_applicable_rules(
    rules: Iterable[UnlockRule],
    request: UnlockEvaluationRequest,
    now: datetime,
) -> list[UnlockRule]:
    return [r for r in rules if is_applicable(r, request, now)]


def sort_by_priority(rules: Iterable[UnlockRule]) -> list[UnlockRule]:
    """Highest priority first; ties keep their incoming order."""
    return sorted(rules, key=lambda r: r.priority, reverse=True)
