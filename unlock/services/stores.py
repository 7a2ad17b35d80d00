"""Collaborator protocols for rule definitions and usage history.

The engine only ever talks to these two narrow interfaces. SQL-backed
implementations live in ``rule_store`` and ``usage_ledger``.
"""

import json
from collections.abc import Iterable, Sequence
from datetime import datetime
from pathlib import Path
from typing import Protocol

import structlog

from unlock.services.errors import InvalidRuleError, RuleStoreError
from unlock.services.schemas.results import BlockedRule, RuleUsage
from unlock.services.schemas.rules import RuleLimits, UnlockRule

logger = structlog.get_logger(__name__)


class RuleStore(Protocol):
    def list_rules(self) -> list[UnlockRule]: ...


class UsageLedger(Protocol):
    def get_usage(
        self, user_id: str, rule_ids: Sequence[str], now: datetime
    ) -> dict[str, RuleUsage]:
        """One batched read covering every rule id for the user."""
        ...

    def record_grant(
        self,
        user_id: str,
        rule_id: str,
        unlock_minutes: float,
        bonus_minutes: float,
        granted_at: datetime,
    ) -> None: ...

    def claim_grant(
        self,
        user_id: str,
        rule_id: str,
        limits: RuleLimits | None,
        unlock_minutes: float,
        bonus_minutes: float,
        granted_at: datetime,
    ) -> BlockedRule | None:
        """Atomically re-check ``limits`` and record the grant. Returns the violated limit."""
        ...


class StaticRuleStore:
    """Rules held in memory, e.g. loaded from a JSON file for the CLI."""

    def __init__(self, rules: Iterable[UnlockRule]) -> None:
        self._rules: list[UnlockRule] = list(rules)

    def list_rules(self) -> list[UnlockRule]:
        return list(self._rules)

    @classmethod
    def from_file(cls, path: Path) -> "StaticRuleStore":
        """Load a JSON file holding a list of rules (or ``{"rules": [...]}``)."""
        try:
            raw: object = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise RuleStoreError(f"Cannot read rules from {path}: {e}") from e

        items: object = raw.get("rules") if isinstance(raw, dict) else raw
        if not isinstance(items, list):
            raise RuleStoreError(f"{path} does not contain a list of rules")

        rules: list[UnlockRule] = []
        for i, item in enumerate(items):
            if not isinstance(item, dict):
                logger.warning("Skipping non-object rule entry", path=str(path), index=i)
                continue
            try:
                rules.append(UnlockRule.from_dict(item))
            except InvalidRuleError as e:
                logger.warning("Skipping invalid rule", path=str(path), index=i, error=str(e))
        return cls(rules)
