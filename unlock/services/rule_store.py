"""SQL-backed rule store over the ``unlock_rules`` table."""

from collections.abc import Mapping
from typing import cast

import structlog
from sqlalchemy import Select, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import UnlockRules
from unlock.services._helpers import (
    JsonDict,
    Serializable,
    dump_json,
    load_json,
    load_json_list,
    new_id,
    now_iso,
    parse_datetime,
    to_iso,
)
from unlock.services.errors import InvalidRuleError, RuleStoreError
from unlock.services.schemas.rules import UnlockRule, to_camel_dict

logger = structlog.get_logger(__name__)


def _json_column(obj: object) -> str | None:
    if obj is None:
        return None
    return dump_json(cast(Serializable, to_camel_dict(obj)))


def row_to_rule(row: UnlockRules) -> UnlockRule:
    """Rebuild a rule from its row. Raises InvalidRuleError on corrupt JSON columns."""
    try:
        data: JsonDict = {
            "id": row.id,
            "name": row.name,
            "description": row.description,
            "isActive": row.is_active,
            "priority": row.priority,
            "criteria": load_json(row.criteria) or {},
            "action": load_json(row.action),
            "limits": load_json(row.limits),
            "stackable": row.stackable,
            "validFrom": row.valid_from,
            "validTo": row.valid_to,
            "appliesTo": load_json_list(row.applies_to),
            "metadata": load_json(row.rule_metadata),
            "createdBy": row.created_by,
            "createdAt": row.created_at,
            "updatedAt": row.updated_at,
        }
    except ValueError as e:
        raise InvalidRuleError(f"rule {row.id}: stored JSON is corrupt: {e}") from e
    return UnlockRule.from_dict(data)


class SqlRuleStore:
    """Reads and writes rule definitions through a SQLAlchemy session."""

    def __init__(self, session: Session) -> None:
        self.session: Session = session

    def _rows(self, active_only: bool) -> list[UnlockRules]:
        stmt: Select[tuple[UnlockRules]] = select(UnlockRules).order_by(
            UnlockRules.priority.desc(), UnlockRules.id
        )
        if active_only:
            stmt = stmt.where(UnlockRules.is_active.is_(True))
        try:
            return list(self.session.scalars(stmt).all())
        except SQLAlchemyError as e:
            raise RuleStoreError(f"Failed to query unlock rules: {e}") from e

    def list_rules(self, active_only: bool = False) -> list[UnlockRule]:
        """All parseable rules, highest priority first. Corrupt rows are skipped."""
        rules: list[UnlockRule] = []
        for row in self._rows(active_only):
            try:
                rules.append(row_to_rule(row))
            except InvalidRuleError as e:
                logger.warning("Skipping unparseable rule row", rule_id=row.id, error=str(e))
        return rules

    def get_rule(self, rule_id: str) -> UnlockRule | None:
        row: UnlockRules | None = self.session.get(UnlockRules, rule_id)
        if row is None:
            return None
        return row_to_rule(row)

    def create_rule(self, data: Mapping[str, object], created_by: str | None = None) -> UnlockRule:
        """Parse a submitted definition, assign an id if it has none, and store it."""
        payload: JsonDict = dict(data)
        if not payload.get("id"):
            payload["id"] = new_id()
        if created_by:
            payload["createdBy"] = created_by
        rule: UnlockRule = UnlockRule.from_dict(payload)
        return self.save_rule(rule)

    def save_rule(self, rule: UnlockRule) -> UnlockRule:
        """Insert or update a rule. Timestamps are maintained here."""
        ts: str = now_iso()
        row: UnlockRules | None = self.session.get(UnlockRules, rule.id)
        if row is None:
            row = UnlockRules(
                id=rule.id,
                created_at=to_iso(rule.created_at) if rule.created_at else ts,
            )
            self.session.add(row)

        row.name = rule.name
        row.description = rule.description
        row.is_active = rule.is_active
        row.priority = rule.priority
        row.criteria = _json_column(rule.criteria) or "{}"
        row.action = _json_column(rule.action) or "{}"
        row.limits = _json_column(rule.limits)
        row.stackable = rule.stackable
        row.valid_from = to_iso(rule.valid_from) if rule.valid_from else None
        row.valid_to = to_iso(rule.valid_to) if rule.valid_to else None
        row.applies_to = dump_json(list(rule.applies_to))
        row.rule_metadata = _json_column(rule.metadata)
        row.created_by = rule.created_by
        row.updated_at = ts
        self.session.flush()

        rule.created_at = parse_datetime(row.created_at)
        rule.updated_at = parse_datetime(ts)
        logger.info("Unlock rule saved", rule_id=rule.id, name=rule.name, active=rule.is_active)
        return rule

    def deactivate_rule(self, rule_id: str) -> bool:
        row: UnlockRules | None = self.session.get(UnlockRules, rule_id)
        if row is None:
            return False
        row.is_active = False
        row.updated_at = now_iso()
        self.session.flush()
        logger.info("Unlock rule deactivated", rule_id=rule_id)
        return True
