"""FastAPI dependencies: DB session, unlock services and API-key auth."""

from fastapi import Depends, Header, HTTPException
from sqlalchemy.orm import Session

from config import get_settings
from db.connection import get_db as get_db  # noqa: F401  re-exported for routes
from unlock.services.rule_store import SqlRuleStore
from unlock.services.rules_engine import UnlockRulesEngine
from unlock.services.usage_ledger import SqlUsageLedger
from unlock.services.validation import RuleValidator


def get_api_key(x_api_key: str = Header(default="")) -> str:
    """Validate API key on mutation endpoints."""
    expected: str | None = get_settings().api_key
    if not expected:
        return ""  # auth disabled when no key configured
    if x_api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid or missing API key")
    return x_api_key


def get_rule_store(db: Session = Depends(get_db)) -> SqlRuleStore:
    return SqlRuleStore(db)


def get_usage_ledger(db: Session = Depends(get_db)) -> SqlUsageLedger:
    return SqlUsageLedger(db)


def get_rule_validator() -> RuleValidator:
    return RuleValidator(get_settings().engine.excessive_unlock_minutes)


def get_rules_engine(
    store: SqlRuleStore = Depends(get_rule_store),
    ledger: SqlUsageLedger = Depends(get_usage_ledger),
) -> UnlockRulesEngine:
    return UnlockRulesEngine(store, usage_ledger=ledger, settings=get_settings().engine)
