"""Unlock evaluation endpoint and per-user grant reads."""

from datetime import date

from fastapi import APIRouter, Depends, Query

from app.dependencies import get_rules_engine, get_usage_ledger
from app.schemas.evaluation import UnlockEvaluationRequestIn
from unlock.services._helpers import utc_now
from unlock.services.rules_engine import UnlockRulesEngine
from unlock.services.schemas import (
    DailyUsageSummary,
    GrantRecord,
    UnlockEvaluationRequest,
    UnlockEvaluationResponse,
)
from unlock.services.schemas.rules import to_camel_dict
from unlock.services.usage_ledger import SqlUsageLedger

router = APIRouter(prefix="/api/unlock", tags=["evaluation"])


@router.post("/evaluate")
def evaluate_unlock(
    body: UnlockEvaluationRequestIn,
    engine: UnlockRulesEngine = Depends(get_rules_engine),
):
    request: UnlockEvaluationRequest = UnlockEvaluationRequest.from_dict(body.model_dump())
    response: UnlockEvaluationResponse = engine.evaluate_request(request)
    return to_camel_dict(response)


@router.get("/history/{user_id}")
def unlock_history(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    ledger: SqlUsageLedger = Depends(get_usage_ledger),
):
    grants: list[GrantRecord] = ledger.history(user_id, limit)
    return {"userId": user_id, "grants": to_camel_dict(grants)}


@router.get("/summary/{user_id}")
def unlock_summary(
    user_id: str,
    day: date | None = Query(None, alias="date", description="UTC day, defaults to today"),
    ledger: SqlUsageLedger = Depends(get_usage_ledger),
):
    summary: DailyUsageSummary = ledger.daily_summary(user_id, day or utc_now().date())
    return to_camel_dict(summary)
