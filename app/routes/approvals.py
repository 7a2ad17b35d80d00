"""Parental approval endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_api_key, get_rule_store, get_usage_ledger
from app.schemas.rules import ApprovalCreate, ApprovalRevoke
from db.models import ParentalApprovals
from unlock.services._helpers import utc_now
from unlock.services._types import ApprovalUI, RevokedUI
from unlock.services.rule_store import SqlRuleStore
from unlock.services.usage_ledger import SqlUsageLedger

router = APIRouter(prefix="/api/approvals", tags=["approvals"])


@router.post("", status_code=201)
def approve_rule(
    body: ApprovalCreate,
    store: SqlRuleStore = Depends(get_rule_store),
    ledger: SqlUsageLedger = Depends(get_usage_ledger),
    _key: str = Depends(get_api_key),
) -> ApprovalUI:
    if store.get_rule(body.rule_id) is None:
        raise HTTPException(status_code=404, detail=f"Rule {body.rule_id} not found")
    approval: ParentalApprovals = ledger.approve(
        body.user_id, body.rule_id, body.approved_by, utc_now()
    )
    return ApprovalUI(
        id=approval.id,
        userId=approval.user_id,
        ruleId=approval.rule_id,
        approvedBy=approval.approved_by,
        approvedAt=approval.approved_at,
        revokedAt=approval.revoked_at,
    )


@router.post("/revoke")
def revoke_approval(
    body: ApprovalRevoke,
    ledger: SqlUsageLedger = Depends(get_usage_ledger),
    _key: str = Depends(get_api_key),
) -> RevokedUI:
    revoked: int = ledger.revoke(body.user_id, body.rule_id, utc_now())
    return RevokedUI(userId=body.user_id, ruleId=body.rule_id, revoked=revoked)
