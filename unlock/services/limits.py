"""Usage-limit and cooldown enforcement for triggered rules."""

from collections.abc import Mapping, Sequence
from datetime import datetime, timedelta

import structlog

from db.enums import BlockReason
from unlock.services._helpers import as_utc
from unlock.services.errors import UsageLedgerError
from unlock.services.schemas.results import (
    BlockedRule,
    LimitDecision,
    RuleEvaluationResult,
    RuleUsage,
)
from unlock.services.schemas.rules import RuleLimits, UnlockRule
from unlock.services.stores import UsageLedger

logger = structlog.get_logger(__name__)


def check_limits(
    rule_id: str, limits: RuleLimits, usage: RuleUsage, now: datetime
) -> BlockedRule | None:
    """First limit the usage violates, or None when the rule may grant again."""
    if limits.max_daily is not None and usage.today_count >= limits.max_daily:
        return BlockedRule(
            rule_id,
            BlockReason.DAILY_LIMIT,
            f"{usage.today_count} grants today >= {limits.max_daily}",
        )
    if limits.max_weekly is not None and usage.week_count >= limits.max_weekly:
        return BlockedRule(
            rule_id,
            BlockReason.WEEKLY_LIMIT,
            f"{usage.week_count} grants this week >= {limits.max_weekly}",
        )
    if limits.cooldown_minutes is not None and usage.last_granted_at is not None:
        elapsed: timedelta = as_utc(now) - as_utc(usage.last_granted_at)
        if elapsed < timedelta(minutes=limits.cooldown_minutes):
            return BlockedRule(
                rule_id,
                BlockReason.COOLDOWN,
                f"{elapsed.total_seconds() / 60:.1f} min since last grant"
                f" < {limits.cooldown_minutes}",
            )
    if limits.max_triggers is not None and usage.total_count >= limits.max_triggers:
        return BlockedRule(
            rule_id,
            BlockReason.MAX_TRIGGERS,
            f"{usage.total_count} grants in total >= {limits.max_triggers}",
        )
    if limits.requires_parental_approval and not usage.has_parental_approval:
        return BlockedRule(rule_id, BlockReason.APPROVAL_REQUIRED, "parental approval missing")
    return None


class LimitEnforcer:
    """Drops triggered results whose rule has used up its allowance.

    Without a ledger this is a pass-through: nothing is ever blocked. With
    ``claim_grants`` every surviving result is then claimed through the ledger,
    which re-checks the limits atomically and records the grant.
    """

    def __init__(self, ledger: UsageLedger | None = None, claim_grants: bool = False) -> None:
        self.ledger: UsageLedger | None = ledger
        self.claim_grants: bool = claim_grants

    def enforce(
        self,
        triggered: Sequence[RuleEvaluationResult],
        user_id: str,
        rules_by_id: Mapping[str, UnlockRule],
        now: datetime,
    ) -> LimitDecision:
        decision: LimitDecision = self._check(triggered, user_id, rules_by_id, now)
        if self.ledger is None or not self.claim_grants:
            return decision
        return self._claim(self.ledger, decision, user_id, rules_by_id, now)

    def _check(
        self,
        triggered: Sequence[RuleEvaluationResult],
        user_id: str,
        rules_by_id: Mapping[str, UnlockRule],
        now: datetime,
    ) -> LimitDecision:
        limited: list[str] = [
            r.rule_id
            for r in triggered
            if (rule := rules_by_id.get(r.rule_id)) is not None
            and rule.limits is not None
            and not rule.limits.is_empty()
        ]
        if self.ledger is None or not limited:
            return LimitDecision(allowed=list(triggered))

        try:
            usage: dict[str, RuleUsage] = self.ledger.get_usage(user_id, limited, now)
        except UsageLedgerError:
            raise
        except Exception as e:
            logger.exception("Usage ledger lookup failed", user_id=user_id)
            raise UsageLedgerError(f"Usage lookup failed for user {user_id}: {e}") from e

        allowed: list[RuleEvaluationResult] = []
        blocked: list[BlockedRule] = []
        for result in triggered:
            rule: UnlockRule | None = rules_by_id.get(result.rule_id)
            if rule is None or rule.limits is None or result.rule_id not in limited:
                allowed.append(result)
                continue
            hit: BlockedRule | None = check_limits(
                result.rule_id, rule.limits, usage.get(result.rule_id, RuleUsage()), now
            )
            if hit is None:
                allowed.append(result)
                continue
            blocked.append(hit)
            logger.info(
                "Rule blocked by limits",
                user_id=user_id,
                rule_id=result.rule_id,
                reason=hit.reason.value,
                detail=hit.detail,
            )

        return LimitDecision(allowed=allowed, blocked=blocked)

    def _claim(
        self,
        ledger: UsageLedger,
        decision: LimitDecision,
        user_id: str,
        rules_by_id: Mapping[str, UnlockRule],
        now: datetime,
    ) -> LimitDecision:
        allowed: list[RuleEvaluationResult] = []
        blocked: list[BlockedRule] = list(decision.blocked)
        for result in decision.allowed:
            rule: UnlockRule | None = rules_by_id.get(result.rule_id)
            try:
                hit: BlockedRule | None = ledger.claim_grant(
                    user_id,
                    result.rule_id,
                    rule.limits if rule is not None else None,
                    result.unlock_minutes,
                    result.bonus_minutes or 0,
                    now,
                )
            except UsageLedgerError:
                raise
            except Exception as e:
                logger.exception("Grant claim failed", user_id=user_id, rule_id=result.rule_id)
                raise UsageLedgerError(
                    f"Failed to record grant of {result.rule_id} for {user_id}: {e}"
                ) from e
            if hit is None:
                allowed.append(result)
                continue
            blocked.append(hit)
            logger.info(
                "Rule blocked at claim",
                user_id=user_id,
                rule_id=result.rule_id,
                reason=hit.reason.value,
                detail=hit.detail,
            )
        logger.debug("Grants claimed", user_id=user_id, grants=len(allowed))
        return LimitDecision(allowed=allowed, blocked=blocked)
