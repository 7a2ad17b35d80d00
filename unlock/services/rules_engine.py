"""Rules engine: evaluates unlock rules against a completed attempt.

``RuleEvaluationOrchestrator`` is the pure pipeline (filter, sort, evaluate, enforce
limits, aggregate). ``UnlockRulesEngine`` wires it to a rule store and usage ledger.
"""

import time
from collections.abc import Callable, Sequence
from datetime import datetime

import structlog

from config import EngineSettings
from unlock.services._helpers import utc_now
from unlock.services.aggregation import ResultAggregator
from unlock.services.criteria import CriteriaVerdict, evaluate_criteria
from unlock.services.errors import (  # noqa: F401  re-exported
    InvalidRequestError,
    RulesEngineError,
    RuleStoreError,
    UsageLedgerError,
)
from unlock.services.limits import LimitEnforcer
from unlock.services.rule_filter import filter_applicable_rules, sort_by_priority
from unlock.services.schemas.context import EvaluationContext, UnlockEvaluationRequest
from unlock.services.schemas.results import (
    EvaluationMetadata,
    LimitDecision,
    RuleEvaluationResult,
    UnlockEvaluationResponse,
)
from unlock.services.schemas.rules import UnlockRule
from unlock.services.scoring import calculate_confidence
from unlock.services.stores import RuleStore, UsageLedger

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]

EVALUATION_ERROR_TOKEN: str = "evaluation-error"


def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def evaluate_rule(
    rule: UnlockRule, context: EvaluationContext, now: datetime
) -> RuleEvaluationResult:
    """Evaluate one rule. Never raises: failures become a non-triggered result."""
    started: float = time.perf_counter()
    verdict = CriteriaVerdict()

    def _metadata(extra_failed: Sequence[str] = ()) -> EvaluationMetadata:
        return EvaluationMetadata(
            evaluated_at=now,
            processing_time=_elapsed_ms(started),
            criteria_matched=verdict.matched,
            criteria_failed=[*verdict.failed, *extra_failed],
        )

    try:
        evaluate_criteria(rule.criteria, context, verdict)
        if not verdict.passed:
            return RuleEvaluationResult(
                rule_id=rule.id,
                rule_name=rule.name,
                triggered=False,
                reason=f"Criteria not met: {', '.join(verdict.failed)}",
                confidence=0.0,
                unlock_minutes=0,
                metadata=_metadata(),
            )
        action = rule.action
        return RuleEvaluationResult(
            rule_id=rule.id,
            rule_name=rule.name,
            triggered=True,
            confidence=calculate_confidence(verdict, rule.criteria),
            unlock_minutes=action.unlock_minutes,
            bonus_minutes=action.bonus_minutes,
            message=action.message,
            achievements=list(action.achievements) if action.achievements is not None else None,
            restrictions=action.restrictions,
            parent_notification=action.parent_notification,
            metadata=_metadata(),
        )
    except Exception as e:
        logger.warning(
            "Rule evaluation failed",
            rule_id=rule.id,
            user_id=context.user_id,
            error=str(e),
            error_type=type(e).__name__,
        )
        return RuleEvaluationResult(
            rule_id=rule.id,
            rule_name=rule.name,
            triggered=False,
            reason=f"Evaluation error: {e}",
            confidence=0.0,
            unlock_minutes=0,
            metadata=_metadata([EVALUATION_ERROR_TOKEN]),
        )


class RuleEvaluationOrchestrator:
    """Filter, sort by priority, evaluate every rule, enforce limits, aggregate."""

    def __init__(
        self,
        limit_enforcer: LimitEnforcer | None = None,
        aggregator: ResultAggregator | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.limit_enforcer: LimitEnforcer = limit_enforcer or LimitEnforcer()
        self.aggregator: ResultAggregator = aggregator or ResultAggregator()
        self.clock: Clock = clock or utc_now

    def evaluate(
        self, request: UnlockEvaluationRequest, rules: Sequence[UnlockRule]
    ) -> UnlockEvaluationResponse:
        started: float = time.perf_counter()
        now: datetime = self.clock()

        applicable: list[UnlockRule] = sort_by_priority(
            filter_applicable_rules(rules, request, now)
        )
        results: list[RuleEvaluationResult] = [
            evaluate_rule(rule, request.context, now) for rule in applicable
        ]
        triggered: list[RuleEvaluationResult] = [r for r in results if r.triggered]

        decision: LimitDecision = self.limit_enforcer.enforce(
            triggered, request.user_id, {r.id: r for r in applicable}, now
        )

        response: UnlockEvaluationResponse = self.aggregator.aggregate(
            request.user_id,
            decision,
            rules_evaluated=len(results),
            now=now,
            evaluation_time=_elapsed_ms(started),
        )
        logger.info(
            "Unlock rules evaluated",
            user_id=request.user_id,
            rules_available=len(rules),
            rules_evaluated=len(results),
            rules_triggered=response.summary.rules_triggered,
            rules_blocked=response.summary.rules_blocked,
            total_unlock_minutes=response.total_unlock_minutes,
        )
        return response


class UnlockRulesEngine:
    """Evaluates requests against the rules held by a rule store.

    With a usage ledger configured, rule limits are enforced and every surviving
    grant is recorded back to the ledger. Limited grants are claimed one by one
    so concurrent requests for the same user cannot overshoot a cap.
    """

    def __init__(
        self,
        rule_store: RuleStore,
        usage_ledger: UsageLedger | None = None,
        settings: EngineSettings | None = None,
        clock: Clock | None = None,
    ) -> None:
        self.rule_store: RuleStore = rule_store
        self.usage_ledger: UsageLedger | None = usage_ledger
        self.settings: EngineSettings = settings or EngineSettings()
        enforcing: bool = self.settings.enforce_limits and usage_ledger is not None
        self.orchestrator = RuleEvaluationOrchestrator(
            limit_enforcer=LimitEnforcer(
                usage_ledger if enforcing else None,
                claim_grants=enforcing and self.settings.record_grants,
            ),
            aggregator=ResultAggregator(
                throttle_seconds=self.settings.throttle_seconds,
                restrictions_ttl_hours=self.settings.restrictions_ttl_hours,
            ),
            clock=clock,
        )

    def load_rules(self) -> list[UnlockRule]:
        try:
            return self.rule_store.list_rules()
        except RuleStoreError:
            raise
        except Exception as e:
            logger.exception("Rule store unavailable")
            raise RuleStoreError(f"Failed to load unlock rules: {e}") from e

    def evaluate_request(self, request: UnlockEvaluationRequest) -> UnlockEvaluationResponse:
        rules: list[UnlockRule] = self.load_rules()
        response: UnlockEvaluationResponse = self.orchestrator.evaluate(request, rules)
        # With limits enforced the enforcer has already claimed the grants.
        if (
            self.settings.record_grants
            and not self.settings.enforce_limits
            and self.usage_ledger is not None
        ):
            self._record_grants(self.usage_ledger, response)
        return response

    def _record_grants(self, ledger: UsageLedger, response: UnlockEvaluationResponse) -> None:
        for result in response.triggered_rules:
            try:
                ledger.record_grant(
                    response.user_id,
                    result.rule_id,
                    result.unlock_minutes,
                    result.bonus_minutes or 0,
                    result.metadata.evaluated_at,
                )
            except UsageLedgerError:
                raise
            except Exception as e:
                logger.exception(
                    "Failed to record grant", user_id=response.user_id, rule_id=result.rule_id
                )
                raise UsageLedgerError(
                    f"Failed to record grant of {result.rule_id} for {response.user_id}: {e}"
                ) from e
        logger.debug(
            "Grants recorded", user_id=response.user_id, grants=len(response.triggered_rules)
        )
