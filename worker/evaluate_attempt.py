"""Worker: evaluate a graded attempt against the stored rules and record grants.

Usage:
    python -m worker.evaluate_attempt --context attempt.json
    python -m worker.evaluate_attempt --context attempt.json --rule RULE_ID --dry-run
"""

import argparse
import json
import sys
from pathlib import Path

import structlog

from config import EngineSettings, get_settings
from db.connection import get_session
from unlock.services.errors import InvalidRequestError, RulesEngineError
from unlock.services.rule_store import SqlRuleStore
from unlock.services.rules_engine import UnlockRulesEngine
from unlock.services.schemas import UnlockEvaluationRequest, UnlockEvaluationResponse
from unlock.services.schemas.rules import to_camel_dict
from unlock.services.usage_ledger import SqlUsageLedger

logger = structlog.get_logger(__name__)


def load_context(path: Path) -> dict[str, object]:
    try:
        raw: object = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise argparse.ArgumentTypeError(f"Cannot read context from {path}: {e}")
    if not isinstance(raw, dict):
        raise argparse.ArgumentTypeError(f"{path} must contain a JSON object")
    return raw


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Evaluate an attempt against unlock rules")
    parser.add_argument(
        "--context", "-c", required=True, type=Path, help="Evaluation context JSON file"
    )
    parser.add_argument(
        "--rule", "-r", action="append", dest="rules", default=None,
        help="Only evaluate this rule id (repeatable)",
    )
    parser.add_argument(
        "--dry-run", action="store_true", default=False,
        help="Evaluate and enforce limits but do not record grants",
    )
    parser.add_argument(
        "--json", action="store_true", default=False, help="Print the full response as JSON"
    )
    args = parser.parse_args(argv)

    try:
        context: dict[str, object] = load_context(args.context)
    except argparse.ArgumentTypeError as e:
        parser.error(str(e))

    engine_settings: EngineSettings = get_settings().engine
    if args.dry_run:
        engine_settings = engine_settings.model_copy(update={"record_grants": False})

    user_id: object = context.get("userId") or context.get("user_id")
    try:
        request = UnlockEvaluationRequest.from_dict(
            {"userId": user_id, "context": context, "rules": args.rules}
        )
    except InvalidRequestError as e:
        logger.error("Invalid evaluation context", path=str(args.context), error=str(e))
        return 2

    logger.info(
        "Starting evaluation",
        user_id=request.user_id,
        attempt_id=request.context.attempt_id,
        dry_run=args.dry_run,
    )
    try:
        with get_session() as session:
            engine = UnlockRulesEngine(
                SqlRuleStore(session),
                usage_ledger=SqlUsageLedger(session),
                settings=engine_settings,
            )
            response: UnlockEvaluationResponse = engine.evaluate_request(request)
    except RulesEngineError as e:
        logger.error("Evaluation failed", user_id=request.user_id, error=str(e))
        return 1

    logger.info(
        "Evaluation complete",
        user_id=response.user_id,
        total_unlock_minutes=response.total_unlock_minutes,
        total_bonus_minutes=response.total_bonus_minutes,
        rules_evaluated=response.summary.rules_evaluated,
        rules_triggered=response.summary.rules_triggered,
        rules_blocked=response.summary.rules_blocked,
        highest_priority_rule=response.summary.highest_priority_rule,
    )
    for notification in response.parent_notifications:
        logger.info(
            "parent_notification",
            user_id=response.user_id,
            rule_id=notification.rule_id,
            message=notification.message,
        )

    if args.json:
        sys.stdout.write(json.dumps(to_camel_dict(response), indent=2) + "\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
