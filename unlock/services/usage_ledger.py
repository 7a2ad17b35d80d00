"""SQL-backed usage ledger: recorded grants and parental approvals."""

from collections.abc import Sequence
from datetime import UTC, date, datetime, time, timedelta

import structlog
from sqlalchemy import Select, case, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from db.models import GrantClaims, ParentalApprovals, UnlockGrants, UnlockRules
from unlock.services._helpers import as_utc, new_id, parse_datetime, to_iso
from unlock.services.errors import UsageLedgerError
from unlock.services.limits import check_limits
from unlock.services.schemas.results import (
    BlockedRule,
    DailyUsageSummary,
    GrantRecord,
    RuleGrantBreakdown,
    RuleUsage,
)
from unlock.services.schemas.rules import Number, RuleLimits

logger = structlog.get_logger(__name__)


def period_starts(now: datetime) -> tuple[datetime, datetime]:
    """Start of the UTC calendar day and of the ISO week (Monday 00:00 UTC)."""
    day: datetime = as_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
    return day, day - timedelta(days=day.weekday())


class SqlUsageLedger:
    """Grant counts per (user, rule), read in one grouped query per request.

    Limited grants go through ``claim_grant``, which re-checks the limits while
    holding the pair's ``grant_claims`` row lock. The lock is released when the
    caller's transaction ends.
    """

    def __init__(self, session: Session) -> None:
        self.session: Session = session

    def get_usage(
        self, user_id: str, rule_ids: Sequence[str], now: datetime
    ) -> dict[str, RuleUsage]:
        if not rule_ids:
            return {}
        day_start, week_start = period_starts(now)
        day_iso: str = to_iso(day_start)
        week_iso: str = to_iso(week_start)

        grants_stmt: Select = (
            select(
                UnlockGrants.rule_id,
                func.count(UnlockGrants.id),
                func.sum(case((UnlockGrants.granted_at >= day_iso, 1), else_=0)),
                func.sum(case((UnlockGrants.granted_at >= week_iso, 1), else_=0)),
                func.max(UnlockGrants.granted_at),
            )
            .where(UnlockGrants.user_id == user_id, UnlockGrants.rule_id.in_(rule_ids))
            .group_by(UnlockGrants.rule_id)
        )
        approvals_stmt: Select = (
            select(ParentalApprovals.rule_id)
            .where(
                ParentalApprovals.user_id == user_id,
                ParentalApprovals.rule_id.in_(rule_ids),
                ParentalApprovals.revoked_at.is_(None),
            )
            .distinct()
        )
        try:
            grant_rows = self.session.execute(grants_stmt).all()
            approved: set[str] = set(self.session.scalars(approvals_stmt).all())
        except SQLAlchemyError as e:
            raise UsageLedgerError(f"Failed to read usage for user {user_id}: {e}") from e

        usage: dict[str, RuleUsage] = {
            rid: RuleUsage(has_parental_approval=rid in approved) for rid in rule_ids
        }
        for rule_id, total, today, week, last in grant_rows:
            usage[rule_id] = RuleUsage(
                today_count=int(today or 0),
                week_count=int(week or 0),
                total_count=int(total or 0),
                last_granted_at=parse_datetime(last),
                has_parental_approval=rule_id in approved,
            )
        return usage

    def record_grant(
        self,
        user_id: str,
        rule_id: str,
        unlock_minutes: float,
        bonus_minutes: float,
        granted_at: datetime,
    ) -> None:
        grant: UnlockGrants = UnlockGrants(
            id=new_id(),
            user_id=user_id,
            rule_id=rule_id,
            unlock_minutes=unlock_minutes,
            bonus_minutes=bonus_minutes,
            granted_at=to_iso(granted_at),
        )
        try:
            self.session.add(grant)
            self.session.flush()
        except SQLAlchemyError as e:
            raise UsageLedgerError(f"Failed to record grant of {rule_id} for {user_id}: {e}") from e
        logger.debug("Grant recorded", user_id=user_id, rule_id=rule_id, minutes=unlock_minutes)

    def _lock_pair(self, user_id: str, rule_id: str, at: datetime) -> None:
        # Upsert takes a row lock on Postgres and the database write lock on SQLite.
        dialect: str = self.session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(GrantClaims).values(
            user_id=user_id, rule_id=rule_id, claims=1, last_claimed_at=to_iso(at)
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "rule_id"],
            set_={
                "claims": GrantClaims.claims + 1,
                "last_claimed_at": stmt.excluded.last_claimed_at,
            },
        )
        self.session.execute(stmt)

    def claim_grant(
        self,
        user_id: str,
        rule_id: str,
        limits: RuleLimits | None,
        unlock_minutes: float,
        bonus_minutes: float,
        granted_at: datetime,
    ) -> BlockedRule | None:
        """Record the grant unless the limits are used up. Returns the violated limit.

        Check and insert run under the pair's lock, so two concurrent claims for the
        same user and rule cannot both pass a cap.
        """
        if limits is not None and not limits.is_empty():
            try:
                self._lock_pair(user_id, rule_id, granted_at)
            except SQLAlchemyError as e:
                raise UsageLedgerError(
                    f"Failed to lock usage of {rule_id} for {user_id}: {e}"
                ) from e
            usage: RuleUsage = self.get_usage(user_id, [rule_id], granted_at)[rule_id]
            hit: BlockedRule | None = check_limits(rule_id, limits, usage, granted_at)
            if hit is not None:
                logger.info(
                    "Grant refused on claim",
                    user_id=user_id,
                    rule_id=rule_id,
                    reason=hit.reason.value,
                )
                return hit
        self.record_grant(user_id, rule_id, unlock_minutes, bonus_minutes, granted_at)
        return None

    def history(self, user_id: str, limit: int = 50) -> list[GrantRecord]:
        """Most recent grants first."""
        stmt: Select = (
            select(UnlockGrants, UnlockRules.name)
            .outerjoin(UnlockRules, UnlockRules.id == UnlockGrants.rule_id)
            .where(UnlockGrants.user_id == user_id)
            .order_by(UnlockGrants.granted_at.desc(), UnlockGrants.id.desc())
            .limit(limit)
        )
        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            raise UsageLedgerError(f"Failed to read grant history for {user_id}: {e}") from e

        records: list[GrantRecord] = []
        for grant, rule_name in rows:
            granted_at: datetime | None = parse_datetime(grant.granted_at)
            if granted_at is None:
                logger.warning("Skipping grant with bad timestamp", grant_id=grant.id)
                continue
            records.append(
                GrantRecord(
                    id=grant.id,
                    rule_id=grant.rule_id,
                    unlock_minutes=grant.unlock_minutes,
                    bonus_minutes=grant.bonus_minutes,
                    granted_at=granted_at,
                    rule_name=rule_name,
                )
            )
        return records

    def daily_summary(self, user_id: str, day: date) -> DailyUsageSummary:
        """Totals and per-rule breakdown of the grants made on ``day`` (UTC)."""
        start: datetime = datetime.combine(day, time.min, tzinfo=UTC)
        stmt: Select = (
            select(
                UnlockGrants.rule_id,
                UnlockRules.name,
                func.count(UnlockGrants.id),
                func.coalesce(func.sum(UnlockGrants.unlock_minutes), 0),
                func.coalesce(func.sum(UnlockGrants.bonus_minutes), 0),
            )
            .outerjoin(UnlockRules, UnlockRules.id == UnlockGrants.rule_id)
            .where(
                UnlockGrants.user_id == user_id,
                UnlockGrants.granted_at >= to_iso(start),
                UnlockGrants.granted_at < to_iso(start + timedelta(days=1)),
            )
            .group_by(UnlockGrants.rule_id, UnlockRules.name)
        )
        try:
            rows = self.session.execute(stmt).all()
        except SQLAlchemyError as e:
            raise UsageLedgerError(f"Failed to summarise usage for {user_id}: {e}") from e

        breakdown: list[RuleGrantBreakdown] = [
            RuleGrantBreakdown(
                rule_id=rule_id,
                rule_name=name,
                grants=int(count),
                unlocked=unlocked,
                bonus=bonus,
            )
            for rule_id, name, count, unlocked, bonus in rows
        ]
        breakdown.sort(key=lambda b: (-b.unlocked, b.rule_id))
        total_unlocked: Number = sum(b.unlocked for b in breakdown)
        total_bonus: Number = sum(b.bonus for b in breakdown)
        return DailyUsageSummary(
            user_id=user_id,
            date=day,
            total_unlocked=total_unlocked,
            total_bonus=total_bonus,
            grant_count=sum(b.grants for b in breakdown),
            rule_breakdown=breakdown,
        )

    def approve(
        self, user_id: str, rule_id: str, approved_by: str, approved_at: datetime
    ) -> ParentalApprovals:
        approval: ParentalApprovals = ParentalApprovals(
            id=new_id(),
            user_id=user_id,
            rule_id=rule_id,
            approved_by=approved_by,
            approved_at=to_iso(approved_at),
            revoked_at=None,
        )
        self.session.add(approval)
        self.session.flush()
        logger.info(
            "Parental approval recorded", user_id=user_id, rule_id=rule_id, approved_by=approved_by
        )
        return approval

    def revoke(self, user_id: str, rule_id: str, revoked_at: datetime) -> int:
        """Revoke every open approval for the pair. Returns how many were revoked."""
        stmt: Select[tuple[ParentalApprovals]] = select(ParentalApprovals).where(
            ParentalApprovals.user_id == user_id,
            ParentalApprovals.rule_id == rule_id,
            ParentalApprovals.revoked_at.is_(None),
        )
        approvals: list[ParentalApprovals] = list(self.session.scalars(stmt).all())
        for approval in approvals:
            approval.revoked_at = to_iso(revoked_at)
        self.session.flush()
        if approvals:
            logger.info("Parental approval revoked", user_id=user_id, rule_id=rule_id)
        return len(approvals)
