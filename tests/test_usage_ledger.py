"""Tests for unlock.services.usage_ledger."""

from datetime import UTC, date, datetime, timedelta, timezone

from sqlalchemy.orm import Session

from db.enums import BlockReason
from db.models import GrantClaims
from unlock.services.rule_store import SqlRuleStore
from unlock.services.schemas import (
    BlockedRule,
    DailyUsageSummary,
    GrantRecord,
    RuleLimits,
    RuleUsage,
)
from unlock.services.usage_ledger import SqlUsageLedger, period_starts


class TestPeriodStarts:
    def test_wednesday(self, now: datetime) -> None:
        day, week = period_starts(now)
        assert day == datetime(2026, 3, 11, tzinfo=UTC)
        assert week == datetime(2026, 3, 9, tzinfo=UTC)

    def test_monday_midnight_is_its_own_week(self) -> None:
        monday: datetime = datetime(2026, 3, 9, 0, 0, tzinfo=UTC)
        day, week = period_starts(monday)
        assert day == week == monday

    def test_naive_treated_as_utc(self) -> None:
        day, _ = period_starts(datetime(2026, 3, 11, 23, 59))
        assert day == datetime(2026, 3, 11, tzinfo=UTC)

    def test_other_offset_normalised(self) -> None:
        # 01:00 on the 12th at UTC+2 is still the 11th in UTC.
        local: datetime = datetime(2026, 3, 12, 1, 0, tzinfo=timezone(timedelta(hours=2)))
        day, _ = period_starts(local)
        assert day == datetime(2026, 3, 11, tzinfo=UTC)


class TestGetUsage:
    def test_counts_by_period(self, session: Session, now: datetime) -> None:
        ledger: SqlUsageLedger = SqlUsageLedger(session)
        grants: list[datetime] = [
            now - timedelta(minutes=10),  # today
            now.replace(hour=0, minute=0),  # today, at midnight
            now - timedelta(days=2),  # Monday this week
            now - timedelta(days=3),  # last Sunday
            now - timedelta(days=30),
        ]
        for granted_at in grants:
            ledger.record_grant("student-1", "r1", 30, 5, granted_at)
        ledger.record_grant("student-2", "r1", 30, 0, now)

        usage: dict[str, RuleUsage] = ledger.get_usage("student-1", ["r1"], now)

        assert usage["r1"].today_count == 2
        assert usage["r1"].week_count == 3
        assert usage["r1"].total_count == 5
        assert usage["r1"].last_granted_at == now - timedelta(minutes=10)
        assert usage["r1"].has_parental_approval is False

    def test_unused_rule_gets_empty_usage(self, session: Session, now: datetime) -> None:
        usage: dict[str, RuleUsage] = SqlUsageLedger(session).get_usage(
            "student-1", ["r1", "r2"], now
        )
        assert usage == {"r1": RuleUsage(), "r2": RuleUsage()}

    def test_no_rule_ids(self, session: Session, now: datetime) -> None:
        assert SqlUsageLedger(session).get_usage("student-1", [], now) == {}


class TestApprovals:
    def test_approve_and_revoke(self, session: Session, now: datetime) -> None:
        ledger: SqlUsageLedger = SqlUsageLedger(session)
        ledger.approve("student-1", "r1", "parent-1", now)
        ledger.approve("student-1", "r1", "parent-2", now)

        assert ledger.get_usage("student-1", ["r1"], now)["r1"].has_parental_approval is True
        assert ledger.get_usage("student-2", ["r1"], now)["r1"].has_parental_approval is False

        assert ledger.revoke("student-1", "r1", now) == 2
        assert ledger.get_usage("student-1", ["r1"], now)["r1"].has_parental_approval is False
        assert ledger.revoke("student-1", "r1", now) == 0

    def test_approval_combined_with_grants(self, session: Session, now: datetime) -> None:
        ledger: SqlUsageLedger = SqlUsageLedger(session)
        ledger.approve("student-1", "r1", "parent-1", now)
        ledger.record_grant("student-1", "r1", 10, 0, now)

        usage: RuleUsage = ledger.get_usage("student-1", ["r1"], now)["r1"]
        assert usage.total_count == 1
        assert usage.has_parental_approval is True


class TestClaimGrant:
    def test_records_until_cap(self, session: Session, now: datetime) -> None:
        ledger: SqlUsageLedger = SqlUsageLedger(session)
        limits: RuleLimits = RuleLimits(max_daily=2)

        assert ledger.claim_grant("student-1", "r1", limits, 20, 0, now) is None
        assert ledger.claim_grant("student-1", "r1", limits, 20, 0, now) is None
        hit: BlockedRule | None = ledger.claim_grant("student-1", "r1", limits, 20, 0, now)

        assert hit is not None and hit.reason is BlockReason.DAILY_LIMIT
        assert ledger.get_usage("student-1", ["r1"], now)["r1"].today_count == 2
        claims: GrantClaims | None = session.get(GrantClaims, ("student-1", "r1"))
        assert claims is not None and claims.claims == 3

    def test_unlimited_claim_takes_no_lock(self, session: Session, now: datetime) -> None:
        ledger: SqlUsageLedger = SqlUsageLedger(session)
        assert ledger.claim_grant("student-1", "r1", None, 10, 0, now) is None
        assert ledger.claim_grant("student-1", "r1", RuleLimits(), 10, 0, now) is None
        assert ledger.get_usage("student-1", ["r1"], now)["r1"].total_count == 2
        assert session.get(GrantClaims, ("student-1", "r1")) is None

    def test_approval_checked_at_claim(self, session: Session, now: datetime) -> None:
        ledger: SqlUsageLedger = SqlUsageLedger(session)
        limits: RuleLimits = RuleLimits(requires_parental_approval=True)

        hit: BlockedRule | None = ledger.claim_grant("student-1", "r1", limits, 10, 0, now)
        assert hit is not None and hit.reason is BlockReason.APPROVAL_REQUIRED

        ledger.approve("student-1", "r1", "parent-1", now)
        assert ledger.claim_grant("student-1", "r1", limits, 10, 0, now) is None


class TestHistory:
    def test_newest_first_with_rule_names(self, session: Session, now: datetime) -> None:
        SqlRuleStore(session).create_rule(
            {"id": "r1", "name": "Maths excellence", "action": {"unlockMinutes": 30}}
        )
        ledger: SqlUsageLedger = SqlUsageLedger(session)
        ledger.record_grant("student-1", "r1", 30, 5, now - timedelta(hours=2))
        ledger.record_grant("student-1", "gone", 10, 0, now)
        ledger.record_grant("student-2", "r1", 30, 0, now)

        records: list[GrantRecord] = ledger.history("student-1")

        assert [r.rule_id for r in records] == ["gone", "r1"]
        assert records[0].rule_name is None
        assert records[1].rule_name == "Maths excellence"
        assert records[1].bonus_minutes == 5
        assert records[1].granted_at == now - timedelta(hours=2)

    def test_limit(self, session: Session, now: datetime) -> None:
        ledger: SqlUsageLedger = SqlUsageLedger(session)
        for minutes in range(5):
            ledger.record_grant("student-1", "r1", 10, 0, now - timedelta(minutes=minutes))
        records: list[GrantRecord] = ledger.history("student-1", limit=2)
        assert [r.granted_at for r in records] == [now, now - timedelta(minutes=1)]

    def test_unknown_user(self, session: Session) -> None:
        assert SqlUsageLedger(session).history("nobody") == []


class TestDailySummary:
    def test_totals_and_breakdown(self, session: Session, now: datetime) -> None:
        ledger: SqlUsageLedger = SqlUsageLedger(session)
        ledger.record_grant("student-1", "small", 5, 0, now)
        ledger.record_grant("student-1", "big", 30, 5, now - timedelta(hours=3))
        ledger.record_grant("student-1", "big", 30, 0, now - timedelta(hours=1))
        ledger.record_grant("student-1", "big", 30, 0, now - timedelta(days=1))  # yesterday
        ledger.record_grant("student-2", "big", 30, 0, now)

        summary: DailyUsageSummary = ledger.daily_summary("student-1", now.date())

        assert summary.date == date(2026, 3, 11)
        assert summary.total_unlocked == 65
        assert summary.total_bonus == 5
        assert summary.grant_count == 3
        assert [(b.rule_id, b.grants, b.unlocked) for b in summary.rule_breakdown] == [
            ("big", 2, 60),
            ("small", 1, 5),
        ]

    def test_empty_day(self, session: Session, now: datetime) -> None:
        summary: DailyUsageSummary = SqlUsageLedger(session).daily_summary(
            "student-1", now.date()
        )
        assert summary.grant_count == 0
        assert summary.total_unlocked == 0
        assert summary.rule_breakdown == []
