"""SQLAlchemy ORM models for rule definitions and the usage ledger.

Timestamps are stored as UTC ISO-8601 TEXT so lexical order matches time order.
Structured rule fields (criteria, action, limits, metadata) are JSON TEXT columns.
"""

from sqlalchemy import ForeignKey, Index, MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=convention)


class UnlockRules(Base):
    __tablename__ = "unlock_rules"

    id: Mapped[str] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(nullable=False)
    description: Mapped[str | None] = mapped_column()
    is_active: Mapped[bool] = mapped_column(nullable=False, default=True)
    priority: Mapped[int] = mapped_column(nullable=False, default=0)
    criteria: Mapped[str] = mapped_column(nullable=False, default="{}")
    action: Mapped[str] = mapped_column(nullable=False)
    limits: Mapped[str | None] = mapped_column()
    stackable: Mapped[bool] = mapped_column(nullable=False, default=True)
    valid_from: Mapped[str | None] = mapped_column()
    valid_to: Mapped[str | None] = mapped_column()
    applies_to: Mapped[str] = mapped_column(nullable=False, default="[]")
    # "metadata" is reserved on declarative classes
    rule_metadata: Mapped[str | None] = mapped_column("metadata")
    created_by: Mapped[str] = mapped_column(nullable=False, default="system")
    created_at: Mapped[str] = mapped_column(nullable=False)
    updated_at: Mapped[str] = mapped_column(nullable=False)


class UnlockGrants(Base):
    __tablename__ = "unlock_grants"

    id: Mapped[str] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(nullable=False)
    rule_id: Mapped[str] = mapped_column(ForeignKey("unlock_rules.id"), nullable=False)
    unlock_minutes: Mapped[float] = mapped_column(nullable=False, default=0)
    bonus_minutes: Mapped[float] = mapped_column(nullable=False, default=0)
    granted_at: Mapped[str] = mapped_column(nullable=False)

    __table_args__ = (Index("ix_unlock_grants_user_rule", "user_id", "rule_id", "granted_at"),)


class ParentalApprovals(Base):
    __tablename__ = "parental_approvals"

    id: Mapped[str] = mapped_column(primary_key=True)
    user_id: Mapped[str] = mapped_column(nullable=False)
    rule_id: Mapped[str] = mapped_column(ForeignKey("unlock_rules.id"), nullable=False)
    approved_by: Mapped[str] = mapped_column(nullable=False)
    approved_at: Mapped[str] = mapped_column(nullable=False)
    revoked_at: Mapped[str | None] = mapped_column()

    __table_args__ = (Index("ix_parental_approvals_user_rule", "user_id", "rule_id"),)


class GrantClaims(Base):
    """One row per (user, rule). Updating it takes the write lock for a grant claim."""

    __tablename__ = "grant_claims"

    user_id: Mapped[str] = mapped_column(primary_key=True)
    rule_id: Mapped[str] = mapped_column(primary_key=True)
    claims: Mapped[int] = mapped_column(nullable=False, default=0)
    last_claimed_at: Mapped[str] = mapped_column(nullable=False)
