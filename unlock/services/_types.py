"""Typed dicts for route-facing return values.

Keeps route-facing functions explicit about their shape instead of returning bare dicts.
"""

import sys

if sys.version_info >= (3, 12):
    from typing import TypedDict
else:
    from typing_extensions import TypedDict

from unlock.services._helpers import JsonDict

# -- Health ----------------------------------------------------------------


class DbInfoDict(TypedDict, total=False):
    backend_type: str
    database_url_or_path: str | None
    tables_present: list[str]
    tables_missing: list[str]
    schema_initialized: bool
    migrations_pending: list[str]
    active_rules: int
    pid: int
    error: str


# -- Rules -----------------------------------------------------------------


class TemplateUI(TypedDict):
    key: str
    name: str
    description: str
    category: str
    tags: list[str]
    level: str
    recommendedFor: list[str]
    rule: JsonDict


class DeactivatedUI(TypedDict):
    id: str
    isActive: bool


# -- Approvals -------------------------------------------------------------


class ApprovalUI(TypedDict):
    id: str
    userId: str
    ruleId: str
    approvedBy: str
    approvedAt: str
    revokedAt: str | None


class RevokedUI(TypedDict):
    userId: str
    ruleId: str
    revoked: int
