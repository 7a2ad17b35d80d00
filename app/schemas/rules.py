"""Rule authoring and approval request schemas."""

from typing import Any

from pydantic import ConfigDict, Field

from app.schemas.common import CamelModel


class RuleDefinition(CamelModel):
    """A submitted rule. Nested blocks stay loose so the validator can report on them."""

    model_config = ConfigDict(extra="allow")

    id: str | None = None
    name: str | None = None
    description: str | None = None
    is_active: bool = True
    priority: int = 0
    criteria: dict[str, Any] | None = None
    action: dict[str, Any] | None = None
    limits: dict[str, Any] | None = None
    stackable: bool = True
    valid_from: str | None = None
    valid_to: str | None = None
    applies_to: list[str] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None


class ApprovalCreate(CamelModel):
    user_id: str = Field(..., min_length=1)
    rule_id: str = Field(..., min_length=1)
    approved_by: str = Field(..., min_length=1)


class ApprovalRevoke(CamelModel):
    user_id: str = Field(..., min_length=1)
    rule_id: str = Field(..., min_length=1)
