"""Rule authoring endpoints."""

from fastapi import APIRouter, Depends, HTTPException

from app.dependencies import get_api_key, get_rule_store, get_rule_validator
from app.schemas.rules import RuleDefinition
from unlock.services._types import DeactivatedUI, TemplateUI
from unlock.services.rule_store import SqlRuleStore
from unlock.services.schemas import RuleValidationResult, UnlockRule
from unlock.services.schemas.rules import to_camel_dict
from unlock.services.templates import RuleTemplate, get_template, list_templates
from unlock.services.validation import RuleValidator

router = APIRouter(prefix="/api/rules", tags=["rules"])


@router.get("")
def list_rules(active_only: bool = False, store: SqlRuleStore = Depends(get_rule_store)):
    return [r.to_dict() for r in store.list_rules(active_only=active_only)]


def _template_ui(t: RuleTemplate) -> TemplateUI:
    return TemplateUI(
        key=t.key,
        name=t.name,
        description=t.description,
        category=t.category.value,
        tags=list(t.tags),
        level=t.level,
        recommendedFor=list(t.recommended_for),
        rule=t.to_rule_dict(),
    )


@router.get("/templates")
def get_templates() -> list[TemplateUI]:
    return [_template_ui(t) for t in list_templates()]


@router.get("/templates/{key}")
def get_template_by_key(key: str) -> TemplateUI:
    template: RuleTemplate | None = get_template(key)
    if template is None:
        raise HTTPException(status_code=404, detail=f"Template {key} not found")
    return _template_ui(template)


@router.post("/validate")
def validate_rule(body: RuleDefinition, validator: RuleValidator = Depends(get_rule_validator)):
    result: RuleValidationResult = validator.validate(
        body.model_dump(by_alias=True, exclude_none=True)
    )
    return to_camel_dict(result)


@router.get("/{rule_id}")
def get_rule(rule_id: str, store: SqlRuleStore = Depends(get_rule_store)):
    rule: UnlockRule | None = store.get_rule(rule_id)
    if not rule:
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")
    return rule.to_dict()


@router.post("", status_code=201)
def create_rule(
    body: RuleDefinition,
    store: SqlRuleStore = Depends(get_rule_store),
    validator: RuleValidator = Depends(get_rule_validator),
    _key: str = Depends(get_api_key),
):
    payload = body.model_dump(by_alias=True, exclude_none=True)
    result: RuleValidationResult = validator.validate(payload)
    if not result.valid:
        raise HTTPException(status_code=422, detail=to_camel_dict(result))
    return store.create_rule(payload).to_dict()


@router.delete("/{rule_id}")
def deactivate_rule(
    rule_id: str,
    store: SqlRuleStore = Depends(get_rule_store),
    _key: str = Depends(get_api_key),
) -> DeactivatedUI:
    if not store.deactivate_rule(rule_id):
        raise HTTPException(status_code=404, detail=f"Rule {rule_id} not found")
    return DeactivatedUI(id=rule_id, isActive=False)
