"""Base model and response shapes shared by every router."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Accepts camelCase or snake_case input and dumps camelCase with ``by_alias``."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class ErrorResponse(BaseModel):
    """Body of every error the exception handlers produce."""

    detail: str
    type: str


class HealthResponse(BaseModel):
    status: str
    environment: str
