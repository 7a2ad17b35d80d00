"""FastAPI application for rule authoring, approvals and unlock evaluation."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.routes import approvals, evaluation, health, rules
from app.schemas.common import ErrorResponse
from config import ApiSettings, Settings, get_settings
from migrations.migrate import migrate
from unlock.services.errors import (
    InvalidRequestError,
    InvalidRuleError,
    RuleStoreError,
    UsageLedgerError,
)

logger: logging.Logger = logging.getLogger(__name__)


def _error(status_code: int, exc: Exception) -> JSONResponse:
    body: ErrorResponse = ErrorResponse(detail=str(exc), type=type(exc).__name__)
    return JSONResponse(status_code=status_code, content=body.model_dump())


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = get_settings()
    logger.info("Rules DB: %s @ %s", settings.database.backend, settings.database.location())

    applied: list[str] = migrate()
    if applied:
        logger.info("Applied migrations: %s", ", ".join(applied))
    yield


def create_app(run_migrations: bool = True) -> FastAPI:
    """Build the app. Tests pass ``run_migrations=False`` and create tables themselves."""
    app: FastAPI = FastAPI(
        title="Unlock Rules Engine",
        version="0.1.0",
        lifespan=_lifespan if run_migrations else None,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_settings().api.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 422: bad rule or context from the caller. 503: rule store or usage ledger down.
    @app.exception_handler(InvalidRequestError)
    @app.exception_handler(InvalidRuleError)
    async def _on_invalid(request: Request, exc: Exception) -> JSONResponse:
        logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return _error(422, exc)

    @app.exception_handler(RuleStoreError)
    @app.exception_handler(UsageLedgerError)
    async def _on_unavailable(request: Request, exc: Exception) -> JSONResponse:
        logger.error("Dependency failure on %s: %s", request.url.path, exc)
        return _error(503, exc)

    @app.exception_handler(Exception)
    async def _on_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled: %s", exc)
        return _error(500, exc)

    app.include_router(health.router)
    app.include_router(evaluation.router)
    app.include_router(rules.router)
    app.include_router(approvals.router)

    return app


app: FastAPI = create_app()


def start() -> None:
    """Entry point for unlock-api."""
    api: ApiSettings = get_settings().api
    uvicorn.run("app.main:app", host=api.host, port=api.port, reload=api.reload)
