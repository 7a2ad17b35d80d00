"""Liveness and database health endpoints."""

import logging
import os

from fastapi import APIRouter, Depends
from sqlalchemy import func, inspect, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from app.dependencies import get_api_key
from app.schemas.common import HealthResponse
from config import DatabaseSettings, get_settings
from db.connection import get_engine
from db.models import Base, UnlockRules
from migrations.migrate import pending_migrations
from unlock.services._types import DbInfoDict

logger: logging.Logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _count_active_rules(engine: Engine) -> int:
    stmt = select(func.count()).select_from(UnlockRules).where(UnlockRules.is_active.is_(True))
    with engine.connect() as conn:
        return int(conn.execute(stmt).scalar_one())


def get_db_info(engine: Engine | None = None) -> DbInfoDict:
    """Backend, schema and rule counts. Failures are reported in ``error``, never raised."""
    db: DatabaseSettings = get_settings().database
    info: DbInfoDict = DbInfoDict(
        backend_type=db.backend,
        database_url_or_path=db.location(),
        tables_present=[],
        tables_missing=sorted(Base.metadata.tables),
        schema_initialized=False,
        pid=os.getpid(),
    )
    try:
        eng: Engine = engine or get_engine()
        existing: set[str] = set(inspect(eng).get_table_names())
        expected: set[str] = set(Base.metadata.tables)
        info["tables_present"] = sorted(existing)
        info["tables_missing"] = sorted(expected - existing)
        info["schema_initialized"] = expected <= existing
        info["migrations_pending"] = pending_migrations(eng)
        if info["schema_initialized"]:
            info["active_rules"] = _count_active_rules(eng)
    except SQLAlchemyError as e:
        logger.warning("Health DB check failed: %s", e)
        info["error"] = str(e)
    return info


@router.get("/health")
def health() -> HealthResponse:
    return HealthResponse(status="ok", environment=get_settings().environment)


@router.get("/health/db", dependencies=[Depends(get_api_key)])
def health_db() -> DbInfoDict:
    return get_db_info()
