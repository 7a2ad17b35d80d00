"""Shared SQLAlchemy engine and sessions for the rule store and usage ledger."""

import logging
from collections.abc import Generator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from config import DatabaseSettings, get_settings

logger = logging.getLogger(__name__)

_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

SQLITE_PRAGMAS: tuple[str, ...] = (
    "PRAGMA foreign_keys=ON",
    "PRAGMA journal_mode=WAL",
    "PRAGMA busy_timeout=30000",
)


def _apply_sqlite_pragmas(dbapi_conn: Any, _record: Any) -> None:
    cur = dbapi_conn.cursor()
    for pragma in SQLITE_PRAGMAS:
        cur.execute(pragma)
    cur.close()


def _engine_options(db: DatabaseSettings, echo: bool) -> dict[str, Any]:
    if not db.is_postgres:
        return {"echo": echo}
    return {
        "echo": echo,
        "pool_size": db.pool_size,
        "pool_timeout": db.pool_timeout,
        "pool_recycle": db.pool_recycle,
        "pool_pre_ping": True,
    }


def get_engine() -> Engine:
    """Build the engine on first use; later calls share it."""
    global _engine

    if _engine is None:
        settings = get_settings()
        db: DatabaseSettings = settings.database
        engine: Engine = create_engine(db.url, **_engine_options(db, settings.debug))
        if not db.is_postgres:
            event.listen(engine, "connect", _apply_sqlite_pragmas)
        logger.info("Database engine created: %s @ %s", db.backend, db.location())
        _engine = engine

    return _engine


def init_database() -> list[str]:
    """Create the unlock tables if missing. Returns the table names now present."""
    from db.models import Base

    engine = get_engine()
    Base.metadata.create_all(engine)
    return sorted(inspect(engine).get_table_names())


def get_session_factory() -> sessionmaker[Session]:
    global _session_factory

    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(),
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
        )
    return _session_factory


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Session committed on success and rolled back if the block raises."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, shared by its services."""
    with get_session() as session:
        yield session

