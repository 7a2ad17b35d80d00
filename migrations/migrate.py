"""Simple SQL migration runner.

Reads .sql files from the migrations/ directory in lexicographic order,
tracks applied migrations in a _migrations table, and skips already-applied ones.
Runs through the shared SQLAlchemy engine so SQLite and PostgreSQL both work.

Usage:
    python -m migrations.migrate                # apply pending migrations
    python -m migrations.migrate --dry-run      # show what would be applied
    python -m migrations.migrate --status       # show migration status
"""

import argparse
import logging
from datetime import UTC, datetime
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Connection, Engine

from db.connection import get_engine

MIGRATIONS_DIR: Path = Path(__file__).resolve().parent

logger: logging.Logger = logging.getLogger(__name__)


def _ensure_tracking_table(conn: Connection) -> None:
    conn.execute(
        text(
            "CREATE TABLE IF NOT EXISTS _migrations ("
            "  filename TEXT PRIMARY KEY,"
            "  applied_at TEXT NOT NULL"
            ")"
        )
    )


def _get_applied(conn: Connection) -> set[str]:
    rows = conn.execute(text("SELECT filename FROM _migrations")).fetchall()
    return {r[0] for r in rows}


def _get_pending(applied: set[str]) -> list[Path]:
    sql_files: list[Path] = sorted(MIGRATIONS_DIR.glob("*.sql"))
    return [f for f in sql_files if f.name not in applied]


def _statements(sql: str) -> list[str]:
    lines: list[str] = [ln for ln in sql.splitlines() if not ln.strip().startswith("--")]
    return [s.strip() for s in "\n".join(lines).split(";") if s.strip()]


def migrate(dry_run: bool = False, engine: Engine | None = None) -> list[str]:
    """Apply pending migrations. Returns the filenames applied (or that would be)."""
    eng: Engine = engine or get_engine()
    applied_now: list[str] = []

    with eng.begin() as conn:
        _ensure_tracking_table(conn)
        pending: list[Path] = _get_pending(_get_applied(conn))

    if not pending:
        logger.info("No pending migrations.")
        return applied_now

    for migration in pending:
        logger.info("%sApplying %s", "[DRY RUN] " if dry_run else "", migration.name)
        applied_now.append(migration.name)
        if dry_run:
            continue

        with eng.begin() as conn:
            for stmt in _statements(migration.read_text()):
                conn.exec_driver_sql(stmt)
            conn.execute(
                text("INSERT INTO _migrations (filename, applied_at) VALUES (:f, :t)"),
                {"f": migration.name, "t": datetime.now(UTC).isoformat()},
            )

    return applied_now


def pending_migrations(engine: Engine | None = None) -> list[str]:
    """Filenames not yet applied to the database."""
    eng: Engine = engine or get_engine()
    with eng.begin() as conn:
        _ensure_tracking_table(conn)
        return [p.name for p in _get_pending(_get_applied(conn))]


def status(engine: Engine | None = None) -> None:
    eng: Engine = engine or get_engine()
    with eng.begin() as conn:
        _ensure_tracking_table(conn)
        applied: set[str] = _get_applied(conn)
    pending: list[Path] = _get_pending(applied)

    print(f"Database: {eng.url.render_as_string(hide_password=True)}")
    print(f"Applied:  {len(applied)}")
    for name in sorted(applied):
        print(f"  [x] {name}")
    print(f"Pending:  {len(pending)}")
    for p in pending:
        print(f"  [ ] {p.name}")


def main() -> None:
    parser: argparse.ArgumentParser = argparse.ArgumentParser(description="SQL migration runner")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be applied")
    parser.add_argument("--status", action="store_true", help="Show migration status")
    args: argparse.Namespace = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(message)s")
    if args.status:
        status()
    else:
        migrate(dry_run=args.dry_run)


if __name__ == "__main__":
    main()
