"""Settings for the unlock rules engine, read from UNLOCK_*, DB_*, ENGINE_* and API_* env vars.

The rule and grant tables live in PostgreSQL when DATABASE_URL is set, otherwise in a
local SQLite file (DB_SQLITE_PATH, default data/unlock.db).
"""

import re
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT: Path = Path(__file__).resolve().parent
DEFAULT_SQLITE_PATH: str = "data/unlock.db"

for _env_file in (PROJECT_ROOT / ".env", PROJECT_ROOT.parent / ".env"):
    if _env_file.exists():
        load_dotenv(_env_file, override=False)


def _section(prefix: str) -> SettingsConfigDict:
    return SettingsConfigDict(
        env_prefix=prefix,
        env_file=(str(PROJECT_ROOT / ".env"), ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )


def redact_dsn(dsn: str) -> str:
    """Mask the password part of a database URL."""
    return re.sub(r":([^:@/]+)@", r":***@", dsn) if dsn else dsn


class DatabaseSettings(BaseSettings):
    model_config = _section("DB_")

    database_url: str | None = Field(
        default=None,
        description="PostgreSQL DSN for the rule store and usage ledger",
        validation_alias="DATABASE_URL",
    )
    sqlite_path: str = Field(default=DEFAULT_SQLITE_PATH)
    pool_size: int = Field(default=5, ge=1)
    pool_timeout: int = Field(default=30, ge=1)
    pool_recycle: int = Field(default=1800)

    @property
    def is_postgres(self) -> bool:
        return bool((self.database_url or "").strip())

    @property
    def backend(self) -> str:
        return "postgres" if self.is_postgres else "sqlite"

    @property
    def sqlite_file(self) -> Path:
        path: Path = Path(self.sqlite_path.strip() or DEFAULT_SQLITE_PATH)
        return path if path.is_absolute() else (PROJECT_ROOT / path).resolve()

    @property
    def url(self) -> str:
        if self.is_postgres:
            return (self.database_url or "").strip()
        self.sqlite_file.parent.mkdir(parents=True, exist_ok=True)
        return f"sqlite:///{self.sqlite_file.as_posix()}"

    def location(self) -> str:
        """DSN (password masked) or SQLite file path, safe to log or expose."""
        if self.is_postgres:
            return redact_dsn((self.database_url or "").strip())
        return self.sqlite_file.as_posix()


class EngineSettings(BaseSettings):
    """Knobs for evaluation, limit enforcement and grant recording."""

    model_config = _section("ENGINE_")

    throttle_seconds: int = Field(default=60, ge=0, description="Delay before re-evaluation")
    restrictions_ttl_hours: int = Field(default=24, ge=0)
    excessive_unlock_minutes: int = Field(default=480, ge=0)
    enforce_limits: bool = Field(default=True)
    record_grants: bool = Field(default=True)


class ApiSettings(BaseSettings):
    model_config = _section("API_")

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)
    reload: bool = Field(default=False)
    cors_origins: list[str] = Field(
        default_factory=lambda: ["http://localhost:5173", "http://127.0.0.1:5173"]
    )


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="UNLOCK_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    api_key: str | None = Field(default=None, description="Required on rule and approval writes")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    engine: EngineSettings = Field(default_factory=EngineSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)


@lru_cache
def get_settings() -> Settings:
    return Settings()
