"""Shared utilities for the service layer."""

import json
from collections.abc import Mapping
from datetime import UTC, datetime
from uuid import uuid4

# Every JSON object column in this DB stores a dict.
JsonDict = dict[str, object]
Serializable = Mapping[str, object] | list[object]


def new_id() -> str:
    return str(uuid4())


def utc_now() -> datetime:
    return datetime.now(UTC)


def now_iso() -> str:
    return utc_now().isoformat()


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and normalise aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_iso(value: datetime) -> str:
    return as_utc(value).isoformat()


def parse_datetime(raw: object) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) or pass a datetime through.

    Anything unparseable becomes None so callers can treat it as "not set".
    """
    if isinstance(raw, datetime):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        return None
    text: str = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def pick(data: Mapping[str, object], snake: str, camel: str, default: object = None) -> object:
    """Read a value accepting both snake_case and camelCase keys."""
    if snake in data and data[snake] is not None:
        return data[snake]
    if camel in data and data[camel] is not None:
        return data[camel]
    return default


def load_json(raw: str | None) -> JsonDict | None:
    """Deserialize a JSON object TEXT column."""
    if not raw:
        return None
    result: object = json.loads(raw)
    if isinstance(result, dict):
        return dict(result)
    return None


def load_json_list(raw: str | None) -> list[object]:
    if not raw:
        return []
    result: object = json.loads(raw)
    return list(result) if isinstance(result, list) else []


def dump_json(obj: Serializable) -> str:
    return json.dumps(obj, default=str)
