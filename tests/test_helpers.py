"""Tests for unlock.services._helpers."""

import json
from datetime import UTC, date, datetime, timedelta, timezone

from unlock.services._helpers import (
    as_utc,
    dump_json,
    load_json,
    load_json_list,
    new_id,
    now_iso,
    parse_datetime,
    pick,
    to_iso,
)


def test_new_id_uniqueness() -> None:
    ids: set[str] = {new_id() for _ in range(100)}
    assert len(ids) == 100


def test_now_iso_format() -> None:
    ts: str = now_iso()
    assert "T" in ts
    assert ts.endswith("+00:00")


def test_dump_load_json_roundtrip() -> None:
    data: dict[str, object] = {"key": "value", "nested": [1, 2, 3]}
    raw: str = dump_json(data)
    assert isinstance(raw, str)
    assert load_json(raw) == data


def test_load_json_none() -> None:
    assert load_json(None) is None
    assert load_json("") is None


def test_load_json_non_object() -> None:
    assert load_json("[1, 2]") is None


def test_load_json_list() -> None:
    assert load_json_list('["a", "b"]') == ["a", "b"]
    assert load_json_list(None) == []
    assert load_json_list('{"a": 1}') == []


def test_dump_json_handles_non_serializable() -> None:
    raw: str = dump_json({"d": date(2026, 1, 1)})
    parsed: dict[str, object] = json.loads(raw)
    assert parsed["d"] == "2026-01-01"


class TestDatetimes:
    def test_parse_z_suffix(self) -> None:
        parsed: datetime | None = parse_datetime("2026-03-11T15:00:00Z")
        assert parsed == datetime(2026, 3, 11, 15, 0, tzinfo=UTC)

    def test_parse_passes_datetime_through(self) -> None:
        dt: datetime = datetime(2026, 1, 1)
        assert parse_datetime(dt) is dt

    def test_parse_garbage_is_none(self) -> None:
        assert parse_datetime("not a date") is None
        assert parse_datetime("") is None
        assert parse_datetime(42) is None

    def test_as_utc_naive_is_treated_as_utc(self) -> None:
        assert as_utc(datetime(2026, 1, 1, 8)) == datetime(2026, 1, 1, 8, tzinfo=UTC)

    def test_as_utc_converts_offsets(self) -> None:
        aest: timezone = timezone(timedelta(hours=10))
        converted: datetime = as_utc(datetime(2026, 1, 1, 10, tzinfo=aest))
        assert converted == datetime(2026, 1, 1, 0, tzinfo=UTC)
        assert converted.tzinfo == UTC

    def test_to_iso_is_utc(self) -> None:
        assert to_iso(datetime(2026, 1, 1)) == "2026-01-01T00:00:00+00:00"


class TestPick:
    def test_snake_wins(self) -> None:
        assert pick({"min_score": 1, "minScore": 2}, "min_score", "minScore") == 1

    def test_camel_fallback(self) -> None:
        assert pick({"minScore": 2}, "min_score", "minScore") == 2

    def test_none_values_fall_through(self) -> None:
        assert pick({"min_score": None, "minScore": 3}, "min_score", "minScore") == 3
        assert pick({}, "min_score", "minScore", 7) == 7

    def test_falsy_values_are_kept(self) -> None:
        assert pick({"minScore": 0}, "min_score", "minScore", 50) == 0
