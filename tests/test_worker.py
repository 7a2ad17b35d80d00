"""Tests for worker.evaluate_attempt."""

import json
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from db.models import UnlockGrants
from unlock.services.rule_store import SqlRuleStore
from worker import evaluate_attempt


@pytest.fixture()
def context_file(tmp_path: Path, context_data: dict[str, object]) -> Path:
    path: Path = tmp_path / "attempt.json"
    path.write_text(json.dumps(context_data), encoding="utf-8")
    return path


@pytest.fixture()
def seeded(session: Session, monkeypatch: pytest.MonkeyPatch) -> Session:
    SqlRuleStore(session).create_rule(
        {
            "id": "maths-90",
            "name": "Maths excellence",
            "criteria": {"subject": ["mathematics"], "minScore": 90},
            "action": {"unlockMinutes": 30},
        }
    )

    @contextmanager
    def _test_session() -> Generator[Session, None, None]:
        yield session

    monkeypatch.setattr(evaluate_attempt, "get_session", _test_session)
    return session


def _grant_count(session: Session) -> int:
    return session.scalar(select(func.count()).select_from(UnlockGrants)) or 0


def test_records_grant(seeded: Session, context_file: Path) -> None:
    assert evaluate_attempt.main(["--context", str(context_file)]) == 0
    assert _grant_count(seeded) == 1


def test_dry_run_records_nothing(seeded: Session, context_file: Path) -> None:
    assert evaluate_attempt.main(["--context", str(context_file), "--dry-run"]) == 0
    assert _grant_count(seeded) == 0


def test_json_output(
    seeded: Session, context_file: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    assert evaluate_attempt.main(["--context", str(context_file), "--json", "--dry-run"]) == 0
    out: str = capsys.readouterr().out
    data = json.loads(out[out.index("{\n"):])
    assert data["totalUnlockMinutes"] == 30


def test_rule_subset(seeded: Session, context_file: Path) -> None:
    assert evaluate_attempt.main(["--context", str(context_file), "--rule", "other"]) == 0
    assert _grant_count(seeded) == 0


def test_invalid_context(seeded: Session, tmp_path: Path) -> None:
    path: Path = tmp_path / "bad.json"
    path.write_text(json.dumps({"userId": "student-1", "score": 50}), encoding="utf-8")
    assert evaluate_attempt.main(["--context", str(path)]) == 2


def test_string_is_correct_rejected(
    seeded: Session, tmp_path: Path, context_data: dict[str, object]
) -> None:
    context_data["isCorrect"] = "false"
    path: Path = tmp_path / "stringly.json"
    path.write_text(json.dumps(context_data), encoding="utf-8")
    assert evaluate_attempt.main(["--context", str(path)]) == 2
    assert _grant_count(seeded) == 0
