"""Shared fixtures: in-memory SQLite DB with all tables, a fixed clock and a sample context."""

from collections.abc import Generator
from datetime import UTC, datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base

# Wednesday afternoon, UTC.
FIXED_NOW: datetime = datetime(2026, 3, 11, 15, 30, tzinfo=UTC)


@pytest.fixture()
def engine() -> Generator[Engine, None, None]:
    eng: Engine = create_engine("sqlite:///:memory:", echo=False)
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture()
def session(engine: Engine) -> Generator[Session, None, None]:
    factory: sessionmaker[Session] = sessionmaker(
        bind=engine,
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
    )
    sess: Session = factory()
    yield sess
    sess.rollback()
    sess.close()


@pytest.fixture()
def now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def context_data() -> dict[str, object]:
    """A camelCase evaluation context as an upstream grader would send it."""
    return {
        "userId": "student-1",
        "attemptId": "attempt-1",
        "score": 95,
        "subject": "mathematics",
        "yearLevel": 5,
        "exerciseType": "homework",
        "difficulty": "medium",
        "timeTaken": 120,
        "completedAt": "2026-03-11T15:00:00Z",
        "isCorrect": True,
        "currentStreak": 3,
        "recentPerformance": [],
        "weeklyStats": {
            "totalAttempts": 12,
            "averageScore": 81.5,
            "subjectBreakdown": {"mathematics": {"attempts": 7, "averageScore": 88}},
            "streakDays": 4,
        },
    }
