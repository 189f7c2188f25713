"""Shared fixtures: an in-memory database per test and a small classroom."""

import sys
import os
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from coachboard.database import Base
from coachboard.ids import new_id
from coachboard.models import Student, Class, ClassEnrollment, Lesson, Insight


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def classroom(db):
    """One class of three students and one ten-question lesson."""
    period = Class(id=new_id(), name="Period 1", teacher_id="teacher-1")
    ada = Student(id=new_id(), name="Ada")
    ben = Student(id=new_id(), name="Ben")
    cleo = Student(id=new_id(), name="Cleo")
    lesson = Lesson(id=new_id(), title="Fractions", subject="math", prompt_count=10, class_id=period.id)
    db.add_all([period, ada, ben, cleo, lesson])
    db.flush()
    for student in (ada, ben, cleo):
        db.add(ClassEnrollment(id=new_id(), student_id=student.id, class_id=period.id))
    db.commit()
    return SimpleNamespace(
        class_=period,
        ada=ada,
        ben=ben,
        cleo=cleo,
        lesson=lesson,
        teacher_id="teacher-1",
    )


@pytest.fixture
def make_insight(db):
    """Insert an insight directly, bypassing the rules."""

    def _make(student_id, assignment_id=None, insight_type="check_in", priority="medium",
              status="pending_review", confidence=0.85, created_at=None, **fields):
        insight = Insight(
            id=new_id(),
            student_id=student_id,
            assignment_id=assignment_id,
            class_id=fields.pop("class_id", ""),
            insight_type=insight_type,
            priority=priority,
            confidence=confidence,
            summary=fields.pop("summary", f"{insight_type} insight"),
            status=status,
            created_at=created_at or datetime.now(timezone.utc),
            **fields,
        )
        insight.evidence = ["evidence"]
        insight.suggested_actions = ["do something"]
        db.add(insight)
        db.commit()
        return insight

    return _make


def days_ago(n: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=n)
