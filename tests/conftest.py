"""Pytest fixtures for testing."""
from datetime import date, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from hifz.db.database import Base
from hifz.db.repository import SqlProgressRepository
from hifz.domain import Attendance, DailyRecord, RecordSubmission
from hifz.services.daily_record import derive_condition
from hifz.services.notifications import Notifier
from hifz.services.progress_service import ProgressService

# Monday; the previous Sunday-Saturday week is 2026-10-11 .. 2026-10-17
TODAY = date(2026, 10, 19)
LAST_WEEK_SUNDAY = date(2026, 10, 11)


class RecordingNotifier(Notifier):
    """Notifier that keeps emitted events in memory."""

    def __init__(self):
        self.events = []

    def emit(self, event_type, payload):
        self.events.append((event_type, dict(payload)))

    def of_type(self, event_type):
        return [payload for kind, payload in self.events if kind == event_type]


class FailingNotifier(Notifier):
    """Notifier whose delivery always fails."""

    def emit(self, event_type, payload):
        raise RuntimeError("push gateway unavailable")


@pytest.fixture(scope="function")
def test_db():
    """Create a test database for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)

    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    db = SessionLocal()

    yield db

    db.close()
    engine.dispose()


@pytest.fixture
def repository(test_db):
    """SQLAlchemy-backed repository over the test database."""
    return SqlProgressRepository(test_db)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def service(repository, notifier):
    """ProgressService with a fixed clock."""
    return ProgressService(repository, notifier, clock=lambda: TODAY)


@pytest.fixture
def enrolled(service):
    """Learner enrolled at unit 1 with nothing memorized."""
    service.enroll("learner_1", already_memorized_units=[], starting_unit=1, joining_date=TODAY - timedelta(days=60))
    return "learner_1"


def make_submission(record_date, **overrides):
    """Present-day submission with 10 clean lines unless overridden."""
    values = {
        "record_date": record_date,
        "attendance": Attendance.PRESENT,
        "new_lesson": "Al-Baqarah 1-10",
        "new_lines": 10,
        "new_mistakes": 0,
        "recent_review_mistakes": 0,
        "older_review_mistakes": 0,
    }
    values.update(overrides)
    return RecordSubmission(**values)


def make_record(record_date, attendance=Attendance.PRESENT, new_lines=10, new_mistakes=0,
                recent_review_mistakes=0, older_review_mistakes=0, condition=None,
                learner_id="learner_1", current_unit=1):
    """Stored-record value for the pure calculation tests."""
    present = attendance == Attendance.PRESENT
    if not present:
        new_lines = new_mistakes = recent_review_mistakes = older_review_mistakes = 0
    if condition is None:
        condition = derive_condition(attendance, new_mistakes, recent_review_mistakes, older_review_mistakes)
    return DailyRecord(
        learner_id=learner_id,
        record_date=record_date,
        attendance=attendance,
        condition=condition,
        current_unit=current_unit,
        current_unit_progress=0.0,
        new_lines=new_lines,
        new_mistakes=new_mistakes,
        recent_review_mistakes=recent_review_mistakes,
        older_review_mistakes=older_review_mistakes,
        total_mistakes=new_mistakes + recent_review_mistakes + older_review_mistakes,
    )

