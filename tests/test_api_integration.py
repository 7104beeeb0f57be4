"""Integration tests for API endpoints."""
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from hifz.config import settings
from hifz.main import app
from hifz.db.database import Base, get_db
from hifz.db.models import Notification
from hifz.rate_limit import limiter


@pytest.fixture(scope="function")
def session_factory():
    """In-memory database shared across the request threads of one test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False)
    engine.dispose()


@pytest.fixture(scope="function")
def test_client(session_factory):
    """Create a test client with in-memory database."""
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    limiter.reset()

    client = TestClient(app)

    yield client

    app.dependency_overrides.clear()


def day(offset=0):
    return (date.today() - timedelta(days=offset)).isoformat()


def record_body(offset=0, **overrides):
    body = {
        "record_date": day(offset),
        "attendance": "PRESENT",
        "new_lesson": "Al-Baqarah 1-10",
        "new_lines": 10,
        "new_mistakes": 0,
        "recent_review_mistakes": 0,
        "older_review_mistakes": 0,
    }
    body.update(overrides)
    return body


@pytest.fixture
def learner(test_client):
    response = test_client.post("/api/learners/s1/enroll", json={"already_memorized_units": [1, 2], "starting_unit": 3})
    assert response.status_code == 201
    return "s1"


class TestHealth:
    """Tests for health endpoints."""

    def test_health(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        assert response.json()["database"] == "connected"

    def test_readiness(self, test_client):
        assert test_client.get("/readiness").json()["status"] == "ready"


class TestEnrollEndpoint:
    """Tests for POST /api/learners/{id}/enroll."""

    def test_enroll(self, test_client):
        response = test_client.post("/api/learners/s1/enroll", json={"already_memorized_units": [1, 2], "starting_unit": 3})

        assert response.status_code == 201
        status = response.json()["status"]
        assert status["already_memorized_units"] == [1, 2]
        assert status["completion_percentage"] == 6.66
        assert status["current_unit"] == 3

    def test_enroll_twice_conflicts(self, test_client, learner):
        response = test_client.post(f"/api/learners/{learner}/enroll", json={})

        assert response.status_code == 409
        assert response.json()["error"] == "DuplicateRecordError"

    def test_enroll_rejects_bad_units(self, test_client):
        response = test_client.post("/api/learners/s2/enroll", json={"already_memorized_units": [31]})

        assert response.status_code == 422
        assert response.json()["field"] == "already_memorized_units"


class TestRecordEndpoints:
    """Tests for daily record endpoints."""

    def test_submit_record(self, test_client, learner):
        response = test_client.post(f"/api/learners/{learner}/records", json=record_body())

        assert response.status_code == 201
        data = response.json()
        assert data["record"]["condition"] == "Excellent"
        assert data["record"]["total_mistakes"] == 0
        assert data["status"]["total_active_days"] == 1
        assert data["status"]["average_lines_per_day"] == 10.0
        assert "has_poor_performance" in data["weekly_performance"]

    def test_duplicate_date_conflicts(self, test_client, learner):
        test_client.post(f"/api/learners/{learner}/records", json=record_body(new_lines=12))

        response = test_client.post(f"/api/learners/{learner}/records", json=record_body(new_lines=3))

        assert response.status_code == 409
        records = test_client.get(f"/api/learners/{learner}/records").json()["records"]
        assert [r["new_lines"] for r in records] == [12]

    def test_present_without_lines_rejected(self, test_client, learner):
        response = test_client.post(f"/api/learners/{learner}/records", json=record_body(new_lines=None))

        assert response.status_code == 422
        assert response.json()["field"] == "new_lines"

    def test_unknown_attendance_rejected(self, test_client, learner):
        response = test_client.post(f"/api/learners/{learner}/records", json=record_body(attendance="SICK"))
        assert response.status_code == 422

    def test_unknown_learner(self, test_client):
        response = test_client.post("/api/learners/nobody/records", json=record_body())
        assert response.status_code == 404

    def test_unit_completion_via_record(self, test_client, session_factory, learner):
        """100% on the current para advances and stores a notification."""
        response = test_client.post(
            f"/api/learners/{learner}/records",
            json=record_body(current_unit=3, current_unit_progress=100)
        )

        data = response.json()
        assert data["completed_unit"] == 3
        assert data["status"]["current_unit"] == 4
        assert data["status"]["completed_units"] == [3]

        db = session_factory()
        try:
            assert [n.event_type for n in db.query(Notification).all()] == ["unit_completed"]
        finally:
            db.close()

    def test_list_records_in_range(self, test_client, learner):
        for offset in range(3):
            test_client.post(f"/api/learners/{learner}/records", json=record_body(offset))

        response = test_client.get(
            f"/api/learners/{learner}/records", params={"start": day(1), "end": day(0)}
        )

        assert response.status_code == 200
        assert response.json()["count"] == 2

    def test_list_records_needs_both_bounds(self, test_client, learner):
        response = test_client.get(f"/api/learners/{learner}/records", params={"start": day(1)})
        assert response.status_code == 422

    def test_update_record(self, test_client, learner):
        test_client.post(f"/api/learners/{learner}/records", json=record_body())

        response = test_client.patch(f"/api/learners/{learner}/records/{day()}", json={"new_mistakes": 3})

        assert response.status_code == 200
        data = response.json()
        assert data["record"]["condition"] == "Below Average"
        assert data["status"]["total_mistakes"] == 3

    def test_update_missing_record(self, test_client, learner):
        response = test_client.patch(f"/api/learners/{learner}/records/{day()}", json={"new_mistakes": 1})
        assert response.status_code == 404

    def test_submission_rate_limited(self, test_client, learner):
        """Record submissions beyond the per-IP limit are refused."""
        allowed = int(settings.RECORD_SUBMISSION_RATE_LIMIT.split("/")[0])
        for offset in range(allowed):
            response = test_client.post(f"/api/learners/{learner}/records", json=record_body(offset))
            assert response.status_code == 201

        response = test_client.post(f"/api/learners/{learner}/records", json=record_body(allowed))
        assert response.status_code == 429


class TestPositionEndpoint:
    """Tests for PUT /api/learners/{id}/position."""

    def test_complete_para(self, test_client, learner):
        response = test_client.put(
            f"/api/learners/{learner}/position", json={"current_unit": 3, "current_unit_progress": 100}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["completed_unit"] == 3
        assert data["status"]["current_unit"] == 4

    def test_out_of_range(self, test_client, learner):
        response = test_client.put(
            f"/api/learners/{learner}/position", json={"current_unit": 3, "current_unit_progress": 120}
        )
        assert response.status_code == 422


class TestReportEndpoints:
    """Tests for status, analytics, projection and weekly endpoints."""

    def test_status(self, test_client, learner):
        response = test_client.get(f"/api/learners/{learner}/status")

        assert response.status_code == 200
        assert response.json()["status"]["learner_id"] == learner

    def test_status_unknown_learner(self, test_client):
        assert test_client.get("/api/learners/nobody/status").status_code == 404

    def test_analytics(self, test_client, learner):
        for offset in range(5):
            test_client.post(f"/api/learners/{learner}/records", json=record_body(offset))

        response = test_client.get(f"/api/learners/{learner}/analytics", params={"days": 7})

        assert response.status_code == 200
        data = response.json()
        assert data["analytics"]["attendance"]["present_days"] == 5
        assert data["analytics"]["period"]["window_days"] == 7
        assert isinstance(data["alerts"], list)

    def test_analytics_rejects_zero_days(self, test_client, learner):
        response = test_client.get(f"/api/learners/{learner}/analytics", params={"days": 0})
        assert response.status_code == 422

    def test_projection(self, test_client, learner):
        for offset in range(3):
            test_client.post(f"/api/learners/{learner}/records", json=record_body(offset))

        target = (date.today() + timedelta(days=1000)).isoformat()
        response = test_client.get(f"/api/learners/{learner}/projection", params={"target_date": target})

        assert response.status_code == 200
        data = response.json()
        assert data["projection"]["estimated_days_to_complete"] == 68
        assert data["required_pace"]["feasible"] is True

    def test_weekly(self, test_client, learner):
        response = test_client.get(f"/api/learners/{learner}/weekly")

        assert response.status_code == 200
        data = response.json()
        assert data["recorded_days"] == 0
        assert data["has_poor_performance"] is False
