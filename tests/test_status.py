"""Unit tests for the learner status aggregation."""
from datetime import datetime, timedelta

from conftest import TODAY, make_record
from hifz.domain import Attendance, LearnerStatus
from hifz.services.status import recompute_status


def _status(**overrides):
    values = {
        "learner_id": "learner_1",
        "already_memorized_units": [1, 2],
        "completed_units": [],
        "current_unit": 3,
        "current_unit_progress": 0.0,
    }
    values.update(overrides)
    return LearnerStatus(**values)


class TestRecomputeStatus:
    """Tests for recompute_status."""

    def test_averages_use_present_days_only(self):
        """Absent days should not dilute pace or mistake figures."""
        records = [make_record(TODAY - timedelta(days=n)) for n in range(10)]
        records += [make_record(TODAY - timedelta(days=n), attendance=Attendance.ABSENT) for n in range(10, 12)]

        status = recompute_status(_status(), records, today=TODAY)

        assert status.total_active_days == 10
        assert status.total_new_lines == 100
        assert status.average_lines_per_day == 10.0
        assert status.average_mistakes_per_day == 0.0
        assert status.mistake_rate == 0.0

    def test_mistake_rate(self):
        records = [make_record(TODAY - timedelta(days=n), new_lines=20) for n in range(4)]
        records.append(make_record(TODAY - timedelta(days=4), new_lines=20, new_mistakes=2, older_review_mistakes=3))

        status = recompute_status(_status(), records, today=TODAY)

        assert status.total_mistakes == 5
        assert status.mistake_rate == 5.0
        assert status.average_mistakes_per_day == 1.0

    def test_completion_and_projection(self):
        """Status carries completion figures and the buffered estimate."""
        records = [make_record(TODAY - timedelta(days=n)) for n in range(10)]

        status = recompute_status(_status(), records, today=TODAY)

        assert status.total_memorized_units == 2.0
        assert status.total_lines_memorized == 644
        assert status.completion_percentage == 6.66
        # 28 units * 20 lines / 10 per day = 56 days, * 1.2 = 67.2 -> 68
        assert status.estimated_days_to_complete == 68
        assert status.estimated_completion_date == TODAY + timedelta(days=68)

    def test_empty_history(self):
        status = recompute_status(_status(), [], today=TODAY)

        assert status.total_active_days == 0
        assert status.average_lines_per_day == 0.0
        assert status.mistake_rate == 0.0
        assert status.estimated_days_to_complete is None
        assert status.estimated_completion_date is None

    def test_last_updated_and_input_untouched(self):
        original = _status()
        now = datetime(2026, 10, 19, 8, 30)

        status = recompute_status(original, [make_record(TODAY)], today=TODAY, now=now)

        assert status.last_updated == now
        assert status is not original
        assert original.total_active_days == 0
        assert original.last_updated is None
