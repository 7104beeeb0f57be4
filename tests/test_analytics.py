"""Unit tests for windowed analytics."""
from datetime import timedelta

import pytest
from conftest import TODAY, make_record
from hifz.domain import Attendance, LearnerStatus
from hifz.services.analytics import (
    DECLINING,
    IMPROVING,
    STABLE,
    calculate_consistency_score,
    classify_trend,
    compute_analytics,
)


@pytest.fixture
def status():
    return LearnerStatus(
        learner_id="learner_1",
        already_memorized_units=[1, 2],
        completed_units=[],
        current_unit=3,
        current_unit_progress=0.0,
    )


class TestClassifyTrend:
    """Tests for classify_trend."""

    @pytest.mark.parametrize("recent,baseline,expected", [
        (12, 10, IMPROVING),
        (15, 10, IMPROVING),
        (11.9, 10, STABLE),
        (10, 10, STABLE),
        (8.1, 10, STABLE),
        (8, 10, DECLINING),
        (0, 10, DECLINING),
        (5, 0, STABLE),
    ])
    def test_ratio_thresholds(self, recent, baseline, expected):
        assert classify_trend(recent, baseline) == expected


class TestConsistencyScore:
    """Tests for calculate_consistency_score."""

    def test_weighted_blend(self):
        assert calculate_consistency_score(100, 0, 50, 100) == pytest.approx(90.0)

    def test_mistake_rate_capped_at_100(self):
        assert calculate_consistency_score(0, 150, 0, 0) == pytest.approx(0.0)


class TestComputeAnalytics:
    """Tests for compute_analytics."""

    def test_window_statistics(self, status):
        """Ten present days in a 30-day window, one with many mistakes."""
        records = [make_record(TODAY - timedelta(days=n)) for n in range(1, 10)]
        records.append(make_record(TODAY, new_mistakes=6))

        snapshot = compute_analytics(records, status, days=30, today=TODAY)

        assert snapshot.present_days == 10
        assert snapshot.recorded_days == 10
        assert snapshot.attendance_rate == pytest.approx(10 / 30 * 100)
        assert snapshot.total_new_lines == 100
        assert snapshot.total_mistakes == 6
        assert snapshot.mistake_rate == pytest.approx(6.0)
        assert snapshot.high_mistake_days == 1
        assert snapshot.condition_breakdown == {
            "excellent": 9, "good": 0, "medium": 0, "below_average": 1,
        }
        assert snapshot.performance_trend == STABLE
        assert snapshot.window.start == TODAY - timedelta(days=29)

    def test_records_outside_window_ignored(self, status):
        records = [make_record(TODAY), make_record(TODAY - timedelta(days=40), new_lines=500)]

        snapshot = compute_analytics(records, status, days=30, today=TODAY)

        assert snapshot.recorded_days == 1
        assert snapshot.total_new_lines == 10

    def test_absent_days_count_toward_attendance_only(self, status):
        records = [make_record(TODAY - timedelta(days=n)) for n in range(3)]
        records.append(make_record(TODAY - timedelta(days=3), attendance=Attendance.ABSENT))

        snapshot = compute_analytics(records, status, days=4, today=TODAY)

        assert snapshot.attendance_rate == pytest.approx(75.0)
        assert snapshot.average_lines_per_day == pytest.approx(10.0)
        assert snapshot.rated_days == 3

    def test_recent_pace_improving(self, status):
        """A faster last week against the window average reads as improving."""
        records = [make_record(TODAY - timedelta(days=n), new_lines=5) for n in range(7, 21)]
        records += [make_record(TODAY - timedelta(days=n), new_lines=20) for n in range(7)]

        snapshot = compute_analytics(records, status, days=30, today=TODAY)

        assert snapshot.recent_average_lines == pytest.approx(20.0)
        assert snapshot.performance_trend == IMPROVING

    def test_empty_records(self, status):
        snapshot = compute_analytics([], status, days=30, today=TODAY)

        assert snapshot.present_days == 0
        assert snapshot.attendance_rate == 0.0
        assert snapshot.mistake_rate == 0.0
        assert snapshot.excellent_ratio == 0.0
        assert snapshot.performance_trend == STABLE
        assert not snapshot.projection.has_estimate

    def test_milestones_and_dict(self, status):
        data = compute_analytics([make_record(TODAY)], status, days=7, today=TODAY).to_dict()

        assert data["period"]["window_days"] == 7
        assert data["milestones"]["next_milestone"]["units"] == 5
        assert data["completion"]["total_memorized_units"] == 2.0
        assert set(data["performance"]["condition_breakdown"]) == {"excellent", "good", "medium", "below_average"}
