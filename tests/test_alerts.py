"""Unit tests for the alert rules."""
from conftest import TODAY
from hifz.services.alerts import ALL_GOOD, Severity, build_alert_report, generate_alerts
from hifz.services.analytics import STABLE, AnalyticsSnapshot
from hifz.services.completion import calculate_completion, get_milestones
from hifz.services.dates import DateRange
from hifz.services.projection import estimate_completion


def make_snapshot(already=(1, 2), completed=(), **overrides):
    """Healthy 30-day snapshot; override fields to trip individual rules."""
    completion = calculate_completion(list(already), list(completed), current_unit=10, current_unit_progress=0)
    values = {
        "learner_id": "learner_1",
        "window": DateRange.last_n_days(30, TODAY),
        "recorded_days": 28,
        "present_days": 27,
        "attendance_rate": 90.0,
        "total_new_lines": 270,
        "total_mistakes": 5,
        "average_lines_per_day": 10.0,
        "average_mistakes_per_day": 0.2,
        "mistake_rate": 2.0,
        "high_mistake_days": 0,
        "condition_breakdown": {"excellent": 20, "good": 7, "medium": 0, "below_average": 0},
        "consistency_score": 80.0,
        "recent_average_lines": 10.0,
        "performance_trend": STABLE,
        "completion": completion,
        "projection": estimate_completion(completion.remaining_units, 10.0, today=TODAY),
        "milestones": get_milestones(completion.total_memorized_units),
    }
    values.update(overrides)
    return AnalyticsSnapshot(**values)


def alert_types(snapshot):
    return [a.type for a in generate_alerts(snapshot)]


class TestAlertRules:
    """Tests for the individual alert rules."""

    def test_healthy_snapshot_has_no_alerts(self):
        report = build_alert_report(make_snapshot())

        assert report["alerts"] == []
        assert report["all_good"] == ALL_GOOD

    def test_critical_attendance(self):
        types = alert_types(make_snapshot(attendance_rate=40.0, present_days=12))

        assert "CRITICAL_ATTENDANCE" in types
        assert "LOW_ATTENDANCE" not in types

    def test_no_attendance_alert_without_present_days(self):
        """Critical attendance only fires once the learner has been present."""
        types = alert_types(make_snapshot(
            attendance_rate=0.0, present_days=0,
            condition_breakdown={"excellent": 0, "good": 0, "medium": 0, "below_average": 0},
        ))
        assert "CRITICAL_ATTENDANCE" not in types

    def test_low_attendance_warning(self):
        types = alert_types(make_snapshot(attendance_rate=60.0))

        assert "LOW_ATTENDANCE" in types
        assert "CRITICAL_ATTENDANCE" not in types

    def test_high_mistake_rate(self):
        types = alert_types(make_snapshot(mistake_rate=20.0))

        assert "HIGH_MISTAKE_RATE" in types
        assert "ELEVATED_MISTAKE_RATE" not in types

    def test_elevated_mistake_rate_bounds(self):
        assert "ELEVATED_MISTAKE_RATE" in alert_types(make_snapshot(mistake_rate=15.0))
        assert "ELEVATED_MISTAKE_RATE" in alert_types(make_snapshot(mistake_rate=12.0))
        assert "ELEVATED_MISTAKE_RATE" not in alert_types(make_snapshot(mistake_rate=10.0))

    def test_no_units_memorized(self):
        types = alert_types(make_snapshot(already=(), present_days=5))
        assert "NO_UNITS_MEMORIZED" in types

    def test_no_units_needs_enough_present_days(self):
        types = alert_types(make_snapshot(already=(), present_days=4))
        assert "NO_UNITS_MEMORIZED" not in types

    def test_low_pace(self):
        alerts = generate_alerts(make_snapshot(average_lines_per_day=2.5, present_days=6))

        low_pace = [a for a in alerts if a.type == "LOW_PACE"]
        assert len(low_pace) == 1
        assert low_pace[0].severity == Severity.INFO

    def test_frequent_below_average_days(self):
        breakdown = {"excellent": 4, "good": 2, "medium": 0, "below_average": 4}
        assert "FREQUENT_BELOW_AVERAGE" in alert_types(make_snapshot(condition_breakdown=breakdown))

    def test_below_average_ratio_at_threshold(self):
        """Exactly 30% Below Average days does not fire."""
        breakdown = {"excellent": 5, "good": 2, "medium": 0, "below_average": 3}
        assert "FREQUENT_BELOW_AVERAGE" not in alert_types(make_snapshot(
            condition_breakdown=breakdown, present_days=10,
        ))

    def test_overlapping_units(self):
        types = alert_types(make_snapshot(already=(1, 2, 3), completed=(3,)))
        assert "OVERLAPPING_UNITS" in types

    def test_few_excellent_days(self):
        breakdown = {"excellent": 2, "good": 9, "medium": 0, "below_average": 0}
        assert "FEW_EXCELLENT_DAYS" in alert_types(make_snapshot(present_days=11, condition_breakdown=breakdown))

    def test_few_excellent_days_needs_more_than_ten_present(self):
        breakdown = {"excellent": 2, "good": 8, "medium": 0, "below_average": 0}
        assert "FEW_EXCELLENT_DAYS" not in alert_types(make_snapshot(present_days=10, condition_breakdown=breakdown))


class TestAlertOrdering:
    """Tests for alert ordering and the report shape."""

    def test_sorted_by_severity(self):
        """Critical alerts come first, then warnings, then info."""
        snapshot = make_snapshot(
            already=(1, 2, 3), completed=(3,),
            attendance_rate=60.0,
            mistake_rate=20.0,
        )
        alerts = generate_alerts(snapshot)

        assert [a.type for a in alerts] == ["HIGH_MISTAKE_RATE", "LOW_ATTENDANCE", "OVERLAPPING_UNITS"]
        assert [a.severity for a in alerts] == [Severity.CRITICAL, Severity.WARNING, Severity.INFO]

    def test_report_without_all_good_when_alerts_fire(self):
        report = build_alert_report(make_snapshot(mistake_rate=20.0))

        assert report["all_good"] is None
        assert report["alerts"][0]["severity"] == "critical"
        assert report["alerts"][0]["recommendation"]
