"""Windowed analytics over a learner's daily records."""
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Optional

from hifz.constants import (
    DEFAULT_ANALYTICS_WINDOW_DAYS,
    HIGH_MISTAKE_DAY_THRESHOLD,
    TREND_RECENT_DAYS,
    TREND_IMPROVING_RATIO,
    TREND_DECLINING_RATIO,
    CONSISTENCY_ATTENDANCE_WEIGHT,
    CONSISTENCY_ACCURACY_WEIGHT,
    CONSISTENCY_COMPLETION_WEIGHT,
    CONSISTENCY_EXCELLENCE_WEIGHT,
)
from hifz.domain import Condition, DailyRecord, LearnerStatus
from hifz.services.completion import CompletionSummary, calculate_completion, get_milestones
from hifz.services.dates import DateRange
from hifz.services.projection import Projection, estimate_completion

IMPROVING = "Improving"
STABLE = "Stable"
DECLINING = "Declining"

CONDITION_KEYS = {
    Condition.EXCELLENT: "excellent",
    Condition.GOOD: "good",
    Condition.MEDIUM: "medium",
    Condition.BELOW_AVERAGE: "below_average",
}


@dataclass
class AnalyticsSnapshot:
    """Statistics for one learner over a window of days.

    Derived on demand and never persisted.
    """
    learner_id: str
    window: DateRange
    recorded_days: int
    present_days: int
    attendance_rate: float
    total_new_lines: int
    total_mistakes: int
    average_lines_per_day: float
    average_mistakes_per_day: float
    mistake_rate: float
    high_mistake_days: int
    condition_breakdown: Dict[str, int]
    consistency_score: float
    recent_average_lines: float
    performance_trend: str
    completion: CompletionSummary
    projection: Projection
    milestones: Dict = field(default_factory=dict)

    @property
    def window_days(self) -> int:
        return self.window.days

    @property
    def rated_days(self) -> int:
        return sum(self.condition_breakdown.values())

    @property
    def excellent_ratio(self) -> float:
        """Share of present days rated Excellent (0-1)."""
        if not self.present_days:
            return 0.0
        return self.condition_breakdown["excellent"] / self.present_days

    def to_dict(self) -> Dict:
        return {
            "learner_id": self.learner_id,
            "period": {
                "start_date": self.window.start.isoformat(),
                "end_date": self.window.last_day.isoformat(),
                "window_days": self.window_days,
                "recorded_days": self.recorded_days,
            },
            "attendance": {
                "present_days": self.present_days,
                "attendance_rate": round(self.attendance_rate, 1),
            },
            "lines": {
                "total_new_lines": self.total_new_lines,
                "average_lines_per_day": round(self.average_lines_per_day, 1),
                "recent_average_lines": round(self.recent_average_lines, 1),
            },
            "mistakes": {
                "total_mistakes": self.total_mistakes,
                "average_mistakes_per_day": round(self.average_mistakes_per_day, 1),
                "mistake_rate": round(self.mistake_rate, 1),
                "high_mistake_days": self.high_mistake_days,
            },
            "performance": {
                "condition_breakdown": dict(self.condition_breakdown),
                "consistency_score": round(self.consistency_score, 1),
                "performance_trend": self.performance_trend,
            },
            "completion": self.completion.to_dict(),
            "milestones": self.milestones,
            "projection": self.projection.to_dict(),
        }


def classify_trend(recent_average: float, baseline_average: float) -> str:
    """
    Compare recent pace with the window baseline.

    Improving at 120% of baseline or more, Declining at 80% or less,
    otherwise Stable. A zero baseline is Stable.
    """
    if baseline_average <= 0:
        return STABLE
    ratio = recent_average / baseline_average
    if ratio >= TREND_IMPROVING_RATIO:
        return IMPROVING
    if ratio <= TREND_DECLINING_RATIO:
        return DECLINING
    return STABLE


def calculate_consistency_score(
    attendance_rate: float,
    mistake_rate: float,
    completion_percentage: float,
    excellent_percentage: float,
) -> float:
    """
    Blend attendance, accuracy, completion and excellence into one 0-100 score.

    Formula:
    0.3 * attendance + 0.3 * (100 - min(mistake_rate, 100))
    + 0.2 * completion + 0.2 * excellent days percentage
    """
    return (
        CONSISTENCY_ATTENDANCE_WEIGHT * attendance_rate
        + CONSISTENCY_ACCURACY_WEIGHT * (100 - min(mistake_rate, 100))
        + CONSISTENCY_COMPLETION_WEIGHT * completion_percentage
        + CONSISTENCY_EXCELLENCE_WEIGHT * excellent_percentage
    )


def _average_new_lines(records: List[DailyRecord]) -> float:
    present = [r for r in records if r.is_present]
    if not present:
        return 0.0
    return sum(r.new_lines for r in present) / len(present)


def compute_analytics(
    records: Iterable[DailyRecord],
    status: LearnerStatus,
    days: int = DEFAULT_ANALYTICS_WINDOW_DAYS,
    today: Optional[date] = None,
) -> AnalyticsSnapshot:
    """
    Compute a learner's analytics for the last `days` calendar days.

    Records outside the window are ignored, so callers may pass full
    history. Empty input yields zeros rather than errors.

    Args:
        records: Daily records (any range)
        status: Current learner status
        days: Window length in days
        today: Last day of the window (defaults to today)

    Returns:
        AnalyticsSnapshot
    """
    window = DateRange.last_n_days(days, today)
    in_window = sorted(window.filter(records), key=lambda r: r.record_date)
    present = [r for r in in_window if r.is_present]

    present_days = len(present)
    attendance_rate = present_days / window.days * 100

    total_new_lines = sum(r.new_lines for r in present)
    total_mistakes = sum(r.total_mistakes for r in present)
    average_lines = total_new_lines / present_days if present_days else 0.0
    average_mistakes = total_mistakes / present_days if present_days else 0.0
    mistake_rate = total_mistakes / total_new_lines * 100 if total_new_lines else 0.0

    high_mistake_days = sum(1 for r in in_window if r.total_mistakes > HIGH_MISTAKE_DAY_THRESHOLD)

    breakdown = {key: 0 for key in CONDITION_KEYS.values()}
    for record in in_window:
        key = CONDITION_KEYS.get(record.condition)
        if key:
            breakdown[key] += 1

    recent_window = DateRange.last_n_days(min(TREND_RECENT_DAYS, days), window.last_day)
    recent_average = _average_new_lines(recent_window.filter(in_window))

    completion = calculate_completion(
        status.already_memorized_units,
        status.completed_units,
        status.current_unit,
        status.current_unit_progress,
    )

    excellent_percentage = breakdown["excellent"] / present_days * 100 if present_days else 0.0
    consistency = calculate_consistency_score(
        attendance_rate, mistake_rate, completion.completion_percentage, excellent_percentage
    )

    return AnalyticsSnapshot(
        learner_id=status.learner_id,
        window=window,
        recorded_days=len(in_window),
        present_days=present_days,
        attendance_rate=attendance_rate,
        total_new_lines=total_new_lines,
        total_mistakes=total_mistakes,
        average_lines_per_day=average_lines,
        average_mistakes_per_day=average_mistakes,
        mistake_rate=mistake_rate,
        high_mistake_days=high_mistake_days,
        condition_breakdown=breakdown,
        consistency_score=consistency,
        recent_average_lines=recent_average,
        performance_trend=classify_trend(recent_average, average_lines),
        completion=completion,
        projection=estimate_completion(completion.remaining_units, average_lines, today=window.last_day),
        milestones=get_milestones(completion.total_memorized_units),
    )
