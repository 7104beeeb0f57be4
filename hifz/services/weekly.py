"""Weekly performance review over the last completed Sunday-Saturday week."""
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, Optional

from hifz.constants import (
    WEEKLY_MIN_ATTENDANCE_RATE,
    WEEKLY_MAX_AVG_MISTAKES,
    WEEKLY_MAX_ZERO_LINE_DAYS,
)
from hifz.domain import Condition, DailyRecord
from hifz.services.dates import DateRange


@dataclass(frozen=True)
class WeeklyPerformance:
    """Outcome of evaluate_week, with each poor-performance flag exposed."""
    period: DateRange
    recorded_days: int
    present_days: int
    attendance_rate: float
    average_mistakes: float
    total_new_lines: int
    zero_line_days: int
    has_below_average_reports: bool
    has_low_attendance: bool
    has_high_mistakes: bool
    has_no_progress: bool

    @property
    def has_poor_performance(self) -> bool:
        return (
            self.has_below_average_reports
            or self.has_low_attendance
            or self.has_high_mistakes
            or self.has_no_progress
        )

    def to_dict(self) -> Dict:
        return {
            "period_start": self.period.start.isoformat(),
            "period_end": self.period.last_day.isoformat(),
            "recorded_days": self.recorded_days,
            "present_days": self.present_days,
            "attendance_rate": round(self.attendance_rate, 1),
            "average_mistakes": round(self.average_mistakes, 1),
            "total_new_lines": self.total_new_lines,
            "zero_line_days": self.zero_line_days,
            "has_below_average_reports": self.has_below_average_reports,
            "has_low_attendance": self.has_low_attendance,
            "has_high_mistakes": self.has_high_mistakes,
            "has_no_progress": self.has_no_progress,
            "has_poor_performance": self.has_poor_performance,
        }


def evaluate_week(records: Iterable[DailyRecord], today: Optional[date] = None) -> WeeklyPerformance:
    """
    Flag poor performance in the most recently completed week.

    The week is always the Sunday-Saturday before today's week, whatever
    range the records cover. Flags:
    - any Below Average day
    - attendance below 70% of recorded days (only when the week has records)
    - more than 3 mistakes per present day on average
    - 3 or more present days with no new lines

    Args:
        records: Daily records (records outside the week are ignored)
        today: Reference date (defaults to today)

    Returns:
        WeeklyPerformance
    """
    week = DateRange.previous_week(today)
    reports = week.filter(records)
    present = [r for r in reports if r.is_present]

    recorded_days = len(reports)
    present_days = len(present)
    attendance_rate = present_days / recorded_days * 100 if recorded_days else 0.0

    total_mistakes = sum(r.total_mistakes for r in present)
    average_mistakes = total_mistakes / present_days if present_days else 0.0
    zero_line_days = sum(1 for r in present if r.new_lines == 0)

    return WeeklyPerformance(
        period=week,
        recorded_days=recorded_days,
        present_days=present_days,
        attendance_rate=attendance_rate,
        average_mistakes=average_mistakes,
        total_new_lines=sum(r.new_lines for r in present),
        zero_line_days=zero_line_days,
        has_below_average_reports=any(r.condition == Condition.BELOW_AVERAGE for r in reports),
        has_low_attendance=recorded_days > 0 and attendance_rate < WEEKLY_MIN_ATTENDANCE_RATE,
        has_high_mistakes=average_mistakes > WEEKLY_MAX_AVG_MISTAKES,
        has_no_progress=zero_line_days >= WEEKLY_MAX_ZERO_LINE_DAYS,
    )
