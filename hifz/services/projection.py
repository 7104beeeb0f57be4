"""Completion projection and pace planning."""
import math
from dataclasses import dataclass
from datetime import date, timedelta
from fractions import Fraction
from typing import Dict, Optional

from hifz.constants import (
    PROJECTION_LINES_PER_UNIT,
    REVISION_BUFFER_MULTIPLIER,
    DAYS_PER_MONTH,
    DAYS_PER_WEEK,
    MAX_FEASIBLE_LINES_PER_DAY,
    PACE_DIFFICULTY_LEVELS,
)
from hifz.services.dates import days_between

NOT_ENOUGH_DATA = "Not enough data"


@dataclass(frozen=True)
class Projection:
    """Estimated time to finish the curriculum at the current pace."""
    remaining_units: int
    average_lines_per_day: float
    lines_needed: Optional[int] = None
    raw_days: Optional[int] = None
    estimated_days: Optional[int] = None
    estimated_date: Optional[date] = None
    time_description: str = NOT_ENOUGH_DATA

    @property
    def has_estimate(self) -> bool:
        return self.estimated_days is not None

    def to_dict(self) -> Dict:
        return {
            "remaining_units": self.remaining_units,
            "average_lines_per_day": round(self.average_lines_per_day, 1),
            "lines_needed": self.lines_needed,
            "raw_days": self.raw_days,
            "estimated_days_to_complete": self.estimated_days,
            "estimated_completion_date": self.estimated_date.isoformat() if self.estimated_date else None,
            "time_description": self.time_description,
        }


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def describe_duration(days: int) -> str:
    """
    Describe a number of days using its two largest non-zero parts.

    Examples:
        67 -> "About 2 months and 1 week"
        12 -> "About 1 week and 5 days"
        30 -> "About 1 month"
    """
    if days is None:
        return NOT_ENOUGH_DATA
    if days <= 0:
        return "Less than a day"

    months, rest = divmod(days, DAYS_PER_MONTH)
    weeks, remaining_days = divmod(rest, DAYS_PER_WEEK)

    parts = [
        _plural(value, unit)
        for value, unit in ((months, "month"), (weeks, "week"), (remaining_days, "day"))
        if value > 0
    ][:2]
    return "About " + " and ".join(parts)


def estimate_completion(
    remaining_units: int,
    average_lines_per_day: float,
    today: Optional[date] = None,
) -> Projection:
    """
    Project when the remaining units will be finished.

    Formula:
    - lines_needed = remaining_units * 20
    - raw_days = ceil(lines_needed / average_lines_per_day)
    - estimated_days = ceil(raw_days * 1.2)  (revision buffer)

    Args:
        remaining_units: Whole units still to memorize
        average_lines_per_day: Current pace in new lines per present day
        today: Reference date (defaults to today)

    Returns:
        Projection; without an estimate when the pace is zero or nothing
        remains
    """
    pace = average_lines_per_day or 0.0
    if pace <= 0 or remaining_units <= 0:
        return Projection(remaining_units=max(0, remaining_units), average_lines_per_day=pace)

    today = today or date.today()
    lines_needed = remaining_units * PROJECTION_LINES_PER_UNIT
    raw_days = math.ceil(lines_needed / pace)
    # Exact arithmetic so 5 * 1.2 stays 6 rather than 6.000000000000001
    estimated_days = math.ceil(raw_days * Fraction(str(REVISION_BUFFER_MULTIPLIER)))

    return Projection(
        remaining_units=remaining_units,
        average_lines_per_day=pace,
        lines_needed=lines_needed,
        raw_days=raw_days,
        estimated_days=estimated_days,
        estimated_date=today + timedelta(days=estimated_days),
        time_description=describe_duration(estimated_days),
    )


def pace_difficulty(required_lines_per_day: float) -> str:
    for upper_bound, label in PACE_DIFFICULTY_LEVELS:
        if required_lines_per_day <= upper_bound:
            return label
    return "Very Difficult"


def calculate_required_pace(remaining_lines: int, target_date: date, today: Optional[date] = None) -> Dict:
    """
    Lines per day needed to finish by a target date.

    Args:
        remaining_lines: Lines still to memorize
        target_date: Desired completion date
        today: Reference date (defaults to today)

    Returns:
        Dictionary with pace requirements:
        {
            "feasible": True,
            "required_lines_per_day": 12.5,
            "days_remaining": 200,
            "difficulty": "Moderate",
            "message": "Need to memorize 12.5 lines per day"
        }
    """
    today = today or date.today()
    days_remaining = days_between(today, target_date)

    if days_remaining <= 0:
        return {
            "feasible": False,
            "required_lines_per_day": None,
            "days_remaining": days_remaining,
            "difficulty": None,
            "message": "Target date has passed or is today",
        }

    required = remaining_lines / days_remaining
    feasible = required <= MAX_FEASIBLE_LINES_PER_DAY

    if feasible:
        message = f"Need to memorize {required:.1f} lines per day"
    else:
        message = f"Target requires {required:.1f} lines per day - may be too aggressive"

    return {
        "feasible": feasible,
        "required_lines_per_day": round(required, 1),
        "days_remaining": days_remaining,
        "difficulty": pace_difficulty(required),
        "message": message,
    }
