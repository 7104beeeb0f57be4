"""Plain value types passed between the Hifz services and their collaborators.

The services never touch ORM rows directly: the repository converts between
these dataclasses and the SQLAlchemy models, which keeps every calculation
a pure function of its inputs.
"""
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional

from hifz.constants import DEFAULT_STARTING_UNIT


class Attendance(str, Enum):
    """Attendance state recorded for a day."""
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"
    EXCUSED = "EXCUSED"


class Condition(str, Enum):
    """Daily quality rating derived from mistake counts."""
    EXCELLENT = "Excellent"
    GOOD = "Good"
    MEDIUM = "Medium"
    BELOW_AVERAGE = "Below Average"
    NOT_APPLICABLE = "N/A"


@dataclass
class RecordSubmission:
    """Daily observation as submitted by a teacher, before validation.

    `new_lines` is required when the learner is present. `current_unit` and
    `current_unit_progress` fall back to the learner's stored position when
    omitted.
    """
    record_date: date
    attendance: Attendance = Attendance.PRESENT
    new_lesson: str = ""
    new_lines: Optional[int] = None
    new_mistakes: int = 0
    recent_review: str = ""
    recent_review_mistakes: int = 0
    older_review: str = ""
    older_review_mistakes: int = 0
    current_unit: Optional[int] = None
    current_unit_progress: Optional[float] = None
    notes: Optional[str] = None


@dataclass
class DailyRecord:
    """One stored observation per (learner, calendar day)."""
    learner_id: str
    record_date: date
    attendance: Attendance
    condition: Condition
    current_unit: int
    current_unit_progress: float
    new_lesson: str = ""
    new_lines: int = 0
    new_mistakes: int = 0
    recent_review: str = ""
    recent_review_mistakes: int = 0
    older_review: str = ""
    older_review_mistakes: int = 0
    total_mistakes: int = 0
    completed_units: List[int] = field(default_factory=list)
    notes: Optional[str] = None
    id: Optional[int] = None

    @property
    def is_present(self) -> bool:
        return self.attendance == Attendance.PRESENT

    def to_dict(self) -> Dict:
        data = asdict(self)
        data["record_date"] = self.record_date.isoformat()
        data["attendance"] = self.attendance.value
        data["condition"] = self.condition.value
        return data


@dataclass
class LearnerStatus:
    """Running aggregate for one learner, replaced whole after every record."""
    learner_id: str
    already_memorized_units: List[int] = field(default_factory=list)
    completed_units: List[int] = field(default_factory=list)
    starting_unit: int = DEFAULT_STARTING_UNIT
    joining_date: Optional[date] = None
    current_unit: int = DEFAULT_STARTING_UNIT
    current_unit_progress: float = 0.0
    total_active_days: int = 0
    total_new_lines: int = 0
    total_lines_memorized: int = 0
    total_mistakes: int = 0
    average_lines_per_day: float = 0.0
    average_mistakes_per_day: float = 0.0
    mistake_rate: float = 0.0
    total_memorized_units: float = 0.0
    completion_percentage: float = 0.0
    estimated_days_to_complete: Optional[int] = None
    estimated_completion_date: Optional[date] = None
    last_updated: Optional[datetime] = None

    def copy(self, **changes) -> "LearnerStatus":
        """Return a new status with `changes` applied; lists are copied."""
        changes.setdefault("already_memorized_units", list(self.already_memorized_units))
        changes.setdefault("completed_units", list(self.completed_units))
        return replace(self, **changes)

    def to_dict(self) -> Dict:
        data = asdict(self)
        for key in ("joining_date", "estimated_completion_date", "last_updated"):
            value = getattr(self, key)
            data[key] = value.isoformat() if value else None
        return data
