"""Daily record validation, condition rating and record construction."""
from typing import Dict, List, Optional

from hifz.constants import (
    TOTAL_UNITS,
    UNIT_COMPLETE_PERCENT,
    BELOW_AVERAGE_NEW_MISTAKES,
    BELOW_AVERAGE_RECENT_REVIEW_MISTAKES,
    BELOW_AVERAGE_OLDER_REVIEW_MISTAKES,
    MEDIUM_NEW_MISTAKES,
    MEDIUM_RECENT_REVIEW_MISTAKES,
    MEDIUM_OLDER_REVIEW_MISTAKES,
)
from hifz.domain import Attendance, Condition, DailyRecord, RecordSubmission
from hifz.errors import ValidationError

COUNT_FIELDS = ("new_lines", "new_mistakes", "recent_review_mistakes", "older_review_mistakes")
EDITABLE_FIELDS = {
    "attendance", "new_lesson", "new_lines", "new_mistakes",
    "recent_review", "recent_review_mistakes", "older_review",
    "older_review_mistakes", "notes",
}


def derive_condition(
    attendance: Attendance,
    new_mistakes: int,
    recent_review_mistakes: int,
    older_review_mistakes: int,
) -> Condition:
    """
    Rate a day from its mistake counts.

    Rules are checked in order and the first match wins:
    1. new > 2 or recent review > 2 or older review > 3 -> Below Average
    2. new > 0 or recent review > 1 or older review > 1 -> Medium
    3. no mistakes at all -> Excellent
    4. otherwise -> Good

    Days where the learner was not present are always N/A.
    """
    if attendance != Attendance.PRESENT:
        return Condition.NOT_APPLICABLE

    if (new_mistakes > BELOW_AVERAGE_NEW_MISTAKES
            or recent_review_mistakes > BELOW_AVERAGE_RECENT_REVIEW_MISTAKES
            or older_review_mistakes > BELOW_AVERAGE_OLDER_REVIEW_MISTAKES):
        return Condition.BELOW_AVERAGE

    if (new_mistakes > MEDIUM_NEW_MISTAKES
            or recent_review_mistakes > MEDIUM_RECENT_REVIEW_MISTAKES
            or older_review_mistakes > MEDIUM_OLDER_REVIEW_MISTAKES):
        return Condition.MEDIUM

    if new_mistakes + recent_review_mistakes + older_review_mistakes == 0:
        return Condition.EXCELLENT

    return Condition.GOOD


def _coerce_attendance(value) -> Attendance:
    try:
        return Attendance(value)
    except ValueError:
        options = ", ".join(a.value for a in Attendance)
        raise ValidationError(f"Attendance must be one of: {options}", "attendance")


def validate_unit_position(current_unit: Optional[int], progress: Optional[float]) -> None:
    """Reject unit numbers outside the curriculum and progress outside 0-100."""
    if current_unit is not None and not (1 <= current_unit <= TOTAL_UNITS):
        raise ValidationError(f"Unit must be between 1 and {TOTAL_UNITS}", "current_unit")
    if progress is not None and not (0 <= progress <= UNIT_COMPLETE_PERCENT):
        raise ValidationError("Unit progress must be between 0 and 100", "current_unit_progress")


def validate_submission(submission: RecordSubmission) -> RecordSubmission:
    """
    Validate a daily submission and normalize it for storage.

    Args:
        submission: Raw submission

    Returns:
        A submission with attendance coerced to the enum. Counts are zeroed
        when the learner was not present.

    Raises:
        ValidationError: Missing new-line count on a present day, negative
            counts, or an out-of-range unit position
    """
    attendance = _coerce_attendance(submission.attendance)
    validate_unit_position(submission.current_unit, submission.current_unit_progress)

    if attendance != Attendance.PRESENT:
        return RecordSubmission(
            record_date=submission.record_date,
            attendance=attendance,
            new_lesson=submission.new_lesson or "",
            new_lines=0,
            new_mistakes=0,
            recent_review=submission.recent_review or "",
            recent_review_mistakes=0,
            older_review=submission.older_review or "",
            older_review_mistakes=0,
            current_unit=submission.current_unit,
            current_unit_progress=submission.current_unit_progress,
            notes=submission.notes,
        )

    if submission.new_lines is None:
        raise ValidationError("New lesson line count is required when the learner is present", "new_lines")

    for name in COUNT_FIELDS:
        value = getattr(submission, name) or 0
        if value < 0:
            raise ValidationError(f"{name} cannot be negative", name)

    return RecordSubmission(
        record_date=submission.record_date,
        attendance=attendance,
        new_lesson=submission.new_lesson or "",
        new_lines=submission.new_lines,
        new_mistakes=submission.new_mistakes or 0,
        recent_review=submission.recent_review or "",
        recent_review_mistakes=submission.recent_review_mistakes or 0,
        older_review=submission.older_review or "",
        older_review_mistakes=submission.older_review_mistakes or 0,
        current_unit=submission.current_unit,
        current_unit_progress=submission.current_unit_progress,
        notes=submission.notes,
    )


def build_record(
    learner_id: str,
    submission: RecordSubmission,
    current_unit: int,
    current_unit_progress: float,
    completed_units: List[int],
) -> DailyRecord:
    """
    Build the record to persist from a validated submission.

    The unit position passed in is the one after any para completion, so the
    stored record reflects the learner's post-transition state.
    """
    total_mistakes = (
        submission.new_mistakes
        + submission.recent_review_mistakes
        + submission.older_review_mistakes
    )
    return DailyRecord(
        learner_id=learner_id,
        record_date=submission.record_date,
        attendance=submission.attendance,
        condition=derive_condition(
            submission.attendance,
            submission.new_mistakes,
            submission.recent_review_mistakes,
            submission.older_review_mistakes,
        ),
        current_unit=current_unit,
        current_unit_progress=current_unit_progress,
        new_lesson=submission.new_lesson,
        new_lines=submission.new_lines,
        new_mistakes=submission.new_mistakes,
        recent_review=submission.recent_review,
        recent_review_mistakes=submission.recent_review_mistakes,
        older_review=submission.older_review,
        older_review_mistakes=submission.older_review_mistakes,
        total_mistakes=total_mistakes,
        completed_units=sorted(set(completed_units)),
        notes=submission.notes,
    )


def apply_record_changes(record: DailyRecord, changes: Dict) -> DailyRecord:
    """
    Apply edits to a stored record, re-deriving the total and the condition.

    Only observation fields can change; the date and unit snapshot stay as
    recorded.

    Raises:
        ValidationError: Unknown field or an invalid resulting record
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    merged = {
        "attendance": record.attendance,
        "new_lesson": record.new_lesson,
        "new_lines": record.new_lines,
        "new_mistakes": record.new_mistakes,
        "recent_review": record.recent_review,
        "recent_review_mistakes": record.recent_review_mistakes,
        "older_review": record.older_review,
        "older_review_mistakes": record.older_review_mistakes,
        "notes": record.notes,
    }
    merged.update(changes)

    validated = validate_submission(RecordSubmission(record_date=record.record_date, **merged))
    updated = build_record(
        record.learner_id,
        validated,
        record.current_unit,
        record.current_unit_progress,
        record.completed_units,
    )
    updated.id = record.id
    return updated
