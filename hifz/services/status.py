"""Learner status aggregation.

The aggregate is always rebuilt from the learner's complete record history
rather than patched incrementally, so edits and out-of-order submissions
cannot leave it drifting.
"""
import logging
from datetime import date, datetime
from typing import Iterable, Optional

from hifz.domain import DailyRecord, LearnerStatus
from hifz.services.completion import calculate_completion
from hifz.services.projection import estimate_completion

logger = logging.getLogger(__name__)


def recompute_status(
    status: LearnerStatus,
    records: Iterable[DailyRecord],
    today: Optional[date] = None,
    now: Optional[datetime] = None,
) -> LearnerStatus:
    """
    Build a fresh LearnerStatus from full history and the current position.

    Only present days count toward pace and mistake figures:
    - average_lines_per_day = new lines / present days
    - average_mistakes_per_day = mistakes / present days
    - mistake_rate = mistakes / new lines * 100

    Args:
        status: Current status (supplies unit lists and position)
        records: Every daily record for the learner
        today: Reference date for the projection
        now: Timestamp stored as last_updated

    Returns:
        New LearnerStatus; the input is not modified
    """
    present = [r for r in records if r.is_present]

    total_active_days = len(present)
    total_new_lines = sum(r.new_lines for r in present)
    total_mistakes = sum(r.total_mistakes for r in present)

    average_lines_per_day = total_new_lines / total_active_days if total_active_days else 0.0
    average_mistakes_per_day = total_mistakes / total_active_days if total_active_days else 0.0
    mistake_rate = total_mistakes / total_new_lines * 100 if total_new_lines else 0.0

    completion = calculate_completion(
        status.already_memorized_units,
        status.completed_units,
        status.current_unit,
        status.current_unit_progress,
    )
    projection = estimate_completion(completion.remaining_units, average_lines_per_day, today=today)

    logger.debug(
        f"Recomputed status for {status.learner_id}: {total_active_days} active days, "
        f"{completion.completion_percentage}% complete",
        extra={"learner_id": status.learner_id},
    )

    return status.copy(
        total_active_days=total_active_days,
        total_new_lines=total_new_lines,
        total_lines_memorized=completion.total_memorized_lines,
        total_mistakes=total_mistakes,
        average_lines_per_day=round(average_lines_per_day, 2),
        average_mistakes_per_day=round(average_mistakes_per_day, 2),
        mistake_rate=round(mistake_rate, 2),
        total_memorized_units=completion.total_memorized_units,
        completion_percentage=completion.completion_percentage,
        estimated_days_to_complete=projection.estimated_days,
        estimated_completion_date=projection.estimated_date,
        last_updated=now or datetime.utcnow(),
    )
