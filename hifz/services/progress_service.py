"""Application service: record ingestion, status upkeep and reporting.

ProgressService is the only place that touches the persistence and
notification collaborators. Everything it calls in the other service
modules is a pure calculation.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Dict, Iterable, List, Optional

from hifz.constants import (
    DEFAULT_ANALYTICS_WINDOW_DAYS,
    DEFAULT_STARTING_UNIT,
    NOTIFICATION_MILESTONES,
)
from hifz.db.repository import ProgressRepository
from hifz.domain import DailyRecord, LearnerStatus, RecordSubmission
from hifz.errors import DuplicateRecordError, ValidationError
from hifz.services.alerts import build_alert_report
from hifz.services.analytics import compute_analytics
from hifz.services.completion import calculate_completion, normalize_units
from hifz.services.daily_record import (
    apply_record_changes,
    build_record,
    validate_submission,
    validate_unit_position,
)
from hifz.services.dates import DateRange
from hifz.services.notifications import EventType, Notifier
from hifz.services.para_state import ParaPosition, ParaTransition, apply_progress, total_units_held
from hifz.services.projection import calculate_required_pace, estimate_completion
from hifz.services.status import recompute_status
from hifz.services.weekly import WeeklyPerformance, evaluate_week

logger = logging.getLogger(__name__)


@dataclass
class IngestResult:
    """What submit_record hands back to the caller."""
    record: DailyRecord
    status: LearnerStatus
    weekly_performance: WeeklyPerformance
    completed_unit: Optional[int] = None
    milestone: Optional[int] = None

    def to_dict(self) -> Dict:
        return {
            "record": self.record.to_dict(),
            "status": self.status.to_dict(),
            "completed_unit": self.completed_unit,
            "milestone": self.milestone,
            "weekly_performance": self.weekly_performance.to_dict(),
        }


@dataclass
class PositionResult:
    status: LearnerStatus
    completed_unit: Optional[int] = None
    milestone: Optional[int] = None
    warnings: List[Dict] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {
            "status": self.status.to_dict(),
            "completed_unit": self.completed_unit,
            "milestone": self.milestone,
            "warnings": list(self.warnings),
        }


class ProgressService:
    """Orchestrates ingestion and reporting for Hifz learners.

    Args:
        repository: Persistence collaborator
        notifier: Notification collaborator
        clock: Returns today's date; injectable for tests
    """

    def __init__(
        self,
        repository: ProgressRepository,
        notifier: Notifier,
        clock: Callable[[], date] = date.today,
    ):
        self.repository = repository
        self.notifier = notifier
        self.clock = clock

    # Enrollment

    def enroll(
        self,
        learner_id: str,
        already_memorized_units: Iterable[int] = (),
        starting_unit: int = DEFAULT_STARTING_UNIT,
        joining_date: Optional[date] = None,
    ) -> LearnerStatus:
        """
        Create the initial status for a learner.

        Raises:
            ValidationError: Unit numbers outside the curriculum
            DuplicateRecordError: Learner already enrolled
        """
        units = list(already_memorized_units or [])
        valid, ignored = normalize_units(units)
        if ignored:
            raise ValidationError(f"Unit numbers must be between 1 and 30: {ignored}", "already_memorized_units")
        validate_unit_position(starting_unit, None)

        status = LearnerStatus(
            learner_id=learner_id,
            already_memorized_units=valid,
            completed_units=[],
            starting_unit=starting_unit,
            joining_date=joining_date or self.clock(),
            current_unit=starting_unit,
            current_unit_progress=0.0,
        )
        status = recompute_status(status, [], today=self.clock())
        created = self.repository.create_status(status)
        logger.info(
            f"Enrolled learner {learner_id} with {len(valid)} units already memorized, starting at unit {starting_unit}",
            extra={"learner_id": learner_id},
        )
        return created

    # Ingestion

    def submit_record(self, learner_id: str, submission: RecordSubmission) -> IngestResult:
        """
        Validate and store one daily record, then rebuild the learner status.

        A submission at 100% progress completes the current unit before the
        record is stored, so the record carries the advanced position. The
        record and the rebuilt status are written together; events are only
        emitted once both are stored.

        Raises:
            NotFoundError: Learner not enrolled
            ValidationError: Invalid submission
            DuplicateRecordError: Learner already has a record for that date
        """
        status = self.repository.get_status(learner_id)
        submission = validate_submission(submission)

        if self.repository.record_exists(learner_id, submission.record_date):
            raise DuplicateRecordError(
                f"A record already exists for learner {learner_id} on {submission.record_date.isoformat()}"
            )

        current_unit = submission.current_unit or status.current_unit
        progress = (
            submission.current_unit_progress
            if submission.current_unit_progress is not None
            else status.current_unit_progress
        )
        transition = apply_progress(self._position(status), current_unit, progress)
        position = transition.position

        record = build_record(
            learner_id,
            submission,
            position.current_unit,
            position.progress_percent,
            position.completed_units,
        )
        history = self.repository.get_records(learner_id) + [record]
        new_status = self._recompute(status, position, history)
        stored = self.repository.create_record_with_status(record, new_status)
        logger.info(
            f"Stored {stored.attendance.value} record rated {stored.condition.value}",
            extra={"learner_id": learner_id, "record_date": stored.record_date.isoformat()},
        )

        milestone = self._announce_completion(new_status, transition)

        return IngestResult(
            record=stored,
            status=new_status,
            weekly_performance=evaluate_week(self.repository.get_records(learner_id), today=self.clock()),
            completed_unit=transition.newly_completed_unit,
            milestone=milestone,
        )

    def update_record(self, learner_id: str, record_date: date, changes: Dict) -> IngestResult:
        """
        Edit a stored record and rebuild the learner status from full history.

        Raises:
            NotFoundError: Learner or record not found
            ValidationError: Invalid change
        """
        status = self.repository.get_status(learner_id)
        existing = self.repository.get_record(learner_id, record_date)
        edited = apply_record_changes(existing, changes)

        history = [edited if r.record_date == record_date else r for r in self.repository.get_records(learner_id)]
        new_status = self._recompute(status, self._position(status), history)
        updated = self.repository.update_record_with_status(edited, new_status)
        logger.info(
            f"Updated record; condition now {updated.condition.value}",
            extra={"learner_id": learner_id, "record_date": record_date.isoformat()},
        )

        return IngestResult(
            record=updated,
            status=new_status,
            weekly_performance=evaluate_week(self.repository.get_records(learner_id), today=self.clock()),
        )

    def update_position(self, learner_id: str, current_unit: int, progress_percent: float) -> PositionResult:
        """
        Move a learner to a unit/progress without a daily record.

        Reporting 100% completes the unit exactly once; repeating it does not
        add the unit again or emit a second event.
        """
        validate_unit_position(current_unit, progress_percent)
        status = self.repository.get_status(learner_id)

        transition = apply_progress(self._position(status), current_unit, progress_percent)
        new_status = self._rebuild_status(status, transition.position)
        milestone = self._announce_completion(new_status, transition)

        completion = calculate_completion(
            new_status.already_memorized_units,
            new_status.completed_units,
            new_status.current_unit,
            new_status.current_unit_progress,
        )
        return PositionResult(
            status=new_status,
            completed_unit=transition.newly_completed_unit,
            milestone=milestone,
            warnings=[w.to_dict() for w in completion.warnings],
        )

    # Reporting

    def get_status(self, learner_id: str) -> LearnerStatus:
        return self.repository.get_status(learner_id)

    def get_records(self, learner_id: str, date_range: Optional[DateRange] = None) -> List[DailyRecord]:
        self.repository.get_status(learner_id)
        return self.repository.get_records(learner_id, date_range)

    def get_analytics(self, learner_id: str, days: int = DEFAULT_ANALYTICS_WINDOW_DAYS) -> Dict:
        """Analytics snapshot plus alerts, as plain data for report rendering."""
        if days < 1:
            raise ValidationError("days must be at least 1", "days")
        status = self.repository.get_status(learner_id)
        window = DateRange.last_n_days(days, self.clock())
        snapshot = compute_analytics(
            self.repository.get_records(learner_id, window), status, days=days, today=self.clock()
        )
        return {"analytics": snapshot.to_dict(), **build_alert_report(snapshot)}

    def get_projection(self, learner_id: str, target_date: Optional[date] = None) -> Dict:
        status = self.repository.get_status(learner_id)
        completion = calculate_completion(
            status.already_memorized_units,
            status.completed_units,
            status.current_unit,
            status.current_unit_progress,
        )
        projection = estimate_completion(
            completion.remaining_units, status.average_lines_per_day, today=self.clock()
        )
        result = {"projection": projection.to_dict(), "completion": completion.to_dict()}
        if target_date is not None:
            result["required_pace"] = calculate_required_pace(
                completion.remaining_lines, target_date, today=self.clock()
            )
        return result

    def evaluate_week(self, learner_id: str) -> WeeklyPerformance:
        self.repository.get_status(learner_id)
        week = DateRange.previous_week(self.clock())
        return evaluate_week(self.repository.get_records(learner_id, week), today=self.clock())

    def run_weekly_review(self, learner_ids: Optional[Iterable[str]] = None) -> List[Dict]:
        """
        Evaluate last week for each learner and notify about poor performers.

        Intended to be triggered once a week by an external scheduler.

        Returns:
            One summary dictionary per flagged learner
        """
        flagged = []
        for learner_id in learner_ids if learner_ids is not None else self.repository.list_learner_ids():
            weekly = self.evaluate_week(learner_id)
            if not weekly.has_poor_performance:
                continue
            summary = weekly.to_dict()
            flagged.append({"learner_id": learner_id, "weekly_performance": summary})
            self._emit(EventType.POOR_WEEKLY_PERFORMANCE, {"learner_id": learner_id, "weekly_summary": summary})

        logger.info(f"Weekly review complete: {len(flagged)} learner(s) flagged")
        return flagged

    # Helpers

    @staticmethod
    def _position(status: LearnerStatus) -> ParaPosition:
        return ParaPosition(status.current_unit, status.current_unit_progress, list(status.completed_units))

    def _recompute(self, status: LearnerStatus, position: ParaPosition, records: List[DailyRecord]) -> LearnerStatus:
        positioned = status.copy(
            current_unit=position.current_unit,
            current_unit_progress=position.progress_percent,
            completed_units=list(position.completed_units),
        )
        return recompute_status(positioned, records, today=self.clock(), now=datetime.utcnow())

    def _rebuild_status(self, status: LearnerStatus, position: ParaPosition) -> LearnerStatus:
        new_status = self._recompute(status, position, self.repository.get_records(status.learner_id))
        self.repository.replace_status(new_status)
        return new_status

    def _announce_completion(self, status: LearnerStatus, transition: ParaTransition) -> Optional[int]:
        """Emit unit-completed (and milestone) events; returns the milestone reached, if any."""
        if not transition.unit_completed:
            return None

        unit = transition.newly_completed_unit
        total = total_units_held(status.already_memorized_units, status.completed_units)
        logger.info(
            f"Unit {unit} completed ({total} units held)",
            extra={"learner_id": status.learner_id},
        )
        self._emit(EventType.UNIT_COMPLETED, {
            "learner_id": status.learner_id,
            "unit_number": unit,
            "total_completed": total,
        })

        if total in NOTIFICATION_MILESTONES:
            logger.info(f"Milestone reached: {total} units", extra={"learner_id": status.learner_id})
            self._emit(EventType.MILESTONE_REACHED, {"learner_id": status.learner_id, "total_units": total})
            return total
        return None

    def _emit(self, event_type: EventType, payload: Dict) -> None:
        try:
            self.notifier.emit(event_type, payload)
        except Exception:
            # Stored data stays committed; delivery retries belong to the notifier
            logger.error(
                f"Failed to emit {event_type.value} event",
                exc_info=True,
                extra={"learner_id": payload.get("learner_id"), "event_type": event_type.value},
            )

