"""Persistence interface for records and learner status, with a SQLAlchemy implementation."""
import logging
from abc import ABC, abstractmethod
from datetime import date, datetime
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hifz.db.models import HifzRecord, HifzStatus
from hifz.domain import Attendance, Condition, DailyRecord, LearnerStatus
from hifz.errors import DuplicateRecordError, NotFoundError
from hifz.services.dates import DateRange

logger = logging.getLogger(__name__)

STATUS_FIELDS = (
    "already_memorized_units", "completed_units", "starting_unit", "joining_date",
    "current_unit", "current_unit_progress", "total_active_days", "total_new_lines",
    "total_lines_memorized", "total_mistakes", "average_lines_per_day",
    "average_mistakes_per_day", "mistake_rate", "total_memorized_units",
    "completion_percentage", "estimated_days_to_complete", "estimated_completion_date",
    "last_updated",
)

RECORD_FIELDS = (
    "new_lesson", "new_lines", "new_mistakes", "recent_review", "recent_review_mistakes",
    "older_review", "older_review_mistakes", "total_mistakes", "current_unit",
    "current_unit_progress", "notes",
)


class ProgressRepository(ABC):
    """Storage used by ProgressService.

    Writes are whole-object: a record is created or replaced, and the status
    aggregate is always replaced in full, never patched field by field.
    """

    @abstractmethod
    def get_records(self, learner_id: str, date_range: Optional[DateRange] = None) -> List[DailyRecord]:
        """Records for a learner in date order, optionally limited to a range."""

    @abstractmethod
    def get_record(self, learner_id: str, record_date: date) -> DailyRecord:
        """Raises NotFoundError if there is no record for that day."""

    @abstractmethod
    def record_exists(self, learner_id: str, record_date: date) -> bool:
        ...

    @abstractmethod
    def create_record(self, record: DailyRecord) -> DailyRecord:
        """Raises DuplicateRecordError if the learner already has a record that day."""

    @abstractmethod
    def update_record(self, record: DailyRecord) -> DailyRecord:
        ...

    @abstractmethod
    def create_record_with_status(self, record: DailyRecord, status: LearnerStatus) -> DailyRecord:
        """Store a new record and its rebuilt status together, or neither.

        Raises DuplicateRecordError if the learner already has a record that day.
        """

    @abstractmethod
    def update_record_with_status(self, record: DailyRecord, status: LearnerStatus) -> DailyRecord:
        """Replace a record and its rebuilt status together, or neither."""

    @abstractmethod
    def get_status(self, learner_id: str) -> LearnerStatus:
        """Raises NotFoundError if the learner is not enrolled."""

    @abstractmethod
    def create_status(self, status: LearnerStatus) -> LearnerStatus:
        """Raises DuplicateRecordError if the learner is already enrolled."""

    @abstractmethod
    def replace_status(self, status: LearnerStatus) -> None:
        ...

    @abstractmethod
    def list_learner_ids(self) -> List[str]:
        ...


def record_from_row(row: HifzRecord) -> DailyRecord:
    return DailyRecord(
        id=row.id,
        learner_id=row.learner_id,
        record_date=row.record_date,
        attendance=Attendance(row.attendance),
        condition=Condition(row.condition),
        current_unit=row.current_unit,
        current_unit_progress=row.current_unit_progress,
        new_lesson=row.new_lesson or "",
        new_lines=row.new_lines,
        new_mistakes=row.new_mistakes,
        recent_review=row.recent_review or "",
        recent_review_mistakes=row.recent_review_mistakes,
        older_review=row.older_review or "",
        older_review_mistakes=row.older_review_mistakes,
        total_mistakes=row.total_mistakes,
        completed_units=list(row.completed_units or []),
        notes=row.notes,
    )


def status_from_row(row: HifzStatus) -> LearnerStatus:
    values = {name: getattr(row, name) for name in STATUS_FIELDS}
    values["already_memorized_units"] = list(row.already_memorized_units or [])
    values["completed_units"] = list(row.completed_units or [])
    return LearnerStatus(learner_id=row.learner_id, **values)


class SqlProgressRepository(ProgressRepository):
    """ProgressRepository backed by a SQLAlchemy session.

    Each public write method issues exactly one commit; on failure the
    session is rolled back so no partial aggregate is left behind. A daily
    record and the status rebuilt from it share that single commit.
    """

    def __init__(self, db: Session):
        self.db = db

    def _record_row(self, learner_id: str, record_date: date) -> Optional[HifzRecord]:
        return self.db.query(HifzRecord).filter(
            HifzRecord.learner_id == learner_id,
            HifzRecord.record_date == record_date
        ).first()

    def _status_row(self, learner_id: str) -> Optional[HifzStatus]:
        return self.db.query(HifzStatus).filter(HifzStatus.learner_id == learner_id).first()

    def _existing_status_row(self, learner_id: str) -> HifzStatus:
        row = self._status_row(learner_id)
        if row is None:
            raise NotFoundError(f"Learner {learner_id} is not enrolled")
        return row

    def _existing_record_row(self, learner_id: str, record_date: date) -> HifzRecord:
        row = self._record_row(learner_id, record_date)
        if row is None:
            raise NotFoundError(f"No record for learner {learner_id} on {record_date.isoformat()}")
        return row

    @staticmethod
    def _new_record_row(record: DailyRecord) -> HifzRecord:
        return HifzRecord(
            learner_id=record.learner_id,
            record_date=record.record_date,
            attendance=record.attendance.value,
            condition=record.condition.value,
            completed_units=list(record.completed_units),
            **{name: getattr(record, name) for name in RECORD_FIELDS}
        )

    @staticmethod
    def _write_record_fields(row: HifzRecord, record: DailyRecord) -> None:
        row.attendance = record.attendance.value
        row.condition = record.condition.value
        row.completed_units = list(record.completed_units)
        for name in RECORD_FIELDS:
            setattr(row, name, getattr(record, name))

    def _write_status_fields(self, row: HifzStatus, status: LearnerStatus) -> None:
        for name in STATUS_FIELDS:
            value = getattr(status, name)
            if name in ("already_memorized_units", "completed_units"):
                value = list(value)
            elif name == "last_updated" and value is None:
                value = datetime.utcnow()
            setattr(row, name, value)

    def _duplicate(self, record: DailyRecord) -> DuplicateRecordError:
        return DuplicateRecordError(
            f"A record already exists for learner {record.learner_id} on {record.record_date.isoformat()}"
        )

    def _commit_status(self, row: HifzStatus, status: LearnerStatus) -> None:
        """Write the status fields and commit everything pending in the session."""
        try:
            self._write_status_fields(row, status)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(
                f"Status write failed for {status.learner_id}; changes rolled back",
                exc_info=True,
                extra={"learner_id": status.learner_id},
            )
            raise

    def get_records(self, learner_id: str, date_range: Optional[DateRange] = None) -> List[DailyRecord]:
        query = self.db.query(HifzRecord).filter(HifzRecord.learner_id == learner_id)
        if date_range is not None:
            query = query.filter(
                HifzRecord.record_date >= date_range.start,
                HifzRecord.record_date <= date_range.last_day
            )
        return [record_from_row(row) for row in query.order_by(HifzRecord.record_date).all()]

    def get_record(self, learner_id: str, record_date: date) -> DailyRecord:
        return record_from_row(self._existing_record_row(learner_id, record_date))

    def record_exists(self, learner_id: str, record_date: date) -> bool:
        return self._record_row(learner_id, record_date) is not None

    def create_record(self, record: DailyRecord) -> DailyRecord:
        if self.record_exists(record.learner_id, record.record_date):
            raise self._duplicate(record)

        row = self._new_record_row(record)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent insert for the same day
            self.db.rollback()
            raise self._duplicate(record)
        self.db.refresh(row)
        return record_from_row(row)

    def update_record(self, record: DailyRecord) -> DailyRecord:
        row = self._existing_record_row(record.learner_id, record.record_date)
        self._write_record_fields(row, record)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(row)
        return record_from_row(row)

    def create_record_with_status(self, record: DailyRecord, status: LearnerStatus) -> DailyRecord:
        status_row = self._existing_status_row(status.learner_id)
        if self.record_exists(record.learner_id, record.record_date):
            raise self._duplicate(record)

        row = self._new_record_row(record)
        self.db.add(row)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            raise self._duplicate(record)

        self._commit_status(status_row, status)
        self.db.refresh(row)
        return record_from_row(row)

    def update_record_with_status(self, record: DailyRecord, status: LearnerStatus) -> DailyRecord:
        status_row = self._existing_status_row(status.learner_id)
        row = self._existing_record_row(record.learner_id, record.record_date)
        self._write_record_fields(row, record)

        self._commit_status(status_row, status)
        self.db.refresh(row)
        return record_from_row(row)

    def get_status(self, learner_id: str) -> LearnerStatus:
        return status_from_row(self._existing_status_row(learner_id))

    def create_status(self, status: LearnerStatus) -> LearnerStatus:
        if self._status_row(status.learner_id) is not None:
            raise DuplicateRecordError(f"Learner {status.learner_id} is already enrolled")

        row = HifzStatus(learner_id=status.learner_id)
        for name in STATUS_FIELDS:
            value = getattr(status, name)
            if value is not None:
                setattr(row, name, value)
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise DuplicateRecordError(f"Learner {status.learner_id} is already enrolled")
        self.db.refresh(row)
        return status_from_row(row)

    def replace_status(self, status: LearnerStatus) -> None:
        self._commit_status(self._existing_status_row(status.learner_id), status)

    def list_learner_ids(self) -> List[str]:
        return [row.learner_id for row in self.db.query(HifzStatus.learner_id).order_by(HifzStatus.learner_id).all()]
