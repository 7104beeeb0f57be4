"""Learner progress endpoints: enrollment, daily records and reports."""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, Field, validator
from sqlalchemy.orm import Session
from hifz.config import settings
from hifz.db.database import get_db
from hifz.db.repository import SqlProgressRepository
from hifz.domain import Attendance, RecordSubmission
from hifz.errors import ValidationError
from hifz.rate_limit import limiter
from hifz.services.dates import DateRange
from hifz.services.notifications import DatabaseNotifier
from hifz.services.progress_service import ProgressService

router = APIRouter(prefix="/api/learners", tags=["learners"])


class EnrollRequest(BaseModel):
    """Request body for enrolling a learner."""
    already_memorized_units: List[int] = Field(default_factory=list, description="Paras memorized before joining")
    starting_unit: int = Field(1, description="Para the learner starts on")
    joining_date: Optional[date] = None


class DailyRecordRequest(BaseModel):
    """Request body for a daily record submission."""
    record_date: date
    attendance: Attendance = Attendance.PRESENT
    new_lesson: str = Field("", max_length=200)
    new_lines: Optional[int] = Field(None, description="Required when present")
    new_mistakes: int = 0
    recent_review: str = Field("", max_length=200)
    recent_review_mistakes: int = 0
    older_review: str = Field("", max_length=200)
    older_review_mistakes: int = 0
    current_unit: Optional[int] = None
    current_unit_progress: Optional[float] = None
    notes: Optional[str] = Field(None, max_length=2000)

    @validator('new_lesson', 'recent_review', 'older_review')
    def strip_labels(cls, v):
        """Trim surrounding whitespace from free-text labels."""
        return v.strip() if v else ""


class RecordUpdateRequest(BaseModel):
    """Request body for editing a stored record. Only sent fields change."""
    attendance: Optional[Attendance] = None
    new_lesson: Optional[str] = Field(None, max_length=200)
    new_lines: Optional[int] = None
    new_mistakes: Optional[int] = None
    recent_review: Optional[str] = Field(None, max_length=200)
    recent_review_mistakes: Optional[int] = None
    older_review: Optional[str] = Field(None, max_length=200)
    older_review_mistakes: Optional[int] = None
    notes: Optional[str] = Field(None, max_length=2000)


class PositionRequest(BaseModel):
    """Request body for moving a learner to a para and progress."""
    current_unit: int
    current_unit_progress: float


def get_progress_service(db: Session = Depends(get_db)) -> ProgressService:
    """Build a ProgressService bound to the request's database session."""
    return ProgressService(SqlProgressRepository(db), DatabaseNotifier(db))


@router.post("/{learner_id}/enroll", status_code=201)
async def enroll_learner(
    learner_id: str,
    body: EnrollRequest,
    service: ProgressService = Depends(get_progress_service)
):
    """Create the learner's status with the paras memorized before joining."""
    status = service.enroll(
        learner_id,
        already_memorized_units=body.already_memorized_units,
        starting_unit=body.starting_unit,
        joining_date=body.joining_date,
    )
    return {"status": status.to_dict()}


@router.post("/{learner_id}/records", status_code=201)
@limiter.limit(settings.RECORD_SUBMISSION_RATE_LIMIT)
async def submit_record(
    request: Request,
    learner_id: str,
    body: DailyRecordRequest,
    service: ProgressService = Depends(get_progress_service)
):
    """
    Submit a daily record.

    Returns:
    - stored record (with post-completion para position)
    - rebuilt status
    - completed para and milestone, if any
    - last week's performance review
    """
    submission = RecordSubmission(**body.dict())
    result = service.submit_record(learner_id, submission)
    return result.to_dict()


@router.get("/{learner_id}/records")
async def list_records(
    learner_id: str,
    start: Optional[date] = Query(None),
    end: Optional[date] = Query(None),
    service: ProgressService = Depends(get_progress_service)
):
    """List records, optionally limited to an inclusive date range."""
    date_range = None
    if start or end:
        if not (start and end):
            raise ValidationError("Both start and end are required for a date range")
        if end < start:
            raise ValidationError("end must not be before start")
        date_range = DateRange(start, end)

    records = service.get_records(learner_id, date_range)
    return {"records": [r.to_dict() for r in records], "count": len(records)}


@router.patch("/{learner_id}/records/{record_date}")
async def update_record(
    learner_id: str,
    record_date: date,
    body: RecordUpdateRequest,
    service: ProgressService = Depends(get_progress_service)
):
    """Edit a stored record; condition and totals are re-derived."""
    changes = body.dict(exclude_unset=True)
    result = service.update_record(learner_id, record_date, changes)
    return result.to_dict()


@router.put("/{learner_id}/position")
async def update_position(
    learner_id: str,
    body: PositionRequest,
    service: ProgressService = Depends(get_progress_service)
):
    """Move the learner to a para/progress; 100% completes the para."""
    result = service.update_position(learner_id, body.current_unit, body.current_unit_progress)
    return result.to_dict()


@router.get("/{learner_id}/status")
async def get_status(
    learner_id: str,
    service: ProgressService = Depends(get_progress_service)
):
    """Current aggregate status."""
    return {"status": service.get_status(learner_id).to_dict()}


@router.get("/{learner_id}/analytics")
async def get_analytics(
    learner_id: str,
    days: int = Query(settings.ANALYTICS_WINDOW_DAYS, ge=1, le=365),
    service: ProgressService = Depends(get_progress_service)
):
    """Analytics snapshot for the last `days` days with alerts."""
    return service.get_analytics(learner_id, days)


@router.get("/{learner_id}/projection")
async def get_projection(
    learner_id: str,
    target_date: Optional[date] = Query(None),
    service: ProgressService = Depends(get_progress_service)
):
    """Completion projection, plus the pace needed to hit `target_date` if given."""
    return service.get_projection(learner_id, target_date)


@router.get("/{learner_id}/weekly")
async def get_weekly_performance(
    learner_id: str,
    service: ProgressService = Depends(get_progress_service)
):
    """Review of the last completed Sunday-Saturday week."""
    return service.evaluate_week(learner_id).to_dict()
