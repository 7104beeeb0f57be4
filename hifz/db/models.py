"""SQLAlchemy models for the Hifz progress tracker."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Date, DateTime, Float, JSON, ForeignKey, CheckConstraint, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from hifz.db.database import Base


class HifzStatus(Base):
    """Per-learner aggregate, replaced whole after every record."""
    __tablename__ = "learner_statuses"

    learner_id = Column(Text, primary_key=True)
    already_memorized_units = Column(JSON, nullable=False, default=list)  # units known before joining
    completed_units = Column(JSON, nullable=False, default=list)  # units finished during training
    starting_unit = Column(Integer, nullable=False, default=1)
    joining_date = Column(Date, nullable=True)
    current_unit = Column(Integer, CheckConstraint("current_unit BETWEEN 1 AND 30"), nullable=False, default=1)
    current_unit_progress = Column(Float, nullable=False, default=0.0)
    total_active_days = Column(Integer, nullable=False, default=0)
    total_new_lines = Column(Integer, nullable=False, default=0)
    total_lines_memorized = Column(Integer, nullable=False, default=0)
    total_mistakes = Column(Integer, nullable=False, default=0)
    average_lines_per_day = Column(Float, nullable=False, default=0.0)
    average_mistakes_per_day = Column(Float, nullable=False, default=0.0)
    mistake_rate = Column(Float, nullable=False, default=0.0)
    total_memorized_units = Column(Float, nullable=False, default=0.0)
    completion_percentage = Column(Float, nullable=False, default=0.0)
    estimated_days_to_complete = Column(Integer, nullable=True)
    estimated_completion_date = Column(Date, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_updated = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    records = relationship("HifzRecord", back_populates="status", cascade="all, delete-orphan")


class HifzRecord(Base):
    """One daily observation per learner per calendar day."""
    __tablename__ = "hifz_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(Text, ForeignKey("learner_statuses.learner_id"), nullable=False)
    record_date = Column(Date, nullable=False)
    attendance = Column(String(16), CheckConstraint("attendance IN ('PRESENT', 'ABSENT', 'LATE', 'EXCUSED')"), nullable=False)
    new_lesson = Column(Text, nullable=False, default="")  # sabaq
    new_lines = Column(Integer, nullable=False, default=0)
    new_mistakes = Column(Integer, nullable=False, default=0)
    recent_review = Column(Text, nullable=False, default="")  # sabqi
    recent_review_mistakes = Column(Integer, nullable=False, default=0)
    older_review = Column(Text, nullable=False, default="")  # manzil
    older_review_mistakes = Column(Integer, nullable=False, default=0)
    total_mistakes = Column(Integer, nullable=False, default=0)
    condition = Column(
        String(16),
        CheckConstraint("condition IN ('Excellent', 'Good', 'Medium', 'Below Average', 'N/A')"),
        nullable=False
    )
    current_unit = Column(Integer, nullable=False)
    current_unit_progress = Column(Float, nullable=False, default=0.0)
    completed_units = Column(JSON, nullable=False, default=list)  # snapshot at record time
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Constraints and indexes
    __table_args__ = (
        UniqueConstraint('learner_id', 'record_date', name='uq_learner_record_date'),
        Index('idx_records_learner_date', 'learner_id', 'record_date'),
    )

    # Relationships
    status = relationship("HifzStatus", back_populates="records")


class Notification(Base):
    """Stored notification event for delivery by an external channel."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    learner_id = Column(Text, nullable=False)
    event_type = Column(String(32), nullable=False)
    title = Column(Text, nullable=False)
    message = Column(Text, nullable=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    delivered_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index('idx_notifications_learner', 'learner_id', 'created_at'),
    )
