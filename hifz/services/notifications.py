"""Notification events and the notifier collaborators that receive them."""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Dict, Tuple

from sqlalchemy.orm import Session

from hifz.constants import NOTIFICATION_MILESTONES, TOTAL_UNITS
from hifz.db.models import Notification

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Events emitted by ProgressService."""
    UNIT_COMPLETED = "unit_completed"
    MILESTONE_REACHED = "milestone_reached"
    POOR_WEEKLY_PERFORMANCE = "poor_weekly_performance"


class Notifier(ABC):
    """Receives events; delivery (push, socket, email) is up to the implementation."""

    @abstractmethod
    def emit(self, event_type: EventType, payload: Dict) -> None:
        ...


def describe_event(event_type: EventType, payload: Dict) -> Tuple[str, str]:
    """
    Title and message for an event.

    Args:
        event_type: Kind of event
        payload: Event payload

    Returns:
        Tuple of (title, message)
    """
    if event_type == EventType.UNIT_COMPLETED:
        return (
            "Para Completed!",
            f"Congratulations! Para {payload['unit_number']} completed! "
            f"Total: {payload['total_completed']}/{TOTAL_UNITS}. Keep up the excellent work!",
        )
    if event_type == EventType.MILESTONE_REACHED:
        total = payload["total_units"]
        return (
            "Major Milestone Achieved!",
            NOTIFICATION_MILESTONES.get(total, f"{total} paras memorized!"),
        )
    if event_type == EventType.POOR_WEEKLY_PERFORMANCE:
        summary = payload["weekly_summary"]
        return (
            "Weekly Performance Alert",
            f"Performance this week needs attention. "
            f"Attendance: {summary['attendance_rate']}%, "
            f"Avg Mistakes: {summary['average_mistakes']}/day",
        )
    return (str(event_type), "")


class LoggingNotifier(Notifier):
    """Writes events to the application log."""

    def emit(self, event_type: EventType, payload: Dict) -> None:
        title, message = describe_event(event_type, payload)
        logger.info(
            f"{title} {message}",
            extra={"learner_id": payload.get("learner_id"), "event_type": EventType(event_type).value},
        )


class DatabaseNotifier(Notifier):
    """Stores events in the notifications table for a delivery worker to pick up."""

    def __init__(self, db: Session):
        self.db = db

    def emit(self, event_type: EventType, payload: Dict) -> None:
        event_type = EventType(event_type)
        title, message = describe_event(event_type, payload)
        notification = Notification(
            learner_id=payload["learner_id"],
            event_type=event_type.value,
            title=title,
            message=message,
            payload=payload,
        )
        self.db.add(notification)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.debug(
            f"Stored {event_type.value} notification",
            extra={"learner_id": payload["learner_id"], "event_type": event_type.value},
        )
