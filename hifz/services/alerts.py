"""Rule-based alerts and recommendations over an analytics snapshot."""
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional

from hifz.constants import (
    CRITICAL_ATTENDANCE_RATE,
    WARNING_ATTENDANCE_RATE,
    CRITICAL_MISTAKE_RATE,
    WARNING_MISTAKE_RATE,
    MIN_PRESENT_DAYS_FOR_PROGRESS_ALERTS,
    LOW_PACE_LINES_PER_DAY,
    BELOW_AVERAGE_DAYS_CRITICAL_RATIO,
    MIN_PRESENT_DAYS_FOR_EXCELLENCE_ALERT,
    LOW_EXCELLENCE_RATIO,
)
from hifz.services.analytics import AnalyticsSnapshot


class Severity(str, Enum):
    """Alert severity, most urgent first."""
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


SEVERITY_ORDER = {Severity.CRITICAL: 0, Severity.WARNING: 1, Severity.INFO: 2}

ALL_GOOD = {
    "severity": "success",
    "type": "EXCELLENT_PERFORMANCE",
    "message": "Excellent performance! All metrics within healthy ranges.",
    "recommendation": "Continue maintaining your current pace and accuracy. Keep up the great work!",
}


@dataclass(frozen=True)
class Alert:
    severity: Severity
    type: str
    message: str
    recommendation: str

    def to_dict(self) -> Dict:
        return {
            "severity": self.severity.value,
            "type": self.type,
            "message": self.message,
            "recommendation": self.recommendation,
        }


def _attendance_critical(s: AnalyticsSnapshot) -> Optional[Alert]:
    if s.present_days > 0 and s.attendance_rate < CRITICAL_ATTENDANCE_RATE:
        return Alert(
            Severity.CRITICAL, "CRITICAL_ATTENDANCE",
            f"Attendance is {s.attendance_rate:.1f}% over the last {s.window_days} days",
            "Contact the family and agree a regular attendance plan. Memorization cannot progress without daily presence.",
        )
    return None


def _attendance_warning(s: AnalyticsSnapshot) -> Optional[Alert]:
    if CRITICAL_ATTENDANCE_RATE <= s.attendance_rate < WARNING_ATTENDANCE_RATE:
        return Alert(
            Severity.WARNING, "LOW_ATTENDANCE",
            f"Attendance is {s.attendance_rate:.1f}% (should be at least {WARNING_ATTENDANCE_RATE:.0f}%)",
            "Maintain regular attendance for better progress. Consistency is crucial for memorization.",
        )
    return None


def _mistakes_critical(s: AnalyticsSnapshot) -> Optional[Alert]:
    if s.mistake_rate > CRITICAL_MISTAKE_RATE:
        return Alert(
            Severity.CRITICAL, "HIGH_MISTAKE_RATE",
            f"Mistake rate is {s.mistake_rate:.1f}% (above {CRITICAL_MISTAKE_RATE:.0f}%)",
            "Slow down new lessons and schedule extra revision sessions with the teacher.",
        )
    return None


def _mistakes_warning(s: AnalyticsSnapshot) -> Optional[Alert]:
    if WARNING_MISTAKE_RATE < s.mistake_rate <= CRITICAL_MISTAKE_RATE:
        return Alert(
            Severity.WARNING, "ELEVATED_MISTAKE_RATE",
            f"Mistake rate is {s.mistake_rate:.1f}% (above {WARNING_MISTAKE_RATE:.0f}%)",
            "Focus on accuracy and revise previous lessons regularly.",
        )
    return None


def _no_units(s: AnalyticsSnapshot) -> Optional[Alert]:
    if s.present_days >= MIN_PRESENT_DAYS_FOR_PROGRESS_ALERTS and s.completion.whole_units_memorized == 0:
        return Alert(
            Severity.WARNING, "NO_UNITS_MEMORIZED",
            "No paras memorized yet",
            "Start para memorization and set achievable milestones.",
        )
    return None


def _low_pace(s: AnalyticsSnapshot) -> Optional[Alert]:
    if s.present_days >= MIN_PRESENT_DAYS_FOR_PROGRESS_ALERTS and s.average_lines_per_day < LOW_PACE_LINES_PER_DAY:
        return Alert(
            Severity.INFO, "LOW_PACE",
            f"Low daily average ({s.average_lines_per_day:.1f} lines/day)",
            "Consider increasing daily memorization targets gradually.",
        )
    return None


def _below_average_days(s: AnalyticsSnapshot) -> Optional[Alert]:
    rated = s.rated_days
    below = s.condition_breakdown["below_average"]
    if rated and below / rated > BELOW_AVERAGE_DAYS_CRITICAL_RATIO:
        return Alert(
            Severity.CRITICAL, "FREQUENT_BELOW_AVERAGE",
            f"{below} of {rated} rated days were Below Average",
            "Immediate attention needed. Review the current pace with the teacher and revise weak sections.",
        )
    return None


def _overlaps(s: AnalyticsSnapshot) -> Optional[Alert]:
    if s.completion.overlaps:
        units = ", ".join(str(u) for u in s.completion.overlaps)
        return Alert(
            Severity.INFO, "OVERLAPPING_UNITS",
            f"Paras {units} are listed as both memorized before joining and completed during training",
            "Correct the learner's enrollment record so each para is counted once.",
        )
    return None


def _low_excellence(s: AnalyticsSnapshot) -> Optional[Alert]:
    if s.present_days > MIN_PRESENT_DAYS_FOR_EXCELLENCE_ALERT and s.excellent_ratio < LOW_EXCELLENCE_RATIO:
        return Alert(
            Severity.WARNING, "FEW_EXCELLENT_DAYS",
            f"Only {s.excellent_ratio * 100:.0f}% of present days were rated Excellent",
            "Aim for mistake-free recitation; practise the lesson aloud before presenting it.",
        )
    return None


RULES: List[Callable[[AnalyticsSnapshot], Optional[Alert]]] = [
    _attendance_critical,
    _attendance_warning,
    _mistakes_critical,
    _mistakes_warning,
    _no_units,
    _low_pace,
    _below_average_days,
    _overlaps,
    _low_excellence,
]


def generate_alerts(snapshot: AnalyticsSnapshot) -> List[Alert]:
    """
    Evaluate every rule against the snapshot.

    Rules are independent, so several alerts may fire. The result is sorted
    by severity (critical, warning, info), keeping rule order within a
    severity.
    """
    alerts = [alert for alert in (rule(snapshot) for rule in RULES) if alert is not None]
    return sorted(alerts, key=lambda a: SEVERITY_ORDER[a.severity])


def build_alert_report(snapshot: AnalyticsSnapshot) -> Dict:
    """
    Alerts in plain form for report rendering.

    Returns:
        {"alerts": [...], "all_good": {...} or None}
    """
    alerts = generate_alerts(snapshot)
    return {
        "alerts": [a.to_dict() for a in alerts],
        "all_good": dict(ALL_GOOD) if not alerts else None,
    }
