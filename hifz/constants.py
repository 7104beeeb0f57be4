"""Curriculum reference data and thresholds.

This module centralizes every fixed number used by the Hifz services: the
shape of the 30-unit (para) curriculum based on a 16-line Mushaf, the mistake
limits behind the daily condition rating, and the thresholds driving
projections, alerts and the weekly review.
"""

# Curriculum Shape
TOTAL_UNITS = 30
"""Number of memorization units (paras) in the curriculum."""

LINES_PER_PAGE = 16
"""Lines per page of the 16-line Mushaf."""

TOTAL_PAGES = 604
"""Pages in the 16-line Mushaf."""

TOTAL_LINES = TOTAL_PAGES * LINES_PER_PAGE
"""Total lines in the curriculum (9,664)."""

AVG_LINES_PER_UNIT = 322
"""Fallback line count for a unit missing from UNIT_LINE_COUNTS."""

UNIT_LINE_COUNTS = {unit: AVG_LINES_PER_UNIT for unit in range(1, TOTAL_UNITS)}
UNIT_LINE_COUNTS[TOTAL_UNITS] = 320
"""Approximate lines per unit. The last unit is slightly shorter."""

DEFAULT_STARTING_UNIT = 1
"""Unit a learner starts on when enrollment does not say otherwise."""

UNIT_COMPLETE_PERCENT = 100.0
"""Progress value that marks the current unit as finished."""

HALF_CREDIT_PROGRESS_PERCENT = 50.0
"""Progress at which an unfinished current unit counts as half a unit."""

# Daily Condition Thresholds (a value above the limit triggers the rating)
BELOW_AVERAGE_NEW_MISTAKES = 2
BELOW_AVERAGE_RECENT_REVIEW_MISTAKES = 2
BELOW_AVERAGE_OLDER_REVIEW_MISTAKES = 3
MEDIUM_NEW_MISTAKES = 0
MEDIUM_RECENT_REVIEW_MISTAKES = 1
MEDIUM_OLDER_REVIEW_MISTAKES = 1

# Projection
PROJECTION_LINES_PER_UNIT = 20
"""Coarse lines-per-unit figure used only for forward projection."""

REVISION_BUFFER_MULTIPLIER = 1.2
"""Extra time (+20%) added to projections for revision."""

DAYS_PER_MONTH = 30
DAYS_PER_WEEK = 7

MAX_FEASIBLE_LINES_PER_DAY = 20
"""Highest daily pace considered achievable when planning to a target date."""

PACE_DIFFICULTY_LEVELS = [
    (10, "Easy"),
    (15, "Moderate"),
    (20, "Challenging"),
]
"""Upper bound of required lines per day for each difficulty label."""

# Analytics
DEFAULT_ANALYTICS_WINDOW_DAYS = 30
HIGH_MISTAKE_DAY_THRESHOLD = 5
"""A day with more total mistakes than this is a high-mistake day."""

TREND_RECENT_DAYS = 7
TREND_IMPROVING_RATIO = 1.2
TREND_DECLINING_RATIO = 0.8

CONSISTENCY_ATTENDANCE_WEIGHT = 0.3
CONSISTENCY_ACCURACY_WEIGHT = 0.3
CONSISTENCY_COMPLETION_WEIGHT = 0.2
CONSISTENCY_EXCELLENCE_WEIGHT = 0.2

MILESTONES = [
    (5, "First 5 Paras - Great Start!"),
    (10, "One-Third Complete - Excellent Progress!"),
    (15, "Halfway There - Keep Going!"),
    (20, "Two-Thirds Done - Amazing Dedication!"),
    (25, "Almost There - Final Push!"),
    (30, "Complete Hifz - MashaAllah!"),
]
"""Progress milestones shown in analytics, by total memorized units."""

NOTIFICATION_MILESTONES = {
    10: "Amazing! One-third of the Quran memorized!",
    20: "Incredible! Two-thirds of the Quran memorized!",
    30: "ALHAMDULILLAH! Complete Quran memorized! What an achievement!",
}
"""Unit totals that fire a milestone notification, with their message."""

# Alert Thresholds
CRITICAL_ATTENDANCE_RATE = 50.0
WARNING_ATTENDANCE_RATE = 70.0
CRITICAL_MISTAKE_RATE = 15.0
WARNING_MISTAKE_RATE = 10.0
MIN_PRESENT_DAYS_FOR_PROGRESS_ALERTS = 5
LOW_PACE_LINES_PER_DAY = 3.0
BELOW_AVERAGE_DAYS_CRITICAL_RATIO = 0.3
MIN_PRESENT_DAYS_FOR_EXCELLENCE_ALERT = 10
LOW_EXCELLENCE_RATIO = 0.3

# Weekly Review
WEEKLY_MIN_ATTENDANCE_RATE = 70.0
WEEKLY_MAX_AVG_MISTAKES = 3.0
WEEKLY_MAX_ZERO_LINE_DAYS = 3
"""Number of zero-line present days in a week that flags no progress."""

# Logging
DEFAULT_LOG_LEVEL = "INFO"
"""Default logging level for the application."""
