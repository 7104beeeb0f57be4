"""Completion calculation over memorized and completed units."""
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Tuple

from hifz.constants import (
    TOTAL_UNITS,
    TOTAL_LINES,
    UNIT_LINE_COUNTS,
    AVG_LINES_PER_UNIT,
    HALF_CREDIT_PROGRESS_PERCENT,
    UNIT_COMPLETE_PERCENT,
    MILESTONES,
)
from hifz.errors import DataIntegrityWarning

logger = logging.getLogger(__name__)


@dataclass
class CompletionSummary:
    """Result of calculate_completion.

    total_memorized_units includes half credit for a current unit that is at
    least half done; completion_percentage is always line-based.
    """
    already_memorized_units: List[int]
    valid_completed_units: List[int]
    current_unit: int
    current_unit_progress: float
    current_unit_is_new: bool
    already_memorized_lines: int
    completed_lines: int
    current_unit_lines: int
    total_memorized_lines: int
    remaining_lines: int
    total_memorized_units: float
    remaining_units: int
    completion_percentage: float
    overlaps: List[int] = field(default_factory=list)
    ignored_units: List[int] = field(default_factory=list)
    warnings: List[DataIntegrityWarning] = field(default_factory=list)

    @property
    def whole_units_memorized(self) -> int:
        return len(self.already_memorized_units) + len(self.valid_completed_units)

    def to_dict(self) -> Dict:
        return {
            "total_memorized_lines": self.total_memorized_lines,
            "remaining_lines": self.remaining_lines,
            "total_memorized_units": self.total_memorized_units,
            "remaining_units": self.remaining_units,
            "completion_percentage": self.completion_percentage,
            "overlaps": list(self.overlaps),
            "breakdown": {
                "already_memorized": {
                    "units": list(self.already_memorized_units),
                    "count": len(self.already_memorized_units),
                    "lines": self.already_memorized_lines,
                },
                "completed_during_training": {
                    "units": list(self.valid_completed_units),
                    "count": len(self.valid_completed_units),
                    "lines": self.completed_lines,
                },
                "current_unit": {
                    "unit": self.current_unit,
                    "progress": self.current_unit_progress,
                    "lines": self.current_unit_lines,
                    "is_new": self.current_unit_is_new,
                },
            },
            "warnings": [w.to_dict() for w in self.warnings],
        }


def is_valid_unit(unit) -> bool:
    """True for an integer unit number between 1 and TOTAL_UNITS."""
    return isinstance(unit, int) and not isinstance(unit, bool) and 1 <= unit <= TOTAL_UNITS


def unit_lines(unit: int) -> int:
    """Line count of a unit, falling back to the curriculum average."""
    return UNIT_LINE_COUNTS.get(unit, AVG_LINES_PER_UNIT)


def normalize_units(units: Iterable) -> Tuple[List[int], List]:
    """
    Deduplicate and sort unit numbers, separating out malformed ones.

    Args:
        units: Unit numbers as stored (may contain duplicates or junk)

    Returns:
        Tuple of (sorted valid units, sorted distinct ignored values)
    """
    valid = set()
    ignored = []
    for unit in units or []:
        if is_valid_unit(unit):
            valid.add(unit)
        elif unit not in ignored:
            ignored.append(unit)
    return sorted(valid), ignored


def find_overlaps(already_memorized_units: Iterable[int], completed_units: Iterable[int]) -> List[int]:
    """Units present in both lists, sorted."""
    return sorted(set(already_memorized_units or []) & set(completed_units or []))


def calculate_completion(
    already_memorized_units: Iterable[int],
    completed_units: Iterable[int],
    current_unit: int,
    current_unit_progress: float = 0.0,
) -> CompletionSummary:
    """
    Calculate lines and units memorized across the curriculum.

    Units memorized before joining are counted first. Units completed during
    training that also appear in the already-memorized list are overlaps:
    they are reported as a warning and counted once. The current unit earns
    partial credit (lines * progress / 100) only when it is in neither list.

    Malformed unit numbers are ignored and reported as a warning; this
    function never raises.

    Args:
        already_memorized_units: Units memorized before enrollment
        completed_units: Units completed during training
        current_unit: Unit currently being memorized
        current_unit_progress: Progress in the current unit (0-100)

    Returns:
        CompletionSummary with totals, remaining amounts and warnings
    """
    already, ignored_already = normalize_units(already_memorized_units)
    completed, ignored_completed = normalize_units(completed_units)

    warnings: List[DataIntegrityWarning] = []
    ignored = ignored_already + [u for u in ignored_completed if u not in ignored_already]

    overlaps = find_overlaps(already, completed)
    if overlaps:
        logger.warning(f"Overlapping units detected: {overlaps}")
        warnings.append(DataIntegrityWarning(
            code="overlapping_units",
            message=f"Units {', '.join(str(u) for u in overlaps)} appear in both the "
                    f"already-memorized and completed lists",
            units=overlaps,
        ))

    valid_completed = [u for u in completed if u not in overlaps]

    already_lines = sum(unit_lines(u) for u in already)
    completed_lines = sum(unit_lines(u) for u in valid_completed)

    progress = max(0.0, min(UNIT_COMPLETE_PERCENT, float(current_unit_progress or 0)))
    current_valid = is_valid_unit(current_unit)
    if not current_valid and current_unit is not None and current_unit not in ignored:
        ignored.append(current_unit)

    is_current_new = current_valid and current_unit not in already and current_unit not in completed
    current_lines = unit_lines(current_unit) * progress / 100 if is_current_new else 0.0

    if ignored:
        logger.warning(f"Ignoring malformed unit numbers: {ignored}")
        warnings.append(DataIntegrityWarning(
            code="ignored_units",
            message=f"Ignored unit numbers outside 1-{TOTAL_UNITS}: "
                    f"{', '.join(str(u) for u in ignored)}",
            units=[u for u in ignored if isinstance(u, int)],
        ))

    total_lines = already_lines + completed_lines + current_lines
    whole_units = len(already) + len(valid_completed)

    half_credit = 0.0
    if is_current_new and HALF_CREDIT_PROGRESS_PERCENT <= progress < UNIT_COMPLETE_PERCENT:
        half_credit = 0.5

    completion_percentage = min(100.0, total_lines / TOTAL_LINES * 100)

    return CompletionSummary(
        already_memorized_units=already,
        valid_completed_units=valid_completed,
        current_unit=current_unit,
        current_unit_progress=progress,
        current_unit_is_new=is_current_new,
        already_memorized_lines=already_lines,
        completed_lines=completed_lines,
        current_unit_lines=round(current_lines),
        total_memorized_lines=round(total_lines),
        remaining_lines=max(0, round(TOTAL_LINES - total_lines)),
        total_memorized_units=round(whole_units + half_credit, 1),
        remaining_units=max(0, TOTAL_UNITS - whole_units),
        completion_percentage=round(completion_percentage, 2),
        overlaps=overlaps,
        ignored_units=ignored,
        warnings=warnings,
    )


def get_milestones(total_memorized_units: float) -> Dict:
    """
    Locate a learner between the curriculum milestones.

    Args:
        total_memorized_units: Units memorized (may include half credit)

    Returns:
        Dictionary with milestone progress:
        {
            "last_achieved": {"units": 10, "description": "..."},
            "next_milestone": {"units": 15, "description": "..."},
            "units_to_next_milestone": 3.5
        }
    """
    achieved = [m for m in MILESTONES if m[0] <= total_memorized_units]
    upcoming = [m for m in MILESTONES if m[0] > total_memorized_units]

    last_achieved = achieved[-1] if achieved else None
    next_milestone = upcoming[0] if upcoming else None

    return {
        "last_achieved": {"units": last_achieved[0], "description": last_achieved[1]} if last_achieved else None,
        "next_milestone": {"units": next_milestone[0], "description": next_milestone[1]} if next_milestone else None,
        "units_to_next_milestone": round(next_milestone[0] - total_memorized_units, 1) if next_milestone else 0,
    }
