"""Para (unit) completion state machine.

A learner is always at exactly one (current unit, progress) position.
Reaching 100% on the current unit appends it to the completed list (once)
and advances to the next unit, except on the last unit where the learner
stays at 100% and the curriculum is complete.
"""
from dataclasses import dataclass, field
from typing import List, Optional

from hifz.constants import TOTAL_UNITS, UNIT_COMPLETE_PERCENT, DEFAULT_STARTING_UNIT


@dataclass(frozen=True)
class ParaPosition:
    """A learner's place in the curriculum."""
    current_unit: int
    progress_percent: float
    completed_units: List[int] = field(default_factory=list)

    @property
    def is_curriculum_complete(self) -> bool:
        return self.current_unit == TOTAL_UNITS and TOTAL_UNITS in self.completed_units


@dataclass(frozen=True)
class ParaTransition:
    """Outcome of applying progress to a position.

    newly_completed_unit is set only the first time a unit is completed,
    so callers can emit exactly one completion event per unit.
    """
    position: ParaPosition
    newly_completed_unit: Optional[int] = None

    @property
    def unit_completed(self) -> bool:
        return self.newly_completed_unit is not None


def initial_position(starting_unit: int = DEFAULT_STARTING_UNIT) -> ParaPosition:
    """Position of a newly enrolled learner."""
    return ParaPosition(current_unit=starting_unit, progress_percent=0.0, completed_units=[])


def apply_progress(position: ParaPosition, current_unit: int, progress_percent: float) -> ParaTransition:
    """
    Move a learner to (current_unit, progress_percent), completing the unit at 100%.

    Args:
        position: Position before the update (provides the completed list)
        current_unit: Unit being reported on
        progress_percent: Progress in that unit (0-100)

    Returns:
        ParaTransition with the resulting position. The completed list only
        ever grows.
    """
    completed = list(position.completed_units)

    if progress_percent < UNIT_COMPLETE_PERCENT:
        return ParaTransition(ParaPosition(current_unit, float(progress_percent), completed))

    newly_completed = None
    if current_unit not in completed:
        completed.append(current_unit)
        completed.sort()
        newly_completed = current_unit

    if current_unit < TOTAL_UNITS:
        return ParaTransition(ParaPosition(current_unit + 1, 0.0, completed), newly_completed)

    # Last unit: stay put at 100%
    return ParaTransition(ParaPosition(current_unit, UNIT_COMPLETE_PERCENT, completed), newly_completed)


def total_units_held(already_memorized_units: List[int], completed_units: List[int]) -> int:
    """Distinct units memorized before joining or completed since."""
    return len(set(already_memorized_units) | set(completed_units))
