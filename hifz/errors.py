"""Error taxonomy for the Hifz services.

ValidationError, DuplicateRecordError and NotFoundError are raised and
mapped to HTTP responses at the API boundary. DataIntegrityWarning is a
plain value that is returned inside result structures and never raised.
"""
from dataclasses import dataclass, field
from typing import Dict, List


class HifzError(Exception):
    """Base class for errors raised by the Hifz services."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(HifzError):
    """A submitted value is missing or outside its allowed range."""

    def __init__(self, message: str, field_name: str = None):
        super().__init__(message)
        self.field_name = field_name


class DuplicateRecordError(HifzError):
    """A record (or status) already exists for the learner and date."""


class NotFoundError(HifzError):
    """The learner status or record being addressed does not exist."""


@dataclass(frozen=True)
class DataIntegrityWarning:
    """Non-fatal inconsistency found in stored unit data.

    Attributes:
        code: Machine-readable kind, e.g. "overlapping_units"
        message: Human-readable description
        units: Unit numbers involved
    """
    code: str
    message: str
    units: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict:
        return {"code": self.code, "message": self.message, "units": list(self.units)}
