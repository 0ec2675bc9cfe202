"""Hard and soft constraints for timetable generation."""

from .base import HardConstraint
from .checker import ConstraintChecker
from .hard import build_hard_constraints
from .soft import SoftConstraintScorer, SoftReport, SoftViolation

__all__ = [
    "ConstraintChecker",
    "HardConstraint",
    "SoftConstraintScorer",
    "SoftReport",
    "SoftViolation",
    "build_hard_constraints",
]
