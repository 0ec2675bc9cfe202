"""Base class for hard constraint implementations."""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..models import ConflictInfo, Room, ScheduleVariable, TimeSlot
    from ..rules import SchedulingRules
    from ..state import ScheduleState
    from ..timeslots import TimeGrid


class HardConstraint(ABC):
    """Abstract base class for hard constraints.

    A hard constraint inspects one candidate (variable, slot, room) against
    the current schedule state and either accepts it (returns None) or
    describes why it is rejected.
    """

    code = "HC-00"

    def __init__(self, rules: "SchedulingRules", grid: "TimeGrid"):
        """
        Initialize constraint.

        Args:
            rules: Scheduling rules of the run.
            grid: Legal time slots of the run.
        """
        self.rules = rules
        self.grid = grid

    @abstractmethod
    def check(
        self,
        variable: "ScheduleVariable",
        slot: "TimeSlot",
        room: "Room | None",
        state: "ScheduleState",
    ) -> "ConflictInfo | None":
        """
        Check the candidate.

        Returns:
            None when the candidate is acceptable, otherwise the conflict.
        """
        pass
