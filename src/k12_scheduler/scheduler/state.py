"""Mutable schedule state owned by one solve run."""

import logging
from collections.abc import Iterable

from ..exceptions import InternalInconsistencyError
from .conflicts import ConflictTracker
from .models import Assignment, ConflictInfo, TimeSlot

logger = logging.getLogger(__name__)


class ScheduleState:
    """Assignments, unassigned variables and occupancy indexes.

    Every mutation goes through commit() / undo_last() / release() so the
    occupancy indexes and the assignment map never drift apart. Search
    frames undo in exact reverse order of their commits; nothing is
    deep-copied.
    """

    def __init__(self) -> None:
        self.assignments: dict[str, Assignment] = {}
        self.unassigned: set[str] = set()
        self.conflicts: list[ConflictInfo] = []
        # (class_id, slot) pairs pinned by fixed-time courses
        self.reserved: set[tuple[str, TimeSlot]] = set()
        self.tracker = ConflictTracker()
        self.total_variables = 0
        self._history: list[str] = []

    @property
    def is_feasible(self) -> bool:
        return not self.unassigned

    @property
    def history_length(self) -> int:
        return len(self._history)

    def register(self, variable_ids: Iterable[str]) -> None:
        """Add variables to the run, initially unassigned."""
        for variable_id in variable_ids:
            if variable_id in self.unassigned or variable_id in self.assignments:
                raise InternalInconsistencyError(f"variable '{variable_id}' registered twice")
            self.unassigned.add(variable_id)
            self.total_variables += 1

    def is_reserved(self, class_id: str, slot: TimeSlot) -> bool:
        return (class_id, slot) in self.reserved

    def commit(self, assignment: Assignment) -> None:
        """Record an assignment for a registered, unassigned variable."""
        variable_id = assignment.variable_id
        if variable_id not in self.unassigned:
            raise InternalInconsistencyError(
                f"commit of variable '{variable_id}' that is not unassigned"
            )
        slot = assignment.time_slot
        tracker = self.tracker
        if not tracker.is_teacher_available(assignment.teacher_id, slot):
            raise InternalInconsistencyError(
                f"teacher '{assignment.teacher_id}' double-booked at {slot}",
                {"variable_id": variable_id},
            )
        if not tracker.is_class_available(assignment.class_id, slot):
            raise InternalInconsistencyError(
                f"class '{assignment.class_id}' double-booked at {slot}",
                {"variable_id": variable_id},
            )
        if not tracker.is_room_available(assignment.room_id, slot):
            raise InternalInconsistencyError(
                f"room '{assignment.room_id}' double-booked at {slot}",
                {"variable_id": variable_id},
            )

        self.unassigned.discard(variable_id)
        self.assignments[variable_id] = assignment
        tracker.reserve(assignment)
        self._history.append(variable_id)
        if assignment.is_fixed:
            self.reserved.add((assignment.class_id, slot))

    def undo_last(self) -> Assignment:
        """Remove the most recent commit and return it."""
        if not self._history:
            raise InternalInconsistencyError("undo with empty history")
        variable_id = self._history[-1]
        assignment = self.assignments[variable_id]
        if assignment.is_fixed:
            raise InternalInconsistencyError(f"attempt to undo fixed assignment '{variable_id}'")
        self._history.pop()
        self._remove(assignment)
        return assignment

    def release(self, variable_id: str) -> Assignment:
        """Remove one non-fixed assignment regardless of commit order."""
        assignment = self.assignments.get(variable_id)
        if assignment is None:
            raise InternalInconsistencyError(f"release of unknown assignment '{variable_id}'")
        if assignment.is_fixed:
            raise InternalInconsistencyError(f"attempt to release fixed assignment '{variable_id}'")
        self._history.remove(variable_id)
        self._remove(assignment)
        return assignment

    def _remove(self, assignment: Assignment) -> None:
        del self.assignments[assignment.variable_id]
        self.tracker.release(assignment)
        self.unassigned.add(assignment.variable_id)

    def snapshot(self) -> list[Assignment]:
        """Assignments in commit order."""
        return [self.assignments[variable_id] for variable_id in self._history]

    def restore(self, snapshot: list[Assignment], base_length: int) -> None:
        """Roll back to ``base_length`` commits, then replay ``snapshot`` beyond it."""
        while len(self._history) > base_length:
            self.undo_last()
        for assignment in snapshot[base_length:]:
            self.commit(assignment)

    def check_invariants(self) -> None:
        """Verify counts and occupancy indexes; raise on any mismatch."""
        if len(self.assignments) + len(self.unassigned) != self.total_variables:
            raise InternalInconsistencyError(
                "assignment count mismatch",
                {
                    "assigned": len(self.assignments),
                    "unassigned": len(self.unassigned),
                    "total": self.total_variables,
                },
            )
        overlap = self.unassigned.intersection(self.assignments)
        if overlap:
            raise InternalInconsistencyError(
                f"variables both assigned and unassigned: {sorted(overlap)[:5]}"
            )
        seen: dict[str, set[tuple[str, TimeSlot]]] = {"teacher": set(), "class": set(), "room": set()}
        for assignment in self.assignments.values():
            slot = assignment.time_slot
            for kind, owner in (
                ("teacher", assignment.teacher_id),
                ("class", assignment.class_id),
                ("room", assignment.room_id),
            ):
                key = (owner, slot)
                if key in seen[kind]:
                    raise InternalInconsistencyError(f"{kind} '{owner}' double-booked at {slot}")
                seen[kind].add(key)
        if len(self.tracker.teacher_schedule) != len(self.assignments):
            raise InternalInconsistencyError("teacher index out of sync with assignments")
