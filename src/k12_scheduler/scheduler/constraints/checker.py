"""Constraint checker combining hard gates and soft penalties."""

import logging

from ..models import ConflictInfo, ConflictKind, Room, ScheduleVariable, Teacher, TimeSlot
from ..rooms import meets_requirements
from ..rules import SchedulingRules
from ..state import ScheduleState
from ..timeslots import TimeGrid
from .hard import build_hard_constraints, check_all
from .soft import SoftConstraintScorer, SoftReport

logger = logging.getLogger(__name__)


class ConstraintChecker:
    """Evaluates candidate assignments against the current schedule."""

    def __init__(
        self,
        rules: SchedulingRules,
        grid: TimeGrid,
        rooms: list[Room],
        teachers: dict[str, Teacher] | None = None,
    ):
        self.rules = rules
        self.grid = grid
        self.rooms = {room.id: room for room in rooms}
        self.hard_constraints = build_hard_constraints(rules, grid, self.rooms)
        self.scorer = SoftConstraintScorer(rules, grid, teachers)

    def check(
        self,
        variable: ScheduleVariable,
        slot: TimeSlot,
        room: Room | None,
        state: ScheduleState,
    ) -> list[ConflictInfo]:
        """All hard-constraint conflicts of the candidate (empty when legal)."""
        return check_all(self.hard_constraints, variable, slot, room, state)

    def is_legal(
        self,
        variable: ScheduleVariable,
        slot: TimeSlot,
        room: Room | None,
        state: ScheduleState,
    ) -> bool:
        for constraint in self.hard_constraints:
            if constraint.check(variable, slot, room, state) is not None:
                return False
        return True

    def slot_penalty(self, variable: ScheduleVariable, slot: TimeSlot, state: ScheduleState) -> float:
        return self.scorer.slot_penalty(variable, slot, state)

    def evaluate_soft(self, state: ScheduleState, variables: dict[str, ScheduleVariable]) -> SoftReport:
        return self.scorer.evaluate(state, variables)

    def audit(self, state: ScheduleState, variables: dict[str, ScheduleVariable]) -> list[ConflictInfo]:
        """Re-verify every committed assignment of a finished schedule."""
        violations: list[ConflictInfo] = []
        seen: dict[tuple[str, str, TimeSlot], str] = {}
        for assignment in state.assignments.values():
            slot = assignment.time_slot
            for kind, owner in (
                (ConflictKind.TEACHER_CONFLICT, assignment.teacher_id),
                (ConflictKind.CLASS_CONFLICT, assignment.class_id),
                (ConflictKind.ROOM_CONFLICT, assignment.room_id),
            ):
                key = (kind.value, owner, slot)
                if key in seen:
                    violations.append(
                        ConflictInfo(
                            kind=kind,
                            message=f"'{owner}' double-booked at {slot}",
                            conflicting_variable_ids=[seen[key], assignment.variable_id],
                        )
                    )
                else:
                    seen[key] = assignment.variable_id

            if assignment.is_fixed:
                continue
            if not self.grid.is_legal(slot):
                violations.append(
                    ConflictInfo(
                        kind=ConflictKind.FORBIDDEN_SLOT,
                        message=f"'{assignment.variable_id}' placed in forbidden slot {slot}",
                        conflicting_variable_ids=[assignment.variable_id],
                    )
                )
            variable = variables.get(assignment.variable_id)
            room = self.rooms.get(assignment.room_id)
            if variable is None:
                continue
            if room is None or not room.is_active:
                if not self.rules.room_constraints.permissive_room_lookup:
                    violations.append(
                        ConflictInfo(
                            kind=ConflictKind.ROOM_UNAVAILABLE,
                            message=f"'{assignment.variable_id}' uses unavailable room '{assignment.room_id}'",
                            conflicting_variable_ids=[assignment.variable_id],
                        )
                    )
            elif not meets_requirements(room, variable.room_requirements):
                violations.append(
                    ConflictInfo(
                        kind=ConflictKind.ROOM_REQUIREMENT,
                        message=f"Room '{room.id}' does not meet requirements of '{assignment.variable_id}'",
                        conflicting_variable_ids=[assignment.variable_id],
                    )
                )

        if violations:
            logger.error(f"Audit found {len(violations)} hard violation(s) in final schedule")
        return violations
