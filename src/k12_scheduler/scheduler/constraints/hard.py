"""Hard constraint implementations for the scheduler.

Hard constraints MUST be satisfied; any single violation rejects the
candidate assignment.

- HC-01: Teacher single booking
- HC-02: Class single booking
- HC-03: Room single booking
- HC-04: Room requirements (type, capacity, equipment, active room)
- HC-05: Forbidden / non-working slots
- HC-06: Fixed-time course protection
- HC-07: Subject daily cap for non-core subjects
- HC-08: Subject time constraints
"""

from ..models import ConflictInfo, ConflictKind, Room, ScheduleVariable, TimeSlot
from ..rooms import meets_requirements
from ..rules import SchedulingRules
from ..state import ScheduleState
from ..timeslots import TimeGrid
from .base import HardConstraint


class TeacherSingleBooking(HardConstraint):
    """HC-01: A teacher teaches at most one lesson per slot."""

    code = "HC-01"

    def check(self, variable, slot, room, state):
        holder = state.tracker.teacher_holder(variable.teacher_id, slot)
        if holder is None:
            return None
        return ConflictInfo(
            kind=ConflictKind.TEACHER_CONFLICT,
            message=f"Teacher '{variable.teacher_id}' already teaches at {slot}",
            conflicting_variable_ids=[holder],
        )


class ClassSingleBooking(HardConstraint):
    """HC-02: A class attends at most one lesson per slot."""

    code = "HC-02"

    def check(self, variable, slot, room, state):
        holder = state.tracker.class_holder(variable.class_id, slot)
        if holder is None:
            return None
        return ConflictInfo(
            kind=ConflictKind.CLASS_CONFLICT,
            message=f"Class '{variable.class_id}' already has a lesson at {slot}",
            conflicting_variable_ids=[holder],
        )


class RoomSingleBooking(HardConstraint):
    """HC-03: A room hosts at most one lesson per slot."""

    code = "HC-03"

    def check(self, variable, slot, room, state):
        if room is None:
            return None
        holder = state.tracker.room_holder(room.id, slot)
        if holder is None:
            return None
        return ConflictInfo(
            kind=ConflictKind.ROOM_CONFLICT,
            message=f"Room '{room.id}' already used at {slot}",
            conflicting_variable_ids=[holder],
        )


class RoomRequirementMatch(HardConstraint):
    """HC-04: The room exists, is active and satisfies the course requirements.

    Rooms unknown to the run are rejected unless the room constraints
    enable ``permissive_room_lookup``.
    """

    code = "HC-04"

    def __init__(self, rules: SchedulingRules, grid: TimeGrid, rooms: dict[str, Room]):
        super().__init__(rules, grid)
        self.rooms = rooms

    def check(self, variable, slot, room, state):
        if room is None:
            return ConflictInfo(
                kind=ConflictKind.NO_ROOM,
                message=f"No admissible room for '{variable.subject}' of class '{variable.class_id}'",
            )
        known = self.rooms.get(room.id)
        if known is None:
            if self.rules.room_constraints.permissive_room_lookup:
                return None
            return ConflictInfo(
                kind=ConflictKind.ROOM_UNAVAILABLE,
                message=f"Room '{room.id}' is not part of this run",
            )
        if not known.is_active:
            return ConflictInfo(
                kind=ConflictKind.ROOM_UNAVAILABLE,
                message=f"Room '{room.id}' is inactive",
            )
        if not meets_requirements(known, variable.room_requirements):
            return ConflictInfo(
                kind=ConflictKind.ROOM_REQUIREMENT,
                message=(
                    f"Room '{room.id}' ({known.type}, {known.capacity} seats) does not meet "
                    f"requirements of '{variable.subject}'"
                ),
            )
        return None


class ForbiddenSlotConstraint(HardConstraint):
    """HC-05: Only legal grid slots may be used."""

    code = "HC-05"

    def check(self, variable, slot, room, state):
        if self.grid.is_legal(slot):
            return None
        return ConflictInfo(
            kind=ConflictKind.FORBIDDEN_SLOT,
            message=f"{slot} is not a schedulable slot",
        )


class FixedTimeProtection(HardConstraint):
    """HC-06: Slots reserved by fixed-time courses stay with them."""

    code = "HC-06"

    def check(self, variable, slot, room, state):
        if not state.is_reserved(variable.class_id, slot):
            return None
        holder = state.tracker.class_holder(variable.class_id, slot)
        return ConflictInfo(
            kind=ConflictKind.FIXED_TIME_RESERVED,
            message=f"{slot} is reserved by a fixed-time course for class '{variable.class_id}'",
            conflicting_variable_ids=[holder] if holder else [],
        )


class SubjectDailyLimit(HardConstraint):
    """HC-07: Non-core subjects appear at most N times per class per day."""

    code = "HC-07"

    def check(self, variable, slot, room, state):
        if variable.is_core:
            return None
        limit = self.rules.course_arrangement.elective_daily_limit
        count = state.tracker.subject_count_on_day(variable.class_id, variable.subject, slot.day_of_week)
        if count < limit:
            return None
        return ConflictInfo(
            kind=ConflictKind.SUBJECT_DAILY_LIMIT,
            message=(
                f"'{variable.subject}' already scheduled {count}x on {slot.day_name} "
                f"for class '{variable.class_id}'"
            ),
        )


class SubjectTimeRule(HardConstraint):
    """HC-08: Cap lessons of a subject at a period within a day range."""

    code = "HC-08"

    def check(self, variable, slot, room, state):
        for rule in self.rules.course_arrangement.subject_time_constraints:
            if rule.subject != variable.subject or not rule.covers(slot.day_of_week, slot.period):
                continue
            holders = []
            for day in range(rule.start_day, rule.end_day + 1):
                holder = state.tracker.class_holder(variable.class_id, TimeSlot(day, rule.period))
                if holder and state.assignments[holder].subject == rule.subject:
                    holders.append(holder)
            if len(holders) >= rule.required_occurrences:
                return ConflictInfo(
                    kind=ConflictKind.SUBJECT_TIME_RULE,
                    message=(
                        f"'{rule.subject}' already has {len(holders)} lesson(s) in period "
                        f"{rule.period} for class '{variable.class_id}'"
                    ),
                    conflicting_variable_ids=holders,
                )
        return None


def build_hard_constraints(
    rules: SchedulingRules, grid: TimeGrid, rooms: dict[str, Room]
) -> list[HardConstraint]:
    """Hard constraints in evaluation order."""
    return [
        ForbiddenSlotConstraint(rules, grid),
        FixedTimeProtection(rules, grid),
        TeacherSingleBooking(rules, grid),
        ClassSingleBooking(rules, grid),
        RoomRequirementMatch(rules, grid, rooms),
        RoomSingleBooking(rules, grid),
        SubjectDailyLimit(rules, grid),
        SubjectTimeRule(rules, grid),
    ]


def check_all(
    constraints: list[HardConstraint],
    variable: ScheduleVariable,
    slot: TimeSlot,
    room: Room | None,
    state: ScheduleState,
) -> list[ConflictInfo]:
    """Run every constraint and collect the conflicts."""
    conflicts = []
    for constraint in constraints:
        conflict = constraint.check(variable, slot, room, state)
        if conflict is not None:
            conflicts.append(conflict)
    return conflicts
