"""Failure analysis for variables the search could not place."""

from collections import Counter, defaultdict
from typing import TYPE_CHECKING

from ..models import (
    ConflictKind,
    ScheduleVariable,
    TimeSlot,
    UnassignedVariable,
    UnscheduledReason,
)
from ..state import ScheduleState

if TYPE_CHECKING:
    from ..constraints import ConstraintChecker
    from ..rooms import RoomTypeCatalog
    from .search import RoomResolver

REASON_BY_CONFLICT = {
    ConflictKind.NO_ROOM: UnscheduledReason.NO_ROOM_AVAILABLE,
    ConflictKind.ROOM_REQUIREMENT: UnscheduledReason.NO_ROOM_AVAILABLE,
    ConflictKind.ROOM_UNAVAILABLE: UnscheduledReason.NO_ROOM_AVAILABLE,
    ConflictKind.ROOM_CONFLICT: UnscheduledReason.NO_ROOM_AVAILABLE,
    ConflictKind.TEACHER_CONFLICT: UnscheduledReason.TEACHER_CONFLICT,
    ConflictKind.CLASS_CONFLICT: UnscheduledReason.CLASS_CONFLICT,
    ConflictKind.FIXED_TIME_RESERVED: UnscheduledReason.FIXED_TIME_RESERVED,
    ConflictKind.SUBJECT_DAILY_LIMIT: UnscheduledReason.SUBJECT_DAILY_LIMIT,
    ConflictKind.SUBJECT_TIME_RULE: UnscheduledReason.SUBJECT_DAILY_LIMIT,
    ConflictKind.FORBIDDEN_SLOT: UnscheduledReason.FORBIDDEN_SLOT,
}


class FailureAnalyzer:
    """Explains unplaced variables and turns the explanations into suggestions."""

    def __init__(
        self,
        checker: "ConstraintChecker",
        resolver: "RoomResolver",
        catalog: "RoomTypeCatalog",
    ):
        self.checker = checker
        self.resolver = resolver
        self.catalog = catalog

    def diagnose(
        self,
        variable: ScheduleVariable,
        slots: list[TimeSlot],
        state: ScheduleState,
    ) -> tuple[UnscheduledReason, str]:
        """Find the dominant reason every slot of the variable is rejected."""
        if not slots:
            return UnscheduledReason.NO_SLOT_AVAILABLE, "Variable has no candidate time slots"

        counts: Counter = Counter()
        for slot in slots:
            room = self.resolver.resolve(variable, slot, state)
            conflicts = self.checker.check(variable, slot, room, state)
            # A missing room hides every other reason
            if any(c.kind == ConflictKind.NO_ROOM for c in conflicts):
                counts[ConflictKind.NO_ROOM] += 1
                continue
            for conflict in conflicts:
                counts[conflict.kind] += 1

        if not counts:
            return (
                UnscheduledReason.NO_SLOT_AVAILABLE,
                f"All {len(slots)} candidate slots were needed by other lessons",
            )
        kind, hits = counts.most_common(1)[0]
        reason = REASON_BY_CONFLICT.get(kind, UnscheduledReason.UNKNOWN)
        summary = ", ".join(f"{k.value}={n}" for k, n in sorted(counts.items(), key=lambda kv: kv[0].value))
        return reason, f"{len(slots)} candidate slots rejected ({summary})"

    def required_room_types(self, variable: ScheduleVariable) -> tuple[str, ...]:
        if variable.room_requirements.types:
            return tuple(variable.room_requirements.types)
        category = self.catalog.category_for(variable.course_name, variable.subject)
        return self.catalog.room_types_for(category) if category else ()

    def suggest(
        self,
        unassigned: list[UnassignedVariable],
        variables: dict[str, ScheduleVariable],
        state: ScheduleState,
        available_slots: int,
        hard_violations: int = 0,
        soft_violations: int = 0,
    ) -> list[str]:
        """Human-readable hints for improving an incomplete schedule."""
        suggestions: list[str] = []
        if unassigned:
            suggestions.append(f"{len(unassigned)} lesson(s) could not be scheduled")

        by_reason: dict[UnscheduledReason, list[UnassignedVariable]] = defaultdict(list)
        for item in unassigned:
            by_reason[item.reason].append(item)

        rooms_needed: dict[str, set[str]] = defaultdict(set)
        for item in by_reason.get(UnscheduledReason.NO_ROOM_AVAILABLE, []):
            variable = variables.get(item.variable_id)
            types = self.required_room_types(variable) if variable else ()
            rooms_needed[item.subject].update(types)
        for subject, types in sorted(rooms_needed.items()):
            wanted = f" of type {', '.join(sorted(types))}" if types else ""
            suggestions.append(
                f"Insufficient specialized rooms for '{subject}': add rooms{wanted} "
                "or relax its room requirements"
            )

        teachers = Counter(item.teacher_id for item in by_reason.get(UnscheduledReason.TEACHER_CONFLICT, []))
        for teacher_id, count in sorted(teachers.items()):
            suggestions.append(
                f"Teacher '{teacher_id}' is over-committed (teacher conflict): {count} lesson(s) "
                "left unplaced; assign another teacher or free up time slots"
            )

        class_totals: Counter = Counter(v.class_id for v in variables.values())
        for a in state.assignments.values():
            if a.is_fixed:
                class_totals[a.class_id] += 1
        short_classes = sorted(
            {
                item.class_id
                for reason in (
                    UnscheduledReason.CLASS_CONFLICT,
                    UnscheduledReason.NO_SLOT_AVAILABLE,
                    UnscheduledReason.FIXED_TIME_RESERVED,
                )
                for item in by_reason.get(reason, [])
            }
        )
        for class_id in short_classes:
            suggestions.append(
                f"Class '{class_id}' needs {class_totals[class_id]} lessons per week with "
                f"{available_slots} schedulable slots: insufficient slots, add periods or reduce hours"
            )

        subjects = Counter(
            (item.class_id, item.subject) for item in by_reason.get(UnscheduledReason.SUBJECT_DAILY_LIMIT, [])
        )
        for (class_id, subject), count in sorted(subjects.items()):
            suggestions.append(
                f"Subject '{subject}' is over-constrained for class '{class_id}': {count} lesson(s) "
                "exceed the daily limit over the working days"
            )

        if UnscheduledReason.FORBIDDEN_SLOT in by_reason:
            suggestions.append("Some lessons only fit forbidden slots; review the forbidden time slots")

        if UnscheduledReason.BUDGET_EXCEEDED in by_reason:
            suggestions.append(
                "Search budget exhausted: increase maxIterations, backtrackLimit or timeLimit"
            )

        if hard_violations:
            suggestions.append(f"{hard_violations} hard constraint violation(s) remain in the schedule")
        if soft_violations:
            suggestions.append(f"{soft_violations} soft constraint violation(s) could be improved")
        return suggestions
