"""Backtracking search over scheduling variables.

The engine is depth-first with:
- MRV variable ordering (smallest domain first, declaration order on ties)
- value ordering by soft penalty, then (day, period)
- forward checking on variables sharing the teacher or the class

Frames are kept on an explicit stack rather than the Python call stack,
so large schools do not hit the recursion limit.
"""

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Callable

from ...exceptions import InternalInconsistencyError
from ..constraints import ConstraintChecker
from ..models import (
    Assignment,
    ConflictInfo,
    ConflictKind,
    Course,
    Room,
    ScheduleVariable,
    SchoolClass,
    SearchStatus,
    TimeSlot,
    UnscheduledReason,
)
from ..rooms import RoomAllocator
from ..rules import AlgorithmConfig
from ..state import ScheduleState
from .diagnostics import FailureAnalyzer

logger = logging.getLogger(__name__)

# Rejections that no amount of backtracking can undo
STATIC_CONFLICTS = frozenset(
    {
        ConflictKind.NO_ROOM,
        ConflictKind.ROOM_REQUIREMENT,
        ConflictKind.ROOM_UNAVAILABLE,
        ConflictKind.FORBIDDEN_SLOT,
        ConflictKind.FIXED_TIME_RESERVED,
    }
)


@dataclass
class SearchBudget:
    """Iteration, backtrack and wall-clock limits shared by all stages of a run."""

    max_iterations: int
    backtrack_limit: int
    deadline: float
    cancel_event: threading.Event | None = None
    iterations: int = 0
    backtracks: int = 0

    @classmethod
    def from_config(
        cls, config: AlgorithmConfig, cancel_event: threading.Event | None = None
    ) -> "SearchBudget":
        return cls(
            max_iterations=config.max_iterations,
            backtrack_limit=config.backtrack_limit,
            deadline=time.monotonic() + config.time_limit,
            cancel_event=cancel_event,
        )

    def halt_reason(self) -> str | None:
        """Why the run must stop now, or None to continue."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            return "cancelled"
        if self.iterations >= self.max_iterations:
            return f"iteration limit ({self.max_iterations}) reached"
        if time.monotonic() >= self.deadline:
            return "time limit reached"
        return None

    @property
    def backtracks_exhausted(self) -> bool:
        return self.backtracks >= self.backtrack_limit


class RoomResolver:
    """Picks the room for a variable at a slot, caching the ranked candidates."""

    def __init__(
        self,
        allocator: RoomAllocator,
        rooms: list[Room],
        classes: dict[str, SchoolClass],
    ):
        self.allocator = allocator
        self.rooms = rooms
        self.classes = classes
        self._ranked: dict[tuple[str, str], list[Room]] = {}

    def ranked(self, variable: ScheduleVariable) -> list[Room]:
        key = (variable.course_id, variable.class_id)
        if key not in self._ranked:
            course = Course(
                id=variable.course_id,
                name=variable.course_name or variable.subject,
                subject=variable.subject,
                room_requirements=variable.room_requirements,
            )
            self._ranked[key] = self.allocator.rank(course, variable.class_id, self.rooms, self.classes)
        return self._ranked[key]

    def resolve(self, variable: ScheduleVariable, slot: TimeSlot, state: ScheduleState) -> Room | None:
        """First free ranked room; the top room if all are busy, None if none fits."""
        ranked = self.ranked(variable)
        for room in ranked:
            if state.tracker.is_room_available(room.id, slot):
                return room
        return ranked[0] if ranked else None


@dataclass
class _Frame:
    variable: ScheduleVariable
    values: list[TimeSlot]
    cursor: int = 0
    committed: bool = False
    pruned: list[tuple[ScheduleVariable, TimeSlot]] = field(default_factory=list)
    # First hard-legal value that only failed forward checking
    fallback: tuple[TimeSlot, Room] | None = None
    static_only: bool = True
    rejections: Counter = field(default_factory=Counter)


@dataclass
class SearchOutcome:
    status: SearchStatus
    assigned_ids: list[str] = field(default_factory=list)
    unresolved: dict[str, tuple[UnscheduledReason, str]] = field(default_factory=dict)
    iterations: int = 0
    backtracks: int = 0
    message: str = ""


class SearchEngine:
    """Depth-first CSP search over one tier of variables."""

    def __init__(
        self,
        checker: ConstraintChecker,
        resolver: RoomResolver,
        budget: SearchBudget,
        analyzer: FailureAnalyzer,
        initial_domains: dict[str, list[TimeSlot]],
        on_commit: Callable[[ScheduleState, str], None] | None = None,
        verbose: bool = False,
    ):
        self.checker = checker
        self.resolver = resolver
        self.budget = budget
        self.analyzer = analyzer
        self.initial_domains = initial_domains
        self.on_commit = on_commit
        self.verbose = verbose
        self.status = SearchStatus.INITIALIZING
        # Variables committed by frames still on the stack
        self._owned: set[str] = set()

    def search(self, variables: list[ScheduleVariable], state: ScheduleState, stage: str) -> SearchOutcome:
        """Assign as many of the variables as possible.

        Returns SUCCESS when all were assigned, EXHAUSTED when some had to be
        dropped, PARTIAL when a budget stopped the run.
        """
        self.status = SearchStatus.SEARCHING
        start_iterations = self.budget.iterations
        start_backtracks = self.budget.backtracks
        elective_limit = self.checker.rules.course_arrangement.elective_daily_limit

        pending: dict[str, ScheduleVariable] = {v.id: v for v in variables if v.id in state.unassigned}
        base_length = state.history_length
        best = state.snapshot()
        dropped: dict[str, tuple[UnscheduledReason, str]] = {}
        stack: list[_Frame] = []
        frame: _Frame | None = None
        halt: str | None = None
        self._owned = set()

        logger.info(f"[{stage}] searching {len(pending)} variables")

        while True:
            halt = self.budget.halt_reason()
            if halt:
                break

            if frame is None:
                variable = self._select_variable(pending)
                if variable is None:
                    break
                frame = _Frame(variable=variable, values=self._order_values(variable, state))
                stack.append(frame)

            self.budget.iterations += 1

            if frame.cursor < len(frame.values):
                slot = frame.values[frame.cursor]
                frame.cursor += 1
                if self._try_value(frame, slot, state, pending, elective_limit):
                    del pending[frame.variable.id]
                    self._owned.add(frame.variable.id)
                    if state.history_length > len(best):
                        best = state.snapshot()
                    if self.on_commit:
                        self.on_commit(state, stage)
                    frame = None
                continue

            # Value cursor exhausted
            if self.budget.backtracks_exhausted:
                halt = f"backtrack limit ({self.budget.backtrack_limit}) reached"
                break
            stack.pop()
            if not stack and frame.fallback is not None:
                self._commit_fallback(frame, state, pending, dropped, elective_limit)
                if self.on_commit:
                    self.on_commit(state, stage)
                frame = None
            elif frame.static_only or not stack:
                reason = self.analyzer.diagnose(frame.variable, self.initial_domains[frame.variable.id], state)
                dropped[frame.variable.id] = reason
                del pending[frame.variable.id]
                if self.verbose:
                    logger.debug(f"[{stage}] dropped {frame.variable.id}: {reason[1]}")
                frame = None
            else:
                frame = stack[-1]
                self._undo(frame, state, pending)
                self.budget.backtracks += 1
                if self.verbose:
                    logger.debug(f"[{stage}] backtrack to {frame.variable.id}")

        if halt:
            self.status = SearchStatus.PARTIAL
            logger.warning(f"[{stage}] search halted: {halt}")
            if len(best) > state.history_length:
                state.restore(best, base_length)
        elif dropped:
            self.status = SearchStatus.EXHAUSTED
        else:
            self.status = SearchStatus.SUCCESS

        outcome = SearchOutcome(
            status=self.status,
            iterations=self.budget.iterations - start_iterations,
            backtracks=self.budget.backtracks - start_backtracks,
            message=halt or "",
        )
        for variable in variables:
            if variable.id in state.assignments:
                outcome.assigned_ids.append(variable.id)
            elif variable.id in dropped:
                outcome.unresolved[variable.id] = dropped[variable.id]
            else:
                outcome.unresolved[variable.id] = (
                    UnscheduledReason.BUDGET_EXCEEDED,
                    f"Search stopped before placing: {halt}",
                )
        logger.info(
            f"[{stage}] {self.status.value}: {len(outcome.assigned_ids)} assigned, "
            f"{len(outcome.unresolved)} unresolved, {outcome.iterations} iterations, "
            f"{outcome.backtracks} backtracks"
        )
        return outcome

    def _select_variable(self, pending: dict[str, ScheduleVariable]) -> ScheduleVariable | None:
        """Minimum remaining values, ties broken by declaration order."""
        if not pending:
            return None
        return min(pending.values(), key=lambda v: (len(v.domain), v.index))

    def _order_values(self, variable: ScheduleVariable, state: ScheduleState) -> list[TimeSlot]:
        return sorted(
            variable.domain,
            key=lambda slot: (
                self.checker.slot_penalty(variable, slot, state),
                slot.day_of_week,
                slot.period,
            ),
        )

    def _make_assignment(self, variable: ScheduleVariable, slot: TimeSlot, room: Room) -> Assignment:
        return Assignment(
            variable_id=variable.id,
            class_id=variable.class_id,
            course_id=variable.course_id,
            teacher_id=variable.teacher_id,
            room_id=room.id,
            time_slot=slot,
            subject=variable.subject,
        )

    def _record_rejections(self, frame: _Frame, conflicts: list[ConflictInfo]) -> None:
        for conflict in conflicts:
            frame.rejections[conflict.kind] += 1
            if conflict.kind in STATIC_CONFLICTS:
                continue
            # A conflict with a commit no open frame owns cannot be undone
            if conflict.conflicting_variable_ids and not self._owned.intersection(
                conflict.conflicting_variable_ids
            ):
                continue
            frame.static_only = False

    def _try_value(
        self,
        frame: _Frame,
        slot: TimeSlot,
        state: ScheduleState,
        pending: dict[str, ScheduleVariable],
        elective_limit: int,
    ) -> bool:
        variable = frame.variable
        room = self.resolver.resolve(variable, slot, state)
        conflicts = self.checker.check(variable, slot, room, state)
        if conflicts:
            self._record_rejections(frame, conflicts)
            return False

        state.commit(self._make_assignment(variable, slot, room))
        pruned, wiped = self._forward_check(variable, slot, state, pending, elective_limit)
        if wiped:
            self._restore_domains(pruned)
            state.undo_last()
            frame.static_only = False
            frame.rejections["forward_check"] += 1
            if frame.fallback is None:
                frame.fallback = (slot, room)
            return False

        frame.pruned = pruned
        frame.committed = True
        return True

    def _forward_check(
        self,
        variable: ScheduleVariable,
        slot: TimeSlot,
        state: ScheduleState,
        pending: dict[str, ScheduleVariable],
        elective_limit: int,
    ) -> tuple[list[tuple[ScheduleVariable, TimeSlot]], list[ScheduleVariable]]:
        """Prune slots made infeasible by the latest commit from related variables."""
        pruned: list[tuple[ScheduleVariable, TimeSlot]] = []
        wiped: list[ScheduleVariable] = []
        day = slot.day_of_week
        subject_full = (
            not variable.is_core
            and state.tracker.subject_count_on_day(variable.class_id, variable.subject, day) >= elective_limit
        )
        for other in pending.values():
            if other.id == variable.id:
                continue
            same_teacher = other.teacher_id == variable.teacher_id
            same_class = other.class_id == variable.class_id
            if not (same_teacher or same_class):
                continue
            removals = [slot] if slot in other.domain else []
            if same_class and subject_full and not other.is_core and other.subject == variable.subject:
                removals.extend(s for s in other.domain if s.day_of_week == day and s != slot)
            if not removals:
                continue
            for removed in removals:
                other.domain.remove(removed)
                pruned.append((other, removed))
            if not other.domain:
                wiped.append(other)
        return pruned, wiped

    @staticmethod
    def _restore_domains(pruned: list[tuple[ScheduleVariable, TimeSlot]]) -> None:
        for other, removed in reversed(pruned):
            other.domain.append(removed)

    def _undo(self, frame: _Frame, state: ScheduleState, pending: dict[str, ScheduleVariable]) -> None:
        """Take back the frame's commit so its next value can be tried."""
        if not frame.committed:
            raise InternalInconsistencyError(f"backtrack into uncommitted frame '{frame.variable.id}'")
        undone = state.undo_last()
        if undone.variable_id != frame.variable.id:
            raise InternalInconsistencyError(
                f"undo order broken: expected '{frame.variable.id}', got '{undone.variable_id}'"
            )
        self._restore_domains(frame.pruned)
        frame.pruned = []
        frame.committed = False
        # The failure below depended on this commit
        frame.static_only = False
        self._owned.discard(frame.variable.id)
        pending[frame.variable.id] = frame.variable

    def _commit_fallback(
        self,
        frame: _Frame,
        state: ScheduleState,
        pending: dict[str, ScheduleVariable],
        dropped: dict[str, tuple[UnscheduledReason, str]],
        elective_limit: int,
    ) -> None:
        """Keep a root-level value even though it starves other variables.

        The variables whose domains it empties are dropped instead; with no
        parent frame there is nothing left to backtrack into.
        """
        variable = frame.variable
        slot, room = frame.fallback
        state.commit(self._make_assignment(variable, slot, room))
        del pending[variable.id]
        _, wiped = self._forward_check(variable, slot, state, pending, elective_limit)
        for other in wiped:
            if other.teacher_id == variable.teacher_id:
                reason = UnscheduledReason.TEACHER_CONFLICT
                details = f"Teacher '{other.teacher_id}' has no free slot left (taken by '{variable.id}')"
            elif other.subject == variable.subject and not other.is_core:
                reason = UnscheduledReason.SUBJECT_DAILY_LIMIT
                details = f"Daily limit of '{other.subject}' leaves no slot for class '{other.class_id}'"
            else:
                reason = UnscheduledReason.CLASS_CONFLICT
                details = f"Class '{other.class_id}' has no free slot left (taken by '{variable.id}')"
            dropped[other.id] = (reason, details)
            del pending[other.id]
