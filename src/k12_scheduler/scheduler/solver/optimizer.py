"""Local improvement of a finished schedule by pairwise slot swaps."""

import logging
import random
from dataclasses import dataclass

from ..constraints import ConstraintChecker
from ..models import Assignment, ScheduleVariable, TimeSlot
from ..state import ScheduleState
from .search import RoomResolver, SearchBudget

logger = logging.getLogger(__name__)


@dataclass
class OptimizationResult:
    iterations: int = 0
    accepted_swaps: int = 0
    initial_penalty: float = 0.0
    final_penalty: float = 0.0


class LocalOptimizer:
    """Greedy randomized swaps of time slots between two assignments.

    A swap is kept only when both moved lessons pass every hard constraint
    at their new slots and the total soft penalty strictly decreases.
    """

    def __init__(
        self,
        checker: ConstraintChecker,
        resolver: RoomResolver,
        iterations: int,
        seed: int | None = None,
        budget: SearchBudget | None = None,
    ):
        self.checker = checker
        self.resolver = resolver
        self.iterations = iterations
        self.rng = random.Random(seed)
        self.budget = budget

    def optimize(
        self,
        state: ScheduleState,
        variables: dict[str, ScheduleVariable],
        movable_ids: list[str],
        allowed_slots: dict[str, list[TimeSlot]],
    ) -> OptimizationResult:
        movable = [vid for vid in movable_ids if vid in state.assignments and vid in variables]
        current = self.checker.evaluate_soft(state, variables).penalty
        result = OptimizationResult(initial_penalty=current, final_penalty=current)
        if len(movable) < 2 or self.iterations <= 0:
            return result

        for _ in range(self.iterations):
            if self.budget is not None and self.budget.halt_reason():
                break
            result.iterations += 1
            first_id, second_id = self.rng.sample(movable, 2)
            first = state.assignments[first_id]
            second = state.assignments[second_id]
            if first.time_slot == second.time_slot:
                continue
            first_var, second_var = variables[first_id], variables[second_id]
            if second.time_slot not in allowed_slots.get(first_id, ()) or first.time_slot not in allowed_slots.get(
                second_id, ()
            ):
                continue

            moved = self._swap(state, first, second, first_var, second_var)
            if moved is None:
                continue
            penalty = self.checker.evaluate_soft(state, variables).penalty
            if penalty < current:
                current = penalty
                result.accepted_swaps += 1
            else:
                self._revert(state, moved, (first, second))

        result.final_penalty = current
        logger.info(
            f"Local optimization: {result.accepted_swaps} swaps accepted in {result.iterations} "
            f"iterations, penalty {result.initial_penalty:.1f} -> {result.final_penalty:.1f}"
        )
        return result

    def _place(
        self, state: ScheduleState, variable: ScheduleVariable, original: Assignment, slot: TimeSlot
    ) -> Assignment | None:
        room = self.resolver.resolve(variable, slot, state)
        if not self.checker.is_legal(variable, slot, room, state):
            return None
        moved = Assignment(
            variable_id=original.variable_id,
            class_id=original.class_id,
            course_id=original.course_id,
            teacher_id=original.teacher_id,
            room_id=room.id,
            time_slot=slot,
            subject=original.subject,
        )
        state.commit(moved)
        return moved

    def _swap(
        self,
        state: ScheduleState,
        first: Assignment,
        second: Assignment,
        first_var: ScheduleVariable,
        second_var: ScheduleVariable,
    ) -> tuple[Assignment, ...] | None:
        state.release(first.variable_id)
        state.release(second.variable_id)

        moved_first = self._place(state, first_var, first, second.time_slot)
        if moved_first is None:
            self._revert(state, (), (first, second))
            return None
        moved_second = self._place(state, second_var, second, first.time_slot)
        if moved_second is None:
            self._revert(state, (moved_first,), (first, second))
            return None
        return moved_first, moved_second

    @staticmethod
    def _revert(
        state: ScheduleState,
        moved: tuple[Assignment, ...],
        originals: tuple[Assignment, Assignment],
    ) -> None:
        for assignment in moved:
            state.release(assignment.variable_id)
        for assignment in originals:
            state.commit(assignment)
