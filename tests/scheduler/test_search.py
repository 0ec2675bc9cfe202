"""Tests for the search engine, failure analysis and local optimization."""

import threading

import pytest

from k12_scheduler.scheduler.constraints import ConstraintChecker
from k12_scheduler.scheduler.models import (
    RoomRequirements,
    SearchStatus,
    TimeSlot,
    UnassignedVariable,
    UnscheduledReason,
)
from k12_scheduler.scheduler.rooms import RoomAllocator, RoomTypeCatalog
from k12_scheduler.scheduler.rules import AlgorithmConfig, SchedulingRules, TimeRules
from k12_scheduler.scheduler.solver import (
    FailureAnalyzer,
    LocalOptimizer,
    RoomResolver,
    SearchBudget,
    SearchEngine,
)
from k12_scheduler.scheduler.state import ScheduleState
from k12_scheduler.scheduler.timeslots import TimeGrid

MONDAY = [TimeSlot(1, period) for period in range(1, 6)]


class Harness:
    """Search components wired the way the scheduler wires them."""

    def __init__(self, rules, rooms, config=None, cancel_event=None):
        self.rules = rules
        self.grid = TimeGrid(rules.time_rules)
        self.checker = ConstraintChecker(rules, self.grid, rooms)
        catalog = RoomTypeCatalog.default()
        self.resolver = RoomResolver(RoomAllocator(catalog, rules.room_constraints), rooms, {})
        self.budget = SearchBudget.from_config(config or AlgorithmConfig(), cancel_event)
        self.analyzer = FailureAnalyzer(self.checker, self.resolver, catalog)
        self.state = ScheduleState()

    def search(self, variables):
        self.state.register(v.id for v in variables)
        engine = SearchEngine(
            self.checker,
            self.resolver,
            self.budget,
            self.analyzer,
            {v.id: list(v.domain) for v in variables},
        )
        return engine.search(variables, self.state, "test")


@pytest.fixture
def harness(monday_rules, classroom):
    return Harness(monday_rules, [classroom])


class TestSearchBudget:
    """Tests for SearchBudget."""

    def test_within_budget(self):
        assert SearchBudget.from_config(AlgorithmConfig()).halt_reason() is None

    def test_iteration_limit(self):
        budget = SearchBudget.from_config(AlgorithmConfig(max_iterations=10))
        budget.iterations = 10
        assert "iteration limit" in budget.halt_reason()

    def test_time_limit(self):
        budget = SearchBudget.from_config(AlgorithmConfig(time_limit=0))
        assert budget.halt_reason() == "time limit reached"

    def test_cancel(self):
        event = threading.Event()
        budget = SearchBudget.from_config(AlgorithmConfig(), event)
        event.set()
        assert budget.halt_reason() == "cancelled"

    def test_backtracks(self):
        budget = SearchBudget.from_config(AlgorithmConfig(backtrack_limit=0))
        assert budget.backtracks_exhausted


class TestSearchEngine:
    """Tests for SearchEngine."""

    def test_assigns_everything(self, harness, make_variable):
        variables = [
            make_variable(f"v{i}", is_core=True, domain=MONDAY, index=i) for i in range(5)
        ]
        outcome = harness.search(variables)
        assert outcome.status == SearchStatus.SUCCESS
        assert sorted(outcome.assigned_ids) == [f"v{i}" for i in range(5)]
        assert {a.time_slot for a in harness.state.assignments.values()} == set(MONDAY)
        harness.state.check_invariants()

    def test_most_constrained_variable_first(self, harness, make_variable):
        loose = make_variable("loose", subject="History", course_id="history", domain=MONDAY[:3], index=0)
        tight = make_variable(
            "tight", subject="Geography", course_id="geo", domain=[MONDAY[0]], index=1
        )
        outcome = harness.search([loose, tight])
        assert outcome.status == SearchStatus.SUCCESS
        assert harness.state.assignments["tight"].time_slot == MONDAY[0]
        assert harness.state.assignments["loose"].time_slot == MONDAY[1]

    def test_prefers_low_penalty_slots(self, harness, make_variable):
        core = make_variable("v0", is_core=True, domain=MONDAY)
        harness.search([core])
        # Period 1 is avoided for core subjects, period 2 is preferred
        assert harness.state.assignments["v0"].time_slot == TimeSlot(1, 2)

    def test_forward_checking_prunes_neighbours(self, harness, make_variable):
        first = make_variable("v0", is_core=True, domain=MONDAY[:2], index=0)
        second = make_variable("v1", is_core=True, domain=MONDAY[:2], index=1)
        harness.search([first, second])
        assert len(second.domain) == 1
        assert harness.state.assignments["v0"].time_slot not in second.domain

    def test_unplaceable_variable_dropped(self, harness, make_variable):
        lab = make_variable(
            "lab0",
            subject="Physics",
            course_id="lab",
            domain=MONDAY,
            room_requirements=RoomRequirements(types=["lab"]),
        )
        outcome = harness.search([lab])
        assert outcome.status == SearchStatus.EXHAUSTED
        assert outcome.unresolved["lab0"][0] == UnscheduledReason.NO_ROOM_AVAILABLE
        assert outcome.backtracks == 0

    def test_root_fallback_drops_starved_variable(self, harness, make_variable):
        first = make_variable("c1", class_id="C1", is_core=True, domain=[MONDAY[0]], index=0)
        second = make_variable("c2", class_id="C2", is_core=True, domain=[MONDAY[0]], index=1)
        outcome = harness.search([first, second])
        assert outcome.status == SearchStatus.EXHAUSTED
        assert outcome.assigned_ids == ["c1"]
        assert outcome.unresolved["c2"][0] == UnscheduledReason.TEACHER_CONFLICT

    def _history(self, make_variable, n, periods, extra=()):
        # Separate class and teacher per lesson; only the single room links them
        return make_variable(
            f"h{n}",
            class_id=f"C{n}",
            teacher_id=f"T{n}",
            subject="History",
            course_id="history",
            domain=[MONDAY[p - 1] for p in periods] + list(extra),
            index=n,
        )

    def test_backtracks_on_room_clash(self, harness, make_variable):
        first = self._history(make_variable, 0, [1, 2])
        second = self._history(make_variable, 1, [2, 3])
        third = self._history(make_variable, 2, [1, 2])

        outcome = harness.search([first, second, third])

        assert outcome.status == SearchStatus.SUCCESS
        assert outcome.backtracks == 1
        slots = {vid: a.time_slot.period for vid, a in harness.state.assignments.items()}
        assert slots == {"h0": 1, "h1": 3, "h2": 2}
        harness.state.check_invariants()

    def test_backtracks_past_exhausted_parent(self, harness, make_variable):
        # h1's second value is on a non-working day, so after h2 fails the
        # search has to go back to h0 rather than give up on h1
        first = self._history(make_variable, 0, [1, 2])
        second = self._history(make_variable, 1, [3], extra=[TimeSlot(2, 1)])
        third = self._history(make_variable, 2, [1, 3])

        outcome = harness.search([first, second, third])

        assert outcome.status == SearchStatus.SUCCESS
        assert outcome.unresolved == {}
        assert outcome.backtracks == 2
        slots = {vid: a.time_slot.period for vid, a in harness.state.assignments.items()}
        assert slots == {"h0": 2, "h1": 3, "h2": 1}
        harness.state.check_invariants()

    def test_backtracking_restores_pruned_domains(self, harness, make_variable):
        history = make_variable(
            "a", subject="History", course_id="history", domain=MONDAY[:2], index=0
        )
        geography = make_variable(
            "b", subject="Geography", course_id="geo", domain=MONDAY[:3], index=1
        )
        other = self._history(make_variable, 2, [1], extra=[TimeSlot(2, 1)])

        outcome = harness.search([history, geography, other])

        assert outcome.status == SearchStatus.SUCCESS
        assert outcome.backtracks >= 1
        slots = {vid: a.time_slot.period for vid, a in harness.state.assignments.items()}
        assert slots == {"a": 2, "b": 3, "h2": 1}
        # Period 1 came back to b when a's first commit was undone
        assert set(geography.domain) == {MONDAY[0], MONDAY[2]}
        harness.state.check_invariants()

    def test_iteration_budget(self, monday_rules, classroom, make_variable):
        harness = Harness(monday_rules, [classroom], AlgorithmConfig(max_iterations=0))
        outcome = harness.search([make_variable("v0", is_core=True, domain=MONDAY)])
        assert outcome.status == SearchStatus.PARTIAL
        assert outcome.unresolved["v0"][0] == UnscheduledReason.BUDGET_EXCEEDED
        assert "iteration limit" in outcome.message

    def test_backtrack_limit_zero(self, monday_rules, classroom, make_variable):
        harness = Harness(monday_rules, [classroom], AlgorithmConfig(backtrack_limit=0))
        lab = make_variable(
            "lab0",
            subject="Physics",
            domain=MONDAY,
            room_requirements=RoomRequirements(types=["lab"]),
        )
        outcome = harness.search([lab])
        assert outcome.status == SearchStatus.PARTIAL
        assert outcome.backtracks == 0
        assert "backtrack limit" in outcome.message


class TestFailureAnalyzer:
    """Tests for diagnosis and suggestions."""

    def test_no_candidate_slots(self, harness, make_variable):
        reason, _ = harness.analyzer.diagnose(make_variable("v0"), [], harness.state)
        assert reason == UnscheduledReason.NO_SLOT_AVAILABLE

    def test_teacher_busy_everywhere(self, harness, make_variable, make_assignment):
        harness.state.register(["busy", "v0"])
        harness.state.commit(make_assignment("busy", 1, 1, class_id="C9", room_id="R9"))
        variable = make_variable("v0", class_id="C2")
        reason, details = harness.analyzer.diagnose(variable, [MONDAY[0]], harness.state)
        assert reason == UnscheduledReason.TEACHER_CONFLICT
        assert "teacher_conflict=1" in details

    def test_required_room_types(self, harness, make_variable):
        assert "gym" in harness.analyzer.required_room_types(make_variable(subject="体育"))
        assert harness.analyzer.required_room_types(make_variable(subject="数学")) == ()

    def test_suggestions(self, harness):
        unassigned = [
            UnassignedVariable("v1", "C1", "pe", "T3", "体育", UnscheduledReason.NO_ROOM_AVAILABLE),
            UnassignedVariable("v2", "C2", "math", "T1", "数学", UnscheduledReason.TEACHER_CONFLICT),
            UnassignedVariable("v3", "C1", "math", "T1", "数学", UnscheduledReason.BUDGET_EXCEEDED),
        ]
        suggestions = harness.analyzer.suggest(unassigned, {}, harness.state, available_slots=5)
        assert suggestions[0] == "3 lesson(s) could not be scheduled"
        assert any(s.startswith("Insufficient specialized rooms for '体育'") for s in suggestions)
        assert any("Teacher 'T1'" in s and "teacher conflict" in s for s in suggestions)
        assert any("Search budget exhausted" in s for s in suggestions)


class TestLocalOptimizer:
    """Tests for pairwise swap optimization."""

    @pytest.fixture
    def two_periods(self):
        return SchedulingRules(time_rules=TimeRules(daily_periods=2, working_days=(1,)))

    def _place(self, harness, make_assignment, variables, slots):
        harness.state.register(variables)
        for (variable_id, variable), period in zip(variables.items(), slots):
            harness.state.commit(
                make_assignment(
                    variable_id, 1, period, subject=variable.subject, course_id=variable.course_id
                )
            )

    def test_swap_that_helps_is_kept(self, two_periods, classroom, make_variable, make_assignment):
        harness = Harness(two_periods, [classroom])
        variables = {
            "h": make_variable("h", subject="History", course_id="history", time_preferences=[TimeSlot(1, 2)]),
            "g": make_variable("g", subject="Geography", course_id="geo", time_preferences=[TimeSlot(1, 1)]),
        }
        self._place(harness, make_assignment, variables, [1, 2])
        slots = {key: [TimeSlot(1, 1), TimeSlot(1, 2)] for key in variables}
        optimizer = LocalOptimizer(harness.checker, harness.resolver, iterations=5, seed=1)
        result = optimizer.optimize(harness.state, variables, list(variables), slots)

        assert result.accepted_swaps == 1
        assert result.initial_penalty == 30
        assert result.final_penalty == 0
        assert harness.state.assignments["h"].time_slot == TimeSlot(1, 2)
        assert harness.state.assignments["g"].time_slot == TimeSlot(1, 1)
        harness.state.check_invariants()

    def test_no_improvement_keeps_schedule(self, two_periods, classroom, make_variable, make_assignment):
        harness = Harness(two_periods, [classroom])
        variables = {
            "h": make_variable("h", subject="History", course_id="history", time_preferences=[TimeSlot(1, 1)]),
            "g": make_variable("g", subject="Geography", course_id="geo", time_preferences=[TimeSlot(1, 2)]),
        }
        self._place(harness, make_assignment, variables, [1, 2])
        slots = {key: [TimeSlot(1, 1), TimeSlot(1, 2)] for key in variables}
        optimizer = LocalOptimizer(harness.checker, harness.resolver, iterations=5, seed=1)
        result = optimizer.optimize(harness.state, variables, list(variables), slots)

        assert result.accepted_swaps == 0
        assert harness.state.assignments["h"].time_slot == TimeSlot(1, 1)

    def test_single_variable_untouched(self, two_periods, classroom, make_variable, make_assignment):
        harness = Harness(two_periods, [classroom])
        variables = {"h": make_variable("h", subject="History", course_id="history")}
        self._place(harness, make_assignment, variables, [1])
        result = LocalOptimizer(harness.checker, harness.resolver, iterations=5).optimize(
            harness.state, variables, ["h"], {"h": [TimeSlot(1, 1)]}
        )
        assert result.iterations == 0
