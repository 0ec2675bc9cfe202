"""Tests for hard and soft constraints."""

import pytest

from k12_scheduler.scheduler.constraints import ConstraintChecker
from k12_scheduler.scheduler.models import ConflictKind, Room, RoomRequirements, TimeSlot
from k12_scheduler.scheduler.rules import (
    CourseArrangementRules,
    RoomConstraints,
    SchedulingRules,
    SubjectTimeConstraint,
    TimeRules,
)
from k12_scheduler.scheduler.state import ScheduleState
from k12_scheduler.scheduler.timeslots import TimeGrid

MONDAY = TimeRules(daily_periods=5, working_days=(1,))


@pytest.fixture
def rooms(classroom):
    return [classroom, Room(id="R102", name="Room 102", capacity=40)]


@pytest.fixture
def checker(monday_rules, rooms):
    return ConstraintChecker(monday_rules, TimeGrid(monday_rules.time_rules), rooms)


@pytest.fixture
def state():
    schedule_state = ScheduleState()
    schedule_state.register(["v1", "v2", "v3", "v4"])
    return schedule_state


def kinds(conflicts):
    return [c.kind for c in conflicts]


class TestHardConstraints:
    """Tests for HC-01 to HC-08."""

    def test_legal_candidate(self, checker, state, make_variable, classroom):
        variable = make_variable("v2")
        assert checker.check(variable, TimeSlot(1, 1), classroom, state) == []
        assert checker.is_legal(variable, TimeSlot(1, 1), classroom, state)

    def test_teacher_conflict(self, checker, state, make_variable, make_assignment, rooms):
        state.commit(make_assignment("v1", 1, 1))
        variable = make_variable("v2", class_id="C2")
        conflicts = checker.check(variable, TimeSlot(1, 1), rooms[1], state)
        assert kinds(conflicts) == [ConflictKind.TEACHER_CONFLICT]
        assert conflicts[0].conflicting_variable_ids == ["v1"]

    def test_class_conflict(self, checker, state, make_variable, make_assignment, rooms):
        state.commit(make_assignment("v1", 1, 1))
        variable = make_variable("v2", teacher_id="T2", subject="语文")
        assert kinds(checker.check(variable, TimeSlot(1, 1), rooms[1], state)) == [ConflictKind.CLASS_CONFLICT]

    def test_room_conflict(self, checker, state, make_variable, make_assignment, classroom):
        state.commit(make_assignment("v1", 1, 1))
        variable = make_variable("v2", class_id="C2", teacher_id="T2")
        assert kinds(checker.check(variable, TimeSlot(1, 1), classroom, state)) == [ConflictKind.ROOM_CONFLICT]

    def test_no_room(self, checker, state, make_variable):
        assert kinds(checker.check(make_variable("v2"), TimeSlot(1, 1), None, state)) == [ConflictKind.NO_ROOM]

    def test_unknown_room_fails_closed(self, checker, state, make_variable):
        stranger = Room(id="R999", name="Elsewhere")
        conflicts = checker.check(make_variable("v2"), TimeSlot(1, 1), stranger, state)
        assert kinds(conflicts) == [ConflictKind.ROOM_UNAVAILABLE]

    def test_unknown_room_permissive(self, rooms, state, make_variable):
        rules = SchedulingRules(time_rules=MONDAY, room_constraints=RoomConstraints(permissive_room_lookup=True))
        checker = ConstraintChecker(rules, TimeGrid(MONDAY), rooms)
        stranger = Room(id="R999", name="Elsewhere")
        assert checker.check(make_variable("v2"), TimeSlot(1, 1), stranger, state) == []

    def test_inactive_room(self, monday_rules, state, make_variable):
        closed = Room(id="R1", name="Closed", is_active=False)
        checker = ConstraintChecker(monday_rules, TimeGrid(MONDAY), [closed])
        assert kinds(checker.check(make_variable("v2"), TimeSlot(1, 1), closed, state)) == [
            ConflictKind.ROOM_UNAVAILABLE
        ]

    def test_room_requirements(self, checker, state, make_variable, classroom):
        variable = make_variable("v2", room_requirements=RoomRequirements(capacity=50))
        assert kinds(checker.check(variable, TimeSlot(1, 1), classroom, state)) == [ConflictKind.ROOM_REQUIREMENT]

    def test_forbidden_slot(self, checker, state, make_variable, classroom):
        assert kinds(checker.check(make_variable("v2"), TimeSlot(2, 1), classroom, state)) == [
            ConflictKind.FORBIDDEN_SLOT
        ]
        assert kinds(checker.check(make_variable("v2"), TimeSlot(1, 6), classroom, state)) == [
            ConflictKind.FORBIDDEN_SLOT
        ]

    def test_fixed_time_reserved(self, checker, state, make_variable, make_assignment, rooms):
        state.commit(make_assignment("v1", 1, 1, is_fixed=True, teacher_id="T9"))
        conflicts = checker.check(make_variable("v2"), TimeSlot(1, 1), rooms[1], state)
        assert kinds(conflicts)[0] == ConflictKind.FIXED_TIME_RESERVED
        assert conflicts[0].conflicting_variable_ids == ["v1"]

    def test_subject_daily_limit(self, checker, state, make_variable, make_assignment, classroom):
        state.commit(make_assignment("v1", 1, 1, subject="History", course_id="history"))
        elective = make_variable("v2", subject="History", course_id="history")
        assert kinds(checker.check(elective, TimeSlot(1, 2), classroom, state)) == [
            ConflictKind.SUBJECT_DAILY_LIMIT
        ]

    def test_core_subjects_have_no_daily_limit(self, checker, state, make_variable, make_assignment, classroom):
        state.commit(make_assignment("v1", 1, 1))
        core = make_variable("v2", is_core=True)
        assert checker.check(core, TimeSlot(1, 2), classroom, state) == []

    def test_subject_time_rule(self, rooms, state, make_variable, make_assignment, classroom):
        rules = SchedulingRules(
            time_rules=TimeRules(daily_periods=3, working_days=(1, 2, 3)),
            course_arrangement=CourseArrangementRules(
                subject_time_constraints=(
                    SubjectTimeConstraint(
                        subject="体育", start_day=1, end_day=3, period=1, required_occurrences=1
                    ),
                )
            ),
        )
        checker = ConstraintChecker(rules, TimeGrid(rules.time_rules), rooms)
        state.commit(make_assignment("v1", 1, 1, subject="体育", course_id="pe"))
        pe = make_variable("v2", subject="体育", course_id="pe")
        conflicts = checker.check(pe, TimeSlot(2, 1), classroom, state)
        assert kinds(conflicts) == [ConflictKind.SUBJECT_TIME_RULE]
        assert conflicts[0].conflicting_variable_ids == ["v1"]
        assert checker.check(pe, TimeSlot(2, 2), classroom, state) == []


class TestSoftConstraints:
    """Tests for soft penalties."""

    def test_core_period_preferences(self, checker, state, make_variable):
        core = make_variable("v1", is_core=True)
        assert checker.slot_penalty(core, TimeSlot(1, 1), state) == 8
        assert checker.slot_penalty(core, TimeSlot(1, 2), state) == 0
        assert checker.slot_penalty(core, TimeSlot(1, 5), state) == 4

    def test_variable_avoidances(self, checker, state, make_variable):
        elective = make_variable("v1", subject="History", time_avoidances=[TimeSlot(1, 2)])
        assert checker.slot_penalty(elective, TimeSlot(1, 2), state) == 15
        assert checker.slot_penalty(elective, TimeSlot(1, 3), state) == 0

    def test_same_day_spread(self, checker, state, make_variable, make_assignment):
        state.commit(make_assignment("v1", 1, 2))
        core = make_variable("v2", is_core=True)
        assert checker.slot_penalty(core, TimeSlot(1, 4), state) == 5

    def test_teacher_continuous_run(self, checker, make_assignment):
        state = ScheduleState()
        state.register(["v1", "v2", "v3", "v4"])
        for period in range(1, 5):
            state.commit(
                make_assignment(
                    f"v{period}", 1, period, class_id=f"C{period}", room_id=f"R{period}", subject="History"
                )
            )
        report = checker.evaluate_soft(state, {})
        assert [v.code for v in report.violations] == ["SC-02"]
        assert report.penalty == 20

    def test_core_concentration(self, checker, make_variable, make_assignment):
        state = ScheduleState()
        state.register(["v1", "v2", "v3"])
        variables = {}
        for period in (2, 3, 4):
            variable_id = f"v{period - 1}"
            state.commit(make_assignment(variable_id, 1, period))
            variables[variable_id] = make_variable(variable_id, is_core=True)
        codes = {v.code for v in checker.evaluate_soft(state, variables).violations}
        assert codes == {"SC-07", "SC-08"}


class TestAudit:
    """Tests for the final schedule audit."""

    def test_clean_schedule(self, checker, state, make_variable, make_assignment):
        state.commit(make_assignment("v1", 1, 1))
        assert checker.audit(state, {"v1": make_variable("v1")}) == []

    def test_unknown_room_reported(self, checker, state, make_variable, make_assignment):
        state.commit(make_assignment("v1", 1, 1, room_id="R999"))
        violations = checker.audit(state, {"v1": make_variable("v1")})
        assert kinds(violations) == [ConflictKind.ROOM_UNAVAILABLE]

    def test_requirements_reported(self, checker, state, make_variable, make_assignment):
        state.commit(make_assignment("v1", 1, 1))
        variable = make_variable("v1", room_requirements=RoomRequirements(types=["lab"]))
        assert kinds(checker.audit(state, {"v1": variable})) == [ConflictKind.ROOM_REQUIREMENT]
