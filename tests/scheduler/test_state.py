"""Tests for ScheduleState."""

import pytest

from k12_scheduler.exceptions import InternalInconsistencyError
from k12_scheduler.scheduler.models import TimeSlot
from k12_scheduler.scheduler.state import ScheduleState


@pytest.fixture
def state():
    schedule_state = ScheduleState()
    schedule_state.register(["v1", "v2", "v3"])
    return schedule_state


class TestScheduleState:
    """Tests for commit / undo bookkeeping."""

    def test_register(self, state):
        assert state.total_variables == 3
        assert state.unassigned == {"v1", "v2", "v3"}
        assert not state.is_feasible

    def test_register_twice_raises(self, state):
        with pytest.raises(InternalInconsistencyError):
            state.register(["v1"])

    def test_commit_moves_variable(self, state, make_assignment):
        state.commit(make_assignment("v1", 1, 1))
        assert "v1" in state.assignments
        assert "v1" not in state.unassigned
        assert state.history_length == 1
        state.check_invariants()

    def test_commit_unknown_variable_raises(self, state, make_assignment):
        with pytest.raises(InternalInconsistencyError):
            state.commit(make_assignment("nope", 1, 1))

    def test_double_booking_raises(self, state, make_assignment):
        state.commit(make_assignment("v1", 1, 1))
        with pytest.raises(InternalInconsistencyError):
            state.commit(make_assignment("v2", 1, 1, class_id="C2", room_id="R102"))
        with pytest.raises(InternalInconsistencyError):
            state.commit(make_assignment("v2", 1, 1, teacher_id="T2", room_id="R102"))
        with pytest.raises(InternalInconsistencyError):
            state.commit(make_assignment("v2", 1, 1, teacher_id="T2", class_id="C2"))

    def test_undo_last_restores(self, state, make_assignment):
        state.commit(make_assignment("v1", 1, 1))
        state.commit(make_assignment("v2", 1, 2))
        undone = state.undo_last()
        assert undone.variable_id == "v2"
        assert "v2" in state.unassigned
        assert state.tracker.is_class_available("C1", TimeSlot(1, 2))
        state.check_invariants()

    def test_undo_empty_history_raises(self, state):
        with pytest.raises(InternalInconsistencyError):
            state.undo_last()

    def test_fixed_assignment_cannot_be_undone(self, state, make_assignment):
        state.commit(make_assignment("v1", 1, 1, is_fixed=True))
        assert state.is_reserved("C1", TimeSlot(1, 1))
        with pytest.raises(InternalInconsistencyError):
            state.undo_last()
        with pytest.raises(InternalInconsistencyError):
            state.release("v1")

    def test_release_out_of_order(self, state, make_assignment):
        state.commit(make_assignment("v1", 1, 1))
        state.commit(make_assignment("v2", 1, 2))
        state.release("v1")
        assert list(state.assignments) == ["v2"]
        assert [a.variable_id for a in state.snapshot()] == ["v2"]

    def test_snapshot_and_restore(self, state, make_assignment):
        state.commit(make_assignment("v1", 1, 1))
        state.commit(make_assignment("v2", 1, 2))
        snapshot = state.snapshot()
        state.undo_last()
        state.undo_last()
        state.restore(snapshot, 0)
        assert [a.variable_id for a in state.snapshot()] == ["v1", "v2"]
        state.check_invariants()

    def test_restore_rolls_back_past_base(self, state, make_assignment):
        state.commit(make_assignment("v1", 1, 1))
        base = state.snapshot()
        state.commit(make_assignment("v2", 1, 2))
        state.restore(base, 1)
        assert list(state.assignments) == ["v1"]
