"""Tests for ConflictTracker class."""

from k12_scheduler.scheduler.conflicts import ConflictTracker
from k12_scheduler.scheduler.models import TimeSlot


class TestConflictTracker:
    """Tests for ConflictTracker class."""

    def test_initially_available(self):
        tracker = ConflictTracker()
        slot = TimeSlot(1, 1)
        assert tracker.is_teacher_available("T1", slot)
        assert tracker.is_class_available("C1", slot)
        assert tracker.is_room_available("R101", slot)

    def test_unavailable_after_reservation(self, make_assignment):
        tracker = ConflictTracker()
        tracker.reserve(make_assignment("v1", 1, 1))
        slot = TimeSlot(1, 1)
        assert not tracker.is_teacher_available("T1", slot)
        assert not tracker.is_class_available("C1", slot)
        assert not tracker.is_room_available("R101", slot)
        assert tracker.teacher_holder("T1", slot) == "v1"

    def test_different_slot_no_conflict(self, make_assignment):
        tracker = ConflictTracker()
        tracker.reserve(make_assignment("v1", 1, 1))
        assert tracker.is_teacher_available("T1", TimeSlot(1, 2))
        assert tracker.is_class_available("C1", TimeSlot(2, 1))

    def test_release_frees_everything(self, make_assignment):
        tracker = ConflictTracker()
        assignment = make_assignment("v1", 1, 1)
        tracker.reserve(assignment)
        tracker.release(assignment)
        assert tracker.is_room_available("R101", TimeSlot(1, 1))
        assert tracker.get_teacher_daily_load("T1", 1) == 0
        assert tracker.subject_count_on_day("C1", "数学", 1) == 0
        assert not tracker.class_subject_daily

    def test_daily_counters(self, make_assignment):
        tracker = ConflictTracker()
        tracker.reserve(make_assignment("v1", 1, 1))
        tracker.reserve(make_assignment("v2", 1, 2, room_id="R102"))
        tracker.reserve(make_assignment("v3", 1, 3, subject="语文", teacher_id="T2"))
        assert tracker.subject_count_on_day("C1", "数学", 1) == 2
        assert tracker.subject_count_on_day("C1", "语文", 1) == 1
        assert tracker.get_teacher_daily_load("T1", 1) == 2
        assert tracker.get_class_daily_load("C1", 1) == 3
        assert tracker.get_class_daily_load("C1", 2) == 0
