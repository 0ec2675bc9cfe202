"""Occupancy indexes for teachers, classes and rooms."""

from collections import defaultdict

from .models import Assignment, TimeSlot


class ConflictTracker:
    """Tracks who and what is busy at every time slot.

    Maintains:
    - teacher_schedule: (teacher_id, slot) -> variable_id
    - class_schedule: (class_id, slot) -> variable_id
    - room_schedule: (room_id, slot) -> variable_id
    - class_subject_daily: (class_id, subject, day) -> lessons that day
    - teacher_daily_load: (teacher_id, day) -> lessons that day
    - class_daily_load: (class_id, day) -> lessons that day
    """

    def __init__(self) -> None:
        self.teacher_schedule: dict[tuple[str, TimeSlot], str] = {}
        self.class_schedule: dict[tuple[str, TimeSlot], str] = {}
        self.room_schedule: dict[tuple[str, TimeSlot], str] = {}
        self.class_subject_daily: dict[tuple[str, str, int], int] = defaultdict(int)
        self.teacher_daily_load: dict[tuple[str, int], int] = defaultdict(int)
        self.class_daily_load: dict[tuple[str, int], int] = defaultdict(int)

    def reserve(self, assignment: Assignment) -> None:
        """Mark the assignment's teacher, class and room busy."""
        slot = assignment.time_slot
        day = slot.day_of_week
        self.teacher_schedule[(assignment.teacher_id, slot)] = assignment.variable_id
        self.class_schedule[(assignment.class_id, slot)] = assignment.variable_id
        self.room_schedule[(assignment.room_id, slot)] = assignment.variable_id
        self.class_subject_daily[(assignment.class_id, assignment.subject, day)] += 1
        self.teacher_daily_load[(assignment.teacher_id, day)] += 1
        self.class_daily_load[(assignment.class_id, day)] += 1

    def release(self, assignment: Assignment) -> None:
        """Undo a previous reserve() of the same assignment."""
        slot = assignment.time_slot
        day = slot.day_of_week
        del self.teacher_schedule[(assignment.teacher_id, slot)]
        del self.class_schedule[(assignment.class_id, slot)]
        del self.room_schedule[(assignment.room_id, slot)]
        self._decrement(self.class_subject_daily, (assignment.class_id, assignment.subject, day))
        self._decrement(self.teacher_daily_load, (assignment.teacher_id, day))
        self._decrement(self.class_daily_load, (assignment.class_id, day))

    @staticmethod
    def _decrement(counter: dict, key: tuple) -> None:
        counter[key] -= 1
        if counter[key] <= 0:
            del counter[key]

    def teacher_holder(self, teacher_id: str, slot: TimeSlot) -> str | None:
        """Variable id occupying the teacher at slot, if any."""
        return self.teacher_schedule.get((teacher_id, slot))

    def class_holder(self, class_id: str, slot: TimeSlot) -> str | None:
        return self.class_schedule.get((class_id, slot))

    def room_holder(self, room_id: str, slot: TimeSlot) -> str | None:
        return self.room_schedule.get((room_id, slot))

    def is_teacher_available(self, teacher_id: str, slot: TimeSlot) -> bool:
        return (teacher_id, slot) not in self.teacher_schedule

    def is_class_available(self, class_id: str, slot: TimeSlot) -> bool:
        return (class_id, slot) not in self.class_schedule

    def is_room_available(self, room_id: str, slot: TimeSlot) -> bool:
        return (room_id, slot) not in self.room_schedule

    def subject_count_on_day(self, class_id: str, subject: str, day: int) -> int:
        return self.class_subject_daily.get((class_id, subject, day), 0)

    def get_teacher_daily_load(self, teacher_id: str, day: int) -> int:
        return self.teacher_daily_load.get((teacher_id, day), 0)

    def get_class_daily_load(self, class_id: str, day: int) -> int:
        return self.class_daily_load.get((class_id, day), 0)
