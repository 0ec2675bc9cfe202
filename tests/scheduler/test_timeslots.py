"""Tests for TimeSlot and TimeGrid."""

import pytest

from k12_scheduler.exceptions import ValidationError
from k12_scheduler.scheduler.models import TimeSlot
from k12_scheduler.scheduler.rules import ForbiddenSlot, TimeRules
from k12_scheduler.scheduler.timeslots import TimeGrid


class TestTimeSlot:
    """Tests for TimeSlot value type."""

    def test_ordering_is_day_then_period(self):
        slots = [TimeSlot(2, 1), TimeSlot(1, 3), TimeSlot(1, 1)]
        assert sorted(slots) == [TimeSlot(1, 1), TimeSlot(1, 3), TimeSlot(2, 1)]

    def test_equal_slots_hash_equal(self):
        assert {TimeSlot(1, 2), TimeSlot(1, 2)} == {TimeSlot(1, 2)}

    def test_key_and_name(self):
        slot = TimeSlot(3, 4)
        assert slot.key == "3-4"
        assert slot.day_name == "wednesday"
        assert str(slot) == "wednesday P4"

    def test_from_dict_accepts_both_spellings(self):
        assert TimeSlot.from_dict({"dayOfWeek": 1, "period": 2}) == TimeSlot(1, 2)
        assert TimeSlot.from_dict({"day_of_week": 5, "period": 8}) == TimeSlot(5, 8)

    def test_from_dict_rejects_invalid_day(self):
        with pytest.raises(ValidationError):
            TimeSlot.from_dict({"dayOfWeek": 8, "period": 1})

    def test_from_dict_rejects_missing_period(self):
        with pytest.raises(ValidationError):
            TimeSlot.from_dict({"dayOfWeek": 1})

    def test_to_dict(self):
        assert TimeSlot(2, 3).to_dict() == {"dayOfWeek": 2, "period": 3}


class TestTimeGrid:
    """Tests for TimeGrid."""

    def test_default_week(self):
        grid = TimeGrid(TimeRules())
        assert len(grid) == 40
        assert grid.days == [1, 2, 3, 4, 5]

    def test_slots_sorted(self):
        grid = TimeGrid(TimeRules(daily_periods=3, working_days=(3, 1)))
        assert list(grid.slots) == sorted(grid.slots)
        assert grid.slots[0] == TimeSlot(1, 1)

    def test_forbidden_slots_removed(self):
        rules = TimeRules(
            daily_periods=4,
            working_days=(1, 2),
            forbidden_slots=(ForbiddenSlot(day_of_week=1, periods=(1, 2)),),
        )
        grid = TimeGrid(rules)
        assert len(grid) == 6
        assert grid.is_forbidden(TimeSlot(1, 1))
        assert not grid.is_legal(TimeSlot(1, 2))
        assert grid.is_legal(TimeSlot(2, 1))

    def test_non_working_day_not_legal(self):
        grid = TimeGrid(TimeRules(daily_periods=4, working_days=(1,)))
        assert TimeSlot(2, 1) not in grid
        assert TimeSlot(1, 5) not in grid
        assert TimeSlot(1, 4) in grid

    def test_slots_for_day(self):
        grid = TimeGrid(TimeRules(daily_periods=3, working_days=(1, 2)))
        assert grid.slots_for_day(2) == [TimeSlot(2, 1), TimeSlot(2, 2), TimeSlot(2, 3)]

    def test_period_helpers(self):
        grid = TimeGrid(TimeRules())
        assert grid.is_first_period(TimeSlot(1, 1))
        assert grid.is_last_period(TimeSlot(1, 8))
        assert grid.is_morning(TimeSlot(1, 4))
        assert grid.is_afternoon(TimeSlot(1, 5))
        assert not grid.is_afternoon(TimeSlot(1, 4))
