"""Weekly time grid built from the time rules."""

from .models import TimeSlot
from .rules import TimeRules


class TimeGrid:
    """Enumerates the legal (day, period) slots of a school week.

    A slot is legal when its day is a working day, its period lies within
    ``1..daily_periods`` and it is not listed among the forbidden slots.
    """

    def __init__(self, time_rules: TimeRules):
        self.time_rules = time_rules
        self._forbidden: set[TimeSlot] = {
            TimeSlot(entry.day_of_week, period)
            for entry in time_rules.forbidden_slots
            for period in entry.periods
        }
        self._slots: tuple[TimeSlot, ...] = tuple(
            TimeSlot(day, period)
            for day in sorted(set(time_rules.working_days))
            for period in range(1, time_rules.daily_periods + 1)
            if TimeSlot(day, period) not in self._forbidden
        )
        self._slot_set = frozenset(self._slots)

    @property
    def slots(self) -> tuple[TimeSlot, ...]:
        """Legal slots in ascending (day, period) order."""
        return self._slots

    @property
    def days(self) -> list[int]:
        return sorted(set(self.time_rules.working_days))

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, slot: object) -> bool:
        return slot in self._slot_set

    def is_forbidden(self, slot: TimeSlot) -> bool:
        return slot in self._forbidden

    def is_legal(self, slot: TimeSlot) -> bool:
        return slot in self._slot_set

    def is_morning(self, slot: TimeSlot) -> bool:
        return slot.period in self.time_rules.morning_periods

    def is_afternoon(self, slot: TimeSlot) -> bool:
        return slot.period in self.time_rules.afternoon_periods

    def is_first_period(self, slot: TimeSlot) -> bool:
        return slot.period == 1

    def is_last_period(self, slot: TimeSlot) -> bool:
        return slot.period == self.time_rules.daily_periods

    def slots_for_day(self, day_of_week: int) -> list[TimeSlot]:
        return [slot for slot in self._slots if slot.day_of_week == day_of_week]
