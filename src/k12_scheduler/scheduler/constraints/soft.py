"""Soft constraint implementations for the scheduler.

Soft constraints are preferences that should be satisfied when possible.
Violations result in penalty scores but never reject an assignment.

- SC-01: Teacher daily load over max_daily_hours
- SC-02: Teacher continuous teaching over max_continuous_hours
- SC-03: Teacher Friday afternoon
- SC-04: Variable preferred / avoided slots
- SC-05: Teacher preferred / avoided slots
- SC-06: Subject in first or last period
- SC-07: Class same-subject continuous run
- SC-08: Core subject same-day occurrences over cap
- SC-09: Core subject spread below min days per week
- SC-10: Core subject period outside preferred / inside avoided periods
- SC-11: Core subject anti-clustering (same period on consecutive days)
- SC-12: Class daily load imbalance
"""

import statistics
from collections import defaultdict
from dataclasses import dataclass, field

from ..constants import SAME_DAY_SPREAD_PENALTY, SOFT_CONSTRAINT_WEIGHTS
from ..models import Assignment, ScheduleVariable, Teacher, TimeSlot
from ..rules import SchedulingRules
from ..state import ScheduleState
from ..timeslots import TimeGrid


@dataclass
class SoftViolation:
    code: str
    message: str
    penalty: float
    variable_ids: list[str] = field(default_factory=list)


@dataclass
class SoftReport:
    """Total soft penalty of a schedule and the violations behind it."""

    penalty: float = 0.0
    violations: list[SoftViolation] = field(default_factory=list)

    def add(self, code: str, message: str, amount: float, variable_ids: list[str] | None = None) -> None:
        penalty = SOFT_CONSTRAINT_WEIGHTS[code] * amount
        self.penalty += penalty
        self.violations.append(SoftViolation(code, message, penalty, variable_ids or []))


def _runs(periods: list[int]) -> list[list[int]]:
    """Split sorted periods into maximal consecutive runs."""
    runs: list[list[int]] = []
    for period in periods:
        if runs and period == runs[-1][-1] + 1:
            runs[-1].append(period)
        else:
            runs.append([period])
    return runs


class SoftConstraintScorer:
    """Weighted soft-constraint penalties.

    slot_penalty() is the incremental cost of one candidate and orders the
    values tried by the search; evaluate() scores a complete schedule for
    local optimization and final statistics.
    """

    def __init__(
        self,
        rules: SchedulingRules,
        grid: TimeGrid,
        teachers: dict[str, Teacher] | None = None,
    ):
        self.rules = rules
        self.grid = grid
        self.teachers = teachers or {}
        self.weights = SOFT_CONSTRAINT_WEIGHTS
        self.strategy = rules.course_arrangement.core_subject_strategy

    def _subject_at(self, state: ScheduleState, class_id: str, slot: TimeSlot) -> str | None:
        holder = state.tracker.class_holder(class_id, slot)
        return state.assignments[holder].subject if holder else None

    def _teacher_run(self, state: ScheduleState, teacher_id: str, slot: TimeSlot) -> int:
        """Length of the teacher's continuous run if slot were added."""
        length = 1
        for step in (-1, 1):
            period = slot.period + step
            while period >= 1 and not state.tracker.is_teacher_available(
                teacher_id, TimeSlot(slot.day_of_week, period)
            ):
                length += 1
                period += step
        return length

    def _subject_run(self, state: ScheduleState, class_id: str, subject: str, slot: TimeSlot) -> int:
        length = 1
        for step in (-1, 1):
            period = slot.period + step
            while period >= 1 and self._subject_at(state, class_id, TimeSlot(slot.day_of_week, period)) == subject:
                length += 1
                period += step
        return length

    def _is_core_active(self, variable: ScheduleVariable) -> bool:
        return variable.is_core and self.strategy.enabled

    def slot_penalty(self, variable: ScheduleVariable, slot: TimeSlot, state: ScheduleState) -> float:
        """Soft cost of placing variable at slot given the current state."""
        w = self.weights
        tc = self.rules.teacher_constraints
        arrangement = self.rules.course_arrangement
        day = slot.day_of_week
        penalty = 0.0

        if state.tracker.get_teacher_daily_load(variable.teacher_id, day) + 1 > tc.max_daily_hours:
            penalty += w["SC-01"]
        if self._teacher_run(state, variable.teacher_id, slot) > tc.max_continuous_hours:
            penalty += w["SC-02"]
        if tc.avoid_friday_afternoon and day == 5 and self.grid.is_afternoon(slot):
            penalty += w["SC-03"]

        if variable.time_preferences and slot not in variable.time_preferences:
            penalty += w["SC-04"]
        if slot in variable.time_avoidances:
            penalty += w["SC-04"]

        teacher = self.teachers.get(variable.teacher_id)
        if teacher and tc.respect_teacher_preferences:
            if teacher.preferred_slots and slot not in teacher.preferred_slots:
                penalty += w["SC-05"]
            if slot in teacher.avoid_slots:
                penalty += w["SC-05"]

        if variable.subject in arrangement.avoid_first_last_period and (
            self.grid.is_first_period(slot) or self.grid.is_last_period(slot)
        ):
            penalty += w["SC-06"]

        run = self._subject_run(state, variable.class_id, variable.subject, slot)
        if run > 1 and (not arrangement.allow_continuous_courses or run > arrangement.max_continuous_hours):
            penalty += w["SC-07"]

        if self._is_core_active(variable):
            same_day = state.tracker.subject_count_on_day(variable.class_id, variable.subject, day)
            if same_day + 1 > self.strategy.max_daily_occurrences:
                penalty += w["SC-08"]
            penalty += SAME_DAY_SPREAD_PENALTY * same_day
            if slot.period in self.strategy.avoid_time_slots:
                penalty += w["SC-10"]
            elif self.strategy.preferred_time_slots and slot.period not in self.strategy.preferred_time_slots:
                penalty += w["SC-10"] / 2
            streak = 1
            previous = day - 1
            while previous >= 1 and self._subject_at(
                state, variable.class_id, TimeSlot(previous, slot.period)
            ) == variable.subject:
                streak += 1
                previous -= 1
            if streak > self.strategy.max_concentration:
                penalty += w["SC-11"]

        return penalty

    def evaluate(self, state: ScheduleState, variables: dict[str, ScheduleVariable]) -> SoftReport:
        """Score every assignment of the state."""
        report = SoftReport()
        assignments = list(state.assignments.values())
        self._teacher_load(report, assignments)
        self._per_assignment(report, assignments, variables)
        self._class_subject_runs(report, assignments)
        self._core_distribution(report, assignments, variables)
        self._daily_balance(report, assignments)
        return report

    def _teacher_load(self, report: SoftReport, assignments: list[Assignment]) -> None:
        tc = self.rules.teacher_constraints
        by_teacher_day: dict[tuple[str, int], list[Assignment]] = defaultdict(list)
        for a in assignments:
            by_teacher_day[(a.teacher_id, a.time_slot.day_of_week)].append(a)

        for (teacher_id, day), items in sorted(by_teacher_day.items()):
            ids = [a.variable_id for a in items]
            excess = len(items) - tc.max_daily_hours
            if excess > 0:
                report.add("SC-01", f"Teacher '{teacher_id}' has {len(items)} lessons on day {day}", excess, ids)
            periods = sorted(a.time_slot.period for a in items)
            for run in _runs(periods):
                if len(run) > tc.max_continuous_hours:
                    report.add(
                        "SC-02",
                        f"Teacher '{teacher_id}' teaches {len(run)} periods in a row on day {day}",
                        len(run) - tc.max_continuous_hours,
                        ids,
                    )

    def _per_assignment(
        self,
        report: SoftReport,
        assignments: list[Assignment],
        variables: dict[str, ScheduleVariable],
    ) -> None:
        tc = self.rules.teacher_constraints
        edge_subjects = self.rules.course_arrangement.avoid_first_last_period
        for a in assignments:
            slot = a.time_slot
            if tc.avoid_friday_afternoon and slot.day_of_week == 5 and self.grid.is_afternoon(slot):
                report.add("SC-03", f"Teacher '{a.teacher_id}' teaches Friday afternoon", 1, [a.variable_id])

            variable = variables.get(a.variable_id)
            if variable is not None:
                if variable.time_preferences and slot not in variable.time_preferences:
                    report.add("SC-04", f"'{a.variable_id}' outside preferred slots", 1, [a.variable_id])
                if slot in variable.time_avoidances:
                    report.add("SC-04", f"'{a.variable_id}' in avoided slot {slot}", 1, [a.variable_id])

            teacher = self.teachers.get(a.teacher_id)
            if teacher and tc.respect_teacher_preferences:
                if teacher.preferred_slots and slot not in teacher.preferred_slots:
                    report.add("SC-05", f"Teacher '{a.teacher_id}' outside preferred slots", 1, [a.variable_id])
                if slot in teacher.avoid_slots:
                    report.add("SC-05", f"Teacher '{a.teacher_id}' in avoided slot {slot}", 1, [a.variable_id])

            if a.subject in edge_subjects and (self.grid.is_first_period(slot) or self.grid.is_last_period(slot)):
                report.add("SC-06", f"'{a.subject}' in first/last period at {slot}", 1, [a.variable_id])

    def _class_subject_runs(self, report: SoftReport, assignments: list[Assignment]) -> None:
        by_class_day: dict[tuple[str, int], dict[int, Assignment]] = defaultdict(dict)
        for a in assignments:
            by_class_day[(a.class_id, a.time_slot.day_of_week)][a.time_slot.period] = a

        for (class_id, day), by_period in sorted(by_class_day.items()):
            run: list[Assignment] = []
            for period in sorted(by_period):
                current = by_period[period]
                if run and period == run[-1].time_slot.period + 1 and current.subject == run[-1].subject:
                    run.append(current)
                    continue
                self._flush_run(report, class_id, day, run)
                run = [current]
            self._flush_run(report, class_id, day, run)

    def _flush_run(self, report: SoftReport, class_id: str, day: int, run: list[Assignment]) -> None:
        arrangement = self.rules.course_arrangement
        if len(run) <= 1:
            return
        limit = arrangement.max_continuous_hours if arrangement.allow_continuous_courses else 1
        if len(run) > limit:
            report.add(
                "SC-07",
                f"Class '{class_id}' has {len(run)} consecutive '{run[0].subject}' on day {day}",
                len(run) - limit,
                [a.variable_id for a in run],
            )

    def _core_distribution(
        self,
        report: SoftReport,
        assignments: list[Assignment],
        variables: dict[str, ScheduleVariable],
    ) -> None:
        if not self.strategy.enabled:
            return
        core_subjects = set(self.strategy.core_subjects)
        by_class_subject: dict[tuple[str, str], list[Assignment]] = defaultdict(list)
        for a in assignments:
            variable = variables.get(a.variable_id)
            is_core = variable.is_core if variable is not None else a.subject in core_subjects
            if is_core:
                by_class_subject[(a.class_id, a.subject)].append(a)

        working_days = len(self.grid.days)
        for (class_id, subject), items in sorted(by_class_subject.items()):
            ids = [a.variable_id for a in items]
            per_day: dict[int, int] = defaultdict(int)
            per_period_days: dict[int, list[int]] = defaultdict(list)
            for a in items:
                per_day[a.time_slot.day_of_week] += 1
                per_period_days[a.time_slot.period].append(a.time_slot.day_of_week)
                if a.time_slot.period in self.strategy.avoid_time_slots:
                    report.add("SC-10", f"'{subject}' of '{class_id}' in avoided period", 1, [a.variable_id])

            for day, count in sorted(per_day.items()):
                if count > self.strategy.max_daily_occurrences:
                    report.add(
                        "SC-08",
                        f"'{subject}' appears {count}x on day {day} for class '{class_id}'",
                        count - self.strategy.max_daily_occurrences,
                        ids,
                    )

            target = min(self.strategy.min_days_per_week, len(items), working_days)
            if len(per_day) < target:
                report.add(
                    "SC-09",
                    f"'{subject}' of class '{class_id}' spread over {len(per_day)} day(s), target {target}",
                    target - len(per_day),
                    ids,
                )

            for period, days in sorted(per_period_days.items()):
                for run in _runs(sorted(set(days))):
                    if len(run) > self.strategy.max_concentration:
                        report.add(
                            "SC-11",
                            f"'{subject}' of class '{class_id}' in period {period} on {len(run)} consecutive days",
                            len(run) - self.strategy.max_concentration,
                            ids,
                        )

    def _daily_balance(self, report: SoftReport, assignments: list[Assignment]) -> None:
        days = self.grid.days
        if len(days) < 2:
            return
        loads: dict[str, dict[int, int]] = defaultdict(lambda: {day: 0 for day in days})
        for a in assignments:
            if a.time_slot.day_of_week in days:
                loads[a.class_id][a.time_slot.day_of_week] += 1
        scale = self.strategy.balance_weight / 100
        for class_id in sorted(loads):
            spread = statistics.pstdev(loads[class_id].values())
            # Imbalance only adds penalty; it is not counted as a violation
            report.penalty += self.weights["SC-12"] * spread * scale
