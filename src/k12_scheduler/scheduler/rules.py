"""Scheduling rules and algorithm configuration.

All rule objects are frozen once built; a solve run only reads them, so
several runs may share one instance.
"""

from dataclasses import dataclass, field
from typing import Any

from ..exceptions import ValidationError
from .constants import (
    DEFAULT_AFTERNOON_PERIODS,
    DEFAULT_BACKTRACK_LIMIT,
    DEFAULT_CORE_AVOID_PERIODS,
    DEFAULT_CORE_BALANCE_WEIGHT,
    DEFAULT_CORE_MAX_CONCENTRATION,
    DEFAULT_CORE_MAX_DAILY_OCCURRENCES,
    DEFAULT_CORE_MIN_DAYS_PER_WEEK,
    DEFAULT_CORE_PREFERRED_PERIODS,
    DEFAULT_CORE_SUBJECTS,
    DEFAULT_DAILY_PERIODS,
    DEFAULT_ELECTIVE_DAILY_LIMIT,
    DEFAULT_LOCAL_OPTIMIZATION_ITERATIONS,
    DEFAULT_MAX_CONTINUOUS_COURSE_HOURS,
    DEFAULT_MAX_ITERATIONS,
    DEFAULT_MORNING_PERIODS,
    DEFAULT_TEACHER_MAX_CONTINUOUS_HOURS,
    DEFAULT_TEACHER_MAX_DAILY_HOURS,
    DEFAULT_TIME_LIMIT,
    DEFAULT_WORKING_DAYS,
)
from .models import WeekType
from .utils import pick


@dataclass(frozen=True)
class ForbiddenSlot:
    """Periods of one day that may never be scheduled."""

    day_of_week: int
    periods: tuple[int, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ForbiddenSlot":
        return cls(
            day_of_week=int(pick(data, "dayOfWeek", "day_of_week", "day")),
            periods=tuple(int(p) for p in data.get("periods", [])),
        )


@dataclass(frozen=True)
class TimeRules:
    """Shape of the weekly grid."""

    daily_periods: int = DEFAULT_DAILY_PERIODS
    working_days: tuple[int, ...] = tuple(DEFAULT_WORKING_DAYS)
    morning_periods: tuple[int, ...] = tuple(DEFAULT_MORNING_PERIODS)
    afternoon_periods: tuple[int, ...] = tuple(DEFAULT_AFTERNOON_PERIODS)
    forbidden_slots: tuple[ForbiddenSlot, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TimeRules":
        if not data:
            return cls()
        daily_periods = int(pick(data, "dailyPeriods", "daily_periods", default=DEFAULT_DAILY_PERIODS))
        if daily_periods <= 0:
            raise ValidationError("timeRules", "daily periods must be positive", "dailyPeriods")
        working_days = tuple(
            int(d) for d in pick(data, "workingDays", "working_days", default=DEFAULT_WORKING_DAYS)
        )
        invalid_days = [d for d in working_days if not 1 <= d <= 7]
        if invalid_days:
            raise ValidationError("timeRules", f"invalid working days {invalid_days}", "workingDays")
        return cls(
            daily_periods=daily_periods,
            working_days=working_days,
            morning_periods=tuple(
                pick(data, "morningPeriods", "morning_periods", default=DEFAULT_MORNING_PERIODS)
            ),
            afternoon_periods=tuple(
                pick(data, "afternoonPeriods", "afternoon_periods", default=DEFAULT_AFTERNOON_PERIODS)
            ),
            forbidden_slots=tuple(
                ForbiddenSlot.from_dict(item)
                for item in pick(data, "forbiddenSlots", "forbidden_slots", default=[])
            ),
        )


@dataclass(frozen=True)
class TeacherConstraints:
    """Per-teacher load targets (soft)."""

    max_daily_hours: int = DEFAULT_TEACHER_MAX_DAILY_HOURS
    max_continuous_hours: int = DEFAULT_TEACHER_MAX_CONTINUOUS_HOURS
    avoid_friday_afternoon: bool = False
    respect_teacher_preferences: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "TeacherConstraints":
        if not data:
            return cls()
        return cls(
            max_daily_hours=int(
                pick(data, "maxDailyHours", "max_daily_hours", default=DEFAULT_TEACHER_MAX_DAILY_HOURS)
            ),
            max_continuous_hours=int(
                pick(
                    data,
                    "maxContinuousHours",
                    "max_continuous_hours",
                    default=DEFAULT_TEACHER_MAX_CONTINUOUS_HOURS,
                )
            ),
            avoid_friday_afternoon=bool(
                pick(data, "avoidFridayAfternoon", "avoid_friday_afternoon", default=False)
            ),
            respect_teacher_preferences=bool(
                pick(data, "respectTeacherPreferences", "respect_teacher_preferences", default=True)
            ),
        )


@dataclass(frozen=True)
class RoomConstraints:
    """Room selection policy.

    ``special_room_priority`` is ``strict`` (special courses only ever use
    matching rooms) or ``flexible`` (fall back to regular rooms when no
    matching room exists). ``permissive_room_lookup`` lets an assignment
    through when its room id cannot be resolved; it is off by default.
    """

    respect_capacity_limits: bool = True
    prefer_fixed_classrooms: bool = True
    special_room_priority: str = "strict"
    permissive_room_lookup: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RoomConstraints":
        if not data:
            return cls()
        priority = pick(data, "specialRoomPriority", "special_room_priority", default="strict")
        if priority not in ("strict", "flexible", "preferred"):
            raise ValidationError("roomConstraints", f"unknown policy '{priority}'", "specialRoomPriority")
        return cls(
            respect_capacity_limits=bool(
                pick(data, "respectCapacityLimits", "respect_capacity_limits", default=True)
            ),
            prefer_fixed_classrooms=bool(
                pick(data, "preferFixedClassrooms", "prefer_fixed_classrooms", default=True)
            ),
            # 'preferred' is an older spelling of 'flexible'
            special_room_priority="flexible" if priority == "preferred" else priority,
            permissive_room_lookup=bool(
                pick(data, "permissiveRoomLookup", "permissive_room_lookup", default=False)
            ),
        )


@dataclass(frozen=True)
class CoreSubjectStrategy:
    """Distribution targets for core subjects."""

    enabled: bool = True
    core_subjects: tuple[str, ...] = DEFAULT_CORE_SUBJECTS
    max_daily_occurrences: int = DEFAULT_CORE_MAX_DAILY_OCCURRENCES
    min_days_per_week: int = DEFAULT_CORE_MIN_DAYS_PER_WEEK
    preferred_time_slots: tuple[int, ...] = tuple(DEFAULT_CORE_PREFERRED_PERIODS)
    avoid_time_slots: tuple[int, ...] = tuple(DEFAULT_CORE_AVOID_PERIODS)
    max_concentration: int = DEFAULT_CORE_MAX_CONCENTRATION
    balance_weight: int = DEFAULT_CORE_BALANCE_WEIGHT

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CoreSubjectStrategy":
        if not data:
            return cls()
        return cls(
            enabled=bool(pick(data, "enableCoreSubjectStrategy", "enabled", default=True)),
            core_subjects=tuple(
                pick(data, "coreSubjects", "core_subjects", default=DEFAULT_CORE_SUBJECTS)
            ),
            max_daily_occurrences=int(
                pick(
                    data,
                    "maxDailyOccurrences",
                    "max_daily_occurrences",
                    default=DEFAULT_CORE_MAX_DAILY_OCCURRENCES,
                )
            ),
            min_days_per_week=int(
                pick(data, "minDaysPerWeek", "min_days_per_week", default=DEFAULT_CORE_MIN_DAYS_PER_WEEK)
            ),
            preferred_time_slots=tuple(
                pick(
                    data,
                    "preferredTimeSlots",
                    "preferred_time_slots",
                    default=DEFAULT_CORE_PREFERRED_PERIODS,
                )
            ),
            avoid_time_slots=tuple(
                pick(data, "avoidTimeSlots", "avoid_time_slots", default=DEFAULT_CORE_AVOID_PERIODS)
            ),
            max_concentration=int(
                pick(
                    data,
                    "maxConcentration",
                    "max_concentration",
                    default=DEFAULT_CORE_MAX_CONCENTRATION,
                )
            ),
            balance_weight=int(
                pick(data, "balanceWeight", "balance_weight", default=DEFAULT_CORE_BALANCE_WEIGHT)
            ),
        )


@dataclass(frozen=True)
class FixedTimeCourse:
    """A recurring course pinned to one weekly slot (class meeting, flag raising)."""

    type: str
    name: str
    day_of_week: int
    period: int
    week_type: WeekType = WeekType.ALL
    start_week: int | None = None
    end_week: int | None = None
    course_id: str | None = None
    classes: tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "FixedTimeCourse":
        course_type = pick(data, "type", default="")
        day = pick(data, "dayOfWeek", "day_of_week")
        period = pick(data, "period")
        if not course_type or day is None or period is None:
            raise ValidationError(
                str(pick(data, "name", default=course_type)),
                "fixed-time course needs type, dayOfWeek and period",
            )
        return cls(
            type=course_type,
            name=pick(data, "name", default=course_type),
            day_of_week=int(day),
            period=int(period),
            week_type=WeekType(pick(data, "weekType", "week_type", default="all")),
            start_week=pick(data, "startWeek", "start_week"),
            end_week=pick(data, "endWeek", "end_week"),
            course_id=pick(data, "courseId", "course_id"),
            classes=tuple(data.get("classes", [])),
        )

    def applies_to(self, class_id: str) -> bool:
        return not self.classes or class_id in self.classes


@dataclass(frozen=True)
class FixedTimeCoursesConfig:
    enabled: bool = True
    courses: tuple[FixedTimeCourse, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "FixedTimeCoursesConfig":
        if not data:
            return cls()
        return cls(
            enabled=bool(data.get("enabled", True)),
            courses=tuple(FixedTimeCourse.from_dict(item) for item in data.get("courses", [])),
        )


@dataclass(frozen=True)
class SubjectTimeConstraint:
    """Caps lessons of a subject at one period within a range of days."""

    subject: str
    start_day: int
    end_day: int
    period: int
    required_occurrences: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubjectTimeConstraint":
        time_range = pick(data, "timeRange", "time_range", default={})
        return cls(
            subject=data["subject"],
            start_day=int(pick(time_range, "startDay", "start_day", default=1)),
            end_day=int(pick(time_range, "endDay", "end_day", default=7)),
            period=int(data["period"]),
            required_occurrences=int(
                pick(data, "requiredOccurrences", "required_occurrences", default=1)
            ),
        )

    def covers(self, day_of_week: int, period: int) -> bool:
        return self.start_day <= day_of_week <= self.end_day and period == self.period


@dataclass(frozen=True)
class CourseArrangementRules:
    allow_continuous_courses: bool = True
    max_continuous_hours: int = DEFAULT_MAX_CONTINUOUS_COURSE_HOURS
    avoid_first_last_period: tuple[str, ...] = ()
    elective_daily_limit: int = DEFAULT_ELECTIVE_DAILY_LIMIT
    core_subject_strategy: CoreSubjectStrategy = field(default_factory=CoreSubjectStrategy)
    fixed_time_courses: FixedTimeCoursesConfig = field(default_factory=FixedTimeCoursesConfig)
    subject_time_constraints: tuple[SubjectTimeConstraint, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "CourseArrangementRules":
        if not data:
            return cls()
        return cls(
            allow_continuous_courses=bool(
                pick(data, "allowContinuousCourses", "allow_continuous_courses", default=True)
            ),
            max_continuous_hours=int(
                pick(
                    data,
                    "maxContinuousHours",
                    "max_continuous_hours",
                    default=DEFAULT_MAX_CONTINUOUS_COURSE_HOURS,
                )
            ),
            avoid_first_last_period=tuple(
                pick(data, "avoidFirstLastPeriod", "avoid_first_last_period", default=[])
            ),
            elective_daily_limit=int(
                pick(
                    data,
                    "electiveDailyLimit",
                    "elective_daily_limit",
                    default=DEFAULT_ELECTIVE_DAILY_LIMIT,
                )
            ),
            core_subject_strategy=CoreSubjectStrategy.from_dict(
                pick(data, "coreSubjectStrategy", "core_subject_strategy")
            ),
            fixed_time_courses=FixedTimeCoursesConfig.from_dict(
                pick(data, "fixedTimeCourses", "fixed_time_courses")
            ),
            subject_time_constraints=tuple(
                SubjectTimeConstraint.from_dict(item)
                for item in pick(data, "subjectTimeConstraints", "subject_time_constraints", default=[])
            ),
        )


@dataclass(frozen=True)
class ConflictResolutionRules:
    """How conflicts are reported.

    Double booking is always rejected; non-strict values only lower the log
    level of rejected fixed-time courses from warning to info.
    """

    teacher_conflict_resolution: str = "strict"
    room_conflict_resolution: str = "strict"
    class_conflict_resolution: str = "strict"

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "ConflictResolutionRules":
        if not data:
            return cls()
        values = {
            "teacher_conflict_resolution": pick(
                data, "teacherConflictResolution", "teacher_conflict_resolution", default="strict"
            ),
            "room_conflict_resolution": pick(
                data, "roomConflictResolution", "room_conflict_resolution", default="strict"
            ),
            "class_conflict_resolution": pick(
                data, "classConflictResolution", "class_conflict_resolution", default="strict"
            ),
        }
        for name, value in values.items():
            if value not in ("strict", "warn", "ignore"):
                raise ValidationError("conflictResolution", f"unknown policy '{value}'", name)
        return cls(**values)

    @property
    def is_strict(self) -> bool:
        return all(
            value == "strict"
            for value in (
                self.teacher_conflict_resolution,
                self.room_conflict_resolution,
                self.class_conflict_resolution,
            )
        )


@dataclass(frozen=True)
class SchedulingRules:
    """Complete rule set for one school configuration."""

    time_rules: TimeRules = field(default_factory=TimeRules)
    teacher_constraints: TeacherConstraints = field(default_factory=TeacherConstraints)
    room_constraints: RoomConstraints = field(default_factory=RoomConstraints)
    course_arrangement: CourseArrangementRules = field(default_factory=CourseArrangementRules)
    conflict_resolution: ConflictResolutionRules = field(default_factory=ConflictResolutionRules)

    @property
    def core_subjects(self) -> tuple[str, ...]:
        strategy = self.course_arrangement.core_subject_strategy
        return strategy.core_subjects if strategy.enabled else DEFAULT_CORE_SUBJECTS

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "SchedulingRules":
        if not data:
            return cls()
        return cls(
            time_rules=TimeRules.from_dict(pick(data, "timeRules", "time_rules")),
            teacher_constraints=TeacherConstraints.from_dict(
                pick(data, "teacherConstraints", "teacher_constraints")
            ),
            room_constraints=RoomConstraints.from_dict(
                pick(data, "roomConstraints", "room_constraints")
            ),
            course_arrangement=CourseArrangementRules.from_dict(
                pick(data, "courseArrangementRules", "course_arrangement")
            ),
            conflict_resolution=ConflictResolutionRules.from_dict(
                pick(data, "conflictResolution", "conflict_resolution")
            ),
        )


@dataclass(frozen=True)
class AlgorithmConfig:
    """Search budgets and switches."""

    max_iterations: int = DEFAULT_MAX_ITERATIONS
    time_limit: float = DEFAULT_TIME_LIMIT
    backtrack_limit: int = DEFAULT_BACKTRACK_LIMIT
    enable_local_optimization: bool = True
    local_optimization_iterations: int = DEFAULT_LOCAL_OPTIMIZATION_ITERATIONS
    random_seed: int | None = None
    verbose: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "AlgorithmConfig":
        if not data:
            return cls()
        return cls(
            max_iterations=int(pick(data, "maxIterations", "max_iterations", default=DEFAULT_MAX_ITERATIONS)),
            time_limit=float(pick(data, "timeLimit", "time_limit", default=DEFAULT_TIME_LIMIT)),
            backtrack_limit=int(
                pick(data, "backtrackLimit", "backtrack_limit", default=DEFAULT_BACKTRACK_LIMIT)
            ),
            enable_local_optimization=bool(
                pick(data, "enableLocalOptimization", "enable_local_optimization", default=True)
            ),
            local_optimization_iterations=int(
                pick(
                    data,
                    "localOptimizationIterations",
                    "local_optimization_iterations",
                    default=DEFAULT_LOCAL_OPTIMIZATION_ITERATIONS,
                )
            ),
            random_seed=pick(data, "randomSeed", "random_seed"),
            verbose=bool(pick(data, "verbose", default=False)),
        )
