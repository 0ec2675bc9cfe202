"""Data models for the K-12 timetabling engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from ..exceptions import ValidationError
from .constants import DAY_NAMES
from .utils import pick


class WeekType(str, Enum):
    """Week recurrence of an assignment."""

    ALL = "all"
    ODD = "odd"
    EVEN = "even"


class SearchStatus(str, Enum):
    """Lifecycle of a search run."""

    INITIALIZING = "initializing"
    SEARCHING = "searching"
    SUCCESS = "success"
    PARTIAL = "partial"
    EXHAUSTED = "exhausted"
    ABORTED = "aborted"


class ConflictKind(str, Enum):
    """Kinds of hard-constraint rejections."""

    TEACHER_CONFLICT = "teacher_conflict"
    CLASS_CONFLICT = "class_conflict"
    ROOM_CONFLICT = "room_conflict"
    ROOM_REQUIREMENT = "room_requirement"
    ROOM_UNAVAILABLE = "room_unavailable"
    NO_ROOM = "no_room"
    FORBIDDEN_SLOT = "forbidden_slot"
    FIXED_TIME_RESERVED = "fixed_time_reserved"
    SUBJECT_DAILY_LIMIT = "subject_daily_limit"
    SUBJECT_TIME_RULE = "subject_time_rule"


class UnscheduledReason(str, Enum):
    """Reasons why a variable could not be scheduled."""

    NO_ROOM_AVAILABLE = "no_room_available"
    TEACHER_CONFLICT = "teacher_conflict"
    CLASS_CONFLICT = "class_conflict"
    FIXED_TIME_RESERVED = "fixed_time_reserved"
    SUBJECT_DAILY_LIMIT = "subject_daily_limit"
    FORBIDDEN_SLOT = "forbidden_slot"
    NO_SLOT_AVAILABLE = "no_slot_available"
    BUDGET_EXCEEDED = "budget_exceeded"
    UNKNOWN = "unknown"


@dataclass(frozen=True, order=True)
class TimeSlot:
    """A (day, period) cell of the weekly grid. Days are 1 (Monday) to 7."""

    day_of_week: int
    period: int

    @property
    def key(self) -> str:
        return f"{self.day_of_week}-{self.period}"

    @property
    def day_name(self) -> str:
        return DAY_NAMES.get(self.day_of_week, str(self.day_of_week))

    def __str__(self) -> str:
        return f"{self.day_name} P{self.period}"

    def to_dict(self) -> dict[str, int]:
        return {"dayOfWeek": self.day_of_week, "period": self.period}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TimeSlot":
        day = pick(data, "dayOfWeek", "day_of_week", "day")
        period = pick(data, "period", "slot")
        if day is None or period is None:
            raise ValidationError(str(data), "time slot needs a day and a period")
        day, period = int(day), int(period)
        if not 1 <= day <= 7:
            raise ValidationError(str(data), f"day {day} outside 1..7", "dayOfWeek")
        if period < 1:
            raise ValidationError(str(data), f"period {period} must be positive", "period")
        return cls(day_of_week=day, period=period)


def _slots_from_list(items: list[Any] | None) -> list[TimeSlot]:
    return [TimeSlot.from_dict(item) for item in items or []]


@dataclass
class RoomRequirements:
    """What a course needs from the room hosting it."""

    types: list[str] = field(default_factory=list)
    capacity: int | None = None
    equipment: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.types and self.capacity is None and not self.equipment

    def to_dict(self) -> dict[str, Any]:
        return {
            "types": list(self.types),
            "capacity": self.capacity,
            "equipment": list(self.equipment),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RoomRequirements":
        if not data:
            return cls()
        capacity = pick(data, "capacity", "minCapacity", "min_capacity")
        return cls(
            types=list(pick(data, "types", "roomTypes", "room_types", default=[])),
            capacity=int(capacity) if capacity is not None else None,
            equipment=list(data.get("equipment", [])),
        )


@dataclass
class Room:
    """A physical room."""

    id: str
    name: str
    type: str = "classroom"
    capacity: int = 0
    equipment: list[str] = field(default_factory=list)
    building: str = ""
    floor: int | None = None
    room_number: str = ""
    assigned_class: str | None = None
    is_active: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Room":
        room_id = pick(data, "id", "_id", "roomId")
        if not room_id:
            raise ValidationError(str(data), "room without id", "id")
        floor = data.get("floor")
        return cls(
            id=str(room_id),
            name=pick(data, "name", default=str(room_id)),
            type=pick(data, "type", "roomType", default="classroom"),
            capacity=int(pick(data, "capacity", default=0)),
            equipment=list(data.get("equipment", [])),
            building=pick(data, "building", default=""),
            floor=int(floor) if floor not in (None, "") else None,
            room_number=str(pick(data, "roomNumber", "room_number", default="")),
            assigned_class=pick(data, "assignedClass", "assigned_class"),
            is_active=bool(pick(data, "isActive", "is_active", default=True)),
        )


@dataclass
class SchoolClass:
    """A class (homeroom group of students)."""

    id: str
    name: str
    grade: int | None = None
    student_count: int = 0
    homeroom: str | None = None
    homeroom_teacher_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SchoolClass":
        class_id = pick(data, "id", "_id", "classId")
        if not class_id:
            raise ValidationError(str(data), "class without id", "id")
        grade = data.get("grade")
        return cls(
            id=str(class_id),
            name=pick(data, "name", default=str(class_id)),
            grade=int(grade) if grade not in (None, "") else None,
            student_count=int(pick(data, "studentCount", "student_count", default=0)),
            homeroom=pick(data, "homeroom", "homeroomId"),
            homeroom_teacher_id=pick(data, "homeroomTeacher", "homeroom_teacher_id"),
        )


@dataclass
class Course:
    """A course taught to classes."""

    id: str
    name: str
    subject: str
    room_requirements: RoomRequirements = field(default_factory=RoomRequirements)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Course":
        course_id = pick(data, "id", "_id", "courseId")
        if not course_id:
            raise ValidationError(str(data), "course without id", "id")
        name = pick(data, "name", default=str(course_id))
        return cls(
            id=str(course_id),
            name=name,
            subject=pick(data, "subject", default=name),
            room_requirements=RoomRequirements.from_dict(
                pick(data, "roomRequirements", "room_requirements")
            ),
        )


@dataclass
class Teacher:
    """A teacher with optional slot preferences."""

    id: str
    name: str
    subjects: list[str] = field(default_factory=list)
    max_weekly_hours: int | None = None
    preferred_slots: list[TimeSlot] = field(default_factory=list)
    avoid_slots: list[TimeSlot] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Teacher":
        teacher_id = pick(data, "id", "_id", "teacherId")
        if not teacher_id:
            raise ValidationError(str(data), "teacher without id", "id")
        max_hours = pick(data, "maxWeeklyHours", "max_weekly_hours")
        return cls(
            id=str(teacher_id),
            name=pick(data, "name", default=str(teacher_id)),
            subjects=list(data.get("subjects", [])),
            max_weekly_hours=int(max_hours) if max_hours is not None else None,
            preferred_slots=_slots_from_list(pick(data, "preferredSlots", "preferred_slots")),
            avoid_slots=_slots_from_list(pick(data, "avoidSlots", "avoid_slots")),
        )


@dataclass
class PlannedCourse:
    """One course of a class's teaching plan."""

    course_id: str
    teacher_id: str | None
    weekly_hours: int
    time_preferences: list[TimeSlot] = field(default_factory=list)
    time_avoidances: list[TimeSlot] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PlannedCourse":
        return cls(
            course_id=str(pick(data, "courseId", "course_id", "course", default="")),
            teacher_id=pick(data, "teacherId", "teacher_id", "teacher"),
            weekly_hours=int(pick(data, "weeklyHours", "weekly_hours", default=0)),
            time_preferences=_slots_from_list(
                pick(data, "timePreferences", "time_preferences")
            ),
            time_avoidances=_slots_from_list(
                pick(data, "timeAvoidance", "timeAvoidances", "time_avoidances")
            ),
        )


@dataclass
class TeachingPlan:
    """All courses a class takes during the term."""

    class_id: str
    course_assignments: list[PlannedCourse] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TeachingPlan":
        return cls(
            class_id=str(pick(data, "classId", "class_id", "class", default="")),
            course_assignments=[
                PlannedCourse.from_dict(item)
                for item in pick(data, "courseAssignments", "course_assignments", default=[])
            ],
        )


@dataclass
class ScheduleVariable:
    """One weekly hour of a (class, course, teacher) requirement.

    Only ``domain`` changes during a solve; it shrinks within a search branch
    and is rebuilt at the start of every stage.
    """

    id: str
    class_id: str
    course_id: str
    teacher_id: str
    subject: str
    course_name: str = ""
    required_hours: int = 1
    priority: int = 5
    domain: list[TimeSlot] = field(default_factory=list)
    room_requirements: RoomRequirements = field(default_factory=RoomRequirements)
    time_preferences: list[TimeSlot] = field(default_factory=list)
    time_avoidances: list[TimeSlot] = field(default_factory=list)
    is_core: bool = False
    index: int = 0


@dataclass
class Assignment:
    """A committed (variable, slot, room) decision."""

    variable_id: str
    class_id: str
    course_id: str
    teacher_id: str
    room_id: str
    time_slot: TimeSlot
    is_fixed: bool = False
    subject: str = ""
    week_type: WeekType = WeekType.ALL
    start_week: int | None = None
    end_week: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "variable_id": self.variable_id,
            "class_id": self.class_id,
            "course_id": self.course_id,
            "teacher_id": self.teacher_id,
            "room_id": self.room_id,
            "day_of_week": self.time_slot.day_of_week,
            "period": self.time_slot.period,
            "is_fixed": self.is_fixed,
            "subject": self.subject,
            "week_type": self.week_type.value,
            "start_week": self.start_week,
            "end_week": self.end_week,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Assignment":
        return cls(
            variable_id=data["variable_id"],
            class_id=data["class_id"],
            course_id=data["course_id"],
            teacher_id=data["teacher_id"],
            room_id=data["room_id"],
            time_slot=TimeSlot(data["day_of_week"], data["period"]),
            is_fixed=data.get("is_fixed", False),
            subject=data.get("subject", ""),
            week_type=WeekType(data.get("week_type", "all")),
            start_week=data.get("start_week"),
            end_week=data.get("end_week"),
        )


@dataclass
class ConflictInfo:
    """Structured description of a hard-constraint rejection."""

    kind: ConflictKind
    message: str
    conflicting_variable_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "conflicting_variable_ids": list(self.conflicting_variable_ids),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ConflictInfo":
        return cls(
            kind=ConflictKind(data["kind"]),
            message=data.get("message", ""),
            conflicting_variable_ids=data.get("conflicting_variable_ids", []),
        )


@dataclass
class UnassignedVariable:
    """A variable left without a slot, with the reason."""

    variable_id: str
    class_id: str
    course_id: str
    teacher_id: str
    subject: str
    reason: UnscheduledReason
    details: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "variable_id": self.variable_id,
            "class_id": self.class_id,
            "course_id": self.course_id,
            "teacher_id": self.teacher_id,
            "subject": self.subject,
            "reason": self.reason.value,
            "details": self.details,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UnassignedVariable":
        return cls(
            variable_id=data["variable_id"],
            class_id=data["class_id"],
            course_id=data["course_id"],
            teacher_id=data["teacher_id"],
            subject=data.get("subject", ""),
            reason=UnscheduledReason(data.get("reason", "unknown")),
            details=data.get("details", ""),
        )


@dataclass
class StageStatistics:
    """Counters for one orchestrator stage."""

    stage: str
    total: int = 0
    assigned: int = 0
    unassigned: int = 0
    iterations: int = 0
    backtracks: int = 0
    hard_violations: int = 0
    soft_violations: int = 0
    status: str = SearchStatus.SUCCESS.value
    elapsed_ms: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "stage": self.stage,
            "total": self.total,
            "assigned": self.assigned,
            "unassigned": self.unassigned,
            "iterations": self.iterations,
            "backtracks": self.backtracks,
            "hard_violations": self.hard_violations,
            "soft_violations": self.soft_violations,
            "status": self.status,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StageStatistics":
        return cls(**{key: data[key] for key in cls.__dataclass_fields__ if key in data})


@dataclass
class SolveStatistics:
    """Aggregated counters for a whole solve run."""

    total_variables: int = 0
    assigned_variables: int = 0
    unassigned_variables: int = 0
    hard_violations: int = 0
    soft_violations: int = 0
    soft_penalty: float = 0.0
    iterations: int = 0
    backtracks: int = 0
    execution_time_ms: float = 0.0
    stages: list[StageStatistics] = field(default_factory=list)

    @property
    def assignment_rate(self) -> float:
        if self.total_variables == 0:
            return 100.0
        return self.assigned_variables / self.total_variables * 100

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_variables": self.total_variables,
            "assigned_variables": self.assigned_variables,
            "unassigned_variables": self.unassigned_variables,
            "hard_violations": self.hard_violations,
            "soft_violations": self.soft_violations,
            "soft_penalty": round(self.soft_penalty, 2),
            "iterations": self.iterations,
            "backtracks": self.backtracks,
            "execution_time_ms": round(self.execution_time_ms, 2),
            "assignment_rate": round(self.assignment_rate, 2),
            "stages": [stage.to_dict() for stage in self.stages],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SolveStatistics":
        return cls(
            total_variables=data.get("total_variables", 0),
            assigned_variables=data.get("assigned_variables", 0),
            unassigned_variables=data.get("unassigned_variables", 0),
            hard_violations=data.get("hard_violations", 0),
            soft_violations=data.get("soft_violations", 0),
            soft_penalty=data.get("soft_penalty", 0.0),
            iterations=data.get("iterations", 0),
            backtracks=data.get("backtracks", 0),
            execution_time_ms=data.get("execution_time_ms", 0.0),
            stages=[StageStatistics.from_dict(s) for s in data.get("stages", [])],
        )


@dataclass
class SolveResult:
    """Complete result of a solve run."""

    success: bool
    status: SearchStatus
    assignments: list[Assignment] = field(default_factory=list)
    unassigned: list[UnassignedVariable] = field(default_factory=list)
    statistics: SolveStatistics = field(default_factory=SolveStatistics)
    conflicts: list[ConflictInfo] = field(default_factory=list)
    message: str = ""
    suggestions: list[str] = field(default_factory=list)
    generation_date: str = field(default_factory=lambda: datetime.now().isoformat())

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "generation_date": self.generation_date,
            "success": self.success,
            "status": self.status.value,
            "message": self.message,
            "statistics": self.statistics.to_dict(),
            "assignments": [a.to_dict() for a in self.assignments],
            "unassigned": [u.to_dict() for u in self.unassigned],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "suggestions": list(self.suggestions),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SolveResult":
        return cls(
            success=data.get("success", False),
            status=SearchStatus(data.get("status", SearchStatus.EXHAUSTED.value)),
            assignments=[Assignment.from_dict(a) for a in data.get("assignments", [])],
            unassigned=[UnassignedVariable.from_dict(u) for u in data.get("unassigned", [])],
            statistics=SolveStatistics.from_dict(data.get("statistics", {})),
            conflicts=[ConflictInfo.from_dict(c) for c in data.get("conflicts", [])],
            message=data.get("message", ""),
            suggestions=data.get("suggestions", []),
            generation_date=data.get("generation_date", ""),
        )


@dataclass
class ProgressEvent:
    """Progress notification pushed to the caller during a solve."""

    percentage: float
    stage: str
    message: str
    assigned_count: int
    total_count: int
