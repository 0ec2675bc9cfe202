"""K-12 timetabling engine.

This package assigns weekly time slots and rooms to (class, course, teacher)
hour requirements with a staged backtracking search. Hard constraints are
never violated; soft constraints are scored and improved by local swaps.

Main classes:
- StagedScheduler: Runs fixed-time, core and general stages
- VariableGenerator: Expands teaching plans into one-hour variables
- RoomAllocator: Strategy chain choosing rooms for (course, class) pairs
- ConstraintChecker: Hard gates and soft penalties
- ConfigLoader: Loads a problem directory

Usage:
    from k12_scheduler.scheduler import ConfigLoader, StagedScheduler

    loader = ConfigLoader(Path("school"))
    scheduler = StagedScheduler(
        rules=loader.rules,
        rooms=loader.rooms,
        classes=loader.classes,
        teachers=loader.teachers,
        courses=loader.courses,
        config=loader.algorithm,
        catalog=loader.catalog,
    )
    result = scheduler.schedule(loader.teaching_plans)
"""

from .classifier import CourseClassifier
from .config import ConfigLoader
from .constants import DEFAULT_CORE_SUBJECTS, SOFT_CONSTRAINT_WEIGHTS
from .constraints import ConstraintChecker
from .excel_generator import generate_timetable_excel
from .exporter import export_result_json, load_result_json
from .models import (
    Assignment,
    ConflictInfo,
    ConflictKind,
    Course,
    PlannedCourse,
    ProgressEvent,
    Room,
    RoomRequirements,
    ScheduleVariable,
    SchoolClass,
    SearchStatus,
    SolveResult,
    SolveStatistics,
    Teacher,
    TeachingPlan,
    TimeSlot,
    UnassignedVariable,
    UnscheduledReason,
    WeekType,
)
from .rooms import RoomAllocator, RoomTypeCatalog
from .rules import AlgorithmConfig, SchedulingRules
from .scheduler import StagedScheduler, schedule, solve
from .state import ScheduleState
from .timeslots import TimeGrid
from .variables import VariableGenerator

__all__ = [
    # Main scheduler
    "StagedScheduler",
    "schedule",
    "solve",
    # Components
    "ConstraintChecker",
    "CourseClassifier",
    "RoomAllocator",
    "RoomTypeCatalog",
    "ScheduleState",
    "TimeGrid",
    "VariableGenerator",
    # Configuration
    "AlgorithmConfig",
    "ConfigLoader",
    "SchedulingRules",
    "DEFAULT_CORE_SUBJECTS",
    "SOFT_CONSTRAINT_WEIGHTS",
    # Models
    "Assignment",
    "ConflictInfo",
    "ConflictKind",
    "Course",
    "PlannedCourse",
    "ProgressEvent",
    "Room",
    "RoomRequirements",
    "ScheduleVariable",
    "SchoolClass",
    "SearchStatus",
    "SolveResult",
    "SolveStatistics",
    "Teacher",
    "TeachingPlan",
    "TimeSlot",
    "UnassignedVariable",
    "UnscheduledReason",
    "WeekType",
    # Export
    "export_result_json",
    "generate_timetable_excel",
    "load_result_json",
]
