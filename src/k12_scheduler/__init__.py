"""K-12 Scheduler - weekly timetable generation for primary and secondary schools.

This module assigns time slots and rooms to the weekly lessons of every
class, honouring teacher, class and room availability, fixed-time courses
and room-type requirements, and improving soft preferences where possible.

Example usage:
    from k12_scheduler import ConfigLoader, StagedScheduler

    loader = ConfigLoader(Path("school"))
    scheduler = StagedScheduler(
        rules=loader.rules,
        rooms=loader.rooms,
        classes=loader.classes,
        courses=loader.courses,
    )
    result = scheduler.schedule(loader.teaching_plans)

    print(f"Assigned: {result.statistics.assigned_variables}")
    for suggestion in result.suggestions:
        print(suggestion)
"""

from .exceptions import (
    ConfigFileError,
    InternalInconsistencyError,
    SchedulerError,
    ValidationError,
)
from .scheduler import (
    AlgorithmConfig,
    ConfigLoader,
    SchedulingRules,
    SolveResult,
    StagedScheduler,
    schedule,
    solve,
)

__version__ = "0.1.0"

__all__ = [
    # Main scheduler
    "StagedScheduler",
    "schedule",
    "solve",
    # Configuration
    "AlgorithmConfig",
    "ConfigLoader",
    "SchedulingRules",
    # Results
    "SolveResult",
    # Exceptions
    "SchedulerError",
    "ValidationError",
    "InternalInconsistencyError",
    "ConfigFileError",
]
