"""Expansion of teaching plans into one-hour scheduling variables."""

import logging
from collections import defaultdict
from dataclasses import dataclass, field

from ..exceptions import ValidationError
from .constants import CORE_PRIORITY, DEFAULT_PRIORITY
from .models import Course, PlannedCourse, ScheduleVariable, TeachingPlan
from .rules import SchedulingRules
from .timeslots import TimeGrid

logger = logging.getLogger(__name__)


@dataclass
class GenerationResult:
    """Variables produced from the plans plus the entries that were skipped."""

    variables: list[ScheduleVariable] = field(default_factory=list)
    errors: list[ValidationError] = field(default_factory=list)
    covered_by_fixed: list[str] = field(default_factory=list)


def variable_id(class_id: str, course_id: str, teacher_id: str, index: int) -> str:
    return f"{class_id}_{course_id}_{teacher_id}_{index}"


class VariableGenerator:
    """Turns teaching plans into atomic scheduling variables.

    Each planned course yields ``weekly_hours`` variables whose ids depend
    only on the input, so the same plans always produce the same ids.
    """

    def __init__(
        self,
        rules: SchedulingRules,
        courses: dict[str, Course],
        grid: TimeGrid | None = None,
    ):
        self.rules = rules
        self.courses = courses
        self.grid = grid or TimeGrid(rules.time_rules)
        self.core_subjects = set(rules.core_subjects)

    def generate(self, teaching_plans: list[TeachingPlan]) -> GenerationResult:
        result = GenerationResult()
        counters: dict[tuple[str, str, str], int] = defaultdict(int)

        for plan in teaching_plans:
            for entry in plan.course_assignments:
                try:
                    course = self._validate(plan, entry)
                except ValidationError as e:
                    logger.warning(f"Skipping plan entry: {e}")
                    result.errors.append(e)
                    continue

                if self._is_covered_by_fixed(plan.class_id, course):
                    logger.info(
                        f"'{course.name}' of class '{plan.class_id}' is covered by a fixed-time course"
                    )
                    result.covered_by_fixed.append(f"{plan.class_id}:{course.id}")
                    continue

                is_core = course.subject in self.core_subjects
                key = (plan.class_id, course.id, entry.teacher_id)
                for _ in range(entry.weekly_hours):
                    index = counters[key]
                    counters[key] += 1
                    result.variables.append(
                        ScheduleVariable(
                            id=variable_id(plan.class_id, course.id, entry.teacher_id, index),
                            class_id=plan.class_id,
                            course_id=course.id,
                            teacher_id=entry.teacher_id,
                            subject=course.subject,
                            course_name=course.name,
                            required_hours=1,
                            priority=CORE_PRIORITY if is_core else DEFAULT_PRIORITY,
                            domain=list(self.grid.slots),
                            room_requirements=course.room_requirements,
                            time_preferences=list(entry.time_preferences),
                            time_avoidances=list(entry.time_avoidances),
                            is_core=is_core,
                            index=len(result.variables),
                        )
                    )

        logger.info(
            f"Generated {len(result.variables)} variables from {len(teaching_plans)} plans "
            f"({len(result.errors)} entries skipped)"
        )
        return result

    def _validate(self, plan: TeachingPlan, entry: PlannedCourse) -> Course:
        item_id = f"{plan.class_id}/{entry.course_id or '?'}"
        if not plan.class_id:
            raise ValidationError(item_id, "teaching plan without class", "classId")
        if not entry.teacher_id:
            raise ValidationError(item_id, "no teacher assigned", "teacherId")
        if entry.weekly_hours <= 0:
            raise ValidationError(
                item_id, f"weekly hours must be positive, got {entry.weekly_hours}", "weeklyHours"
            )
        course = self.courses.get(entry.course_id)
        if course is None:
            raise ValidationError(item_id, "unknown course", "courseId")
        return course

    def _is_covered_by_fixed(self, class_id: str, course: Course) -> bool:
        fixed = self.rules.course_arrangement.fixed_time_courses
        if not fixed.enabled:
            return False
        for fixed_course in fixed.courses:
            if not fixed_course.applies_to(class_id):
                continue
            if fixed_course.course_id and fixed_course.course_id == course.id:
                return True
            if fixed_course.name in (course.name, course.subject):
                return True
        return False
