"""Staged timetable scheduler.

Stages:
1. fixed_time - materialize fixed-time courses (class meetings, flag raising)
2. time_exclusion - remove reserved slots from every variable's domain
3. core_subjects - search over core-tier variables
4. general_subjects - search over the rest; earlier commits stay untouched
"""

import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import replace

from ..exceptions import InternalInconsistencyError
from .classifier import CourseClassifier
from .constants import (
    STAGE_CORE,
    STAGE_EXCLUSION,
    STAGE_FIXED,
    STAGE_GENERAL,
)
from .constraints import ConstraintChecker
from .models import (
    Assignment,
    ConflictInfo,
    ConflictKind,
    Course,
    ProgressEvent,
    Room,
    ScheduleVariable,
    SchoolClass,
    SearchStatus,
    SolveResult,
    SolveStatistics,
    StageStatistics,
    Teacher,
    TeachingPlan,
    TimeSlot,
    UnassignedVariable,
    UnscheduledReason,
)
from .rooms import RoomAllocator, RoomTypeCatalog
from .rules import AlgorithmConfig, FixedTimeCourse, SchedulingRules
from .solver import FailureAnalyzer, LocalOptimizer, RoomResolver, SearchBudget, SearchEngine
from .state import ScheduleState
from .timeslots import TimeGrid
from .variables import VariableGenerator

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ProgressEvent], None]


class StagedScheduler:
    """Runs the staged search for one school configuration.

    Reference data and rules are read-only; every call to solve() builds its
    own ScheduleState, so one scheduler may serve several runs.
    """

    def __init__(
        self,
        rules: SchedulingRules | None = None,
        rooms: Iterable[Room] = (),
        classes: Iterable[SchoolClass] = (),
        teachers: Iterable[Teacher] = (),
        courses: Iterable[Course] = (),
        config: AlgorithmConfig | None = None,
        catalog: RoomTypeCatalog | None = None,
    ):
        self.rules = rules or SchedulingRules()
        self.config = config or AlgorithmConfig()
        self.catalog = catalog or RoomTypeCatalog.default()
        self.rooms = list(rooms)
        self.classes = {c.id: c for c in classes}
        self.teachers = {t.id: t for t in teachers}
        self.courses = {c.id: c for c in courses}

        self.grid = TimeGrid(self.rules.time_rules)
        self.allocator = RoomAllocator(self.catalog, self.rules.room_constraints)
        self.checker = ConstraintChecker(self.rules, self.grid, self.rooms, self.teachers)
        self.classifier = CourseClassifier(self.rules.core_subjects)

    def schedule(
        self,
        teaching_plans: list[TeachingPlan],
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
    ) -> SolveResult:
        """Generate variables from teaching plans and solve them."""
        generation = VariableGenerator(self.rules, self.courses, self.grid).generate(teaching_plans)
        result = self.solve(
            generation.variables,
            progress_callback=progress_callback,
            cancel_event=cancel_event,
            teaching_plans=teaching_plans,
        )
        if generation.errors:
            result.suggestions.extend(f"Skipped invalid plan entry: {e}" for e in generation.errors)
            result.message += f"; {len(generation.errors)} invalid plan entries skipped"
        return result

    def solve(
        self,
        variables: list[ScheduleVariable],
        progress_callback: ProgressCallback | None = None,
        cancel_event: threading.Event | None = None,
        teaching_plans: list[TeachingPlan] | None = None,
    ) -> SolveResult:
        """Schedule the given variables. Never raises for unsatisfiable input."""
        start = time.perf_counter()
        try:
            return self._run(variables, progress_callback, cancel_event, teaching_plans, start)
        except InternalInconsistencyError as e:
            logger.exception("Solve aborted")
            statistics = SolveStatistics(
                total_variables=len(variables),
                unassigned_variables=len(variables),
                execution_time_ms=(time.perf_counter() - start) * 1000,
            )
            return SolveResult(
                success=False,
                status=SearchStatus.ABORTED,
                statistics=statistics,
                message=str(e),
                suggestions=["Internal error: please report this input so it can be investigated"],
            )

    def _run(
        self,
        variables: list[ScheduleVariable],
        progress_callback: ProgressCallback | None,
        cancel_event: threading.Event | None,
        teaching_plans: list[TeachingPlan] | None,
        start: float,
    ) -> SolveResult:
        # Private copies: domains shrink during search
        variables = [
            replace(v, domain=list(v.domain), is_core=self.classifier.is_core(v), index=i)
            for i, v in enumerate(variables)
        ]
        by_id = {v.id: v for v in variables}
        if len(by_id) != len(variables):
            raise InternalInconsistencyError("duplicate variable ids in input")
        initial_domains = {
            v.id: [slot for slot in (v.domain or self.grid.slots) if self.grid.is_legal(slot)]
            for v in variables
        }

        state = ScheduleState()
        state.register(v.id for v in variables)
        budget = SearchBudget.from_config(self.config, cancel_event)
        resolver = RoomResolver(self.allocator, self.rooms, self.classes)
        analyzer = FailureAnalyzer(self.checker, resolver, self.catalog)
        stages: list[StageStatistics] = []
        unresolved: dict[str, tuple[UnscheduledReason, str]] = {}

        def emit(stage: str, message: str) -> None:
            if progress_callback is None:
                return
            total = state.total_variables
            assigned = len(state.assignments)
            progress_callback(
                ProgressEvent(
                    percentage=round(assigned / total * 100, 2) if total else 100.0,
                    stage=stage,
                    message=message,
                    assigned_count=assigned,
                    total_count=total,
                )
            )

        def on_commit(current: ScheduleState, stage: str) -> None:
            emit(stage, f"{len(current.assignments)}/{current.total_variables} lessons placed")

        # Stage 1: fixed-time courses
        stage_start = time.perf_counter()
        emit(STAGE_FIXED, "Placing fixed-time courses")
        fixed_count = self._materialize_fixed(state, variables, teaching_plans or [], emit)
        stages.append(
            StageStatistics(
                stage=STAGE_FIXED,
                total=fixed_count + len(state.conflicts),
                assigned=fixed_count,
                unassigned=len(state.conflicts),
                elapsed_ms=(time.perf_counter() - stage_start) * 1000,
            )
        )

        # Stage 2: reserved slots leave every domain
        stage_start = time.perf_counter()
        excluded = 0
        for variable in variables:
            before = len(initial_domains[variable.id])
            variable.domain = self._stage_domain(variable, initial_domains, state)
            excluded += before - len(variable.domain)
        logger.info(f"Excluded {excluded} reserved slot(s) from variable domains")
        stages.append(
            StageStatistics(
                stage=STAGE_EXCLUSION,
                total=len(variables),
                elapsed_ms=(time.perf_counter() - stage_start) * 1000,
            )
        )
        emit(STAGE_EXCLUSION, f"Excluded {excluded} reserved slot(s)")

        # Stages 3 and 4: tiered search
        tiers = self.classifier.classify(variables)
        engine = SearchEngine(
            self.checker,
            resolver,
            budget,
            analyzer,
            initial_domains,
            on_commit=on_commit,
            verbose=self.config.verbose,
        )
        optimizer = LocalOptimizer(
            self.checker,
            resolver,
            self.config.local_optimization_iterations,
            seed=self.config.random_seed,
            budget=budget,
        )
        halted: str | None = None
        for stage, tier in ((STAGE_CORE, tiers.core), (STAGE_GENERAL, tiers.general)):
            stage_start = time.perf_counter()
            emit(stage, f"Scheduling {len(tier)} lessons")
            if halted:
                for variable in tier:
                    unresolved[variable.id] = (
                        UnscheduledReason.BUDGET_EXCEEDED,
                        f"Stage skipped: {halted}",
                    )
                stages.append(
                    StageStatistics(
                        stage=stage,
                        total=len(tier),
                        unassigned=len(tier),
                        status=SearchStatus.PARTIAL.value,
                    )
                )
                continue

            for variable in tier:
                variable.domain = self._stage_domain(variable, initial_domains, state)
            outcome = engine.search(tier, state, stage)
            unresolved.update(outcome.unresolved)
            if outcome.status == SearchStatus.PARTIAL:
                halted = outcome.message
            elif self.config.enable_local_optimization and outcome.assigned_ids:
                optimizer.optimize(state, by_id, outcome.assigned_ids, initial_domains)
            state.check_invariants()

            soft = self.checker.evaluate_soft(state, by_id)
            stages.append(
                StageStatistics(
                    stage=stage,
                    total=len(tier),
                    assigned=len(outcome.assigned_ids),
                    unassigned=len(outcome.unresolved),
                    iterations=outcome.iterations,
                    backtracks=outcome.backtracks,
                    hard_violations=len(self.checker.audit(state, by_id)),
                    soft_violations=len(soft.violations),
                    status=outcome.status.value,
                    elapsed_ms=(time.perf_counter() - stage_start) * 1000,
                )
            )

        return self._build_result(
            state, by_id, unresolved, stages, budget, analyzer, halted, start, emit
        )

    def _stage_domain(
        self,
        variable: ScheduleVariable,
        initial_domains: dict[str, list[TimeSlot]],
        state: ScheduleState,
    ) -> list[TimeSlot]:
        return [slot for slot in initial_domains[variable.id] if not state.is_reserved(variable.class_id, slot)]

    def _materialize_fixed(
        self,
        state: ScheduleState,
        variables: list[ScheduleVariable],
        teaching_plans: list[TeachingPlan],
        emit: Callable[[str, str], None],
    ) -> int:
        """Commit fixed-time courses; skip and report the ones that conflict."""
        fixed_config = self.rules.course_arrangement.fixed_time_courses
        if not fixed_config.enabled or not fixed_config.courses:
            return 0

        # First teacher per class, in plan order, then variable order
        first_teacher: dict[str, str] = {}
        for plan in teaching_plans:
            for entry in plan.course_assignments:
                if entry.teacher_id:
                    first_teacher.setdefault(plan.class_id, entry.teacher_id)
        for variable in variables:
            first_teacher.setdefault(variable.class_id, variable.teacher_id)

        class_ids = list(
            dict.fromkeys([plan.class_id for plan in teaching_plans] + [v.class_id for v in variables])
        )
        committed = 0
        for fixed in fixed_config.courses:
            for class_id in class_ids:
                if not fixed.applies_to(class_id):
                    continue
                conflict = self._commit_fixed(state, fixed, class_id, first_teacher)
                if conflict is None:
                    committed += 1
                    emit(STAGE_FIXED, f"Fixed '{fixed.name}' placed for class '{class_id}'")
                    continue
                state.conflicts.append(conflict)
                if self.rules.conflict_resolution.is_strict:
                    logger.warning(f"Skipped fixed-time course: {conflict.message}")
                else:
                    logger.info(f"Skipped fixed-time course: {conflict.message}")

        logger.info(f"Placed {committed} fixed-time lesson(s), skipped {len(state.conflicts)}")
        return committed

    def _fixed_course(self, fixed: FixedTimeCourse) -> Course:
        if fixed.course_id and fixed.course_id in self.courses:
            return self.courses[fixed.course_id]
        for course in self.courses.values():
            if fixed.name in (course.name, course.subject):
                return course
        return Course(id=fixed.course_id or f"fixed_{fixed.type}", name=fixed.name, subject=fixed.name)

    def _commit_fixed(
        self,
        state: ScheduleState,
        fixed: FixedTimeCourse,
        class_id: str,
        first_teacher: dict[str, str],
    ) -> ConflictInfo | None:
        slot = TimeSlot(fixed.day_of_week, fixed.period)
        label = f"'{fixed.name}' for class '{class_id}' at {slot}"
        if not self.grid.is_legal(slot):
            return ConflictInfo(ConflictKind.FORBIDDEN_SLOT, f"{label}: slot is not schedulable")

        school_class = self.classes.get(class_id)
        teacher_id = (school_class.homeroom_teacher_id if school_class else None) or first_teacher.get(class_id)
        if not teacher_id:
            return ConflictInfo(ConflictKind.TEACHER_CONFLICT, f"{label}: class has no teacher")

        holder = state.tracker.teacher_holder(teacher_id, slot)
        if holder:
            return ConflictInfo(
                ConflictKind.TEACHER_CONFLICT, f"{label}: teacher '{teacher_id}' already busy", [holder]
            )
        holder = state.tracker.class_holder(class_id, slot)
        if holder:
            return ConflictInfo(ConflictKind.CLASS_CONFLICT, f"{label}: class already busy", [holder])

        course = self._fixed_course(fixed)
        ranked = self.allocator.rank(course, class_id, self.rooms, self.classes)
        room = next((r for r in ranked if state.tracker.is_room_available(r.id, slot)), None)
        if room is None:
            kind = ConflictKind.ROOM_CONFLICT if ranked else ConflictKind.NO_ROOM
            holders = [state.tracker.room_holder(ranked[0].id, slot)] if ranked else []
            return ConflictInfo(kind, f"{label}: no free room", [h for h in holders if h])

        variable_id = f"fixed_{class_id}_{fixed.type}_{fixed.day_of_week}_{fixed.period}"
        state.register([variable_id])
        state.commit(
            Assignment(
                variable_id=variable_id,
                class_id=class_id,
                course_id=course.id,
                teacher_id=teacher_id,
                room_id=room.id,
                time_slot=slot,
                is_fixed=True,
                subject=course.subject,
                week_type=fixed.week_type,
                start_week=fixed.start_week,
                end_week=fixed.end_week,
            )
        )
        return None

    def _build_result(
        self,
        state: ScheduleState,
        variables: dict[str, ScheduleVariable],
        unresolved: dict[str, tuple[UnscheduledReason, str]],
        stages: list[StageStatistics],
        budget: SearchBudget,
        analyzer: FailureAnalyzer,
        halted: str | None,
        start: float,
        emit: Callable[[str, str], None],
    ) -> SolveResult:
        state.check_invariants()
        unassigned = []
        for variable_id in sorted(state.unassigned, key=lambda vid: variables[vid].index):
            variable = variables[variable_id]
            reason, details = unresolved.get(variable_id, (UnscheduledReason.UNKNOWN, ""))
            unassigned.append(
                UnassignedVariable(
                    variable_id=variable_id,
                    class_id=variable.class_id,
                    course_id=variable.course_id,
                    teacher_id=variable.teacher_id,
                    subject=variable.subject,
                    reason=reason,
                    details=details,
                )
            )

        hard = self.checker.audit(state, variables)
        soft = self.checker.evaluate_soft(state, variables)
        statistics = SolveStatistics(
            total_variables=state.total_variables,
            assigned_variables=len(state.assignments),
            unassigned_variables=len(state.unassigned),
            hard_violations=len(hard),
            soft_violations=len(soft.violations),
            soft_penalty=soft.penalty,
            iterations=budget.iterations,
            backtracks=budget.backtracks,
            execution_time_ms=(time.perf_counter() - start) * 1000,
            stages=stages,
        )
        if statistics.assigned_variables + statistics.unassigned_variables != statistics.total_variables:
            raise InternalInconsistencyError("assignment count mismatch in statistics")

        if halted:
            status = SearchStatus.PARTIAL
        elif unassigned:
            status = SearchStatus.EXHAUSTED
        else:
            status = SearchStatus.SUCCESS
        success = status == SearchStatus.SUCCESS and not hard

        if success:
            message = f"Scheduled all {statistics.total_variables} lessons"
        elif halted:
            message = (
                f"Partial schedule ({halted}): {statistics.assigned_variables}/"
                f"{statistics.total_variables} lessons placed"
            )
        else:
            message = (
                f"Incomplete schedule: {statistics.assigned_variables}/"
                f"{statistics.total_variables} lessons placed"
            )

        suggestions = analyzer.suggest(
            unassigned,
            variables,
            state,
            available_slots=len(self.grid),
            hard_violations=len(hard),
            soft_violations=len(soft.violations),
        )
        for conflict in state.conflicts:
            suggestions.append(f"Fixed-time course skipped: {conflict.message}")

        logger.info(
            f"Solve finished ({status.value}): {statistics.assigned_variables}/"
            f"{statistics.total_variables} assigned in {statistics.execution_time_ms:.0f} ms"
        )
        emit("complete", message)

        assignments = sorted(
            state.assignments.values(),
            key=lambda a: (a.class_id, a.time_slot.day_of_week, a.time_slot.period),
        )
        return SolveResult(
            success=success,
            status=status,
            assignments=assignments,
            unassigned=unassigned,
            statistics=statistics,
            conflicts=list(state.conflicts) + hard,
            message=message,
            suggestions=suggestions,
        )


def solve(
    variables: list[ScheduleVariable],
    rules: SchedulingRules | None = None,
    config: AlgorithmConfig | None = None,
    progress_callback: ProgressCallback | None = None,
    *,
    rooms: Iterable[Room] = (),
    classes: Iterable[SchoolClass] = (),
    teachers: Iterable[Teacher] = (),
    courses: Iterable[Course] = (),
    catalog: RoomTypeCatalog | None = None,
    cancel_event: threading.Event | None = None,
) -> SolveResult:
    """Solve pre-generated variables against the given reference data."""
    scheduler = StagedScheduler(
        rules=rules,
        rooms=rooms,
        classes=classes,
        teachers=teachers,
        courses=courses,
        config=config,
        catalog=catalog,
    )
    return scheduler.solve(variables, progress_callback=progress_callback, cancel_event=cancel_event)


def schedule(
    teaching_plans: list[TeachingPlan],
    rules: SchedulingRules | None = None,
    config: AlgorithmConfig | None = None,
    progress_callback: ProgressCallback | None = None,
    *,
    rooms: Iterable[Room] = (),
    classes: Iterable[SchoolClass] = (),
    teachers: Iterable[Teacher] = (),
    courses: Iterable[Course] = (),
    catalog: RoomTypeCatalog | None = None,
    cancel_event: threading.Event | None = None,
) -> SolveResult:
    """Generate variables from teaching plans, then solve them."""
    scheduler = StagedScheduler(
        rules=rules,
        rooms=rooms,
        classes=classes,
        teachers=teachers,
        courses=courses,
        config=config,
        catalog=catalog,
    )
    return scheduler.schedule(teaching_plans, progress_callback=progress_callback, cancel_event=cancel_event)
