"""Test fixtures for K-12 scheduler tests."""

import csv
import json

import pytest

from k12_scheduler.scheduler.models import (
    Assignment,
    Course,
    PlannedCourse,
    Room,
    RoomRequirements,
    ScheduleVariable,
    SchoolClass,
    TeachingPlan,
    TimeSlot,
)
from k12_scheduler.scheduler.rules import AlgorithmConfig, SchedulingRules, TimeRules


@pytest.fixture
def classroom():
    """An ordinary classroom on the first floor."""
    return Room(id="R101", name="Room 101", type="classroom", capacity=40, floor=1, room_number="101")


@pytest.fixture
def gym():
    return Room(id="G1", name="Gym", type="gym", capacity=100)


@pytest.fixture
def school_class():
    return SchoolClass(id="C1", name="一年级1班", grade=1, student_count=30)


@pytest.fixture
def math_course():
    return Course(id="math", name="数学", subject="数学")


@pytest.fixture
def monday_rules():
    """Five periods on Monday only."""
    return SchedulingRules(time_rules=TimeRules(daily_periods=5, working_days=(1,)))


@pytest.fixture
def quiet_config():
    """Deterministic search without local optimization."""
    return AlgorithmConfig(enable_local_optimization=False)


@pytest.fixture
def make_variable():
    """Factory for scheduling variables."""

    def factory(
        variable_id="C1_math_T1_0",
        class_id="C1",
        course_id="math",
        teacher_id="T1",
        subject="数学",
        domain=None,
        **kwargs,
    ):
        return ScheduleVariable(
            id=variable_id,
            class_id=class_id,
            course_id=course_id,
            teacher_id=teacher_id,
            subject=subject,
            course_name=kwargs.pop("course_name", subject),
            domain=list(domain or []),
            **kwargs,
        )

    return factory


@pytest.fixture
def make_assignment():
    """Factory for assignments."""

    def factory(
        variable_id,
        day,
        period,
        class_id="C1",
        teacher_id="T1",
        room_id="R101",
        subject="数学",
        course_id="math",
        is_fixed=False,
    ):
        return Assignment(
            variable_id=variable_id,
            class_id=class_id,
            course_id=course_id,
            teacher_id=teacher_id,
            room_id=room_id,
            time_slot=TimeSlot(day, period),
            is_fixed=is_fixed,
            subject=subject,
        )

    return factory


@pytest.fixture
def sample_plans():
    return [
        TeachingPlan(
            class_id="C1",
            course_assignments=[
                PlannedCourse(course_id="math", teacher_id="T1", weekly_hours=3),
                PlannedCourse(course_id="pe", teacher_id="T3", weekly_hours=2),
            ],
        )
    ]


@pytest.fixture
def sample_courses():
    return {
        "math": Course(id="math", name="数学", subject="数学"),
        "pe": Course(id="pe", name="体育", subject="体育"),
        "lab": Course(
            id="lab",
            name="Physics Lab",
            subject="Physics",
            room_requirements=RoomRequirements(types=["lab"]),
        ),
    }


ROOM_FIELDS = [
    "id",
    "name",
    "type",
    "capacity",
    "equipment",
    "building",
    "floor",
    "room_number",
    "assigned_class",
    "is_active",
]


def _write_json(path, data):
    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)


@pytest.fixture
def school_dir(tmp_path):
    """A complete, solvable problem directory."""
    directory = tmp_path / "school"
    directory.mkdir()

    with open(directory / "rooms.csv", "w", encoding="utf-8", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=ROOM_FIELDS)
        writer.writeheader()
        writer.writerows(
            [
                {
                    "id": "R101",
                    "name": "一年级1班教室",
                    "type": "classroom",
                    "capacity": "40",
                    "equipment": "projector;whiteboard",
                    "building": "A",
                    "floor": "1",
                    "room_number": "101",
                    "assigned_class": "",
                    "is_active": "true",
                },
                {
                    "id": "G1",
                    "name": "体育馆",
                    "type": "gym",
                    "capacity": "100",
                    "equipment": "",
                    "building": "B",
                    "floor": "",
                    "room_number": "",
                    "assigned_class": "",
                    "is_active": "true",
                },
            ]
        )

    _write_json(
        directory / "classes.json",
        [{"id": "C1", "name": "一年级1班", "grade": 1, "studentCount": 30, "homeroomTeacher": "T1"}],
    )
    _write_json(
        directory / "courses.json",
        [
            {"id": "math", "name": "数学", "subject": "数学"},
            {"id": "chinese", "name": "语文", "subject": "语文"},
            {"id": "pe", "name": "体育", "subject": "体育"},
            {"id": "meeting", "name": "班会", "subject": "班会"},
        ],
    )
    _write_json(
        directory / "teachers.json",
        [
            {"id": "T1", "name": "王老师", "subjects": ["数学"]},
            {"id": "T2", "name": "李老师", "subjects": ["语文"]},
            {"id": "T3", "name": "张老师", "subjects": ["体育"]},
        ],
    )
    _write_json(
        directory / "teaching-plans.json",
        [
            {
                "classId": "C1",
                "courseAssignments": [
                    {"courseId": "math", "teacherId": "T1", "weeklyHours": 4},
                    {"courseId": "chinese", "teacherId": "T2", "weeklyHours": 4},
                    {"courseId": "pe", "teacherId": "T3", "weeklyHours": 2},
                    {"courseId": "meeting", "teacherId": "T1", "weeklyHours": 1},
                ],
            }
        ],
    )
    _write_json(
        directory / "rules.json",
        {
            "timeRules": {"dailyPeriods": 4, "workingDays": [1, 2, 3, 4, 5]},
            "courseArrangementRules": {
                "fixedTimeCourses": {
                    "enabled": True,
                    "courses": [{"type": "class_meeting", "name": "班会", "dayOfWeek": 5, "period": 4}],
                }
            },
        },
    )
    _write_json(directory / "algorithm.json", {"enableLocalOptimization": False})
    return directory
