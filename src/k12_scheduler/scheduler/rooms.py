"""Room allocation for (course, class) pairs.

Allocation is a strategy chain. For regular courses the chain is:

1. FixedBindingStrategy - room whose ``assigned_class`` is the class
2. HomeroomStrategy - room named by the class's ``homeroom``
3. NameMatchingStrategy - class name / grade / class number heuristics
4. ScoredFallbackStrategy - best scored active room

Special courses (PE, music, lab, ...) use SpecialRoomStrategy instead,
which only considers rooms of the course's room types.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Callable

from .constants import (
    CAPACITY_FIT_BASE,
    CAPACITY_HEADROOM,
    COURSE_ROOM_TYPES,
    DEFAULT_ROOM_TYPE_PRIORITY,
    GENERIC_ROOM_BONUS,
    GENERIC_ROOM_TYPES,
    MAX_FLOOR_BONUS,
    NON_MATCHING_ROOM_SCORE,
    ROOM_TYPE_PRIORITY,
    SPECIAL_COURSE_KEYWORDS,
    SPECIAL_ROOM_BASE_SCORE,
    SPECIAL_ROOM_MAX_SCORE,
    SPECIAL_ROOM_PRIORITY_FACTOR,
)
from .models import Course, Room, RoomRequirements, SchoolClass
from .rules import RoomConstraints
from .utils import keyword_matches, parse_class_number, parse_grade_number, pick, required_capacity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoomTypeCatalog:
    """Keyword and room-type tables for special courses.

    Passed to the allocator at construction so that several school
    configurations can be solved side by side.
    """

    course_keywords: tuple[tuple[str, tuple[str, ...]], ...]
    course_room_types: tuple[tuple[str, tuple[str, ...]], ...]
    room_type_priority: tuple[tuple[str, int], ...]
    generic_room_types: tuple[str, ...] = GENERIC_ROOM_TYPES
    default_priority: int = DEFAULT_ROOM_TYPE_PRIORITY

    @classmethod
    def default(cls) -> "RoomTypeCatalog":
        return cls(
            course_keywords=tuple((k, tuple(v)) for k, v in SPECIAL_COURSE_KEYWORDS.items()),
            course_room_types=tuple((k, tuple(v)) for k, v in COURSE_ROOM_TYPES.items()),
            room_type_priority=tuple(ROOM_TYPE_PRIORITY.items()),
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "RoomTypeCatalog":
        """Build a catalog, layering the given tables over the defaults."""
        if not data:
            return cls.default()
        keywords = dict(SPECIAL_COURSE_KEYWORDS)
        keywords.update(pick(data, "courseKeywords", "course_keywords", default={}))
        room_types = dict(COURSE_ROOM_TYPES)
        room_types.update(pick(data, "courseRoomTypes", "course_room_types", default={}))
        priorities = dict(ROOM_TYPE_PRIORITY)
        priorities.update(pick(data, "roomTypePriority", "room_type_priority", default={}))
        return cls(
            course_keywords=tuple((k, tuple(v)) for k, v in keywords.items()),
            course_room_types=tuple((k, tuple(v)) for k, v in room_types.items()),
            room_type_priority=tuple((k, int(v)) for k, v in priorities.items()),
            generic_room_types=tuple(
                pick(data, "genericRoomTypes", "generic_room_types", default=GENERIC_ROOM_TYPES)
            ),
            default_priority=int(
                pick(data, "defaultPriority", "default_priority", default=DEFAULT_ROOM_TYPE_PRIORITY)
            ),
        )

    @cached_property
    def _priorities(self) -> dict[str, int]:
        return dict(self.room_type_priority)

    @cached_property
    def _room_types(self) -> dict[str, tuple[str, ...]]:
        return dict(self.course_room_types)

    def category_for(self, course_name: str, subject: str) -> str | None:
        """Special course category of a course, or None for regular courses."""
        for category, keywords in self.course_keywords:
            for keyword in keywords:
                if keyword_matches(keyword, subject) or keyword_matches(keyword, course_name):
                    return category
        return None

    def room_types_for(self, category: str) -> tuple[str, ...]:
        return self._room_types.get(category, ())

    def priority_of(self, room_type: str) -> int:
        return self._priorities.get(room_type, self.default_priority)

    def is_generic(self, room_type: str) -> bool:
        return room_type in self.generic_room_types


def meets_requirements(room: Room, requirements: RoomRequirements) -> bool:
    """Check a room against a course's declared requirements."""
    if requirements.types and room.type not in requirements.types:
        return False
    if requirements.capacity is not None and room.capacity < requirements.capacity:
        return False
    if requirements.equipment and not set(requirements.equipment).issubset(room.equipment):
        return False
    return True


def _bound_elsewhere(room: Room, class_id: str) -> bool:
    return room.assigned_class is not None and room.assigned_class != class_id


class AllocationStrategy(ABC):
    """One link of the allocation chain."""

    name = "base"

    @abstractmethod
    def candidates(self, school_class: SchoolClass, course: Course, rooms: list[Room]) -> list[Room]:
        """Rooms this strategy would accept, best first."""

    def try_allocate(self, school_class: SchoolClass, course: Course, rooms: list[Room]) -> Room | None:
        found = self.candidates(school_class, course, rooms)
        return found[0] if found else None


class FixedBindingStrategy(AllocationStrategy):
    """Room explicitly bound to the class."""

    name = "fixed_binding"

    def candidates(self, school_class, course, rooms):
        return [room for room in rooms if room.assigned_class == school_class.id]


class HomeroomStrategy(AllocationStrategy):
    """Room referenced by the class's homeroom field."""

    name = "homeroom"

    def candidates(self, school_class, course, rooms):
        if not school_class.homeroom:
            return []
        return [
            room
            for room in rooms
            if room.id == school_class.homeroom and not _bound_elsewhere(room, school_class.id)
        ]


class NameMatchingStrategy(AllocationStrategy):
    """Match ordinary classrooms to the class by name.

    Heuristics, in order: exact name, class name contained in room name,
    grade number equal to floor, class number contained in room number.
    """

    name = "name_matching"

    def __init__(self, catalog: RoomTypeCatalog):
        self.catalog = catalog

    def candidates(self, school_class, course, rooms):
        pool = [
            room
            for room in rooms
            if self.catalog.is_generic(room.type) and not _bound_elsewhere(room, school_class.id)
        ]
        class_name = school_class.name or ""
        found: list[Room] = []

        found.extend(room for room in pool if class_name and room.name == class_name)
        found.extend(room for room in pool if class_name and class_name in room.name)

        grade = school_class.grade or parse_grade_number(class_name)
        if grade is not None:
            found.extend(room for room in pool if room.floor == grade)

        class_number = parse_class_number(class_name)
        if class_number is not None:
            found.extend(room for room in pool if str(class_number) in room.room_number)

        return _unique(found)


class ScoredFallbackStrategy(AllocationStrategy):
    """Score every active room by type, capacity fit and floor."""

    name = "scored_fallback"

    def __init__(self, catalog: RoomTypeCatalog, room_constraints: RoomConstraints):
        self.catalog = catalog
        self.room_constraints = room_constraints

    def score(self, room: Room, school_class: SchoolClass) -> float:
        score = 0.0
        if self.catalog.is_generic(room.type):
            score += GENERIC_ROOM_BONUS
        needed = required_capacity(school_class.student_count, CAPACITY_HEADROOM)
        score += CAPACITY_FIT_BASE - abs(room.capacity - needed)
        if room.floor is not None:
            score += max(0, MAX_FLOOR_BONUS - max(room.floor - 1, 0))
        return score

    def candidates(self, school_class, course, rooms):
        pool = [room for room in rooms if not _bound_elsewhere(room, school_class.id)]
        if self.room_constraints.respect_capacity_limits and school_class.student_count:
            pool = [room for room in pool if room.capacity >= school_class.student_count]
        # sorted() is stable, so equal scores keep input order
        return sorted(pool, key=lambda room: -self.score(room, school_class))


class SpecialRoomStrategy(AllocationStrategy):
    """Rooms whose type suits a special course."""

    name = "special_room"

    def __init__(self, catalog: RoomTypeCatalog):
        self.catalog = catalog

    def allowed_types(self, course: Course) -> tuple[str, ...]:
        if course.room_requirements.types:
            return tuple(course.room_requirements.types)
        category = self.catalog.category_for(course.name, course.subject)
        return self.catalog.room_types_for(category) if category else ()

    def score(self, room: Room, allowed_types: tuple[str, ...]) -> float:
        if room.type not in allowed_types:
            return NON_MATCHING_ROOM_SCORE
        priority = self.catalog.priority_of(room.type)
        return min(
            SPECIAL_ROOM_MAX_SCORE,
            SPECIAL_ROOM_BASE_SCORE + (priority - self.catalog.default_priority) * SPECIAL_ROOM_PRIORITY_FACTOR,
        )

    def candidates(self, school_class, course, rooms):
        allowed = self.allowed_types(course)
        matching = [
            room
            for room in rooms
            if room.type in allowed and not _bound_elsewhere(room, school_class.id)
        ]
        return sorted(matching, key=lambda room: -self.score(room, allowed))


class RoomAllocator:
    """Resolves the room for a (course, class) pair."""

    def __init__(
        self,
        catalog: RoomTypeCatalog | None = None,
        room_constraints: RoomConstraints | None = None,
    ):
        self.catalog = catalog or RoomTypeCatalog.default()
        self.room_constraints = room_constraints or RoomConstraints()
        self.special_strategy = SpecialRoomStrategy(self.catalog)
        chain: list[AllocationStrategy] = []
        if self.room_constraints.prefer_fixed_classrooms:
            chain.extend([FixedBindingStrategy(), HomeroomStrategy()])
        chain.extend(
            [
                NameMatchingStrategy(self.catalog),
                ScoredFallbackStrategy(self.catalog, self.room_constraints),
            ]
        )
        self.chain = chain

    def is_special(self, course: Course) -> bool:
        if course.room_requirements.types:
            return True
        return self.catalog.category_for(course.name, course.subject) is not None

    def rank(
        self,
        course: Course,
        class_id: str,
        rooms: list[Room],
        classes: dict[str, SchoolClass],
    ) -> list[Room]:
        """All admissible rooms in allocation order, ignoring occupancy."""
        school_class = classes.get(class_id) or SchoolClass(id=class_id, name=class_id)
        usable = [
            room
            for room in rooms
            if room.is_active and meets_requirements(room, course.room_requirements)
        ]

        if self.is_special(course):
            found = self.special_strategy.candidates(school_class, course, usable)
            explicit = bool(course.room_requirements.types)
            if found or explicit or self.room_constraints.special_room_priority == "strict":
                return found
            logger.debug(f"No special room for '{course.name}', using regular rooms")

        ranked: list[Room] = []
        for strategy in self.chain:
            ranked.extend(strategy.candidates(school_class, course, usable))
        return _unique(ranked)

    def allocate(
        self,
        course: Course,
        class_id: str,
        rooms: list[Room],
        classes: dict[str, SchoolClass],
        available: Callable[[Room], bool] | None = None,
    ) -> Room | None:
        """First admissible room, optionally restricted to available ones."""
        for room in self.rank(course, class_id, rooms, classes):
            if available is None or available(room):
                return room
        return None


def _unique(rooms: list[Room]) -> list[Room]:
    seen: set[str] = set()
    result = []
    for room in rooms:
        if room.id not in seen:
            seen.add(room.id)
            result.append(room)
    return result
