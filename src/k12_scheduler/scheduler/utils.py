"""Utility functions for the scheduler."""

import math
import re
from typing import Any

GRADE_PATTERN = re.compile(r"(\d+)\s*年级")
CLASS_NUMBER_PATTERN = re.compile(r"(\d+)\s*班")


def pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first present key from data.

    Input documents use camelCase keys while Python callers tend to use
    snake_case, so loaders accept both spellings.
    """
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


def parse_grade_number(name: str) -> int | None:
    """Extract the grade number from a class name like '3年级2班'."""
    match = GRADE_PATTERN.search(name or "")
    if match:
        return int(match.group(1))
    return None


def parse_class_number(name: str) -> int | None:
    """Extract the class number from a class name like '3年级2班'."""
    match = CLASS_NUMBER_PATTERN.search(name or "")
    if match:
        return int(match.group(1))
    return None


def required_capacity(student_count: int, headroom: float) -> int:
    """Seats needed for a class, rounded up after headroom is applied."""
    return math.ceil(student_count * headroom)


def keyword_matches(keyword: str, text: str) -> bool:
    """Check whether a keyword occurs in text.

    ASCII keywords must match a whole word ('pe' must not match 'speech');
    CJK keywords match as substrings since the script has no word breaks.
    """
    if not keyword or not text:
        return False
    keyword = keyword.lower()
    text = text.lower()
    if keyword.isascii():
        return re.search(rf"\b{re.escape(keyword)}\b", text) is not None
    return keyword in text
