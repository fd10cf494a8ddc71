"""Deterministic local-store keys.

The local store has no query engine: every lookup is a key build or a linear
prefix scan, so all modules must agree on these formats.
"""

from __future__ import annotations

from typing import Any, Mapping, Optional

from ..core.constants import ATTENDANCE_PREFIX, COMMON_DIVISION, DEFAULT_SECTION, GENERAL_PERIOD, NAMAZ_PREFIX
from ..core.enums import CourseType
from .validators import as_division, as_year


def section_key(course_type: str, year: Any, course_division: Optional[str] = None, section: Optional[str] = None) -> str:
    section = section or DEFAULT_SECTION
    if course_type == CourseType.POST_PU.value:
        return f"{course_type}_{as_year(year)}_{section}"
    return f"{course_type}_{as_year(year)}_{as_division(course_division) or COMMON_DIVISION}_{section}"


def class_attendance_prefix(course_type: str, year: Any, course_division: Optional[str]) -> str:
    division = as_division(course_division) or COMMON_DIVISION
    return f"{ATTENDANCE_PREFIX}{course_type}_{as_year(year)}_{division}_"


def section_attendance_prefix(
    course_type: str,
    year: Any,
    course_division: Optional[str],
    section: str,
) -> str:
    return f"{class_attendance_prefix(course_type, year, course_division)}{section}_"


def attendance_key(
    *,
    date: str,
    course_type: str,
    year: Any,
    section: str,
    course_division: Optional[str] = None,
    period: Any = None,
) -> str:
    period_str = str(period) if period not in (None, "") else GENERAL_PERIOD
    return f"{section_attendance_prefix(course_type, year, course_division, section)}{date}_{period_str}"


def namaz_key(date: str, student_id: Any) -> str:
    return f"{NAMAZ_PREFIX}{date}_{student_id}"


def student_in_section(
    student: Mapping[str, Any],
    course_type: str,
    year: Any,
    course_division: Optional[str],
    section: str,
) -> bool:
    return (
        student.get("courseType") == course_type
        and as_year(student.get("year")) == as_year(year)
        and as_division(student.get("courseDivision")) == as_division(course_division)
        and student.get("batch") == section
    )
