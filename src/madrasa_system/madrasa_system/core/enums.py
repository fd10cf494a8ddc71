from __future__ import annotations

from enum import Enum


class CourseType(str, Enum):
    """Course track: PU or post-PU."""

    PU = "pu"
    POST_PU = "post-pu"


class CourseDivision(str, Enum):
    COMMERCE = "commerce"
    SCIENCE = "science"


class AttendanceStatus(str, Enum):
    """Per-student status stored in an attendance sheet."""

    PRESENT = "present"
    ABSENT = "absent"
    ON_LEAVE = "on-leave"


class LeaveStatus(str, Enum):
    ACTIVE = "active"
    CANCELLED = "cancelled"


class Prayer(str, Enum):
    FAJR = "fajr"
    ZUHR = "zuhr"
    ASR = "asr"
    MAGHRIB = "maghrib"
    ISHA = "isha"


class SyncAction(str, Enum):
    """Write operations that can wait in the sync queue for replay."""

    SAVE_STUDENT = "saveStudent"
    DELETE_STUDENT = "deleteStudent"
    SAVE_ATTENDANCE = "saveAttendance"
    SAVE_NAMAZ_RECORD = "saveNamazRecord"
    SAVE_LEAVE = "saveLeave"
