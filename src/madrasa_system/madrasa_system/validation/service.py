from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from ..common.datetime_utils import format_iso_date, iter_dates, now_local, parse_iso_date
from ..common.keys import attendance_key, student_in_section
from ..common.validators import as_division, as_year
from ..core.constants import ATTENDANCE_PREFIX, BACKUP_MARKER, MAX_ATTENDANCE_AGE_DAYS, VALID_YEARS
from ..core.enums import CourseDivision, CourseType, LeaveStatus, Prayer
from ..core.exceptions import RemoteApiError
from ..remote.repository import SchoolApi
from ..storage.kv_base import keys_with_prefix, read_json
from ..storage.repository import KeyValueStore
from .model import AttendanceMatch, AttendanceValidationParams, ValidationResult

logger = logging.getLogger(__name__)

_COURSE_TYPES = {c.value for c in CourseType}
_DIVISIONS = {d.value for d in CourseDivision}
_PRAYERS = {p.value for p in Prayer}


def _leave_window(leave: Dict[str, Any]) -> Optional[Tuple[date, date]]:
    try:
        return parse_iso_date(str(leave["fromDate"])[:10]), parse_iso_date(str(leave["toDate"])[:10])
    except (KeyError, TypeError, ValueError):
        logger.debug("Ignoring leave with unreadable dates: %r", leave)
        return None


def leave_covers(leave: Dict[str, Any], student_id: Any, on: date) -> bool:
    """True when ``leave`` is an active leave of the student that includes ``on``."""
    if leave.get("studentId") != student_id or leave.get("status") != LeaveStatus.ACTIVE.value:
        return False
    window = _leave_window(leave)
    return window is not None and window[0] <= on <= window[1]


class ValidationService:
    """Cross-module checks run before attendance writes.

    Business rules:
    - A non-deleted holiday on the date blocks attendance.
    - Dates in the future or older than one year are rejected.
    - Enrollment mismatches are tolerated (students switch devices/sections).
    - Unexpected errors fail open: availability wins over strictness.
    """

    def __init__(
        self,
        api: SchoolApi,
        local: KeyValueStore,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._api = api
        self._local = local
        self._clock = clock

    def pre_attendance_checks(self, params: AttendanceValidationParams) -> ValidationResult:
        errors: List[str] = []
        warnings: List[str] = []

        try:
            class_check = self.validate_class_structure(params)
            if not class_check.valid:
                errors.append(class_check.reason or "Invalid class configuration")

            date_check = self.validate_attendance_date(params.date)
            if not date_check.valid:
                errors.append(date_check.reason or "Invalid date")

            holiday_check = self.check_holiday_conflict(params.date)
            if not holiday_check.valid:
                errors.append(holiday_check.reason or "Holiday conflict")

            enrollment_check = self.validate_student_enrollment(params)
            if not enrollment_check.valid:
                errors.append(enrollment_check.reason or "Student enrollment issues")

            # Informational only; overwrites are confirmed separately.
            existing_check = self.check_existing_attendance(params)

            leave_check = self.integrate_leaves_with_attendance(params)
            if not leave_check.valid and leave_check.reason:
                warnings.append(leave_check.reason)
        except Exception as e:
            logger.exception("Attendance pre-checks crashed; allowing the operation")
            return ValidationResult(valid=True, warnings=[f"Validation skipped: {e}"])

        return ValidationResult(
            valid=not errors,
            errors=errors,
            warnings=warnings,
            data={
                "existingAttendance": existing_check.data,
                "leaveIntegration": leave_check.data,
                "holidayStatus": holiday_check.data,
            },
        )

    def validate_class_structure(self, params: AttendanceValidationParams) -> ValidationResult:
        division = as_division(params.course_division)

        if params.course_type not in _COURSE_TYPES:
            return ValidationResult.fail("Invalid course type")
        if as_year(params.year) not in VALID_YEARS:
            return ValidationResult.fail("Invalid year")
        if params.course_type == CourseType.PU.value and division and division not in _DIVISIONS:
            return ValidationResult.fail("Invalid course division for PU")
        if params.course_type == CourseType.POST_PU.value and division:
            return ValidationResult.fail("Post-PU courses should not have course division")
        return ValidationResult.ok()

    def validate_attendance_date(self, value: str) -> ValidationResult:
        try:
            attendance_date = parse_iso_date(str(value)[:10]) if value else None
        except ValueError:
            attendance_date = None
        if attendance_date is None:
            return ValidationResult.fail("Invalid date format")

        today = self._clock().date()
        if attendance_date > today:
            return ValidationResult.fail("Cannot mark attendance for future dates")
        if attendance_date < today - timedelta(days=MAX_ATTENDANCE_AGE_DAYS):
            return ValidationResult.fail("Cannot mark attendance for dates older than one year")
        return ValidationResult.ok()

    def check_holiday_conflict(self, value: str) -> ValidationResult:
        day = str(value or "")[:10]
        try:
            holidays = self._api.list_holidays()
        except RemoteApiError as e:
            # Holiday lookup is best effort: an unreachable API must not block marking.
            logger.warning("Holiday lookup failed, assuming no holiday on %s: %s", value, e)
            return ValidationResult.ok(holiday=None, blocksAttendance=False)

        for holiday in holidays:
            if day and str(holiday.get("date") or "")[:10] == day and not holiday.get("isDeleted"):
                return ValidationResult.fail(
                    f"Cannot mark attendance on {holiday.get('name')} ({holiday.get('type')})",
                    holiday=holiday,
                    blocksAttendance=True,
                )
        return ValidationResult.ok(holiday=None, blocksAttendance=False)

    def validate_student_enrollment(self, params: AttendanceValidationParams) -> ValidationResult:
        if not params.students:
            return ValidationResult.fail("No students found for this class configuration")

        division = as_division(params.course_division)
        invalid = [
            s
            for s in params.students
            if s.get("courseType") != params.course_type
            or as_year(s.get("year")) != as_year(params.year)
            or (division is not None and as_division(s.get("courseDivision")) != division)
            or s.get("batch") != params.section
        ]
        if invalid:
            logger.info("%d students have mismatched enrollment data", len(invalid))
            return ValidationResult.ok(invalidStudents=invalid)
        return ValidationResult.ok()

    def generate_attendance_key(self, params: AttendanceValidationParams) -> str:
        return attendance_key(
            date=params.date,
            course_type=params.course_type,
            year=params.year,
            course_division=params.course_division,
            section=params.section,
            period=params.period,
        )

    def check_existing_attendance(self, params: AttendanceValidationParams) -> ValidationResult:
        key = self.generate_attendance_key(params)
        try:
            existing = read_json(self._local, key)
        except ValueError:
            logger.warning("Cached attendance under %s is not valid JSON", key)
            existing = None

        if not existing:
            return ValidationResult.ok(exists=False)

        metadata = existing.get("metadata") or {}
        return ValidationResult.ok(
            exists=True,
            attendance=existing,
            key=key,
            markedAt=metadata.get("markedAt"),
            markedBy=metadata.get("markedBy"),
        )

    def integrate_leaves_with_attendance(self, params: AttendanceValidationParams) -> ValidationResult:
        try:
            leaves = list(self._api.list_leaves())
        except RemoteApiError as e:
            return ValidationResult.fail(f"Failed to load leave data: {e}")

        try:
            on = parse_iso_date(params.date[:10])
        except ValueError:
            return ValidationResult.fail("Invalid date format")

        students_with_leaves = []
        for student in params.students:
            sid = student.get("id")
            active_leave = next((l for l in leaves if leave_covers(l, sid, on)), None)
            expired_leaves = []
            for leave in leaves:
                if leave.get("studentId") != sid or leave.get("status") != LeaveStatus.ACTIVE.value:
                    continue
                window = _leave_window(leave)
                if window is not None and window[1] < on:
                    expired_leaves.append(leave)

            students_with_leaves.append(
                {
                    **student,
                    "activeLeave": active_leave,
                    "expiredLeaves": expired_leaves,
                    "shouldAutoMark": active_leave is not None,
                    "needsAlert": bool(expired_leaves),
                }
            )

        return ValidationResult.ok(
            studentsWithLeaves=students_with_leaves,
            totalOnLeave=sum(1 for s in students_with_leaves if s["shouldAutoMark"]),
            totalNeedingAlerts=sum(1 for s in students_with_leaves if s["needsAlert"]),
        )

    def validate_leave_attendance_sync(self, student_id: Any, from_date: str, to_date: str) -> ValidationResult:
        try:
            matches = self.find_attendance_in_date_range(student_id, from_date, to_date)
        except ValueError as e:
            return ValidationResult.fail(f"Failed to validate leave-attendance sync: {e}")

        if matches:
            result = ValidationResult.ok(conflictingAttendance=[m.to_dict() for m in matches])
            result.warnings.append(
                f"Found {len(matches)} existing attendance records that will be updated to 'on-leave'"
            )
            return result
        return ValidationResult.ok(conflictingAttendance=[])

    def find_attendance_in_date_range(self, student_id: Any, from_date: str, to_date: str) -> List[AttendanceMatch]:
        """Scan cached sheets of every date in the inclusive range for the student.

        Raises ValueError for unreadable dates. Backup snapshots are skipped.
        """
        start = parse_iso_date(from_date[:10])
        end = parse_iso_date(to_date[:10])
        attendance_keys = [k for k in keys_with_prefix(self._local, ATTENDANCE_PREFIX) if BACKUP_MARKER not in k]

        matches: List[AttendanceMatch] = []
        for day in iter_dates(start, end):
            day_str = format_iso_date(day)
            for key in attendance_keys:
                if f"_{day_str}_" not in key:
                    continue
                try:
                    data = read_json(self._local, key)
                except ValueError:
                    logger.debug("Skipping unreadable attendance sheet %s", key)
                    continue
                if not isinstance(data, dict):
                    continue
                entry = next((s for s in data.get("students") or [] if s.get("id") == student_id), None)
                if entry is not None:
                    matches.append(AttendanceMatch(key=key, date=day_str, student=entry, data=data))
        return matches

    def validate_section_deletion(
        self,
        course_type: str,
        year: Any,
        course_division: Optional[str],
        section: str,
    ) -> ValidationResult:
        try:
            students = self._api.list_students()
        except RemoteApiError as e:
            return ValidationResult.fail(f"Failed to validate section deletion: {e}")

        in_section = [s for s in students if student_in_section(s, course_type, year, course_division, section)]
        if in_section:
            return ValidationResult.fail(
                f"Cannot delete section with {len(in_section)} enrolled students",
                studentsInSection=in_section,
            )
        return ValidationResult.ok()

    def validate_namaz_attendance(self, value: str, prayer: str, students: Sequence[Dict[str, Any]]) -> ValidationResult:
        if prayer not in _PRAYERS:
            return ValidationResult.fail("Invalid prayer name")

        date_check = self.validate_attendance_date(value)
        if not date_check.valid:
            return date_check

        if not students:
            return ValidationResult.fail("No students selected for namaz attendance")
        return ValidationResult.ok()
