from __future__ import annotations

import copy
import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, TypeVar

from ..common.datetime_utils import epoch_millis, now_local, parse_iso_date
from ..common.events import NOTIFICATION_UPDATE, STUDENT_DATA_CHANGED, EventBus
from ..common.keys import section_attendance_prefix, student_in_section
from ..common.validators import as_division, as_year
from ..core.constants import ARCHIVE_PREFIX, COMMON_DIVISION, STUDENT_DATA_LAST_SYNC_KEY
from ..core.enums import AttendanceStatus, LeaveStatus
from ..core.exceptions import OperationInProgressError, RemoteApiError
from ..remote.repository import SchoolApi
from ..storage.kv_base import iter_json_with_prefix, keys_with_prefix, read_json, write_json
from ..storage.repository import KeyValueStore
from ..validation.model import AttendanceValidationParams
from ..validation.service import ValidationService, leave_covers
from .audit import AuditTrail
from .model import (
    AttendanceOverwriteOptions,
    AuditEntry,
    LeaveConflictCheck,
    SectionDeletionCheck,
    SyncResult,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SyncService:
    """Keeps leave, attendance and section data consistent in the local cache.

    Partial failures are reported through ``SyncResult.errors``; only lock
    contention is raised.
    """

    def __init__(
        self,
        validation: ValidationService,
        local: KeyValueStore,
        api: SchoolApi,
        *,
        audit: AuditTrail,
        events: Optional[EventBus] = None,
        clock: Callable[[], datetime] = now_local,
    ):
        self._validation = validation
        self._local = local
        self._api = api
        self._audit = audit
        self._events = events or EventBus()
        self._clock = clock
        self._locks: Set[str] = set()
        self._locks_guard = threading.Lock()

    # ===== LEAVE <-> ATTENDANCE =====

    def sync_leave_with_past_attendance(
        self,
        student_id: Any,
        from_date: str,
        to_date: str,
        leave_reason: str,
        approved_by: Any,
    ) -> SyncResult:
        """Mark already-cached attendance inside an approved leave as on-leave.

        The previous status is kept in ``originalStatus`` on each entry.
        """
        try:
            matches = self._validation.find_attendance_in_date_range(student_id, from_date, to_date)
        except ValueError as e:
            return SyncResult(success=False, message=f"Sync failed: {e}")

        if not matches:
            return SyncResult(success=True, message="No conflicting attendance records found", updated_records=0)

        updated: List[str] = []
        errors: List[str] = []
        for match in matches:
            try:
                data = copy.deepcopy(match.data)
                students = data["students"]
                idx = next((i for i, s in enumerate(students) if s.get("id") == student_id), -1)
                if idx < 0:
                    continue

                stamp = self._clock().isoformat()
                students[idx] = {
                    **students[idx],
                    "status": AttendanceStatus.ON_LEAVE.value,
                    "isAutoMarked": True,
                    "leaveReason": leave_reason,
                    "originalStatus": students[idx].get("status"),
                    "syncedAt": stamp,
                    "syncedBy": approved_by,
                }
                data["metadata"] = {
                    **(data.get("metadata") or {}),
                    "lastSynced": stamp,
                    "syncReason": "Leave approved after attendance marked",
                    "originalAttendancePreserved": True,
                }
                write_json(self._local, match.key, data)
                updated.append(match.key)
            except (OSError, KeyError, TypeError, AttributeError) as e:
                logger.warning("Failed to update %s: %s", match.key, e)
                errors.append(f"Failed to update {match.key}: {e}")

        if updated:
            self.create_audit_entry(
                "leave-attendance-sync",
                {"studentId": student_id, "fromDate": from_date, "toDate": to_date, "keys": updated},
                approved_by if isinstance(approved_by, int) else None,
            )

        return SyncResult(
            success=not errors,
            message=f"Updated {len(updated)} attendance records",
            updated_records=len(updated),
            errors=errors,
        )

    def handle_attendance_overwrite(
        self,
        attendance_key: str,
        new_data: Dict[str, Any],
        options: AttendanceOverwriteOptions,
    ) -> SyncResult:
        try:
            existing = read_json(self._local, attendance_key)
        except ValueError:
            logger.warning("Existing attendance under %s is unreadable; treating as absent", attendance_key)
            existing = None

        if existing is not None and not options.confirmed:
            return SyncResult(success=False, message="Attendance already exists. Confirmation required to overwrite.")

        new_data = copy.deepcopy(new_data)
        if existing and options.preserve_manual_entries:
            incoming_ids = {s.get("id") for s in new_data.get("students") or []}
            kept = [s for s in existing.get("students") or [] if s.get("id") not in incoming_ids]
            new_data["students"] = kept + list(new_data.get("students") or [])

        try:
            if existing is not None and options.audit_trail:
                now = self._clock()
                backup_key = f"{attendance_key}_backup_{epoch_millis(now)}"
                write_json(self._local, backup_key, existing)
                new_data["metadata"] = {
                    **(new_data.get("metadata") or {}),
                    "previousVersion": backup_key,
                    "overwrittenAt": now.isoformat(),
                }
                self.create_audit_entry("attendance-overwrite", {"key": attendance_key, "backupKey": backup_key})

            write_json(self._local, attendance_key, new_data)
        except OSError as e:
            logger.error("Failed to update attendance %s: %s", attendance_key, e)
            return SyncResult(success=False, message=f"Failed to update attendance: {e}")

        return SyncResult(success=True, message="Attendance updated successfully")

    def check_leave_conflicts(
        self,
        date: str,
        course_type: str,
        year: Any,
        course_division: Optional[str],
        section: str,
        period: Any,
    ) -> LeaveConflictCheck:
        """Students on an active leave for ``date`` who are not marked on-leave."""
        key = self._validation.generate_attendance_key(
            AttendanceValidationParams(
                date=date,
                course_type=course_type,
                year=as_year(year),
                section=section,
                course_division=course_division,
                period=str(period) if period not in (None, "") else None,
            )
        )
        try:
            attendance = read_json(self._local, key)
            if not attendance:
                return LeaveConflictCheck(has_conflicts=False)
            leaves = list(self._api.list_leaves())
            on = parse_iso_date(date[:10])
        except (RemoteApiError, ValueError) as e:
            logger.warning("Leave conflict check failed for %s: %s", key, e)
            return LeaveConflictCheck(has_conflicts=False)

        conflicts = [
            s
            for s in attendance.get("students") or []
            if s.get("status") != AttendanceStatus.ON_LEAVE.value
            and any(leave_covers(l, s.get("id"), on) for l in leaves)
        ]
        return LeaveConflictCheck(has_conflicts=bool(conflicts), conflicts=conflicts)

    def update_notification_counts(self) -> Optional[int]:
        """Recount leaves that ended but are still active and notify listeners.

        Returns None when the leaves could not be fetched.
        """
        try:
            leaves = list(self._api.list_leaves())
        except RemoteApiError as e:
            logger.error("Failed to update notification counts: %s", e)
            return None

        today = self._clock().date()
        alert_count = 0
        for leave in leaves:
            if leave.get("status") != LeaveStatus.ACTIVE.value:
                continue
            try:
                ends = parse_iso_date(str(leave.get("toDate") or "")[:10])
            except ValueError:
                continue
            if ends < today:
                alert_count += 1

        self._events.publish(NOTIFICATION_UPDATE, alert_count=alert_count)
        return alert_count

    # ===== SECTIONS =====

    def validate_section_deletion(
        self,
        course_type: str,
        year: Any,
        course_division: Optional[str],
        section: str,
    ) -> SectionDeletionCheck:
        try:
            students = self._api.list_students()
        except RemoteApiError as e:
            logger.warning("Section deletion check failed: %s", e)
            return SectionDeletionCheck(can_delete=False, students_count=0, attendance_records=0)

        enrolled = [s for s in students if student_in_section(s, course_type, year, course_division, section)]
        prefix = section_attendance_prefix(course_type, year, course_division, section)
        return SectionDeletionCheck(
            can_delete=not enrolled,
            students_count=len(enrolled),
            attendance_records=len(keys_with_prefix(self._local, prefix)),
        )

    def archive_section_data(
        self,
        course_type: str,
        year: Any,
        course_division: Optional[str],
        section: str,
    ) -> SyncResult:
        """Snapshot enrolled students and cached attendance under one archive key."""
        try:
            students = self._api.list_students()
        except RemoteApiError as e:
            return SyncResult(success=False, message=f"Archive failed: {e}")

        now = self._clock()
        division = as_division(course_division)
        prefix = section_attendance_prefix(course_type, year, course_division, section)
        archive = {
            "sectionInfo": {
                "courseType": course_type,
                "year": as_year(year),
                "courseDivision": division,
                "section": section,
            },
            "archivedAt": now.isoformat(),
            "students": [s for s in students if student_in_section(s, course_type, year, course_division, section)],
            "attendanceRecords": [{"key": k, "data": d} for k, d in iter_json_with_prefix(self._local, prefix)],
        }

        archive_key = (
            f"{ARCHIVE_PREFIX}{course_type}_{as_year(year)}_{division or COMMON_DIVISION}_{section}_{epoch_millis(now)}"
        )
        try:
            write_json(self._local, archive_key, archive)
        except OSError as e:
            return SyncResult(success=False, message=f"Archive failed: {e}")

        self.create_audit_entry("section-archive", {"archiveKey": archive_key})
        return SyncResult(
            success=True,
            message=(
                f"Archived {len(archive['students'])} students and "
                f"{len(archive['attendanceRecords'])} attendance records"
            ),
        )

    def sync_student_data(self) -> None:
        """Tell dependent modules that student data changed."""
        stamp = epoch_millis(self._clock())
        self._events.publish(STUDENT_DATA_CHANGED, timestamp=stamp)
        self._local.set_item(STUDENT_DATA_LAST_SYNC_KEY, str(stamp))
        logger.info("Student data synchronized across all modules")

    # ===== LOCKS & AUDIT =====

    def with_lock(self, lock_key: str, operation: Callable[[], T]) -> T:
        """Run ``operation`` while holding an in-process lock on ``lock_key``.

        Not reentrant, not shared across processes or devices: it only stops
        double submissions inside this process.
        """
        with self._locks_guard:
            if lock_key in self._locks:
                raise OperationInProgressError(lock_key)
            self._locks.add(lock_key)
        try:
            return operation()
        finally:
            with self._locks_guard:
                self._locks.discard(lock_key)

    def is_locked(self, lock_key: str) -> bool:
        with self._locks_guard:
            return lock_key in self._locks

    def create_audit_entry(self, operation: str, details: Any, user_id: Optional[int] = None) -> str:
        return self._audit.record(operation, details, user_id)

    def audit_trail(self, limit: Optional[int] = None) -> List[AuditEntry]:
        return self._audit.entries(limit)
