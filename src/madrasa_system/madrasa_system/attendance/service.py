from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from ..core.enums import AttendanceStatus
from ..core.exceptions import ValidationError
from ..hybrid.service import HybridStorage
from ..sync.service import SyncService
from ..validation.model import AttendanceValidationParams
from ..validation.service import ValidationService
from .model import MarkingOutcome

logger = logging.getLogger(__name__)

_STATUSES = {s.value for s in AttendanceStatus}


class AttendanceService:
    """Use case: mark attendance for one class, date and period.

    Flow: pre-checks (holiday/date/class) -> overwrite confirmation ->
    per-sheet lock -> one hybrid write per student. Students on an active
    leave are auto-marked on-leave whatever status was submitted.
    """

    def __init__(self, validation: ValidationService, sync: SyncService, storage: HybridStorage):
        self._validation = validation
        self._sync = sync
        self._storage = storage

    def mark_attendance(
        self,
        params: AttendanceValidationParams,
        statuses: Mapping[Any, str],
        *,
        marked_by: Optional[Any] = None,
        confirmed: bool = False,
    ) -> MarkingOutcome:
        check = self._validation.pre_attendance_checks(params)
        if not check.valid:
            raise ValidationError("; ".join(check.errors) or check.reason or "Attendance validation failed")

        existing = check.data.get("existingAttendance") or {}
        if existing.get("exists") and not confirmed:
            raise ValidationError("Attendance already exists. Confirmation required to overwrite.")

        on_leave_ids = {
            str(s.get("id"))
            for s in (check.data.get("leaveIntegration") or {}).get("studentsWithLeaves", [])
            if s.get("shouldAutoMark")
        }
        records = self._build_records(params, statuses, on_leave_ids, marked_by)
        key = self._validation.generate_attendance_key(params)

        def _write() -> int:
            for record in records:
                self._storage.save_attendance(record)
            return len(records)

        saved = self._sync.with_lock(key, _write)
        logger.info("Marked %d students under %s (%d on leave)", saved, key, len(on_leave_ids))

        return MarkingOutcome(
            key=key,
            saved=saved,
            auto_on_leave=[r["studentId"] for r in records if str(r["studentId"]) in on_leave_ids],
            warnings=list(check.warnings),
            overwritten=bool(existing.get("exists")),
        )

    @staticmethod
    def _build_records(
        params: AttendanceValidationParams,
        statuses: Mapping[Any, str],
        on_leave_ids: set,
        marked_by: Optional[Any],
    ) -> List[Dict[str, Any]]:
        by_id = {str(k): v for k, v in statuses.items()}
        records = []
        for student in params.students:
            sid = student.get("id")
            if str(sid) in on_leave_ids:
                status = AttendanceStatus.ON_LEAVE.value
            else:
                status = by_id.get(str(sid))
                if not status:
                    raise ValidationError(f"Missing attendance status for student {sid}")
                if status not in _STATUSES:
                    raise ValidationError(f"Invalid attendance status: {status}")

            record = {
                "studentId": sid,
                "date": params.date,
                "courseType": params.course_type,
                "year": params.year,
                "courseDivision": params.course_division,
                "section": params.section,
                "period": params.period,
                "status": status,
            }
            if marked_by is not None:
                record["markedBy"] = marked_by
            records.append(record)
        return records
