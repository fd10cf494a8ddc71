from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class SyncResult:
    success: bool
    message: str
    updated_records: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {"success": self.success, "message": self.message}
        if self.updated_records is not None:
            out["updatedRecords"] = self.updated_records
        if self.errors:
            out["errors"] = list(self.errors)
        return out


@dataclass(frozen=True)
class AttendanceOverwriteOptions:
    confirmed: bool = False
    preserve_manual_entries: bool = False
    audit_trail: bool = False

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AttendanceOverwriteOptions":
        return cls(
            confirmed=bool(raw.get("confirmed")),
            preserve_manual_entries=bool(raw.get("preserveManualEntries")),
            audit_trail=bool(raw.get("auditTrail")),
        )


@dataclass(frozen=True)
class LeaveConflictCheck:
    has_conflicts: bool
    conflicts: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"hasConflicts": self.has_conflicts, "conflicts": list(self.conflicts)}


@dataclass(frozen=True)
class SectionDeletionCheck:
    can_delete: bool
    students_count: int
    attendance_records: int

    def to_dict(self) -> dict:
        return {
            "canDelete": self.can_delete,
            "studentsCount": self.students_count,
            "attendanceRecords": self.attendance_records,
        }


@dataclass(frozen=True)
class AuditEntry:
    """Append-only trail of consistency operations."""

    operation: str
    details: Any
    timestamp: str
    user_id: int
    session_id: str
    seq: int = 0

    def to_dict(self) -> dict:
        return {
            "operation": self.operation,
            "details": self.details,
            "timestamp": self.timestamp,
            "userId": self.user_id,
            "sessionId": self.session_id,
            "seq": self.seq,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AuditEntry":
        return cls(
            operation=str(raw.get("operation") or ""),
            details=raw.get("details"),
            timestamp=str(raw.get("timestamp") or ""),
            user_id=int(raw.get("userId") or 0),
            session_id=str(raw.get("sessionId") or ""),
            seq=int(raw.get("seq") or 0),
        )
