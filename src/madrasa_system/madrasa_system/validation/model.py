from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ValidationResult:
    """Outcome of a check; expected failures are values, never exceptions."""

    valid: bool
    reason: Optional[str] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> "ValidationResult":
        return cls(valid=True, data=dict(data))

    @classmethod
    def fail(cls, reason: str, **data: Any) -> "ValidationResult":
        return cls(valid=False, reason=reason, data=dict(data))

    def to_dict(self) -> dict:
        out: Dict[str, Any] = {"valid": self.valid}
        if self.reason:
            out["reason"] = self.reason
        if self.errors:
            out["errors"] = list(self.errors)
        if self.warnings:
            out["warnings"] = list(self.warnings)
        if self.data:
            out["data"] = self.data
        return out


@dataclass(frozen=True)
class AttendanceValidationParams:
    date: str
    course_type: str
    year: str
    section: str
    course_division: Optional[str] = None
    period: Optional[str] = None
    students: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "AttendanceValidationParams":
        """Build from the camelCase payload the UI posts."""
        period = raw.get("period")
        return cls(
            date=str(raw.get("date") or ""),
            course_type=str(raw.get("courseType") or ""),
            year=str(raw.get("year") or ""),
            section=str(raw.get("section") or ""),
            course_division=raw.get("courseDivision") or None,
            period=str(period) if period not in (None, "") else None,
            students=list(raw.get("students") or []),
        )


@dataclass(frozen=True)
class AttendanceMatch:
    """A cached attendance sheet that contains a given student."""

    key: str
    date: str
    student: Dict[str, Any]
    data: Dict[str, Any]

    def to_dict(self) -> dict:
        return {"key": self.key, "date": self.date, "student": self.student, "data": self.data}
