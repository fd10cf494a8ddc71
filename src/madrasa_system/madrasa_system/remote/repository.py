from __future__ import annotations

from typing import Any, Dict, Optional, Protocol, Sequence


class SchoolApi(Protocol):
    """The school REST API (``/api/...``) seen from the offline-first client.

    Records are camelCase JSON dicts, exactly as the API sends them.
    Implementations raise ``RemoteApiError`` for non-2xx answers and for
    transport failures.
    """

    # Students
    def list_students(
        self,
        *,
        course_type: Optional[str] = None,
        year: Optional[str] = None,
        course_division: Optional[str] = None,
        section: Optional[str] = None,
    ) -> Sequence[Dict[str, Any]]:
        raise NotImplementedError

    def create_student(self, student: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    def delete_student(self, student_id: Any) -> None:
        raise NotImplementedError

    # Attendance
    def list_attendance(
        self,
        *,
        date: str,
        course_type: str,
        year: str,
        course_division: Optional[str] = None,
        section: Optional[str] = None,
        period: Optional[Any] = None,
    ) -> Sequence[Dict[str, Any]]:
        raise NotImplementedError

    def create_attendance(self, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    # Namaz attendance
    def list_namaz_records(self, *, date: str, student_id: Optional[Any] = None) -> Sequence[Dict[str, Any]]:
        raise NotImplementedError

    def create_namaz_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    # Leaves
    def list_leaves(self, *, student_id: Optional[Any] = None) -> Sequence[Dict[str, Any]]:
        raise NotImplementedError

    def create_leave(self, leave: Dict[str, Any]) -> Dict[str, Any]:
        raise NotImplementedError

    # Holidays
    def list_holidays(self) -> Sequence[Dict[str, Any]]:
        """Non-deleted holidays only."""

        raise NotImplementedError

    def health(self) -> bool:
        raise NotImplementedError
