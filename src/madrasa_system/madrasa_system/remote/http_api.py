from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

import requests

from ..core.constants import DEFAULT_API_TIMEOUT_SECONDS
from ..core.exceptions import RemoteApiError
from .repository import SchoolApi

logger = logging.getLogger(__name__)


def _clean_params(params: Dict[str, Any]) -> Dict[str, str]:
    return {k: str(v) for k, v in params.items() if v not in (None, "")}


class HttpSchoolApi(SchoolApi):
    """SchoolApi over HTTP.

    A single ``requests.Session`` keeps the login cookie between calls, which
    is what ``credentials: include`` gives the browser client.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_API_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
        health_path: str = "/api/health",
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = float(timeout)
        self._session = session or requests.Session()
        self._health_path = health_path

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None,
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            resp = self._session.request(
                method,
                url,
                params=_clean_params(params or {}),
                json=payload,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise RemoteApiError(f"{method} {path} failed: {e}") from e

        if not resp.ok:
            raise RemoteApiError(f"{method} {path} returned HTTP {resp.status_code}", status_code=resp.status_code)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RemoteApiError(f"{method} {path} returned invalid JSON", status_code=resp.status_code) from e

    def list_students(
        self,
        *,
        course_type: Optional[str] = None,
        year: Optional[str] = None,
        course_division: Optional[str] = None,
        section: Optional[str] = None,
    ) -> Sequence[Dict[str, Any]]:
        params = {"courseType": course_type, "year": year, "courseDivision": course_division, "section": section}
        return self._request("GET", "/api/students", params=params) or []

    def create_student(self, student: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/students", payload=student) or {}

    def delete_student(self, student_id: Any) -> None:
        self._request("DELETE", f"/api/students/{student_id}")

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
        params = {
            "date": date,
            "courseType": course_type,
            "year": year,
            "courseDivision": course_division,
            "section": section,
            "period": period,
        }
        return self._request("GET", "/api/attendance", params=params) or []

    def create_attendance(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/attendance", payload=record) or {}

    def list_namaz_records(self, *, date: str, student_id: Optional[Any] = None) -> Sequence[Dict[str, Any]]:
        params = {"date": date, "studentId": student_id}
        return self._request("GET", "/api/namaz-attendance", params=params) or []

    def create_namaz_record(self, record: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/namaz-attendance", payload=record) or {}

    def list_leaves(self, *, student_id: Optional[Any] = None) -> Sequence[Dict[str, Any]]:
        return self._request("GET", "/api/leaves", params={"studentId": student_id}) or []

    def create_leave(self, leave: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/leaves", payload=leave) or {}

    def list_holidays(self) -> Sequence[Dict[str, Any]]:
        return self._request("GET", "/api/holidays", params={"isDeleted": "false"}) or []

    def health(self) -> bool:
        try:
            self._request("GET", self._health_path)
        except RemoteApiError as e:
            logger.info("Health check failed: %s", e)
            return False
        return True
