"""Attendance sheets: the cached per-class, per-date, per-period document.

One sheet per attendance key holds one entry per student
(``students: [{"id", "status", ...}]``) plus free-form ``metadata``.
Flat API records (``studentId``, ``date``, ``status``, ...) are converted
to and from sheet entries here.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from ..common.keys import attendance_key
from ..common.validators import as_division, as_year

_SHEET_FIELDS = ("date", "courseType", "year", "courseDivision", "section", "period")


def key_for_record(record: Dict[str, Any]) -> str:
    return attendance_key(
        date=str(record["date"])[:10],
        course_type=record["courseType"],
        year=record["year"],
        course_division=record.get("courseDivision"),
        section=record["section"],
        period=record.get("period"),
    )


def new_sheet(
    *,
    date: str,
    course_type: str,
    year: Any,
    section: Optional[str],
    course_division: Optional[str] = None,
    period: Any = None,
) -> Dict[str, Any]:
    return {
        "date": date,
        "courseType": course_type,
        "year": as_year(year),
        "courseDivision": as_division(course_division),
        "section": section,
        "period": period,
        "students": [],
        "metadata": {},
    }


def sheet_for_record(record: Dict[str, Any]) -> Dict[str, Any]:
    return new_sheet(
        date=str(record["date"])[:10],
        course_type=record["courseType"],
        year=record["year"],
        section=record["section"],
        course_division=record.get("courseDivision"),
        period=record.get("period"),
    )


def find_entry_index(sheet: Dict[str, Any], student_id: Any) -> int:
    for i, entry in enumerate(sheet.get("students") or []):
        if entry.get("id") == student_id:
            return i
    return -1


def upsert_entry(sheet: Dict[str, Any], record: Dict[str, Any]) -> Dict[str, Any]:
    """Write one flat record into the sheet (at most one entry per student)."""
    entry = {"id": record["studentId"], "status": record["status"]}
    if record.get("remarks") is not None:
        entry["remarks"] = record["remarks"]

    students: List[Dict[str, Any]] = list(sheet.get("students") or [])
    idx = find_entry_index(sheet, record["studentId"])
    if idx >= 0:
        students[idx] = {**students[idx], **entry}
    else:
        students.append(entry)
    sheet["students"] = students
    return sheet


def replace_entries(sheet: Dict[str, Any], records: Iterable[Dict[str, Any]]) -> Dict[str, Any]:
    """Refresh a sheet from authoritative records, keeping its metadata."""
    sheet["students"] = []
    for record in records:
        upsert_entry(sheet, record)
    return sheet


def sheet_to_records(sheet: Dict[str, Any]) -> List[Dict[str, Any]]:
    base = {field: sheet.get(field) for field in _SHEET_FIELDS}
    records = []
    for entry in sheet.get("students") or []:
        record = {**base, "studentId": entry.get("id"), "status": entry.get("status")}
        if entry.get("remarks") is not None:
            record["remarks"] = entry["remarks"]
        records.append(record)
    return records
