from __future__ import annotations

from datetime import datetime

from src.madrasa_system.madrasa_system.core.exceptions import RemoteApiError

FIXED_NOW = datetime(2026, 3, 10, 9, 0, 0)


class FakeSchoolApi:
    """In-memory stand-in for the school REST API.

    ``failing`` holds method names that raise RemoteApiError; ``calls``
    records every call as (method, payload).
    """

    def __init__(self, *, students=None, leaves=None, holidays=None):
        self.students = list(students or [])
        self.attendance = []
        self.namaz = []
        self.leaves = list(leaves or [])
        self.holidays = list(holidays or [])
        self.failing = set()
        self.healthy = True
        self.calls = []
        self._next_id = 100

    def _call(self, name, payload=None):
        self.calls.append((name, payload))
        if name in self.failing:
            raise RemoteApiError(f"{name} failed", status_code=500)

    def calls_to(self, name):
        return [p for n, p in self.calls if n == name]

    def list_students(self, *, course_type=None, year=None, course_division=None, section=None):
        self._call("list_students")
        return [
            s
            for s in self.students
            if (course_type is None or s.get("courseType") == course_type)
            and (year is None or str(s.get("year")) == str(year))
            and (section is None or s.get("batch") == section)
        ]

    def create_student(self, student):
        self._call("create_student", student)
        saved = {**student, "id": student.get("id") or self._next_id}
        self._next_id += 1
        self.students.append(saved)
        return saved

    def delete_student(self, student_id):
        self._call("delete_student", student_id)
        self.students = [s for s in self.students if s.get("id") != student_id]

    def list_attendance(self, *, date, course_type, year, course_division=None, section=None, period=None):
        self._call("list_attendance")
        return [a for a in self.attendance if a.get("date") == date and a.get("courseType") == course_type]

    def create_attendance(self, record):
        self._call("create_attendance", record)
        self.attendance.append(record)
        return record

    def list_namaz_records(self, *, date, student_id=None):
        self._call("list_namaz_records")
        return [n for n in self.namaz if n.get("date") == date]

    def create_namaz_record(self, record):
        self._call("create_namaz_record", record)
        self.namaz.append(record)
        return record

    def list_leaves(self, *, student_id=None):
        self._call("list_leaves")
        return [l for l in self.leaves if student_id is None or l.get("studentId") == student_id]

    def create_leave(self, leave):
        self._call("create_leave", leave)
        self.leaves.append(leave)
        return leave

    def list_holidays(self):
        self._call("list_holidays")
        return list(self.holidays)

    def health(self):
        return self.healthy


def fixed_clock():
    return FIXED_NOW


def student(sid, *, roll=None, course_type="pu", year="1", division="science", batch="A", name=None):
    return {
        "id": sid,
        "name": name or f"Student {sid}",
        "rollNo": roll or f"R{sid}",
        "courseType": course_type,
        "year": year,
        "courseDivision": division,
        "batch": batch,
    }
