from __future__ import annotations

import pytest

from src.madrasa_system.madrasa_system.attendance.service import AttendanceService
from src.madrasa_system.madrasa_system.common.events import EventBus
from src.madrasa_system.madrasa_system.connectivity.monitor import ConnectivityMonitor
from src.madrasa_system.madrasa_system.container import Container
from src.madrasa_system.madrasa_system.hybrid.scheduler import SyncScheduler
from src.madrasa_system.madrasa_system.hybrid.service import HybridStorage
from src.madrasa_system.madrasa_system.main import create_app
from src.madrasa_system.madrasa_system.storage.memory_store import MemoryStore
from src.madrasa_system.madrasa_system.sync.audit import AuditTrail
from src.madrasa_system.madrasa_system.sync.service import SyncService
from src.madrasa_system.madrasa_system.validation.service import ValidationService
from tests.support import FakeSchoolApi, fixed_clock, student

CLASS = {
    "date": "2026-03-05",
    "courseType": "pu",
    "year": "1",
    "courseDivision": "science",
    "section": "A",
    "period": "1",
}


def _container(api):
    local = MemoryStore()
    session_store = MemoryStore()
    events = EventBus()
    connectivity = ConnectivityMonitor(online=True, health_check=api.health)
    hybrid = HybridStorage(api, local, connectivity, clock=fixed_clock)
    validation = ValidationService(api, local, clock=fixed_clock)
    sync = SyncService(
        validation,
        local,
        api,
        audit=AuditTrail(local, session_store, clock=fixed_clock),
        events=events,
        clock=fixed_clock,
    )
    return Container(
        api=api,
        local_store=local,
        session_store=session_store,
        connectivity=connectivity,
        events=events,
        hybrid_storage=hybrid,
        validation_service=validation,
        sync_service=sync,
        attendance_service=AttendanceService(validation, sync, hybrid),
        scheduler=SyncScheduler(hybrid.sync_with_database, connectivity, interval_seconds=30),
    )


@pytest.fixture
def api():
    return FakeSchoolApi(students=[student(1), student(2)])


@pytest.fixture
def client(monkeypatch, api):
    monkeypatch.setenv("APP_ENV", "testing")
    app = create_app(_container(api))
    return app.test_client()


def test_validate_endpoint_reports_holiday(client, api):
    api.holidays.append({"date": "2026-03-05", "name": "Ashura", "type": "regular"})

    resp = client.post("/api/attendance/validate", json={**CLASS, "students": [student(1)]})

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["success"] is False
    assert "Cannot mark attendance on Ashura (regular)" in body["result"]["errors"]


def test_mark_attendance_endpoint(client, api):
    payload = {**CLASS, "students": [student(1), student(2)], "statuses": {"1": "present", "2": "absent"}}

    resp = client.post("/api/attendance", json=payload)
    assert resp.status_code == 201
    assert resp.get_json()["result"]["saved"] == 2

    again = client.post("/api/attendance", json=payload)
    assert again.status_code == 400
    assert "Confirmation required" in again.get_json()["message"]


def test_mark_attendance_on_holiday_is_400(client, api):
    api.holidays.append({"date": "2026-03-05", "name": "Eid", "type": "academic"})
    payload = {**CLASS, "students": [student(1)], "statuses": {"1": "present"}}

    resp = client.post("/api/attendance", json=payload)

    assert resp.status_code == 400
    assert resp.get_json()["success"] is False
    assert api.calls_to("create_attendance") == []


def test_offline_then_reconnect_flushes_queue(client, api):
    assert client.post("/api/sync/connectivity", json={"online": False}).status_code == 200
    client.post("/api/attendance", json={**CLASS, "students": [student(1)], "statuses": {"1": "present"}})

    status = client.get("/api/sync/status").get_json()["status"]
    assert status["isOnline"] is False
    assert status["queueSize"] == 1
    assert status["pending"][0]["action"] == "saveAttendance"

    forced = client.post("/api/sync/force").get_json()
    assert forced["success"] is False

    client.post("/api/sync/connectivity", json={"online": True})
    assert client.get("/api/sync/status").get_json()["status"]["queueSize"] == 0
    assert len(api.calls_to("create_attendance")) == 1


def test_connectivity_requires_a_state(client):
    assert client.post("/api/sync/connectivity", json={}).status_code == 400


def test_connectivity_health_check(client, api):
    api.healthy = False
    body = client.post("/api/sync/connectivity", json={"healthCheck": True}).get_json()
    assert body["status"]["isOnline"] is False


def test_students_crud(client, api):
    created = client.post(
        "/api/students",
        json={"name": "Yusuf", "rollNo": "R9", "courseType": "pu", "year": "1", "courseDivision": "science", "batch": "A"},
    )
    assert created.status_code == 201

    listed = client.get("/api/students?courseType=pu&year=1&courseDivision=science&section=A").get_json()
    assert "Yusuf" in [s["name"] for s in listed["students"]]

    assert client.delete("/api/students/1?courseType=pu&year=1&courseDivision=science&section=A").status_code == 200
    assert api.calls_to("delete_student") == [1]

    assert client.post("/api/students", json={"courseType": "pu"}).status_code == 400
    assert client.get("/api/students").status_code == 400


def test_leave_creation_backfills_attendance(client, api):
    client.post("/api/attendance", json={**CLASS, "students": [student(1)], "statuses": {"1": "absent"}})

    resp = client.post(
        "/api/leaves",
        json={"studentId": 1, "fromDate": "2026-03-04", "toDate": "2026-03-06", "reason": "Fever", "approvedBy": 3},
    )

    assert resp.status_code == 201
    body = resp.get_json()
    assert body["sync"]["updatedRecords"] == 1
    assert body["warnings"]

    records = client.get("/api/attendance?date=2026-03-05&courseType=pu&year=1&courseDivision=science&section=A&period=1")
    assert records.status_code == 200

    audit = client.get("/api/audit").get_json()["entries"]
    assert audit[0]["operation"] == "leave-attendance-sync"


def test_leave_creation_validates_dates(client):
    resp = client.post("/api/leaves", json={"studentId": 1, "fromDate": "2026-03-06", "toDate": "2026-03-04", "reason": "x"})
    assert resp.status_code == 400
    assert client.post("/api/leaves", json={"studentId": 1, "fromDate": "2026-03-06"}).status_code == 400


def test_overwrite_endpoint(client):
    key = "attendance_pu_1_science_A_2026-03-05_1"
    first = client.post("/api/attendance/overwrite", json={"key": key, "data": {"students": [{"id": 1, "status": "present"}]}})
    assert first.status_code == 200

    refused = client.post("/api/attendance/overwrite", json={"key": key, "data": {"students": []}})
    assert refused.status_code == 409

    accepted = client.post(
        "/api/attendance/overwrite",
        json={"key": key, "data": {"students": []}, "confirmed": True, "auditTrail": True},
    )
    assert accepted.get_json()["success"] is True


def test_leave_conflicts_endpoint(client, api):
    client.post("/api/attendance", json={**CLASS, "students": [student(1)], "statuses": {"1": "present"}})
    api.leaves.append({"studentId": 1, "fromDate": "2026-03-05", "toDate": "2026-03-05", "status": "active"})

    body = client.get(
        "/api/attendance/leave-conflicts?date=2026-03-05&courseType=pu&year=1&courseDivision=science&section=A&period=1"
    ).get_json()

    assert body["hasConflicts"] is True
    assert [c["id"] for c in body["conflicts"]] == [1]


def test_section_endpoints(client):
    check = client.post(
        "/api/sections/validate-deletion",
        json={"courseType": "pu", "year": "1", "courseDivision": "science", "section": "A"},
    ).get_json()
    assert check["canDelete"] is False
    assert check["studentsCount"] == 2
    assert check["message"] == "Cannot delete section with 2 enrolled students"

    archived = client.post(
        "/api/sections/archive",
        json={"courseType": "pu", "year": "1", "courseDivision": "science", "section": "A"},
    )
    assert archived.status_code == 200
    assert archived.get_json()["message"] == "Archived 2 students and 0 attendance records"


def test_namaz_endpoint(client, api):
    resp = client.post(
        "/api/namaz-attendance",
        json={"date": "2026-03-05", "prayer": "fajr", "records": [{"studentId": 1, "fajr": "present"}]},
    )
    assert resp.status_code == 201
    assert api.calls_to("create_namaz_record")[0]["date"] == "2026-03-05"

    bad = client.post("/api/namaz-attendance", json={"date": "2026-03-05", "prayer": "witr", "records": []})
    assert bad.status_code == 400


def test_clear_local_data(client):
    client.post("/api/attendance", json={**CLASS, "students": [student(1)], "statuses": {"1": "present"}})
    body = client.delete("/api/sync/local-data").get_json()
    assert body["removed"] >= 1
