from __future__ import annotations

from src.madrasa_system.madrasa_system.connectivity.monitor import ConnectivityMonitor
from src.madrasa_system.madrasa_system.core.enums import SyncAction
from src.madrasa_system.madrasa_system.hybrid.service import HybridStorage
from src.madrasa_system.madrasa_system.storage.kv_base import read_json
from src.madrasa_system.madrasa_system.storage.memory_store import MemoryStore
from tests.support import FakeSchoolApi, fixed_clock, student


def _storage(api=None, local=None, online=True):
    api = api or FakeSchoolApi()
    local = local if local is not None else MemoryStore()
    monitor = ConnectivityMonitor(online=online)
    return HybridStorage(api, local, monitor, clock=fixed_clock), api, local, monitor


def _record(sid, status="present", **overrides):
    record = {
        "studentId": sid,
        "date": "2026-03-05",
        "courseType": "pu",
        "year": "1",
        "courseDivision": "science",
        "section": "A",
        "period": "1",
        "status": status,
    }
    record.update(overrides)
    return record


def test_offline_write_is_sent_once_when_back_online():
    storage, api, local, monitor = _storage(online=False)

    assert storage.save_attendance(_record(1)) is True
    assert api.calls_to("create_attendance") == []
    assert storage.get_status().queue_size == 1

    monitor.set_online(True)

    assert len(api.calls_to("create_attendance")) == 1
    assert storage.get_status().queue_size == 0
    assert read_json(local, "syncQueue") == []

    # A second flush has nothing left to send.
    assert storage.sync_with_database().skipped is True
    assert len(api.calls_to("create_attendance")) == 1


def test_queue_keeps_exactly_the_failed_items():
    storage, api, _, monitor = _storage(online=False)
    storage.save_student(student(None, roll="R1"))
    storage.save_attendance(_record(1))
    storage.save_namaz_record({"studentId": 1, "date": "2026-03-05", "fajr": "present"})
    api.failing.add("create_attendance")

    monitor.set_online(True)

    pending = storage.pending_items()
    assert [i.action for i in pending] == [SyncAction.SAVE_ATTENDANCE]
    assert pending[0].data["studentId"] == 1
    assert len(api.calls_to("create_student")) == 1
    assert len(api.calls_to("create_namaz_record")) == 1

    api.failing.clear()
    report = storage.force_sync()
    assert (report.attempted, report.succeeded, report.failed) == (1, 1, 0)
    assert storage.pending_items() == []


def test_failed_remote_write_is_queued_while_online():
    storage, api, _, _ = _storage()
    api.failing.add("create_leave")

    assert storage.save_leave({"studentId": 1, "fromDate": "2026-03-01", "toDate": "2026-03-02", "reason": "x"})

    assert [i.action for i in storage.pending_items()] == [SyncAction.SAVE_LEAVE]


def test_queue_survives_restart():
    local = MemoryStore()
    storage, _, _, _ = _storage(local=local, online=False)
    storage.save_attendance(_record(1))
    storage.save_attendance(_record(2))

    reopened, _, _, _ = _storage(local=local, online=False)

    assert reopened.get_status().queue_size == 2
    assert [i.data["studentId"] for i in reopened.pending_items()] == [1, 2]


def test_offline_attendance_lands_in_one_sheet():
    storage, _, local, _ = _storage(online=False)
    storage.save_attendance(_record(1, "present"))
    storage.save_attendance(_record(2, "absent"))
    storage.save_attendance(_record(1, "absent"))

    sheet = read_json(local, "attendance_pu_1_science_A_2026-03-05_1")
    assert sheet["students"] == [{"id": 1, "status": "absent"}, {"id": 2, "status": "absent"}]
    assert sheet["metadata"]["markedAt"] == fixed_clock().isoformat()

    records = storage.get_attendance("2026-03-05", "pu", "1", "science", "A", "1")
    assert [(r["studentId"], r["status"]) for r in records] == [(1, "absent"), (2, "absent")]


def test_saved_student_adopts_server_id_without_duplicates():
    storage, api, local, monitor = _storage(online=False)
    storage.save_student(student(None, roll="R7", name="Aisha"))

    monitor.set_online(True)

    cached = read_json(local, "pu_1_science_A")
    assert len(cached) == 1
    assert cached[0]["id"] == 100
    assert cached[0]["name"] == "Aisha"


def test_reads_fall_back_to_local_copy():
    api = FakeSchoolApi(students=[student(1), student(2)])
    storage, api, _, monitor = _storage(api=api)

    assert [s["id"] for s in storage.get_students("pu", "1", "science", "A")] == [1, 2]

    api.failing.add("list_students")
    assert [s["id"] for s in storage.get_students("pu", "1", "science", "A")] == [1, 2]

    monitor.set_online(False)
    api.students = []
    assert [s["id"] for s in storage.get_students("pu", 1, "science", "A")] == [1, 2]


def test_delete_student_removes_local_copy_and_queues_offline():
    storage, api, local, _ = _storage(online=False)
    storage.save_student(student(5))

    storage.delete_student(5, "pu", "1", "science", "A")

    assert read_json(local, "pu_1_science_A") == []
    assert [i.action for i in storage.pending_items()] == [SyncAction.SAVE_STUDENT, SyncAction.DELETE_STUDENT]


def test_leaves_and_namaz_are_readable_offline():
    storage, _, _, _ = _storage(online=False)
    storage.save_leave({"studentId": 1, "fromDate": "2026-03-01", "toDate": "2026-03-02", "reason": "x"})
    storage.save_leave({"studentId": 2, "fromDate": "2026-03-01", "toDate": "2026-03-02", "reason": "y"})
    storage.save_namaz_record({"studentId": 1, "date": "2026-03-05", "fajr": "present"})
    storage.save_namaz_record({"studentId": 2, "date": "2026-03-05", "fajr": "absent"})

    leaves = storage.get_leaves(2)
    assert [l["reason"] for l in leaves] == ["y"]
    assert leaves[0]["id"] is not None
    assert len(storage.get_namaz_records("2026-03-05")) == 2
    assert storage.get_namaz_records("2026-03-05", 1)[0]["fajr"] == "present"


def test_leave_payload_carries_creator():
    storage, api, _, _ = _storage()
    storage.save_leave({"studentId": 1, "fromDate": "2026-03-01", "toDate": "2026-03-02", "reason": "x"})

    sent = api.calls_to("create_leave")[0]
    assert sent["createdBy"] == "teacher"
    assert sent["createdAt"] == fixed_clock().isoformat()


def test_sync_is_skipped_while_offline():
    storage, api, _, _ = _storage(online=False)
    storage.save_attendance(_record(1))

    assert storage.sync_with_database().skipped is True
    assert storage.force_sync().skipped is True
    assert api.calls_to("create_attendance") == []


def test_clear_local_data():
    storage, _, local, _ = _storage(online=False)
    storage.save_student(student(1))
    storage.save_attendance(_record(1))
    storage.save_namaz_record({"studentId": 1, "date": "2026-03-05", "fajr": "present"})
    local.set_item("audit_1_abc", "{}")

    removed = storage.clear_local_data()

    assert removed == 4
    assert local.keys() == ["audit_1_abc"]
    assert storage.get_status().queue_size == 0


def test_unexpected_replay_error_keeps_the_item_queued():
    storage, api, local, monitor = _storage(online=False)
    storage.save_attendance(_record(1))
    storage.save_namaz_record({"studentId": 1, "date": "2026-03-05", "fajr": "present"})

    def broken(record):
        raise KeyError("studentId")

    api.create_attendance = broken
    monitor.set_online(True)

    assert [i.action for i in storage.pending_items()] == [SyncAction.SAVE_ATTENDANCE]
    assert [i["action"] for i in read_json(local, "syncQueue")] == ["saveAttendance"]
    assert len(api.calls_to("create_namaz_record")) == 1


def test_unexpected_api_body_does_not_lose_queued_writes():
    storage, api, local, monitor = _storage(online=False)
    storage.save_student(student(None, roll="R3"))
    storage.save_attendance(_record(1))

    def list_body(payload):
        api.calls.append(("create_student", payload))
        return [payload]

    api.create_student = list_body
    monitor.set_online(True)

    assert len(api.calls_to("create_student")) == 1
    assert len(api.calls_to("create_attendance")) == 1
    assert storage.pending_items() == []
    assert read_json(local, "pu_1_science_A")[0]["rollNo"] == "R3"


def test_attendance_cache_keeps_every_period():
    api = FakeSchoolApi()
    api.attendance = [_record(1, "present", period="1"), _record(1, "absent", period="2"), _record(2, "present", period="2")]
    storage, api, local, monitor = _storage(api=api)

    online = storage.get_attendance("2026-03-05", "pu", "1", "science", "A")
    assert len(online) == 3

    monitor.set_online(False)
    offline = storage.get_attendance("2026-03-05", "pu", "1", "science", "A")
    assert sorted((r["studentId"], r["period"], r["status"]) for r in offline) == [
        (1, "1", "present"),
        (1, "2", "absent"),
        (2, "2", "present"),
    ]
    assert len(storage.get_attendance("2026-03-05", "pu", "1", "science", None)) == 3
    assert [r["status"] for r in storage.get_attendance("2026-03-05", "pu", "1", "science", "A", "2")] == [
        "absent",
        "present",
    ]
    assert local.get_item("attendance_pu_1_science_A_2026-03-05_general") is None


def test_attendance_cache_uses_record_date_not_timestamp():
    api = FakeSchoolApi()
    api.attendance = [_record(1, date="2026-03-05T00:00:00.000Z")]
    api.list_attendance = lambda **kwargs: list(api.attendance)
    storage, _, local, monitor = _storage(api=api)

    storage.get_attendance("2026-03-05", "pu", "1", "science", "A", "1")

    assert read_json(local, "attendance_pu_1_science_A_2026-03-05_1")["students"] == [{"id": 1, "status": "present"}]


def test_deleting_unsynced_student_drops_its_pending_save():
    storage, api, local, monitor = _storage(online=False)
    storage.save_student(student(None, roll="R5"))
    storage.save_student(student(None, roll="R6"))

    assert storage.delete_student(None, "pu", "1", "science", "A", roll_no="R5") is True

    assert [s["rollNo"] for s in read_json(local, "pu_1_science_A")] == ["R6"]
    assert [i.data["rollNo"] for i in storage.pending_items()] == ["R6"]

    monitor.set_online(True)
    assert api.calls_to("delete_student") == []
    assert [p["rollNo"] for p in api.calls_to("create_student")] == ["R6"]


def test_delete_needs_an_id_or_roll_number():
    storage, _, _, _ = _storage(online=False)
    assert storage.delete_student(None, "pu", "1", "science", "A") is False
    assert storage.pending_items() == []
