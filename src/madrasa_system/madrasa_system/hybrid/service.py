from __future__ import annotations

import logging
import threading
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from ..attendance import sheet as sheets
from ..common.datetime_utils import epoch_millis, now_local
from ..common.keys import attendance_key, class_attendance_prefix, namaz_key, section_attendance_prefix, section_key
from ..common.validators import as_year
from ..connectivity.monitor import ConnectivityMonitor
from ..core.constants import ATTENDANCE_PREFIX, BACKUP_MARKER, LEAVE_CREATED_BY, LEAVES_KEY, NAMAZ_PREFIX, SYNC_QUEUE_KEY
from ..core.enums import CourseType, SyncAction
from ..core.exceptions import RemoteApiError
from ..remote.repository import SchoolApi
from ..storage.kv_base import iter_json_with_prefix, keys_with_prefix, read_json, write_json
from ..storage.repository import KeyValueStore
from .model import StorageStatus, SyncReport
from .queue import SyncQueue, SyncQueueItem

logger = logging.getLogger(__name__)

_LOCAL_DATA_PREFIXES = (f"{CourseType.PU.value}_", f"{CourseType.POST_PU.value}_", ATTENDANCE_PREFIX, NAMAZ_PREFIX)


def _same_student(a: Dict[str, Any], b: Dict[str, Any]) -> bool:
    # Records saved offline have no id yet; fall back to the roll number.
    if a.get("id") is not None and b.get("id") is not None:
        return a["id"] == b["id"]
    if a.get("id") is None and b.get("id") is None:
        return a.get("rollNo") is not None and a.get("rollNo") == b.get("rollNo")
    return False


class HybridStorage:
    """Database-primary storage with a local offline mirror.

    Every write lands in the local store first and is then attempted against
    the API when online; failures go to the durable sync queue. Reads go to
    the API when online (refreshing the local copy) and fall back to the
    local copy otherwise. A fallback read can be stale; nothing signals it.
    """

    def __init__(
        self,
        api: SchoolApi,
        local: KeyValueStore,
        connectivity: ConnectivityMonitor,
        *,
        clock: Callable[[], datetime] = now_local,
    ):
        self._api = api
        self._local = local
        self._connectivity = connectivity
        self._clock = clock
        self._queue = SyncQueue(local, key=SYNC_QUEUE_KEY)
        self._sync_guard = threading.Lock()
        self._last_sync_time: Optional[datetime] = None

        loaded = self._queue.load()
        if loaded:
            logger.info("Loaded %d pending sync item(s)", loaded)

        connectivity.add_listener(self._on_connectivity_change)

    @property
    def is_online(self) -> bool:
        return self._connectivity.is_online

    def _on_connectivity_change(self, online: bool) -> None:
        if online:
            self.sync_with_database()

    def _enqueue(self, action: SyncAction, data: Dict[str, Any]) -> None:
        self._queue.append(SyncQueueItem(action=action, data=dict(data), timestamp=epoch_millis(self._clock())))
        logger.info("Queued %s for later sync (queue size: %d)", action.value, len(self._queue))

    def _write_through(self, action: SyncAction, data: Dict[str, Any], remote_call: Callable[[], Any]) -> Any:
        """Try the remote write; queue it when offline or when it fails.

        Returns the API response, or None when the write was queued.
        """
        if not self.is_online:
            self._enqueue(action, data)
            return None
        try:
            return remote_call()
        except RemoteApiError as e:
            logger.warning("%s failed remotely, will retry: %s", action.value, e)
            self._enqueue(action, data)
            return None

    # ===== STUDENTS =====

    def save_student(self, student: Dict[str, Any]) -> bool:
        student = dict(student)
        self._save_student_to_local(student)

        saved = self._write_through(SyncAction.SAVE_STUDENT, student, lambda: self._api.create_student(student))
        if saved is None:
            logger.info("Student saved locally (offline mode)")
            return True

        self._adopt_student_id(student, saved)
        logger.info("Student saved to database and local store")
        return True

    def get_students(
        self,
        course_type: str,
        year: Any,
        course_division: Optional[str] = None,
        section: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        key = section_key(course_type, year, course_division, section)
        if self.is_online:
            try:
                students = list(
                    self._api.list_students(
                        course_type=course_type,
                        year=str(year),
                        course_division=course_division,
                        section=section,
                    )
                )
            except RemoteApiError as e:
                logger.warning("Fetching students failed, using local copy: %s", e)
            else:
                write_json(self._local, key, students)
                return students
        return read_json(self._local, key, default=[]) or []

    def delete_student(
        self,
        student_id: Any,
        course_type: str,
        year: Any,
        course_division: Optional[str] = None,
        section: Optional[str] = None,
        *,
        roll_no: Optional[str] = None,
    ) -> bool:
        """Delete locally, then remotely (or queue the remote delete).

        A student created offline has no server id yet: it is matched by
        ``roll_no`` and its pending save is dropped instead of queueing a
        delete the API could never resolve.
        """
        target = {"id": student_id, "rollNo": roll_no}
        if student_id is None and roll_no is None:
            logger.warning("Cannot delete a student without id or roll number")
            return False

        key = section_key(course_type, year, course_division, section)
        existing = read_json(self._local, key, default=[]) or []
        write_json(self._local, key, [s for s in existing if not _same_student(s, target)])

        if student_id is None:
            dropped = self._queue.remove_where(
                lambda item: item.action == SyncAction.SAVE_STUDENT and _same_student(item.data, target)
            )
            logger.info("Dropped %d unsynced save(s) of student %s", dropped, roll_no)
            return True

        data = {
            "studentId": student_id,
            "courseType": course_type,
            "year": str(year),
            "courseDivision": course_division,
            "section": section,
        }
        self._write_through(SyncAction.DELETE_STUDENT, data, lambda: self._api.delete_student(student_id))
        return True

    def _save_student_to_local(self, student: Dict[str, Any]) -> None:
        key = section_key(student["courseType"], student["year"], student.get("courseDivision"), student.get("batch"))
        existing: List[Dict[str, Any]] = read_json(self._local, key, default=[]) or []
        for i, s in enumerate(existing):
            if _same_student(s, student):
                existing[i] = student
                break
        else:
            existing.append(student)
        write_json(self._local, key, existing)

    def _adopt_student_id(self, student: Dict[str, Any], saved: Dict[str, Any]) -> None:
        if not isinstance(saved, dict) or saved.get("id") is None or saved["id"] == student.get("id"):
            return
        key = section_key(student["courseType"], student["year"], student.get("courseDivision"), student.get("batch"))
        existing: List[Dict[str, Any]] = read_json(self._local, key, default=[]) or []
        updated = {**student, "id": saved["id"]}
        replaced = False
        for i, s in enumerate(existing):
            if _same_student(s, student):
                existing[i] = updated
                replaced = True
                break
        if not replaced:
            existing.append(updated)
        write_json(self._local, key, existing)
        student["id"] = saved["id"]

    # ===== ATTENDANCE =====

    def save_attendance(self, record: Dict[str, Any]) -> bool:
        record = dict(record)
        self._save_attendance_to_local(record)

        saved = self._write_through(SyncAction.SAVE_ATTENDANCE, record, lambda: self._api.create_attendance(record))
        if saved is None:
            logger.info("Attendance saved locally (offline mode)")
        else:
            logger.info("Attendance saved to database and local store")
        return True

    def get_attendance(
        self,
        date: str,
        course_type: str,
        year: Any,
        course_division: Optional[str] = None,
        section: Optional[str] = None,
        period: Any = None,
    ) -> List[Dict[str, Any]]:
        """Read-through attendance for one class and date.

        ``section`` and ``period`` narrow the query when given. The cache is
        refreshed sheet by sheet, keyed by each record's own section and period.
        """
        if self.is_online:
            try:
                records = list(
                    self._api.list_attendance(
                        date=date,
                        course_type=course_type,
                        year=str(year),
                        course_division=course_division,
                        section=section,
                        period=period,
                    )
                )
            except RemoteApiError as e:
                logger.warning("Fetching attendance failed, using local copy: %s", e)
            else:
                self._cache_attendance(
                    records,
                    {
                        "date": date,
                        "courseType": course_type,
                        "year": as_year(year),
                        "courseDivision": course_division,
                        "section": section,
                        "period": period,
                    },
                )
                return records

        return self._cached_attendance(date, course_type, year, course_division, section, period)

    def _cache_attendance(self, records: List[Dict[str, Any]], query: Dict[str, Any]) -> None:
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for record in records:
            full = {**query, **record}
            if not full.get("section") or full.get("studentId") is None:
                logger.debug("Not caching attendance record without section or student: %r", record)
                continue
            grouped.setdefault(sheets.key_for_record(full), []).append(full)

        for key, group in grouped.items():
            sheet = read_json(self._local, key) or sheets.sheet_for_record(group[0])
            write_json(self._local, key, sheets.replace_entries(sheet, group))

    def _cached_attendance(
        self,
        date: str,
        course_type: str,
        year: Any,
        course_division: Optional[str],
        section: Optional[str],
        period: Any,
    ) -> List[Dict[str, Any]]:
        if section and period not in (None, ""):
            key = attendance_key(
                date=date,
                course_type=course_type,
                year=year,
                course_division=course_division,
                section=section,
                period=period,
            )
            sheet = read_json(self._local, key)
            return sheets.sheet_to_records(sheet) if sheet else []

        if section:
            prefix = section_attendance_prefix(course_type, year, course_division, section)
        else:
            prefix = class_attendance_prefix(course_type, year, course_division)

        records: List[Dict[str, Any]] = []
        for key in sorted(keys_with_prefix(self._local, prefix)):
            if BACKUP_MARKER in key:
                continue
            sheet = read_json(self._local, key)
            if not isinstance(sheet, dict) or str(sheet.get("date") or "")[:10] != date[:10]:
                continue
            if period not in (None, "") and str(sheet.get("period")) != str(period):
                continue
            records.extend(sheets.sheet_to_records(sheet))
        return records

    def _save_attendance_to_local(self, record: Dict[str, Any]) -> None:
        key = sheets.key_for_record(record)
        sheet = read_json(self._local, key) or sheets.sheet_for_record(record)
        sheets.upsert_entry(sheet, record)

        stamp = self._clock().isoformat()
        metadata = dict(sheet.get("metadata") or {})
        metadata.setdefault("markedAt", stamp)
        if record.get("markedBy") is not None:
            metadata.setdefault("markedBy", record["markedBy"])
        metadata["updatedAt"] = stamp
        sheet["metadata"] = metadata
        write_json(self._local, key, sheet)

    # ===== NAMAZ =====

    def save_namaz_record(self, record: Dict[str, Any]) -> bool:
        record = dict(record)
        write_json(self._local, namaz_key(record["date"], record["studentId"]), record)

        saved = self._write_through(SyncAction.SAVE_NAMAZ_RECORD, record, lambda: self._api.create_namaz_record(record))
        if saved is None:
            logger.info("Namaz record saved locally (offline mode)")
        return True

    def get_namaz_records(self, date: str, student_id: Any = None) -> List[Dict[str, Any]]:
        if self.is_online:
            try:
                records = list(self._api.list_namaz_records(date=date, student_id=student_id))
            except RemoteApiError as e:
                logger.warning("Fetching namaz records failed, using local copy: %s", e)
            else:
                for r in records:
                    write_json(self._local, namaz_key(r["date"], r["studentId"]), r)
                return records

        if student_id is not None:
            record = read_json(self._local, namaz_key(date, student_id))
            return [record] if record else []
        return [r for _, r in iter_json_with_prefix(self._local, f"{NAMAZ_PREFIX}{date}_")]

    # ===== LEAVES =====

    def save_leave(self, leave: Dict[str, Any]) -> bool:
        leave = dict(leave)
        self._save_leave_to_local(leave)

        payload = {**leave, "createdBy": LEAVE_CREATED_BY, "createdAt": self._clock().isoformat()}
        saved = self._write_through(SyncAction.SAVE_LEAVE, leave, lambda: self._api.create_leave(payload))
        if saved is None:
            logger.info("Leave record saved locally (offline mode)")
        return True

    def get_leaves(self, student_id: Any = None) -> List[Dict[str, Any]]:
        if self.is_online:
            try:
                leaves = list(self._api.list_leaves(student_id=student_id))
            except RemoteApiError as e:
                logger.warning("Fetching leaves failed, using local copy: %s", e)
            else:
                self._update_local_leaves(leaves, student_id)
                return leaves

        all_leaves = read_json(self._local, LEAVES_KEY, default=[]) or []
        if student_id is not None:
            return [l for l in all_leaves if l.get("studentId") == student_id]
        return all_leaves

    def _save_leave_to_local(self, leave: Dict[str, Any]) -> None:
        leaves: List[Dict[str, Any]] = read_json(self._local, LEAVES_KEY, default=[]) or []
        if leave.get("id") is None:
            taken = {l.get("id") for l in leaves}
            new_id = epoch_millis(self._clock())
            while new_id in taken:
                new_id += 1
            leave["id"] = new_id
        for i, l in enumerate(leaves):
            if l.get("id") == leave["id"]:
                leaves[i] = leave
                break
        else:
            leaves.append(leave)
        write_json(self._local, LEAVES_KEY, leaves)

    def _update_local_leaves(self, leaves: List[Dict[str, Any]], student_id: Any) -> None:
        if student_id is None:
            write_json(self._local, LEAVES_KEY, leaves)
            return
        others = [l for l in read_json(self._local, LEAVES_KEY, default=[]) or [] if l.get("studentId") != student_id]
        write_json(self._local, LEAVES_KEY, others + leaves)

    # ===== SYNC =====

    def _replay(self, item: SyncQueueItem) -> None:
        data = item.data
        if item.action == SyncAction.SAVE_STUDENT:
            saved = self._api.create_student(data)
            self._adopt_student_id(dict(data), saved or {})
        elif item.action == SyncAction.DELETE_STUDENT:
            self._api.delete_student(data["studentId"])
        elif item.action == SyncAction.SAVE_ATTENDANCE:
            self._api.create_attendance(data)
        elif item.action == SyncAction.SAVE_NAMAZ_RECORD:
            self._api.create_namaz_record(data)
        elif item.action == SyncAction.SAVE_LEAVE:
            self._api.create_leave({**data, "createdBy": LEAVE_CREATED_BY, "createdAt": self._clock().isoformat()})

    def sync_with_database(self) -> SyncReport:
        """Replay the whole queue against the API.

        The queue is drained up front; only items whose replay fails go back.
        No idempotency key is sent, so a crash between a successful remote
        write and the final persist replays that write again next time.
        """
        if not self.is_online or len(self._queue) == 0:
            return SyncReport(skipped=True)
        if not self._sync_guard.acquire(blocking=False):
            logger.debug("Sync already running, skipping")
            return SyncReport(skipped=True)

        try:
            items = self._queue.drain()
            logger.info("Starting sync - %d items to sync", len(items))

            failed: List[SyncQueueItem] = []
            for item in items:
                try:
                    self._replay(item)
                except RemoteApiError as e:
                    logger.warning("Error syncing %s: %s", item.action.value, e)
                    failed.append(item)
                except Exception:
                    # Any replay failure keeps the item; only successes leave the queue.
                    logger.exception("Unexpected error syncing %s", item.action.value)
                    failed.append(item)

            self._queue.requeue_front(failed)
            self._last_sync_time = self._clock()

            succeeded = len(items) - len(failed)
            if succeeded:
                logger.info("Successfully synced %d items to database", succeeded)
            if failed:
                logger.warning("Failed to sync %d items - will retry later", len(failed))
            return SyncReport(attempted=len(items), succeeded=succeeded, failed=len(failed))
        finally:
            self._sync_guard.release()

    def force_sync(self) -> SyncReport:
        if not self.is_online:
            return SyncReport(skipped=True)
        return self.sync_with_database()

    def pending_items(self) -> List[SyncQueueItem]:
        return self._queue.snapshot()

    def get_status(self) -> StorageStatus:
        return StorageStatus(is_online=self.is_online, queue_size=len(self._queue), last_sync=self._last_sync_time)

    def clear_local_data(self) -> int:
        """Remove cached records and the sync queue; returns removed key count."""
        removed = 0
        for key in self._local.keys():
            if key.startswith(_LOCAL_DATA_PREFIXES) or key in (LEAVES_KEY, SYNC_QUEUE_KEY):
                self._local.remove_item(key)
                removed += 1
        self._queue.clear()
        logger.info("Local data cleared (%d keys)", removed)
        return removed
