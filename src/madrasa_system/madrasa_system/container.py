from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .attendance.service import AttendanceService
from .common.events import EventBus
from .connectivity.monitor import ConnectivityMonitor
from .core.constants import DEFAULT_API_TIMEOUT_SECONDS, DEFAULT_SYNC_INTERVAL_SECONDS
from .hybrid.scheduler import SyncScheduler
from .hybrid.service import HybridStorage
from .remote.http_api import HttpSchoolApi
from .remote.repository import SchoolApi
from .storage.json_file_store import JsonFileStore
from .storage.memory_store import MemoryStore
from .storage.repository import KeyValueStore
from .sync.audit import AuditTrail
from .sync.service import SyncService
from .validation.service import ValidationService


@dataclass(frozen=True)
class Container:
    api: SchoolApi
    local_store: KeyValueStore
    session_store: KeyValueStore
    connectivity: ConnectivityMonitor
    events: EventBus

    hybrid_storage: HybridStorage
    validation_service: ValidationService
    sync_service: SyncService
    attendance_service: AttendanceService
    scheduler: SyncScheduler


def build_container(
    *,
    api_config: dict,
    store_path: Optional[str] = None,
    sync_interval: float = DEFAULT_SYNC_INTERVAL_SECONDS,
    api: Optional[SchoolApi] = None,
    local_store: Optional[KeyValueStore] = None,
    online: bool = True,
) -> Container:
    """Wire every adapter and service once.

    ``api`` and ``local_store`` can be passed in to substitute fakes.
    """
    if api is None:
        api = HttpSchoolApi(
            str(api_config["base_url"]),
            timeout=float(api_config.get("timeout", DEFAULT_API_TIMEOUT_SECONDS)),
        )
    if local_store is None:
        if not store_path:
            raise ValueError("store_path is required when no local_store is given")
        local_store = JsonFileStore(store_path)

    session_store = MemoryStore()
    events = EventBus()
    connectivity = ConnectivityMonitor(online=online, health_check=api.health)

    hybrid_storage = HybridStorage(api, local_store, connectivity)
    validation_service = ValidationService(api, local_store)
    sync_service = SyncService(
        validation_service,
        local_store,
        api,
        audit=AuditTrail(local_store, session_store),
        events=events,
    )
    attendance_service = AttendanceService(validation_service, sync_service, hybrid_storage)
    scheduler = SyncScheduler(hybrid_storage.sync_with_database, connectivity, interval_seconds=sync_interval)

    return Container(
        api=api,
        local_store=local_store,
        session_store=session_store,
        connectivity=connectivity,
        events=events,
        hybrid_storage=hybrid_storage,
        validation_service=validation_service,
        sync_service=sync_service,
        attendance_service=attendance_service,
        scheduler=scheduler,
    )
