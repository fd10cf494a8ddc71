from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List

from ..core.constants import SYNC_QUEUE_KEY
from ..core.enums import SyncAction
from ..storage.kv_base import read_json, write_json
from ..storage.repository import KeyValueStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncQueueItem:
    """A write that failed remotely (or happened offline) and must be replayed."""

    action: SyncAction
    data: Dict[str, Any]
    timestamp: int

    def to_dict(self) -> dict:
        return {"action": self.action.value, "data": self.data, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, raw: dict) -> "SyncQueueItem":
        return cls(action=SyncAction(raw["action"]), data=dict(raw.get("data") or {}), timestamp=int(raw.get("timestamp") or 0))


class SyncQueue:
    """Durable retry queue persisted in the local store under ``syncQueue``.

    Ordering is FIFO on append; replay failures are put back in front of any
    item appended while a drain was running.
    """

    def __init__(self, store: KeyValueStore, *, key: str = SYNC_QUEUE_KEY):
        self._store = store
        self._key = key
        self._items: List[SyncQueueItem] = []
        self._lock = threading.RLock()

    def load(self) -> int:
        raw_items = read_json(self._store, self._key, default=[]) or []
        items: List[SyncQueueItem] = []
        for raw in raw_items:
            try:
                items.append(SyncQueueItem.from_dict(raw))
            except (KeyError, ValueError, TypeError):
                logger.error("Dropping unreadable sync queue entry: %r", raw)
        with self._lock:
            self._items = items
        return len(items)

    def persist(self) -> None:
        with self._lock:
            write_json(self._store, self._key, [i.to_dict() for i in self._items])

    def append(self, item: SyncQueueItem) -> None:
        with self._lock:
            self._items.append(item)
            self.persist()

    def drain(self) -> List[SyncQueueItem]:
        """Take every item out of the in-memory queue.

        The persisted copy is left untouched until ``requeue_front`` or
        ``persist`` runs, so a crash mid-replay replays everything again.
        """
        with self._lock:
            items, self._items = self._items, []
            return items

    def requeue_front(self, items: Iterable[SyncQueueItem]) -> None:
        with self._lock:
            self._items = list(items) + self._items
            self.persist()

    def remove_where(self, predicate: Callable[[SyncQueueItem], bool]) -> int:
        """Drop matching items; returns how many were removed."""
        with self._lock:
            kept = [i for i in self._items if not predicate(i)]
            removed = len(self._items) - len(kept)
            if removed:
                self._items = kept
                self.persist()
            return removed

    def clear(self) -> None:
        with self._lock:
            self._items = []
            self._store.remove_item(self._key)

    def snapshot(self) -> List[SyncQueueItem]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
