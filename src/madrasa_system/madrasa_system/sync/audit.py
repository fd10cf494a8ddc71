from __future__ import annotations

import itertools
import logging
import secrets
import string
import threading
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from ..common.datetime_utils import epoch_millis, now_local
from ..core.constants import AUDIT_PREFIX, AUDIT_TRAIL_LIMIT, SESSION_ID_KEY
from ..storage.kv_base import keys_with_prefix, read_json, write_json
from ..storage.repository import KeyValueStore
from .model import AuditEntry

logger = logging.getLogger(__name__)

_ALPHABET = string.ascii_lowercase + string.digits


def _random_suffix(length: int = 9) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _key_millis(key: str) -> int:
    # audit_<millis>_<random>
    try:
        return int(key[len(AUDIT_PREFIX):].split("_", 1)[0])
    except ValueError:
        return 0


class AuditTrail:
    """Audit entries stored one per key (``audit_<millis>_<random>``).

    Capped at ``limit`` entries; trimming orders by the numeric millisecond
    stamp and then by a per-process sequence number, so entries sharing a
    millisecond are still dropped oldest first.
    """

    def __init__(
        self,
        local: KeyValueStore,
        session_store: KeyValueStore,
        *,
        clock: Callable[[], datetime] = now_local,
        limit: int = AUDIT_TRAIL_LIMIT,
    ):
        self._local = local
        self._session_store = session_store
        self._clock = clock
        self._limit = int(limit)
        self._seq = itertools.count(1)
        self._lock = threading.Lock()

    def session_id(self) -> str:
        sid = self._session_store.get_item(SESSION_ID_KEY)
        if not sid:
            sid = f"session_{epoch_millis(self._clock())}_{_random_suffix()}"
            self._session_store.set_item(SESSION_ID_KEY, sid)
        return sid

    def record(self, operation: str, details: Any, user_id: Optional[int] = None) -> str:
        now = self._clock()
        with self._lock:
            entry = AuditEntry(
                operation=operation,
                details=details,
                timestamp=now.isoformat(),
                user_id=int(user_id or 0),
                session_id=self.session_id(),
                seq=next(self._seq),
            )
            key = f"{AUDIT_PREFIX}{epoch_millis(now)}_{_random_suffix()}"
            write_json(self._local, key, entry.to_dict())
            self._cleanup()
        logger.debug("Audit %s recorded under %s", operation, key)
        return key

    def _ordered_keys(self) -> List[Tuple[Tuple[int, int], str]]:
        ordered = []
        for key in keys_with_prefix(self._local, AUDIT_PREFIX):
            try:
                seq = int((read_json(self._local, key) or {}).get("seq") or 0)
            except (ValueError, AttributeError):
                seq = 0
            ordered.append(((_key_millis(key), seq), key))
        ordered.sort()
        return ordered

    def _cleanup(self) -> int:
        keys = keys_with_prefix(self._local, AUDIT_PREFIX)
        if len(keys) <= self._limit:
            return 0
        ordered = self._ordered_keys()
        to_remove = [key for _, key in ordered[: len(ordered) - self._limit]]
        for key in to_remove:
            self._local.remove_item(key)
        logger.debug("Trimmed %d audit entries", len(to_remove))
        return len(to_remove)

    def entries(self, limit: Optional[int] = None) -> List[AuditEntry]:
        """Newest first."""
        out: List[AuditEntry] = []
        for _, key in reversed(self._ordered_keys()):
            try:
                out.append(AuditEntry.from_dict(read_json(self._local, key) or {}))
            except (ValueError, TypeError):
                logger.warning("Skipping unreadable audit entry %s", key)
                continue
            if limit is not None and len(out) >= limit:
                break
        return out
