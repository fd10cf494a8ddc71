from __future__ import annotations

import logging
import threading
from collections import defaultdict
from typing import Any, Callable, DefaultDict, List

logger = logging.getLogger(__name__)

Listener = Callable[..., None]

NOTIFICATION_UPDATE = "notification-update"
STUDENT_DATA_CHANGED = "student-data-changed"


class EventBus:
    """In-process publish/subscribe for cross-module refresh signals."""

    def __init__(self):
        self._listeners: DefaultDict[str, List[Listener]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event: str, listener: Listener) -> None:
        with self._lock:
            self._listeners[event].append(listener)

    def unsubscribe(self, event: str, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners[event]:
                self._listeners[event].remove(listener)

    def publish(self, event: str, **payload: Any) -> int:
        """Call every listener of ``event``; returns how many were called."""
        with self._lock:
            listeners = list(self._listeners[event])
        logger.debug("Publishing %s to %d listener(s)", event, len(listeners))
        for listener in listeners:
            listener(**payload)
        return len(listeners)
