from __future__ import annotations

import logging
import threading
from typing import Callable, List, Optional

logger = logging.getLogger(__name__)

ConnectivityListener = Callable[[bool], None]


class ConnectivityMonitor:
    """Online/Offline state machine.

    Transitions come from ``set_online`` (explicit events) or ``check_health``
    (asks the API). Listeners run only on an actual transition, after the
    new state is visible.
    """

    def __init__(self, *, online: bool = True, health_check: Optional[Callable[[], bool]] = None):
        self._online = bool(online)
        self._health_check = health_check
        self._listeners: List[ConnectivityListener] = []
        self._lock = threading.Lock()

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def set_online(self, online: bool) -> bool:
        """Apply a connectivity event; returns True if the state changed."""
        online = bool(online)
        with self._lock:
            if online == self._online:
                return False
            self._online = online
            listeners = list(self._listeners)

        logger.info("Connectivity changed: %s", "online" if online else "offline")
        for listener in listeners:
            listener(online)
        return True

    def check_health(self) -> bool:
        if self._health_check is None:
            return self._online
        self.set_online(self._health_check())
        return self._online
