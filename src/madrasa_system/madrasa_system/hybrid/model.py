from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class StorageStatus:
    is_online: bool
    queue_size: int
    last_sync: Optional[datetime]

    def to_dict(self) -> dict:
        return {
            "isOnline": self.is_online,
            "queueSize": self.queue_size,
            "lastSync": self.last_sync.isoformat() if self.last_sync else None,
        }


@dataclass(frozen=True)
class SyncReport:
    """Outcome of one queue flush."""

    attempted: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: bool = False

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
        }
