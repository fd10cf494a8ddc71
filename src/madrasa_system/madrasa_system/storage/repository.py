from __future__ import annotations

from typing import Optional, Protocol, Sequence


class KeyValueStore(Protocol):
    """String-to-string persistent store (the browser local-storage contract)."""

    def get_item(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set_item(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove_item(self, key: str) -> None:
        raise NotImplementedError

    def keys(self) -> Sequence[str]:
        """Snapshot of every key, in insertion order."""

        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError
