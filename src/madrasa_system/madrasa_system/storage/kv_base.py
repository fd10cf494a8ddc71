from __future__ import annotations

import json
from typing import Any, Iterator, List, Tuple

from .repository import KeyValueStore


def read_json(store: KeyValueStore, key: str, default: Any = None) -> Any:
    raw = store.get_item(key)
    if raw is None:
        return default
    return json.loads(raw)


def write_json(store: KeyValueStore, key: str, value: Any) -> None:
    store.set_item(key, json.dumps(value))


def keys_with_prefix(store: KeyValueStore, prefix: str) -> List[str]:
    """Linear scan; O(n) in the total number of stored keys."""
    return [k for k in store.keys() if k.startswith(prefix)]


def iter_json_with_prefix(store: KeyValueStore, prefix: str) -> Iterator[Tuple[str, Any]]:
    for key in keys_with_prefix(store, prefix):
        raw = store.get_item(key)
        if raw is None:
            continue
        yield key, json.loads(raw)
