"""In-process state store."""

import copy
from threading import Lock
from typing import Any, Dict, List, Optional

from .base import StateStore


class MemoryStore(StateStore):
    """Dictionary-backed store; state lives as long as the object."""

    def __init__(self) -> None:
        self._data: Dict[str, Dict[str, Any]] = {}
        self._lock = Lock()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._data.get(key)
            return copy.deepcopy(value) if value is not None else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._data if k.startswith(prefix))

    def __repr__(self) -> str:
        return f"MemoryStore(keys={len(self._data)})"
