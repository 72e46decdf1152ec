"""Key/value persistence contract for cleanup state."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class StateStore(ABC):
    """Abstract base class for cleanup state backends.

    Values are JSON-compatible dictionaries. Each ``put`` replaces the whole
    value for a key, so a reader never observes a partially written record.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the value stored under ``key`` or None."""

    @abstractmethod
    def put(self, key: str, value: Dict[str, Any]) -> None:
        """Store ``value`` under ``key``, replacing any previous value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""

    @abstractmethod
    def keys(self, prefix: str = "") -> List[str]:
        """List stored keys starting with ``prefix``, sorted."""

    def close(self) -> None:
        """Release backend resources."""

    def __enter__(self) -> "StateStore":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()
