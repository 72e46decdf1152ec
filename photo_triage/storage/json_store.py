"""
JSON file state store.

All keys live in one JSON document. Writes go to a temp file that is
atomically renamed over the document; the previous document is kept as a
hidden backup and used when the main file cannot be parsed.
"""

import copy
import json
import logging
import shutil
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Any, Dict, List, Optional

from .base import StateStore

logger = logging.getLogger(__name__)


class JsonFileStore(StateStore):
    """Persists cleanup state in a single JSON document."""

    def __init__(self, path: Path):
        """
        Initialize the store.

        Args:
            path: Location of the JSON document (created on first write)
        """
        self.path = Path(path)
        self.backup_file = self.path.with_name(f".{self.path.name}.backup")
        self._lock = Lock()
        self._data: Optional[Dict[str, Dict[str, Any]]] = None

        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _load(self) -> Dict[str, Dict[str, Any]]:
        """Load the document on first access."""
        if self._data is not None:
            return self._data

        if not self.path.exists():
            self._data = {}
            return self._data

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                self._data = json.load(f).get("entries", {})
            logger.debug(f"Loaded cleanup state from {self.path}")
        except (OSError, ValueError) as e:
            logger.error(f"Error loading cleanup state: {e}")

            if not self.backup_file.exists():
                raise
            logger.warning("Attempting to load from backup")
            with open(self.backup_file, "r", encoding="utf-8") as f:
                self._data = json.load(f).get("entries", {})
            logger.info("Successfully loaded from backup")

        return self._data

    def _save(self) -> None:
        """Write the document atomically, keeping the previous one as backup."""
        assert self._data is not None

        if self.path.exists():
            try:
                shutil.copy2(self.path, self.backup_file)
            except OSError as e:
                logger.warning(f"Failed to create backup: {e}")

        document = {
            "last_updated": datetime.now().isoformat(),
            "entries": self._data,
        }

        temp_file = self.path.with_suffix(".tmp")
        try:
            with open(temp_file, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2, default=str)
            temp_file.replace(self.path)
        except Exception as e:
            logger.error(f"Error saving cleanup state: {e}")
            if temp_file.exists():
                temp_file.unlink()
            raise

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            value = self._load().get(key)
            return copy.deepcopy(value) if value is not None else None

    def put(self, key: str, value: Dict[str, Any]) -> None:
        with self._lock:
            self._load()[key] = copy.deepcopy(value)
            self._save()

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save()

    def keys(self, prefix: str = "") -> List[str]:
        with self._lock:
            return sorted(k for k in self._load() if k.startswith(prefix))

    def __repr__(self) -> str:
        return f"JsonFileStore(path={self.path})"
