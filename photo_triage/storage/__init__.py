"""
Persistence backends for cleanup state.

Catalog and checkpoint records are opaque key/value entries; which medium
holds them is chosen by ``CleanupSettings.store_backend``.
"""

import logging

from ..core.config import CleanupSettings
from .base import StateStore
from .json_store import JsonFileStore
from .memory import MemoryStore
from .sql_store import SqlStore

logger = logging.getLogger(__name__)


def create_store(settings: CleanupSettings) -> StateStore:
    """
    Build the state store configured in ``settings``.

    Args:
        settings: Cleanup settings

    Returns:
        A ready-to-use StateStore
    """
    if settings.store_backend == "memory":
        store: StateStore = MemoryStore()
    elif settings.store_backend == "sqlite":
        settings.resolved_state_dir.mkdir(parents=True, exist_ok=True)
        store = SqlStore(settings.sqlalchemy_url, echo=settings.sql_echo)
    else:
        store = JsonFileStore(settings.state_file)

    logger.debug(f"Using state store {store!r}")
    return store


__all__ = [
    "StateStore",
    "MemoryStore",
    "JsonFileStore",
    "SqlStore",
    "create_store",
]
