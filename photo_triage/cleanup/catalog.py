"""
Group catalog.

In-memory index of similarity groups per collection with their processed
flags, persisted through a StateStore so bookkeeping survives restarts.
"""

import logging
from datetime import datetime
from threading import RLock
from typing import Dict, Iterable, List, Optional

from ..core.types import CollectionCleanupState, SimilarityGroup
from ..storage.base import StateStore

logger = logging.getLogger(__name__)

KEY_PREFIX = "catalog/"


class GroupCatalog:
    """
    Tracks similarity groups and processed status for each collection.

    All queries against an unknown collection return empty results rather
    than raising.
    """

    def __init__(self, store: StateStore):
        """
        Initialize the catalog.

        Args:
            store: Backend used to persist collection state
        """
        self.store = store
        self._states: Dict[str, CollectionCleanupState] = {}
        self._lock = RLock()

    @staticmethod
    def _key(collection_id: str) -> str:
        return f"{KEY_PREFIX}{collection_id}"

    def _state(self, collection_id: str) -> Optional[CollectionCleanupState]:
        """Get cached state, loading it from the store on first access."""
        state = self._states.get(collection_id)
        if state is not None:
            return state

        data = self.store.get(self._key(collection_id))
        if data is None:
            return None

        state = CollectionCleanupState.model_validate(data)
        self._states[collection_id] = state
        logger.debug(
            f"Loaded catalog for {collection_id}: {state.total_groups} groups"
        )
        return state

    def _persist(self, state: CollectionCleanupState) -> None:
        self.store.put(self._key(state.collection_id), state.model_dump(mode="json"))

    def create(
        self, collection_id: str, groups: Iterable[SimilarityGroup]
    ) -> CollectionCleanupState:
        """
        Replace any prior state for a collection with a fresh analysis result.

        Args:
            collection_id: Collection id
            groups: Groups in canonical order

        Returns:
            The new collection state
        """
        state = CollectionCleanupState(
            collection_id=collection_id,
            groups=[g.model_copy(update={"processed": False}) for g in groups],
            analyzed_at=datetime.now(),
        )
        with self._lock:
            self._states[collection_id] = state
            self._persist(state)

        logger.info(
            f"Created catalog for {collection_id}: {state.total_groups} groups, "
            f"{state.total_images} images"
        )
        return state

    def mark_processed(self, collection_id: str, group_ids: Iterable[str]) -> int:
        """
        Mark groups as processed. Idempotent.

        Args:
            collection_id: Collection id
            group_ids: Groups to mark; unknown or already processed ids are ignored

        Returns:
            Number of groups newly marked
        """
        wanted = set(group_ids)
        with self._lock:
            state = self._state(collection_id)
            if state is None:
                logger.debug(f"Ignoring mark on unknown collection {collection_id}")
                return 0

            marked = 0
            for group in state.groups:
                if group.id in wanted and not group.processed:
                    group.processed = True
                    marked += 1

            if marked:
                self._persist(state)
                logger.debug(
                    f"Marked {marked} groups processed in {collection_id}, "
                    f"{state.remaining_groups} remaining"
                )
            return marked

    def reset(self, collection_id: str) -> bool:
        """
        Clear all processed flags and flag the collection for re-analysis.

        Args:
            collection_id: Collection id

        Returns:
            True if the collection was known
        """
        with self._lock:
            state = self._state(collection_id)
            if state is None:
                return False

            for group in state.groups:
                group.processed = False
            state.needs_analysis = True
            self._persist(state)

        logger.info(f"Reset cleanup state for {collection_id}")
        return True

    def get_state(self, collection_id: str) -> Optional[CollectionCleanupState]:
        """Get a copy of a collection's state."""
        with self._lock:
            state = self._state(collection_id)
            return state.model_copy(deep=True) if state is not None else None

    def get_groups(self, collection_id: str) -> List[SimilarityGroup]:
        """Get all groups of a collection in canonical order."""
        with self._lock:
            state = self._state(collection_id)
            if state is None:
                return []
            return [g.model_copy(deep=True) for g in state.groups]

    def get_group(
        self, collection_id: str, group_id: str
    ) -> Optional[SimilarityGroup]:
        with self._lock:
            state = self._state(collection_id)
            if state is None:
                return None
            for group in state.groups:
                if group.id == group_id:
                    return group.model_copy(deep=True)
            return None

    def get_unprocessed_groups(self, collection_id: str) -> List[SimilarityGroup]:
        """Get groups not yet processed, in canonical order."""
        return [g for g in self.get_groups(collection_id) if not g.processed]

    def is_analyzed(self, collection_id: str) -> bool:
        """Check whether a collection has a committed analysis."""
        with self._lock:
            return self._state(collection_id) is not None

    def needs_analysis(self, collection_id: str) -> bool:
        """Check whether a collection must be (re-)analyzed before use."""
        with self._lock:
            state = self._state(collection_id)
            return state is None or state.needs_analysis

    def collection_ids(self) -> List[str]:
        """List collections with catalog state, persisted or in memory."""
        with self._lock:
            persisted = {
                key[len(KEY_PREFIX):] for key in self.store.keys(KEY_PREFIX)
            }
            return sorted(persisted | set(self._states))

    def total_groups(self, collection_id: str) -> int:
        return self._count(collection_id, "total_groups")

    def processed_groups(self, collection_id: str) -> int:
        return self._count(collection_id, "processed_groups")

    def remaining_groups(self, collection_id: str) -> int:
        return self._count(collection_id, "remaining_groups")

    def total_images(self, collection_id: str) -> int:
        return self._count(collection_id, "total_images")

    def remaining_images(self, collection_id: str) -> int:
        """Photos in unprocessed groups."""
        return self._count(collection_id, "remaining_images")

    def _count(self, collection_id: str, attribute: str) -> int:
        with self._lock:
            state = self._state(collection_id)
            return getattr(state, attribute) if state is not None else 0

    def __repr__(self) -> str:
        return f"GroupCatalog(collections={len(self._states)})"
