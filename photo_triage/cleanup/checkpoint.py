"""
Checkpoint store.

Persists the batch under review (its group ids) and the position inside it,
so review can resume mid-batch after an interruption.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence, Tuple

from pydantic import ValidationError

from ..core.types import Checkpoint, CleanupBatch, PhotoRecord
from ..storage.base import StateStore
from .catalog import GroupCatalog
from .cursor import build_batch

logger = logging.getLogger(__name__)

KEY_PREFIX = "checkpoint/"


class CheckpointStore:
    """At most one live checkpoint per collection, last write wins."""

    def __init__(self, store: StateStore, catalog: GroupCatalog):
        """
        Initialize the checkpoint store.

        Args:
            store: Backend used to persist checkpoints
            catalog: Catalog used to validate checkpointed groups
        """
        self.store = store
        self.catalog = catalog

    @staticmethod
    def _key(collection_id: str) -> str:
        return f"{KEY_PREFIX}{collection_id}"

    def save_checkpoint(
        self, collection_id: str, group_ids: Iterable[str], index: int
    ) -> bool:
        """
        Save the current position.

        Args:
            collection_id: Collection id
            group_ids: Ordered group ids of the batch in progress
            index: Position in the batch's flattened photo list

        Returns:
            True if saved; False when a group is unknown or already processed
        """
        group_ids = list(group_ids)
        if not group_ids:
            return False

        unprocessed = {
            g.id for g in self.catalog.get_unprocessed_groups(collection_id)
        }
        if not unprocessed.issuperset(group_ids):
            logger.warning(
                f"Not saving checkpoint for {collection_id}: "
                f"batch contains processed or unknown groups"
            )
            return False

        checkpoint = Checkpoint(
            collection_id=collection_id,
            ordered_group_ids=group_ids,
            index=max(index, 0),
            saved_at=datetime.now(),
        )
        record = checkpoint.model_dump(mode="json", by_alias=True)
        self.store.put(self._key(collection_id), record)
        logger.debug(
            f"Saved checkpoint for {collection_id}: index={checkpoint.index}, "
            f"groups={len(group_ids)}"
        )
        return True

    def get_checkpoint(self, collection_id: str) -> Optional[Checkpoint]:
        """Get the raw checkpoint of a collection, without validation."""
        data = self.store.get(self._key(collection_id))
        if data is None:
            return None
        try:
            return Checkpoint.model_validate(data)
        except ValidationError as e:
            logger.warning(
                f"Discarding unreadable checkpoint for {collection_id}: {e}"
            )
            self.clear_checkpoint(collection_id)
            return None

    def get_checkpoint_batch(
        self, collection_id: str, photos: Sequence[PhotoRecord]
    ) -> Optional[Tuple[CleanupBatch, int]]:
        """
        Rebuild the checkpointed batch against the current photos.

        A checkpoint naming a group that no longer exists or is already
        processed is stale: it is discarded and None is returned.

        Args:
            collection_id: Collection id
            photos: Current photos of the collection

        Returns:
            (batch, index) or None
        """
        checkpoint = self.get_checkpoint(collection_id)
        if checkpoint is None:
            return None

        groups = []
        for group_id in checkpoint.ordered_group_ids:
            group = self.catalog.get_group(collection_id, group_id)
            if group is None or group.processed:
                logger.info(
                    f"Discarding stale checkpoint for {collection_id} "
                    f"(group {group_id} unavailable)"
                )
                self.clear_checkpoint(collection_id)
                return None
            groups.append(group)

        if not groups:
            self.clear_checkpoint(collection_id)
            return None

        batch = build_batch(collection_id, groups, photos)
        index = min(checkpoint.index, max(batch.image_count - 1, 0))

        logger.debug(
            f"Restored checkpoint batch for {collection_id}: "
            f"{batch.image_count} images, starting at index {index}"
        )
        return batch, index

    def clear_checkpoint(self, collection_id: str) -> None:
        self.store.delete(self._key(collection_id))
        logger.debug(f"Cleared checkpoint for {collection_id}")

    def has_checkpoint(self, collection_id: str) -> bool:
        return self.store.get(self._key(collection_id)) is not None
