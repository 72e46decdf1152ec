"""
Batch cursor.

Turns the unprocessed groups of a collection into review batches made of
whole groups, capped by photo count.
"""

import logging
from typing import Iterable, List, Optional, Sequence

from ..core.types import CleanupBatch, PhotoRecord, SimilarityGroup
from .catalog import GroupCatalog

logger = logging.getLogger(__name__)


def build_batch(
    collection_id: str,
    groups: Sequence[SimilarityGroup],
    photos: Sequence[PhotoRecord],
) -> CleanupBatch:
    """
    Materialize whole groups against the live photo list.

    Photo ids that are no longer in ``photos`` are left out of the batch; the
    groups themselves are not altered.

    Args:
        collection_id: Collection the groups belong to
        groups: Groups in display order
        photos: Current photos of the collection

    Returns:
        CleanupBatch with group boundaries into the flattened photo list
    """
    by_id = {photo.id: photo for photo in photos}
    batch_photos: List[PhotoRecord] = []
    boundaries: List[int] = []

    for group in groups:
        boundaries.append(len(batch_photos))
        present = [by_id[pid] for pid in group.photo_ids if pid in by_id]
        if len(present) < group.size:
            logger.debug(
                f"Group {group.id} has {group.size - len(present)} photos "
                f"missing from {collection_id}"
            )
        batch_photos.extend(present)

    return CleanupBatch(
        collection_id=collection_id,
        photos=batch_photos,
        group_ids=[group.id for group in groups],
        group_boundaries=boundaries,
    )


class BatchCursor:
    """Serves capped batches of unprocessed groups in catalog order."""

    def __init__(self, catalog: GroupCatalog, batch_image_cap: int = 30):
        """
        Initialize the cursor.

        Args:
            catalog: Group catalog to read from
            batch_image_cap: Soft cap on photos per batch; a single group
                larger than the cap is still served on its own
        """
        if batch_image_cap < 1:
            raise ValueError("batch_image_cap must be at least 1")
        self.catalog = catalog
        self.batch_image_cap = batch_image_cap

    def select_groups(
        self, collection_id: str, exclude_group_ids: Iterable[str] = ()
    ) -> List[SimilarityGroup]:
        """
        Pick the groups for the next batch.

        Args:
            collection_id: Collection id
            exclude_group_ids: Groups to skip (e.g. the batch on screen)

        Returns:
            Whole groups for one batch; empty when nothing is left
        """
        excluded = set(exclude_group_ids)
        selected: List[SimilarityGroup] = []
        running = 0

        for group in self.catalog.get_unprocessed_groups(collection_id):
            if group.id in excluded:
                continue
            if selected and running + group.size > self.batch_image_cap:
                break
            selected.append(group)
            running += group.size
            if running >= self.batch_image_cap:
                break

        return selected

    def get_next_batch(
        self,
        collection_id: str,
        photos: Sequence[PhotoRecord],
        exclude_group_ids: Iterable[str] = (),
    ) -> Optional[CleanupBatch]:
        """
        Get the next batch of a collection.

        Args:
            collection_id: Collection id
            photos: Current photos of the collection
            exclude_group_ids: Groups to skip

        Returns:
            CleanupBatch, or None when no eligible unprocessed group remains
        """
        groups = self.select_groups(collection_id, exclude_group_ids)
        if not groups:
            logger.debug(f"No more batches in {collection_id}")
            return None

        batch = build_batch(collection_id, groups, photos)
        logger.debug(
            f"Created batch for {collection_id}: {batch.image_count} images, "
            f"{batch.group_count} groups"
        )
        return batch
