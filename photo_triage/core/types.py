"""
Type definitions for the cleanup session engine.
"""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Set

from pydantic import BaseModel, ConfigDict, Field


class SessionState(str, Enum):
    """Lifecycle state of a collection inside a cleanup session."""

    IDLE = "idle"
    ANALYZING = "analyzing"
    BROWSING = "browsing"
    EXHAUSTED = "exhausted"


class PhotoRecord(BaseModel):
    """A photo as known to the caller's photo index."""

    model_config = ConfigDict(frozen=True)

    id: str
    source: str  # Path or content URI
    captured_at: datetime
    collection_key: str
    width: int = 0
    height: int = 0

    @property
    def dimensions(self) -> tuple[int, int]:
        return (self.width, self.height)


class SimilarityGroup(BaseModel):
    """Cluster of near-duplicate photos; the unit of processed bookkeeping."""

    id: str
    photo_ids: List[str]
    processed: bool = False
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    @property
    def size(self) -> int:
        """Number of photos in the group."""
        return len(self.photo_ids)


class CollectionCleanupState(BaseModel):
    """Groups from the last completed analysis of one collection."""

    collection_id: str
    groups: List[SimilarityGroup] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=datetime.now)
    needs_analysis: bool = False

    @property
    def processed_group_ids(self) -> Set[str]:
        return {group.id for group in self.groups if group.processed}

    @property
    def total_groups(self) -> int:
        return len(self.groups)

    @property
    def processed_groups(self) -> int:
        return sum(1 for group in self.groups if group.processed)

    @property
    def remaining_groups(self) -> int:
        return self.total_groups - self.processed_groups

    @property
    def total_images(self) -> int:
        return sum(group.size for group in self.groups)

    @property
    def remaining_images(self) -> int:
        return sum(group.size for group in self.groups if not group.processed)

    @property
    def is_completed(self) -> bool:
        return self.remaining_groups == 0


class Checkpoint(BaseModel):
    """Persisted position inside the batch being reviewed.

    Serialized with ``orderedGroupIds``/``index`` keys so the stored record
    stays readable by other clients of the same preferences store.
    """

    model_config = ConfigDict(populate_by_name=True)

    collection_id: str = Field(alias="collectionId")
    ordered_group_ids: List[str] = Field(alias="orderedGroupIds")
    index: int = 0
    saved_at: datetime = Field(default_factory=datetime.now, alias="savedAt")


class CleanupBatch(BaseModel):
    """Photos of one or more whole groups presented in one review pass."""

    model_config = ConfigDict(frozen=True)

    collection_id: str
    photos: List[PhotoRecord] = Field(default_factory=list)
    group_ids: List[str] = Field(default_factory=list)
    group_boundaries: List[int] = Field(default_factory=list)

    @property
    def group_count(self) -> int:
        return len(self.group_ids)

    @property
    def image_count(self) -> int:
        return len(self.photos)

    @property
    def photo_ids(self) -> List[str]:
        return [photo.id for photo in self.photos]

    def _group_range(self, position: int) -> tuple[int, int]:
        start = self.group_boundaries[position]
        if position + 1 < len(self.group_boundaries):
            end = self.group_boundaries[position + 1]
        else:
            end = len(self.photos)
        return start, end

    def group_id_for_index(self, index: int) -> Optional[str]:
        """
        Get the id of the group that owns the photo at ``index``.

        Args:
            index: Position in the flattened photo sequence

        Returns:
            Group id, or None when the index is out of range
        """
        for position, group_id in enumerate(self.group_ids):
            start, end = self._group_range(position)
            if start <= index < end:
                return group_id
        return None

    def is_last_in_group(self, index: int) -> bool:
        """Check whether ``index`` is the final photo of its group."""
        for position in range(len(self.group_ids)):
            start, end = self._group_range(position)
            if end > start and index == end - 1:
                return True
        return False


class CleanupInfo(BaseModel):
    """Per-collection summary for display."""

    collection_id: str
    state: SessionState = SessionState.IDLE
    is_analyzed: bool = False
    total_groups: int = 0
    processed_groups: int = 0
    remaining_groups: int = 0
    total_images: int = 0
    remaining_images: int = 0
    progress: float = 0.0
    is_completed: bool = False
