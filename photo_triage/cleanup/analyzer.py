"""
Similarity analyzers.

An analyzer partitions a collection's photos into clusters of near-duplicates.
The cleanup engine only consumes the clustering; how photos are judged
similar is up to the backend.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..core.types import PhotoRecord, SimilarityGroup

logger = logging.getLogger(__name__)

ProgressReporter = Callable[[float], None]


class CollectionAnalyzer(ABC):
    """Abstract base class for similarity analyzer backends."""

    @abstractmethod
    def find_clusters(
        self,
        collection_id: str,
        photos: Sequence[PhotoRecord],
        report_progress: ProgressReporter,
    ) -> List[List[str]]:
        """Partition photos into clusters of near-duplicates.

        Implementations should call ``report_progress`` with a fraction in
        [0, 1) as work advances. The call raises ``AnalysisCancelled`` when the
        run has been cancelled; analyzers must let it propagate.

        Args:
            collection_id: Collection being analyzed
            photos: Photos of the collection, in caller order
            report_progress: Progress callback and cancellation point

        Returns:
            Clusters as lists of photo ids, in canonical processing order
        """


class StaticClusterAnalyzer(CollectionAnalyzer):
    """Serves precomputed clusters, e.g. from an external classifier's output."""

    def __init__(self, clusters: Optional[Dict[str, List[List[str]]]] = None):
        """
        Initialize with known clusters.

        Args:
            clusters: Mapping of collection id to its clusters
        """
        self.clusters: Dict[str, List[List[str]]] = dict(clusters or {})

    def set_clusters(self, collection_id: str, clusters: List[List[str]]) -> None:
        self.clusters[collection_id] = [list(c) for c in clusters]

    def find_clusters(
        self,
        collection_id: str,
        photos: Sequence[PhotoRecord],
        report_progress: ProgressReporter,
    ) -> List[List[str]]:
        clusters = self.clusters.get(collection_id, [])
        total = len(clusters)
        for i in range(total):
            report_progress(i / total)
        return [list(c) for c in clusters]


class CaptureWindowAnalyzer(CollectionAnalyzer):
    """Clusters photos shot in quick succession with identical dimensions.

    A cluster is a run of photos (sorted by capture time) where:
    1. Consecutive photos are at most gap_seconds apart
    2. All photos share the same width and height
    3. The run holds at least min_cluster_size photos
    """

    def __init__(self, gap_seconds: float = 10.0, min_cluster_size: int = 2):
        """
        Initialize the analyzer.

        Args:
            gap_seconds: Maximum gap between consecutive photos in a cluster
            min_cluster_size: Minimum photos required to form a cluster
        """
        self.gap_seconds = gap_seconds
        self.min_cluster_size = min_cluster_size

    def find_clusters(
        self,
        collection_id: str,
        photos: Sequence[PhotoRecord],
        report_progress: ProgressReporter,
    ) -> List[List[str]]:
        if len(photos) < self.min_cluster_size:
            return []

        ordered = sorted(photos, key=lambda p: (p.captured_at, p.id))
        clusters: List[List[str]] = []
        run: List[PhotoRecord] = [ordered[0]]

        for i, photo in enumerate(ordered[1:], start=1):
            if i % 50 == 0:
                report_progress(i / len(ordered))

            previous = run[-1]
            gap = (photo.captured_at - previous.captured_at).total_seconds()
            if gap <= self.gap_seconds and photo.dimensions == previous.dimensions:
                run.append(photo)
                continue

            if len(run) >= self.min_cluster_size:
                clusters.append([p.id for p in run])
            run = [photo]

        if len(run) >= self.min_cluster_size:
            clusters.append([p.id for p in run])

        # Larger clusters first, they free the most space
        clusters.sort(key=len, reverse=True)
        logger.debug(
            f"Found {len(clusters)} capture-window clusters in {collection_id}"
        )
        return clusters


def make_group_id(members: List[PhotoRecord]) -> str:
    """Derive a stable group id from its earliest member."""
    first = members[0]
    return f"{int(first.captured_at.timestamp() * 1000)}_{first.id}"


def build_similarity_groups(
    clusters: Iterable[Iterable[str]],
    photos: Sequence[PhotoRecord],
    include_singletons: bool = True,
) -> List[SimilarityGroup]:
    """
    Turn analyzer clusters into similarity groups in canonical order.

    Unknown photo ids are dropped and a photo stays in the first cluster that
    names it. With ``include_singletons`` every remaining photo becomes its own
    group, appended after the clusters in capture order.

    Args:
        clusters: Clusters of photo ids from an analyzer
        photos: Photos of the collection
        include_singletons: Add one group per unclustered photo

    Returns:
        List of unprocessed SimilarityGroups
    """
    by_id = {photo.id: photo for photo in photos}
    assigned = set()
    groups: List[SimilarityGroup] = []

    for cluster in clusters:
        members = []
        for photo_id in cluster:
            if photo_id in by_id and photo_id not in assigned:
                members.append(by_id[photo_id])
                assigned.add(photo_id)
        if not members:
            continue
        members.sort(key=lambda p: (p.captured_at, p.id))
        groups.append(_group_from(members))

    if include_singletons:
        orphans = [p for p in by_id.values() if p.id not in assigned]
        orphans.sort(key=lambda p: (p.captured_at, p.id))
        groups.extend(_group_from([photo]) for photo in orphans)

    return groups


def _group_from(members: List[PhotoRecord]) -> SimilarityGroup:
    return SimilarityGroup(
        id=make_group_id(members),
        photo_ids=[p.id for p in members],
        start_time=members[0].captured_at,
        end_time=members[-1].captured_at,
    )
