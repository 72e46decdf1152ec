"""
Duplicate-group cleanup engine.

This package walks a photo collection that has been partitioned into
near-duplicate groups and serves it as bounded review batches, with
processed-group bookkeeping, checkpointed resume, background prefetch and
round-robin across collections.
"""

from .analysis import AnalysisJob
from .analyzer import (
    CaptureWindowAnalyzer,
    CollectionAnalyzer,
    StaticClusterAnalyzer,
    build_similarity_groups,
)
from .catalog import GroupCatalog
from .checkpoint import CheckpointStore
from .cursor import BatchCursor, build_batch
from .months import group_by_month, month_key
from .session import CleanupSession

__all__ = [
    "AnalysisJob",
    "CaptureWindowAnalyzer",
    "CollectionAnalyzer",
    "StaticClusterAnalyzer",
    "build_similarity_groups",
    "GroupCatalog",
    "CheckpointStore",
    "group_by_month",
    "month_key",
    "BatchCursor",
    "build_batch",
    "CleanupSession",
]
