"""Core types, settings and exceptions for the cleanup engine."""

from .config import CleanupSettings
from .exceptions import AnalysisCancelled, AnalysisFailed, CleanupError
from .types import (
    Checkpoint,
    CleanupBatch,
    CleanupInfo,
    CollectionCleanupState,
    PhotoRecord,
    SessionState,
    SimilarityGroup,
)

__all__ = [
    "CleanupSettings",
    "CleanupError",
    "AnalysisCancelled",
    "AnalysisFailed",
    "Checkpoint",
    "CleanupBatch",
    "CleanupInfo",
    "CollectionCleanupState",
    "PhotoRecord",
    "SessionState",
    "SimilarityGroup",
]
