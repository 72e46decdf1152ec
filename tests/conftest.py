"""
Pytest configuration and fixtures for photo_triage tests.
"""

import tempfile
from concurrent.futures import Executor, Future
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, Generator, List

import pytest

from photo_triage.cleanup import CleanupSession, StaticClusterAnalyzer
from photo_triage.core.config import CleanupSettings
from photo_triage.core.types import PhotoRecord
from photo_triage.storage import MemoryStore

BASE_TIME = datetime(2024, 6, 1, 10, 0, 0)


class InlineExecutor(Executor):
    """Executor running each task in the submitting thread."""

    def submit(self, fn, /, *args, **kwargs) -> Future:
        future: Future = Future()
        try:
            result = fn(*args, **kwargs)
        except BaseException as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return future


def make_photos(
    collection_id: str, count: int, prefix: str = "", start: datetime = BASE_TIME
) -> List[PhotoRecord]:
    """Create ``count`` photos taken one second apart."""
    prefix = prefix or collection_id.lower()
    return [
        PhotoRecord(
            id=f"{prefix}{i}",
            source=f"/photos/{collection_id}/{prefix}{i}.jpg",
            captured_at=start + timedelta(seconds=i),
            collection_key=collection_id,
            width=4032,
            height=3024,
        )
        for i in range(count)
    ]


def split_ids(photos: List[PhotoRecord], sizes: List[int]) -> List[List[str]]:
    """Cut photo ids into consecutive clusters of the given sizes."""
    clusters = []
    offset = 0
    for size in sizes:
        clusters.append([p.id for p in photos[offset : offset + size]])
        offset += size
    return clusters


# ==============================================================================
# File and directory fixtures
# ==============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


# ==============================================================================
# Photo and collection fixtures
# ==============================================================================


@pytest.fixture
def photo_factory() -> Callable[..., List[PhotoRecord]]:
    return make_photos


@pytest.fixture
def trip_photos() -> List[PhotoRecord]:
    """The "Trip" collection: 10 photos."""
    return make_photos("Trip", 10)


@pytest.fixture
def trip_clusters(trip_photos) -> List[List[str]]:
    """Three clusters of sizes 4, 3 and 3."""
    return split_ids(trip_photos, [4, 3, 3])


@pytest.fixture
def analyzer(trip_clusters) -> StaticClusterAnalyzer:
    return StaticClusterAnalyzer({"Trip": trip_clusters})


@pytest.fixture
def settings() -> CleanupSettings:
    """Settings with a batch cap of 5 and an in-memory store."""
    return CleanupSettings(
        _env_file=None,
        batch_image_cap=5,
        prefetch_threshold=3,
        store_backend="memory",
        random_seed=7,
    )


@pytest.fixture
def inline_executor() -> InlineExecutor:
    return InlineExecutor()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def session(
    analyzer, store, settings, inline_executor
) -> Generator[CleanupSession, None, None]:
    """Session running background work inline for deterministic tests."""
    cleanup_session = CleanupSession(
        analyzer, store=store, settings=settings, executor=inline_executor
    )
    yield cleanup_session
    cleanup_session.close()


@pytest.fixture
def group_ids(session) -> Callable[[str], List[str]]:
    """Look up a collection's group ids in catalog order."""

    def _group_ids(collection_id: str) -> List[str]:
        return [g.id for g in session.catalog.get_groups(collection_id)]

    return _group_ids


@pytest.fixture
def manifest_data(trip_photos, trip_clusters) -> Dict:
    """JSON manifest with an analyzable "Trip" and a small "Beach"."""
    beach = make_photos("Beach", 3, start=datetime(2024, 7, 14, 9, 0, 0))
    return {
        "collections": {
            "Trip": {
                "photos": [p.model_dump(mode="json") for p in trip_photos],
                "clusters": trip_clusters,
            },
            "Beach": {
                "photos": [
                    p.model_dump(mode="json", exclude={"collection_key"})
                    for p in beach
                ],
                "clusters": [[beach[0].id, beach[1].id]],
            },
        }
    }
