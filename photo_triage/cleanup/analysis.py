"""
Background analysis jobs.

An AnalysisJob runs one analyzer pass on a worker thread and exposes it as a
lazy stream of progress fractions. The resulting groups are handed to a commit
callback exactly once, and only if the job was not cancelled first; the
stream ends with 1.0 only after that commit.
"""

import logging
import queue
from concurrent.futures import Executor, Future
from threading import Event, Lock
from typing import Callable, Iterator, List, Optional, Sequence

from ..core.exceptions import AnalysisCancelled, AnalysisFailed
from ..core.types import PhotoRecord, SimilarityGroup
from .analyzer import CollectionAnalyzer, build_similarity_groups

logger = logging.getLogger(__name__)

# Commit callback: receives the groups, returns True if they were applied
CommitCallback = Callable[["AnalysisJob", List[SimilarityGroup]], bool]

_DONE = object()


class AnalysisJob:
    """One cancellable analyzer run for a single collection."""

    def __init__(
        self,
        collection_id: str,
        photos: Sequence[PhotoRecord],
        analyzer: CollectionAnalyzer,
        on_complete: CommitCallback,
        include_singletons: bool = True,
    ):
        """
        Initialize the job. Nothing runs until ``start``.

        Args:
            collection_id: Collection to analyze
            photos: Snapshot of the collection's photos
            analyzer: Similarity analyzer backend
            on_complete: Commit callback for the resulting groups
            include_singletons: Give unclustered photos their own group
        """
        self.collection_id = collection_id
        self.photos = list(photos)
        self.analyzer = analyzer
        self.include_singletons = include_singletons

        self._on_complete = on_complete
        self._cancel_event = Event()
        self._finished = Event()
        self._commit_lock = Lock()
        self._updates: "queue.Queue[object]" = queue.Queue()
        self._last_progress = 0.0
        self._future: Optional[Future] = None
        self._stream_claimed = False

        self.committed = False
        self.error: Optional[AnalysisFailed] = None

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    @property
    def done(self) -> bool:
        return self._finished.is_set()

    def start(self, executor: Executor) -> "AnalysisJob":
        """Submit the job to ``executor``."""
        logger.info(
            f"Analyzing collection {self.collection_id} "
            f"with {len(self.photos)} photos"
        )
        self._updates.put(0.0)
        self._future = executor.submit(self._run)
        return self

    def cancel(self) -> None:
        """Cancel the job.

        Once this returns the job neither reports progress nor commits: a
        commit already in progress is waited for, any later one is refused.
        """
        self._cancel_event.set()
        if self._future is not None and self._future.cancel():
            # Still queued: ``_run`` will never execute
            self._finish()
        with self._commit_lock:
            pass
        logger.debug(f"Cancelled analysis of {self.collection_id}")

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until the job finishes.

        Args:
            timeout: Maximum seconds to wait

        Returns:
            True if the job committed its groups
        """
        self._finished.wait(timeout)
        return self.committed

    def progress(self, timeout: Optional[float] = None) -> Iterator[float]:
        """
        Iterate over progress fractions until the job finishes.

        Values are non-decreasing in [0, 1]; 1.0 is yielded only after the
        groups were committed. A cancelled or failed run just stops early.

        Args:
            timeout: Seconds to wait for each update before giving up

        Yields:
            Progress fraction
        """
        if self._stream_claimed:
            raise RuntimeError("Progress stream of an analysis job can be read once")
        self._stream_claimed = True

        while True:
            try:
                update = self._updates.get(timeout=timeout)
            except queue.Empty:
                logger.warning(f"Timed out waiting for {self.collection_id} analysis")
                return
            if update is _DONE:
                return
            yield update

    def _report_progress(self, fraction: float) -> None:
        """Cancellation point handed to the analyzer."""
        with self._commit_lock:
            if self._cancel_event.is_set():
                raise AnalysisCancelled(f"Analysis of {self.collection_id} cancelled")

            # 1.0 is reserved for the post-commit signal
            fraction = min(max(fraction, self._last_progress), 0.99)
            if fraction > self._last_progress:
                self._last_progress = fraction
                self._updates.put(fraction)

    def _finish(self) -> None:
        self._finished.set()
        self._updates.put(_DONE)

    def _run(self) -> None:
        try:
            if self._cancel_event.is_set():
                raise AnalysisCancelled(f"Analysis of {self.collection_id} cancelled")
            clusters = self.analyzer.find_clusters(
                self.collection_id, self.photos, self._report_progress
            )
            self._report_progress(0.95)
            groups = build_similarity_groups(
                clusters, self.photos, include_singletons=self.include_singletons
            )

            with self._commit_lock:
                if self._cancel_event.is_set():
                    raise AnalysisCancelled(
                        f"Analysis of {self.collection_id} cancelled"
                    )
                self.committed = self._on_complete(self, groups)

            if self.committed:
                logger.info(
                    f"Analysis complete for {self.collection_id}: "
                    f"{len(groups)} groups"
                )
                self._updates.put(1.0)
        except AnalysisCancelled:
            logger.info(f"Analysis of {self.collection_id} cancelled")
        except Exception as e:
            logger.error(f"Analysis of {self.collection_id} failed: {e}")
            self.error = AnalysisFailed(self.collection_id, e)
        finally:
            self._finish()

    def __repr__(self) -> str:
        return (
            f"AnalysisJob(collection={self.collection_id}, "
            f"done={self.done}, committed={self.committed})"
        )
