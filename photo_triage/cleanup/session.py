"""
Cleanup session orchestrator.

A CleanupSession owns the per-collection state machines
(IDLE -> ANALYZING -> BROWSING -> EXHAUSTED), drives analysis, serves batches
with checkpointed resume, prefetches the next batch in the background and
round-robins across a pool of collections once the foreground one runs dry.

The application builds exactly one session at its composition root and hands
it to the screens that need it.

Example:
    >>> session = CleanupSession(StaticClusterAnalyzer(clusters))
    >>> job = session.enter_collection("Trip", photos)
    >>> job.wait()
    >>> batch = session.current_batch
    >>> session.update_position(2)
    >>> session.advance_batch()
"""

import logging
import random
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from functools import partial
from threading import RLock
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from ..core.config import CleanupSettings
from ..core.types import (
    CleanupBatch,
    CleanupInfo,
    PhotoRecord,
    SessionState,
    SimilarityGroup,
)
from ..storage import MemoryStore, StateStore, create_store
from .analysis import AnalysisJob
from .analyzer import CollectionAnalyzer
from .catalog import GroupCatalog
from .checkpoint import CheckpointStore
from .cursor import BatchCursor

logger = logging.getLogger(__name__)


class CleanupSession:
    """The single entry point the caller talks to.

    Misuse (unknown collections or groups, no foreground collection) is a
    no-op returning None/0/False, never an exception.
    """

    def __init__(
        self,
        analyzer: CollectionAnalyzer,
        store: Optional[StateStore] = None,
        settings: Optional[CleanupSettings] = None,
        executor: Optional[Executor] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Initialize the session.

        Args:
            analyzer: Similarity analyzer backend
            store: Persistence backend (in-memory when omitted)
            settings: Cleanup settings (defaults from environment)
            executor: Worker pool for analysis and prefetch (created if omitted)
            rng: Random source for round-robin picks
        """
        self.settings = settings or CleanupSettings()
        self.analyzer = analyzer
        self.store = store if store is not None else MemoryStore()

        self.catalog = GroupCatalog(self.store)
        self.cursor = BatchCursor(self.catalog, self.settings.batch_image_cap)
        self.checkpoints = CheckpointStore(self.store, self.catalog)

        self._owns_store = False
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.settings.worker_threads, thread_name_prefix="cleanup"
        )
        self._rng = rng or random.Random(self.settings.random_seed)

        self._lock = RLock()
        self._photos: Dict[str, List[PhotoRecord]] = {}
        self._states: Dict[str, SessionState] = {}
        self._analyses: Dict[str, AnalysisJob] = {}
        self._pool: List[str] = []

        self._foreground: Optional[str] = None
        self._batch: Optional[CleanupBatch] = None
        self._index = 0
        self._exhausted = False

        # Prefetch results are only applied if the generation is unchanged
        self._generation = 0
        self._prefetched: Optional[CleanupBatch] = None
        self._prefetch_empty = False
        self._prefetch_future: Optional[Future] = None

    @classmethod
    def from_settings(
        cls, analyzer: CollectionAnalyzer, settings: Optional[CleanupSettings] = None
    ) -> "CleanupSession":
        """Build a session whose store is created (and owned) from settings."""
        settings = settings or CleanupSettings()
        session = cls(analyzer, store=create_store(settings), settings=settings)
        session._owns_store = True
        return session

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def foreground_collection(self) -> Optional[str]:
        return self._foreground

    @property
    def current_batch(self) -> Optional[CleanupBatch]:
        return self._batch

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def prefetched_batch(self) -> Optional[CleanupBatch]:
        return self._prefetched

    @property
    def round_robin_pool(self) -> List[str]:
        return list(self._pool)

    @property
    def session_state(self) -> SessionState:
        """State of the session as a whole (that of the foreground collection)."""
        with self._lock:
            if self._exhausted:
                return SessionState.EXHAUSTED
            if self._foreground is None:
                return SessionState.IDLE
            return self._states.get(self._foreground, SessionState.IDLE)

    def state(self, collection_id: str) -> SessionState:
        """Get the state of one collection."""
        with self._lock:
            if collection_id in self._states:
                return self._states[collection_id]
        if self.catalog.needs_analysis(collection_id):
            return SessionState.IDLE
        if self.catalog.remaining_groups(collection_id) == 0:
            return SessionState.EXHAUSTED
        return SessionState.IDLE

    # ------------------------------------------------------------------
    # Analysis
    # ------------------------------------------------------------------

    def analyze_collection(
        self, collection_id: str, photos: Sequence[PhotoRecord]
    ) -> AnalysisJob:
        """
        Start a fresh analysis of a collection.

        Any analysis of the same collection still in flight is cancelled
        first. On completion the collection's state is replaced.

        Args:
            collection_id: Collection to analyze
            photos: Current photos of the collection

        Returns:
            The running AnalysisJob (iterate ``progress()`` or ``wait()``)
        """
        with self._lock:
            stale = self._analyses.pop(collection_id, None)
        if stale is not None:
            stale.cancel()

        job = AnalysisJob(
            collection_id,
            photos,
            self.analyzer,
            self._commit_analysis,
            include_singletons=self.settings.include_singletons,
        )
        with self._lock:
            self._photos[collection_id] = list(photos)
            self._analyses[collection_id] = job
            self._states[collection_id] = SessionState.ANALYZING
        return job.start(self._executor)

    def _commit_analysis(
        self, job: AnalysisJob, groups: List[SimilarityGroup]
    ) -> bool:
        """Apply a finished analysis if the job is still the registered one."""
        collection_id = job.collection_id
        with self._lock:
            if self._analyses.get(collection_id) is not job:
                logger.debug(f"Dropping superseded analysis of {collection_id}")
                return False
            del self._analyses[collection_id]

            self.catalog.create(collection_id, groups)
            if collection_id == self._foreground:
                self._invalidate_locked()
                self._open_locked(collection_id)
            else:
                self._states[collection_id] = SessionState.IDLE
            return True

    # ------------------------------------------------------------------
    # Foreground collection
    # ------------------------------------------------------------------

    def enter_collection(
        self, collection_id: str, photos: Sequence[PhotoRecord]
    ) -> Optional[AnalysisJob]:
        """
        Make a collection the foreground one.

        Work tied to the previous foreground collection (analysis, prefetch)
        is cancelled. A collection with a committed analysis opens right away:
        at its checkpoint if one is valid, else at its next batch, else it is
        EXHAUSTED. Otherwise it is analyzed first and opens on completion.

        Args:
            collection_id: Collection to enter
            photos: Current photos of the collection

        Returns:
            The AnalysisJob when analysis was needed, else None
        """
        stale_jobs = []
        with self._lock:
            previous = self._foreground
            if previous is not None and previous != collection_id:
                job = self._analyses.pop(previous, None)
                if job is not None:
                    stale_jobs.append(job)
                    self._states[previous] = SessionState.IDLE

            self._invalidate_locked()
            self._foreground = collection_id
            self._batch = None
            self._index = 0
            self._exhausted = False
            self._photos[collection_id] = list(photos)

            needs_analysis = self.catalog.needs_analysis(collection_id)
            if not needs_analysis:
                self._open_locked(collection_id)

        for job in stale_jobs:
            job.cancel()

        logger.info(f"Entered collection {collection_id}")
        if needs_analysis:
            return self.analyze_collection(collection_id, photos)
        return None

    def _open_locked(self, collection_id: str) -> None:
        """Position the foreground collection at its checkpoint or next batch."""
        photos = self._photos.get(collection_id, [])
        restored = self.checkpoints.get_checkpoint_batch(collection_id, photos)
        if restored is not None:
            batch, index = restored
            logger.info(f"Resuming {collection_id} at index {index}")
        else:
            batch, index = self.cursor.get_next_batch(collection_id, photos), 0

        self._batch = batch
        self._index = index
        if batch is None:
            self._states[collection_id] = SessionState.EXHAUSTED
            logger.info(f"Collection {collection_id} has nothing left to review")
        else:
            self._states[collection_id] = SessionState.BROWSING

    def update_position(self, index: int) -> None:
        """
        Record the displayed position in the current batch.

        Saves the checkpoint and starts a prefetch once few photos remain.

        Args:
            index: Position in the batch's flattened photo list
        """
        with self._lock:
            if self._batch is None or self._foreground is None:
                return
            last = max(self._batch.image_count - 1, 0)
            self._index = min(max(index, 0), last)
            self.checkpoints.save_checkpoint(
                self._foreground, self._batch.group_ids, self._index
            )
            remaining = self._batch.image_count - self._index
            if remaining <= self.settings.prefetch_threshold:
                self.prefetch()

    def advance_batch(self) -> Optional[CleanupBatch]:
        """
        Finish the current batch and move on.

        Marks the batch's groups processed and clears the checkpoint, then
        serves the prefetched batch or fetches one. When the collection is
        exhausted and belongs to the round-robin pool, a random analyzed,
        unfinished pool collection is entered instead.

        Returns:
            The new current batch, or None when everything is exhausted
        """
        with self._lock:
            collection_id = self._foreground
            batch = self._batch
            if collection_id is None or batch is None:
                return None

            self.catalog.mark_processed(collection_id, batch.group_ids)
            self.checkpoints.clear_checkpoint(collection_id)

            next_batch = self._take_prefetched_locked(collection_id)
            if next_batch is None:
                next_batch = self.cursor.get_next_batch(
                    collection_id, self._photos.get(collection_id, [])
                )
            self._invalidate_locked()

            self._index = 0
            self._batch = next_batch
            if next_batch is not None:
                self._states[collection_id] = SessionState.BROWSING
                return next_batch

            self._states[collection_id] = SessionState.EXHAUSTED
            logger.info(f"Collection {collection_id} exhausted")

            next_collection = self._pick_round_robin_locked(collection_id)
            if next_collection is None:
                self._exhausted = True
                logger.info("Cleanup session exhausted")
                return None
            photos = self._photos.get(next_collection, [])

        logger.info(f"Round-robin switching to {next_collection}")
        self.enter_collection(next_collection, photos)
        return self.current_batch

    def _take_prefetched_locked(self, collection_id: str) -> Optional[CleanupBatch]:
        """Consume the prefetched batch if it is still valid."""
        batch = self._prefetched
        self._prefetched = None
        if batch is None or batch.collection_id != collection_id:
            return None

        unprocessed = {
            g.id for g in self.catalog.get_unprocessed_groups(collection_id)
        }
        if not unprocessed.issuperset(batch.group_ids):
            logger.debug(f"Discarding outdated prefetched batch for {collection_id}")
            return None
        return batch

    # ------------------------------------------------------------------
    # Prefetch
    # ------------------------------------------------------------------

    def prefetch(self) -> Optional[Future]:
        """
        Fetch the batch after the current one in the background.

        The result stays in memory only. It is dropped if a reset, exit,
        batch advance or collection switch happens before it arrives.

        Returns:
            Future of the fetch, or None when there is nothing to prefetch
        """
        with self._lock:
            if self._batch is None or self._foreground is None:
                return None
            if self._prefetched is not None or self._prefetch_empty:
                return None
            if self._prefetch_future is not None and not self._prefetch_future.done():
                return self._prefetch_future

            collection_id = self._foreground
            future = self._executor.submit(
                self.cursor.get_next_batch,
                collection_id,
                list(self._photos.get(collection_id, [])),
                list(self._batch.group_ids),
            )
            self._prefetch_future = future
            future.add_done_callback(
                partial(self._store_prefetched, collection_id, self._generation)
            )
            return future

    def _store_prefetched(
        self, collection_id: str, generation: int, future: Future
    ) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.warning(f"Prefetch for {collection_id} failed: {error}")
            return

        with self._lock:
            if (
                generation != self._generation
                or collection_id != self._foreground
                or future is not self._prefetch_future
            ):
                logger.debug(f"Discarding stale prefetch for {collection_id}")
                return
            self._prefetch_future = None
            self._prefetched = future.result()
            # Nothing after the last batch until the generation changes
            self._prefetch_empty = self._prefetched is None

    def _invalidate_locked(self) -> None:
        """Make any pending prefetch result stale."""
        self._generation += 1
        if self._prefetch_future is not None:
            self._prefetch_future.cancel()
        self._prefetch_future = None
        self._prefetched = None
        self._prefetch_empty = False

    # ------------------------------------------------------------------
    # Round-robin
    # ------------------------------------------------------------------

    def set_round_robin_pool(
        self, collections: Mapping[str, Sequence[PhotoRecord]]
    ) -> None:
        """
        Define the collections to rotate through once one is exhausted.

        Args:
            collections: Mapping of collection id to its current photos
        """
        with self._lock:
            self._pool = list(collections)
            for collection_id, photos in collections.items():
                self._photos[collection_id] = list(photos)

    def _pick_round_robin_locked(self, current: str) -> Optional[str]:
        if current not in self._pool:
            return None

        candidates = [
            collection_id
            for collection_id in self._pool
            if collection_id != current
            and not self.catalog.needs_analysis(collection_id)
            and self.catalog.remaining_groups(collection_id) > 0
        ]
        if not candidates:
            return None
        return self._rng.choice(candidates)

    # ------------------------------------------------------------------
    # Batches, checkpoints and bookkeeping
    # ------------------------------------------------------------------

    def get_next_batch(
        self,
        collection_id: str,
        photos: Sequence[PhotoRecord],
        exclude_group_ids: Iterable[str] = (),
    ) -> Optional[CleanupBatch]:
        return self.cursor.get_next_batch(collection_id, photos, exclude_group_ids)

    def get_checkpoint_batch(
        self, collection_id: str, photos: Sequence[PhotoRecord]
    ) -> Optional[Tuple[CleanupBatch, int]]:
        return self.checkpoints.get_checkpoint_batch(collection_id, photos)

    def save_checkpoint(
        self,
        group_ids: Iterable[str],
        index: int,
        collection_id: Optional[str] = None,
    ) -> bool:
        """Save a checkpoint for the foreground (or given) collection."""
        collection_id = collection_id or self._foreground
        if collection_id is None:
            return False
        return self.checkpoints.save_checkpoint(collection_id, group_ids, index)

    def clear_checkpoint(self, collection_id: str) -> None:
        self.checkpoints.clear_checkpoint(collection_id)

    def mark_groups_processed(
        self, group_ids: Iterable[str], collection_id: Optional[str] = None
    ) -> int:
        """
        Mark groups of the foreground (or given) collection as processed.

        A checkpoint referencing any of the groups is cleared.

        Args:
            group_ids: Groups to mark
            collection_id: Collection; defaults to the foreground one

        Returns:
            Number of groups newly marked
        """
        group_ids = set(group_ids)
        with self._lock:
            collection_id = collection_id or self._foreground
            if collection_id is None:
                return 0

            marked = self.catalog.mark_processed(collection_id, group_ids)

            checkpoint = self.checkpoints.get_checkpoint(collection_id)
            if checkpoint is not None and group_ids & set(
                checkpoint.ordered_group_ids
            ):
                self.checkpoints.clear_checkpoint(collection_id)

            prefetched = self._prefetched
            if prefetched is not None and group_ids & set(prefetched.group_ids):
                self._prefetched = None
            return marked

    def get_total_groups(self, collection_id: str) -> int:
        return self.catalog.total_groups(collection_id)

    def get_remaining_groups(self, collection_id: str) -> int:
        return self.catalog.remaining_groups(collection_id)

    def get_total_images(self, collection_id: str) -> int:
        return self.catalog.total_images(collection_id)

    def get_remaining_images(self, collection_id: str) -> int:
        return self.catalog.remaining_images(collection_id)

    def get_cleanup_info(self, collection_id: str) -> CleanupInfo:
        """Summarize a collection's cleanup progress for display."""
        state = self.catalog.get_state(collection_id)
        if state is None:
            return CleanupInfo(
                collection_id=collection_id, state=self.state(collection_id)
            )

        progress = 0.0
        if state.total_groups:
            progress = state.processed_groups / state.total_groups
        return CleanupInfo(
            collection_id=collection_id,
            state=self.state(collection_id),
            is_analyzed=not state.needs_analysis,
            total_groups=state.total_groups,
            processed_groups=state.processed_groups,
            remaining_groups=state.remaining_groups,
            total_images=state.total_images,
            remaining_images=state.remaining_images,
            progress=progress,
            is_completed=state.is_completed,
        )

    # ------------------------------------------------------------------
    # Reset / teardown
    # ------------------------------------------------------------------

    def reset_collection_state(self, collection_id: str) -> None:
        """
        Forget all progress of a collection.

        Processed flags and the checkpoint are cleared and the collection is
        re-analyzed on its next ``enter_collection``.

        Args:
            collection_id: Collection to reset
        """
        with self._lock:
            job = self._analyses.pop(collection_id, None)
            self.catalog.reset(collection_id)
            self.checkpoints.clear_checkpoint(collection_id)
            self._states[collection_id] = SessionState.IDLE

            if collection_id == self._foreground:
                self._invalidate_locked()
                self._batch = None
                self._index = 0
                self._exhausted = False

        if job is not None:
            job.cancel()

    def exit_cleanup_mode(self) -> None:
        """
        Tear down the in-memory session.

        Persisted processed flags and checkpoints are left alone, so entering
        the collection again resumes where the user left off.
        """
        with self._lock:
            jobs = list(self._analyses.values())
            self._analyses.clear()
            self._invalidate_locked()
            self._foreground = None
            self._batch = None
            self._index = 0
            self._exhausted = False
            self._states.clear()
            self._pool = []
            self._photos.clear()

        for job in jobs:
            job.cancel()
        logger.info("Exited cleanup mode")

    def close(self) -> None:
        """Exit cleanup mode and release the worker pool and owned store."""
        self.exit_cleanup_mode()
        if self._owns_executor:
            self._executor.shutdown(wait=True)
        if self._owns_store:
            self.store.close()

    def __enter__(self) -> "CleanupSession":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def __repr__(self) -> str:
        return (
            f"CleanupSession(foreground={self._foreground}, "
            f"state={self.session_state.value})"
        )
