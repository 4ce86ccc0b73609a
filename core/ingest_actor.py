import logging
import queue
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path

from utils.db import Record, new_identifier
from utils.image_meta import Resolution, ResolutionError, resolve

logger = logging.getLogger(__name__)

DEFAULT_BATCH_THRESHOLD = 500


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NewPath:
    path: Path


@dataclass(frozen=True)
class Tick:
    pass


@dataclass(frozen=True)
class Shutdown:
    """Flush whatever is queued, then stop the actor loop."""


IngestEvent = NewPath | Tick | Shutdown


class ActorState(Enum):
    IDLE = "idle"
    ACCUMULATING = "accumulating"
    FLUSHING = "flushing"


@dataclass
class IngestStats:
    discovered: int = 0
    resolved: int = 0
    unresolved: int = 0
    persisted: int = 0
    failed: int = 0
    flushes: int = 0


def record_from_resolution(resolution: Resolution, now: datetime) -> Record:
    """Turns a Resolution into a Record with a fresh identifier."""
    return Record(
        identifier=new_identifier(),
        timestamp=resolution.timestamp or now,
        signature=resolution.signature,
    )


class IngestActor:
    """
    Single consumer of the ingest event stream.

    Paths are buffered and only resolved when the batch is flushed: when it
    grows past ``threshold``, on a Tick with a non-empty batch, and on
    Shutdown. A flush runs on the actor thread, so no event is handled
    while one is in progress and two flushes never overlap.
    """

    def __init__(
        self,
        store,
        resolver: Callable[[Path], Resolution] = resolve,
        threshold: int = DEFAULT_BATCH_THRESHOLD,
        worker_num: int = 1,
        maxsize: int = 0,
        clock: Callable[[], datetime] = datetime.now,
    ):
        """
        Args:
            store: Anything with ``persist_batch(records) -> failed_records``.
            resolver: Path -> Resolution, raising ResolutionError.
            threshold: Flush as soon as the batch holds more paths than this.
            worker_num: Threads used to resolve a batch.
            maxsize: Event queue bound (0 = unbounded). Producers block when full.
            clock: Wall clock used when a resolution carries no timestamp.
        """
        self._store = store
        self._resolver = resolver
        self._threshold = threshold
        self._worker_num = max(1, worker_num)
        self._clock = clock
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._batch: list[Path] = []
        self._flushing = False
        self._worker_thread: threading.Thread | None = None
        self._stats = IngestStats()
        self._stats_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._worker_thread and self._worker_thread.is_alive():
            logger.warning("IngestActor already running")
            return
        self._worker_thread = threading.Thread(
            target=self._worker_loop, name="IngestActor", daemon=True
        )
        self._worker_thread.start()
        logger.info("IngestActor started")

    def stop(self, timeout: float | None = None) -> None:
        """Sends Shutdown and waits for the final flush to finish."""
        if not self.is_alive():
            return
        self._queue.put(Shutdown())
        self._worker_thread.join(timeout=timeout)
        if self._worker_thread.is_alive():
            logger.warning("IngestActor did not stop within timeout")
        else:
            logger.info("IngestActor stopped")

    def is_alive(self) -> bool:
        return self._worker_thread is not None and self._worker_thread.is_alive()

    # ------------------------------------------------------------------
    # Producers
    # ------------------------------------------------------------------

    def submit(self, event: IngestEvent, block: bool = True, timeout: float | None = None) -> bool:
        """Queues an event. Returns False if the queue stayed full."""
        try:
            self._queue.put(event, block=block, timeout=timeout)
        except queue.Full:
            return False
        return True

    def submit_path(self, path) -> None:
        self.submit(NewPath(Path(path)))

    def tick(self) -> None:
        # A full queue already forces threshold flushes, so the tick can go.
        if not self.submit(Tick(), block=False):
            logger.debug("Event queue full, tick dropped")

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ActorState:
        if self._flushing:
            return ActorState.FLUSHING
        return ActorState.ACCUMULATING if self._batch else ActorState.IDLE

    @property
    def batch_size(self) -> int:
        return len(self._batch)

    def pending_count(self) -> int:
        """Number of events waiting in the queue (approximate)."""
        return self._queue.qsize()

    @property
    def stats(self) -> IngestStats:
        with self._stats_lock:
            return replace(self._stats)

    # ------------------------------------------------------------------
    # Event handling
    # ------------------------------------------------------------------

    def handle_event(self, event: IngestEvent) -> bool:
        """
        Applies one event. Returns False once the actor should stop.
        """
        if isinstance(event, NewPath):
            self._batch.append(event.path)
            with self._stats_lock:
                self._stats.discovered += 1
            if len(self._batch) > self._threshold:
                self.flush()
            return True
        if isinstance(event, Tick):
            if self._batch:
                self.flush()
            return True
        if isinstance(event, Shutdown):
            if self._batch:
                self.flush()
            return False
        raise TypeError(f"Unknown ingest event: {event!r}")

    def _worker_loop(self) -> None:
        running = True
        while running:
            event = self._queue.get()
            try:
                running = self.handle_event(event)
            except Exception as e:
                logger.error(f"Error handling ingest event {event!r}: {e}", exc_info=True)
                # Never keep running past a Shutdown, even one that failed to flush
                running = not isinstance(event, Shutdown)
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Flush
    # ------------------------------------------------------------------

    def flush(self) -> None:
        """Resolves and persists the whole batch, then resets it."""
        batch, self._batch = self._batch, []
        if not batch:
            return
        self._flushing = True
        try:
            records = self._resolve_batch(batch)
            failed = self._persist(records)
        finally:
            self._flushing = False

        with self._stats_lock:
            self._stats.flushes += 1
            self._stats.resolved += len(records)
            self._stats.unresolved += len(batch) - len(records)
            self._stats.persisted += len(records) - len(failed)
            self._stats.failed += len(failed)

        logger.info(
            f"Flushed {len(batch)} paths: {len(records)} resolved, "
            f"{len(records) - len(failed)} persisted, {len(failed)} failed"
        )

    def _resolve_batch(self, batch: list[Path]) -> list[Record]:
        if self._worker_num == 1 or len(batch) == 1:
            outcomes = [self._resolve_one(p) for p in batch]
        else:
            with ThreadPoolExecutor(
                max_workers=self._worker_num, thread_name_prefix="Resolver"
            ) as pool:
                outcomes = list(pool.map(self._resolve_one, batch))
        return [record for record in outcomes if record is not None]

    def _resolve_one(self, path: Path) -> Record | None:
        try:
            resolution = self._resolver(path)
            return record_from_resolution(resolution, self._clock())
        except ResolutionError as e:
            logger.warning(f"Dropping {path}: {e}")
            return None
        except Exception as e:
            logger.error(f"Unexpected error resolving {path}: {e}", exc_info=True)
            return None

    def _persist(self, records: list[Record]) -> list[Record]:
        if not records:
            return []
        try:
            failed = self._store.persist_batch(records)
        except Exception as e:
            logger.error(f"Batch persist failed: {e}", exc_info=True)
            return list(records)
        for record in failed:
            logger.error(f"Record not written: {record}")
        return failed
