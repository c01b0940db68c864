"""Bounded worker pool for fanning one operation out over many items.

Workers are OS threads. Each one repeatedly claims the next unclaimed index
from a shared cursor, runs the operation on that item, stores the result at
the same index and reports progress. Two locks guard the shared state:

    _claim_lock     cursor and cancelled flag; no index is claimed twice
    _progress_lock  completed counter and the progress callback, so
                    callbacks arrive strictly in completed order
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Generic, List, Optional, Sequence, TypeVar

logger = logging.getLogger('multirepo')

T = TypeVar('T')
R = TypeVar('R')

ProgressCallback = Callable[[int, int], None]
CancelPredicate = Callable[[], bool]

# Marks result slots whose item was never claimed
_UNCLAIMED = object()


@dataclass
class PoolResult(Generic[R]):
    """Results of one pool run.

    results[i] belongs to items[i]; slots for items that were never claimed
    (because the run was cancelled) are None. present[i] tells such a slot
    apart from an operation that returned None; when present is omitted,
    None slots count as absent.
    """
    results: List[Optional[R]] = field(default_factory=list)
    cancelled: bool = False
    present: Optional[List[bool]] = None

    def _present(self) -> List[bool]:
        if self.present is not None:
            return self.present
        return [r is not None for r in self.results]

    @property
    def collected(self) -> List[R]:
        """Present results, in input order."""
        return [r for r, ok in zip(self.results, self._present()) if ok]

    @property
    def processed(self) -> int:
        return sum(self._present())


class _SchedulerRun(Generic[T, R]):
    """State of a single run_parallel() call."""

    def __init__(
        self,
        items: Sequence[T],
        operation: Callable[[T, int], R],
        on_progress: Optional[ProgressCallback],
        should_cancel: Optional[CancelPredicate]
    ):
        self.items = items
        self.operation = operation
        self.on_progress = on_progress
        self.should_cancel = should_cancel
        self.total = len(items)

        self.cursor = 0
        self.completed = 0
        self.cancelled = False
        self.aborted = False
        self.results: List[Any] = [_UNCLAIMED] * self.total

        self._claim_lock = threading.Lock()
        self._progress_lock = threading.Lock()

    def claim(self) -> Optional[int]:
        """Claim the next index, or None when this worker should stop."""
        with self._claim_lock:
            if self.aborted or self.cursor >= self.total:
                return None
            if self.should_cancel is not None and self.should_cancel():
                self.cancelled = True
                return None
            index = self.cursor
            self.cursor += 1
            return index

    def complete(self, index: int, result: R) -> None:
        """Record a result and report progress."""
        self.results[index] = result
        with self._progress_lock:
            self.completed += 1
            if self.on_progress is not None:
                self.on_progress(self.completed, self.total)

    def abort(self) -> None:
        """Stop all further claims after a worker raised."""
        with self._claim_lock:
            self.aborted = True

    def work(self) -> None:
        """Worker loop."""
        while True:
            index = self.claim()
            if index is None:
                return
            try:
                result = self.operation(self.items[index], index)
                self.complete(index, result)
            except BaseException:
                self.abort()
                raise


def run_parallel(
    items: Sequence[T],
    operation: Callable[[T, int], R],
    concurrency: int = 10,
    on_progress: Optional[ProgressCallback] = None,
    should_cancel: Optional[CancelPredicate] = None
) -> PoolResult[R]:
    """Run an operation over items with at most `concurrency` in flight.

    Per-item failures should be returned as values; an exception raised by
    the operation or by on_progress stops further dispatch and is re-raised here once the
    in-flight items have finished.

    Cancellation is cooperative: once should_cancel() returns True no new
    item is claimed, but items already running complete and are recorded.

    Args:
        items: Work items
        operation: Callable taking (item, index)
        concurrency: Maximum number of items in flight
        on_progress: Optional callback taking (completed, total)
        should_cancel: Optional predicate polled before each claim

    Returns:
        PoolResult with results in input order and the cancelled flag
    """
    worker_count = min(concurrency, len(items))
    if worker_count <= 0:
        return PoolResult(results=[], cancelled=False)

    run = _SchedulerRun(items, operation, on_progress, should_cancel)
    logger.debug(f"Dispatching {run.total} items on {worker_count} workers")

    with ThreadPoolExecutor(max_workers=worker_count, thread_name_prefix="multirepo") as executor:
        futures = [executor.submit(run.work) for _ in range(worker_count)]

    # Leaving the executor waited for every worker; surface the first error
    for future in futures:
        error = future.exception()
        if error is not None:
            raise error

    if run.cancelled:
        logger.info(f"Cancelled after {run.completed} of {run.total} items")

    return PoolResult(
        results=[None if r is _UNCLAIMED else r for r in run.results],
        cancelled=run.cancelled,
        present=[r is not _UNCLAIMED for r in run.results],
    )
