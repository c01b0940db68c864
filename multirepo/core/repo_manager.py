"""Repository manager for orchestrating operations."""

import signal
import logging
import threading
from contextlib import contextmanager
from typing import Any, List, Optional, Sequence

from .pool import PoolResult, run_parallel
from ..operations.base import Operation
from ..utils.progress import ProgressTracker, result_state

logger = logging.getLogger('multirepo')


class RepoManager:
    """Runs one operation over many repositories through the worker pool."""

    def __init__(self, concurrency: int = 10, show_progress: bool = True):
        """Initialize repository manager.

        Args:
            concurrency: Maximum number of repositories processed at once
            show_progress: Draw a progress bar on stderr
        """
        self.concurrency = concurrency
        self.show_progress = show_progress
        self._cancel = threading.Event()

    def cancel(self) -> None:
        """Stop dispatching new repositories; in-flight ones still finish."""
        if not self._cancel.is_set():
            logger.warning("Cancelling: waiting for in-flight repositories to finish")
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    def execute_operation(self, operation: Operation, items: Sequence[Any]) -> PoolResult:
        """Execute an operation on a list of items.

        Args:
            operation: Operation instance
            items: Repository handles (or API dictionaries for clone)

        Returns:
            PoolResult with results in input order
        """
        items = operation.pre_batch_hook(items)

        logger.info(f"Executing operation: {operation.name}")
        logger.debug(f"Description: {operation.description}")
        logger.info(f"Repositories: {len(items)}")
        if operation.dry_run:
            logger.info("Dry run: no changes will be made")

        tracker = ProgressTracker(len(items), operation.name) if self.show_progress else None

        def process(item: Any, index: int) -> Any:
            result = operation.execute(item)
            if tracker is not None:
                tracker.record(result)
            if not operation.show_progress_only:
                self._log_result(operation.item_name(item), result)
            return result

        with self._cancel_on_interrupt():
            pool_result = run_parallel(
                items,
                process,
                concurrency=self.concurrency,
                on_progress=tracker.tick if tracker is not None else None,
                should_cancel=self._cancel.is_set
            )

        if tracker is not None:
            tracker.finish(cancelled=pool_result.cancelled)

        operation.post_batch_hook(pool_result.collected)
        return pool_result

    @contextmanager
    def _cancel_on_interrupt(self):
        """Turn Ctrl-C into a cancel request while the pool runs."""
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        previous = signal.getsignal(signal.SIGINT)
        signal.signal(signal.SIGINT, lambda signum, frame: self.cancel())
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)

    def _log_result(self, name: str, result: Any) -> None:
        """Log one result with a ✓ / ⊘ / ✗ marker.

        Args:
            name: Repository name
            result: Operation result
        """
        state = result_state(result)
        message = getattr(result, 'message', None) or ""
        if state == 'success':
            logger.info(f"✓ {name}: {message}")
        elif state == 'skipped':
            logger.info(f"⊘ {name}: {message}")
        else:
            logger.error(f"✗ {name}: {message}")


def failed_count(results: List[Any]) -> int:
    """Count failed results; skips are not failures."""
    return sum(1 for r in results if result_state(r) == 'failed')
