"""Progress tracking and summary rendering."""

import sys
import logging
import threading
from typing import Any, List, Optional

logger = logging.getLogger('multirepo')


def result_state(result: Any) -> str:
    """Classify any per-repository result as 'success', 'skipped' or 'failed'.

    Works for OperationOutcome, ExecResult, DiffResult and RepositoryStatus;
    results without an is_failed attribute count as successes.
    """
    if getattr(result, 'is_skipped', False):
        return 'skipped'
    if getattr(result, 'is_failed', False):
        return 'failed'
    return 'success'


class ProgressTracker:
    """Track and display progress for repository operations.

    record() is called from worker threads; tick() is called by the pool
    under its progress lock with strictly increasing completed counts.
    """

    def __init__(self, total: int, operation_name: str, stream=None):
        """Initialize progress tracker.

        Args:
            total: Total number of repositories to process
            operation_name: Name of the operation being performed
            stream: Output stream (default: stderr)
        """
        self.total = total
        self.operation_name = operation_name
        self.stream = stream or sys.stderr
        self.completed = 0
        self.success_count = 0
        self.skipped_count = 0
        self.failed_count = 0
        self.current_repo: Optional[str] = None
        self._lock = threading.Lock()

    def record(self, result: Any) -> None:
        """Count a finished result."""
        state = result_state(result)
        with self._lock:
            self.current_repo = getattr(result, 'name', None)
            if state == 'success':
                self.success_count += 1
            elif state == 'skipped':
                self.skipped_count += 1
            else:
                self.failed_count += 1

    def tick(self, completed: int, total: int) -> None:
        """Progress callback for run_parallel()."""
        self.completed = completed
        self.total = total
        self.display()

    def display(self) -> None:
        """Display current progress."""
        percentage = (self.completed / self.total * 100) if self.total > 0 else 0

        bar_width = 20
        filled = int(bar_width * self.completed / self.total) if self.total > 0 else 0
        bar = '█' * filled + '░' * (bar_width - filled)

        status = f"\r[{bar}] {percentage:.0f}% ({self.completed}/{self.total}) "
        if self.current_repo:
            status += f"Current: {self.current_repo} "
        status += f"✓{self.success_count} ⊘{self.skipped_count} ✗{self.failed_count}"

        self.stream.write(status)
        self.stream.flush()

    def finish(self, cancelled: bool = False) -> None:
        """Finish progress tracking."""
        self.stream.write("\n")
        self.stream.flush()

        if cancelled:
            logger.warning(f"Cancelled {self.operation_name}: {self.completed} of {self.total} processed")
        else:
            logger.info(f"Completed {self.operation_name} operation")
        logger.info(f"Total: {self.total}, Success: {self.success_count}, "
                    f"Skipped: {self.skipped_count}, Failed: {self.failed_count}")


def _result_message(result: Any) -> str:
    message = getattr(result, 'message', None)
    if message:
        return message
    return getattr(result, 'error', None) or ""


def print_summary(
    results: List[Any],
    operation_name: str,
    total: Optional[int] = None,
    cancelled: bool = False
) -> None:
    """Print operation summary.

    Args:
        results: Collected per-repository results
        operation_name: Name of the operation
        total: Number of repositories requested (default: len(results))
        cancelled: Whether the run was cancelled before finishing
    """
    total = len(results) if total is None else total
    states = [result_state(r) for r in results]
    success = states.count('success')
    skipped = states.count('skipped')
    failed = states.count('failed')

    print("\n" + "=" * 60)
    print(f"SUMMARY: {operation_name.upper()}")
    print("=" * 60)
    if cancelled:
        print(f"Cancelled: {len(results)} of {total} processed")
    print(f"Total repositories: {total}")
    print(f"✓ Success: {success}")
    print(f"⊘ Skipped: {skipped}")
    print(f"✗ Failed: {failed}")

    if failed > 0:
        print("\nFailed repositories:")
        for result, state in zip(results, states):
            if state == 'failed':
                print(f"  - {result.name}: {_result_message(result)}")

    if 0 < skipped <= 10:
        print("\nSkipped repositories:")
        for result, state in zip(results, states):
            if state == 'skipped':
                print(f"  - {result.name}: {_result_message(result)}")

    print("=" * 60)
