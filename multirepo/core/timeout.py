"""Deadline wrapper for subprocess-backed operations."""

import logging
import threading
from typing import Callable, Optional, TypeVar

from .runner import CancelToken

logger = logging.getLogger('multirepo')

T = TypeVar('T')


def whole_seconds(ms: int) -> int:
    """Milliseconds to seconds, rounding halves up (2500 -> 3)."""
    return int(ms / 1000 + 0.5)


class GitTimeoutError(Exception):
    """Raised when an operation does not finish before its deadline."""

    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"timed out after {whole_seconds(timeout_ms)}s")


class _Outcome:
    """Result slot filled in by the operation thread."""

    def __init__(self):
        self.done = threading.Event()
        self.value = None
        self.error: Optional[BaseException] = None


def with_timeout(
    operation: Callable[[CancelToken], T],
    timeout_ms: int,
    kill_on_timeout: bool = False
) -> T:
    """Run an operation, giving up on it after a deadline.

    The operation runs on a daemon thread and receives a CancelToken. When
    the deadline passes first, GitTimeoutError is raised immediately. By
    default the operation is abandoned: any subprocess it started keeps
    running until it exits by itself. With kill_on_timeout the token is
    cancelled, which kills subprocesses registered on it.

    Args:
        operation: Callable taking a CancelToken
        timeout_ms: Deadline in milliseconds
        kill_on_timeout: Terminate the child process on expiry

    Returns:
        Whatever the operation returns

    Raises:
        GitTimeoutError: If the deadline expires first
        Exception: Anything the operation raises
    """
    token = CancelToken()
    outcome = _Outcome()

    def target():
        try:
            outcome.value = operation(token)
        except BaseException as e:
            outcome.error = e
        finally:
            outcome.done.set()

    worker = threading.Thread(target=target, name="multirepo-timeout", daemon=True)
    worker.start()

    if not outcome.done.wait(timeout_ms / 1000):
        if kill_on_timeout:
            logger.debug(f"Deadline of {timeout_ms}ms passed, killing operation")
            token.cancel()
        else:
            logger.debug(f"Deadline of {timeout_ms}ms passed, abandoning operation")
        raise GitTimeoutError(timeout_ms)

    if outcome.error is not None:
        raise outcome.error
    return outcome.value
