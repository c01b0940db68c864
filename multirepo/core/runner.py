"""Subprocess execution for git and shell commands."""

import os
import logging
import subprocess
import threading
from typing import Callable, Dict, List, Optional, Sequence

from .types import ProcessResult

logger = logging.getLogger('multirepo')


# Disables git-lfs filters so destructive resets work without git-lfs installed
LFS_BYPASS_ENV: Dict[str, str] = {
    'GIT_LFS_SKIP_SMUDGE': '1',
    'GIT_CONFIG_COUNT': '4',
    'GIT_CONFIG_KEY_0': 'filter.lfs.smudge',
    'GIT_CONFIG_VALUE_0': 'cat',
    'GIT_CONFIG_KEY_1': 'filter.lfs.clean',
    'GIT_CONFIG_VALUE_1': 'cat',
    'GIT_CONFIG_KEY_2': 'filter.lfs.process',
    'GIT_CONFIG_VALUE_2': '',
    'GIT_CONFIG_KEY_3': 'filter.lfs.required',
    'GIT_CONFIG_VALUE_3': 'false',
}


class CancelToken:
    """Cancellation handle passed to an operation by the timeout wrapper.

    Callbacks registered with on_cancel() run once, when cancel() is called,
    or immediately if the token is already cancelled.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._cancelled = False
        self._callbacks: List[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Register a callback to run on cancellation.

        Args:
            callback: Zero-argument callable
        """
        with self._lock:
            if not self._cancelled:
                self._callbacks.append(callback)
                return
        callback()

    def cancel(self) -> None:
        """Cancel the token and run the registered callbacks."""
        with self._lock:
            if self._cancelled:
                return
            self._cancelled = True
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            try:
                callback()
            except OSError as e:
                logger.debug(f"Cancel callback failed: {e}")


class CommandRunner:
    """Runs commands and captures their output.

    This is the only place the engine touches subprocess. Tests replace it
    with a scripted fake.
    """

    def run(
        self,
        argv: Sequence[str],
        cwd: Optional[str] = None,
        env: Optional[Dict[str, str]] = None,
        cancel_token: Optional[CancelToken] = None
    ) -> ProcessResult:
        """Run a command to completion.

        Args:
            argv: Command and arguments
            cwd: Working directory override
            env: Environment variables merged over the current environment
            cancel_token: Optional token; cancelling it kills the process

        Returns:
            ProcessResult with exit code and decoded output

        Raises:
            FileNotFoundError: If the executable does not exist
        """
        full_env = None
        if env:
            full_env = os.environ.copy()
            full_env.update(env)

        logger.debug(f"Running {' '.join(argv)} (cwd={cwd})")

        proc = subprocess.Popen(
            list(argv),
            cwd=cwd,
            env=full_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            errors='replace'
        )

        if cancel_token is not None:
            cancel_token.on_cancel(proc.kill)

        stdout, stderr = proc.communicate()
        return ProcessResult(
            exit_code=proc.returncode,
            stdout=stdout or "",
            stderr=stderr or ""
        )

    def git(
        self,
        repo_path: Optional[str],
        *args: str,
        env: Optional[Dict[str, str]] = None,
        cancel_token: Optional[CancelToken] = None
    ) -> ProcessResult:
        """Run a git subcommand, optionally against a repository.

        Args:
            repo_path: Repository path passed with -C, or None
            *args: git arguments
            env: Extra environment variables
            cancel_token: Optional cancellation token

        Returns:
            ProcessResult
        """
        argv = ["git"]
        if repo_path is not None:
            argv += ["-C", repo_path]
        argv += list(args)
        return self.run(argv, env=env, cancel_token=cancel_token)

    def shell(
        self,
        command: str,
        cwd: str,
        cancel_token: Optional[CancelToken] = None
    ) -> ProcessResult:
        """Run a command line through sh -c in a directory.

        Args:
            command: Shell command line
            cwd: Working directory
            cancel_token: Optional cancellation token

        Returns:
            ProcessResult
        """
        return self.run(["sh", "-c", command], cwd=cwd, cancel_token=cancel_token)


_default_runner = CommandRunner()


def get_runner() -> CommandRunner:
    """Get the process-wide default runner."""
    return _default_runner
