"""Exec operation: run a shell command in every repository."""

import logging
from typing import List

from .base import RepoOperation
from ..core.timeout import GitTimeoutError
from ..core.types import ExecResult, RepositoryHandle

logger = logging.getLogger('multirepo')


class ExecOperation(RepoOperation):
    """Run an arbitrary shell command with each repository as working directory."""

    name = "exec"
    description = "Run a command in every repository"
    show_progress_only = True

    def __init__(self, config, runner=None, dry_run=False, command: str = "", **kwargs):
        """Initialize exec operation.

        Args:
            config: Runtime configuration
            runner: Command runner
            dry_run: Unused
            command: Shell command line, run through `sh -c`

        Raises:
            ValueError: If no command is given
        """
        super().__init__(config, runner, dry_run)
        if not command:
            raise ValueError("exec requires a command")
        self.command = command

    def execute(self, repo: RepositoryHandle) -> ExecResult:
        try:
            result = self.run_with_timeout(
                lambda token: self.runner.shell(self.command, repo.path, cancel_token=token)
            )
        except (GitTimeoutError, OSError) as e:
            return ExecResult(
                name=repo.name,
                success=False,
                exit_code=1,
                output="",
                error=str(e),
            )

        stdout = result.stdout.strip()
        stderr = result.stderr.strip()
        return ExecResult(
            name=repo.name,
            success=result.ok,
            exit_code=result.exit_code,
            output=stdout or stderr,
            error=None if result.ok else (stderr or stdout),
        )

    def post_batch_hook(self, results: List[ExecResult]) -> None:
        for result in results:
            marker = "✓" if result.success else "✗"
            print(f"\n{marker} {result.name} (exit {result.exit_code})")
            text = result.output if result.success else result.error
            if text:
                for line in text.splitlines():
                    print(f"  {line}")
