"""Base classes for repository operations."""

import os
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, List, Optional, Sequence, Tuple

from ..config import Config
from ..core.classifier import RuleSet, classify, outcome_from_exception
from ..core.runner import CancelToken, CommandRunner, get_runner
from ..core.timeout import GitTimeoutError, with_timeout
from ..core.types import OperationOutcome, ProcessResult, RepositoryHandle

logger = logging.getLogger('multirepo')


class Operation(ABC):
    """Abstract base class for repository operations.

    An operation is instantiated once per run and then called concurrently,
    once per item, from the worker pool. execute() must therefore not
    mutate shared state and must return per-item failures as values.
    """

    # Class attributes to be overridden by subclasses
    name: str = "base"
    description: str = "Base operation"
    aliases: Tuple[str, ...] = ()
    show_progress_only: bool = False  # If True, per-repo results are not logged as they finish
    summarize: bool = True  # If True, the CLI prints the success/skipped/failed summary

    def __init__(
        self,
        config: Config,
        runner: Optional[CommandRunner] = None,
        dry_run: bool = False,
        **kwargs: Any
    ):
        """Initialize operation.

        Args:
            config: Runtime configuration
            runner: Command runner (default: the process-wide runner)
            dry_run: If True, report what would happen without changing anything
            **kwargs: Operation-specific parameters (ignored by the base class)
        """
        self.config = config
        self.runner = runner or get_runner()
        self.dry_run = dry_run

    @abstractmethod
    def execute(self, item: Any) -> Any:
        """Execute the operation on one item.

        Args:
            item: Usually a RepositoryHandle

        Returns:
            Result value (OperationOutcome, RepositoryStatus, ExecResult or DiffResult)
        """

    def item_name(self, item: Any) -> str:
        """Display name of an item, for logs."""
        return getattr(item, 'name', str(item))

    def pre_batch_hook(self, items: Sequence[Any]) -> List[Any]:
        """Hook called before the batch is dispatched.

        Args:
            items: Items to process

        Returns:
            The items to actually dispatch
        """
        return list(items)

    def post_batch_hook(self, results: List[Any]) -> None:
        """Hook called after the batch, with the collected results."""
        pass

    def run_with_timeout(self, command: Callable[[CancelToken], ProcessResult]) -> ProcessResult:
        """Run a command under the configured deadline.

        Raises:
            GitTimeoutError: If the deadline passes first
        """
        return with_timeout(command, self.config.timeout_ms, self.config.kill_on_timeout)

    def git_with_timeout(self, repo_path: Optional[str], *args: str) -> ProcessResult:
        """Run a git subcommand under the configured deadline."""
        return self.run_with_timeout(
            lambda token: self.runner.git(repo_path, *args, cancel_token=token)
        )

    def run_classified(
        self,
        name: str,
        rules: RuleSet,
        command: Callable[[], ProcessResult]
    ) -> OperationOutcome:
        """Run a command and classify its result.

        Timeouts and failures to start the process become error outcomes.

        Args:
            name: Repository name
            rules: The operation's classification rules
            command: Zero-argument callable producing a ProcessResult

        Returns:
            OperationOutcome
        """
        try:
            result = command()
        except (GitTimeoutError, OSError) as e:
            return outcome_from_exception(name, e, rules.operation)
        return classify(name, result, rules)

    def get_repo_path(self, name: str) -> str:
        """Get the local path for a repository name under the base directory."""
        return os.path.join(self.config.base_dir, name)


class RepoOperation(Operation):
    """Operation over local repositories (RepositoryHandle items)."""

    @abstractmethod
    def execute(self, item: RepositoryHandle) -> Any:
        """Execute the operation on one local repository."""
