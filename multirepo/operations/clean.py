"""Clean operation: discard local changes in repositories."""

import logging
from typing import List, Optional, Sequence

from .base import RepoOperation
from ..core.classifier import RESET_RULES, CLEAN_UNTRACKED_RULES
from ..core.prober import probe
from ..core.runner import LFS_BYPASS_ENV
from ..core.types import OperationOutcome, OutcomeKind, RepositoryHandle, RepositoryStatus

logger = logging.getLogger('multirepo')


def tracked_changes(status: RepositoryStatus) -> int:
    """Number of tracked files that `reset --hard` would revert."""
    return status.modified + status.staged + status.deleted


def is_dirty(status: RepositoryStatus, include_untracked: bool = False) -> bool:
    """Check if clean would change anything in a repository."""
    if tracked_changes(status) > 0:
        return True
    return include_untracked and status.untracked > 0


def clean_detail(reverted: int, removed: int) -> Optional[str]:
    """Build the detail text, e.g. "3 reverted, 1 removed"."""
    parts = []
    if reverted > 0:
        parts.append(f"{reverted} reverted")
    if removed > 0:
        parts.append(f"{removed} removed")
    return ", ".join(parts) or None


class CleanOperation(RepoOperation):
    """Revert tracked changes and optionally remove untracked files.

    Both git commands run with git-lfs filters disabled.
    """

    name = "clean"
    description = "Discard local changes in all repositories"

    def __init__(self, config, runner=None, dry_run=False, include_untracked: bool = False, **kwargs):
        """Initialize clean operation.

        Args:
            config: Runtime configuration
            runner: Command runner
            dry_run: Report would-clean without discarding anything
            include_untracked: Also run `git clean -fd`
        """
        super().__init__(config, runner, dry_run)
        self.include_untracked = include_untracked

    def pre_batch_hook(self, items: Sequence[RepositoryHandle]) -> List[RepositoryHandle]:
        logger.info(f"Cleaning {len(items)} repositories"
                    f"{' (including untracked files)' if self.include_untracked else ''}")
        return list(items)

    def execute(self, repo: RepositoryHandle) -> OperationOutcome:
        status = probe(repo, self.runner)
        to_revert = tracked_changes(status)
        to_remove = status.untracked if self.include_untracked else 0

        if not is_dirty(status, self.include_untracked):
            return OperationOutcome.ok(repo.name, OutcomeKind.ALREADY_CLEAN)

        if self.dry_run:
            return OperationOutcome.ok(
                repo.name,
                OutcomeKind.WOULD_CLEAN,
                clean_detail(to_revert, to_remove)
            )

        if to_revert > 0:
            outcome = self.run_classified(
                repo.name,
                RESET_RULES,
                lambda: self.runner.git(repo.path, "reset", "--hard", "HEAD", env=LFS_BYPASS_ENV)
            )
            if not outcome.success:
                return outcome

        if to_remove > 0:
            outcome = self.run_classified(
                repo.name,
                CLEAN_UNTRACKED_RULES,
                lambda: self.runner.git(repo.path, "clean", "-fd", env=LFS_BYPASS_ENV)
            )
            if not outcome.success:
                return outcome

        return OperationOutcome.ok(
            repo.name,
            OutcomeKind.CLEANED,
            clean_detail(to_revert, to_remove)
        )
