"""Pull operation: fast-forward local repositories from their upstream."""

import logging
from typing import Optional

from .base import RepoOperation
from ..core.classifier import PULL_RULES, FETCH_RULES
from ..core.prober import probe
from ..core.types import (
    OperationOutcome,
    OutcomeKind,
    RepositoryHandle,
    RepositoryStatus,
)

logger = logging.getLogger('multirepo')


def pull_skip_reason(status: RepositoryStatus) -> Optional[str]:
    """Check the preconditions for pulling a repository.

    Untracked and deleted files do not block a pull.

    Args:
        status: Probed repository status

    Returns:
        Skip reason, or None if the pull may proceed
    """
    if status.modified > 0 or status.staged > 0:
        return "Has uncommitted changes"
    if not status.has_upstream:
        return "No upstream configured"
    return None


class PullOperation(RepoOperation):
    """Pull updates for repositories with a clean index and an upstream."""

    name = "pull"
    description = "Pull updates for all repositories"
    aliases = ("update",)

    def execute(self, repo: RepositoryHandle) -> OperationOutcome:
        if self.dry_run:
            return self._preview(repo)

        status = probe(repo, self.runner)
        skip_reason = pull_skip_reason(status)
        if skip_reason:
            return OperationOutcome.skipped(repo.name, skip_reason)

        return self.run_classified(
            repo.name,
            PULL_RULES,
            lambda: self.git_with_timeout(repo.path, "pull")
        )

    def _preview(self, repo: RepositoryHandle) -> OperationOutcome:
        """Fetch, then report whether a pull would bring in commits."""
        # On fetch failure the preview uses the existing remote-tracking refs
        fetched = self.run_classified(
            repo.name,
            FETCH_RULES,
            lambda: self.git_with_timeout(repo.path, "fetch")
        )
        if fetched.is_failed:
            logger.debug(f"{repo.name}: fetch before preview failed: {fetched.error}")

        status = probe(repo, self.runner)
        skip_reason = pull_skip_reason(status)
        if skip_reason:
            return OperationOutcome.skipped(repo.name, skip_reason)
        if status.behind > 0:
            return OperationOutcome.ok(
                repo.name,
                OutcomeKind.WOULD_UPDATE,
                f"{status.behind} commit(s) behind"
            )
        return OperationOutcome.ok(repo.name, OutcomeKind.UP_TO_DATE)
