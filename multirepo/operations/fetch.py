"""Fetch operation: update remote-tracking refs without touching work trees."""

from .base import RepoOperation
from ..core.classifier import FETCH_RULES
from ..core.types import OperationOutcome, RepositoryHandle


class FetchOperation(RepoOperation):
    """Fetch from remotes for all repositories."""

    name = "fetch"
    description = "Fetch from remotes for all repositories"

    def __init__(self, config, runner=None, dry_run=False, prune: bool = False, all_remotes: bool = False, **kwargs):
        """Initialize fetch operation.

        Args:
            config: Runtime configuration
            runner: Command runner
            dry_run: Unused; fetching never changes work trees
            prune: Remove remote-tracking refs that no longer exist
            all_remotes: Fetch from every remote, not just the default
        """
        super().__init__(config, runner, dry_run)
        self.prune = prune
        self.all_remotes = all_remotes

    def fetch_args(self):
        args = ["fetch"]
        if self.prune:
            args.append("--prune")
        if self.all_remotes:
            args.append("--all")
        return args

    def execute(self, repo: RepositoryHandle) -> OperationOutcome:
        args = self.fetch_args()
        return self.run_classified(
            repo.name,
            FETCH_RULES,
            lambda: self.git_with_timeout(repo.path, *args)
        )
