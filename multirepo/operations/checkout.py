"""Checkout operation: switch every repository to a branch."""

from .base import RepoOperation
from ..core.classifier import CHECKOUT_RULES
from ..core.types import OperationOutcome, OutcomeKind, RepositoryHandle


class CheckoutOperation(RepoOperation):
    """Switch branches across repositories, optionally creating the branch."""

    name = "checkout"
    description = "Switch branches across repositories"

    def __init__(self, config, runner=None, dry_run=False, branch: str = "", create: bool = False, **kwargs):
        """Initialize checkout operation.

        Args:
            config: Runtime configuration
            runner: Command runner
            dry_run: Unused
            branch: Branch to switch to
            create: Create the branch with `checkout -b`

        Raises:
            ValueError: If no branch is given
        """
        super().__init__(config, runner, dry_run)
        if not branch:
            raise ValueError("checkout requires a branch name")
        self.branch = branch
        self.create = create
        self.rules = CHECKOUT_RULES.with_context(branch=branch)

    def execute(self, repo: RepositoryHandle) -> OperationOutcome:
        args = ["checkout"]
        if self.create:
            args.append("-b")
        args.append(self.branch)

        # Local command: no deadline
        outcome = self.run_classified(
            repo.name,
            self.rules,
            lambda: self.runner.git(repo.path, *args)
        )
        if not outcome.success:
            return outcome
        kind = OutcomeKind.CREATED if self.create else OutcomeKind.SWITCHED
        return OperationOutcome.ok(repo.name, kind, f"→ {self.branch}")
