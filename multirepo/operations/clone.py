"""Clone operation: clone missing repositories and pull existing ones."""

import os
import logging
from typing import Any, Callable, Dict, Optional

from .base import Operation
from .pull import PullOperation
from ..core.classifier import CLONE_RULES
from ..core.types import OperationOutcome, OutcomeKind, RepositoryHandle

logger = logging.getLogger('multirepo')

# Pull outcomes as reported by clone for directories that already exist
_PULL_TO_CLONE_KIND = {
    OutcomeKind.UP_TO_DATE: OutcomeKind.ALREADY_UP_TO_DATE,
    OutcomeKind.UPDATED: OutcomeKind.PULLED,
}


class CloneOperation(Operation):
    """Clone repositories listed by the GitHub API into the base directory.

    Items are repository dictionaries as returned by GitHubClient. A target
    directory that already exists is pulled instead of cloned.
    """

    name = "clone"
    description = "Clone active repositories from a GitHub organization or user"

    def __init__(
        self,
        config,
        runner=None,
        dry_run: bool = False,
        clone_url_getter: Optional[Callable[[Dict[str, Any]], str]] = None,
        shallow: bool = False,
        **kwargs
    ):
        """Initialize clone operation.

        Args:
            config: Runtime configuration
            runner: Command runner
            dry_run: Report would-clone / would-pull without touching disk
            clone_url_getter: Callable mapping a repo dict to its clone URL
            shallow: Clone with --depth 1 --single-branch
        """
        super().__init__(config, runner, dry_run)
        self.clone_url_getter = clone_url_getter
        self.shallow = shallow
        self._pull = PullOperation(config, self.runner)

    def item_name(self, item: Dict[str, Any]) -> str:
        return item['name']

    def clone_args(self, url: str, target_path: str):
        args = ["clone"]
        if self.shallow:
            args += ["--depth", "1", "--single-branch"]
        args += [url, target_path]
        return args

    def execute(self, repo: Dict[str, Any]) -> OperationOutcome:
        name = repo['name']
        target_path = self.get_repo_path(name)
        exists = os.path.isdir(target_path)

        if self.dry_run:
            activity = (repo.get('pushed_at') or repo.get('updated_at') or "")[:10]
            detail = f"Last activity: {activity}" if activity else None
            kind = OutcomeKind.WOULD_PULL if exists else OutcomeKind.WOULD_CLONE
            return OperationOutcome.ok(name, kind, detail)

        if exists:
            return self._pull_existing(target_path)

        if self.clone_url_getter:
            url = self.clone_url_getter(repo)
        else:
            url = repo.get('clone_url') or repo['ssh_url']

        args = self.clone_args(url, target_path)
        outcome = self.run_classified(
            name,
            CLONE_RULES,
            lambda: self.git_with_timeout(None, *args)
        )
        if outcome.success and self.shallow:
            return OperationOutcome.ok(name, OutcomeKind.CLONED, "shallow")
        return outcome

    def _pull_existing(self, target_path: str) -> OperationOutcome:
        outcome = self._pull.execute(RepositoryHandle(target_path))
        kind = _PULL_TO_CLONE_KIND.get(outcome.kind)
        if outcome.success and kind is not None:
            return OperationOutcome.ok(outcome.name, kind, outcome.detail)
        return outcome
