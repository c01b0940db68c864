"""Status operation: report working tree and sync state of repositories."""

import logging
from collections import defaultdict
from typing import Dict, List

from .base import RepoOperation
from ..core.prober import probe
from ..core.types import RepositoryHandle, RepositoryStatus

logger = logging.getLogger('multirepo')

# Order in which categories are printed
CATEGORY_ORDER = [
    "In sync",
    "Unpushed changes",
    "Unpulled changes",
    "Diverged",
    "Uncommitted changes",
    "Detached HEAD",
    "No upstream",
]

# Categories that always list their repositories
ACTIONABLE = {"Uncommitted changes", "Unpushed changes", "Unpulled changes", "Diverged"}


def categorize(status: RepositoryStatus) -> str:
    """Map a repository status to one summary category.

    Args:
        status: Probed status

    Returns:
        Category name from CATEGORY_ORDER
    """
    if status.is_detached:
        return "Detached HEAD"
    if not status.is_clean:
        return "Uncommitted changes"
    if not status.has_upstream:
        return "No upstream"
    if status.ahead > 0 and status.behind > 0:
        return "Diverged"
    if status.behind > 0:
        return "Unpulled changes"
    if status.ahead > 0:
        return "Unpushed changes"
    return "In sync"


def describe(status: RepositoryStatus) -> str:
    """One-line description of a status, e.g. "main: 2 modified, ↓3"."""
    parts = []
    for label, count in (
        ("modified", status.modified),
        ("staged", status.staged),
        ("untracked", status.untracked),
        ("deleted", status.deleted),
    ):
        if count:
            parts.append(f"{count} {label}")
    if status.ahead:
        parts.append(f"↑{status.ahead}")
    if status.behind:
        parts.append(f"↓{status.behind}")
    if not status.has_upstream:
        parts.append("no upstream")
    text = status.branch
    if parts:
        text += ": " + ", ".join(parts)
    return text


class StatusOperation(RepoOperation):
    """Report the status of every repository; never modifies anything."""

    name = "status"
    description = "Show status of all repositories"
    show_progress_only = True
    summarize = False

    def __init__(self, config, runner=None, dry_run=False, summary_only: bool = False, **kwargs):
        """Initialize status operation.

        Args:
            config: Runtime configuration
            runner: Command runner
            dry_run: Unused; status is read-only
            summary_only: Print only category counts
        """
        super().__init__(config, runner, dry_run)
        self.summary_only = summary_only

    def execute(self, repo: RepositoryHandle) -> RepositoryStatus:
        return probe(repo, self.runner)

    def post_batch_hook(self, results: List[RepositoryStatus]) -> None:
        """Print the status distribution after all repositories are probed."""
        categories: Dict[str, List[RepositoryStatus]] = defaultdict(list)
        for status in results:
            categories[categorize(status)].append(status)

        if not self.summary_only:
            print()
            for status in results:
                marker = "✓" if categorize(status) == "In sync" else "●"
                print(f"{marker} {status.name:<30} {describe(status)}")

        print("\n" + "=" * 60)
        print("STATUS DISTRIBUTION")
        print("=" * 60)

        for category in CATEGORY_ORDER:
            if category not in categories:
                continue
            statuses = categories[category]
            count = len(statuses)
            print(f"\n{category}: {count} {'repository' if count == 1 else 'repositories'}")

            if self.summary_only:
                continue
            if category in ACTIONABLE or count <= 10:
                for status in statuses:
                    print(f"  - {status.name} ({describe(status)})")

        print("=" * 60)
