"""Diff operation: collect unstaged diffs across repositories."""

import logging
from typing import List

from .base import RepoOperation
from ..core.types import DiffResult, RepositoryHandle

logger = logging.getLogger('multirepo')


class DiffOperation(RepoOperation):
    """Show unstaged changes in every repository."""

    name = "diff"
    description = "Show diffs across repositories"
    show_progress_only = True
    summarize = False

    def __init__(self, config, runner=None, dry_run=False, stat_only: bool = False, **kwargs):
        super().__init__(config, runner, dry_run)
        self.stat_only = stat_only

    def execute(self, repo: RepositoryHandle) -> DiffResult:
        # Diff never fails a repository: unreadable output counts as no diff
        try:
            diff = self.runner.git(repo.path, "diff")
            stat = self.runner.git(repo.path, "diff", "--stat")
        except OSError as e:
            logger.debug(f"{repo.name}: diff failed: {e}")
            return DiffResult(name=repo.name, has_diff=False)

        diff_text = diff.stdout.strip() if diff.ok else ""
        stat_text = stat.stdout.strip() if stat.ok else ""
        return DiffResult(
            name=repo.name,
            has_diff=len(diff_text) > 0,
            diff=diff_text,
            stat=stat_text,
        )

    def post_batch_hook(self, results: List[DiffResult]) -> None:
        changed = [r for r in results if r.has_diff]
        for result in changed:
            print("\n" + "=" * 60)
            print(result.name)
            print("=" * 60)
            print(result.stat if self.stat_only else result.diff)

        print(f"\n{len(changed)} of {len(results)} repositories have changes")
