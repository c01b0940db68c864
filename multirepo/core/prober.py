"""Repository state probing from git's machine-readable output."""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple, Union

from .runner import CommandRunner, get_runner
from .types import RepositoryHandle, RepositoryStatus, repo_name

logger = logging.getLogger('multirepo')

DETACHED = "detached"


@dataclass(frozen=True)
class ChangeCounts:
    """Counts parsed from `git status --porcelain`."""
    modified: int = 0
    staged: int = 0
    untracked: int = 0
    deleted: int = 0


def parse_porcelain(text: str) -> ChangeCounts:
    """Count changes in porcelain status output.

    Lines are not stripped: a leading space is the (empty) index column,
    as in " M file.txt".

    Args:
        text: Raw stdout of `git status --porcelain`

    Returns:
        ChangeCounts
    """
    modified = staged = untracked = deleted = 0

    for line in text.split("\n"):
        if len(line) < 2:
            continue
        index_status = line[0]
        worktree_status = line[1]

        if index_status not in (" ", "?"):
            staged += 1
        if worktree_status == "M":
            modified += 1
        elif worktree_status == "D":
            deleted += 1
        if index_status == "?":
            untracked += 1

    return ChangeCounts(modified=modified, staged=staged, untracked=untracked, deleted=deleted)


def _path_of(repo: Union[RepositoryHandle, str]) -> str:
    return repo.path if isinstance(repo, RepositoryHandle) else repo


def is_git_repo(path: str, runner: Optional[CommandRunner] = None) -> bool:
    """Check if a path is inside a git work tree.

    Args:
        path: Directory to check
        runner: Optional command runner

    Returns:
        True if git recognises the directory
    """
    runner = runner or get_runner()
    try:
        return runner.git(path, "rev-parse", "--git-dir").ok
    except OSError:
        return False


def current_branch(path: str, runner: Optional[CommandRunner] = None) -> str:
    """Get the current branch name.

    Args:
        path: Repository path
        runner: Optional command runner

    Returns:
        Branch name, or "detached" when HEAD is detached or git fails
    """
    runner = runner or get_runner()
    try:
        result = runner.git(path, "branch", "--show-current")
    except OSError as e:
        logger.debug(f"{repo_name(path)}: failed to read branch: {e}")
        return DETACHED
    if not result.ok:
        return DETACHED
    return result.stdout.strip() or DETACHED


def _change_counts(path: str, runner: CommandRunner) -> ChangeCounts:
    try:
        result = runner.git(path, "status", "--porcelain")
    except OSError as e:
        logger.debug(f"{repo_name(path)}: failed to read status: {e}")
        return ChangeCounts()
    if not result.ok:
        return ChangeCounts()
    return parse_porcelain(result.stdout)


def upstream_ref(path: str, runner: Optional[CommandRunner] = None) -> Optional[str]:
    """Get the upstream ref of the current branch.

    Args:
        path: Repository path
        runner: Optional command runner

    Returns:
        Upstream name such as 'origin/main', or None if there is none
    """
    runner = runner or get_runner()
    try:
        result = runner.git(path, "rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}")
    except OSError:
        return None
    upstream = result.stdout.strip()
    if not result.ok or not upstream:
        return None
    return upstream


def _count(path: str, revision_range: str, runner: CommandRunner) -> int:
    try:
        result = runner.git(path, "rev-list", "--count", revision_range)
    except OSError:
        return 0
    if not result.ok:
        return 0
    try:
        return int(result.stdout.strip())
    except ValueError:
        return 0


def _sync_counts(path: str, runner: CommandRunner) -> Tuple[bool, int, int]:
    upstream = upstream_ref(path, runner)
    if upstream is None:
        return False, 0, 0

    behind = _count(path, f"HEAD..{upstream}", runner)
    ahead = _count(path, f"{upstream}..HEAD", runner)
    return True, ahead, behind


def probe(
    repo: Union[RepositoryHandle, str],
    runner: Optional[CommandRunner] = None
) -> RepositoryStatus:
    """Derive the status of one repository.

    Every step is best-effort: a failing git call leaves its fields at
    their zero values instead of failing the whole probe.

    Args:
        repo: Repository handle or path
        runner: Optional command runner

    Returns:
        RepositoryStatus
    """
    runner = runner or get_runner()
    path = _path_of(repo)
    name = repo_name(path)

    branch = current_branch(path, runner)
    changes = _change_counts(path, runner)
    has_upstream, ahead, behind = _sync_counts(path, runner)

    status = RepositoryStatus(
        name=name,
        path=path,
        branch=branch,
        modified=changes.modified,
        staged=changes.staged,
        untracked=changes.untracked,
        deleted=changes.deleted,
        ahead=ahead,
        behind=behind,
        has_upstream=has_upstream,
    )
    logger.debug(
        f"{name}: branch={branch}, modified={status.modified}, staged={status.staged}, "
        f"untracked={status.untracked}, deleted={status.deleted}, "
        f"ahead={ahead}, behind={behind}, upstream={has_upstream}"
    )
    return status
