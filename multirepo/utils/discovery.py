"""Repository discovery and name filtering."""

import os
import re
import logging
from typing import List, Optional

from ..core.prober import is_git_repo
from ..core.runner import CommandRunner
from ..core.types import RepositoryHandle

logger = logging.getLogger('multirepo')

IGNORED_DIRS = {"node_modules"}


def find_repos(base_path: Optional[str] = None, runner: Optional[CommandRunner] = None) -> List[RepositoryHandle]:
    """Find git repositories directly under a directory.

    Only immediate children are considered; hidden directories are skipped.

    Args:
        base_path: Directory to scan (default: current directory)
        runner: Optional command runner

    Returns:
        Handles sorted by path; empty if base_path cannot be read
    """
    base_path = base_path or os.getcwd()
    try:
        entries = sorted(os.scandir(base_path), key=lambda e: e.name)
    except OSError as e:
        logger.warning(f"Cannot read {base_path}: {e}")
        return []

    repos = []
    for entry in entries:
        if entry.name.startswith(".") or entry.name in IGNORED_DIRS:
            continue
        if not entry.is_dir():
            continue
        # .git is a directory, or a file for worktrees and submodules
        if not os.path.exists(os.path.join(entry.path, ".git")):
            continue
        if is_git_repo(entry.path, runner):
            repos.append(RepositoryHandle(entry.path))

    logger.debug(f"Found {len(repos)} repositories in {base_path}")
    return sorted(repos, key=lambda r: r.path)


def pattern_to_regex(pattern: str) -> "re.Pattern[str]":
    """Compile a `*` / `?` wildcard pattern into an anchored regex.

    Other characters are matched literally.
    """
    parts = []
    for char in pattern:
        if char == "*":
            parts.append(".*")
        elif char == "?":
            parts.append(".")
        else:
            parts.append(re.escape(char))
    return re.compile("^" + "".join(parts) + "$", re.IGNORECASE)


def filter_repos(repos: List[RepositoryHandle], pattern: str) -> List[RepositoryHandle]:
    """Keep repositories whose name matches a wildcard pattern.

    Args:
        repos: Repository handles
        pattern: Pattern such as "api-*", matched case-insensitively

    Returns:
        Matching handles, in input order
    """
    regex = pattern_to_regex(pattern)
    filtered = [repo for repo in repos if regex.match(repo.name)]
    logger.debug(f"Pattern '{pattern}' matched {len(filtered)} of {len(repos)} repositories")
    return filtered
