"""Utilities package for multirepo."""

from .discovery import find_repos, filter_repos
from .progress import ProgressTracker, print_summary

__all__ = [
    'find_repos',
    'filter_repos',
    'ProgressTracker',
    'print_summary',
]
