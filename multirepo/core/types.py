"""Core types shared by the engine, the prober and the operations."""

import os
from dataclasses import dataclass
from typing import Optional
from enum import Enum


class OutcomeKind(Enum):
    """Kind of a per-repository operation outcome.

    Each operation draws from its own subset of these values.
    """
    # Success variants
    UP_TO_DATE = "up-to-date"
    UPDATED = "updated"
    WOULD_UPDATE = "would-update"
    FETCHED = "fetched"
    CLONED = "cloned"
    WOULD_CLONE = "would-clone"
    WOULD_PULL = "would-pull"
    PULLED = "pulled"
    ALREADY_UP_TO_DATE = "already-up-to-date"
    CLEANED = "cleaned"
    ALREADY_CLEAN = "already-clean"
    WOULD_CLEAN = "would-clean"
    SWITCHED = "switched"
    CREATED = "created"
    # Non-success
    SKIPPED = "skipped"
    NOT_FOUND = "not-found"
    EXISTS = "exists"
    ERROR = "error"

    @property
    def is_success(self) -> bool:
        """Check if this kind denotes a terminal success."""
        return self not in _NON_SUCCESS_KINDS


_NON_SUCCESS_KINDS = frozenset({
    OutcomeKind.SKIPPED,
    OutcomeKind.NOT_FOUND,
    OutcomeKind.EXISTS,
    OutcomeKind.ERROR,
})


class FailureMode(Enum):
    """Why an operation ended in an error outcome."""
    TIMEOUT = "timeout"
    CONNECTION = "connection"
    GENERIC = "generic"


@dataclass(frozen=True)
class RepositoryHandle:
    """Identifies one local repository by its path."""
    path: str

    @property
    def name(self) -> str:
        """Display name: the last path segment."""
        return repo_name(self.path)

    def __str__(self) -> str:
        return self.path


def repo_name(path: str) -> str:
    """Get the display name for a repository path.

    Args:
        path: Repository path

    Returns:
        Last path segment, or the path itself if it has no separator
    """
    stripped = path.rstrip(os.sep) or path
    return os.path.basename(stripped) or stripped


@dataclass(frozen=True)
class RepositoryStatus:
    """Working tree and upstream sync state of a repository."""
    name: str
    path: str
    branch: str
    modified: int = 0
    staged: int = 0
    untracked: int = 0
    deleted: int = 0
    ahead: int = 0
    behind: int = 0
    has_upstream: bool = False

    @property
    def is_clean(self) -> bool:
        """Check if there are no local changes of any kind."""
        return (
            self.modified == 0 and
            self.staged == 0 and
            self.untracked == 0 and
            self.deleted == 0
        )

    @property
    def is_detached(self) -> bool:
        return self.branch == "detached"


@dataclass(frozen=True)
class OperationOutcome:
    """Result of one operation on one repository."""
    name: str
    success: bool
    kind: OutcomeKind
    detail: Optional[str] = None
    error: Optional[str] = None
    failure: Optional[FailureMode] = None

    def __post_init__(self):
        if self.success and not self.kind.is_success:
            raise ValueError(f"Outcome kind '{self.kind.value}' cannot be successful")
        if self.success and self.error is not None:
            raise ValueError("Successful outcomes carry no error")

    @classmethod
    def ok(cls, name: str, kind: OutcomeKind, detail: Optional[str] = None) -> 'OperationOutcome':
        """Create a successful outcome."""
        return cls(name=name, success=True, kind=kind, detail=detail)

    @classmethod
    def skipped(cls, name: str, reason: str) -> 'OperationOutcome':
        """Create a skipped outcome with a human-readable reason."""
        return cls(name=name, success=False, kind=OutcomeKind.SKIPPED, error=reason)

    @classmethod
    def failed(
        cls,
        name: str,
        error: str,
        kind: OutcomeKind = OutcomeKind.ERROR,
        failure: Optional[FailureMode] = None
    ) -> 'OperationOutcome':
        """Create a failed outcome."""
        if kind == OutcomeKind.ERROR and failure is None:
            failure = FailureMode.GENERIC
        return cls(name=name, success=False, kind=kind, error=error, failure=failure)

    @property
    def is_skipped(self) -> bool:
        """Check if the operation was skipped on a precondition."""
        return self.kind == OutcomeKind.SKIPPED

    @property
    def is_failed(self) -> bool:
        """Check if the operation failed (skips are not failures)."""
        return not self.success and not self.is_skipped

    @property
    def message(self) -> str:
        """One-line text for logs and summaries."""
        text = self.kind.value
        extra = self.detail if self.success else self.error
        if extra:
            text += f" ({extra})"
        return text


@dataclass(frozen=True)
class ProcessResult:
    """Captured result of a finished subprocess."""
    exit_code: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0

    @property
    def output(self) -> str:
        """Stripped stdout, falling back to stripped stderr."""
        return self.stdout.strip() or self.stderr.strip()

    @property
    def combined(self) -> str:
        """Both streams, for pattern matching."""
        return f"{self.stderr}\n{self.stdout}"


@dataclass(frozen=True)
class ExecResult:
    """Result of running an arbitrary shell command in a repository."""
    name: str
    success: bool
    exit_code: int
    output: str
    error: Optional[str] = None

    @property
    def is_failed(self) -> bool:
        return not self.success


@dataclass(frozen=True)
class DiffResult:
    """Unstaged diff of a repository."""
    name: str
    has_diff: bool
    diff: str = ""
    stat: str = ""

    @property
    def is_failed(self) -> bool:
        return False
