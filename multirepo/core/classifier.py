"""Outcome classification for git operations.

Maps a finished process (exit code, stdout, stderr) or a raised error to an
OperationOutcome. Classification is table driven: each operation has a
RuleSet whose ordered OutcomeRules are tried first-match-wins.

Priority order:
    1. timeout            (raised GitTimeoutError, see outcome_from_exception)
    2. connection failure (raised errors, or stderr of network operations)
    3. operation failure rules, e.g. checkout "not-found" / "exists"
    4. any other non-zero exit -> error with the raw output
    5. success rules, falling back to the operation's success kind
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple, Union

from .timeout import GitTimeoutError
from .types import FailureMode, OperationOutcome, OutcomeKind, ProcessResult

TIMEOUT_PATTERNS: Tuple[str, ...] = (
    "timed out",
)

CONNECTION_PATTERNS: Tuple[str, ...] = (
    "could not resolve host",
    "connection refused",
    "network is unreachable",
    "no route to host",
    "unable to access",
)


@dataclass(frozen=True)
class OutcomeRule:
    """Maps text patterns to an outcome kind.

    A rule with no patterns matches anything. The message template is
    formatted with the classification context plus 'output' and, when
    count_pattern matches, 'count'.
    """
    kind: OutcomeKind
    patterns: Tuple[str, ...] = ()
    message: Optional[str] = None
    count_pattern: Optional[str] = None
    count_default: str = "some"
    ignore_case: bool = False

    def matches(self, text: str) -> bool:
        if not self.patterns:
            return True
        haystack = text.lower() if self.ignore_case else text
        for pattern in self.patterns:
            needle = pattern.lower() if self.ignore_case else pattern
            if needle in haystack:
                return True
        return False

    def render(self, text: str, context: Dict[str, Any]) -> Optional[str]:
        """Format the rule's message for a matched text."""
        if self.message is None:
            return None
        values = dict(context)
        if self.count_pattern:
            match = re.search(self.count_pattern, text)
            values['count'] = match.group(1) if match else self.count_default
        return self.message.format(**values)


@dataclass(frozen=True)
class RuleSet:
    """Classification rules for one operation."""
    operation: str
    success_kind: OutcomeKind
    success_rules: Tuple[OutcomeRule, ...] = ()
    failure_rules: Tuple[OutcomeRule, ...] = ()
    fallback_error: str = "Command failed"
    network: bool = False
    prefer_stderr: bool = False
    context: Dict[str, Any] = field(default_factory=dict)

    def with_context(self, **context: Any) -> 'RuleSet':
        """Return a copy with extra template values (e.g. branch)."""
        merged = dict(self.context)
        merged.update(context)
        return RuleSet(
            operation=self.operation,
            success_kind=self.success_kind,
            success_rules=self.success_rules,
            failure_rules=self.failure_rules,
            fallback_error=self.fallback_error,
            network=self.network,
            prefer_stderr=self.prefer_stderr,
            context=merged,
        )


PULL_RULES = RuleSet(
    operation="Pull",
    success_kind=OutcomeKind.UPDATED,
    success_rules=(
        OutcomeRule(OutcomeKind.UP_TO_DATE, patterns=("Already up to date", "Already up-to-date")),
        OutcomeRule(
            OutcomeKind.UPDATED,
            message="{count} file(s) changed",
            count_pattern=r"(\d+) file",
        ),
    ),
    fallback_error="Pull failed",
    network=True,
)

FETCH_RULES = RuleSet(
    operation="Fetch",
    success_kind=OutcomeKind.FETCHED,
    fallback_error="Fetch failed",
    network=True,
)

CLONE_RULES = RuleSet(
    operation="Clone",
    success_kind=OutcomeKind.CLONED,
    fallback_error="Clone failed",
    network=True,
)

CHECKOUT_RULES = RuleSet(
    operation="Checkout",
    success_kind=OutcomeKind.SWITCHED,
    failure_rules=(
        OutcomeRule(
            OutcomeKind.NOT_FOUND,
            patterns=("did not match any", "pathspec"),
            message="Branch '{branch}' not found",
        ),
        OutcomeRule(
            OutcomeKind.EXISTS,
            patterns=("already exists",),
            message="Branch '{branch}' already exists",
        ),
    ),
    fallback_error="Checkout failed",
)

RESET_RULES = RuleSet(
    operation="Reset",
    success_kind=OutcomeKind.CLEANED,
    fallback_error="Failed to reset changes",
    prefer_stderr=True,
)

CLEAN_UNTRACKED_RULES = RuleSet(
    operation="Clean",
    success_kind=OutcomeKind.CLEANED,
    fallback_error="Failed to clean untracked files",
    prefer_stderr=True,
)


def _error_text(error: Union[BaseException, str]) -> str:
    return error if isinstance(error, str) else str(error)


def is_timeout(error: Union[BaseException, str]) -> bool:
    """Check if an error or diagnostic text denotes a timeout."""
    if isinstance(error, GitTimeoutError):
        return True
    text = _error_text(error).lower()
    return any(pattern in text for pattern in TIMEOUT_PATTERNS)


def is_connection_error(error: Union[BaseException, str]) -> bool:
    """Check if an error or diagnostic text denotes a transport failure."""
    text = _error_text(error).lower()
    return any(pattern in text for pattern in CONNECTION_PATTERNS)


def failure_mode(error: Union[BaseException, str]) -> FailureMode:
    """Classify an error into a failure mode.

    Args:
        error: Raised exception or diagnostic text

    Returns:
        FailureMode, timeout taking priority over connection
    """
    if is_timeout(error):
        return FailureMode.TIMEOUT
    if is_connection_error(error):
        return FailureMode.CONNECTION
    return FailureMode.GENERIC


def describe_failure(error: Union[BaseException, str], operation: str) -> str:
    """Build the user-facing text for a failed network operation.

    Connection diagnostics are replaced by a generic message.

    Args:
        error: Raised exception or diagnostic text
        operation: Operation label, e.g. "Pull"

    Returns:
        Error message
    """
    mode = failure_mode(error)
    if mode == FailureMode.TIMEOUT:
        message = _error_text(error) or "timed out"
        return f"{operation} {message}"
    if mode == FailureMode.CONNECTION:
        return f"{operation} failed: connection error"
    return _error_text(error)


def outcome_from_exception(name: str, error: BaseException, operation: str) -> OperationOutcome:
    """Turn an error raised while running an operation into an outcome.

    Args:
        name: Repository name
        error: The raised exception
        operation: Operation label

    Returns:
        Error outcome with its failure mode
    """
    return OperationOutcome.failed(
        name,
        describe_failure(error, operation),
        failure=failure_mode(error),
    )


def classify(name: str, result: ProcessResult, rules: RuleSet) -> OperationOutcome:
    """Classify a finished process with an operation's rules.

    Args:
        name: Repository name
        result: Finished process
        rules: The operation's RuleSet

    Returns:
        OperationOutcome
    """
    text = result.combined

    if not result.ok:
        if rules.network and is_connection_error(result.stderr):
            return OperationOutcome.failed(
                name,
                describe_failure(result.stderr, rules.operation),
                failure=FailureMode.CONNECTION,
            )

        for rule in rules.failure_rules:
            if rule.matches(text):
                return OperationOutcome.failed(
                    name,
                    rule.render(text, rules.context) or result.output or rules.fallback_error,
                    kind=rule.kind,
                )

        if rules.prefer_stderr:
            output = result.stderr.strip() or result.stdout.strip()
        else:
            output = result.output
        return OperationOutcome.failed(name, output or rules.fallback_error)

    for rule in rules.success_rules:
        if rule.matches(text):
            return OperationOutcome.ok(name, rule.kind, rule.render(text, rules.context))

    return OperationOutcome.ok(name, rules.success_kind)
