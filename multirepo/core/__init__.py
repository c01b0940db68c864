"""Core package for multirepo."""

from .types import (
    OutcomeKind,
    FailureMode,
    RepositoryHandle,
    RepositoryStatus,
    OperationOutcome,
    ProcessResult,
    ExecResult,
    DiffResult,
)

from .registry import Registry
from .pool import PoolResult, run_parallel
from .prober import probe
from .timeout import GitTimeoutError, with_timeout
from .logger import setup_logging

__all__ = [
    # Types
    'OutcomeKind',
    'FailureMode',
    'RepositoryHandle',
    'RepositoryStatus',
    'OperationOutcome',
    'ProcessResult',
    'ExecResult',
    'DiffResult',
    # Engine
    'Registry',
    'PoolResult',
    'run_parallel',
    'probe',
    'GitTimeoutError',
    'with_timeout',
    'setup_logging',
]
