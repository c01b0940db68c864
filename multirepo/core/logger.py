"""Logging configuration and utilities."""

import os
import sys
import logging
from datetime import datetime
from typing import Optional

LOGGER_NAME = 'multirepo'
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


def default_log_file(operation: str, logs_dir: str) -> str:
    """Build a timestamped log file path for an operation.

    Args:
        operation: Name of the operation
        logs_dir: Directory for log files

    Returns:
        Path like logs/repos_pull_20240101_120000.log
    """
    timestamp = datetime.now().strftime('%Y%m%d_%H%M%S')
    return os.path.join(logs_dir, f'repos_{operation}_{timestamp}.log')


def setup_logging(
    operation: str = "status",
    verbose: bool = False,
    log_file: Optional[str] = None
) -> logging.Logger:
    """Configure logging to the console and optionally to a file.

    A file handler is added when log_file is given or REPOS_LOG_DIR is set.

    Args:
        operation: Name of the operation for the log filename
        verbose: Log debug messages (every git invocation)
        log_file: Explicit log file path

    Returns:
        Configured logger instance
    """
    if log_file is None:
        logs_dir = os.getenv('REPOS_LOG_DIR')
        if logs_dir:
            log_file = default_log_file(operation, logs_dir)

    handlers = [logging.StreamHandler(sys.stderr)]
    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    # Third-party loggers stay at INFO even in verbose mode
    logging.basicConfig(
        level=logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True
    )

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.debug(f"Starting {operation} operation")
    if log_file:
        logger.info(f"Log file: {log_file}")

    return logger
