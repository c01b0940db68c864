"""Tests for logging setup."""

import logging
import os

import pytest

from multirepo.core.logger import LOGGER_NAME, default_log_file, setup_logging


@pytest.fixture(autouse=True)
def restore_logging(monkeypatch):
    """Close file handlers added by setup_logging and reset levels."""
    monkeypatch.delenv('REPOS_LOG_DIR', raising=False)
    yield
    for handler in list(logging.root.handlers):
        if isinstance(handler, logging.FileHandler):
            handler.close()
            logging.root.removeHandler(handler)
    logging.getLogger(LOGGER_NAME).setLevel(logging.NOTSET)


@pytest.mark.unit
class TestSetupLogging:
    """setup_logging()."""

    def test_levels(self) -> None:
        assert setup_logging("status").level == logging.INFO
        assert setup_logging("status", verbose=True).level == logging.DEBUG

    def test_explicit_log_file(self, tmp_path) -> None:
        log_file = tmp_path / "logs" / "run.log"

        logger = setup_logging("pull", log_file=str(log_file))
        logger.info("pulled")
        for handler in logging.root.handlers:
            handler.flush()

        assert "pulled" in log_file.read_text()

    def test_log_dir_from_environment(self, tmp_path, monkeypatch) -> None:
        monkeypatch.setenv('REPOS_LOG_DIR', str(tmp_path))

        setup_logging("fetch")

        names = os.listdir(tmp_path)
        assert len(names) == 1
        assert names[0].startswith("repos_fetch_")

    def test_default_log_file(self) -> None:
        path = default_log_file("clean", "logs")

        assert path.startswith(os.path.join("logs", "repos_clean_"))
        assert path.endswith(".log")
