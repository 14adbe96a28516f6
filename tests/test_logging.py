"""Tests for logging setup."""

import logging
import sys
from pathlib import Path

import pytest
from rich.logging import RichHandler

from configport.core.logging import setup_logging


@pytest.fixture
def root_logger(monkeypatch: pytest.MonkeyPatch):
    """Restore the root logger and excepthook after each test."""
    logger = logging.getLogger()
    handlers = list(logger.handlers)
    level = logger.level
    monkeypatch.setattr(sys, "excepthook", sys.excepthook)
    yield logger
    for handler in logger.handlers:
        if handler not in handlers:
            handler.close()
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_setup_logging_console_only(root_logger: logging.Logger) -> None:
    """Test that only warnings reach the console by default."""
    setup_logging()

    assert root_logger.level == logging.INFO
    assert len(root_logger.handlers) == 1
    handler = root_logger.handlers[0]
    assert isinstance(handler, RichHandler)
    assert handler.level == logging.WARNING


def test_setup_logging_with_file(root_logger: logging.Logger, tmp_path: Path) -> None:
    """Test that the log file is created and receives messages."""
    log_file = tmp_path / "logs" / "configport.log"
    setup_logging(debug=True, log_file=str(log_file))

    assert root_logger.level == logging.DEBUG
    logging.getLogger("configport.test").info("Exported %d files", 3)
    for handler in root_logger.handlers:
        handler.flush()

    content = log_file.read_text()
    assert "Logging initialized (debug=True" in content
    assert "configport.test - INFO - Exported 3 files" in content


def test_log_file_receives_debug_without_debug_console(root_logger: logging.Logger,
                                                         tmp_path: Path) -> None:
    """Test that the log file gets debug messages while the console shows warnings."""
    log_file = tmp_path / "configport.log"
    setup_logging(log_file=log_file)

    assert root_logger.handlers[0].level == logging.WARNING
    logging.getLogger("configport.test").debug("Collected %s", "settings.json")
    for handler in root_logger.handlers:
        handler.flush()

    assert "configport.test - DEBUG - Collected settings.json" in log_file.read_text()


def test_uncaught_exceptions_are_logged(root_logger: logging.Logger, tmp_path: Path) -> None:
    """Test that the installed excepthook logs uncaught errors."""
    log_file = tmp_path / "configport.log"
    setup_logging(log_file=str(log_file))

    try:
        raise RuntimeError("boom")
    except RuntimeError:
        sys.excepthook(*sys.exc_info())
    for handler in root_logger.handlers:
        handler.flush()

    assert "CRITICAL - Uncaught exception" in log_file.read_text()
