from __future__ import annotations

import logging
import sys

from tasksync.logging.init import (
    SUMMARY_LEVEL,
    LabeledFormatter,
    get_logger,
    log_status,
    log_summary,
    reset_logging,
    setup_logging,
)


def test_setup_logging_creates_logger_with_labeled_formatter():
    """Test that setup_logging creates a logger with labeled format."""
    logger = setup_logging()

    assert logger.name == "tasksync"
    assert logger.level == logging.INFO
    assert logger.propagate is False
    assert len(logger.handlers) == 1
    handler = logger.handlers[0]
    assert isinstance(handler, logging.StreamHandler)
    assert isinstance(handler.formatter, LabeledFormatter)


def test_setup_logging_is_idempotent():
    first = setup_logging()
    second = setup_logging()
    assert first is second
    assert len(second.handlers) == 1
    assert get_logger() is first


def test_labeled_prefixes(capsys):
    """INFO|WARN|ERROR|SUMMARY prefixes on stdout."""
    logger = setup_logging()
    logger.info("hello")
    logger.warning("careful")
    logger.error("broken")
    log_summary("scanned=1")
    out = capsys.readouterr().out.splitlines()
    assert out == ["INFO hello", "WARN careful", "ERROR broken", "SUMMARY scanned=1"]


def test_service_loggers_reach_the_handler(capsys):
    setup_logging()
    logging.getLogger("tasksync.services.sync_engine").info("from a service")
    logging.getLogger("tasksync.services.sync_engine").debug("hidden")
    assert capsys.readouterr().out == "INFO from a service\n"


def test_debug_mode(capsys):
    logger = setup_logging(debug=True)
    assert logger.level == logging.DEBUG
    logger.debug("details")
    assert "DEBUG details" in capsys.readouterr().out


def test_reset_logging_allows_reconfiguration():
    first = setup_logging()
    reset_logging()
    second = setup_logging()
    assert first is second  # same named logger
    assert len(second.handlers) == 1


def test_formatter_appends_traceback():
    try:
        raise ValueError("bad value")
    except ValueError:
        record = logging.LogRecord("tasksync", logging.ERROR, __file__, 1, "failed", None, sys.exc_info())
    text = LabeledFormatter().format(record)
    assert text.startswith("ERROR failed\nTraceback")
    assert "ValueError: bad value" in text


def test_summary_level_label():
    record = logging.LogRecord("tasksync", SUMMARY_LEVEL, __file__, 1, "x=1", None, None)
    assert LabeledFormatter().format(record) == "SUMMARY x=1"


def test_log_status_splits_lines(capsys):
    setup_logging()
    log_status("Scanned 3 rows.\n\n  Archived 2 rows.  \n")
    assert capsys.readouterr().out.splitlines() == ["INFO Scanned 3 rows.", "INFO Archived 2 rows."]
