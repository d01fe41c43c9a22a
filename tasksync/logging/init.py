from __future__ import annotations

import logging
import sys

"""Console logging for the tasksync CLI.

Each stdout line carries a label in front of the message: INFO, WARN,
ERROR or SUMMARY, plus DEBUG when --debug is given. The SUMMARY line is the
machine-readable run result (contracts/summary_output.md).

Services only call ``logging.getLogger(__name__)``. Their loggers sit below
"tasksync" and end up at the one stdout handler configured here. Archive
validation issues go to a separate JSON Lines file (tasksync.logging.issue_log).
"""

__all__ = [
    "LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "get_logger",
    "set_debug",
    "log_status",
    "log_summary",
    "reset_logging",
]

LOGGER_NAME = "tasksync"
SUMMARY_LEVEL = 25  # INFO < SUMMARY < WARNING

_LABELS = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARN",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "CRITICAL",
    SUMMARY_LEVEL: "SUMMARY",
}

_logger: logging.Logger | None = None


class LabeledFormatter(logging.Formatter):
    """``<LABEL> <message>``; a traceback, if any, follows on the next lines."""

    def format(self, record: logging.LogRecord) -> str:
        label = _LABELS.get(record.levelno, record.levelname)
        text = f"{label} {record.getMessage()}"
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def _stdout_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(logging.INFO)
    handler.setFormatter(LabeledFormatter())
    return handler


def setup_logging(debug: bool = False) -> logging.Logger:
    """Return the "tasksync" logger, configuring it on first call.

    Later calls reuse the same logger; ``debug=True`` still lowers the level.
    """
    global _logger
    if _logger is None:
        logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
        logger = logging.getLogger(LOGGER_NAME)
        logger.handlers.clear()
        logger.addHandler(_stdout_handler())
        logger.setLevel(logging.INFO)
        # root に流すと pytest / 呼び出し側のハンドラで二重出力になる
        logger.propagate = False
        _logger = logger
    if debug:
        set_debug(_logger)
    return _logger


def set_debug(logger: logging.Logger) -> None:
    logger.setLevel(logging.DEBUG)
    for h in logger.handlers:
        h.setLevel(logging.DEBUG)


def get_logger() -> logging.Logger:
    return _logger if _logger is not None else setup_logging()


def log_status(status: str) -> None:
    """Log a service status text at INFO, one line per non-blank line."""
    logger = get_logger()
    for line in status.splitlines():
        if line.strip():
            logger.info(line.strip())


def log_summary(message: str) -> None:
    get_logger().log(SUMMARY_LEVEL, message)


def reset_logging() -> None:
    """Drop the configured handler so the next setup_logging() starts fresh (tests)."""
    global _logger
    if _logger is not None:
        _logger.handlers.clear()
        _logger.setLevel(logging.NOTSET)
    _logger = None
