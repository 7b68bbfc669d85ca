from __future__ import annotations

import logging
import sys
from typing import TextIO

"""Logging initialization with labeled prefixes.

Output lines are `LABEL message` with LABEL one of
DEBUG|INFO|WARN|ERROR|CRITICAL|SUMMARY, written to stdout. Module loggers
(`logging.getLogger(__name__)` under the `pgjsonl` package) propagate into
the application logger configured here.

setup_logging() returns the logger; callers pass it on to the services
explicitly instead of reading a module-level instance.
"""

__all__ = [
    "APP_LOGGER_NAME",
    "SUMMARY_LEVEL",
    "LabeledFormatter",
    "setup_logging",
    "log_summary",
]

APP_LOGGER_NAME = "pgjsonl"

# Custom SUMMARY level (between INFO=20 and WARNING=30)
SUMMARY_LEVEL = 25


class LabeledFormatter(logging.Formatter):
    """Formatter that prefixes each message with its level label."""

    LEVEL_LABELS = {
        logging.DEBUG: "DEBUG",
        logging.INFO: "INFO",
        logging.WARNING: "WARN",
        logging.ERROR: "ERROR",
        logging.CRITICAL: "CRITICAL",
        SUMMARY_LEVEL: "SUMMARY",
    }

    def format(self, record: logging.LogRecord) -> str:
        level_label = self.LEVEL_LABELS.get(record.levelno, record.levelname)
        message = f"{level_label} {record.getMessage()}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(debug: bool = False, stream: TextIO | None = None) -> logging.Logger:
    """Configure and return the application logger.

    Calling it again replaces the handler, so it is safe to call once per
    CLI invocation (tests call main() repeatedly).
    """
    logging.addLevelName(SUMMARY_LEVEL, "SUMMARY")
    level = logging.DEBUG if debug else logging.INFO

    logger = logging.getLogger(APP_LOGGER_NAME)
    logger.setLevel(level)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(LabeledFormatter())
    logger.addHandler(handler)

    # Prevent duplicate output through the root logger
    logger.propagate = False
    return logger


def log_summary(logger: logging.Logger, message: str) -> None:
    logger.log(SUMMARY_LEVEL, message)
