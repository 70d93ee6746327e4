"""Loguru setup for the ``codehydra`` command line.

All log output goes to stderr.  Stdout carries command results (workspace
listings, generated attach scripts) and has to stay machine-readable.
"""

from __future__ import annotations

import inspect
import logging
import sys
from typing import TextIO

from loguru import logger

LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR")

# httpcore logs every download chunk at DEBUG.
_NOISY_LOGGERS = ("httpx", "httpcore")

_COMPACT_FORMAT = "<green>{time:HH:mm:ss}</green> <level>{level: <7}</level> {message}"
_VERBOSE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <7}</level> "
    "<cyan>{name}:{function}:{line}</cyan> <level>{message}</level>"
)


class _StdlibBridge(logging.Handler):
    """Forward records from stdlib loggers (httpx, anyio) into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Report the frame that called the stdlib logger, not this handler.
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def log_format(level: str) -> str:
    """Call-site details are only shown at DEBUG and below."""
    if logger.level(level.upper()).no <= logger.level("DEBUG").no:
        return _VERBOSE_FORMAT
    return _COMPACT_FORMAT


def setup_logging(level: str = "INFO", sink: TextIO | None = None) -> None:
    """Make loguru the only log sink, writing to ``sink`` (stderr by default)."""
    level = level.upper()

    logger.remove()
    logger.add(sink or sys.stderr, level=level, format=log_format(level))
    logging.basicConfig(handlers=[_StdlibBridge()], level=0, force=True)

    noisy_level = logging.DEBUG if level == "TRACE" else logging.WARNING
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(noisy_level)

    logger.debug("Logging initialised at {}", level)
