"""
Logging utilities for rollkeeper.

This module centralizes logger configuration, formatting, and retrieval
for the rollkeeper package. It avoids duplicate handlers, supports
optional colorized stderr output, and can mirror records into a persistent
log file so that past operations can be audited.
"""

from __future__ import annotations

import os
import sys
import logging
import threading
from pathlib import Path
from typing import IO, Optional, Union

from rollkeeper.constants import (
    LOG_DATE_FORMAT,
    LOG_DEFAULT_FORMAT,
    LOG_FILE_FORMAT,
    LOG_VERBOSE_FORMAT,
)

_logging_configured: bool = False
_lock = threading.Lock()


class ColoredFormatter(logging.Formatter):
    """Logging formatter with optional ANSI color support."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[34m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def __init__(
        self,
        fmt: str,
        *,
        datefmt: Optional[str] = None,
        use_color: bool = True,
    ) -> None:
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if self.use_color and self._should_use_color():
            color = self.COLORS.get(record.levelname)
            if color:
                # Work on a copy so the file handler sees the plain level name
                record = logging.makeLogRecord(record.__dict__)
                record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)

    @staticmethod
    def _should_use_color() -> bool:
        """Determine whether ANSI colors should be emitted."""
        if os.environ.get("NO_COLOR"):
            return False
        if os.environ.get("CI"):
            return False
        try:
            return sys.stderr.isatty()
        except (AttributeError, OSError):
            return False


def _build_file_handler(log_file: Path) -> Optional[logging.Handler]:
    """Open the persistent log file, or return ``None`` if it is not writable."""
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file, encoding="utf-8")
    except OSError as exc:
        sys.stderr.write(
            f"Warning: cannot open log file {log_file} ({exc}); "
            "continuing without file logging\n"
        )
        return None

    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(LOG_FILE_FORMAT, datefmt=LOG_DATE_FORMAT))
    return handler


def setup_logging(
    *,
    level: int = logging.INFO,
    verbose: bool = False,
    stream: Optional[IO[str]] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Configure logging for rollkeeper.

    This function is safe to call multiple times; configuration is
    protected by a process-wide lock.

    Args:
        level: Logging level for the console handler.
        verbose: Enable verbose formatting with timestamps.
        stream: Output stream; defaults to ``sys.stderr``.
        log_file: Optional persistent log file. It always records INFO and
            above, independently of the console level. A file that cannot
            be opened is skipped with a warning.
    """
    global _logging_configured

    with _lock:
        root_logger = logging.getLogger("rollkeeper")
        for old in root_logger.handlers:
            old.close()
        root_logger.handlers.clear()

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setLevel(level)

        fmt = LOG_VERBOSE_FORMAT if verbose else LOG_DEFAULT_FORMAT
        formatter = ColoredFormatter(
            fmt,
            datefmt=LOG_DATE_FORMAT,
            use_color=not os.environ.get("NO_COLOR"),
        )
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

        effective = level
        if log_file is not None:
            file_handler = _build_file_handler(Path(log_file))
            if file_handler is not None:
                root_logger.addHandler(file_handler)
                effective = min(level, logging.INFO)

        root_logger.setLevel(effective)
        root_logger.propagate = False
        _logging_configured = True


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Return a logger within the rollkeeper namespace.

    Args:
        name: Logger name. Use ``__name__`` for module-relative naming.

    Returns:
        A logger instance under the ``rollkeeper`` hierarchy.
    """
    if not name or name == "rollkeeper":
        logger = logging.getLogger("rollkeeper")
    elif name.startswith("rollkeeper."):
        logger = logging.getLogger(name)
    else:
        logger = logging.getLogger(f"rollkeeper.{name}")

    # Ensure library-safe behavior if logging is not configured
    if not logger.handlers and (not logger.parent or not logger.parent.handlers):
        logger.addHandler(logging.NullHandler())

    return logger


def is_logging_configured() -> bool:
    """Return True if rollkeeper logging has been configured."""
    return _logging_configured


def disable_logging() -> None:
    """Disable all rollkeeper logging output."""
    global _logging_configured

    with _lock:
        root_logger = logging.getLogger("rollkeeper")
        for old in root_logger.handlers:
            old.close()
        root_logger.handlers.clear()
        root_logger.addHandler(logging.NullHandler())
        root_logger.setLevel(logging.NOTSET)
        root_logger.propagate = True
        _logging_configured = False
