# SPDX-License-Identifier: MIT
"""Logging configuration for registry cache sync.

This module provides a dual-logger system:
1. Detail Logger: Internal state transitions, HTTP and subprocess details.
   Always written to file; mirrored to stderr when verbose.
2. Status Logger: One line per completed work item plus user-facing
   warnings and errors. Written to stdout unless silent, and always to file.

Silence and verbosity are independent toggles.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Logger names
DETAIL_LOGGER_NAME = "registry_cache_sync.detail"
STATUS_LOGGER_NAME = "registry_cache_sync.status"


class FlushingStreamHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Stream handler that flushes after every record."""

    def emit(self, record: logging.LogRecord) -> None:
        super().emit(record)
        # Only flush if the stream is not closed
        if self.stream and not self.stream.closed:
            self.flush()


def setup_logging(
    log_dir: Path | None = None, silent: bool = False, verbose: bool = False
) -> tuple[logging.Logger, logging.Logger]:
    """Configure dual logging system with detail and status loggers.

    Detail Logger:
        - Captures all DEBUG and above messages
        - Writes to file, and to stderr when ``verbose`` is set

    Status Logger:
        - Outputs per-item completion lines and user-facing messages
        - Writes to stdout unless ``silent`` is set, and always to file

    Args:
        log_dir: Directory for log file. If None, uses .registry-cache-sync/ in current directory
        silent: Suppress console output of the status logger
        verbose: Mirror the detail logger to stderr

    Returns:
        Tuple of (detail_logger, status_logger)
    """
    if log_dir is None:
        log_dir = Path.cwd() / ".registry-cache-sync"

    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "registry-cache-sync.log"

    # Shared file handler for both loggers, appending across restarts
    file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    # ===== Detail Logger Setup =====
    detail_logger = logging.getLogger(DETAIL_LOGGER_NAME)
    detail_logger.setLevel(logging.DEBUG)
    _close_handlers(detail_logger)
    detail_logger.addHandler(file_handler)
    if verbose:
        verbose_handler = FlushingStreamHandler(sys.stderr)
        verbose_handler.setLevel(logging.DEBUG)
        verbose_handler.setFormatter(logging.Formatter("%(message)s"))
        detail_logger.addHandler(verbose_handler)
    detail_logger.propagate = False

    # ===== Status Logger Setup =====
    status_logger = logging.getLogger(STATUS_LOGGER_NAME)
    status_logger.setLevel(logging.INFO)
    _close_handlers(status_logger)
    if not silent:
        console_handler = FlushingStreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(logging.Formatter("%(message)s"))
        status_logger.addHandler(console_handler)
    status_logger.addHandler(file_handler)
    status_logger.propagate = False

    detail_logger.info(f"Logging initialized. Log file: {log_file}")
    detail_logger.debug(f"silent={silent} verbose={verbose}")

    return detail_logger, status_logger


def _close_handlers(logger: logging.Logger) -> None:
    for handler in logger.handlers[:]:
        handler.close()
    logger.handlers.clear()


def get_detail_logger() -> logging.Logger:
    """Get the detail logger for verbose technical logging.

    Use this logger for:
    - Pipeline state transitions
    - Feed, registry and subprocess diagnostics
    - Checkpoint commits

    Returns:
        The detail logger instance
    """
    return logging.getLogger(DETAIL_LOGGER_NAME)


def get_status_logger() -> logging.Logger:
    """Get the status logger for user-facing output.

    Use this logger for:
    - One line per completed work item
    - User-facing warnings and errors
    - Startup and shutdown summaries

    Returns:
        The status logger instance
    """
    return logging.getLogger(STATUS_LOGGER_NAME)
