# SPDX-License-Identifier: MIT
"""Centralized SQLite connection configuration utilities.

`get_configured_connection()` should be used instead of direct
`sqlite3.connect()` calls so every connection gets the same WAL mode,
timeout and pragmas.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..logging_config import get_detail_logger


detail_logger = get_detail_logger()


def configure_sqlite_connection(
    conn: sqlite3.Connection,
    enable_wal: bool = True,
) -> None:
    """Apply standard PRAGMA settings to a connection.

    Args:
        conn: SQLite database connection to configure
        enable_wal: Whether to enable WAL mode (default: True)
    """
    if enable_wal:
        conn.execute("PRAGMA journal_mode = WAL")
    # FULL so a committed cursor survives power loss
    conn.execute("PRAGMA synchronous = FULL")
    conn.execute("PRAGMA temp_store = MEMORY")


@contextmanager
def get_configured_connection(
    db_path: str | Path,
    timeout: float = 30.0,
    enable_wal: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Get a configured SQLite connection with proper timeout and settings.

    Args:
        db_path: Path to the SQLite database file
        timeout: Connection timeout in seconds (default: 30.0)
        enable_wal: Whether to enable WAL mode (default: True)

    Yields:
        Configured SQLite connection, closed on exit

    Example:
        ```python
        with get_configured_connection(store.db_path) as conn:
            conn.execute("SELECT value FROM sync_state WHERE key = ?", ("since",))
        ```
    """
    conn = sqlite3.connect(str(db_path), timeout=timeout)

    try:
        configure_sqlite_connection(conn, enable_wal=enable_wal)
        yield conn
    finally:
        conn.close()


@contextmanager
def get_connection_with_row_factory(
    db_path: str | Path,
    timeout: float = 30.0,
    enable_wal: bool = True,
) -> Iterator[sqlite3.Connection]:
    """Same as get_configured_connection() with sqlite3.Row rows."""
    with get_configured_connection(db_path, timeout, enable_wal) as conn:
        conn.row_factory = sqlite3.Row
        yield conn
