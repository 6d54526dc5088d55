# SPDX-License-Identifier: MIT
"""Base class for components backed by the state database."""

import sqlite3
from pathlib import Path

from ..logging_config import get_detail_logger, get_status_logger
from .schema import init_database


detail_logger = get_detail_logger()
status_logger = get_status_logger()


class StoreBase:
    """Resolves and initializes the SQLite database used by a store."""

    def __init__(self, db_path: Path | None = None):
        """Initialize with a database path.

        Args:
            db_path: Path to the SQLite database file. If None, gets from config.

        Raises:
            RuntimeError: If the database directory or schema cannot be created.
        """
        if db_path is None:
            # Local import to avoid circular dependency (config -> storage)
            from ..config import get_config_manager

            db_path = Path(get_config_manager().load_config().storage.db_path)
            detail_logger.debug(f"Using database path from config: {db_path}")

        try:
            db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            error_msg = f"Failed to create database directory: {db_path.parent}"
            status_logger.error(error_msg)
            detail_logger.exception(f"{error_msg}: {e}")
            raise RuntimeError(error_msg) from e

        try:
            init_database(db_path)
        except (sqlite3.Error, OSError) as e:
            error_msg = f"Failed to initialize database at {db_path}"
            status_logger.error(error_msg)
            detail_logger.exception(f"{error_msg}: {e}")
            raise RuntimeError(error_msg) from e

        self.db_path = db_path
