# SPDX-License-Identifier: MIT
"""Persistent key/value settings for the sync process."""

from ..logging_config import get_detail_logger
from .base import StoreBase
from .connection_utils import get_configured_connection


detail_logger = get_detail_logger()


class StateStore(StoreBase):
    """Stores single string values by key, last write wins."""

    def set_value(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one.

        Args:
            key: State key
            value: Value to store

        Raises:
            ValueError: If key is empty or too long
        """
        self._validate_key(key)
        detail_logger.debug(f"Storing state: {key}={value}")

        with get_configured_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO sync_state (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (key, value),
            )
            conn.commit()

    def get_value(self, key: str) -> str | None:
        """Get a stored value.

        Args:
            key: State key

        Returns:
            Stored value or None if the key was never set

        Raises:
            ValueError: If key is empty or too long
        """
        self._validate_key(key)

        with get_configured_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM sync_state WHERE key = ?", (key,)
            ).fetchone()
            return row[0] if row else None

    def delete_value(self, key: str) -> bool:
        """Remove a stored value.

        Returns:
            True if a value was removed
        """
        self._validate_key(key)

        with get_configured_connection(self.db_path) as conn:
            cursor = conn.execute("DELETE FROM sync_state WHERE key = ?", (key,))
            conn.commit()
            return cursor.rowcount > 0

    @staticmethod
    def _validate_key(key: str) -> None:
        if not key or not key.strip():
            raise ValueError("State key cannot be empty")
        if len(key) > 255:
            raise ValueError("State key exceeds maximum length (255 characters)")
