# SPDX-License-Identifier: MIT
"""Database schema initialization for the sync state database."""

import sqlite3
from pathlib import Path

from ..enums import MutationOutcome


def init_database(db_path: Path) -> None:
    """Initialize the state database schema.

    Args:
        db_path: Path to the SQLite database file
    """
    # Generate CHECK constraint strings from enums
    outcome_values = ", ".join(f"'{o.value}'" for o in MutationOutcome)

    with sqlite3.connect(db_path) as conn:
        conn.executescript(
            f"""
            -- Single-value settings: resume cursor, saved cache-min, ...
            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            );

            -- One row per completed work item (seq is NULL for reconciliation)
            CREATE TABLE IF NOT EXISTS sync_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                seq INTEGER,
                name TEXT NOT NULL,
                version TEXT,
                outcome TEXT NOT NULL,
                error TEXT,
                completed_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                CHECK (outcome IN ({outcome_values}))
            );

            CREATE INDEX IF NOT EXISTS idx_sync_history_completed_at ON sync_history(completed_at);
            CREATE INDEX IF NOT EXISTS idx_sync_history_name ON sync_history(name);
        """
        )
