# SPDX-License-Identifier: MIT
"""Record of completed work items."""

from typing import Any

from ..enums import MutationOutcome
from ..logging_config import get_detail_logger
from ..models import WorkItem, WorkResult
from .base import StoreBase
from .connection_utils import (
    get_configured_connection,
    get_connection_with_row_factory,
)


detail_logger = get_detail_logger()


class SyncHistory(StoreBase):
    """Appends one row per completed work item and summarizes them."""

    def record(self, item: WorkItem, result: WorkResult) -> None:
        """Store the outcome of a completed work item."""
        self.record_many([(item, result)])

    def record_many(self, completions: list[tuple[WorkItem, WorkResult]]) -> None:
        """Store a batch of completions in one transaction."""
        if not completions:
            return
        with get_configured_connection(self.db_path) as conn:
            conn.executemany(
                """
                INSERT INTO sync_history (seq, name, version, outcome, error)
                VALUES (?, ?, ?, ?, ?)
                """,
                [
                    (
                        item.seq,
                        item.name,
                        item.version,
                        result.outcome.value,
                        result.error,
                    )
                    for item, result in completions
                ],
            )
            conn.commit()

    def recent(self, limit: int = 20) -> list[dict[str, Any]]:
        """Return the most recent completions, newest first."""
        if limit <= 0:
            raise ValueError("Limit must be positive")

        with get_connection_with_row_factory(self.db_path) as conn:
            rows = conn.execute(
                """
                SELECT seq, name, version, outcome, error, completed_at
                FROM sync_history
                ORDER BY id DESC
                LIMIT ?
                """,
                (limit,),
            ).fetchall()
            return [dict(row) for row in rows]

    def outcome_counts(self) -> dict[str, int]:
        """Count completions per outcome, including zero counts."""
        counts = {outcome.value: 0 for outcome in MutationOutcome}
        with get_configured_connection(self.db_path) as conn:
            for outcome, count in conn.execute(
                "SELECT outcome, COUNT(*) FROM sync_history GROUP BY outcome"
            ):
                counts[outcome] = int(count)
        return counts
