# SPDX-License-Identifier: MIT
"""Decides which completed feed seqs are safe to persist as the cursor.

Workers finish out of order. Writing every completed seq straight to the
checkpoint lets the cursor move backwards (101 then 100), and committing the
highest completed seq can jump over a lower seq that is still running or
later fails to resolve. The tracker makes the choice explicit:

``CommitPolicy.ORDERED``
    Completions are buffered. The cursor advances to the highest completed
    seq that has no registered, unfinished seq at or below it. A restart
    therefore never skips work that was accepted but not finished, at the
    price of redoing completed-but-uncommitted items.

``CommitPolicy.MAX_SEEN``
    Any completed seq above the committed cursor is committed at once. The
    cursor never regresses, but a lower seq still in flight when a higher one
    commits is skipped by a restart.

Under both policies the committed value only ever increases.
"""

import heapq
from collections import Counter

from ..enums import CommitPolicy
from ..logging_config import get_detail_logger


detail_logger = get_detail_logger()


class CheckpointTracker:
    """Tracks registered and completed seqs and yields cursor commits."""

    def __init__(
        self,
        policy: CommitPolicy = CommitPolicy.ORDERED,
        committed: int | None = None,
    ):
        """Initialize the tracker.

        Args:
            policy: Commit policy to apply
            committed: Cursor already persisted, if any
        """
        self.policy = policy
        self.committed = committed
        self._pending: Counter[int] = Counter()
        self._pending_heap: list[int] = []
        self._done_heap: list[int] = []

    @property
    def in_flight(self) -> int:
        """Number of registered seqs not yet completed or released."""
        return sum(self._pending.values())

    @property
    def buffered(self) -> int:
        """Number of completed seqs waiting for a lower seq to finish."""
        return len(self._done_heap)

    def register(self, seq: int) -> None:
        """Record that work for ``seq`` has been accepted."""
        self._pending[seq] += 1
        heapq.heappush(self._pending_heap, seq)

    def complete(self, seq: int) -> int | None:
        """Record that work for ``seq`` finished.

        Returns:
            The seq to persist as the new cursor, or None if nothing changes

        Raises:
            ValueError: If ``seq`` was never registered
        """
        self._forget(seq)
        if self.policy == CommitPolicy.MAX_SEEN:
            return self._commit(seq)
        heapq.heappush(self._done_heap, seq)
        return self._advance()

    def release(self, seq: int) -> int | None:
        """Drop ``seq`` without completing it.

        The seq itself is never committed, but under ORDERED it no longer
        holds back completions above it.

        Returns:
            The seq to persist as the new cursor, or None if nothing changes

        Raises:
            ValueError: If ``seq`` was never registered
        """
        self._forget(seq)
        if self.policy == CommitPolicy.MAX_SEEN:
            return None
        return self._advance()

    def _forget(self, seq: int) -> None:
        if self._pending[seq] <= 0:
            raise ValueError(f"seq {seq} is not in flight")
        self._pending[seq] -= 1
        if self._pending[seq] == 0:
            del self._pending[seq]

    def _lowest_pending(self) -> int | None:
        # Lazy deletion: heap entries whose seq is no longer pending are stale
        while self._pending_heap and self._pending_heap[0] not in self._pending:
            heapq.heappop(self._pending_heap)
        return self._pending_heap[0] if self._pending_heap else None

    def _advance(self) -> int | None:
        lowest = self._lowest_pending()
        candidate = None
        while self._done_heap and (lowest is None or self._done_heap[0] < lowest):
            candidate = heapq.heappop(self._done_heap)
        if candidate is None:
            return None
        return self._commit(candidate)

    def _commit(self, seq: int) -> int | None:
        if self.committed is not None and seq <= self.committed:
            return None
        detail_logger.debug(f"Cursor advances {self.committed} -> {seq}")
        self.committed = seq
        return seq
