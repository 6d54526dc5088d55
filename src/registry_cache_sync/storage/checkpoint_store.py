# SPDX-License-Identifier: MIT
"""Durable resume cursor for the change feed."""

from ..constants import CHECKPOINT_STATE_KEY, DEFAULT_INITIAL_SINCE
from ..logging_config import get_detail_logger
from .state_store import StateStore


detail_logger = get_detail_logger()


class CheckpointStore:
    """Single durable cursor value: every change with seq <= cursor is applied.

    No ordering is enforced here. Callers decide which seqs are safe to
    commit (see CheckpointTracker).
    """

    def __init__(
        self,
        state_store: StateStore,
        initial_since: int = DEFAULT_INITIAL_SINCE,
        key: str = CHECKPOINT_STATE_KEY,
    ):
        self.state_store = state_store
        self.initial_since = initial_since
        self.key = key

    def get(self) -> int:
        """Return the committed cursor, or the initial value on first run."""
        raw = self.state_store.get_value(self.key)
        if raw is None:
            detail_logger.debug(
                f"No stored cursor, using initial value {self.initial_since}"
            )
            return self.initial_since
        try:
            return int(raw)
        except ValueError:
            detail_logger.warning(
                f"Ignoring unreadable stored cursor {raw!r}, "
                f"using initial value {self.initial_since}"
            )
            return self.initial_since

    def set(self, seq: int) -> None:
        """Persist ``seq`` as the committed cursor."""
        self.state_store.set_value(self.key, str(int(seq)))
        detail_logger.debug(f"Checkpoint committed: {seq}")

    def is_stored(self) -> bool:
        """Whether a cursor has been committed yet."""
        return self.state_store.get_value(self.key) is not None
