# SPDX-License-Identifier: MIT
"""Durable state for registry cache sync.

- StateStore: small key/value table (cursor, saved cache settings)
- CheckpointStore: the resume cursor on top of StateStore
- SyncHistory: one row per completed work item
"""

from .checkpoint_store import CheckpointStore
from .state_store import StateStore
from .sync_history import SyncHistory


__all__ = [
    "CheckpointStore",
    "StateStore",
    "SyncHistory",
]
