# SPDX-License-Identifier: MIT
"""Change-feed driven cache synchronization.

- SyncWorkerPool: bounded-concurrency application of work items
- CheckpointTracker: completion bookkeeping behind cursor commits
- AsyncHistoryWriter: batched completion history written off the event loop
- ReconciliationScanner: startup cross-check of the existing cache
- PipelineController: feed following, shutdown and checkpointing
"""

from .checkpoint_tracker import CheckpointTracker
from .controller import (
    PipelineController,
    install_signal_handlers,
    remove_signal_handlers,
)
from .history_writer import AsyncHistoryWriter
from .reconciliation import ReconciliationScanner
from .runner import get_sync_status, run_pipeline
from .worker_pool import SyncWorkerPool


__all__ = [
    "AsyncHistoryWriter",
    "CheckpointTracker",
    "PipelineController",
    "ReconciliationScanner",
    "SyncWorkerPool",
    "get_sync_status",
    "install_signal_handlers",
    "remove_signal_handlers",
    "run_pipeline",
]
