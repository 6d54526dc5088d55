# SPDX-License-Identifier: MIT
"""Asynchronous history writer keeping SQLite commits off the event loop."""

import asyncio
import sqlite3

from ..logging_config import get_detail_logger, get_status_logger
from ..models import WorkItem, WorkResult
from ..storage import SyncHistory


_Completion = tuple[WorkItem, WorkResult]


class AsyncHistoryWriter:
    """Queues completion records and writes them in batches from a thread.

    Completion handlers run on the worker that finished an item, so they only
    enqueue. A single writer task drains the queue, writing everything that
    has accumulated since its last commit in one transaction.
    """

    def __init__(self, history: SyncHistory) -> None:
        self.history = history
        self.write_queue: asyncio.Queue[_Completion | None] = asyncio.Queue()
        self.writer_task: asyncio.Task[None] | None = None
        self.detail_logger = get_detail_logger()
        self.status_logger = get_status_logger()

    async def start_writer(self) -> None:
        """Start the writer task. Does nothing if it is already running."""
        if self.writer_task is None:
            self.detail_logger.debug("Starting history writer task")
            self.writer_task = asyncio.create_task(self._writer_loop())

    async def stop_writer(self) -> None:
        """Write everything queued so far, then stop the writer task."""
        if self.writer_task:
            self.detail_logger.debug("Sending shutdown signal (None) to history queue")
            await self.write_queue.put(None)  # Signal to stop
            await self.writer_task
            self.writer_task = None
            self.detail_logger.debug("History writer task stopped")

    def queue_record(self, item: WorkItem, result: WorkResult) -> None:
        """Queue one completion for writing. Never blocks."""
        self.write_queue.put_nowait((item, result))

    async def _writer_loop(self) -> None:
        while True:
            entry = await self.write_queue.get()
            batch: list[_Completion] = []
            stopping = entry is None
            if entry is not None:
                batch.append(entry)

            # Take whatever else is already waiting, up to the stop signal
            while not stopping and not self.write_queue.empty():
                entry = self.write_queue.get_nowait()
                if entry is None:
                    stopping = True
                else:
                    batch.append(entry)

            if batch:
                await self._write(batch)
            if stopping:
                self.detail_logger.debug("History writer loop exiting")
                break

    async def _write(self, batch: list[_Completion]) -> None:
        try:
            await asyncio.to_thread(self.history.record_many, batch)
            self.detail_logger.debug(f"Recorded {len(batch)} completions")
        except sqlite3.Error as e:
            self.status_logger.error(f"History write error: {e}")
            self.detail_logger.exception(
                f"Could not record {len(batch)} completions"
            )
