# SPDX-License-Identifier: MIT
"""Bounded-concurrency worker pool applying work items to the cache."""

import asyncio
from collections import Counter
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager

from ..constants import DEFAULT_CONCURRENCY, DEFAULT_QUEUE_BUFFER
from ..enums import MutationOutcome
from ..exceptions import CacheStoreError, PoolClosedError
from ..logging_config import get_detail_logger
from ..models import WorkItem, WorkResult
from ..protocols import CacheStore


CompletionHandler = Callable[[WorkItem, WorkResult], None]

_QueueEntry = tuple[WorkItem, "asyncio.Future[WorkResult]"]


class SyncWorkerPool:
    """Processes work items with at most ``concurrency`` in flight.

    ``submit`` places an item on a bounded queue and returns a future that is
    resolved exactly once with the item's WorkResult. Once ``concurrency``
    items are running and ``queue_buffer`` more are waiting, ``submit``
    blocks, which slows the producer down instead of growing the queue.

    Mutations for the same package never overlap; items for distinct
    packages run concurrently.
    """

    def __init__(
        self,
        store: CacheStore,
        concurrency: int = DEFAULT_CONCURRENCY,
        queue_buffer: int = DEFAULT_QUEUE_BUFFER,
    ) -> None:
        if concurrency < 1:
            raise ValueError("Concurrency must be at least 1")
        if queue_buffer < 1:
            raise ValueError("Queue buffer must be at least 1")

        self.store = store
        self.concurrency = concurrency
        self.queue: asyncio.Queue[_QueueEntry | None] = asyncio.Queue(
            maxsize=queue_buffer
        )
        self.worker_tasks: list[asyncio.Task[None]] = []
        self.in_flight = 0
        self.detail_logger = get_detail_logger()
        self._handlers: list[CompletionHandler] = []
        self._closed = False
        self._drained = False
        self._package_locks: dict[str, asyncio.Lock] = {}
        self._lock_users: Counter[str] = Counter()

    @property
    def closed(self) -> bool:
        return self._closed

    def on_completion(self, handler: CompletionHandler) -> None:
        """Register a callback invoked once per finished item.

        Handlers run on the worker that finished the item, in registration
        order. Exceptions they raise are logged and do not affect the pool.
        """
        self._handlers.append(handler)

    async def start(self) -> None:
        """Start the worker tasks. Does nothing if already running."""
        if self.worker_tasks:
            return
        if self._drained:
            raise PoolClosedError("Worker pool has been drained")

        self.detail_logger.debug(f"Starting {self.concurrency} sync workers")
        self.worker_tasks = [
            asyncio.create_task(self._worker_loop(worker_id))
            for worker_id in range(self.concurrency)
        ]

    async def submit(self, item: WorkItem) -> "asyncio.Future[WorkResult]":
        """Queue ``item`` for processing.

        Returns:
            Future resolved with the item's WorkResult

        Raises:
            PoolClosedError: If the pool is not running or is draining
        """
        if self._closed:
            raise PoolClosedError("Worker pool is draining", package=item.name)
        if not self.worker_tasks:
            raise PoolClosedError("Worker pool is not running", package=item.name)

        future: asyncio.Future[WorkResult] = asyncio.get_running_loop().create_future()
        await self.queue.put((item, future))
        return future

    def close(self) -> None:
        """Stop accepting submissions without waiting for queued work."""
        if not self._closed:
            self.detail_logger.debug("Worker pool closed to new submissions")
        self._closed = True

    async def join(self) -> None:
        """Wait until every accepted item has completed. The pool stays open."""
        await self.queue.join()

    async def drain(self) -> None:
        """Stop accepting items, finish everything accepted, stop the workers."""
        self.close()
        if not self.worker_tasks:
            return

        self.detail_logger.debug(
            f"Draining worker pool ({self.queue.qsize()} queued, {self.in_flight} running)"
        )
        await self.queue.join()

        for _ in self.worker_tasks:
            await self.queue.put(None)  # Signal to stop
        await asyncio.gather(*self.worker_tasks)
        self.worker_tasks = []
        self._drained = True
        self.detail_logger.debug("Worker pool drained")

    async def _worker_loop(self, worker_id: int) -> None:
        """Take items off the queue until a None sentinel arrives."""
        while True:
            entry = await self.queue.get()
            try:
                # None signals shutdown
                if entry is None:
                    self.detail_logger.debug(f"Worker {worker_id} exiting")
                    break

                item, future = entry
                self.in_flight += 1
                try:
                    result = await self._process(item)
                finally:
                    self.in_flight -= 1
                self._complete(item, result, future)
            finally:
                self.queue.task_done()

    async def _process(self, item: WorkItem) -> WorkResult:
        """Apply one item to the cache. Never raises for cache errors."""
        async with self._package_lock(item.name):
            try:
                return await self._apply(item)
            except CacheStoreError as e:
                self.detail_logger.warning(f"Cache error for {item.spec}: {e}")
                return WorkResult(outcome=MutationOutcome.FAILED, error=str(e))
            except Exception as e:
                self.detail_logger.exception(f"Unexpected error processing {item.spec}")
                return WorkResult(
                    outcome=MutationOutcome.FAILED, error=f"{type(e).__name__}: {e}"
                )

    async def _apply(self, item: WorkItem) -> WorkResult:
        if item.deprecated:
            if not await self.store.exists(item.name):
                return WorkResult(outcome=MutationOutcome.SKIPPED)
            await self.store.invalidate(item.name)
            return WorkResult(outcome=MutationOutcome.INVALIDATED)

        if item.version is None or item.tarball is None:
            return WorkResult(
                outcome=MutationOutcome.FAILED,
                error=f"No version or tarball to warm {item.name}",
            )

        if await self.store.exists(item.name, item.version):
            return WorkResult(outcome=MutationOutcome.SKIPPED)
        await self.store.add(item.name, item.version, item.tarball)
        return WorkResult(outcome=MutationOutcome.ADDED)

    def _complete(
        self,
        item: WorkItem,
        result: WorkResult,
        future: "asyncio.Future[WorkResult]",
    ) -> None:
        if not future.done():
            future.set_result(result)
        for handler in self._handlers:
            try:
                handler(item, result)
            except Exception:
                self.detail_logger.exception(
                    f"Completion handler failed for {item.spec}"
                )

    @asynccontextmanager
    async def _package_lock(self, name: str) -> AsyncIterator[None]:
        lock = self._package_locks.setdefault(name, asyncio.Lock())
        self._lock_users[name] += 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[name] -= 1
            if self._lock_users[name] == 0:
                del self._lock_users[name]
                del self._package_locks[name]
