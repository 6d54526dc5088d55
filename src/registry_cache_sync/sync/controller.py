# SPDX-License-Identifier: MIT
"""Pipeline controller: reconciliation, feed following and checkpointing.

States run ``idle -> [reconciling] -> following -> shutting_down -> stopped``.
Every exit path (stop request, feed exhaustion, errors) passes through
``shutting_down``, where outstanding resolutions are cancelled and the worker
pool is drained before any scoped cache tuning is undone.
"""

import asyncio
import contextlib
import signal
import sqlite3
from collections.abc import Awaitable
from contextlib import AbstractAsyncContextManager
from typing import Any, TypeVar

from ..constants import LIVE_TAIL
from ..enums import CommitPolicy, PipelineState
from ..exceptions import FeedConnectionError, PoolClosedError, ResolutionError
from ..logging_config import get_detail_logger, get_status_logger
from ..models import ChangeRecord, WorkItem, WorkResult
from ..protocols import ChangeFeedSource, MetadataResolver
from ..storage import CheckpointStore, SyncHistory
from .checkpoint_tracker import CheckpointTracker
from .history_writer import AsyncHistoryWriter
from .reconciliation import ReconciliationScanner
from .worker_pool import SyncWorkerPool


T = TypeVar("T")

STOP_SIGNALS = ("SIGHUP", "SIGINT", "SIGQUIT", "SIGABRT", "SIGTERM")


class PipelineController:
    """Wires feed, resolver, worker pool and checkpoint store together."""

    def __init__(
        self,
        feed: ChangeFeedSource,
        resolver: MetadataResolver,
        pool: SyncWorkerPool,
        checkpoint: CheckpointStore,
        *,
        history: SyncHistory | None = None,
        scanner: ReconciliationScanner | None = None,
        cache_tuning: AbstractAsyncContextManager[Any] | None = None,
        commit_policy: CommitPolicy = CommitPolicy.ORDERED,
        since_override: int | None = None,
        max_concurrent_resolutions: int = 20,
    ) -> None:
        """Initialize the controller.

        Args:
            feed: Source of change records
            resolver: Metadata lookup for each change
            pool: Worker pool applying cache mutations
            checkpoint: Durable cursor store
            history: Optional per-item completion log
            scanner: Reconciliation scanner, run before following if given
            cache_tuning: Scoped process-wide cache setting override
            commit_policy: How completions become checkpoint commits
            since_override: Start cursor (or LIVE_TAIL) overriding the stored one
            max_concurrent_resolutions: Bound on outstanding metadata lookups
        """
        self.feed = feed
        self.resolver = resolver
        self.pool = pool
        self.checkpoint = checkpoint
        self.history = history
        self.history_writer = (
            AsyncHistoryWriter(history) if history is not None else None
        )
        self.scanner = scanner
        self.cache_tuning = cache_tuning
        self.commit_policy = commit_policy
        self.since_override = since_override
        self.state = PipelineState.IDLE
        self.tracker: CheckpointTracker | None = None
        self.detail_logger = get_detail_logger()
        self.status_logger = get_status_logger()
        self._stop_event = asyncio.Event()
        self._resolution_slots = asyncio.Semaphore(max_concurrent_resolutions)
        self._resolution_tasks: set[asyncio.Task[None]] = set()
        self.pool.on_completion(self._on_completion)

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    def request_stop(self) -> None:
        """Begin shutdown: no new submissions, let accepted work finish."""
        if not self._stop_event.is_set():
            self.detail_logger.info("Shutdown requested")
        self._stop_event.set()
        self.pool.close()

    def starting_cursor(self) -> int:
        """Cursor to follow from: the override if given, else the stored one."""
        if self.since_override is not None:
            return self.since_override
        return self.checkpoint.get()

    async def run(self) -> None:
        """Run the pipeline until stopped or the feed ends.

        Raises:
            CacheTuningError: If the cache setting override cannot be applied
        """
        tuning = self.cache_tuning or contextlib.nullcontext()
        try:
            async with tuning:
                await self.pool.start()
                try:
                    if self.history_writer is not None:
                        await self.history_writer.start_writer()
                    if self.scanner is not None and not self.stop_requested:
                        self._transition(PipelineState.RECONCILING)
                        await self._run_until_stopped(self._reconcile(self.scanner))
                    if not self.stop_requested:
                        self._transition(PipelineState.FOLLOWING)
                        await self._run_until_stopped(self._follow())
                finally:
                    self._transition(PipelineState.SHUTTING_DOWN)
                    await self._shutdown()
        finally:
            self._transition(PipelineState.STOPPED)

    def _transition(self, state: PipelineState) -> None:
        self.detail_logger.info(f"Pipeline state: {self.state.value} -> {state.value}")
        self.state = state

    async def _run_until_stopped(self, work: Awaitable[T]) -> T | None:
        """Await ``work``, cancelling it if a stop is requested first."""
        work_task = asyncio.ensure_future(work)
        stop_task = asyncio.create_task(self._stop_event.wait())
        try:
            done, _ = await asyncio.wait(
                {work_task, stop_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except BaseException:
            work_task.cancel()
            raise
        finally:
            stop_task.cancel()

        if work_task in done:
            return work_task.result()

        work_task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await work_task
        return None

    async def _reconcile(self, scanner: ReconciliationScanner) -> None:
        summary = await scanner.run()
        self.detail_logger.info(f"Reconciliation submitted: {summary}")
        await self.pool.join()
        self.detail_logger.info("Reconciliation complete")

    async def _follow(self) -> None:
        since = self.starting_cursor()
        self.tracker = CheckpointTracker(
            self.commit_policy, committed=None if since == LIVE_TAIL else since
        )
        self.detail_logger.info(
            f"Following from {'now' if since == LIVE_TAIL else since} "
            f"({self.commit_policy.value} commits)"
        )

        async for change in self.feed.subscribe(since, on_error=self._on_feed_error):
            # Backpressure: wait for a resolution slot before taking more changes
            await self._resolution_slots.acquire()
            self.tracker.register(change.seq)
            task = asyncio.create_task(self._resolve_and_submit(change))
            self._resolution_tasks.add(task)
            task.add_done_callback(self._resolution_tasks.discard)

        self.detail_logger.info("Change feed ended")
        if self._resolution_tasks:
            await asyncio.gather(*self._resolution_tasks, return_exceptions=True)

    async def _resolve_and_submit(self, change: ChangeRecord) -> None:
        """Resolve one change and hand it to the pool.

        A change that cannot be resolved is released without being
        checkpointed; a later delivery or restart may pick it up again.

        A change dropped by shutdown (its lookup cancelled, or its item refused
        by the closing pool) stays registered, so the cursor cannot pass it
        and the next run starts at or before it.
        """
        try:
            try:
                metadata = await self.resolver.resolve(change.id)
            except ResolutionError as e:
                self.status_logger.warning(f"{change.seq} unresolved {change.id}: {e}")
                self._release(change.seq)
                return
            except Exception as e:
                self.detail_logger.exception(f"Unexpected error resolving {change.id}")
                self.status_logger.warning(
                    f"{change.seq} unresolved {change.id}: {type(e).__name__} - {e}"
                )
                self._release(change.seq)
                return

            try:
                await self.pool.submit(WorkItem.from_change(change, metadata))
            except PoolClosedError:
                self.detail_logger.debug(
                    f"Pool closed, change {change.seq} left for the next run"
                )
        finally:
            self._resolution_slots.release()

    def _on_feed_error(self, error: Exception) -> None:
        if isinstance(error, FeedConnectionError):
            self.status_logger.warning(f"Change feed error: {error}")
        else:
            self.status_logger.error(f"Change feed error: {type(error).__name__} - {error}")

    def _on_completion(self, item: WorkItem, result: WorkResult) -> None:
        self._report(item, result)

        if self.history_writer is not None:
            self.history_writer.queue_record(item, result)

        # Failed items still advance: at least one attempt, not one success
        if not item.commits_checkpoint or self.tracker is None:
            return
        new_cursor = self.tracker.complete(item.seq)
        if new_cursor is not None:
            self._commit(new_cursor)

    def _release(self, seq: int) -> None:
        if self.tracker is None:
            return
        new_cursor = self.tracker.release(seq)
        if new_cursor is not None:
            self._commit(new_cursor)

    def _commit(self, seq: int) -> None:
        try:
            self.checkpoint.set(seq)
        except sqlite3.Error as e:
            self.status_logger.error(f"Failed to save checkpoint {seq}: {e}")

    def _report(self, item: WorkItem, result: WorkResult) -> None:
        prefix = str(item.seq) if item.seq is not None else "reconcile"
        if not result.ok:
            self.status_logger.warning(f"{prefix} failed {item.spec}: {result.error}")
        else:
            self.status_logger.info(f"{prefix} {result.outcome.value} {item.spec}")

    async def _shutdown(self) -> None:
        self.pool.close()

        pending = list(self._resolution_tasks)
        for task in pending:
            task.cancel()
        if pending:
            self.detail_logger.debug(f"Cancelling {len(pending)} pending resolutions")
            await asyncio.gather(*pending, return_exceptions=True)

        await self.pool.drain()
        if self.history_writer is not None:
            await self.history_writer.stop_writer()

        if self.tracker is not None:
            self.detail_logger.info(
                f"Final cursor {self.tracker.committed} "
                f"({self.tracker.buffered} completions not committable, "
                f"{self.tracker.in_flight} changes left for the next run)"
            )


def install_signal_handlers(controller: PipelineController) -> list[signal.Signals]:
    """Route termination signals to ``controller.request_stop``.

    Returns:
        The signals that were installed, for later removal
    """
    loop = asyncio.get_running_loop()
    installed = []
    for name in STOP_SIGNALS:
        sig = getattr(signal, name, None)
        if sig is None:
            continue
        try:
            loop.add_signal_handler(sig, controller.request_stop)
        except (NotImplementedError, RuntimeError, ValueError):
            continue
        installed.append(sig)
    return installed


def remove_signal_handlers(signals: list[signal.Signals]) -> None:
    loop = asyncio.get_running_loop()
    for sig in signals:
        loop.remove_signal_handler(sig)
