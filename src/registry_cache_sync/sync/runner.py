# SPDX-License-Identifier: MIT
"""Assembles the pipeline from configuration and runs it."""

from pathlib import Path
from typing import Any

from ..config import AppConfig
from ..constants import CACHE_MIN_STATE_KEY
from ..enums import CommitPolicy
from ..feed import CouchChangesFeed
from ..logging_config import get_detail_logger, get_status_logger
from ..npm_cache import CacheMinOverride, NpmCacheStore
from ..registry import RegistryMetadataResolver, registry_origin_filter
from ..storage import CheckpointStore, StateStore, SyncHistory
from .controller import (
    PipelineController,
    install_signal_handlers,
    remove_signal_handlers,
)
from .reconciliation import ReconciliationScanner
from .worker_pool import SyncWorkerPool


detail_logger = get_detail_logger()
status_logger = get_status_logger()


async def run_pipeline(
    config: AppConfig,
    since_override: int | None = None,
    reconcile: bool | None = None,
    tune_cache_min: bool | None = None,
    commit_policy: CommitPolicy | None = None,
    concurrency: int | None = None,
) -> PipelineController:
    """Build every component from ``config`` and run until stopped.

    Keyword overrides take precedence over the matching config values.
    Termination signals request a graceful stop for the duration of the run.

    Args:
        config: Effective application configuration
        since_override: Start cursor, or LIVE_TAIL to start at the feed head
        reconcile: Run the reconciliation scan before following
        tune_cache_min: Override cache-min while running
        commit_policy: Checkpoint commit policy
        concurrency: Maximum concurrent cache mutations

    Returns:
        The stopped controller, for inspection of the final state

    Raises:
        CacheTuningError: If cache-min cannot be overridden at startup
    """
    if reconcile is None:
        reconcile = config.reconcile.enabled
    if tune_cache_min is None:
        tune_cache_min = config.cache.tune_cache_min
    if commit_policy is None:
        commit_policy = config.pool.commit_policy
    if concurrency is not None:
        config = config.model_copy(
            update={"pool": config.pool.model_copy(update={"concurrency": concurrency})}
        )
    concurrency = config.pool.concurrency
    max_resolutions = config.max_concurrent_resolutions

    db_path = Path(config.storage.db_path)
    state_store = StateStore(db_path)
    checkpoint = CheckpointStore(state_store, initial_since=config.feed.initial_since)
    history = SyncHistory(db_path)

    store = NpmCacheStore(Path(config.cache.cache_dir), config.cache.npm_command)
    pool = SyncWorkerPool(
        store, concurrency=concurrency, queue_buffer=config.pool.queue_buffer
    )

    cache_tuning = None
    if tune_cache_min:
        cache_tuning = CacheMinOverride(
            store, state_store, override=config.cache.cache_min_override
        )

    detail_logger.info(
        f"Pipeline: feed={config.feed.url} registry={config.registry.url} "
        f"cache={config.cache.cache_dir} concurrency={concurrency} "
        f"resolutions={max_resolutions} reconcile={reconcile}"
    )

    async with (
        CouchChangesFeed(
            config.feed.url,
            poll_timeout_ms=config.feed.poll_timeout_ms,
            inactivity_seconds=config.feed.inactivity_seconds,
        ) as feed,
        RegistryMetadataResolver(
            config.registry.url,
            timeout=config.registry.timeout,
            max_concurrent=max_resolutions,
            max_retries=config.registry.max_retries,
        ) as resolver,
    ):
        scanner = None
        if reconcile:
            scanner = ReconciliationScanner(
                store,
                resolver,
                pool,
                registry_origin_filter(config.registry.url),
                max_concurrent_resolutions=max_resolutions,
            )

        controller = PipelineController(
            feed,
            resolver,
            pool,
            checkpoint,
            history=history,
            scanner=scanner,
            cache_tuning=cache_tuning,
            commit_policy=commit_policy,
            since_override=since_override,
            max_concurrent_resolutions=max_resolutions,
        )

        installed = install_signal_handlers(controller)
        try:
            await controller.run()
        finally:
            remove_signal_handlers(installed)

    if controller.tracker is not None and controller.tracker.committed is not None:
        status_logger.info(f"Stopped at seq {controller.tracker.committed}")
    else:
        status_logger.info("Stopped")
    return controller


def get_sync_status(config: AppConfig, history_limit: int) -> dict[str, Any]:
    """Summarize stored sync state without touching the feed or the cache.

    Returns:
        Dictionary with the cursor, whether it was ever committed, a pending
        cache-min restore (left behind by an interrupted run), outcome
        counts and the most recent completions
    """
    db_path = Path(config.storage.db_path)
    state_store = StateStore(db_path)
    checkpoint = CheckpointStore(state_store, initial_since=config.feed.initial_since)
    history = SyncHistory(db_path)

    return {
        "cursor": checkpoint.get(),
        "cursor_stored": checkpoint.is_stored(),
        "saved_cache_min": state_store.get_value(CACHE_MIN_STATE_KEY),
        "outcomes": history.outcome_counts(),
        "recent": history.recent(history_limit),
    }
