# SPDX-License-Identifier: MIT
"""Scoped override of the cache staleness threshold (``cache-min``).

While the pipeline warms entries, npm must not treat them as stale and
refetch them. The override is an async context manager so the previous value
is restored on every exit path.
"""

import sqlite3

from ..constants import (
    CACHE_MIN_CONFIG_KEY,
    CACHE_MIN_STATE_KEY,
    DEFAULT_CACHE_MIN_OVERRIDE,
)
from ..exceptions import CacheStoreError, CacheTuningError
from ..logging_config import get_detail_logger, get_status_logger
from ..protocols import ConfigurableCache
from ..storage import StateStore


detail_logger = get_detail_logger()
status_logger = get_status_logger()


class CacheMinOverride:
    """Raise ``cache-min`` for the lifetime of the context, then restore it.

    The prior value is also written to the state store so that a run killed
    before restoring does not lose it: if the current value equals the
    override and a saved value exists, the saved value is treated as prior.
    """

    def __init__(
        self,
        cache: ConfigurableCache,
        state_store: StateStore,
        override: int = DEFAULT_CACHE_MIN_OVERRIDE,
    ):
        self.cache = cache
        self.state_store = state_store
        self.override = str(override)
        self.prior: str | None = None

    async def __aenter__(self) -> "CacheMinOverride":
        """Save the current value and apply the override.

        Raises:
            CacheTuningError: If the setting cannot be read, saved or changed
        """
        try:
            current = await self.cache.get_config(CACHE_MIN_CONFIG_KEY)
        except CacheStoreError as e:
            raise CacheTuningError(f"Could not read {CACHE_MIN_CONFIG_KEY}: {e}") from e

        try:
            saved = self.state_store.get_value(CACHE_MIN_STATE_KEY)
            if saved is not None and current == self.override:
                detail_logger.info(
                    f"{CACHE_MIN_CONFIG_KEY} still overridden by an earlier run, "
                    f"prior value is {saved}"
                )
                prior = saved
            else:
                prior = current
            detail_logger.info(f"Saving current {CACHE_MIN_CONFIG_KEY}: {prior}")
            self.state_store.set_value(CACHE_MIN_STATE_KEY, prior)
        except (sqlite3.Error, OSError) as e:
            raise CacheTuningError(f"Could not save {CACHE_MIN_CONFIG_KEY}: {e}") from e

        try:
            detail_logger.info(f"Setting {CACHE_MIN_CONFIG_KEY} to {self.override}")
            await self.cache.set_config(CACHE_MIN_CONFIG_KEY, self.override)
        except CacheStoreError as e:
            raise CacheTuningError(f"Could not set {CACHE_MIN_CONFIG_KEY}: {e}") from e

        self.prior = prior
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: BaseException | None, exc_tb: object
    ) -> None:
        await self.restore()

    async def restore(self) -> None:
        """Put the prior value back. Failures are logged, never raised."""
        if self.prior is None:
            return
        prior, self.prior = self.prior, None

        detail_logger.info(f"Restoring {CACHE_MIN_CONFIG_KEY}: {prior}")
        try:
            await self.cache.set_config(CACHE_MIN_CONFIG_KEY, prior)
        except CacheStoreError as e:
            status_logger.error(f"Failed to restore {CACHE_MIN_CONFIG_KEY}={prior}: {e}")
            return

        try:
            self.state_store.delete_value(CACHE_MIN_STATE_KEY)
        except (sqlite3.Error, OSError) as e:
            detail_logger.warning(f"Could not clear saved {CACHE_MIN_CONFIG_KEY}: {e}")
