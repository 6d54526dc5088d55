# SPDX-License-Identifier: MIT
"""Protocol definitions for the pipeline's external collaborators."""

from collections.abc import AsyncIterator, Callable, Iterable
from typing import Protocol, runtime_checkable

from .models import CacheManifestEntry, ChangeRecord, PackageMetadata
from .utils.dead_code import code_is_used


FeedErrorHandler = Callable[[Exception], None]


@runtime_checkable
class ChangeFeedSource(Protocol):
    """Protocol for an ordered, resumable stream of registry changes.

    The stream is lazy and normally never terminates. Connection problems are
    reported through ``on_error``; reconnecting is the source's own job.
    """

    @code_is_used
    def subscribe(
        self, since: int, on_error: FeedErrorHandler | None = None
    ) -> AsyncIterator[ChangeRecord]:
        """Yield change records after ``since``.

        Args:
            since: Resume after this seq, or LIVE_TAIL to start from now
            on_error: Called with each recoverable connection error

        Returns:
            Async iterator of ChangeRecord with non-decreasing seq
        """
        ...


@runtime_checkable
class MetadataResolver(Protocol):
    """Protocol for looking up a package's current registry state."""

    @code_is_used
    async def resolve(self, name: str) -> PackageMetadata:
        """Resolve metadata for ``name``.

        Returns metadata with ``deprecated=True`` when the registry has no
        current distribution tags for the package.

        Raises:
            ResolutionError: On network or parse failure
        """
        ...


@runtime_checkable
class CacheStore(Protocol):
    """Protocol for the local package cache."""

    @code_is_used
    async def exists(self, name: str, version: str | None = None) -> bool:
        """Check whether ``name`` (optionally at ``version``) is cached."""
        ...

    @code_is_used
    async def add(self, name: str, version: str, tarball: str) -> None:
        """Warm the cache with ``name@version`` from ``tarball``.

        Raises:
            CacheStoreError: If the cache could not be populated
        """
        ...

    @code_is_used
    async def invalidate(self, name: str, version: str | None = None) -> None:
        """Remove ``name`` (optionally only ``version``) from the cache.

        Raises:
            CacheStoreError: If the entry could not be removed
        """
        ...


@runtime_checkable
class ManifestLister(Protocol):
    """Protocol for listing manifests stored in the cache's backing storage."""

    @code_is_used
    def list_manifests(self) -> Iterable[CacheManifestEntry]:
        """Yield one entry per cached package manifest."""
        ...


@runtime_checkable
class ConfigurableCache(Protocol):
    """Protocol for caches whose process-wide settings can be read and written."""

    @code_is_used
    async def get_config(self, key: str) -> str:
        """Read a setting.

        Raises:
            CacheStoreError: If the setting cannot be read
        """
        ...

    @code_is_used
    async def set_config(self, key: str, value: str) -> None:
        """Write a setting.

        Raises:
            CacheStoreError: If the setting cannot be written
        """
        ...
