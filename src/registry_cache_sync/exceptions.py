# SPDX-License-Identifier: MIT
"""Standard exceptions for registry cache sync."""

from .utils.dead_code import code_is_used


class SyncError(Exception):
    """Base class for all synchronization errors."""

    @code_is_used  # Called via super().__init__() from subclasses
    def __init__(self, message: str, package: str | None = None) -> None:
        self.package = package
        super().__init__(message)


class ResolutionError(SyncError):
    """Raised when package metadata cannot be fetched or parsed."""

    def __init__(
        self, message: str, package: str | None = None, retryable: bool = True
    ) -> None:
        self.retryable = retryable
        super().__init__(message, package)


class CacheStoreError(SyncError):
    """Raised when a cache mutation or lookup fails."""

    def __init__(
        self,
        message: str,
        package: str | None = None,
        returncode: int | None = None,
    ) -> None:
        self.returncode = returncode
        msg = f"{message} (exit code {returncode})" if returncode else message
        super().__init__(msg, package)


class FeedConnectionError(SyncError):
    """Raised when the change feed connection drops or misbehaves."""

    pass


class CacheTuningError(SyncError):
    """Raised when the cache staleness setting cannot be read or overridden."""

    pass


class PoolClosedError(SyncError):
    """Raised when submitting to a worker pool that is draining or stopped."""

    pass
