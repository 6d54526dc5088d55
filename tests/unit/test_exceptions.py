# SPDX-License-Identifier: MIT
"""Tests for the exception hierarchy."""

import pytest

from registry_cache_sync.exceptions import (
    CacheStoreError,
    CacheTuningError,
    FeedConnectionError,
    PoolClosedError,
    ResolutionError,
    SyncError,
)


@pytest.mark.parametrize(
    "exc_class",
    [
        ResolutionError,
        CacheStoreError,
        FeedConnectionError,
        CacheTuningError,
        PoolClosedError,
    ],
)
def test_all_errors_are_sync_errors(exc_class):
    """Test that every error derives from SyncError and keeps the package."""
    error = exc_class("boom", package="foo")
    assert isinstance(error, SyncError)
    assert error.package == "foo"
    assert "boom" in str(error)


def test_resolution_error_retryable_by_default():
    """Test that resolution errors are retryable unless stated otherwise."""
    assert ResolutionError("timeout").retryable is True
    assert ResolutionError("bad json", retryable=False).retryable is False


def test_cache_store_error_includes_exit_code():
    """Test that a subprocess exit code is kept and shown."""
    error = CacheStoreError("npm cache add failed", package="foo", returncode=254)

    assert error.returncode == 254
    assert str(error) == "npm cache add failed (exit code 254)"


def test_cache_store_error_without_exit_code():
    """Test the message when no subprocess was involved."""
    error = CacheStoreError("Invalid package name")

    assert error.returncode is None
    assert str(error) == "Invalid package name"
