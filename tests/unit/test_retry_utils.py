# SPDX-License-Identifier: MIT
"""Tests for retry utilities."""

from itertools import islice
from unittest.mock import AsyncMock, patch

import pytest

from registry_cache_sync.exceptions import ResolutionError
from registry_cache_sync.retry_utils import async_retry_with_backoff, backoff_delays


class TestBackoffDelays:
    """Test cases for the backoff delay generator."""

    def test_exponential_and_capped(self):
        """Test that delays double until they reach the cap."""
        delays = list(islice(backoff_delays(1.0, 10.0), 6))
        assert delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_custom_base(self):
        """Test a non-default exponential base."""
        delays = list(islice(backoff_delays(0.5, 100.0, exponential_base=3.0), 3))
        assert delays == [0.5, 1.5, 4.5]


class TestAsyncRetryWithBackoff:
    """Test cases for the async_retry_with_backoff decorator."""

    @pytest.mark.asyncio
    async def test_successful_call_no_retry(self):
        """Test that successful calls don't trigger retries."""
        call_count = 0

        @async_retry_with_backoff(max_retries=3)
        async def successful_func():
            nonlocal call_count
            call_count += 1
            return "success"

        assert await successful_func() == "success"
        assert call_count == 1

    @pytest.mark.asyncio
    async def test_failure_then_success(self):
        """Test that the function succeeds after initial failures."""
        call_count = 0

        @async_retry_with_backoff(max_retries=3, initial_delay=0.01)
        async def flaky_func():
            nonlocal call_count
            call_count += 1
            if call_count < 3:
                raise ValueError("Temporary error")
            return "success"

        assert await flaky_func() == "success"
        assert call_count == 3

    @pytest.mark.asyncio
    async def test_max_retries_exceeded(self):
        """Test that the last exception is raised after max retries."""
        call_count = 0

        @async_retry_with_backoff(max_retries=2, initial_delay=0.01)
        async def always_fails():
            nonlocal call_count
            call_count += 1
            raise ValueError("Always fails")

        with pytest.raises(ValueError, match="Always fails"):
            await always_fails()

        assert call_count == 3  # Initial call + 2 retries

    @pytest.mark.asyncio
    async def test_only_listed_exceptions_retried(self):
        """Test that unlisted exception types propagate immediately."""
        call_count = 0

        @async_retry_with_backoff(max_retries=3, exceptions=(ValueError,))
        async def raises_type_error():
            nonlocal call_count
            call_count += 1
            raise TypeError("not retried")

        with pytest.raises(TypeError):
            await raises_type_error()

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_should_retry_predicate(self):
        """Test that errors rejected by should_retry are raised at once."""
        call_count = 0

        @async_retry_with_backoff(
            max_retries=3,
            initial_delay=0.01,
            exceptions=(ResolutionError,),
            should_retry=lambda e: e.retryable,
        )
        async def permanent_failure():
            nonlocal call_count
            call_count += 1
            raise ResolutionError("bad document", retryable=False)

        with pytest.raises(ResolutionError):
            await permanent_failure()

        assert call_count == 1

    @pytest.mark.asyncio
    async def test_sleeps_follow_backoff(self):
        """Test the delays passed to asyncio.sleep between attempts."""

        @async_retry_with_backoff(max_retries=3, initial_delay=1.0, max_delay=3.0)
        async def always_fails():
            raise ValueError("fail")

        with patch(
            "registry_cache_sync.retry_utils.asyncio.sleep", new_callable=AsyncMock
        ) as mock_sleep:
            with pytest.raises(ValueError):
                await always_fails()

        assert [call.args[0] for call in mock_sleep.await_args_list] == [1.0, 2.0, 3.0]
