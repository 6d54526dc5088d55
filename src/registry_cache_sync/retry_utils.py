# SPDX-License-Identifier: MIT
"""Retry utilities for registry and feed calls."""

import asyncio
from collections.abc import Awaitable, Callable, Iterator
from functools import wraps
from typing import Any, TypeVar

from .logging_config import get_detail_logger


detail_logger = get_detail_logger()

T = TypeVar("T")


def backoff_delays(
    initial_delay: float, max_delay: float, exponential_base: float = 2.0
) -> Iterator[float]:
    """Yield an endless sequence of capped exponential delays."""
    delay = initial_delay
    while True:
        yield delay
        delay = min(delay * exponential_base, max_delay)


def async_retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    should_retry: Callable[[Exception], bool] | None = None,
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """Decorator for retrying async functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts
        initial_delay: Initial delay in seconds
        max_delay: Maximum delay in seconds
        exponential_base: Base for exponential backoff calculation
        exceptions: Tuple of exception types to catch and retry
        should_retry: Optional predicate; errors it rejects are raised at once

    Returns:
        Decorated async function

    Example:
        >>> @async_retry_with_backoff(max_retries=2, exceptions=(ResolutionError,))
        ... async def fetch_packument(name):
        ...     return await session.get(f"{registry}/{name}")
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            delays = backoff_delays(initial_delay, max_delay, exponential_base)
            attempt = 0

            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries or (
                        should_retry is not None and not should_retry(e)
                    ):
                        detail_logger.debug(
                            f"{func.__name__} failed after {attempt} retries: {e}"
                        )
                        raise

                    delay = next(delays)
                    detail_logger.debug(
                        f"{func.__name__} failed (attempt {attempt + 1}/{max_retries}): {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )
                    await asyncio.sleep(delay)
                    attempt += 1

        return wrapper

    return decorator
