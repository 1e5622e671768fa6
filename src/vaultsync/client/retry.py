"""Retry logic with exponential backoff.

This module provides:
- retry_with_backoff: Async exponential backoff retry with a retry predicate
- compute_backoff_delays: The delay sequence used between attempts
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Default retry configuration
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_BACKOFF = 1.0  # seconds
DEFAULT_MAX_BACKOFF = 30.0  # seconds
DEFAULT_BACKOFF_MULTIPLIER = 2.0

SleepFunc = Callable[[float], Awaitable[None]]


def compute_backoff_delays(
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
) -> list[float]:
    """Return the delays slept before each retry.

    Example: 3 retries starting at 1s give [1.0, 2.0, 4.0].
    """
    delays: list[float] = []
    backoff = initial_backoff
    for _ in range(max_retries):
        delays.append(backoff)
        backoff = min(backoff * backoff_multiplier, max_backoff)
    return delays


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    initial_backoff: float = DEFAULT_INITIAL_BACKOFF,
    max_backoff: float = DEFAULT_MAX_BACKOFF,
    backoff_multiplier: float = DEFAULT_BACKOFF_MULTIPLIER,
    should_retry: Callable[[Exception], bool] | None = None,
    sleep: SleepFunc = asyncio.sleep,
) -> T:
    """Await a coroutine factory with exponential backoff retry.

    The first attempt is not counted as a retry, so a call that always fails
    is attempted ``max_retries + 1`` times.

    Args:
        func: Zero-argument callable returning a fresh awaitable per attempt.
        max_retries: Maximum number of retry attempts.
        initial_backoff: Initial backoff time in seconds.
        max_backoff: Maximum backoff time in seconds.
        backoff_multiplier: Multiplier for each retry.
        should_retry: Predicate deciding whether an exception is transient.
            Exceptions it rejects are raised immediately. Defaults to
            retrying every exception.
        sleep: Awaitable sleep used between attempts.

    Returns:
        Result of the awaited call.

    Raises:
        The last exception if all retries fail, or the first non-retryable one.
    """
    backoff = initial_backoff

    for attempt in range(max_retries + 1):
        try:
            return await func()
        except Exception as e:
            if should_retry is not None and not should_retry(e):
                raise

            if attempt == max_retries:
                logger.error(f"All {max_retries} retries failed: {e}")
                raise

            logger.warning(
                f"Attempt {attempt + 1}/{max_retries + 1} failed: {e}. "
                f"Retrying in {backoff:.1f}s..."
            )
            await sleep(backoff)
            backoff = min(backoff * backoff_multiplier, max_backoff)

    # Should not reach here, but satisfy type checker
    raise RuntimeError("Unexpected retry loop exit")
