"""Client-side rate limiting for API calls.

This module provides:
- SlidingWindowRateLimiter: bounds outbound calls to a quota per time window

The limiter keeps the timestamps of recent calls. When the quota is used up,
the caller is suspended until the oldest timestamp leaves the window and the
check is evaluated again, so calls are delayed rather than dropped.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUESTS = 10
DEFAULT_WINDOW = 1.0  # seconds


class SlidingWindowRateLimiter:
    """Sliding-window counter allowing ``max_requests`` per ``window`` seconds."""

    def __init__(
        self,
        max_requests: int = DEFAULT_MAX_REQUESTS,
        window: float = DEFAULT_WINDOW,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            max_requests: Calls allowed inside one window.
            window: Window length in seconds.
            clock: Monotonic clock returning seconds.
            sleep: Awaitable sleep used while the quota is exhausted.
        """
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        self._max_requests = max_requests
        self._window = window
        self._clock = clock
        self._sleep = sleep
        self._timestamps: deque[float] = deque()

    @property
    def max_requests(self) -> int:
        return self._max_requests

    @property
    def window(self) -> float:
        return self._window

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self._window:
            self._timestamps.popleft()

    def in_flight(self) -> int:
        """Number of calls counted in the current window."""
        self._prune(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> None:
        """Wait until a call slot is available and claim it."""
        while True:
            now = self._clock()
            self._prune(now)

            if len(self._timestamps) < self._max_requests:
                self._timestamps.append(now)
                return

            wait_time = self._timestamps[0] + self._window - now
            logger.debug("Rate limit reached, waiting %.3fs", wait_time)
            if wait_time > 0:
                await self._sleep(wait_time)
