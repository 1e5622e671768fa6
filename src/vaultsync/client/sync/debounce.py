"""Coalescing scheduler for bursts of triggers.

This module provides:
- Debouncer: Collapses triggers within a window into one delayed action

Each trigger pushes the deadline back by ``delay``, but never later than
``max_wait`` after the first trigger of the burst, so continuous churn still
runs the action periodically instead of starving it. Only pending (not yet
started) actions can be cancelled; a running action always completes.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_DELAY = 2.0  # seconds
DEFAULT_MAX_WAIT_FACTOR = 5


class Debouncer:
    """Timer plus dirty flag around an async action."""

    def __init__(
        self,
        action: Callable[[], Awaitable[Any]],
        delay: float = DEFAULT_DELAY,
        max_wait: float | None = None,
    ) -> None:
        """Initialize the debouncer.

        Args:
            action: Coroutine function run once per burst.
            delay: Quiet period after the last trigger.
            max_wait: Longest a burst can postpone the action
                (default: 5 x delay).
        """
        self._action = action
        self._delay = delay
        self._max_wait = max_wait if max_wait is not None else delay * DEFAULT_MAX_WAIT_FACTOR
        self._handle: asyncio.TimerHandle | None = None
        self._burst_started = 0.0
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def pending(self) -> bool:
        """True when an action is scheduled but not started."""
        return self._handle is not None

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def trigger(self) -> None:
        """Schedule the action, coalescing with a pending one.

        Must be called from the event loop thread.
        """
        loop = asyncio.get_running_loop()
        now = loop.time()

        if self._handle is None:
            self._burst_started = now
        else:
            self._handle.cancel()

        deadline = min(now + self._delay, self._burst_started + self._max_wait)
        self._handle = loop.call_at(deadline, self._fire)

    def cancel(self) -> None:
        """Cancel the pending action, if any."""
        if self._handle:
            self._handle.cancel()
            self._handle = None

    async def flush(self) -> None:
        """Run the pending action now instead of waiting for the timer."""
        if self._handle is None:
            return
        self.cancel()
        await self._run()

    async def wait_idle(self) -> None:
        """Wait for running actions to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _fire(self) -> None:
        self._handle = None
        task = asyncio.ensure_future(self._run())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self) -> None:
        try:
            await self._action()
        except Exception:
            logger.exception("Debounced action failed")
