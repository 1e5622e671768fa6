"""Scheduled pre-digest sync.

This module provides:
- ScheduledSyncManager: Polls the digest schedule and triggers a full sync
  shortly before each delivery
- poll_interval: Adaptive polling interval from the time left to delivery

Polling tiers (time until next delivery -> check interval):
    > 12h   -> 60 min
    6-12h   -> 30 min
    2-6h    -> 15 min
    < 2h    -> 10 min
    unknown -> 60 min

A sync fires when the delivery is in the future, within the configured
window (1-12 hours), and no scheduled sync fired in the last 30 minutes.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from vaultsync.client.api import APIError, DigestSchedule
from vaultsync.client.sync.types import SyncInProgressError
from vaultsync.core.config import DEFAULT_HOURS_BEFORE, clamp_hours_before

if TYPE_CHECKING:
    from vaultsync.client.api import RemoteClient

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60 * 60  # seconds
SCHEDULE_CACHE_TTL = timedelta(hours=1)
MIN_SYNC_INTERVAL = timedelta(minutes=30)

# (hours until delivery strictly above, interval seconds), checked in order
_INTERVAL_TIERS: tuple[tuple[float, int], ...] = (
    (12, 60 * 60),
    (6, 30 * 60),
    (2, 15 * 60),
    (0, 10 * 60),
)


def utc_now() -> datetime:
    return datetime.now(UTC)


def poll_interval(hours_until: float | None) -> int:
    """Pick the polling interval in seconds for the time left to delivery.

    Unknown or past deliveries use the default interval.
    """
    if hours_until is None:
        return DEFAULT_INTERVAL
    for threshold, interval in _INTERVAL_TIERS:
        if hours_until > threshold:
            return interval
    return DEFAULT_INTERVAL


class ScheduledSyncManager:
    """Triggers a full sync ahead of the server's digest delivery.

    The manager is either stopped or running a single polling task that
    checks, sleeps for the adaptive interval, and checks again.
    """

    def __init__(
        self,
        client: RemoteClient,
        sync_trigger: Callable[[], Awaitable[Any]],
        hours_before: int = DEFAULT_HOURS_BEFORE,
        enabled: bool = True,
        now: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the manager.

        Args:
            client: API client used to fetch the schedule.
            sync_trigger: Full sync entry point.
            hours_before: Pre-delivery window in hours (clamped to 1-12).
            enabled: Whether scheduled sync is turned on.
            now: Clock returning an aware UTC datetime.
            sleep: Awaitable sleep between checks.
        """
        self._client = client
        self._sync_trigger = sync_trigger
        self._hours_before = clamp_hours_before(hours_before)
        self._enabled = enabled
        self._now = now
        self._sleep = sleep

        self._task: asyncio.Task[None] | None = None
        self._interval: int = DEFAULT_INTERVAL
        self._last_scheduled_sync: datetime | None = None
        self._cached_schedule: DigestSchedule | None = None
        self._schedule_fetched_at: datetime | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def hours_before(self) -> int:
        return self._hours_before

    @property
    def current_interval(self) -> int:
        """Interval in seconds chosen after the last check."""
        return self._interval

    @property
    def last_scheduled_sync(self) -> datetime | None:
        return self._last_scheduled_sync

    @property
    def cached_schedule(self) -> DigestSchedule | None:
        """Last fetched schedule, for display."""
        return self._cached_schedule

    def update_settings(self, enabled: bool, hours_before: int) -> None:
        self._enabled = enabled
        self._hours_before = clamp_hours_before(hours_before)

    # === Lifecycle ===

    def start(self) -> None:
        """Start polling: one immediate check, then adaptive intervals."""
        if self.is_running:
            logger.debug("Scheduled sync already running")
            return
        if not self._enabled:
            logger.debug("Scheduled sync is disabled")
            return
        logger.info("Starting scheduled sync manager")
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Stopped scheduled sync manager")

    async def _run(self) -> None:
        while True:
            try:
                self._interval = await self.check_and_sync()
            except Exception:
                logger.exception("Scheduled sync check failed")
                self._interval = DEFAULT_INTERVAL
            logger.debug(f"Next schedule check in {self._interval // 60} minutes")
            await self._sleep(self._interval)

    # === Checks ===

    def hours_until_delivery(self, schedule: DigestSchedule | None) -> float | None:
        """Hours until the next delivery, or None if unknown or disabled."""
        if schedule is None or not schedule.is_enabled or schedule.next_digest_utc is None:
            return None
        next_digest = schedule.next_digest_utc
        if next_digest.tzinfo is None:
            next_digest = next_digest.replace(tzinfo=UTC)
        return (next_digest - self._now()).total_seconds() / 3600

    def should_trigger_sync(self) -> bool:
        """Check the cooldown since the last scheduled sync."""
        if self._last_scheduled_sync is None:
            return True
        return self._now() - self._last_scheduled_sync >= MIN_SYNC_INTERVAL

    async def check_and_sync(self) -> int:
        """Run one check, triggering a sync inside the pre-delivery window.

        Returns:
            Seconds until the next check.
        """
        if not self._enabled:
            return DEFAULT_INTERVAL

        schedule = await self.get_schedule()
        hours = self.hours_until_delivery(schedule)
        if hours is None:
            logger.debug("No scheduled digest or schedule disabled")
            return DEFAULT_INTERVAL

        logger.debug(f"Next digest in {hours:.1f} hours")
        if hours <= 0:
            # Delivery passed; the cached next instant is outdated
            self._schedule_fetched_at = None
            return DEFAULT_INTERVAL

        if hours <= self._hours_before:
            if self.should_trigger_sync():
                logger.info("Triggering scheduled pre-digest sync")
                try:
                    await self._sync_trigger()
                except SyncInProgressError:
                    logger.debug("Sync already in progress, skipping scheduled sync")
                else:
                    self._last_scheduled_sync = self._now()
                    logger.info("Scheduled sync completed")
            else:
                logger.debug("Skipping sync - already synced recently")

        return poll_interval(hours)

    async def get_schedule(self) -> DigestSchedule | None:
        """Get the digest schedule, served from cache for up to an hour.

        Fetch failures are logged and reported as no schedule.
        """
        if (
            self._cached_schedule is not None
            and self._schedule_fetched_at is not None
            and self._now() - self._schedule_fetched_at < SCHEDULE_CACHE_TTL
        ):
            return self._cached_schedule

        try:
            schedule = await self._client.get_digest_schedule()
        except APIError as e:
            logger.warning(f"Failed to fetch digest schedule: {e}")
            return None

        self._cached_schedule = schedule
        self._schedule_fetched_at = self._now()
        return schedule

    async def refresh_schedule(self) -> DigestSchedule | None:
        """Re-fetch the schedule, bypassing the cache."""
        self._schedule_fetched_at = None
        return await self.get_schedule()
