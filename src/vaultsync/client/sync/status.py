"""Status fan-out and sync health.

This module provides:
- StatusBroadcaster: Pushes SyncStatus values to registered observers
- SyncHealth / sync_health: Staleness of the last reconciliation
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from vaultsync.client.sync.types import StatusCallback
from vaultsync.core.types import SyncStatus

logger = logging.getLogger(__name__)

STALE_THRESHOLD_HOURS = 24


class StatusBroadcaster:
    """Keeps the latest status and notifies observers on every emission.

    Observer failures are logged and never interrupt a sync run.
    """

    def __init__(self, observers: list[StatusCallback] | None = None) -> None:
        self._observers: list[StatusCallback] = list(observers or [])
        self._latest = SyncStatus()

    @property
    def latest(self) -> SyncStatus:
        return self._latest

    def add_observer(self, callback: StatusCallback) -> None:
        self._observers.append(callback)

    def remove_observer(self, callback: StatusCallback) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    def emit(self, status: SyncStatus) -> None:
        self._latest = status
        for callback in list(self._observers):
            try:
                callback(status)
            except Exception:
                logger.exception("Status observer failed")


@dataclass(frozen=True)
class SyncHealth:
    """How recent the last successful reconciliation is.

    Attributes:
        last_sync: Time of the last successful sync, if any.
        age: Time elapsed since then.
        is_stale: True when never synced or older than the threshold.
    """

    last_sync: datetime | None
    age: timedelta | None
    is_stale: bool

    def describe(self) -> str:
        """Human-readable summary for the CLI."""
        if self.last_sync is None or self.age is None:
            return "never synced"
        minutes = int(self.age.total_seconds() // 60)
        if minutes < 1:
            ago = "just now"
        elif minutes < 60:
            ago = f"{minutes}m ago"
        elif minutes < 60 * 48:
            ago = f"{minutes // 60}h ago"
        else:
            ago = f"{minutes // (60 * 24)}d ago"
        return f"{ago} (stale)" if self.is_stale else ago


def sync_health(
    last_sync: datetime | None,
    now: datetime | None = None,
    threshold_hours: float = STALE_THRESHOLD_HOURS,
) -> SyncHealth:
    """Evaluate staleness of the last reconciliation."""
    if last_sync is None:
        return SyncHealth(last_sync=None, age=None, is_stale=True)
    current = now or datetime.now(UTC)
    if last_sync.tzinfo is None:
        last_sync = last_sync.replace(tzinfo=UTC)
    age = current - last_sync
    return SyncHealth(
        last_sync=last_sync,
        age=age,
        is_stale=age > timedelta(hours=threshold_hours),
    )
