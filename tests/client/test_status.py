"""Tests for status broadcasting and sync health."""

from datetime import UTC, datetime, timedelta

import pytest

from vaultsync.client.sync.status import StatusBroadcaster, sync_health
from vaultsync.core.types import SyncPhase, SyncStatus

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=UTC)


class TestStatusBroadcaster:
    """Tests for StatusBroadcaster."""

    def test_initial_status_is_idle(self) -> None:
        """Should start idle with no counters."""
        assert StatusBroadcaster().latest == SyncStatus()

    def test_emit_notifies_observers(self) -> None:
        """Should keep the latest status and notify every observer."""
        first: list[SyncStatus] = []
        second: list[SyncStatus] = []
        broadcaster = StatusBroadcaster([first.append])
        broadcaster.add_observer(second.append)
        status = SyncStatus(SyncPhase.SYNCING, pending_count=3, synced_count=1)

        broadcaster.emit(status)

        assert broadcaster.latest == status
        assert first == [status]
        assert second == [status]

    def test_remove_observer(self) -> None:
        """Removed observers should not be notified."""
        received: list[SyncStatus] = []
        broadcaster = StatusBroadcaster([received.append])

        broadcaster.remove_observer(received.append)
        broadcaster.emit(SyncStatus(SyncPhase.IDLE))

        assert received == []

    def test_failing_observer_is_isolated(self, caplog: pytest.LogCaptureFixture) -> None:
        """An observer error should be logged and not block the others."""
        received: list[SyncStatus] = []

        def broken(status: SyncStatus) -> None:
            raise RuntimeError("observer bug")

        broadcaster = StatusBroadcaster([broken, received.append])
        broadcaster.emit(SyncStatus(SyncPhase.ERROR, message="boom"))

        assert len(received) == 1
        assert "Status observer failed" in caplog.text


class TestSyncHealth:
    """Tests for sync_health."""

    def test_never_synced(self) -> None:
        """Should be stale without a previous sync."""
        health = sync_health(None, now=NOW)

        assert health.is_stale
        assert health.age is None
        assert health.describe() == "never synced"

    @pytest.mark.parametrize(
        ("age", "expected"),
        [
            (timedelta(seconds=30), "just now"),
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3), "3h ago"),
            (timedelta(hours=30), "30h ago (stale)"),
            (timedelta(days=3), "3d ago (stale)"),
        ],
    )
    def test_describe(self, age: timedelta, expected: str) -> None:
        """Should describe the age of the last sync."""
        assert sync_health(NOW - age, now=NOW).describe() == expected

    def test_threshold(self) -> None:
        """Should flag syncs older than the threshold."""
        assert not sync_health(NOW - timedelta(hours=23), now=NOW).is_stale
        assert sync_health(NOW - timedelta(hours=25), now=NOW).is_stale
        assert sync_health(NOW - timedelta(hours=2), now=NOW, threshold_hours=1).is_stale

    def test_naive_time_treated_as_utc(self) -> None:
        """Should accept naive timestamps."""
        health = sync_health(datetime(2025, 6, 1, 11, 0), now=NOW)
        assert health.age == timedelta(hours=1)
