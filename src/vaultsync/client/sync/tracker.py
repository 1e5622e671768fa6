"""Local sync state tracking.

This module provides:
- SyncState: path -> fingerprint map, last reconciliation time, cached rules
- SqliteStateStore: durable storage for SyncState
- ChangeTracker: sole owner of SyncState, computes diffs

Architecture:
    A path present in the map is assumed to exist on the server with that
    exact fingerprint; absence means the server should not have it.

    Every mutating operation updates memory first and then writes the whole
    state to the store in one transaction. If the write fails the error
    propagates, memory keeps the new value, and the next successful write
    brings the durable copy back in line.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Protocol

from vaultsync.client.sync.types import StatePersistenceError
from vaultsync.core.types import ExclusionRules, SyncDiff

logger = logging.getLogger(__name__)


@dataclass
class SyncState:
    """Last acknowledged server state.

    Attributes:
        note_hashes: Path to fingerprint for every note the server holds.
        last_sync_time: Last successful reconciliation (UTC), if any.
        server_exclusions: Last known server exclusion rules.
    """

    note_hashes: dict[str, str] = field(default_factory=dict)
    last_sync_time: datetime | None = None
    server_exclusions: ExclusionRules = field(default_factory=ExclusionRules)

    def copy(self) -> SyncState:
        return SyncState(
            note_hashes=dict(self.note_hashes),
            last_sync_time=self.last_sync_time,
            server_exclusions=self.server_exclusions,
        )


class StateStore(Protocol):
    """Durable storage for the sync state."""

    def load(self) -> SyncState | None:
        """Return the stored state, or None if nothing was saved yet."""
        ...

    def save(self, state: SyncState) -> None:
        """Persist the whole state atomically."""
        ...


class SqliteStateStore:
    """SQLite-based storage for the sync state.

    The state is written as one transaction, so a crash leaves either the
    previous or the new state on disk.
    """

    def __init__(self, db_path: Path) -> None:
        """Initialize the state database.

        Args:
            db_path: Path to SQLite database file.
        """
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.RLock()

        self._conn = sqlite3.connect(
            str(self._db_path),
            check_same_thread=False,
            isolation_level=None,  # Explicit transactions
        )
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._create_tables()

    @property
    def path(self) -> Path:
        return self._db_path

    def _create_tables(self) -> None:
        """Create database tables if they don't exist."""
        self._conn.executescript("""
            CREATE TABLE IF NOT EXISTS note_hashes (
                path TEXT PRIMARY KEY,
                content_hash TEXT NOT NULL
            );

            CREATE TABLE IF NOT EXISTS sync_state (
                key TEXT PRIMARY KEY,
                value TEXT
            );
        """)

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()

    def load(self) -> SyncState | None:
        with self._lock:
            rows = self._conn.execute(
                "SELECT path, content_hash FROM note_hashes"
            ).fetchall()
            meta = {
                row["key"]: row["value"]
                for row in self._conn.execute("SELECT key, value FROM sync_state")
            }

        if not rows and not meta:
            return None

        last_sync = meta.get("last_sync_time")
        folders = meta.get("exclusion_folders")
        tags = meta.get("exclusion_tags")
        return SyncState(
            note_hashes={row["path"]: row["content_hash"] for row in rows},
            last_sync_time=datetime.fromisoformat(last_sync) if last_sync else None,
            server_exclusions=ExclusionRules.create(
                folders=folders.split("\n") if folders else [],
                tags=tags.split("\n") if tags else [],
            ),
        )

    def save(self, state: SyncState) -> None:
        rules = state.server_exclusions.to_dict()
        meta = {
            "last_sync_time": (
                state.last_sync_time.isoformat() if state.last_sync_time else None
            ),
            "exclusion_folders": "\n".join(rules["folders"]),
            "exclusion_tags": "\n".join(rules["tags"]),
        }

        with self._lock:
            self._conn.execute("BEGIN IMMEDIATE")
            try:
                self._conn.execute("DELETE FROM note_hashes")
                self._conn.executemany(
                    "INSERT INTO note_hashes (path, content_hash) VALUES (?, ?)",
                    list(state.note_hashes.items()),
                )
                self._conn.executemany(
                    "INSERT OR REPLACE INTO sync_state (key, value) VALUES (?, ?)",
                    list(meta.items()),
                )
            except sqlite3.Error:
                self._conn.execute("ROLLBACK")
                raise
            self._conn.execute("COMMIT")


class ChangeTracker:
    """Owns the sync state and is the only component allowed to mutate it."""

    def __init__(self, store: StateStore) -> None:
        """Initialize the tracker from the store's saved state.

        Args:
            store: Durable storage written after every mutation.
        """
        self._store = store
        self._state = store.load() or SyncState()

    @property
    def state(self) -> SyncState:
        """A copy of the current state."""
        return self._state.copy()

    # === Queries ===

    def get_hash(self, path: str) -> str | None:
        """Get the recorded fingerprint for a path."""
        return self._state.note_hashes.get(path)

    def is_synced(self, path: str) -> bool:
        return path in self._state.note_hashes

    def has_changed(self, path: str, content_hash: str) -> bool:
        """Check whether a fresh fingerprint differs from the recorded one.

        Untracked paths count as changed.
        """
        return self._state.note_hashes.get(path) != content_hash

    def compute_diff(self, current_hashes: dict[str, str]) -> SyncDiff:
        """Compare a complete vault snapshot with the tracked state.

        Args:
            current_hashes: Path to fingerprint for every eligible note.

        Returns:
            SyncDiff with changed (new or different) and deleted paths.
        """
        changed = [
            path for path, content_hash in current_hashes.items()
            if self.has_changed(path, content_hash)
        ]
        deleted = [
            path for path in self._state.note_hashes
            if path not in current_hashes
        ]
        return SyncDiff(changed=sorted(changed), deleted=sorted(deleted))

    def tracked_paths(self) -> set[str]:
        return set(self._state.note_hashes)

    def tracked_count(self) -> int:
        return len(self._state.note_hashes)

    @property
    def last_sync_time(self) -> datetime | None:
        """Time of the last successful reconciliation."""
        return self._state.last_sync_time

    @property
    def exclusions(self) -> ExclusionRules:
        """Cached server exclusion rules."""
        return self._state.server_exclusions

    # === Mutations ===

    def record_hashes(self, hashes: dict[str, str]) -> None:
        """Record fingerprints acknowledged by the server."""
        if not hashes:
            return
        self._state.note_hashes.update(hashes)
        self._save()

    def remove_hashes(self, paths: list[str] | set[str]) -> None:
        """Forget paths confirmed deleted on the server."""
        if not paths:
            return
        for path in paths:
            self._state.note_hashes.pop(path, None)
        self._save()

    def rename_path(self, old_path: str, new_path: str) -> None:
        """Move a tracked entry to a new path, keeping its fingerprint."""
        if old_path not in self._state.note_hashes:
            return
        self._state.note_hashes[new_path] = self._state.note_hashes.pop(old_path)
        self._save()

    def mark_synced_now(self, when: datetime | None = None) -> datetime:
        """Stamp the last successful reconciliation time."""
        stamp = when or datetime.now(UTC)
        self._state.last_sync_time = stamp
        self._save()
        return stamp

    def set_exclusions(self, rules: ExclusionRules) -> None:
        """Replace the cached server exclusion rules."""
        self._state.server_exclusions = rules
        self._save()

    def reset(self) -> None:
        """Clear all tracked state, forcing the next full sync to upload everything."""
        logger.info("Resetting sync state (%d tracked notes)", self.tracked_count())
        self._state = SyncState()
        self._save()

    def _save(self) -> None:
        try:
            self._store.save(self._state)
        except (sqlite3.Error, OSError) as e:
            logger.error(f"Failed to persist sync state: {e}")
            raise StatePersistenceError(f"Failed to persist sync state: {e}") from e
