"""Shared types and dataclasses for sync operations.

This module provides:
- SyncError, SyncInProgressError, StatePersistenceError, NoteNotFoundError
- VaultEventKind, VaultEvent: Messages delivered by the document store
- SyncRunResult: Outcome of a full or incremental run
- Type aliases for callbacks
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from vaultsync.core.types import SyncDiff, SyncStatus

NOTE_EXTENSION = ".md"


class SyncError(Exception):
    """Base exception for sync errors."""


class SyncInProgressError(SyncError):
    """A manual sync was requested while another sync is running."""

    def __init__(self, message: str = "Sync already in progress") -> None:
        super().__init__(message)


class StatePersistenceError(SyncError):
    """The sync state could not be written to durable storage."""


class NoteNotFoundError(SyncError):
    """A note path no longer exists in the vault."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(f"Note not found: {path}")


class VaultEventKind(str, Enum):
    """Kind of change notified by the document store."""

    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"
    RENAMED = "renamed"


@dataclass(frozen=True)
class VaultEvent:
    """A change notification for one note.

    Attributes:
        kind: What happened to the note.
        path: Current path (new path for renames).
        old_path: Previous path, for renames only.
        tags: Tags already known to the notifier, if any.
    """

    kind: VaultEventKind
    path: str
    old_path: str | None = None
    tags: tuple[str, ...] = ()

    @classmethod
    def created(cls, path: str, tags: tuple[str, ...] = ()) -> VaultEvent:
        return cls(VaultEventKind.CREATED, path, tags=tags)

    @classmethod
    def modified(cls, path: str, tags: tuple[str, ...] = ()) -> VaultEvent:
        return cls(VaultEventKind.MODIFIED, path, tags=tags)

    @classmethod
    def deleted(cls, path: str) -> VaultEvent:
        return cls(VaultEventKind.DELETED, path)

    @classmethod
    def renamed(cls, old_path: str, path: str) -> VaultEvent:
        return cls(VaultEventKind.RENAMED, path, old_path=old_path)


def is_note_path(path: str) -> bool:
    """Check whether a path is a syncable note."""
    return path.endswith(NOTE_EXTENSION)


@dataclass
class ItemError:
    """A note rejected by the server or unreadable locally."""

    path: str
    error: str


@dataclass
class SyncRunResult:
    """Result of a sync run.

    Attributes:
        full: Whether this was a full reconciliation.
        diff: Changed and deleted paths considered by the run.
        uploaded: Paths acknowledged by the server.
        deleted: Paths removed from the server.
        skipped: Paths dropped by exclusion rules or unchanged fingerprints.
        errors: Per-item errors (left stale for the next run).
        failed: Message of the error that aborted the run, if any.
        batches: Number of batches sent.
    """

    full: bool = False
    diff: SyncDiff = field(default_factory=SyncDiff)
    uploaded: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    errors: list[ItemError] = field(default_factory=list)
    failed: str | None = None
    batches: int = 0

    @property
    def ok(self) -> bool:
        """True when the run was not aborted."""
        return self.failed is None


# Type alias for status observers
StatusCallback = Callable[[SyncStatus], None]
