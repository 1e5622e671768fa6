"""Pending change queue for incremental sync.

This module provides:
- PendingQueue: Two ordered sets of pending paths (changed, deleted)

Merge rules:
- A path is pending in at most one set; adding it to one removes it from
  the other, so the latest event wins.
- A rename is a deletion of the old path plus, when the new path is
  eligible, a change of the new path.

The queue is owned by the orchestrator and only touched from its event loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class DrainedChanges:
    """Snapshot taken when the queue is drained."""

    changed: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.changed) + len(self.deleted)


class PendingQueue:
    """Deduplicated queue of pending changed and deleted paths."""

    def __init__(self) -> None:
        # dicts used as insertion-ordered sets
        self._changed: dict[str, None] = {}
        self._deleted: dict[str, None] = {}

    def __len__(self) -> int:
        return len(self._changed) + len(self._deleted)

    def __bool__(self) -> bool:
        return bool(self._changed or self._deleted)

    @property
    def changed(self) -> list[str]:
        return list(self._changed)

    @property
    def deleted(self) -> list[str]:
        return list(self._deleted)

    def add_change(self, path: str) -> None:
        """Queue a path for upload, cancelling a pending deletion."""
        self._deleted.pop(path, None)
        self._changed[path] = None
        logger.debug("Queued change: %s", path)

    def add_delete(self, path: str) -> None:
        """Queue a path for deletion, cancelling a pending upload."""
        self._changed.pop(path, None)
        self._deleted[path] = None
        logger.debug("Queued delete: %s", path)

    def add_rename(self, old_path: str, new_path: str, include_new: bool) -> None:
        """Queue a rename as delete(old) plus, if eligible, change(new)."""
        self.add_delete(old_path)
        if include_new:
            self.add_change(new_path)
        else:
            # New location is excluded; make sure nothing stale is pending for it
            self._changed.pop(new_path, None)

    def drain(self) -> DrainedChanges:
        """Take a snapshot of both sets and clear them."""
        drained = DrainedChanges(changed=list(self._changed), deleted=list(self._deleted))
        self._changed.clear()
        self._deleted.clear()
        return drained

    def clear(self) -> None:
        self._changed.clear()
        self._deleted.clear()
