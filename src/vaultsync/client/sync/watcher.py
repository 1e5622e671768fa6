"""File system watcher feeding vault events to the orchestrator.

This module provides:
- VaultEventHandler: Converts watchdog events into VaultEvents
- VaultWatcher: Watches a LocalVault directory using watchdog

Watchdog delivers events on its observer thread; they are handed to the
asyncio loop with ``call_soon_threadsafe`` so the orchestrator is only ever
touched from the loop. Debouncing happens in the orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from watchdog.events import (
    DirMovedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from vaultsync.client.sync.types import VaultEvent, is_note_path

if TYPE_CHECKING:
    from watchdog.observers.api import BaseObserver

    from vaultsync.client.sync.scanner import LocalVault

logger = logging.getLogger(__name__)

EventSink = Callable[[VaultEvent], None]


def _decode(path: str | bytes) -> str:
    if isinstance(path, bytes):
        return path.decode("utf-8", errors="replace")
    return path


class VaultEventHandler(FileSystemEventHandler):
    """Translates file system events into VaultEvents."""

    def __init__(
        self,
        vault: LocalVault,
        sink: EventSink,
        loop: asyncio.AbstractEventLoop,
    ) -> None:
        """Initialize the handler.

        Args:
            vault: Vault whose paths are reported.
            sink: Receives each VaultEvent on the event loop.
            loop: Loop the sink runs on.
        """
        super().__init__()
        self._vault = vault
        self._sink = sink
        self._loop = loop

    def translate(self, event: FileSystemEvent) -> VaultEvent | None:
        """Convert a watchdog event, or None if it is not about a note."""
        src = self._vault.relative_path(_decode(event.src_path))

        if isinstance(event, FileMovedEvent | DirMovedEvent):
            if event.is_directory:
                # Watchdog also emits per-file moves for directory renames
                return None
            dest = self._vault.relative_path(_decode(event.dest_path))
            if src is None and dest is None:
                return None
            if dest is None:
                return VaultEvent.deleted(src) if src and is_note_path(src) else None
            if src is None:
                return VaultEvent.created(dest) if is_note_path(dest) else None
            if not is_note_path(src) and not is_note_path(dest):
                return None
            return VaultEvent.renamed(src, dest)

        if event.is_directory or src is None or not is_note_path(src):
            return None
        if isinstance(event, FileCreatedEvent):
            return VaultEvent.created(src)
        if isinstance(event, FileModifiedEvent):
            return VaultEvent.modified(src)
        if isinstance(event, FileDeletedEvent):
            return VaultEvent.deleted(src)
        return None

    def on_any_event(self, event: FileSystemEvent) -> None:
        vault_event = self.translate(event)
        if vault_event is None:
            return
        logger.debug("Watcher event: %s", vault_event)
        self._loop.call_soon_threadsafe(self._sink, vault_event)


class VaultWatcher:
    """Watches a vault directory and posts VaultEvents to a sink."""

    def __init__(
        self,
        vault: LocalVault,
        sink: EventSink,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        """Initialize the watcher.

        Args:
            vault: Vault to watch.
            sink: Callback invoked on the loop for each event
                (typically SyncOrchestrator.handle_event).
            loop: Target loop (default: the running loop).
        """
        self._vault = vault
        self._loop = loop or asyncio.get_running_loop()
        self._handler = VaultEventHandler(vault, sink, self._loop)
        self._observer: BaseObserver = Observer()
        self._running = False

    @property
    def is_running(self) -> bool:
        """Check if the watcher is running."""
        return self._running

    def start(self) -> None:
        """Start watching for changes."""
        if self._running:
            return
        self._observer.schedule(self._handler, str(self._vault.root), recursive=True)
        self._observer.start()
        self._running = True
        logger.info(f"Watching {self._vault.root}")

    def stop(self) -> None:
        """Stop watching for changes."""
        if not self._running:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._running = False

    def __enter__(self) -> VaultWatcher:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(self, *args: object) -> None:
        """Context manager exit."""
        self.stop()
