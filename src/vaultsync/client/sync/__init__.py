"""Vault sync engine.

Architecture:
    VaultWatcher → SyncOrchestrator → PendingQueue → Debouncer → RemoteClient

Components:
- **LocalVault**: Enumerates and parses markdown notes (VaultScanner)
- **ExclusionFilter**: Folder and tag rules applied before upload
- **ChangeTracker**: Durable path → fingerprint map (SQLite-backed)
- **SyncOrchestrator**: Queues changes, drains them in batches, full sync
- **ScheduledSyncManager**: Pre-digest sync with adaptive polling
- **VaultWatcher**: Watchdog-based change notifications

All public symbols are re-exported here.
"""

from vaultsync.client.sync.debounce import Debouncer
from vaultsync.client.sync.exclusions import (
    ExclusionFilter,
    format_folder_exclusions,
    format_tag_exclusions,
    parse_folder_exclusions,
    parse_tag_exclusions,
)
from vaultsync.client.sync.orchestrator import BATCH_SIZE, SyncOrchestrator, generate_batch_id
from vaultsync.client.sync.queue import DrainedChanges, PendingQueue
from vaultsync.client.sync.scanner import LocalVault, VaultScanner, parse_note
from vaultsync.client.sync.scheduled import (
    DEFAULT_INTERVAL,
    MIN_SYNC_INTERVAL,
    SCHEDULE_CACHE_TTL,
    ScheduledSyncManager,
    poll_interval,
)
from vaultsync.client.sync.status import (
    STALE_THRESHOLD_HOURS,
    StatusBroadcaster,
    SyncHealth,
    sync_health,
)
from vaultsync.client.sync.tracker import (
    ChangeTracker,
    SqliteStateStore,
    StateStore,
    SyncState,
)
from vaultsync.client.sync.types import (
    ItemError,
    NoteNotFoundError,
    StatePersistenceError,
    StatusCallback,
    SyncError,
    SyncInProgressError,
    SyncRunResult,
    VaultEvent,
    VaultEventKind,
    is_note_path,
)
from vaultsync.client.sync.watcher import VaultEventHandler, VaultWatcher

__all__ = [
    # Orchestration
    "BATCH_SIZE",
    "Debouncer",
    "DrainedChanges",
    "PendingQueue",
    "SyncOrchestrator",
    "generate_batch_id",
    # Vault
    "LocalVault",
    "VaultEventHandler",
    "VaultScanner",
    "VaultWatcher",
    "parse_note",
    # Exclusions
    "ExclusionFilter",
    "format_folder_exclusions",
    "format_tag_exclusions",
    "parse_folder_exclusions",
    "parse_tag_exclusions",
    # State
    "ChangeTracker",
    "SqliteStateStore",
    "StateStore",
    "SyncState",
    # Scheduled sync
    "DEFAULT_INTERVAL",
    "MIN_SYNC_INTERVAL",
    "SCHEDULE_CACHE_TTL",
    "ScheduledSyncManager",
    "poll_interval",
    # Status
    "STALE_THRESHOLD_HOURS",
    "StatusBroadcaster",
    "SyncHealth",
    "sync_health",
    # Types
    "ItemError",
    "NoteNotFoundError",
    "StatePersistenceError",
    "StatusCallback",
    "SyncError",
    "SyncInProgressError",
    "SyncRunResult",
    "VaultEvent",
    "VaultEventKind",
    "is_note_path",
]
