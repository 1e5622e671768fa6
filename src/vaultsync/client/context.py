"""Explicit wiring of the sync components.

This module provides:
- SyncContext: Holds one instance of each component for the process lifetime

Components are constructed once at startup and passed to each other;
nothing is kept in module-level state.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

from vaultsync.client.api import RemoteClient
from vaultsync.client.sync.exclusions import ExclusionFilter
from vaultsync.client.sync.orchestrator import SyncOrchestrator
from vaultsync.client.sync.scanner import LocalVault
from vaultsync.client.sync.scheduled import ScheduledSyncManager
from vaultsync.client.sync.tracker import ChangeTracker, SqliteStateStore
from vaultsync.client.sync.types import StatusCallback
from vaultsync.core.config import ServerConfig, SyncSettings

logger = logging.getLogger(__name__)


@dataclass
class SyncContext:
    """All collaborators of a running sync client."""

    settings: SyncSettings
    client: RemoteClient
    vault: LocalVault
    store: SqliteStateStore
    tracker: ChangeTracker
    exclusions: ExclusionFilter
    orchestrator: SyncOrchestrator
    scheduler: ScheduledSyncManager

    @classmethod
    def create(
        cls,
        server: ServerConfig,
        settings: SyncSettings,
        vault_path: Path,
        state_path: Path,
        status_callbacks: list[StatusCallback] | None = None,
    ) -> SyncContext:
        """Build the component graph.

        Args:
            server: Server URL and token.
            settings: User sync settings.
            vault_path: Vault directory.
            state_path: SQLite file for the tracked state.
            status_callbacks: Initial status observers.
        """
        vault = LocalVault(vault_path)
        store = SqliteStateStore(state_path)
        tracker = ChangeTracker(store)
        # Cached rules apply until the server has been asked
        exclusions = ExclusionFilter(tracker.exclusions)
        client = RemoteClient(server)
        orchestrator = SyncOrchestrator(
            client=client,
            scanner=vault,
            tracker=tracker,
            exclusions=exclusions,
            vault_name=vault.vault_name,
            status_callbacks=status_callbacks,
        )
        scheduler = ScheduledSyncManager(
            client=client,
            sync_trigger=orchestrator.full_sync,
            hours_before=settings.scheduled_sync_hours_before,
            enabled=settings.scheduled_sync,
        )
        logger.debug(f"Sync context ready for vault {vault.root}")
        return cls(
            settings=settings,
            client=client,
            vault=vault,
            store=store,
            tracker=tracker,
            exclusions=exclusions,
            orchestrator=orchestrator,
            scheduler=scheduler,
        )

    async def aclose(self) -> None:
        """Stop background work and release resources."""
        await self.scheduler.stop()
        await self.orchestrator.aclose()
        await self.client.aclose()
        self.store.close()
