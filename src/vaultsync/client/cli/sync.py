"""Sync command for the vaultsync CLI.

Commands:
- sync: Synchronize the vault with the server
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING

import click

from vaultsync.client.cli.config import (
    fail,
    get_state_file,
    load_settings,
    require_server_config,
    require_vault_path,
)
from vaultsync.client.sync.types import SyncRunResult
from vaultsync.core.types import SyncPhase, SyncStatus

if TYPE_CHECKING:
    from vaultsync.core.config import ServerConfig, SyncSettings


def echo_status(status: SyncStatus) -> None:
    """Print batch progress."""
    if status.state == SyncPhase.SYNCING and status.pending_count and status.synced_count:
        click.echo(f"  {status.synced_count}/{status.pending_count} notes uploaded")


def display_result(result: SyncRunResult | None) -> None:
    """Display sync results summary."""
    if result is None:
        click.echo("Everything is up to date.")
        return

    if result.errors:
        click.echo(click.style("\nErrors:", fg="red"))
        for error in result.errors:
            click.echo(f"  ✗ {error.path}: {error.error}")

    if not result.uploaded and not result.deleted and not result.errors:
        click.echo("Everything is up to date.")
    else:
        click.echo(
            f"\nSync complete: {len(result.uploaded)} uploaded, "
            f"{len(result.deleted)} deleted, {len(result.errors)} errors"
        )


@click.command()
@click.option("--full", is_flag=True, help="Re-scan the whole vault.")
@click.option("--reset", is_flag=True, help="Forget sync state and re-upload every note.")
@click.option("--watch", "-w", is_flag=True, help="Keep syncing changes until interrupted.")
def sync(full: bool, reset: bool, watch: bool) -> None:
    """Synchronize the vault with the server.

    Without options, uploads changes made since the last sync. The first
    sync of a vault is always a full sync.
    """
    server = require_server_config()
    settings = load_settings()
    vault_path = require_vault_path(settings)

    click.echo(f"Syncing {vault_path} with {server.server_url}...")

    try:
        result = asyncio.run(_sync(server, settings, vault_path, full, reset, watch))
    except KeyboardInterrupt:
        click.echo("\nStopping...")
        return

    if result is not None and result.failed:
        fail(f"Sync failed: {result.failed}")


async def _sync(
    server: ServerConfig,
    settings: SyncSettings,
    vault_path: Path,
    full: bool,
    reset: bool,
    watch: bool,
) -> SyncRunResult | None:
    from vaultsync.client.api import APIError
    from vaultsync.client.context import SyncContext
    from vaultsync.client.sync.types import SyncError
    from vaultsync.client.sync.watcher import VaultWatcher

    context = SyncContext.create(
        server=server,
        settings=settings,
        vault_path=vault_path,
        state_path=get_state_file(),
        status_callbacks=[echo_status],
    )
    orchestrator = context.orchestrator
    watcher: VaultWatcher | None = None

    try:
        try:
            if reset:
                await orchestrator.refresh_exclusions()
                result = await orchestrator.force_resync()
            elif full or context.tracker.last_sync_time is None:
                await orchestrator.refresh_exclusions()
                result = await orchestrator.full_sync()
            else:
                await orchestrator.startup_check()
                result = await orchestrator.flush()
        except (APIError, SyncError) as e:
            return SyncRunResult(full=full or reset, failed=str(e))

        display_result(result)
        if not watch or (result is not None and result.failed):
            return result

        if settings.auto_sync:
            watcher = VaultWatcher(context.vault, orchestrator.handle_event)
            watcher.start()
        if settings.scheduled_sync:
            context.scheduler.start()
        click.echo("\nWatching for changes... (Ctrl+C to stop)\n")
        await asyncio.Event().wait()
        return None
    finally:
        if watcher is not None:
            watcher.stop()
        await context.aclose()
