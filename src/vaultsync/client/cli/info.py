"""Informational commands for the vaultsync CLI.

Commands:
- status: Server counters and local sync health
- schedule: Digest delivery schedule and polling interval
- test-connection: Check server URL and API token
"""

from __future__ import annotations

import asyncio
from datetime import UTC

import click

from vaultsync.client.cli.config import (
    fail,
    get_state_file,
    load_settings,
    require_server_config,
)


@click.command()
def status() -> None:
    """Show server counters and the last sync time."""
    from vaultsync.client.api import APIError, RemoteClient, VaultStatus
    from vaultsync.client.sync.status import sync_health
    from vaultsync.client.sync.tracker import ChangeTracker, SqliteStateStore

    server = require_server_config()

    async def _fetch() -> VaultStatus:
        async with RemoteClient(server) as client:
            return await client.get_status()

    try:
        remote = asyncio.run(_fetch())
    except APIError as e:
        fail(str(e))

    tracked = 0
    last_sync = None
    state_file = get_state_file()
    if state_file.exists():
        store = SqliteStateStore(state_file)
        try:
            tracker = ChangeTracker(store)
            tracked = tracker.tracked_count()
            last_sync = tracker.last_sync_time
        finally:
            store.close()

    health = sync_health(last_sync)
    click.echo(f"Server: {server.server_url}")
    click.echo(f"Vault: {remote.vault_name or '(unknown)'}")
    click.echo(
        f"Notes on server: {remote.total_notes} "
        f"({remote.indexed_notes} indexed, {remote.pending_notes} pending)"
    )
    click.echo(f"Notes tracked locally: {tracked}")
    line = f"Last sync: {health.describe()}"
    click.echo(click.style(line, fg="yellow") if health.is_stale else line)


@click.command()
def schedule() -> None:
    """Show the digest schedule and when a pre-digest sync would run."""
    from vaultsync.client.api import DigestSchedule, RemoteClient
    from vaultsync.client.sync.scheduled import ScheduledSyncManager, poll_interval

    server = require_server_config()
    settings = load_settings()

    async def _fetch() -> tuple[DigestSchedule | None, float | None]:
        async with RemoteClient(server) as client:
            manager = ScheduledSyncManager(
                client,
                sync_trigger=_no_sync,
                hours_before=settings.scheduled_sync_hours_before,
                enabled=settings.scheduled_sync,
            )
            fetched = await manager.refresh_schedule()
            return fetched, manager.hours_until_delivery(fetched)

    digest, hours = asyncio.run(_fetch())
    if digest is None:
        fail("Could not fetch the digest schedule.")

    if not digest.is_enabled:
        click.echo("Digest delivery is disabled.")
    else:
        click.echo(f"Digest delivery: {digest.hour:02d}:{digest.minute:02d} {digest.timezone}")
        if digest.next_digest_utc is not None:
            next_utc = digest.next_digest_utc.astimezone(UTC)
            click.echo(f"Next digest: {next_utc:%Y-%m-%d %H:%M} UTC")
        if hours is not None and hours > 0:
            click.echo(f"Time until digest: {hours:.1f}h")

    state = "on" if settings.scheduled_sync else "off"
    click.echo(f"Scheduled sync: {state}, {settings.scheduled_sync_hours_before}h before delivery")
    click.echo(f"Polling interval: {poll_interval(hours) // 60} minutes")


async def _no_sync() -> None:
    """Sync trigger for read-only schedule inspection."""


@click.command("test-connection")
def test_connection() -> None:
    """Check that the server is reachable and the token is valid."""
    from vaultsync.client.api import ConnectionCheck, RemoteClient

    server = require_server_config()

    async def _check() -> ConnectionCheck:
        async with RemoteClient(server) as client:
            return await client.test_connection()

    result = asyncio.run(_check())
    if not result.success:
        fail(f"Connection failed: {result.error}")
    click.echo(f"Connected to {server.server_url}")
