"""Configure command for the vaultsync CLI.

Commands:
- configure: Set server, token, vault and sync settings
"""

from __future__ import annotations

from pathlib import Path

import click

from vaultsync.client.cli.config import load_config, save_config, set_token
from vaultsync.core.config import DEFAULT_SERVER_URL, MAX_HOURS_BEFORE, MIN_HOURS_BEFORE


@click.command()
@click.option("--server", "server_url", help=f"Server URL (default: {DEFAULT_SERVER_URL}).")
@click.option("--token", help="API token from the web dashboard.")
@click.option(
    "--vault",
    "vault_path",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Vault directory.",
)
@click.option(
    "--hours-before",
    type=click.IntRange(MIN_HOURS_BEFORE, MAX_HOURS_BEFORE, clamp=True),
    help="Sync this many hours before the scheduled digest.",
)
@click.option("--auto-sync/--no-auto-sync", default=None, help="Sync on vault changes in watch mode.")
@click.option(
    "--scheduled-sync/--no-scheduled-sync",
    default=None,
    help="Sync ahead of the scheduled digest in watch mode.",
)
@click.option("--debug/--no-debug", "debug_mode", default=None, help="Verbose logging.")
def configure(
    server_url: str | None,
    token: str | None,
    vault_path: Path | None,
    hours_before: int | None,
    auto_sync: bool | None,
    scheduled_sync: bool | None,
    debug_mode: bool | None,
) -> None:
    """Save connection and sync settings.

    Only the given options are changed.
    """
    from vaultsync.core.config import SyncSettings

    config = load_config()
    settings = SyncSettings.from_dict(config.get("settings"))

    if server_url:
        config["server_url"] = server_url.strip().rstrip("/")
    if vault_path is not None:
        settings.vault_path = str(vault_path.expanduser().resolve())
    if hours_before is not None:
        settings.scheduled_sync_hours_before = hours_before
    if auto_sync is not None:
        settings.auto_sync = auto_sync
    if scheduled_sync is not None:
        settings.scheduled_sync = scheduled_sync
    if debug_mode is not None:
        settings.debug_mode = debug_mode

    config["settings"] = settings.to_dict()

    if token:
        location = set_token(token.strip(), config)
        if location == "keyring":
            click.echo("API token stored in the system keyring.")
        else:
            click.echo("System keyring unavailable, API token stored in the config file.")

    save_config(config)
    click.echo("Configuration saved.")
    click.echo(f"  Server: {config.get('server_url') or DEFAULT_SERVER_URL}")
    click.echo(f"  Vault: {settings.vault_path or '(not set)'}")
    click.echo(f"  Pre-digest window: {settings.scheduled_sync_hours_before}h")
