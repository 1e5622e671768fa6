"""Command-line interface for vaultsync.

This module provides the main CLI entry point and assembles all commands.

Commands:
- configure: Save server, token, vault and sync settings
- status: Show server counters and sync health
- sync: Synchronize the vault (incremental, --full, --reset, --watch)
- exclusions show / set: Manage exclusion rules
- schedule: Show the digest schedule
- test-connection: Check server URL and token
"""

from __future__ import annotations

import click

from vaultsync.client.cli.config import (
    configure_logging,
    get_config_dir,
    get_config_file,
    get_state_file,
    get_token,
    load_config,
    load_settings,
    save_config,
    set_token,
)
from vaultsync.client.cli.configure import configure
from vaultsync.client.cli.exclusions import exclusions
from vaultsync.client.cli.info import schedule, status, test_connection
from vaultsync.client.cli.sync import sync


@click.group()
@click.version_option(package_name="vaultsync")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logs.")
def cli(verbose: bool) -> None:
    """vaultsync - Sync a markdown vault to Second Brain Digest."""
    configure_logging(verbose or load_settings().debug_mode)


# Setup commands
cli.add_command(configure)
cli.add_command(test_connection)

# Sync commands
cli.add_command(sync)
cli.add_command(status)
cli.add_command(exclusions)
cli.add_command(schedule)


def main() -> None:
    """Entry point for the CLI."""
    cli()


__all__ = [
    # Main entry points
    "cli",
    "main",
    # Config utilities
    "get_config_dir",
    "get_config_file",
    "get_state_file",
    "get_token",
    "load_config",
    "save_config",
    "set_token",
]
