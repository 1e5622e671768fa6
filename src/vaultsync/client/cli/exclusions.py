"""Exclusion commands for the vaultsync CLI.

Commands:
- exclusions show: Display the server's exclusion rules
- exclusions set: Replace the server's exclusion rules
"""

from __future__ import annotations

import asyncio

import click

from vaultsync.client.cli.config import (
    fail,
    get_state_file,
    load_settings,
    require_server_config,
    require_vault_path,
)
from vaultsync.client.sync.exclusions import format_folder_exclusions, format_tag_exclusions
from vaultsync.core.types import ExclusionRules


def _display_rules(rules: ExclusionRules) -> None:
    click.echo("Excluded folders:")
    click.echo(_indent(format_folder_exclusions(rules.folders)) or "  (none)")
    click.echo("Excluded tags:")
    click.echo(_indent(format_tag_exclusions(sorted(rules.tags))) or "  (none)")


def _indent(text: str) -> str:
    return "\n".join(f"  {line}" for line in text.splitlines())


@click.group()
def exclusions() -> None:
    """Manage folders and tags that never leave this machine."""


@exclusions.command("show")
def show() -> None:
    """Show the current exclusion rules."""
    from vaultsync.client.api import APIError, RemoteClient

    server = require_server_config()

    async def _fetch() -> ExclusionRules:
        async with RemoteClient(server) as client:
            return await client.get_exclusions()

    try:
        rules = asyncio.run(_fetch())
    except APIError as e:
        fail(str(e))
    _display_rules(rules)


@exclusions.command("set")
@click.option("--folder", "folders", multiple=True, help="Folder to exclude (repeatable).")
@click.option("--tag", "tags", multiple=True, help="Tag to exclude (repeatable).")
@click.option("--clear", is_flag=True, help="Remove all exclusions.")
def set_exclusions(folders: tuple[str, ...], tags: tuple[str, ...], clear: bool) -> None:
    """Replace the exclusion rules.

    Notes matching the new rules are removed from the server.
    """
    from vaultsync.client.api import APIError, ExclusionsUpdateResult
    from vaultsync.client.context import SyncContext
    from vaultsync.client.sync.types import SyncError

    if not folders and not tags and not clear:
        fail("Give at least one --folder or --tag, or --clear to remove all rules.")

    server = require_server_config()
    settings = load_settings()
    vault_path = require_vault_path(settings)
    rules = ExclusionRules() if clear else ExclusionRules.create(folders=folders, tags=tags)

    async def _push() -> ExclusionsUpdateResult:
        context = SyncContext.create(server, settings, vault_path, get_state_file())
        try:
            return await context.orchestrator.push_exclusions(rules)
        finally:
            await context.aclose()

    try:
        result = asyncio.run(_push())
    except (APIError, SyncError) as e:
        fail(str(e))

    click.echo("Exclusions updated.")
    _display_rules(rules)
    if result.deleted_count:
        click.echo(f"\n{result.deleted_count} notes removed from the server.")
