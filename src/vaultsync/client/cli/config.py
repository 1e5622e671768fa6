"""Configuration utilities for the vaultsync CLI.

This module provides shared configuration functions used across CLI commands:
the config file, the API token (OS keyring with config file fallback) and
the assembled ServerConfig / SyncSettings.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any, NoReturn

import click
import keyring
from keyring.errors import KeyringError

from vaultsync.core.config import DEFAULT_SERVER_URL, ServerConfig, SyncSettings

logger = logging.getLogger(__name__)

KEYRING_SERVICE = "vaultsync"
KEYRING_USERNAME = "api_token"
TOKEN_ENV_VAR = "VAULTSYNC_TOKEN"


def get_config_dir() -> Path:
    """Get the configuration directory for vaultsync.

    Returns:
        Path to ~/.vaultsync.
    """
    return Path.home() / ".vaultsync"


def get_config_file() -> Path:
    """Get the path to the config file."""
    return get_config_dir() / "config.json"


def get_state_file() -> Path:
    """Get the path to the sync state database."""
    return get_config_dir() / "state.db"


def load_config() -> dict[str, Any]:
    """Load configuration from config file."""
    config_file = get_config_file()
    if config_file.exists():
        data = json.loads(config_file.read_text())
        return dict(data) if isinstance(data, dict) else {}
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to config file."""
    config_file = get_config_file()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    config_file.write_text(json.dumps(config, indent=2))


def get_token(config: dict[str, Any] | None = None) -> str | None:
    """Get the API token.

    The environment variable wins, then the OS keyring, then the config file.
    """
    env_token = os.environ.get(TOKEN_ENV_VAR)
    if env_token:
        return env_token.strip()

    try:
        token = keyring.get_password(KEYRING_SERVICE, KEYRING_USERNAME)
    except KeyringError as e:
        logger.debug(f"Keyring unavailable: {e}")
        token = None
    if token:
        return token

    config = load_config() if config is None else config
    stored = config.get("token")
    return stored if isinstance(stored, str) and stored else None


def set_token(token: str, config: dict[str, Any]) -> str:
    """Store the API token, preferring the OS keyring.

    Args:
        token: API token.
        config: Config dict, updated in place for the fallback.

    Returns:
        "keyring" or "config", depending on where the token was stored.
    """
    try:
        keyring.set_password(KEYRING_SERVICE, KEYRING_USERNAME, token)
    except KeyringError as e:
        logger.debug(f"Keyring unavailable, storing token in config file: {e}")
        config["token"] = token
        return "config"
    config.pop("token", None)
    return "keyring"


def load_settings(config: dict[str, Any] | None = None) -> SyncSettings:
    config = load_config() if config is None else config
    return SyncSettings.from_dict(config.get("settings"))


def get_server_config(config: dict[str, Any] | None = None) -> ServerConfig | None:
    """Build the server config, or None if no token is available."""
    config = load_config() if config is None else config
    token = get_token(config)
    if not token:
        return None
    return ServerConfig(
        server_url=config.get("server_url") or DEFAULT_SERVER_URL,
        token=token,
    )


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    click.echo(f"Error: {message}", err=True)
    sys.exit(1)


def require_server_config() -> ServerConfig:
    server = get_server_config()
    if server is None:
        fail("Not configured. Run 'vaultsync configure --token TOKEN' first.")
    return server


def require_vault_path(settings: SyncSettings) -> Path:
    if not settings.vault_path:
        fail("No vault configured. Run 'vaultsync configure --vault PATH' first.")
    vault_path = Path(settings.vault_path).expanduser()
    if not vault_path.is_dir():
        fail(f"Vault directory not found: {vault_path}")
    return vault_path


def configure_logging(verbose: bool) -> None:
    """Send vaultsync logs to stderr, DEBUG when verbose."""
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))

    vaultsync_logger = logging.getLogger("vaultsync")
    # Replace handlers from previous invocations
    for existing in vaultsync_logger.handlers[:]:
        vaultsync_logger.removeHandler(existing)
    vaultsync_logger.addHandler(handler)
    vaultsync_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    vaultsync_logger.propagate = False
