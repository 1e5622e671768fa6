"""Shared configuration classes for vaultsync.

This module defines the connection settings used by the API client and the
user-facing sync settings loaded from the CLI config file.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

DEFAULT_SERVER_URL = "https://app.secondbraindigest.com"

# Pre-delivery window bounds (hours)
DEFAULT_HOURS_BEFORE = 2
MIN_HOURS_BEFORE = 1
MAX_HOURS_BEFORE = 12


@dataclass
class ServerConfig:
    """Configuration for connecting to the vault sync API.

    Attributes:
        server_url: Base URL of the server (e.g., "https://app.example.com").
        token: API token sent as a bearer credential.
        timeout: Request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates (default True).
    """

    server_url: str = DEFAULT_SERVER_URL
    token: str = ""
    timeout: float = 30.0
    verify_ssl: bool = True

    def __post_init__(self) -> None:
        """Normalize server URL and token."""
        self.server_url = self.server_url.strip().rstrip("/")
        self.token = self.token.strip()

    @property
    def is_secure(self) -> bool:
        """Check if using HTTPS."""
        return self.server_url.startswith("https://")


def clamp_hours_before(value: Any) -> int:
    """Validate the pre-delivery sync window.

    Non-numeric values fall back to the default; numbers are floored and
    clamped to 1..12 hours.
    """
    if isinstance(value, bool) or not isinstance(value, int | float):
        return DEFAULT_HOURS_BEFORE
    if math.isnan(value) or math.isinf(value):
        return DEFAULT_HOURS_BEFORE
    return max(MIN_HOURS_BEFORE, min(MAX_HOURS_BEFORE, math.floor(value)))


@dataclass
class SyncSettings:
    """User settings controlling automatic and scheduled sync.

    Attributes:
        auto_sync: Sync automatically on vault changes.
        scheduled_sync: Sync ahead of the server's digest delivery.
        scheduled_sync_hours_before: Width of the pre-delivery window (1-12).
        debug_mode: Verbose logging.
        vault_path: Local vault directory, if configured.
    """

    auto_sync: bool = True
    scheduled_sync: bool = True
    scheduled_sync_hours_before: int = DEFAULT_HOURS_BEFORE
    debug_mode: bool = False
    vault_path: str | None = None

    def __post_init__(self) -> None:
        self.scheduled_sync_hours_before = clamp_hours_before(
            self.scheduled_sync_hours_before
        )

    @classmethod
    def from_dict(cls, data: Any) -> SyncSettings:
        """Build settings from untrusted stored data.

        Values with the wrong type are replaced with their defaults.
        """
        if not isinstance(data, dict):
            return cls()

        defaults = cls()

        def _bool(key: str, default: bool) -> bool:
            value = data.get(key)
            return value if isinstance(value, bool) else default

        vault_path = data.get("vault_path")
        return cls(
            auto_sync=_bool("auto_sync", defaults.auto_sync),
            scheduled_sync=_bool("scheduled_sync", defaults.scheduled_sync),
            scheduled_sync_hours_before=clamp_hours_before(
                data.get("scheduled_sync_hours_before")
            ),
            debug_mode=_bool("debug_mode", defaults.debug_mode),
            vault_path=vault_path.strip() or None if isinstance(vault_path, str) else None,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize for the config file."""
        return {
            "auto_sync": self.auto_sync,
            "scheduled_sync": self.scheduled_sync,
            "scheduled_sync_hours_before": self.scheduled_sync_hours_before,
            "debug_mode": self.debug_mode,
            "vault_path": self.vault_path,
        }


def is_configured(token: str | None) -> bool:
    """Check whether an API token is available."""
    return bool(token and token.strip())
