"""Core module - Shared configuration, types and hashing."""

from vaultsync.core.config import (
    DEFAULT_SERVER_URL,
    ServerConfig,
    SyncSettings,
    clamp_hours_before,
    is_configured,
)
from vaultsync.core.hashing import FINGERPRINT_LENGTH, fingerprint, is_fingerprint
from vaultsync.core.types import (
    ExclusionRules,
    NoteMetadata,
    SyncDiff,
    SyncPhase,
    SyncStatus,
    normalize_folder,
    normalize_tag,
)

__all__ = [
    # Config
    "DEFAULT_SERVER_URL",
    "ServerConfig",
    "SyncSettings",
    "clamp_hours_before",
    "is_configured",
    # Hashing
    "FINGERPRINT_LENGTH",
    "fingerprint",
    "is_fingerprint",
    # Types
    "ExclusionRules",
    "NoteMetadata",
    "SyncDiff",
    "SyncPhase",
    "SyncStatus",
    "normalize_folder",
    "normalize_tag",
]
