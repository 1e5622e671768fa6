"""Shared types for vaultsync.

This module defines the data values exchanged between the sync engine,
the local vault and the API client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SyncPhase(str, Enum):
    """Sync state pushed to status observers."""

    IDLE = "idle"
    SYNCING = "syncing"
    ERROR = "error"


@dataclass(frozen=True)
class SyncStatus:
    """Status snapshot emitted by the orchestrator.

    Superseded by every new emission; observers should only keep the latest.

    Attributes:
        state: Current sync phase.
        pending_count: Number of notes in the current run.
        synced_count: Number of notes processed so far.
        message: Error or informational message.
    """

    state: SyncPhase = SyncPhase.IDLE
    pending_count: int | None = None
    synced_count: int | None = None
    message: str | None = None


def normalize_folder(folder: str) -> str:
    """Normalize a folder rule: relative, forward slashes, trailing slash."""
    folder = folder.strip().replace("\\", "/").lstrip("/")
    if folder and not folder.endswith("/"):
        folder += "/"
    return folder


def normalize_tag(tag: str) -> str:
    """Normalize a tag to its "#"-prefixed form ("" for blank input)."""
    tag = tag.strip()
    if not tag:
        return ""
    return tag if tag.startswith("#") else "#" + tag


@dataclass(frozen=True)
class ExclusionRules:
    """Folder-prefix and tag rules removing notes from sync.

    A note is excluded when any rule matches it. Rules are normalized on
    construction, so direct instantiation and create() agree.

    Attributes:
        folders: Folder prefixes, each ending with "/".
        tags: Tags in "#tag" form.
    """

    folders: tuple[str, ...] = ()
    tags: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        """Normalize rules, dropping blanks and duplicate folders."""
        folders: list[str] = []
        for folder in self.folders:
            value = normalize_folder(folder)
            if value and value not in folders:
                folders.append(value)
        tags = frozenset(t for t in (normalize_tag(t) for t in self.tags) if t)
        object.__setattr__(self, "folders", tuple(folders))
        object.__setattr__(self, "tags", tags)

    @classmethod
    def create(
        cls,
        folders: list[str] | tuple[str, ...] = (),
        tags: list[str] | tuple[str, ...] | frozenset[str] = (),
    ) -> ExclusionRules:
        """Build rules from any sequence of folders and tags."""
        return cls(folders=tuple(folders), tags=frozenset(tags))

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ExclusionRules:
        """Create from an API or persisted dictionary."""
        if not data:
            return cls()
        return cls.create(
            folders=[str(f) for f in data.get("folders") or []],
            tags=[str(t) for t in data.get("tags") or []],
        )

    def to_dict(self) -> dict[str, list[str]]:
        """Serialize with a stable tag order."""
        return {"folders": list(self.folders), "tags": sorted(self.tags)}

    @property
    def is_empty(self) -> bool:
        return not self.folders and not self.tags


@dataclass(frozen=True)
class NoteMetadata:
    """A note as read from the vault, produced fresh on every scan.

    Attributes:
        path: Relative path in the vault (unique key).
        title: Frontmatter title or file name without extension.
        content: Full markdown content.
        content_hash: SHA-256 hex digest of content.
        tags: Tags with "#" prefix (frontmatter and inline).
        headings: Headings in document order.
        links: Wikilinks and embeds in document order.
        frontmatter: Parsed frontmatter mapping.
        word_count: Number of words outside the frontmatter.
        created_time: Creation time (ISO 8601).
        modified_time: Modification time (ISO 8601).
    """

    path: str
    title: str
    content: str
    content_hash: str
    tags: tuple[str, ...] = ()
    headings: tuple[str, ...] = ()
    links: tuple[str, ...] = ()
    frontmatter: dict[str, Any] = field(default_factory=dict)
    word_count: int = 0
    created_time: str | None = None
    modified_time: str | None = None

    def to_payload(self) -> dict[str, Any]:
        """Convert to the note payload expected by the sync endpoint."""
        payload: dict[str, Any] = {
            "path": self.path,
            "content": self.content,
            "content_hash": self.content_hash,
            "title": self.title,
            "tags": list(self.tags),
            "headings": list(self.headings),
            "links": list(self.links),
            "frontmatter": dict(self.frontmatter),
            "word_count": self.word_count,
        }
        if self.created_time:
            payload["created_time"] = self.created_time
        if self.modified_time:
            payload["modified_time"] = self.modified_time
        return payload


@dataclass(frozen=True)
class SyncDiff:
    """Difference between the vault and the last acknowledged server state.

    Attributes:
        changed: New paths or paths whose fingerprint differs.
        deleted: Tracked paths missing from the current snapshot.
    """

    changed: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True when nothing needs to be synced."""
        return not self.changed and not self.deleted
