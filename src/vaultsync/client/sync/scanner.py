"""Local vault access for the sync engine.

This module provides:
- VaultScanner: Protocol the orchestrator uses to enumerate and read notes
- LocalVault: VaultScanner over a directory of markdown files
- parse_note: Metadata extraction from raw markdown

Metadata extraction:
    - Title: frontmatter ``title``, else the file name without extension
    - Tags: frontmatter ``tags`` (list or comma-separated) plus inline #tags
    - Headings: ATX headings in document order
    - Links: [[wikilinks]] and ![[embeds]] in document order
    - Word count: whitespace-separated tokens outside the frontmatter
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
from datetime import UTC, date, datetime
from pathlib import Path
from typing import Any, Protocol

import frontmatter
import yaml

from vaultsync.client.sync.types import NOTE_EXTENSION, NoteNotFoundError
from vaultsync.core.hashing import fingerprint
from vaultsync.core.types import NoteMetadata, normalize_tag

logger = logging.getLogger(__name__)

_FENCED_CODE_RE = re.compile(r"^(```|~~~).*?^\1[ \t]*$", re.DOTALL | re.MULTILINE)
_INLINE_CODE_RE = re.compile(r"`[^`\n]*`")
_HEADING_RE = re.compile(r"^#{1,6}[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$", re.MULTILINE)
# A tag needs at least one non-digit character
_TAG_RE = re.compile(r"(?<![\w#/&])#([\w/-]*[^\W\d][\w/-]*)")
_LINK_RE = re.compile(r"(!?)\[\[([^\]\n]+?)\]\]")


class VaultScanner(Protocol):
    """Read access to the document collection being synced."""

    def list_paths(self) -> list[str]:
        """Return all candidate note paths, relative with forward slashes."""
        ...

    def exists(self, path: str) -> bool:
        ...

    async def read_note(self, path: str) -> NoteMetadata:
        """Read a note and derive its metadata.

        Raises:
            NoteNotFoundError: If the note no longer exists.
        """
        ...

    async def fingerprint(self, path: str) -> str:
        """Compute the content fingerprint of a note."""
        ...


def split_frontmatter(content: str) -> tuple[dict[str, Any], str]:
    """Split a note into its frontmatter mapping and body.

    Invalid YAML is treated as plain markdown without frontmatter.
    Non-mapping YAML yields an empty mapping.
    """
    try:
        post = frontmatter.loads(content)
    except yaml.YAMLError as e:
        logger.debug(f"Invalid frontmatter, treating note as plain markdown: {e}")
        post = frontmatter.Post(content, metadata={})

    metadata = {str(key): _to_json(value) for key, value in post.metadata.items()}
    return metadata, post.content


def _to_json(value: Any) -> Any:
    """Convert YAML values to JSON-compatible ones."""
    if isinstance(value, datetime | date):
        return value.isoformat()
    if isinstance(value, dict):
        return {str(k): _to_json(v) for k, v in value.items()}
    if isinstance(value, list | tuple | set):
        return [_to_json(v) for v in value]
    if value is None or isinstance(value, str | int | float | bool):
        return value
    return str(value)


def _dedupe(items: list[str]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(items))


def extract_tags(metadata: dict[str, Any], body: str) -> tuple[str, ...]:
    """Collect frontmatter and inline tags in "#tag" form."""
    tags: list[str] = []

    fm_tags = metadata.get("tags")
    if isinstance(fm_tags, list):
        tags.extend(normalize_tag(str(tag)) for tag in fm_tags if tag is not None)
    elif isinstance(fm_tags, str):
        tags.extend(normalize_tag(tag) for tag in fm_tags.split(","))

    text = _INLINE_CODE_RE.sub("", _FENCED_CODE_RE.sub("", body))
    tags.extend("#" + match.group(1) for match in _TAG_RE.finditer(text))

    return _dedupe([tag for tag in tags if tag])


def extract_headings(body: str) -> tuple[str, ...]:
    text = _FENCED_CODE_RE.sub("", body)
    return tuple(match.group(1).strip() for match in _HEADING_RE.finditer(text))


def extract_links(body: str) -> tuple[str, ...]:
    """Collect wikilinks and embeds, dropping display aliases."""
    links = []
    for match in _LINK_RE.finditer(body):
        target = match.group(2).split("|", 1)[0].strip()
        if target:
            links.append(f"{match.group(1)}[[{target}]]")
    return tuple(links)


def count_words(body: str) -> int:
    return len(body.split())


def parse_note(
    path: str,
    content: str,
    created_time: str | None = None,
    modified_time: str | None = None,
) -> NoteMetadata:
    """Derive note metadata from raw markdown.

    Args:
        path: Relative note path.
        content: Full markdown content.
        created_time: Creation time (ISO 8601).
        modified_time: Modification time (ISO 8601).

    Returns:
        NoteMetadata with a fresh fingerprint.
    """
    metadata, body = split_frontmatter(content)
    title = metadata.get("title")
    return NoteMetadata(
        path=path,
        title=str(title) if title else Path(path).stem,
        content=content,
        content_hash=fingerprint(content),
        tags=extract_tags(metadata, body),
        headings=extract_headings(body),
        links=extract_links(body),
        frontmatter=metadata,
        word_count=count_words(body),
        created_time=created_time,
        modified_time=modified_time,
    )


def _iso_utc(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, UTC).isoformat()


class LocalVault:
    """VaultScanner over a directory of markdown notes.

    Dot-directories (.obsidian, .git, .trash) are never scanned.
    """

    def __init__(self, root: Path, vault_name: str | None = None) -> None:
        """Initialize the vault.

        Args:
            root: Vault directory.
            vault_name: Name sent to the server (default: directory name).

        Raises:
            ValueError: If root is not a directory.
        """
        self._root = Path(root).expanduser().resolve()
        if not self._root.is_dir():
            raise ValueError(f"Vault path must be a directory: {root}")
        self._vault_name = vault_name or self._root.name

    @property
    def root(self) -> Path:
        return self._root

    @property
    def vault_name(self) -> str:
        return self._vault_name

    def relative_path(self, absolute: Path | str) -> str | None:
        """Convert an absolute path to a vault path, or None if outside or hidden."""
        try:
            rel = Path(absolute).resolve().relative_to(self._root)
        except ValueError:
            return None
        if any(part.startswith(".") for part in rel.parts):
            return None
        return rel.as_posix()

    def _absolute(self, path: str) -> Path:
        absolute = (self._root / path).resolve()
        if not absolute.is_relative_to(self._root):
            raise NoteNotFoundError(path)
        return absolute

    def list_paths(self) -> list[str]:
        paths: list[str] = []
        for dirpath, dirnames, filenames in os.walk(self._root):
            # Prune hidden directories in place
            dirnames[:] = [d for d in dirnames if not d.startswith(".")]
            for name in filenames:
                if name.startswith(".") or not name.endswith(NOTE_EXTENSION):
                    continue
                rel = Path(dirpath, name).relative_to(self._root)
                paths.append(rel.as_posix())
        return sorted(paths)

    def exists(self, path: str) -> bool:
        try:
            return self._absolute(path).is_file()
        except NoteNotFoundError:
            return False

    def _read(self, path: str) -> tuple[str, os.stat_result]:
        absolute = self._absolute(path)
        try:
            content = absolute.read_text(encoding="utf-8")
            stat = absolute.stat()
        except FileNotFoundError as e:
            raise NoteNotFoundError(path) from e
        except IsADirectoryError as e:
            raise NoteNotFoundError(path) from e
        return content, stat

    async def read_note(self, path: str) -> NoteMetadata:
        content, stat = await asyncio.to_thread(self._read, path)
        return parse_note(
            path,
            content,
            created_time=_iso_utc(stat.st_ctime),
            modified_time=_iso_utc(stat.st_mtime),
        )

    async def fingerprint(self, path: str) -> str:
        content, _ = await asyncio.to_thread(self._read, path)
        return fingerprint(content)
