"""Exclusion rules for filtering notes before they leave the client.

This module provides:
- ExclusionFilter: Matches paths and tags against the active ExclusionRules
- parse_folder_exclusions / parse_tag_exclusions: Parse user input
- format_folder_exclusions / format_tag_exclusions: Render rules for display

A note is excluded when its path lies under an excluded folder or when any
of its tags is excluded. Path-only checks are cheap and run when a change is
queued; the full check runs again once the note has been read and its tags
are known.
"""

from __future__ import annotations

from collections.abc import Iterable

from vaultsync.core.types import ExclusionRules, NoteMetadata, normalize_folder, normalize_tag


class ExclusionFilter:
    """Evaluates folder and tag rules against candidate notes."""

    def __init__(self, rules: ExclusionRules | None = None) -> None:
        """Initialize with rules.

        Args:
            rules: Initial rules (nothing excluded if omitted).
        """
        self._rules = rules or ExclusionRules()

    @property
    def rules(self) -> ExclusionRules:
        return self._rules

    def update_rules(self, rules: ExclusionRules) -> None:
        """Replace the active rules. Affects subsequent checks only."""
        self._rules = rules

    def matches_path(self, path: str) -> bool:
        """Check if a path lies under any excluded folder."""
        candidate = path.replace("\\", "/").lstrip("/")
        if not candidate.endswith("/"):
            candidate += "/"
        return any(candidate.startswith(folder) for folder in self._rules.folders)

    def matches_tags(self, tags: Iterable[str]) -> bool:
        """Check if any tag is excluded.

        Tags are compared in "#tag" form and, for rules stored without the
        prefix, in bare form as well.
        """
        excluded = self._rules.tags
        if not excluded:
            return False
        for tag in tags:
            normalized = normalize_tag(tag)
            if not normalized:
                continue
            if normalized in excluded or normalized[1:] in excluded:
                return True
        return False

    def should_exclude(self, path: str, tags: Iterable[str] = ()) -> bool:
        """Check a candidate by path and any tags known so far."""
        return self.matches_path(path) or self.matches_tags(tags)

    def should_exclude_note(self, note: NoteMetadata) -> bool:
        """Authoritative check against fully read note metadata."""
        return self.should_exclude(note.path, note.tags)

    def filter_paths(self, paths: Iterable[str]) -> list[str]:
        """Keep paths outside excluded folders (cheap check, no tags)."""
        return [path for path in paths if not self.matches_path(path)]

    def filter_notes(self, notes: Iterable[NoteMetadata]) -> list[NoteMetadata]:
        """Keep notes that are not excluded."""
        return [note for note in notes if not self.should_exclude_note(note)]


def parse_folder_exclusions(text: str) -> list[str]:
    """Parse newline-separated folders into normalized rules.

    Leading slashes are removed and a trailing slash is added.
    """
    folders: list[str] = []
    for line in text.splitlines():
        folder = normalize_folder(line)
        if folder:
            folders.append(folder)
    return folders


def parse_tag_exclusions(text: str) -> list[str]:
    """Parse newline-separated tags into "#tag" rules."""
    return [tag for tag in (normalize_tag(line) for line in text.splitlines()) if tag]


def format_folder_exclusions(folders: Iterable[str]) -> str:
    """Format folder rules for display, one per line."""
    return "\n".join(folders)


def format_tag_exclusions(tags: Iterable[str]) -> str:
    """Format tag rules for display, one per line."""
    return "\n".join(tags)
