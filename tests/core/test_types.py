"""Tests for shared types and content fingerprinting."""

from __future__ import annotations

from vaultsync.core.hashing import FINGERPRINT_LENGTH, fingerprint, is_fingerprint
from vaultsync.core.types import (
    ExclusionRules,
    NoteMetadata,
    SyncDiff,
    normalize_folder,
    normalize_tag,
)


class TestFingerprint:
    """Tests for content fingerprinting."""

    def test_deterministic(self) -> None:
        """Same content should always give the same fingerprint."""
        assert fingerprint("# Hello\n") == fingerprint("# Hello\n")

    def test_different_content(self) -> None:
        """Different content should give different fingerprints."""
        assert fingerprint("a") != fingerprint("b")
        assert fingerprint("note") != fingerprint("note ")

    def test_known_value(self) -> None:
        """Should be the SHA-256 hex digest of the UTF-8 bytes."""
        assert fingerprint("") == (
            "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
        )

    def test_format(self) -> None:
        """Should be 64 lowercase hex characters."""
        value = fingerprint("café ☕")
        assert len(value) == FINGERPRINT_LENGTH
        assert is_fingerprint(value)

    def test_is_fingerprint_rejects(self) -> None:
        """Should reject wrong length or characters."""
        assert not is_fingerprint("abc")
        assert not is_fingerprint("G" * 64)
        assert not is_fingerprint(fingerprint("x").upper())


class TestNormalization:
    """Tests for folder and tag normalization."""

    def test_normalize_folder(self) -> None:
        """Should strip leading slash and add trailing slash."""
        assert normalize_folder("/private") == "private/"
        assert normalize_folder("journal/daily/") == "journal/daily/"
        assert normalize_folder("  work\\clients ") == "work/clients/"
        assert normalize_folder("   ") == ""

    def test_normalize_tag(self) -> None:
        """Should add the # prefix once."""
        assert normalize_tag("draft") == "#draft"
        assert normalize_tag("#draft") == "#draft"
        assert normalize_tag("  ") == ""


class TestExclusionRules:
    """Tests for ExclusionRules."""

    def test_create_normalizes(self) -> None:
        """Should normalize folders and tags and drop blanks."""
        rules = ExclusionRules.create(folders=["/private", "", "private/"], tags=["draft", " "])
        assert rules.folders == ("private/",)
        assert rules.tags == frozenset({"#draft"})

    def test_direct_construction_normalizes(self) -> None:
        """Rules built without create() should be normalized the same way."""
        rules = ExclusionRules(folders=("private", "private/"), tags=frozenset({"draft"}))

        assert rules == ExclusionRules.create(folders=["private"], tags=["#draft"])
        assert rules.folders == ("private/",)

    def test_from_dict(self) -> None:
        """Should build from an API payload."""
        rules = ExclusionRules.from_dict({"folders": ["a"], "tags": ["#b"]})
        assert rules.folders == ("a/",)
        assert rules.tags == frozenset({"#b"})

    def test_from_dict_empty(self) -> None:
        """Should treat a missing payload as no rules."""
        assert ExclusionRules.from_dict(None).is_empty

    def test_to_dict_sorted_tags(self) -> None:
        """Should serialize tags in a stable order."""
        rules = ExclusionRules.create(tags=["zeta", "alpha"])
        assert rules.to_dict() == {"folders": [], "tags": ["#alpha", "#zeta"]}


class TestNoteMetadata:
    """Tests for NoteMetadata payload conversion."""

    def test_to_payload(self) -> None:
        """Should use the sync endpoint's field names."""
        note = NoteMetadata(
            path="a.md",
            title="A",
            content="hello",
            content_hash=fingerprint("hello"),
            tags=("#x",),
            headings=("H",),
            links=("[[b]]",),
            frontmatter={"k": 1},
            word_count=1,
            created_time="2025-01-01T00:00:00+00:00",
            modified_time="2025-01-02T00:00:00+00:00",
        )

        payload = note.to_payload()

        assert payload["path"] == "a.md"
        assert payload["content_hash"] == fingerprint("hello")
        assert payload["tags"] == ["#x"]
        assert payload["links"] == ["[[b]]"]
        assert payload["word_count"] == 1
        assert payload["created_time"] == "2025-01-01T00:00:00+00:00"

    def test_to_payload_omits_missing_times(self) -> None:
        """Should omit timestamps that are unknown."""
        note = NoteMetadata(path="a.md", title="a", content="", content_hash=fingerprint(""))
        payload = note.to_payload()
        assert "created_time" not in payload
        assert "modified_time" not in payload


class TestSyncDiff:
    """Tests for SyncDiff."""

    def test_is_empty(self) -> None:
        """Should be empty without changes or deletions."""
        assert SyncDiff().is_empty
        assert not SyncDiff(changed=["a.md"]).is_empty
        assert not SyncDiff(deleted=["a.md"]).is_empty
