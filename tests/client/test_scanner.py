"""Tests for vault scanning and note parsing."""

from pathlib import Path

import pytest

from vaultsync.client.sync.scanner import (
    LocalVault,
    extract_headings,
    extract_links,
    extract_tags,
    parse_note,
    split_frontmatter,
)
from vaultsync.client.sync.types import NoteNotFoundError
from vaultsync.core.hashing import fingerprint

SAMPLE_NOTE = """---
title: My Note
tags: [project, "#work"]
created: 2025-01-02
---
# Heading One

Some text with #inline tag, [[Other Note|alias]] and ![[image.png]].

```python
# not a heading #notatag
```

## Second
"""


class TestSplitFrontmatter:
    """Tests for frontmatter parsing."""

    def test_parses_mapping(self) -> None:
        """Should return the mapping and the remaining body."""
        frontmatter, body = split_frontmatter(SAMPLE_NOTE)

        assert frontmatter["title"] == "My Note"
        assert frontmatter["tags"] == ["project", "#work"]
        assert body.startswith("# Heading One")

    def test_dates_become_strings(self) -> None:
        """Should convert YAML dates to ISO strings."""
        frontmatter, _ = split_frontmatter(SAMPLE_NOTE)
        assert frontmatter["created"] == "2025-01-02"

    def test_no_frontmatter(self) -> None:
        """Should leave content untouched without a leading block."""
        frontmatter, body = split_frontmatter("Just text\n---\n")
        assert frontmatter == {}
        assert body.rstrip() == "Just text\n---"

    def test_invalid_yaml(self) -> None:
        """Should treat a note with invalid YAML as plain markdown."""
        content = "---\nkey: [unclosed\n---\nBody\n"
        frontmatter, body = split_frontmatter(content)
        assert frontmatter == {}
        assert body == content

    def test_non_mapping_yaml(self) -> None:
        """Should ignore frontmatter that is not a mapping."""
        frontmatter, _ = split_frontmatter("---\n- a\n- b\n---\nBody\n")
        assert frontmatter == {}


class TestExtraction:
    """Tests for tag, heading and link extraction."""

    def test_tags_from_frontmatter_and_body(self) -> None:
        """Should merge frontmatter and inline tags without duplicates."""
        tags = extract_tags({"tags": ["project", "#inline"]}, "Text #inline and #other")
        assert tags == ("#project", "#inline", "#other")

    def test_comma_separated_frontmatter_tags(self) -> None:
        """Should split a comma-separated tags string."""
        assert extract_tags({"tags": "a, b"}, "") == ("#a", "#b")

    def test_tags_skip_code_and_numbers(self) -> None:
        """Should ignore code spans and purely numeric tags."""
        body = "Issue #123 and #v2 with `#code`\n```\n#fenced\n```\n"
        assert extract_tags({}, body) == ("#v2",)

    def test_headings_ignore_tags(self) -> None:
        """Heading markers should not be read as tags."""
        assert extract_tags({}, "# Title\n## Sub") == ()
        assert extract_headings("# Title\n## Sub ##\nText") == ("Title", "Sub")

    def test_links_in_order(self) -> None:
        """Should keep document order and drop aliases."""
        body = "![[pic.png]] then [[Note A|shown]] and [[Folder/Note B]]"
        assert extract_links(body) == ("![[pic.png]]", "[[Note A]]", "[[Folder/Note B]]")


class TestParseNote:
    """Tests for parse_note."""

    def test_full_note(self) -> None:
        """Should derive every metadata field."""
        note = parse_note("dir/my-note.md", SAMPLE_NOTE, modified_time="2025-01-02T00:00:00+00:00")

        assert note.title == "My Note"
        assert note.content == SAMPLE_NOTE
        assert note.content_hash == fingerprint(SAMPLE_NOTE)
        assert note.tags == ("#project", "#work", "#inline")
        assert note.headings == ("Heading One", "Second")
        assert note.links == ("[[Other Note]]", "![[image.png]]")
        assert note.word_count > 0
        assert note.modified_time == "2025-01-02T00:00:00+00:00"

    def test_title_defaults_to_file_name(self) -> None:
        """Should use the file stem without a frontmatter title."""
        note = parse_note("folder/Daily Log.md", "hello world")

        assert note.title == "Daily Log"
        assert note.word_count == 2
        assert note.frontmatter == {}


@pytest.fixture
def vault_dir(tmp_path: Path) -> Path:
    """Vault with visible, hidden and non-note files."""
    root = tmp_path / "MyVault"
    (root / "sub").mkdir(parents=True)
    (root / ".obsidian").mkdir()
    (root / "a.md").write_text("# A\n#tagged", encoding="utf-8")
    (root / "sub" / "b.md").write_text("B", encoding="utf-8")
    (root / ".obsidian" / "workspace.md").write_text("x", encoding="utf-8")
    (root / ".hidden.md").write_text("x", encoding="utf-8")
    (root / "image.png").write_bytes(b"\x89PNG")
    return root


class TestLocalVault:
    """Tests for LocalVault."""

    def test_rejects_missing_directory(self, tmp_path: Path) -> None:
        """Should require an existing directory."""
        with pytest.raises(ValueError):
            LocalVault(tmp_path / "missing")

    def test_vault_name_defaults_to_directory(self, vault_dir: Path) -> None:
        """Should name the vault after its directory."""
        assert LocalVault(vault_dir).vault_name == "MyVault"
        assert LocalVault(vault_dir, vault_name="Work").vault_name == "Work"

    def test_list_paths(self, vault_dir: Path) -> None:
        """Should list visible markdown notes only."""
        assert LocalVault(vault_dir).list_paths() == ["a.md", "sub/b.md"]

    def test_relative_path(self, vault_dir: Path, tmp_path: Path) -> None:
        """Should map inside paths and reject outside or hidden ones."""
        vault = LocalVault(vault_dir)

        assert vault.relative_path(vault_dir / "sub" / "b.md") == "sub/b.md"
        assert vault.relative_path(vault_dir / ".obsidian" / "workspace.md") is None
        assert vault.relative_path(tmp_path / "elsewhere.md") is None

    def test_exists(self, vault_dir: Path) -> None:
        """Should check for regular files inside the vault."""
        vault = LocalVault(vault_dir)

        assert vault.exists("a.md")
        assert not vault.exists("sub")
        assert not vault.exists("missing.md")
        assert not vault.exists("../outside.md")

    @pytest.mark.asyncio
    async def test_read_note(self, vault_dir: Path) -> None:
        """Should parse the note with UTC file times."""
        vault = LocalVault(vault_dir)

        note = await vault.read_note("a.md")

        assert note.path == "a.md"
        assert note.tags == ("#tagged",)
        assert note.modified_time is not None
        assert note.modified_time.endswith("+00:00")

    @pytest.mark.asyncio
    async def test_read_missing_note(self, vault_dir: Path) -> None:
        """Should raise NoteNotFoundError for vanished notes."""
        vault = LocalVault(vault_dir)

        with pytest.raises(NoteNotFoundError):
            await vault.read_note("missing.md")

    @pytest.mark.asyncio
    async def test_fingerprint(self, vault_dir: Path) -> None:
        """Should hash the raw content."""
        vault = LocalVault(vault_dir)
        assert await vault.fingerprint("sub/b.md") == fingerprint("B")
