"""Tests for promptreg.utils.exclude_section module."""

from promptreg.utils.exclude_section import (
    SECTION_HEADER,
    add_entries,
    list_entries,
    parse_section,
    remove_entries,
)


class TestParseSection:
    """Tests for parse_section()."""

    def test_without_header(self):
        """Whole content is the prefix when the header is absent."""
        content = "*.log\nbuild/\n"

        section = parse_section(content)

        assert section.found is False
        assert section.prefix == content
        assert section.entries == []
        assert section.suffix == ""

    def test_section_at_end(self):
        """Parses entries up to end of file."""
        content = f"*.log\n\n{SECTION_HEADER}\n.github/prompts/a.prompt.md\n.github/skills/b\n"

        section = parse_section(content)

        assert section.found is True
        assert section.prefix == "*.log\n\n"
        assert section.entries == [".github/prompts/a.prompt.md", ".github/skills/b"]
        assert section.suffix == ""

    def test_section_ends_at_next_comment(self):
        """The block stops at the next line starting with '#'."""
        content = f"{SECTION_HEADER}\na.md\n\n# other tool\nfoo\n"

        section = parse_section(content)

        assert section.entries == ["a.md"]
        assert section.suffix == "# other tool\nfoo\n"

    def test_duplicate_entries_collapsed(self):
        """Repeated entries are reported once."""
        content = f"{SECTION_HEADER}\na.md\na.md\nb.md\n"

        assert parse_section(content).entries == ["a.md", "b.md"]


class TestAddEntries:
    """Tests for add_entries()."""

    def test_creates_section_in_empty_file(self):
        """Creates the header and entries in an empty file."""
        result = add_entries("", ["a.md"])

        assert result == f"{SECTION_HEADER}\na.md\n"

    def test_appends_section_after_existing_content(self):
        """New section is separated from user content by a blank line."""
        result = add_entries("*.log\n", ["a.md"])

        assert result == f"*.log\n\n{SECTION_HEADER}\na.md\n"

    def test_merges_into_existing_section(self):
        """Adds to the existing section without duplicating entries."""
        content = f"{SECTION_HEADER}\na.md\n"

        result = add_entries(content, ["a.md", "b.md"])

        assert result == f"{SECTION_HEADER}\na.md\nb.md\n"

    def test_is_idempotent(self):
        """Adding the same paths twice gives the same content."""
        once = add_entries("*.log\n", ["a.md", "b.md"])
        twice = add_entries(once, ["a.md", "b.md"])

        assert once == twice

    def test_preserves_following_sections(self):
        """Content after the managed section is untouched."""
        content = f"{SECTION_HEADER}\na.md\n\n# other tool\nfoo\n"

        result = add_entries(content, ["b.md"])

        assert result == f"{SECTION_HEADER}\na.md\nb.md\n\n# other tool\nfoo\n"


class TestRemoveEntries:
    """Tests for remove_entries()."""

    def test_removes_exact_matches_only(self):
        """Only exact entries are removed."""
        content = f"{SECTION_HEADER}\na.md\na.md.bak\n"

        result = remove_entries(content, ["a.md"])

        assert list_entries(result) == ["a.md.bak"]

    def test_removes_header_when_empty(self):
        """Header goes away with the last entry."""
        content = f"*.log\n\n{SECTION_HEADER}\na.md\n"

        result = remove_entries(content, ["a.md"])

        assert SECTION_HEADER not in result
        assert result == "*.log\n"

    def test_add_then_remove_restores_content(self):
        """Removing everything that was added restores the original bytes."""
        original = "# user rules\n*.log\nbuild/\n"

        added = add_entries(original, [".github/prompts/a.prompt.md", ".github/skills/b"])
        restored = remove_entries(added, [".github/prompts/a.prompt.md", ".github/skills/b"])

        assert restored == original

    def test_add_then_remove_restores_empty_file(self):
        """An originally empty file is empty again."""
        added = add_entries("", ["a.md"])

        assert remove_entries(added, ["a.md"]) == ""

    def test_without_section_is_noop(self):
        """Content without the header is returned unchanged."""
        content = "*.log\n"

        assert remove_entries(content, ["a.md"]) == content

    def test_keeps_following_sections(self):
        """Removing the last entry keeps other tools' sections."""
        content = f"{SECTION_HEADER}\na.md\n\n# other tool\nfoo\n"

        result = remove_entries(content, ["a.md"])

        assert result == "# other tool\nfoo\n"
