"""Header-delimited section management for git exclude files.

A git exclude file is shared with the user and with other tools, so
promptreg only owns a single block that starts at a fixed header line:

    # promptreg (local)
    .github/prompts/review.prompt.md
    .github/skills/testing

The block ends at the next line starting with ``#`` or at end of file.
Everything before the header (the prefix) and from the next header onward
(the suffix) is passed through unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

SECTION_HEADER = "# promptreg (local)"


@dataclass
class ExcludeSection:
    """A parsed exclude file split around the managed block."""

    prefix: str
    entries: list[str] = field(default_factory=list)
    suffix: str = ""
    found: bool = False


def parse_section(content: str, header: str = SECTION_HEADER) -> ExcludeSection:
    """Split file content into prefix, managed entries, and suffix.

    Args:
        content: The full exclude file content
        header: The header line that opens the managed block

    Returns:
        ExcludeSection; ``found`` is False when the header is absent, in
        which case the whole content is the prefix
    """
    lines = content.splitlines(keepends=True)
    offset = 0
    for index, line in enumerate(lines):
        if line.strip() == header:
            prefix = content[:offset]
            block_lines: list[str] = []
            end = offset + len(line)
            for following in lines[index + 1 :]:
                if following.lstrip().startswith("#"):
                    break
                block_lines.append(following)
                end += len(following)
            return ExcludeSection(
                prefix=prefix,
                entries=_unique(item.strip() for item in block_lines if item.strip()),
                suffix=content[end:],
                found=True,
            )
        offset += len(line)

    return ExcludeSection(prefix=content)


def render_section(
    section: ExcludeSection, entries: Iterable[str], header: str = SECTION_HEADER
) -> str:
    """Rebuild file content with the managed block holding ``entries``.

    An empty entry list removes the header along with the block.

    Args:
        section: The parsed file
        entries: Entries for the managed block
        header: The header line that opens the managed block

    Returns:
        The new file content
    """
    entries = _unique(entries)
    prefix = section.prefix
    suffix = section.suffix

    if not entries:
        if suffix:
            return prefix + suffix
        if not prefix.strip():
            return ""
        return prefix.rstrip("\n") + "\n"

    if not section.found and prefix.strip():
        # New block: make sure it starts on its own line after a blank line
        prefix = prefix.rstrip("\n") + "\n\n"
    elif not prefix.strip():
        prefix = ""

    block = header + "\n" + "".join(f"{entry}\n" for entry in entries)
    if suffix:
        block += "\n"
    return prefix + block + suffix


def add_entries(content: str, paths: Iterable[str], header: str = SECTION_HEADER) -> str:
    """Return content with ``paths`` merged into the managed block."""
    section = parse_section(content, header)
    return render_section(section, [*section.entries, *paths], header)


def remove_entries(content: str, paths: Iterable[str], header: str = SECTION_HEADER) -> str:
    """Return content with exact matches of ``paths`` removed from the managed block."""
    section = parse_section(content, header)
    if not section.found:
        return content
    to_remove = set(paths)
    remaining = [entry for entry in section.entries if entry not in to_remove]
    return render_section(section, remaining, header)


def list_entries(content: str, header: str = SECTION_HEADER) -> list[str]:
    """List the entries of the managed block."""
    return parse_section(content, header).entries


def _unique(items: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result
