"""Keeps the promptreg section of .git/info/exclude in sync.

Local-only bundles are hidden from git through .git/info/exclude, never
through .gitignore, because the exclude file is not tracked. Exclusion is
bookkeeping: failures here are logged and never fail an install or
uninstall that otherwise succeeded.
"""

import logging
from collections.abc import Iterable
from pathlib import Path

from promptreg.errors import GitExcludeWriteError
from promptreg.utils.exclude_section import SECTION_HEADER, add_entries, list_entries, remove_entries
from promptreg.utils.filesystem import atomic_write_text, read_text_file

logger = logging.getLogger("promptreg.git_exclude")


class GitExcludePatcher:
    """Adds and removes paths in the managed exclude section of one repository."""

    def __init__(self, repository_root: Path, header: str = SECTION_HEADER):
        """Initialize the patcher.

        Args:
            repository_root: Path to the repository root
            header: Header line that opens the managed section
        """
        self._root = repository_root
        self._header = header

    @property
    def git_dir(self) -> Path:
        """Get the .git directory path."""
        return self._root / ".git"

    @property
    def exclude_path(self) -> Path:
        """Get the .git/info/exclude path."""
        return self.git_dir / "info" / "exclude"

    def has_git_directory(self) -> bool:
        """Check whether the repository has a .git directory."""
        return self.git_dir.is_dir()

    def list_paths(self) -> list[str]:
        """List the paths currently in the managed section."""
        if not self.exclude_path.exists():
            return []
        return list_entries(read_text_file(self.exclude_path), self._header)

    def add_paths(self, paths: Iterable[str]) -> bool:
        """Add paths to the managed section, creating it if needed.

        Returns:
            True if the exclude file is up to date afterwards
        """
        paths = list(paths)
        if not paths:
            return True
        if not self.has_git_directory():
            logger.debug("No .git directory in %s, skipping git exclude", self._root)
            return True

        try:
            self.exclude_path.parent.mkdir(parents=True, exist_ok=True)
            content = read_text_file(self.exclude_path) if self.exclude_path.exists() else ""
            self._write_if_changed(content, add_entries(content, paths, self._header))
        except (OSError, UnicodeError) as e:
            self._warn(GitExcludeWriteError(f"Failed to update git exclude: {e}", self.exclude_path))
            return False

        logger.debug("Added %d path(s) to git exclude", len(paths))
        return True

    def remove_paths(self, paths: Iterable[str]) -> bool:
        """Remove exact matches from the managed section.

        The header is removed along with the section when no entries remain.

        Returns:
            True if the exclude file is up to date afterwards
        """
        paths = list(paths)
        if not paths or not self.has_git_directory() or not self.exclude_path.exists():
            return True

        try:
            content = read_text_file(self.exclude_path)
            self._write_if_changed(content, remove_entries(content, paths, self._header))
        except (OSError, UnicodeError) as e:
            self._warn(GitExcludeWriteError(f"Failed to update git exclude: {e}", self.exclude_path))
            return False

        logger.debug("Removed %d path(s) from git exclude", len(paths))
        return True

    def _write_if_changed(self, old: str, new: str) -> None:
        if new != old:
            atomic_write_text(self.exclude_path, new)

    def _warn(self, error: GitExcludeWriteError) -> None:
        logger.warning("%s", error)
