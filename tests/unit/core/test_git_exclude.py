"""Tests for promptreg.core.git_exclude module."""

from pathlib import Path
from unittest.mock import patch

from promptreg.core.git_exclude import GitExcludePatcher
from promptreg.utils.exclude_section import SECTION_HEADER


class TestAddPaths:
    """Tests for GitExcludePatcher.add_paths()."""

    def test_creates_exclude_file(self, repo_root: Path, exclude_file: Path):
        """Creates .git/info/exclude with the managed section."""
        patcher = GitExcludePatcher(repo_root)

        assert patcher.add_paths([".github/prompts/a.prompt.md"]) is True

        assert exclude_file.read_text() == f"{SECTION_HEADER}\n.github/prompts/a.prompt.md\n"

    def test_creates_info_directory(self, temp_dir: Path):
        """Creates .git/info when only .git exists."""
        (temp_dir / ".git").mkdir()

        GitExcludePatcher(temp_dir).add_paths(["a.md"])

        assert (temp_dir / ".git" / "info" / "exclude").exists()

    def test_keeps_user_rules(self, repo_root: Path, exclude_file: Path):
        """Existing user rules stay in place."""
        exclude_file.write_text("*.log\n")

        GitExcludePatcher(repo_root).add_paths(["a.md"])

        assert exclude_file.read_text().startswith("*.log\n")
        assert GitExcludePatcher(repo_root).list_paths() == ["a.md"]

    def test_no_git_directory(self, temp_dir: Path):
        """Without .git nothing is written and no error is raised."""
        assert GitExcludePatcher(temp_dir).add_paths(["a.md"]) is True
        assert not (temp_dir / ".git").exists()

    def test_unchanged_content_not_rewritten(self, repo_root: Path, exclude_file: Path):
        """Adding existing paths doesn't touch the file."""
        patcher = GitExcludePatcher(repo_root)
        patcher.add_paths(["a.md"])

        with patch("promptreg.core.git_exclude.atomic_write_text") as write:
            patcher.add_paths(["a.md"])

        write.assert_not_called()

    def test_write_failure_is_warning(self, repo_root: Path, caplog):
        """Write failures are logged and reported, not raised."""
        patcher = GitExcludePatcher(repo_root)

        with patch(
            "promptreg.core.git_exclude.atomic_write_text", side_effect=PermissionError("denied")
        ):
            assert patcher.add_paths(["a.md"]) is False

        assert "Failed to update git exclude" in caplog.text

    def test_undecodable_file_is_warning(self, repo_root: Path, exclude_file: Path, caplog):
        """An exclude file that isn't UTF-8 is left alone and reported, not raised."""
        exclude_file.write_bytes(b"# caf\xe9 rules\n*.log\n")

        assert GitExcludePatcher(repo_root).add_paths(["a.md"]) is False

        assert exclude_file.read_bytes() == b"# caf\xe9 rules\n*.log\n"
        assert "Failed to update git exclude" in caplog.text


class TestRemovePaths:
    """Tests for GitExcludePatcher.remove_paths()."""

    def test_restores_original_content(self, repo_root: Path, exclude_file: Path):
        """Add then remove leaves the file byte-identical."""
        original = "# git ls-files --others --exclude-from=.git/info/exclude\n*.swp\n"
        exclude_file.write_text(original)
        patcher = GitExcludePatcher(repo_root)

        patcher.add_paths([".github/prompts/a.prompt.md", ".github/skills/s"])
        patcher.remove_paths([".github/prompts/a.prompt.md", ".github/skills/s"])

        assert exclude_file.read_text() == original

    def test_partial_removal(self, repo_root: Path):
        """Other entries stay."""
        patcher = GitExcludePatcher(repo_root)
        patcher.add_paths(["a.md", "b.md"])

        patcher.remove_paths(["a.md"])

        assert patcher.list_paths() == ["b.md"]

    def test_missing_exclude_file(self, repo_root: Path, exclude_file: Path):
        """Nothing to remove when the file doesn't exist."""
        assert GitExcludePatcher(repo_root).remove_paths(["a.md"]) is True
        assert not exclude_file.exists()

    def test_undecodable_file_is_warning(self, repo_root: Path, exclude_file: Path, caplog):
        """Removing from an exclude file that isn't UTF-8 logs a warning."""
        exclude_file.write_bytes(b"# promptreg (local)\na.md\n# caf\xe9\n")

        assert GitExcludePatcher(repo_root).remove_paths(["a.md"]) is False

        assert "Failed to update git exclude" in caplog.text
