"""Tests for promptreg.core.stale module."""

from pathlib import Path
from unittest.mock import patch

from promptreg.core.manager import BundleManager
from promptreg.core.stale import StaleEntryCleaner


class TestStaleEntryCleaner:
    """Tests for StaleEntryCleaner."""

    def test_finds_entries_with_missing_files(
        self, manager: BundleManager, repo_root: Path, make_bundle
    ):
        """Only bundles with deleted files are stale."""
        manager.install(make_bundle("bundle-x"), "repository")
        manager.install(
            make_bundle(
                "bundle-y",
                prompts=[{"id": "other", "file": "other.prompt.md"}],
                files={"other.prompt.md": "y"},
            ),
            "repository",
        )
        (repo_root / ".github/prompts/review.prompt.md").unlink()

        stale = StaleEntryCleaner(manager.lockfile).find_stale()

        assert [b.bundle_id for b in stale] == ["bundle-x"]

    def test_removes_only_given_entries(
        self, manager: BundleManager, repo_root: Path, make_bundle
    ):
        """Confirmed removal deletes just that entry, leaving files on disk alone."""
        manager.install(make_bundle("bundle-x"), "repository")
        manager.install(
            make_bundle(
                "bundle-y",
                prompts=[{"id": "other", "file": "other.prompt.md"}],
                files={"other.prompt.md": "y"},
            ),
            "repository",
        )
        (repo_root / ".github/prompts/review.prompt.md").unlink()
        cleaner = StaleEntryCleaner(manager.lockfile)

        summary = cleaner.remove_stale([b.bundle_id for b in cleaner.find_stale()])

        assert summary.removed == ["bundle-x"]
        assert summary.all_successful
        assert manager.lockfile.get_entry("bundle-x") is None
        assert manager.lockfile.get_entry("bundle-y") is not None
        assert (repo_root / ".github/instructions/style.instructions.md").exists()

    def test_nothing_stale(self, manager: BundleManager, make_bundle):
        """Healthy installs are not reported."""
        manager.install(make_bundle(), "repository")

        assert StaleEntryCleaner(manager.lockfile).find_stale() == []

    def test_partial_failure_continues(self, manager: BundleManager, make_bundle):
        """One failing entry doesn't stop the rest."""
        manager.install(make_bundle("a"), "repository")
        cleaner = StaleEntryCleaner(manager.lockfile)
        real_remove = manager.lockfile.remove

        def flaky_remove(bundle_id: str) -> bool:
            if bundle_id == "broken":
                raise OSError("read-only")
            return real_remove(bundle_id)

        with patch.object(manager.lockfile, "remove", side_effect=flaky_remove):
            summary = cleaner.remove_stale(["broken", "a", "unknown"])

        assert summary.removed == ["a"]
        assert summary.failed == {"broken": "read-only", "unknown": "not in lockfile"}
        assert summary.removed_count == 1
        assert summary.failed_count == 2
        assert not summary.all_successful
