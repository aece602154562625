"""Tests for promptreg.core.activation module."""

import threading
from pathlib import Path
from unittest.mock import MagicMock

from promptreg.config.schemas import Settings, SourceDescriptor
from promptreg.core.activation import RepositoryActivation
from promptreg.core.lockfile import LockfileStore


def _lock(store: LockfileStore, bundle_id: str, version: str = "1.0.0", **kwargs) -> None:
    store.create_or_update(
        bundle_id,
        version,
        kwargs.get("source_id", "github-abc123"),
        "github",
        kwargs.get("commit_mode", "commit"),
        kwargs.get("files", [{"path": f".github/prompts/{bundle_id}.prompt.md", "checksum": "x"}]),
        SourceDescriptor(type="github", url="https://github.com/org/bundles"),
    )


class TestFindMissingBundles:
    """Tests for RepositoryActivation.find_missing_bundles()."""

    def test_fresh_clone(self, repo_root: Path):
        """Bundles whose files were never written are missing."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a")
        _lock(store, "bundle-b")
        present = repo_root / ".github/prompts/bundle-b.prompt.md"
        present.parent.mkdir(parents=True)
        present.write_text("b")

        assert RepositoryActivation(store).find_missing_bundles() == ["bundle-a"]

    def test_no_lockfile(self, repo_root: Path):
        """No lockfile means nothing is missing."""
        assert RepositoryActivation(LockfileStore(repo_root)).find_missing_bundles() == []


class TestInstallMissingBundles:
    """Tests for RepositoryActivation.install_missing_bundles()."""

    def test_installs_locked_version(self, repo_root: Path):
        """Bundles are reinstalled at their locked version, mode, and source."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a", "2.1.0", commit_mode="local-only")
        installer = MagicMock()

        result = RepositoryActivation(store, installer).install_missing_bundles(["bundle-a"])

        assert result.succeeded == ["bundle-a"]
        installer.install_by_id.assert_called_once_with(
            "bundle-a",
            "repository",
            commit_mode="local-only",
            version="2.1.0",
            source_id="github-abc123",
        )

    def test_failure_does_not_stop_batch(self, repo_root: Path):
        """A failing bundle is recorded and the rest are still installed."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a")
        _lock(store, "bundle-b")
        installer = MagicMock()
        installer.install_by_id.side_effect = [RuntimeError("network down"), None]

        result = RepositoryActivation(store, installer).install_missing_bundles(
            ["bundle-a", "bundle-b"]
        )

        assert result.failed == {"bundle-a": "network down"}
        assert result.succeeded == ["bundle-b"]

    def test_without_installer_everything_skipped(self, repo_root: Path):
        """With no installer the bundles are skipped, not failed."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a")

        result = RepositoryActivation(store).install_missing_bundles(["bundle-a"])

        assert result.skipped == ["bundle-a"]
        assert result.succeeded == []
        assert result.failed == {}

    def test_unknown_bundle_skipped(self, repo_root: Path):
        """Ids absent from the lockfile are skipped."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a")
        installer = MagicMock()

        result = RepositoryActivation(store, installer).install_missing_bundles(["ghost"])

        assert result.skipped == ["ghost"]
        installer.install_by_id.assert_not_called()

    def test_cancellation_between_bundles(self, repo_root: Path):
        """Setting the cancel event stops before the next bundle."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a")
        _lock(store, "bundle-b")
        cancel = threading.Event()
        installer = MagicMock()
        installer.install_by_id.side_effect = lambda *args, **kwargs: cancel.set()

        result = RepositoryActivation(store, installer).install_missing_bundles(
            ["bundle-a", "bundle-b"], cancel_event=cancel
        )

        assert result.cancelled is True
        assert result.succeeded == ["bundle-a"]
        assert installer.install_by_id.call_count == 1

    def test_progress_reported(self, repo_root: Path):
        """Progress is reported before each bundle."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a")
        _lock(store, "bundle-b")
        calls = []

        RepositoryActivation(store, MagicMock()).install_missing_bundles(
            ["bundle-a", "bundle-b"], progress=lambda *args: calls.append(args)
        )

        assert calls == [("bundle-a", 1, 2), ("bundle-b", 2, 2)]


class TestCheckMissingSources:
    """Tests for RepositoryActivation.check_missing_sources()."""

    def test_unconfigured_source(self, repo_root: Path):
        """Sources in the lockfile but not in the settings are reported."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a")

        result = RepositoryActivation(store).check_missing_sources()

        assert result.has_missing
        assert result.missing_sources == ["github-abc123"]
        assert result.missing_hubs == []

    def test_configured_source(self, repo_root: Path):
        """Configured sources are not reported."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a")
        settings = Settings(
            sources={"github-abc123": SourceDescriptor(type="github", url="https://github.com/org/bundles")}
        )

        result = RepositoryActivation(store, settings=settings).check_missing_sources()

        assert not result.has_missing

    def test_unconfigured_hub(self, repo_root: Path):
        """Hubs in the lockfile but not in the settings are reported."""
        store = LockfileStore(repo_root)
        _lock(store, "bundle-a")
        lockfile = store.read()
        lockfile.hubs = {"team-hub": {"name": "Team", "url": "https://hub.example.com"}}
        store._write(lockfile)

        result = RepositoryActivation(store).check_missing_sources()

        assert result.missing_hubs == ["team-hub"]

    def test_no_lockfile(self, repo_root: Path):
        """Nothing is reported without a lockfile."""
        assert not RepositoryActivation(LockfileStore(repo_root)).check_missing_sources().has_missing
