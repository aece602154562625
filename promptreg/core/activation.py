"""Bringing a freshly cloned repository in line with its lockfile.

When a repository with a lockfile is opened on a new machine, the bundles
it lists may be absent from disk and the sources and hubs they came from
may not be configured. RepositoryActivation finds both and reinstalls the
missing bundles on request.
"""

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Protocol

from promptreg.config.schemas import CommitMode, Scope, Settings
from promptreg.core.installer import InstallResult
from promptreg.core.lockfile import LockfileStore

logger = logging.getLogger("promptreg.activation")

ProgressCallback = Callable[[str, int, int], None]


class BundleInstaller(Protocol):
    """Anything that can install a bundle by id (e.g. BundleManager)."""

    def install_by_id(
        self,
        bundle_id: str,
        scope: Scope,
        commit_mode: CommitMode | None = None,
        version: str | None = None,
        source_id: str | None = None,
    ) -> InstallResult: ...


@dataclass
class MissingBundleInstallResult:
    """Outcome of reinstalling missing bundles."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    skipped: list[str] = field(default_factory=list)
    cancelled: bool = False


@dataclass
class MissingSourcesResult:
    """Lockfile sources and hubs that are not configured locally."""

    missing_sources: list[str] = field(default_factory=list)
    missing_hubs: list[str] = field(default_factory=list)

    @property
    def has_missing(self) -> bool:
        return bool(self.missing_sources or self.missing_hubs)


class RepositoryActivation:
    """Finds and reinstalls repository-scope bundles missing from disk."""

    def __init__(
        self,
        lockfile: LockfileStore,
        installer: BundleInstaller | None = None,
        settings: Settings | None = None,
    ):
        """Initialize the activation helper.

        Args:
            lockfile: Lockfile store of the repository
            installer: Capability used to reinstall bundles; without one,
                every missing bundle is skipped
            settings: User settings holding the configured sources and hubs
        """
        self._lockfile = lockfile
        self._installer = installer
        self._settings = settings or Settings()

    def find_missing_bundles(self) -> list[str]:
        """List locked bundles with files absent from disk."""
        return [b.bundle_id for b in self._lockfile.get_installed_bundles() if b.files_missing]

    def install_missing_bundles(
        self,
        bundle_ids: list[str],
        cancel_event: threading.Event | None = None,
        progress: ProgressCallback | None = None,
    ) -> MissingBundleInstallResult:
        """Reinstall bundles at the version and commit mode in the lockfile.

        Each bundle is installed independently; a failure is recorded and
        the batch continues. Cancellation is checked between bundles.

        Args:
            bundle_ids: Bundles to reinstall
            cancel_event: Set to stop before the next bundle
            progress: Called as ``progress(bundle_id, index, total)`` before each bundle

        Returns:
            Succeeded, failed, and skipped bundle ids
        """
        result = MissingBundleInstallResult()
        if self._installer is None:
            logger.warning("No bundle installer available, skipping %d bundle(s)", len(bundle_ids))
            result.skipped = list(bundle_ids)
            return result

        lockfile = self._lockfile.read()
        locked = lockfile.bundles if lockfile is not None else {}

        total = len(bundle_ids)
        for index, bundle_id in enumerate(bundle_ids, start=1):
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Installation of missing bundles cancelled")
                result.cancelled = True
                break

            entry = locked.get(bundle_id)
            if entry is None:
                logger.warning("Bundle %s not found in lockfile, skipping", bundle_id)
                result.skipped.append(bundle_id)
                continue

            if progress is not None:
                progress(bundle_id, index, total)

            try:
                self._installer.install_by_id(
                    bundle_id,
                    "repository",
                    commit_mode=entry.commit_mode,
                    version=entry.version,
                    source_id=entry.source_id,
                )
            except Exception as e:
                logger.error("Failed to install %s: %s", bundle_id, e)
                result.failed[bundle_id] = str(e)
                continue

            result.succeeded.append(bundle_id)
            logger.info("Installed missing bundle %s", bundle_id)

        return result

    def check_missing_sources(self) -> MissingSourcesResult:
        """List lockfile source ids and hub keys absent from the user settings."""
        result = MissingSourcesResult()
        lockfile = self._lockfile.read()
        if lockfile is None:
            return result

        result.missing_sources = [s for s in lockfile.sources if s not in self._settings.sources]
        if lockfile.hubs:
            result.missing_hubs = [h for h in lockfile.hubs if h not in self._settings.hubs]

        if result.has_missing:
            logger.info(
                "Lockfile references %d unconfigured source(s) and %d hub(s)",
                len(result.missing_sources),
                len(result.missing_hubs),
            )
        return result
