"""Lockfile management for promptreg.

The lockfile (promptreg.lock.json at the repository root) is the only record
of repository-scope installations. It exists iff at least one bundle is
installed at repository scope: removing the last entry deletes the file.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal

from promptreg import __version__
from promptreg.config.parser import LOCKFILE_NAME, load_lockfile, save_lockfile
from promptreg.config.schemas import (
    CommitMode,
    InstalledBundle,
    LockedBundle,
    LockedFile,
    LockFile,
    SourceDescriptor,
)
from promptreg.utils.filesystem import compute_file_checksum

logger = logging.getLogger("promptreg.lockfile")

LockfileListener = Callable[[LockFile | None], None]


def utc_timestamp() -> str:
    """Get the current time as an ISO 8601 UTC string."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class ModifiedFile:
    """A tracked file whose content no longer matches the lockfile."""

    path: str
    expected_checksum: str
    actual_checksum: str | None
    modification_type: Literal["modified", "missing"]


def installed_bundle_from_entry(
    bundle_id: str, entry: LockedBundle, files_missing: bool = False
) -> InstalledBundle:
    """Convert a lockfile entry to the InstalledBundle shape used for listings."""
    return InstalledBundle(
        bundle_id=bundle_id,
        version=entry.version,
        scope="repository",
        installed_at=entry.installed_at,
        source_id=entry.source_id,
        source_type=entry.source_type,
        commit_mode=entry.commit_mode,
        files=[f.path for f in entry.files],
        files_missing=files_missing,
    )


class LockfileStore:
    """Reads and writes the lockfile of one repository.

    Every read goes to disk, so two stores for the same root never disagree
    for longer than one write. Use LockfileRegistry to share one store per
    root so that change listeners see every write.
    """

    def __init__(self, repository_root: Path, generated_by: str | None = None):
        """Initialize the lockfile store.

        Args:
            repository_root: Path to the repository root
            generated_by: Producer identity recorded in the lockfile
        """
        self._root = repository_root
        self._generated_by = generated_by or f"promptreg@{__version__}"
        self._listeners: list[LockfileListener] = []

    @property
    def root(self) -> Path:
        """Get the repository root."""
        return self._root

    @property
    def path(self) -> Path:
        """Get the lockfile path."""
        return self._root / LOCKFILE_NAME

    def exists(self) -> bool:
        """Check whether the lockfile exists."""
        return self.path.exists()

    def read(self) -> LockFile | None:
        """Read the lockfile.

        Returns:
            The lockfile, or None if it does not exist

        Raises:
            LockfileCorruptError: If the file exists but cannot be parsed
        """
        return load_lockfile(self.path)

    def get_entry(self, bundle_id: str) -> LockedBundle | None:
        """Get the entry for a bundle, or None if it is not locked."""
        lockfile = self.read()
        if lockfile is None:
            return None
        return lockfile.bundles.get(bundle_id)

    def create_or_update(
        self,
        bundle_id: str,
        version: str,
        source_id: str,
        source_type: str,
        commit_mode: CommitMode,
        files: list[LockedFile],
        source: SourceDescriptor,
    ) -> LockFile:
        """Insert or replace a bundle entry and write the lockfile.

        Args:
            bundle_id: Bundle identifier
            version: Installed version
            source_id: Id of the source the bundle came from
            source_type: Type of that source
            commit_mode: Whether the bundle's files are committed or excluded
            files: Files written by the install, with checksums
            source: Descriptor added to ``sources`` if the id is not present yet

        Returns:
            The lockfile as written
        """
        now = utc_timestamp()
        lockfile = self.read()
        if lockfile is None:
            lockfile = LockFile(generated_at=now, generated_by=self._generated_by)
            logger.debug("Creating lockfile at %s", self.path)

        lockfile.bundles[bundle_id] = LockedBundle(
            version=version,
            source_id=source_id,
            source_type=source_type,
            installed_at=now,
            commit_mode=commit_mode,
            files=list(files),
        )
        if source_id not in lockfile.sources:
            lockfile.sources[source_id] = source
        lockfile.generated_at = now
        lockfile.generated_by = self._generated_by

        self._write(lockfile)
        logger.info("Locked %s@%s (%s, %d files)", bundle_id, version, commit_mode, len(files))
        return lockfile

    def update_commit_mode(self, bundle_id: str, commit_mode: CommitMode) -> bool:
        """Change only the commit mode of an existing entry.

        Returns:
            True if the entry exists (whether or not the mode changed)
        """
        lockfile = self.read()
        if lockfile is None or bundle_id not in lockfile.bundles:
            return False

        entry = lockfile.bundles[bundle_id]
        if entry.commit_mode == commit_mode:
            return True

        entry.commit_mode = commit_mode
        lockfile.generated_at = utc_timestamp()
        self._write(lockfile)
        return True

    def remove(self, bundle_id: str) -> bool:
        """Remove a bundle entry.

        Deletes the lockfile itself when the last entry goes, and notifies
        listeners with None rather than an empty lockfile.

        Returns:
            True if the entry was removed, False if it wasn't locked
        """
        lockfile = self.read()
        if lockfile is None or bundle_id not in lockfile.bundles:
            return False

        del lockfile.bundles[bundle_id]

        if not lockfile.bundles:
            self.path.unlink()
            logger.info("Removed %s; deleted empty lockfile %s", bundle_id, self.path)
            self._notify(None)
            return True

        lockfile.generated_at = utc_timestamp()
        self._write(lockfile)
        logger.info("Removed %s from lockfile", bundle_id)
        return True

    def get_installed_bundles(self) -> list[InstalledBundle]:
        """List locked bundles, flagging entries whose files are gone.

        An entry with no tracked files is never flagged.
        """
        lockfile = self.read()
        if lockfile is None:
            return []

        bundles: list[InstalledBundle] = []
        for bundle_id, entry in lockfile.bundles.items():
            missing = any(not (self._root / f.path).exists() for f in entry.files)
            bundles.append(installed_bundle_from_entry(bundle_id, entry, files_missing=missing))
        return bundles

    def detect_modified_files(self, bundle_id: str) -> list[ModifiedFile]:
        """Compare tracked files against their recorded checksums.

        Returns:
            Files that are missing or whose content changed; empty for an
            unknown bundle
        """
        entry = self.get_entry(bundle_id)
        if entry is None:
            return []

        modified: list[ModifiedFile] = []
        for locked in entry.files:
            file_path = self._root / locked.path
            if not file_path.is_file():
                modified.append(ModifiedFile(locked.path, locked.checksum, None, "missing"))
                continue

            actual = compute_file_checksum(file_path)
            if actual != locked.checksum:
                modified.append(ModifiedFile(locked.path, locked.checksum, actual, "modified"))
        return modified

    def subscribe(self, listener: LockfileListener) -> Callable[[], None]:
        """Register a change listener.

        The listener receives the new lockfile after every write, or None
        when the lockfile is deleted.

        Returns:
            A function that unregisters the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _write(self, lockfile: LockFile) -> None:
        save_lockfile(self.path, lockfile)
        self._notify(lockfile)

    def _notify(self, lockfile: LockFile | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(lockfile)
            except Exception:
                logger.exception("Lockfile listener failed")


class LockfileRegistry:
    """Hands out one LockfileStore per normalized repository root.

    Owned by the application context. Call ``evict`` when the active
    repository changes so that no one keeps using a store for the old root.
    """

    def __init__(self, generated_by: str | None = None):
        self._generated_by = generated_by
        self._stores: dict[str, LockfileStore] = {}

    @staticmethod
    def normalize(root: Path) -> str:
        """Normalize a root path for use as a registry key."""
        return str(Path(root).expanduser().resolve())

    def get(self, root: Path) -> LockfileStore:
        """Get the store for a repository root, creating it on first use."""
        key = self.normalize(root)
        store = self._stores.get(key)
        if store is None:
            store = LockfileStore(Path(key), generated_by=self._generated_by)
            self._stores[key] = store
        return store

    def evict(self, root: Path) -> bool:
        """Drop the store for a root.

        Returns:
            True if a store was registered for the root
        """
        return self._stores.pop(self.normalize(root), None) is not None

    def close(self) -> None:
        """Drop every store."""
        self._stores.clear()

    def __contains__(self, root: object) -> bool:
        if not isinstance(root, Path | str):
            return False
        return self.normalize(Path(root)) in self._stores

    def __len__(self) -> int:
        return len(self._stores)
