"""Transactional placement of bundle files into a scope.

The ScopeInstaller copies the content of an extracted bundle into a scope
root (the repository for repository scope, a per-user directory otherwise)
and records every path it writes. If any copy fails, everything written so
far is removed and anything it replaced is restored before the error is
raised, so a failed install leaves the scope as it found it.
"""

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path

from promptreg.config.schemas import BundleManifest, CommitMode, ContentEntry, LockedFile
from promptreg.core.git_exclude import GitExcludePatcher
from promptreg.errors import PartialInstallError
from promptreg.utils.file_types import (
    REPOSITORY_BASE_DIR,
    collapse_skill_paths,
    get_skill_root,
    get_target_relative_path,
    normalize_content_id,
    resolve_content_type,
)
from promptreg.utils.filesystem import (
    compute_file_checksum,
    copy_tree_into,
    ensure_directory,
    prune_empty_parents,
)

logger = logging.getLogger("promptreg.installer")


@dataclass
class InstallationTracker:
    """Paths written by one install operation.

    Paths are recorded before they are written, so a copy that fails
    halfway is still rolled back. Files and skill directories that the
    install replaces are moved aside into ``backups`` (original, backup)
    and put back on rollback.
    """

    relative_paths: list[str] = field(default_factory=list)
    absolute_paths: list[Path] = field(default_factory=list)
    skill_dirs: list[Path] = field(default_factory=list)
    backups: list[tuple[Path, Path]] = field(default_factory=list)


@dataclass
class InstallResult:
    """Result of a bundle installation."""

    bundle_id: str
    version: str
    success: bool
    scope: str = "repository"
    message: str = ""
    files: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class UninstallResult:
    """Result of a bundle uninstallation."""

    bundle_id: str
    success: bool
    scope: str = "repository"
    message: str = ""
    removed: list[str] = field(default_factory=list)


class ScopeInstaller:
    """Copies bundle content into one scope root, with rollback.

    For the repository scope, pass a GitExcludePatcher so that local-only
    installs are hidden from git.
    """

    def __init__(
        self,
        root: Path,
        base_dir: str = REPOSITORY_BASE_DIR,
        exclude_patcher: GitExcludePatcher | None = None,
    ):
        """Initialize the installer.

        Args:
            root: Scope root that relative paths are resolved against
            base_dir: Directory under ``root`` holding the type directories
            exclude_patcher: Patcher for local-only installs (repository scope)
        """
        self.root = root
        self.base_dir = base_dir
        self.exclude_patcher = exclude_patcher

    def target_path(self, entry: ContentEntry) -> Path:
        """Get the absolute installed path of a manifest entry."""
        return self.root / get_target_relative_path(entry, self.base_dir)

    def install(
        self,
        bundle_id: str,
        bundle_dir: Path,
        manifest: BundleManifest,
        commit_mode: CommitMode | None = None,
    ) -> InstallationTracker:
        """Copy every content entry of a bundle into the scope.

        Args:
            bundle_id: Bundle identifier (for logging and errors)
            bundle_dir: Extracted bundle directory
            manifest: The bundle's deployment manifest
            commit_mode: "local-only" adds the written paths to git exclude

        Returns:
            The tracker holding every path written

        Raises:
            PartialInstallError: If a copy failed; all written files were removed
        """
        tracker = InstallationTracker()
        try:
            for entry in manifest.prompts:
                if resolve_content_type(entry) == "skill":
                    self._install_skill(entry, bundle_dir, tracker)
                else:
                    self._install_file(entry, bundle_dir, tracker)
        except Exception as e:
            logger.error("Installation of %s failed, rolling back: %s", bundle_id, e)
            self.rollback(tracker)
            raise PartialInstallError(bundle_id, e) from e

        if commit_mode == "local-only" and self.exclude_patcher and tracker.relative_paths:
            self.exclude_patcher.add_paths(self.exclude_entries(tracker.relative_paths))

        logger.info("Copied %d file(s) for %s", len(tracker.relative_paths), bundle_id)
        return tracker

    def _install_file(
        self, entry: ContentEntry, bundle_dir: Path, tracker: InstallationTracker
    ) -> None:
        source = bundle_dir / entry.file
        if not source.is_file():
            logger.warning("Source file not found, skipping: %s", source)
            return

        target = self.target_path(entry)
        self._move_aside(target, tracker)
        tracker.absolute_paths.append(target)
        tracker.relative_paths.append(self._relative(target))

        ensure_directory(target.parent)
        shutil.copy2(source, target)
        logger.debug("Copied %s -> %s", entry.file, self._relative(target))

    def _install_skill(
        self, entry: ContentEntry, bundle_dir: Path, tracker: InstallationTracker
    ) -> None:
        source = bundle_dir / entry.file
        if source.is_file() and source.name.lower() == "skill.md":
            source = source.parent
        if not source.is_dir():
            logger.warning("Skill directory not found, skipping: %s", source)
            return

        skill_dir = self.target_path(entry)
        self._move_aside(skill_dir, tracker)
        tracker.skill_dirs.append(skill_dir)

        copied: list[Path] = []
        try:
            copy_tree_into(source, skill_dir, copied)
        finally:
            tracker.absolute_paths.extend(copied)
            tracker.relative_paths.extend(self._relative(p) for p in copied)

        logger.debug("Installed skill %s: %d file(s)", normalize_content_id(entry.id), len(copied))

    def rollback(self, tracker: InstallationTracker) -> None:
        """Remove everything recorded in a tracker.

        Skill directories go first, as whole trees; then every file not
        inside one of them. Content the install replaced is then moved back
        into place. Individual failures are logged and skipped.
        """
        for skill_dir in tracker.skill_dirs:
            try:
                if skill_dir.exists():
                    shutil.rmtree(skill_dir)
                    logger.debug("Rolled back skill directory %s", skill_dir)
            except OSError as e:
                logger.warning("Failed to roll back skill directory %s: %s", skill_dir, e)

        for path in tracker.absolute_paths:
            if any(skill_dir in path.parents for skill_dir in tracker.skill_dirs):
                continue
            try:
                if path.exists():
                    path.unlink()
                    logger.debug("Rolled back %s", path)
            except OSError as e:
                logger.warning("Failed to roll back %s: %s", path, e)

        for original, backup in reversed(tracker.backups):
            try:
                _remove_path(original)
                backup.replace(original)
                logger.debug("Restored %s", original)
            except OSError as e:
                logger.warning("Failed to restore %s from %s: %s", original, backup, e)
        tracker.backups.clear()

        for path in [*tracker.absolute_paths, *tracker.skill_dirs]:
            prune_empty_parents(path.parent, self.root)

    def discard_backups(self, tracker: InstallationTracker) -> None:
        """Delete the copies of replaced content once an install is recorded."""
        for _, backup in tracker.backups:
            try:
                _remove_path(backup)
            except OSError as e:
                logger.warning("Failed to remove backup %s: %s", backup, e)
        tracker.backups.clear()

    def _move_aside(self, path: Path, tracker: InstallationTracker) -> None:
        if not path.exists():
            return
        backup = path.with_name(f".{path.name}.promptreg-backup")
        _remove_path(backup)
        path.rename(backup)
        tracker.backups.append((path, backup))
        logger.debug("Moved %s aside", self._relative(path))

    def uninstall(
        self,
        bundle_id: str,
        manifest: BundleManifest | None,
        tracked_files: list[str] | None = None,
    ) -> list[str]:
        """Remove a bundle's installed files.

        Target paths come from the manifest when available, otherwise from
        the tracked relative paths (e.g. the lockfile entry). Files that are
        already gone are ignored.

        Args:
            bundle_id: Bundle identifier
            manifest: The bundle's manifest, if it can still be read
            tracked_files: Fallback list of installed relative paths

        Returns:
            Relative paths removed (skill directories as one entry each)
        """
        if manifest is not None:
            targets = [get_target_relative_path(entry, self.base_dir) for entry in manifest.prompts]
            skill_targets = {
                get_target_relative_path(entry, self.base_dir)
                for entry in manifest.prompts
                if resolve_content_type(entry) == "skill"
            }
        else:
            logger.debug("No manifest for %s, removing files tracked at install", bundle_id)
            targets = collapse_skill_paths(tracked_files or [], self.base_dir)
            skill_targets = {t for t in targets if get_skill_root(t, self.base_dir) == t}

        removed: list[str] = []
        for relative in targets:
            path = self.root / relative
            try:
                if relative in skill_targets and path.is_dir():
                    shutil.rmtree(path)
                elif path.is_file():
                    path.unlink()
                else:
                    continue
            except FileNotFoundError:
                continue
            removed.append(relative)
            prune_empty_parents(path.parent, self.root)
            logger.debug("Removed %s", relative)

        if self.exclude_patcher is not None:
            self.exclude_patcher.remove_paths(targets)

        logger.info("Removed %d file(s)/directories for %s", len(removed), bundle_id)
        return removed

    def remove_files(self, relative_paths: list[str]) -> list[str]:
        """Remove individual files, leaving directories that still hold content.

        Returns:
            Relative paths removed
        """
        removed: list[str] = []
        for relative in relative_paths:
            path = self.root / relative
            if not path.is_file():
                continue
            path.unlink()
            prune_empty_parents(path.parent, self.root)
            removed.append(relative)
        return removed

    def locked_files(self, tracker: InstallationTracker) -> list[LockedFile]:
        """Build lockfile file records (path and checksum) from a tracker."""
        return [
            LockedFile(path=relative, checksum=compute_file_checksum(absolute))
            for relative, absolute in zip(tracker.relative_paths, tracker.absolute_paths, strict=True)
            if absolute.is_file()
        ]

    def exclude_entries(self, relative_paths: list[str]) -> list[str]:
        """Collapse a skill's files into one directory-level exclude entry."""
        return collapse_skill_paths(relative_paths, self.base_dir)

    def scan_installed(self, relative_paths: list[str]) -> list[str]:
        """Filter relative paths down to those present on disk."""
        return [p for p in relative_paths if (self.root / p).exists()]

    def _relative(self, path: Path) -> str:
        return path.relative_to(self.root).as_posix()


def _remove_path(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()
