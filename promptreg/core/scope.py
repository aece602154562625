"""Scope conflict detection, scope migration, and commit mode switching.

A bundle lives at exactly one scope at a time. Migration removes it from
the old scope before installing it at the new one; if the second half
fails, the bundle is left uninstalled and a PartialMigrationError says so.
There is no automatic rollback of the removal.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from promptreg.config.parser import load_bundle_manifest
from promptreg.config.schemas import (
    USER_SCOPES,
    BundleManifest,
    CommitMode,
    Scope,
    SourceDescriptor,
)
from promptreg.errors import NotFoundError, PartialMigrationError, ScopeConflictError
from promptreg.utils.file_types import get_target_relative_path

if TYPE_CHECKING:
    from promptreg.core.manager import BundleManager

logger = logging.getLogger("promptreg.scope")


@dataclass
class MigrationResult:
    """Result of moving a bundle between scopes."""

    bundle_id: str
    version: str
    from_scope: str
    to_scope: str
    files: int = 0


class ScopeConflictResolver:
    """Keeps each bundle at a single scope."""

    def __init__(self, manager: BundleManager):
        """Initialize the resolver.

        Args:
            manager: The manager whose stores and installers are used
        """
        self._manager = manager

    def find_scopes(self, bundle_id: str) -> list[Scope]:
        """List the scopes a bundle is currently installed at."""
        scopes: list[Scope] = []
        if self._manager.lockfile.get_entry(bundle_id) is not None:
            scopes.append("repository")
        for scope in USER_SCOPES:
            if self._manager.user_index.get_installed_bundle(bundle_id, scope) is not None:
                scopes.append(scope)
        return scopes

    def check_conflict(self, bundle_id: str, target_scope: Scope) -> None:
        """Refuse an install at a scope other than the one the bundle is at.

        Reinstalling at the same scope is an update, not a conflict.

        Raises:
            ScopeConflictError: If the bundle is installed at another scope
        """
        for scope in self.find_scopes(bundle_id):
            if scope != target_scope:
                raise ScopeConflictError(bundle_id, scope, target_scope)

    def move_to_user(self, bundle_id: str) -> MigrationResult:
        """Move a bundle from repository scope to user scope.

        Raises:
            NotFoundError: If the bundle is not installed at repository scope,
                or its content can no longer be found
            PartialMigrationError: If it was removed from the repository but
                could not be installed for the user
        """
        manager = self._manager
        entry = manager.lockfile.get_entry(bundle_id)
        if entry is None:
            raise NotFoundError(f"{bundle_id} is not installed at repository scope", bundle_id)

        bundle_dir, _ = manager.locate_bundle(bundle_id, entry.version, entry.source_id)
        manifest = self._load_manifest(bundle_dir, entry.version)
        descriptor = manager.lockfile.read().sources.get(entry.source_id)

        logger.info("Moving %s from repository to user scope", bundle_id)
        manager.uninstall_repository(bundle_id)
        try:
            result = manager.install_user(
                bundle_id,
                bundle_dir,
                manifest,
                "user",
                entry.source_id,
                entry.source_type,
                descriptor.url if descriptor is not None else "",
            )
        except Exception as e:
            raise PartialMigrationError(
                bundle_id, "removal from repository scope", "installation at user scope", e
            ) from e

        return MigrationResult(bundle_id, manifest.version, "repository", "user", len(result.files))

    def move_to_repository(self, bundle_id: str, commit_mode: CommitMode) -> MigrationResult:
        """Move a bundle from user (or workspace) scope to repository scope.

        Raises:
            NotFoundError: If the bundle is not installed at a user scope,
                or its content can no longer be found
            PartialMigrationError: If it was removed for the user but could
                not be installed into the repository
        """
        manager = self._manager
        for scope in USER_SCOPES:
            entry = manager.user_index.get_installed_bundle(bundle_id, scope)
            if entry is not None:
                break
        else:
            raise NotFoundError(f"{bundle_id} is not installed at user scope", bundle_id)

        bundle_dir, source = manager.locate_bundle(bundle_id, entry.version, entry.source_id)
        manifest = self._load_manifest(bundle_dir, entry.version)
        if entry.source_url:
            source_id, source_type = entry.source_id, entry.source_type
            descriptor = SourceDescriptor(type=entry.source_type, url=entry.source_url)
        else:
            source_id, source_type, descriptor = (
                source.source_id,
                source.source_type,
                source.descriptor,
            )

        logger.info("Moving %s from %s to repository scope (%s)", bundle_id, scope, commit_mode)
        manager.uninstall_user(bundle_id, scope)
        try:
            result = manager.install_repository(
                bundle_id,
                bundle_dir,
                manifest,
                commit_mode,
                source_id,
                source_type,
                descriptor,
            )
        except Exception as e:
            raise PartialMigrationError(
                bundle_id, f"removal from {scope} scope", "installation at repository scope", e
            ) from e

        return MigrationResult(bundle_id, manifest.version, scope, "repository", len(result.files))

    def switch_commit_mode(self, bundle_id: str, new_mode: CommitMode) -> bool:
        """Switch a repository-scope bundle between committed and local-only.

        Installed paths are re-derived from what is on disk, so the exclude
        entries always match the files actually present.

        Returns:
            True if the mode changed, False if it already was ``new_mode``

        Raises:
            NotFoundError: If the bundle is not installed at repository scope
        """
        manager = self._manager
        entry = manager.lockfile.get_entry(bundle_id)
        if entry is None:
            raise NotFoundError(f"{bundle_id} is not installed at repository scope", bundle_id)
        if entry.commit_mode == new_mode:
            logger.debug("%s is already %s", bundle_id, new_mode)
            return False

        installer = manager.installer_for("repository")
        paths = installer.scan_installed(self._installed_paths(bundle_id, [f.path for f in entry.files]))
        entries = installer.exclude_entries(paths)

        if new_mode == "local-only":
            manager.exclude_patcher.add_paths(entries)
        else:
            manager.exclude_patcher.remove_paths(entries)

        manager.lockfile.update_commit_mode(bundle_id, new_mode)
        logger.info("Switched %s from %s to %s", bundle_id, entry.commit_mode, new_mode)
        return True

    def _installed_paths(self, bundle_id: str, tracked: list[str]) -> list[str]:
        manifest = self._manager.cache.load_manifest(bundle_id)
        if manifest is None:
            return tracked
        derived = [get_target_relative_path(e) for e in manifest.prompts]
        return [*tracked, *(p for p in derived if p not in tracked)]

    def _load_manifest(self, bundle_dir: Path, version: str) -> BundleManifest:
        manifest = load_bundle_manifest(bundle_dir)
        if manifest.version != version:
            logger.warning(
                "Installed version of %s is %s but the available content is %s",
                manifest.id,
                version,
                manifest.version,
            )
        return manifest
