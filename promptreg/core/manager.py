"""Bundle installation orchestrator.

The BundleManager is the surface exposed to the CLI. It coordinates the
ScopeInstaller (files on disk), the LockfileStore (repository scope), the
per-user index (user and workspace scopes), and the bundle cache, and asks
the ScopeConflictResolver before creating any installation.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path

from promptreg.config.parser import load_bundle_manifest
from promptreg.config.schemas import (
    USER_SCOPES,
    BundleManifest,
    CommitMode,
    InstalledBundle,
    Scope,
    Settings,
    SourceDescriptor,
)
from promptreg.core.cache import BundleCache
from promptreg.core.git_exclude import GitExcludePatcher
from promptreg.core.installer import InstallResult, ScopeInstaller, UninstallResult
from promptreg.core.lockfile import LockfileStore, ModifiedFile, utc_timestamp
from promptreg.core.scope import ScopeConflictResolver
from promptreg.core.user_index import UserIndexStore
from promptreg.errors import NotFoundError
from promptreg.sources.base import BundleSource
from promptreg.sources.factory import create_source
from promptreg.sources.local import LocalBundleSource
from promptreg.utils.file_types import REPOSITORY_BASE_DIR, TARGET_DIRECTORIES

logger = logging.getLogger("promptreg.manager")


@dataclass
class ScopeStatus:
    """Files present in the repository's target directories."""

    base_directory: Path
    dir_exists: bool
    files: list[str] = field(default_factory=list)

    @property
    def synced_files(self) -> int:
        return len(self.files)


class BundleManager:
    """Installs, lists, and removes bundles for one repository."""

    def __init__(
        self,
        repository_root: Path,
        home: Path,
        lockfile: LockfileStore,
        user_index: UserIndexStore,
        cache: BundleCache,
        settings: Settings | None = None,
    ):
        """Initialize the manager.

        Args:
            repository_root: Path to the repository root
            home: The promptreg home directory (user-scope files live here)
            lockfile: Lockfile store for the repository
            user_index: Per-user installation index
            cache: Cache of extracted bundles
            settings: User settings (defaults if None)
        """
        self.repository_root = repository_root
        self.home = home
        self.lockfile = lockfile
        self.user_index = user_index
        self.cache = cache
        self.settings = settings or Settings()
        self.exclude_patcher = GitExcludePatcher(repository_root)
        self.resolver = ScopeConflictResolver(self)

    # ===== Scope roots =====

    def installer_for(self, scope: Scope) -> ScopeInstaller:
        """Get the file installer for a scope."""
        if scope == "repository":
            return ScopeInstaller(self.repository_root, REPOSITORY_BASE_DIR, self.exclude_patcher)
        return ScopeInstaller(self.scope_root(scope), base_dir="")

    def scope_root(self, scope: Scope) -> Path:
        """Get the directory files are installed under for a scope."""
        if scope == "repository":
            return self.repository_root
        if scope == "user":
            return self.home / "scopes" / "user"
        workspace_key = hashlib.sha256(
            str(self.repository_root.resolve()).encode("utf-8")
        ).hexdigest()[:12]
        return self.home / "scopes" / "workspace" / workspace_key

    # ===== Install =====

    def install(
        self,
        bundle_dir: Path,
        scope: Scope | None = None,
        commit_mode: CommitMode | None = None,
        source: BundleSource | None = None,
    ) -> InstallResult:
        """Install an extracted bundle.

        Args:
            bundle_dir: Directory containing deployment-manifest.yml
            scope: Target scope (defaults to the configured default)
            commit_mode: Repository scope only (defaults to the configured default)
            source: Where the bundle came from (defaults to its parent directory)

        Returns:
            InstallResult for the bundle

        Raises:
            ScopeConflictError: If the bundle is installed at another scope
            PartialInstallError: If copying failed (all copied files were removed)
        """
        scope = scope or self.settings.default_scope
        manifest = load_bundle_manifest(bundle_dir)
        bundle_id = manifest.id

        self.resolver.check_conflict(bundle_id, scope)

        if source is None:
            source = LocalBundleSource.from_path(bundle_dir.parent)

        logger.info("Installing %s@%s at %s scope", bundle_id, manifest.version, scope)
        if scope == "repository":
            return self.install_repository(
                bundle_id,
                bundle_dir,
                manifest,
                commit_mode or self.settings.default_commit_mode,
                source.source_id,
                source.source_type,
                source.descriptor,
            )
        return self.install_user(
            bundle_id,
            bundle_dir,
            manifest,
            scope,
            source.source_id,
            source.source_type,
            source.descriptor.url,
        )

    def install_by_id(
        self,
        bundle_id: str,
        scope: Scope,
        commit_mode: CommitMode | None = None,
        version: str | None = None,
        source_id: str | None = None,
    ) -> InstallResult:
        """Install a bundle by id, finding it in the cache or a known source.

        Raises:
            NotFoundError: If no known source has the bundle
        """
        bundle_dir, source = self.locate_bundle(bundle_id, version, source_id)
        return self.install(bundle_dir, scope, commit_mode, source)

    def install_repository(
        self,
        bundle_id: str,
        bundle_dir: Path,
        manifest: BundleManifest,
        commit_mode: CommitMode,
        source_id: str,
        source_type: str,
        source: SourceDescriptor,
    ) -> InstallResult:
        """Install at repository scope and record the lockfile entry.

        Does not check for scope conflicts; callers are expected to.
        """
        installer = self.installer_for("repository")
        previous = self.lockfile.get_entry(bundle_id)

        tracker = installer.install(bundle_id, bundle_dir, manifest, commit_mode)
        try:
            files = installer.locked_files(tracker)
            self.lockfile.create_or_update(
                bundle_id, manifest.version, source_id, source_type, commit_mode, files, source
            )
        except Exception:
            logger.error("Failed to write lockfile for %s, removing copied files", bundle_id)
            installer.rollback(tracker)
            if commit_mode == "local-only":
                kept: set[str] = set()
                if previous is not None and previous.commit_mode == "local-only":
                    kept = set(installer.exclude_entries([f.path for f in previous.files]))
                self.exclude_patcher.remove_paths(
                    [e for e in installer.exclude_entries(tracker.relative_paths) if e not in kept]
                )
            raise
        installer.discard_backups(tracker)

        if previous is not None:
            self._cleanup_previous(
                installer, [f.path for f in previous.files], tracker.relative_paths
            )
            if previous.commit_mode == "local-only" and commit_mode == "commit":
                self.exclude_patcher.remove_paths(installer.exclude_entries(tracker.relative_paths))

        self.cache.store(bundle_id, bundle_dir)
        return InstallResult(
            bundle_id=bundle_id,
            version=manifest.version,
            success=True,
            scope="repository",
            message=f"Installed {bundle_id}@{manifest.version} ({commit_mode})",
            files=[f.path for f in files],
        )

    def install_user(
        self,
        bundle_id: str,
        bundle_dir: Path,
        manifest: BundleManifest,
        scope: Scope,
        source_id: str,
        source_type: str,
        source_url: str = "",
    ) -> InstallResult:
        """Install at user or workspace scope and record it in the user index.

        Does not check for scope conflicts; callers are expected to.
        """
        if scope not in USER_SCOPES:
            raise ValueError(f"Not a user scope: {scope}")

        installer = self.installer_for(scope)
        previous = self.user_index.get_installed_bundle(bundle_id, scope)

        tracker = installer.install(bundle_id, bundle_dir, manifest)
        try:
            self.user_index.record_installation(
                InstalledBundle(
                    bundle_id=bundle_id,
                    version=manifest.version,
                    scope=scope,
                    installed_at=utc_timestamp(),
                    source_id=source_id,
                    source_type=source_type,
                    source_url=source_url,
                    install_path=str(installer.root),
                    files=list(tracker.relative_paths),
                )
            )
        except Exception:
            logger.error("Failed to record %s in the user index, removing copied files", bundle_id)
            installer.rollback(tracker)
            raise
        installer.discard_backups(tracker)

        if previous is not None:
            self._cleanup_previous(installer, previous.files, tracker.relative_paths)

        self.cache.store(bundle_id, bundle_dir)
        return InstallResult(
            bundle_id=bundle_id,
            version=manifest.version,
            success=True,
            scope=scope,
            message=f"Installed {bundle_id}@{manifest.version} at {scope} scope",
            files=list(tracker.relative_paths),
        )

    def _cleanup_previous(
        self, installer: ScopeInstaller, old_files: list[str], new_files: list[str]
    ) -> None:
        """Remove files of a previous install that the new one no longer writes."""
        new = set(new_files)
        stale = [path for path in old_files if path not in new]
        if not stale:
            return
        logger.debug("Removing %d file(s) left over from the previous version", len(stale))
        installer.remove_files(stale)
        if installer.exclude_patcher is not None:
            kept = set(installer.exclude_entries(new_files))
            installer.exclude_patcher.remove_paths(
                [entry for entry in installer.exclude_entries(stale) if entry not in kept]
            )

    # ===== Uninstall =====

    def uninstall(self, bundle_id: str, scope: Scope | None = None) -> UninstallResult:
        """Uninstall a bundle.

        Args:
            bundle_id: Bundle identifier
            scope: Scope to uninstall from, or None for wherever it is installed

        Returns:
            UninstallResult; ``success`` is False if the bundle wasn't installed
        """
        if scope is None:
            scopes = self.resolver.find_scopes(bundle_id)
            if not scopes:
                return UninstallResult(bundle_id, False, message=f"{bundle_id} is not installed")
            scope = scopes[0]

        if scope == "repository":
            result = self.uninstall_repository(bundle_id)
        else:
            result = self.uninstall_user(bundle_id, scope)

        if result.success and not self.resolver.find_scopes(bundle_id):
            self.cache.remove(bundle_id)
        return result

    def uninstall_repository(self, bundle_id: str) -> UninstallResult:
        """Remove the lockfile entry, then the files and exclude entries."""
        entry = self.lockfile.get_entry(bundle_id)
        if entry is None:
            return UninstallResult(
                bundle_id, False, message=f"{bundle_id} is not installed at repository scope"
            )

        self.lockfile.remove(bundle_id)
        manifest = self.cache.load_manifest(bundle_id)
        removed = self.installer_for("repository").uninstall(
            bundle_id, manifest, [f.path for f in entry.files]
        )
        return UninstallResult(
            bundle_id, True, "repository", f"Uninstalled {bundle_id}", removed=removed
        )

    def uninstall_user(self, bundle_id: str, scope: Scope) -> UninstallResult:
        """Remove the files, then the user index entry."""
        entry = self.user_index.get_installed_bundle(bundle_id, scope)
        if entry is None:
            return UninstallResult(
                bundle_id, False, scope, f"{bundle_id} is not installed at {scope} scope"
            )

        manifest = self.cache.load_manifest(bundle_id)
        removed = self.installer_for(scope).uninstall(bundle_id, manifest, entry.files)
        self.user_index.remove_installation(bundle_id, scope)
        return UninstallResult(
            bundle_id, True, scope, f"Uninstalled {bundle_id} from {scope} scope", removed=removed
        )

    # ===== Queries =====

    def list_installed(self, scope: Scope | None = None) -> list[InstalledBundle]:
        """List installed bundles.

        Repository-scope bundles always come from the lockfile.
        """
        bundles: list[InstalledBundle] = []
        for user_scope in USER_SCOPES:
            if scope is not None and scope != user_scope:
                continue
            root = self.scope_root(user_scope)
            for entry in self.user_index.get_installed_bundles(user_scope):
                missing = any(not (root / f).exists() for f in entry.files)
                bundles.append(entry.model_copy(update={"files_missing": missing}))

        if scope is None or scope == "repository":
            bundles.extend(self.lockfile.get_installed_bundles())
        return bundles

    def detect_modified_files(self, bundle_id: str) -> list[ModifiedFile]:
        """Report repository-scope files that were edited or deleted."""
        return self.lockfile.detect_modified_files(bundle_id)

    def scope_status(self) -> ScopeStatus:
        """Report files present in the repository's target directories."""
        base = self.repository_root / REPOSITORY_BASE_DIR
        status = ScopeStatus(base_directory=base, dir_exists=base.is_dir())
        if not status.dir_exists:
            return status

        for directory in TARGET_DIRECTORIES.values():
            target_dir = base / directory
            if not target_dir.is_dir():
                continue
            for path in sorted(target_dir.rglob("*")):
                if path.is_file():
                    status.files.append(path.relative_to(self.repository_root).as_posix())
        return status

    # ===== Bundle lookup =====

    def locate_bundle(
        self, bundle_id: str, version: str | None = None, source_id: str | None = None
    ) -> tuple[Path, BundleSource]:
        """Find an extracted copy of a bundle.

        Looks in the cache first, then in the source recorded in the
        lockfile, then in the configured sources.

        Raises:
            NotFoundError: If no copy is found
        """
        descriptors = self._candidate_sources(source_id or None)

        cached = self.cache.get(bundle_id)
        if cached is not None:
            manifest = self.cache.load_manifest(bundle_id)
            if manifest is not None and (version is None or manifest.version == version):
                source = self._source_or_local(descriptors, cached)
                return cached, source

        for candidate_id, descriptor in descriptors:
            try:
                source = create_source(descriptor, candidate_id)
                return source.resolve(bundle_id, version), source
            except NotFoundError as e:
                logger.debug("Source %s does not have %s: %s", candidate_id, bundle_id, e)

        wanted = f"{bundle_id}@{version}" if version else bundle_id
        raise NotFoundError(f"Bundle {wanted} not found in any known source", bundle_id)

    def _candidate_sources(self, source_id: str | None) -> list[tuple[str, SourceDescriptor]]:
        known: dict[str, SourceDescriptor] = {}
        lockfile = self.lockfile.read()
        if lockfile is not None:
            known.update(lockfile.sources)
        known.update(self.settings.sources)

        if source_id is not None:
            if source_id not in known:
                return []
            return [(source_id, known[source_id])]
        return list(known.items())

    def _source_or_local(
        self, descriptors: list[tuple[str, SourceDescriptor]], bundle_dir: Path
    ) -> BundleSource:
        if len(descriptors) == 1:
            source_id, descriptor = descriptors[0]
            try:
                return create_source(descriptor, source_id)
            except NotFoundError as e:
                logger.debug("Falling back to a local source for %s: %s", bundle_dir, e)
        return LocalBundleSource.from_path(bundle_dir.parent)
