"""Per-user installation index for user and workspace scopes.

Repository-scope installations are never recorded here; the lockfile is
their only record.
"""

import logging
from pathlib import Path

from promptreg.config.parser import USER_INDEX_NAME, load_user_index, save_user_index
from promptreg.config.schemas import USER_SCOPES, InstalledBundle, Scope


logger = logging.getLogger("promptreg.user_index")


def _check_scope(scope: Scope) -> None:
    if scope not in USER_SCOPES:
        raise ValueError(f"The user index does not track {scope} scope")


class UserIndexStore:
    """Reads and writes <home>/installed.json."""

    def __init__(self, home: Path):
        """Initialize the index store.

        Args:
            home: The promptreg home directory
        """
        self._home = home

    @property
    def path(self) -> Path:
        """Get the index file path."""
        return self._home / USER_INDEX_NAME

    def get_installed_bundles(self, scope: Scope | None = None) -> list[InstalledBundle]:
        """List recorded installations, optionally for one scope."""
        if scope is not None:
            _check_scope(scope)
        index = load_user_index(self.path)
        return [entry for entry in index.bundles if scope is None or entry.scope == scope]

    def get_installed_bundle(self, bundle_id: str, scope: Scope) -> InstalledBundle | None:
        """Get the recorded installation of a bundle at a scope."""
        _check_scope(scope)
        return load_user_index(self.path).find(bundle_id, scope)

    def record_installation(self, entry: InstalledBundle) -> None:
        """Record or replace an installation."""
        _check_scope(entry.scope)
        index = load_user_index(self.path)
        index.upsert(entry)
        save_user_index(self.path, index)
        logger.debug("Recorded %s@%s at %s scope", entry.bundle_id, entry.version, entry.scope)

    def remove_installation(self, bundle_id: str, scope: Scope) -> bool:
        """Remove a recorded installation.

        Returns:
            True if an entry was removed
        """
        _check_scope(scope)
        index = load_user_index(self.path)
        if index.remove(bundle_id, scope) is None:
            return False
        save_user_index(self.path, index)
        logger.debug("Removed %s from %s scope index", bundle_id, scope)
        return True
