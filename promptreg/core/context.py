"""Process-wide application state.

The AppContext owns everything shared between repositories (the home
directory, user settings, the per-user index, the bundle cache) and the
registry of per-repository lockfile stores.
"""

import logging
import os
from pathlib import Path

from promptreg import __version__
from promptreg.config.parser import load_settings
from promptreg.config.schemas import Settings
from promptreg.core.activation import RepositoryActivation
from promptreg.core.cache import BundleCache
from promptreg.core.lockfile import LockfileRegistry
from promptreg.core.manager import BundleManager
from promptreg.core.stale import StaleEntryCleaner
from promptreg.core.user_index import UserIndexStore

logger = logging.getLogger("promptreg.context")

HOME_ENV_VAR = "PROMPTREG_HOME"


def default_home() -> Path:
    """Get the promptreg home directory ($PROMPTREG_HOME or ~/.promptreg)."""
    env_home = os.environ.get(HOME_ENV_VAR)
    if env_home:
        return Path(env_home).expanduser()
    return Path.home() / ".promptreg"


class AppContext:
    """Shared stores, plus one BundleManager per repository root."""

    def __init__(self, home: Path, settings: Settings | None = None):
        """Initialize the context.

        Args:
            home: The promptreg home directory
            settings: User settings (loaded from the home directory if None)
        """
        self.home = home
        self.settings = settings if settings is not None else load_settings(home)
        self.lockfiles = LockfileRegistry(generated_by=f"promptreg@{__version__}")
        self.user_index = UserIndexStore(home)
        self.cache = BundleCache(home / "bundles")
        self._active_root: Path | None = None

    @classmethod
    def from_environment(cls, home: Path | None = None) -> "AppContext":
        """Create a context for the given or default home directory."""
        return cls(home if home is not None else default_home())

    def manager(self, repository_root: Path) -> BundleManager:
        """Get a BundleManager for a repository.

        Switching to a different repository evicts the previous
        repository's lockfile store.
        """
        root = repository_root.resolve()
        if self._active_root is not None and self._active_root != root:
            logger.debug("Active repository changed from %s to %s", self._active_root, root)
            self.lockfiles.evict(self._active_root)
        self._active_root = root

        return BundleManager(
            root,
            self.home,
            self.lockfiles.get(root),
            self.user_index,
            self.cache,
            self.settings,
        )

    def stale_cleaner(self, repository_root: Path) -> StaleEntryCleaner:
        """Get the stale entry cleaner for a repository."""
        return StaleEntryCleaner(self.manager(repository_root).lockfile)

    def activation(self, repository_root: Path) -> RepositoryActivation:
        """Get the activation helper for a repository."""
        manager = self.manager(repository_root)
        return RepositoryActivation(manager.lockfile, manager, self.settings)

    def close(self) -> None:
        """Drop all lockfile stores."""
        self.lockfiles.close()
        self._active_root = None
