"""Per-user cache of extracted bundles.

Installed bundles are kept under <home>/bundles/<bundleId>/ so that
uninstall and scope migration can re-read the deployment manifest and
re-copy content without going back to the bundle's source.
"""

import logging
from pathlib import Path

from promptreg.config.parser import load_bundle_manifest
from promptreg.config.schemas import BundleManifest
from promptreg.errors import ConfigError, NotFoundError
from promptreg.utils.file_types import normalize_content_id
from promptreg.utils.filesystem import copy_directory, remove_directory

logger = logging.getLogger("promptreg.cache")


class BundleCache:
    """Directory of cached extracted bundles, one per bundle id."""

    def __init__(self, cache_dir: Path):
        """Initialize the bundle cache.

        Args:
            cache_dir: Directory holding one subdirectory per bundle
        """
        self._cache_dir = cache_dir

    @property
    def cache_dir(self) -> Path:
        """Get the cache directory."""
        return self._cache_dir

    def path_for(self, bundle_id: str) -> Path:
        """Get the cache path of a bundle (which may not exist)."""
        return self._cache_dir / normalize_content_id(bundle_id)

    def store(self, bundle_id: str, bundle_dir: Path) -> Path:
        """Copy an extracted bundle into the cache.

        Returns:
            The cached bundle directory
        """
        target = self.path_for(bundle_id)
        if bundle_dir.resolve() == target.resolve():
            return target
        copy_directory(bundle_dir, target)
        logger.debug("Cached %s at %s", bundle_id, target)
        return target

    def get(self, bundle_id: str) -> Path | None:
        """Get the cached bundle directory, or None if not cached."""
        target = self.path_for(bundle_id)
        return target if target.is_dir() else None

    def load_manifest(self, bundle_id: str) -> BundleManifest | None:
        """Load the manifest of a cached bundle.

        Returns:
            The manifest, or None if the bundle is not cached or its
            manifest is unreadable
        """
        bundle_dir = self.get(bundle_id)
        if bundle_dir is None:
            return None
        try:
            return load_bundle_manifest(bundle_dir)
        except (NotFoundError, ConfigError) as e:
            logger.warning("Ignoring cached manifest for %s: %s", bundle_id, e)
            return None

    def remove(self, bundle_id: str) -> bool:
        """Remove a bundle from the cache."""
        return remove_directory(self.path_for(bundle_id))
