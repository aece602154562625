"""Local directory bundle source."""

from __future__ import annotations

import logging
from pathlib import Path
from urllib.parse import urlparse

from promptreg.config.parser import MANIFEST_NAME, load_bundle_manifest
from promptreg.config.schemas import SourceDescriptor
from promptreg.errors import NotFoundError
from promptreg.sources.base import BundleSource

logger = logging.getLogger(__name__)


def parse_file_url(url: str) -> Path:
    """Parse a file URL (file:///abs, file:rel) or plain path to a Path."""
    if url.startswith("file://"):
        return Path(urlparse(url).path)
    if url.startswith("file:"):
        return Path(url[5:]).resolve()
    return Path(url).expanduser().resolve()


class LocalBundleSource(BundleSource):
    """A directory of extracted bundles.

    Layout:
        <dir>/<bundleId>/deployment-manifest.yml
        <dir>/<bundleId>-<version>/deployment-manifest.yml

    A directory that itself holds a deployment-manifest.yml is a source
    with exactly one bundle.
    """

    def __init__(self, descriptor: SourceDescriptor, source_id: str | None = None):
        super().__init__(descriptor, source_id)
        self._path = parse_file_url(descriptor.url)
        logger.debug("Initialized local bundle source at %s", self._path)

    @classmethod
    def from_path(cls, path: Path) -> LocalBundleSource:
        """Create a source for a local directory."""
        return cls(SourceDescriptor(type="local", url=path.resolve().as_uri()))

    @property
    def source_type(self) -> str:
        return "local"

    @property
    def path(self) -> Path:
        """Get the directory this source points to."""
        return self._path

    def resolve(self, bundle_id: str, version: str | None = None) -> Path:
        candidates: list[Path] = []
        if version:
            candidates.append(self._path / f"{bundle_id}-{version}")
        candidates.append(self._path / bundle_id)
        candidates.append(self._path)

        for candidate in candidates:
            if not (candidate / MANIFEST_NAME).is_file():
                continue
            manifest = load_bundle_manifest(candidate)
            if manifest.id != bundle_id:
                continue
            if version and manifest.version != version:
                logger.debug(
                    "Skipping %s: version %s does not match %s", candidate, manifest.version, version
                )
                continue
            return candidate

        wanted = f"{bundle_id}@{version}" if version else bundle_id
        raise NotFoundError(f"Bundle {wanted} not found in {self._path}", bundle_id)

    def list_bundles(self) -> list[str]:
        if (self._path / MANIFEST_NAME).is_file():
            return [load_bundle_manifest(self._path).id]
        if not self._path.is_dir():
            return []
        return sorted(
            load_bundle_manifest(child).id
            for child in self._path.iterdir()
            if (child / MANIFEST_NAME).is_file()
        )
