"""Abstract base class for bundle sources."""

from abc import ABC, abstractmethod
from pathlib import Path

from promptreg.config.schemas import SourceDescriptor
from promptreg.utils.source_id import generate_source_id


class BundleSource(ABC):
    """Locates already-extracted bundles.

    Downloading and extracting archives is the job of whoever populates a
    source; the engine only ever receives a local directory.
    """

    def __init__(self, descriptor: SourceDescriptor, source_id: str | None = None):
        self._descriptor = descriptor
        self._source_id = source_id or generate_source_id(descriptor.type, descriptor.url)

    @property
    def source_id(self) -> str:
        """Get the stable id of this source."""
        return self._source_id

    @property
    def descriptor(self) -> SourceDescriptor:
        """Get the descriptor recorded in lockfiles."""
        return self._descriptor

    @property
    @abstractmethod
    def source_type(self) -> str:
        """Get the source type (e.g. "local")."""
        ...

    @abstractmethod
    def resolve(self, bundle_id: str, version: str | None = None) -> Path:
        """Get the extracted directory of a bundle.

        Args:
            bundle_id: Bundle identifier
            version: Specific version, or None for whatever is available

        Returns:
            Path to a directory containing deployment-manifest.yml

        Raises:
            NotFoundError: If the bundle is not available from this source
        """
        ...

    def list_bundles(self) -> list[str]:
        """List bundle ids available from this source.

        Default implementation returns empty list.
        """
        return []
