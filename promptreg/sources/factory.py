"""Bundle source factory."""

import logging

from promptreg.config.schemas import SourceDescriptor
from promptreg.errors import NotFoundError
from promptreg.sources.base import BundleSource
from promptreg.sources.local import LocalBundleSource

logger = logging.getLogger(__name__)


class UnsupportedSourceError(NotFoundError):
    """Error when a source type cannot be read locally."""

    def __init__(self, source_type: str, url: str):
        self.source_type = source_type
        self.url = url
        super().__init__(f"Unsupported source type: {source_type} (in {url})")


def create_source(descriptor: SourceDescriptor, source_id: str | None = None) -> BundleSource:
    """Create a bundle source for a descriptor.

    Args:
        descriptor: Source type and URL
        source_id: Id to use instead of the generated one

    Returns:
        A BundleSource instance

    Raises:
        UnsupportedSourceError: If the source type is not supported
    """
    logger.debug("Creating bundle source for %s (%s)", descriptor.url, descriptor.type)

    if descriptor.type == "local" or descriptor.url.startswith("file:"):
        return LocalBundleSource(descriptor, source_id)

    raise UnsupportedSourceError(descriptor.type, descriptor.url)
