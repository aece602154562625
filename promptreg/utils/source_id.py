"""Stable identifiers for bundle sources and hubs.

Source ids are recorded in lockfiles that get committed and shared, so they
must not depend on how a particular user named a source. They are derived
from the source type and a normalized URL instead.
"""

import hashlib
from urllib.parse import urlparse


def normalize_url(url: str) -> str:
    """Normalize a URL for hashing.

    The scheme is dropped and the host lower-cased; path case is preserved
    because paths are case-sensitive on most servers.

    Examples:
        >>> normalize_url("HTTPS://GitHub.com/Owner/Repo/")
        'github.com/Owner/Repo'
    """
    parsed = urlparse(url)
    if parsed.scheme and parsed.netloc:
        return parsed.netloc.lower() + parsed.path.rstrip("/")
    if parsed.scheme == "file":
        return parsed.path.rstrip("/")
    lowered = url.lower()
    for scheme in ("https://", "http://"):
        if lowered.startswith(scheme):
            url = url[len(scheme) :]
            break
    return url.rstrip("/")


def normalize_branch(branch: str | None) -> str:
    """Treat a missing branch and ``master`` as ``main``."""
    if not branch or branch == "master":
        return "main"
    return branch


def generate_source_id(
    source_type: str,
    url: str,
    branch: str | None = None,
    collections_path: str | None = None,
) -> str:
    """Generate a deterministic source id.

    Args:
        source_type: Source type (e.g. "local", "github")
        url: Source URL
        branch: Git branch, if any
        collections_path: Path to collections within the source

    Returns:
        ``{source_type}-{first 12 hex chars of sha256}``
    """
    key = ":".join(
        [
            source_type,
            normalize_url(url),
            normalize_branch(branch),
            collections_path or "collections",
        ]
    )
    digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:12]
    return f"{source_type}-{digest}"


def generate_hub_key(url: str, branch: str | None = None) -> str:
    """Generate a stable hub key from its URL.

    Returns:
        The 12-char hash, suffixed with ``-{branch}`` for non-main branches
    """
    digest = hashlib.sha256(normalize_url(url).encode("utf-8")).hexdigest()[:12]
    if branch and normalize_branch(branch) != "main":
        return f"{digest}-{branch}"
    return digest


def is_legacy_hub_source_id(source_id: str) -> bool:
    """Check for the old ``hub-{hubId}-{sourceId}`` format."""
    return source_id.startswith("hub-") and len(source_id.split("-")) >= 3
