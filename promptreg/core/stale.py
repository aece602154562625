"""Detection and confirmed removal of stale lockfile entries."""

import logging
from dataclasses import dataclass, field

from promptreg.config.schemas import InstalledBundle
from promptreg.core.lockfile import LockfileStore

logger = logging.getLogger("promptreg.stale")


@dataclass
class StaleCleanupSummary:
    """Per-entry outcome of a stale cleanup batch."""

    removed: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def removed_count(self) -> int:
        return len(self.removed)

    @property
    def failed_count(self) -> int:
        return len(self.failed)

    @property
    def all_successful(self) -> bool:
        return not self.failed


class StaleEntryCleaner:
    """Finds lockfile entries whose files have vanished from disk.

    Nothing is removed automatically; callers confirm first.
    """

    def __init__(self, lockfile: LockfileStore):
        self._lockfile = lockfile

    def find_stale(self) -> list[InstalledBundle]:
        """List repository-scope bundles with missing files."""
        return [b for b in self._lockfile.get_installed_bundles() if b.files_missing]

    def remove_stale(self, bundle_ids: list[str]) -> StaleCleanupSummary:
        """Remove the given lockfile entries.

        A failure on one entry is recorded and the rest are still processed.

        Args:
            bundle_ids: Ids of the (confirmed) stale entries to remove

        Returns:
            Summary of removed and failed entries
        """
        summary = StaleCleanupSummary()
        for bundle_id in bundle_ids:
            try:
                if self._lockfile.remove(bundle_id):
                    summary.removed.append(bundle_id)
                else:
                    summary.failed[bundle_id] = "not in lockfile"
            except Exception as e:
                logger.warning("Failed to remove stale entry %s: %s", bundle_id, e)
                summary.failed[bundle_id] = str(e)

        if summary.failed:
            logger.warning(
                "Removed %d of %d stale entries", summary.removed_count, len(bundle_ids)
            )
        else:
            logger.info("Removed %d stale entries", summary.removed_count)
        return summary
