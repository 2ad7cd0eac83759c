"""
Change Classification.

Turns a revision pair into the set of files a sync run must handle and the
modules whose narratives those files affect.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from docsync.modules.graph import ModuleGraph
from docsync.tracking.synclog import SyncLog
from docsync.vcs.oracle import RevisionOracle

logger = logging.getLogger(__name__)

# Path segments used when grouping changes by directory
SUMMARY_DIRECTORY_DEPTH = 2


@dataclass
class ChangeSet:
    """Classified changes between two revisions.

    Attributes:
        from_revision: Base revision
        to_revision: Target revision
        new: Paths added since the base revision
        changed: Modified paths whose artifacts are out of date
        deleted: Removed paths
        skipped: Modified paths already synced to their latest revision
        affected_modules: Slugs owning any new, changed or deleted path
    """

    from_revision: str
    to_revision: str
    new: list[str] = field(default_factory=list)
    changed: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    affected_modules: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True if there is nothing to sync."""
        return not (self.new or self.changed or self.deleted)

    @property
    def total(self) -> int:
        """Number of paths needing work."""
        return len(self.new) + len(self.changed) + len(self.deleted)

    def summary(self) -> dict[str, Any]:
        """Counts by change type and by directory, plus affected modules."""
        by_directory: Counter[str] = Counter()
        for path in self.new + self.changed + self.deleted:
            parts = path.split("/")[:-1][:SUMMARY_DIRECTORY_DEPTH]
            by_directory["/".join(parts) or "."] += 1

        return {
            "from_revision": self.from_revision,
            "to_revision": self.to_revision,
            "total": self.total,
            "by_type": {
                "new": len(self.new),
                "changed": len(self.changed),
                "deleted": len(self.deleted),
                "skipped": len(self.skipped),
            },
            "by_directory": dict(sorted(by_directory.items())),
            "affected_modules": list(self.affected_modules),
        }


class ChangeClassifier:
    """Classifies changed paths as new, changed or deleted."""

    def __init__(self, oracle: RevisionOracle, synclog: SyncLog, graph: ModuleGraph) -> None:
        self._oracle = oracle
        self._synclog = synclog
        self._graph = graph

    async def classify(self, from_revision: str, to_revision: str) -> ChangeSet:
        """Classify changes between two revisions.

        A modified path is only reported as changed when the sync log's
        revision for it differs from the last revision touching it.

        Raises:
            RevisionError: If any version control query fails
        """
        change_set = ChangeSet(from_revision=from_revision, to_revision=to_revision)
        if from_revision == to_revision:
            return change_set

        diff = await self._oracle.diff_paths(from_revision, to_revision)
        change_set.new = list(diff.added)
        change_set.deleted = list(diff.deleted)

        for path in diff.changed:
            current = await self._oracle.last_revision_touching(path)
            if self._synclog.needs_sync(path, current):
                change_set.changed.append(path)
            else:
                logger.debug(f"{path} already synced to {current}, skipping")
                change_set.skipped.append(path)

        affected = set()
        for path in change_set.new + change_set.changed + change_set.deleted:
            owner = self._graph.find_owner(path)
            if owner is not None:
                affected.add(owner)
        change_set.affected_modules = sorted(affected)

        logger.info(
            f"Classified {change_set.total} path(s): {len(change_set.new)} new, "
            f"{len(change_set.changed)} changed, {len(change_set.deleted)} deleted, "
            f"{len(change_set.skipped)} already synced"
        )
        return change_set
