"""
Revision Oracle.

Answers the engine's questions about the source tree's history: which
documentable files changed between two revisions, how a file changed, and
what it looked like at a revision.
"""

import logging
from dataclasses import dataclass, field

from docsync.config.models import DocsyncConfig
from docsync.storage.filestore import normalize_path
from docsync.vcs.git import VersionControl

logger = logging.getLogger(__name__)

_ADDED = {"A", "C"}
_MODIFIED = {"M", "T"}
_DELETED = {"D"}


@dataclass
class DiffPaths:
    """Documentable paths changed between two revisions.

    Attributes:
        changed: Modified paths
        added: New paths
        deleted: Removed paths
    """

    changed: list[str] = field(default_factory=list)
    added: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """True if nothing changed."""
        return not (self.changed or self.added or self.deleted)


class RevisionOracle:
    """Revision queries filtered to documentable source files.

    A path is documentable when it sits under a configured source root, has
    an allowlisted extension and contains none of the excluded patterns.
    """

    def __init__(self, vcs: VersionControl, config: DocsyncConfig) -> None:
        """Initialize the oracle.

        Args:
            vcs: Version control implementation
            config: Root configuration
        """
        self._vcs = vcs
        self._source_roots = list(config.paths.source_roots)
        self._file_types = set(config.file_types)
        self._exclude_patterns = list(config.exclude_patterns)

    def is_documentable(self, path: str) -> bool:
        """Check a path against roots, extensions and exclusions."""
        path = normalize_path(path)
        _, dot, ext = path.rpartition(".")
        if not dot or ext.lower() not in self._file_types:
            return False
        if not any(path.startswith(root) for root in self._source_roots):
            return False
        return not any(pattern in path for pattern in self._exclude_patterns)

    async def resolve_head(self) -> str:
        """Resolve the current HEAD revision.

        Raises:
            RevisionError: If HEAD cannot be resolved
        """
        return await self._vcs.resolve("HEAD")

    async def resolve(self, ref: str) -> str:
        """Resolve any revision reference to a full identifier.

        Raises:
            RevisionError: If the reference does not name a commit
        """
        return await self._vcs.resolve(ref)

    async def diff_paths(self, from_revision: str, to_revision: str) -> DiffPaths:
        """List documentable paths added, modified and deleted.

        Raises:
            RevisionError: If the diff command fails
        """
        added: set[str] = set()
        changed: set[str] = set()
        deleted: set[str] = set()

        for status, raw_path in await self._vcs.name_status(from_revision, to_revision):
            path = normalize_path(raw_path)
            if not self.is_documentable(path):
                continue
            if status in _ADDED:
                added.add(path)
            elif status in _MODIFIED:
                changed.add(path)
            elif status in _DELETED:
                deleted.add(path)
            else:
                logger.debug(f"Ignoring status {status!r} for {path}")

        result = DiffPaths(
            changed=sorted(changed - added - deleted),
            added=sorted(added - deleted),
            deleted=sorted(deleted),
        )
        logger.info(
            f"Diff {from_revision[:8]}..{to_revision[:8]}: {len(result.added)} added, "
            f"{len(result.changed)} changed, {len(result.deleted)} deleted"
        )
        return result

    async def file_diff(self, path: str, from_revision: str, to_revision: str) -> str:
        """Unified diff for one path; empty means not comparable.

        Raises:
            RevisionError: If the diff command fails
        """
        return (await self._vcs.diff(path, from_revision, to_revision)).strip()

    async def content_at(self, path: str, revision: str) -> str | None:
        """Content of a path at a revision, None if it does not exist there.

        Raises:
            RevisionError: For failures other than a missing object
        """
        return await self._vcs.show(path, revision)

    async def last_revision_touching(self, path: str) -> str | None:
        """Most recent revision that touched a path."""
        return await self._vcs.last_commit(path)

    async def documentable_files(self, revision: str, roots: list[str] | None = None) -> list[str]:
        """Every documentable path in the tree at a revision, sorted.

        Args:
            revision: Revision whose tree is listed
            roots: Narrow the scan to these directories; each must lie
                under a configured source root to yield anything

        Raises:
            RevisionError: If the tree cannot be listed
        """
        prefixes = [normalize_path(r) + "/" for r in roots] if roots else self._source_roots
        paths = {normalize_path(p) for p in await self._vcs.list_files(revision, prefixes)}
        documentable = sorted(p for p in paths if self.is_documentable(p))
        logger.info(f"Scan at {revision[:8]}: {len(documentable)} documentable file(s)")
        return documentable
