"""
Assignment Index.

Persisted global view of which documented files belong to a module, which
are unassigned, and which are permanently excluded. The index is derived
from module records plus the tier store and can always be rebuilt with
`build_partition`; it is persisted for fast lookups and mutated through a
single writer lock.
"""

import asyncio
import json
import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from docsync.config.models import DocsyncConfig
from docsync.storage.filestore import FilesystemError, FileStore
from docsync.tracking.synclog import utcnow

logger = logging.getLogger(__name__)


class PotentialModule(BaseModel):
    """A heuristic grouping of unassigned files.

    Attributes:
        suggested_slug: Slug the module would get
        files: Member files
        confidence: Heuristic confidence in [0, 1]
        reason: Directory or concept that produced the grouping
    """

    suggested_slug: str
    files: list[str] = Field(default_factory=list)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reason: str = ""


class AssignmentIndexRecord(BaseModel):
    """Persisted form of the assignment index.

    Attributes:
        last_analysis: When the partition was last rebuilt
        assigned: Module slug to member paths
        unassigned: Documented paths in no module
        do_not_document: Paths excluded from classification
        potential_modules: Heuristic groupings of unassigned files
        low_confidence: Recommendations recorded but not applied
        conflicts: Paths claimed by more than one module
        last_ai_assignment: When recommendations were last applied
    """

    last_analysis: Optional[datetime] = None
    assigned: dict[str, list[str]] = Field(default_factory=dict)
    unassigned: list[str] = Field(default_factory=list)
    do_not_document: list[str] = Field(default_factory=list)
    potential_modules: list[PotentialModule] = Field(default_factory=list)
    low_confidence: list[dict[str, Any]] = Field(default_factory=list)
    conflicts: dict[str, list[str]] = Field(default_factory=dict)
    last_ai_assignment: Optional[datetime] = None

    def owner_of(self, path: str) -> str | None:
        """Slug of the module a path is assigned to."""
        for slug in sorted(self.assigned):
            if path in self.assigned[slug]:
                return slug
        return None


def build_partition(
    documented: Iterable[str],
    module_files: Mapping[str, Iterable[str]],
    do_not_document: Iterable[str],
) -> tuple[dict[str, list[str]], list[str], dict[str, list[str]]]:
    """Partition documented files into assigned, unassigned and excluded.

    Exclusion wins over module membership. A path listed by several
    modules is assigned to the first slug in sorted order and reported as
    a conflict.

    Args:
        documented: Every source path with a micro-tier artifact
        module_files: Slug to all paths listed by that module
        do_not_document: Excluded paths

    Returns:
        Tuple of (assigned, unassigned, conflicts)
    """
    excluded = set(do_not_document)
    claimed: dict[str, str] = {}
    conflicts: dict[str, list[str]] = {}
    assigned: dict[str, list[str]] = {}

    for slug in sorted(module_files):
        members = []
        for path in module_files[slug]:
            if path in excluded:
                continue
            owner = claimed.get(path)
            if owner is not None:
                if owner != slug:
                    conflicts.setdefault(path, [owner]).append(slug)
                continue
            claimed[path] = slug
            members.append(path)
        assigned[slug] = sorted(members)

    unassigned = sorted(set(documented) - set(claimed) - excluded)
    return assigned, unassigned, conflicts


class AssignmentIndex:
    """Owns the persisted assignment index document."""

    def __init__(self, store: FileStore, config: DocsyncConfig) -> None:
        """Initialize the index.

        Args:
            store: File store rooted at the project root
            config: Root configuration
        """
        self._store = store
        self._path = config.assignment_log_path
        self._record: AssignmentIndexRecord | None = None
        self._lock = asyncio.Lock()

    @property
    def record(self) -> AssignmentIndexRecord:
        """The in-memory record, loaded on first access."""
        if self._record is None:
            self._record = self._load()
        return self._record

    def _load(self) -> AssignmentIndexRecord:
        if not self._store.exists(self._path):
            return AssignmentIndexRecord()
        try:
            return AssignmentIndexRecord.model_validate(json.loads(self._store.read(self._path)))
        except (json.JSONDecodeError, ValidationError) as e:
            raise FilesystemError(f"Corrupt assignment index {self._path}: {e}", path=self._path) from e

    async def update(self, mutate: Callable[[AssignmentIndexRecord], None]) -> AssignmentIndexRecord:
        """Apply a mutation and persist the whole document.

        The mutation runs on a copy; the cached record is replaced only
        after the write succeeds.
        """
        async with self._lock:
            record = self.record.model_copy(deep=True)
            mutate(record)
            payload = json.dumps(record.model_dump(mode="json"), indent=2)
            self._store.write(self._path, payload + "\n")
            self._record = record
            return record

    async def rebuild(
        self,
        documented: Iterable[str],
        module_files: Mapping[str, Iterable[str]],
        potential_modules: list[PotentialModule] | None = None,
    ) -> AssignmentIndexRecord:
        """Recompute the partition from its sources and persist it."""
        documented = list(documented)

        def mutate(record: AssignmentIndexRecord) -> None:
            assigned, unassigned, conflicts = build_partition(
                documented, module_files, record.do_not_document
            )
            record.assigned = assigned
            record.unassigned = unassigned
            record.conflicts = conflicts
            record.last_analysis = utcnow()
            if potential_modules is not None:
                record.potential_modules = potential_modules

        record = await self.update(mutate)
        if record.conflicts:
            logger.warning(
                f"{len(record.conflicts)} file(s) listed by more than one module: "
                f"{', '.join(sorted(record.conflicts)[:5])}"
            )
        return record

    async def exclude(self, paths: Iterable[str]) -> None:
        """Add paths to do_not_document, removing them elsewhere."""
        paths = set(paths)

        def mutate(record: AssignmentIndexRecord) -> None:
            record.do_not_document = sorted(set(record.do_not_document) | paths)
            record.unassigned = [p for p in record.unassigned if p not in paths]
            for slug, members in record.assigned.items():
                record.assigned[slug] = [p for p in members if p not in paths]

        await self.update(mutate)

    async def include(self, paths: Iterable[str], documented: Iterable[str]) -> None:
        """Remove paths from do_not_document.

        A released path becomes unassigned only when it is documented and no
        module lists it; anything else waits for the next rebuild.
        """
        paths = set(paths)
        documented = set(documented)

        def mutate(record: AssignmentIndexRecord) -> None:
            released = paths & set(record.do_not_document)
            record.do_not_document = sorted(set(record.do_not_document) - paths)
            record.unassigned = sorted(
                set(record.unassigned) | {p for p in released if p in documented and record.owner_of(p) is None}
            )

        await self.update(mutate)

    async def forget(self, paths: Iterable[str]) -> None:
        """Remove deleted paths from every list except do_not_document."""
        paths = set(paths)

        def mutate(record: AssignmentIndexRecord) -> None:
            record.unassigned = [p for p in record.unassigned if p not in paths]
            for slug, members in record.assigned.items():
                record.assigned[slug] = [p for p in members if p not in paths]

        await self.update(mutate)

    async def assign(self, slug: str, paths: Iterable[str]) -> None:
        """Move paths from unassigned to a module."""
        paths = set(paths)

        def mutate(record: AssignmentIndexRecord) -> None:
            record.unassigned = [p for p in record.unassigned if p not in paths]
            members = set(record.assigned.get(slug, [])) | paths
            record.assigned[slug] = sorted(members)

        await self.update(mutate)
