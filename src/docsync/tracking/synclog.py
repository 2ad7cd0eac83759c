"""
Sync Log.

Persisted record of the revision each source file's artifacts (and each
module's narrative) were last synchronized at, plus the baseline revision
of the last completed run. The whole document is rewritten on every
mutation; mutations are serialized through one asyncio lock and applied
copy-on-write so memory never runs ahead of disk.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from docsync.config.models import DocsyncConfig
from docsync.storage.filestore import FilesystemError, FileStore, normalize_path

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Timezone-aware current time."""
    return datetime.now(timezone.utc)


class FileSyncEntry(BaseModel):
    """Sync state of one source file.

    Attributes:
        revision: Run revision the artifacts were written at
        source_revision: Last revision touching the file at that time
        last_updated: When the entry was written
    """

    revision: str
    source_revision: Optional[str] = None
    last_updated: datetime = Field(default_factory=utcnow)


class ModuleSyncEntry(BaseModel):
    """Sync state of one module narrative."""

    revision: str
    last_updated: datetime = Field(default_factory=utcnow)


class SyncLogRecord(BaseModel):
    """Persisted form of the sync log."""

    last_update_revision: Optional[str] = None
    last_update_timestamp: Optional[datetime] = None
    files: dict[str, FileSyncEntry] = Field(default_factory=dict)
    modules: dict[str, ModuleSyncEntry] = Field(default_factory=dict)


class SyncLog:
    """Owns the revision-tracking map."""

    def __init__(self, store: FileStore, config: DocsyncConfig) -> None:
        """Initialize the log.

        Args:
            store: File store rooted at the project root
            config: Root configuration
        """
        self._store = store
        self._path = config.update_log_path
        self._record: SyncLogRecord | None = None
        self._lock = asyncio.Lock()

    @property
    def record(self) -> SyncLogRecord:
        """The in-memory record, loaded on first access."""
        if self._record is None:
            self._record = self._load()
        return self._record

    def _load(self) -> SyncLogRecord:
        if not self._store.exists(self._path):
            return SyncLogRecord()
        raw = self._store.read(self._path)
        try:
            return SyncLogRecord.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            raise FilesystemError(f"Corrupt sync log {self._path}: {e}", path=self._path) from e

    def _persist(self, record: SyncLogRecord) -> None:
        payload = json.dumps(record.model_dump(mode="json"), indent=2, sort_keys=True)
        self._store.write(self._path, payload + "\n")
        self._record = record

    def reload(self) -> None:
        """Drop the cached record so the next access re-reads the file."""
        self._record = None

    @property
    def baseline(self) -> str | None:
        """Revision of the last completed sync run."""
        return self.record.last_update_revision

    def get(self, path: str) -> FileSyncEntry | None:
        """Get a file's entry."""
        return self.record.files.get(normalize_path(path))

    def needs_sync(self, path: str, current_revision: str | None) -> bool:
        """Check whether a file's artifacts are behind its source.

        Args:
            path: Source path
            current_revision: Last revision touching the path

        Returns:
            True if there is no entry or the entry was synced from a
            different source revision
        """
        entry = self.get(path)
        if entry is None:
            return True
        synced_from = entry.source_revision or entry.revision
        return synced_from != current_revision

    async def set(
        self,
        path: str,
        revision: str,
        timestamp: datetime | None = None,
        source_revision: str | None = None,
    ) -> None:
        """Record that a file's artifacts reflect a revision."""
        async with self._lock:
            record = self.record.model_copy(deep=True)
            record.files[normalize_path(path)] = FileSyncEntry(
                revision=revision,
                source_revision=source_revision,
                last_updated=timestamp or utcnow(),
            )
            self._persist(record)

    async def remove(self, path: str) -> bool:
        """Drop a file's entry. Returns False if there was none."""
        key = normalize_path(path)
        async with self._lock:
            if key not in self.record.files:
                return False
            record = self.record.model_copy(deep=True)
            del record.files[key]
            self._persist(record)
            return True

    def get_module(self, slug: str) -> ModuleSyncEntry | None:
        """Get a module's entry."""
        return self.record.modules.get(slug)

    async def set_module(self, slug: str, revision: str, timestamp: datetime | None = None) -> None:
        """Record that a module narrative reflects a revision."""
        async with self._lock:
            record = self.record.model_copy(deep=True)
            record.modules[slug] = ModuleSyncEntry(revision=revision, last_updated=timestamp or utcnow())
            self._persist(record)

    async def set_baseline(self, revision: str, timestamp: datetime | None = None) -> None:
        """Record the revision a completed run synchronized to."""
        async with self._lock:
            record = self.record.model_copy(deep=True)
            record.last_update_revision = revision
            record.last_update_timestamp = timestamp or utcnow()
            self._persist(record)
            logger.info(f"Sync baseline advanced to {revision[:8]}")
