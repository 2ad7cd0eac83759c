"""
Tracking documents: the per-file sync log and the assignment index.
"""

from docsync.tracking.assignments import (
    AssignmentIndex,
    AssignmentIndexRecord,
    PotentialModule,
    build_partition,
)
from docsync.tracking.synclog import (
    FileSyncEntry,
    ModuleSyncEntry,
    SyncLog,
    SyncLogRecord,
    utcnow,
)

__all__ = [
    "AssignmentIndex",
    "AssignmentIndexRecord",
    "PotentialModule",
    "build_partition",
    "FileSyncEntry",
    "ModuleSyncEntry",
    "SyncLog",
    "SyncLogRecord",
    "utcnow",
]
