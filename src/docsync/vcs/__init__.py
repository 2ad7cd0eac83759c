"""
Version control access: the git capability and the revision oracle.
"""

from docsync.vcs.git import (
    OBJECT_NOT_FOUND_CODE,
    GitVersionControl,
    RevisionError,
    VersionControl,
)
from docsync.vcs.oracle import DiffPaths, RevisionOracle

__all__ = [
    "OBJECT_NOT_FOUND_CODE",
    "GitVersionControl",
    "RevisionError",
    "VersionControl",
    "DiffPaths",
    "RevisionOracle",
]
