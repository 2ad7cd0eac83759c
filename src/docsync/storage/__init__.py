"""
Storage layer: file store capability, front matter documents, tier artifacts.
"""

from docsync.storage.filestore import (
    FilesystemError,
    FileStore,
    InMemoryFileStore,
    LocalFileStore,
    normalize_path,
)
from docsync.storage.frontmatter import (
    FrontMatterError,
    MarkdownDocument,
    Section,
    extract_summary,
    parse,
    serialize,
)
from docsync.storage.tiers import (
    REVISION_KEY,
    UNKNOWN_TIER,
    TierStore,
    WrittenSet,
    get_revision_marker,
    set_revision_marker,
)

__all__ = [
    "FileStore",
    "FilesystemError",
    "InMemoryFileStore",
    "LocalFileStore",
    "normalize_path",
    "FrontMatterError",
    "MarkdownDocument",
    "Section",
    "extract_summary",
    "parse",
    "serialize",
    "REVISION_KEY",
    "UNKNOWN_TIER",
    "TierStore",
    "WrittenSet",
    "get_revision_marker",
    "set_revision_marker",
]
