"""
Modules: records, the module graph and assignment of files to modules.
"""

from docsync.modules.graph import (
    SLUG_PATTERN,
    DataIntegrityError,
    InsufficientModuleFiles,
    InvalidModuleSlug,
    MembershipConflict,
    ModuleAlreadyExists,
    ModuleGraph,
    ModuleNotFound,
    compose_document,
    slugify,
    validate_slug,
)
from docsync.modules.models import (
    Module,
    ModuleFile,
    ModuleOverview,
    ModuleStatistics,
)

__all__ = [
    "SLUG_PATTERN",
    "DataIntegrityError",
    "InsufficientModuleFiles",
    "InvalidModuleSlug",
    "MembershipConflict",
    "ModuleAlreadyExists",
    "ModuleGraph",
    "ModuleNotFound",
    "compose_document",
    "slugify",
    "validate_slug",
    "Module",
    "ModuleFile",
    "ModuleOverview",
    "ModuleStatistics",
]
