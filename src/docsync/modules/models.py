"""
Module Data Models.

Pydantic models for module metadata records. Field names match the
persisted JSON so records round-trip through `model_dump(mode="json")`.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, computed_field

from docsync.tracking.synclog import utcnow

DOC_VERSION = "1.0"


class ModuleFile(BaseModel):
    """A documented file of a module.

    Attributes:
        path: Source path
        documented: Always True for entries in Module.files
        documentation_tier: Richest tier found when the file was added
        added_date: When the file was added
    """

    path: str
    documented: bool = True
    documentation_tier: str = "unknown"
    added_date: datetime = Field(default_factory=utcnow)


class ModuleStatistics(BaseModel):
    """File counts of a module, derived from its two file lists."""

    total_files: int = 0
    documented_files: int = 0
    undocumented_files: int = 0


class Module(BaseModel):
    """A named grouping of source files sharing one narrative document.

    Attributes:
        module_name: Display name
        module_slug: Unique key, lowercase letters, digits and dashes
        module_summary: Summary extracted from the narrative's Overview
        doc_version: Record format version
        generated_at: When the module was created
        last_updated: When the record was last saved
        git_commit_sha: Revision the narrative was last synchronized at
        files: Files the narrative covers
        undocumented_files: Files the narrative does not cover yet
        statistics: Counts recomputed on every save
    """

    module_name: str
    module_slug: str
    module_summary: str = ""
    doc_version: str = DOC_VERSION
    generated_at: datetime = Field(default_factory=utcnow)
    last_updated: datetime = Field(default_factory=utcnow)
    git_commit_sha: Optional[str] = None
    files: list[ModuleFile] = Field(default_factory=list)
    undocumented_files: list[str] = Field(default_factory=list)
    statistics: ModuleStatistics = Field(default_factory=ModuleStatistics)

    @property
    def slug(self) -> str:
        """Alias for module_slug."""
        return self.module_slug

    @property
    def documented_paths(self) -> list[str]:
        """Paths in the documented list."""
        return [f.path for f in self.files]

    @property
    def all_paths(self) -> list[str]:
        """Paths in either list."""
        return self.documented_paths + list(self.undocumented_files)

    def contains(self, path: str) -> bool:
        """Check whether a path is in either list."""
        return path in self.undocumented_files or any(f.path == path for f in self.files)

    def duplicate_paths(self) -> list[str]:
        """Paths appearing more than once across both lists."""
        seen: set[str] = set()
        duplicates = []
        for path in self.all_paths:
            if path in seen:
                duplicates.append(path)
            seen.add(path)
        return duplicates

    def recompute_statistics(self) -> ModuleStatistics:
        """Recompute statistics from the file lists."""
        self.statistics = ModuleStatistics(
            total_files=len(self.files) + len(self.undocumented_files),
            documented_files=len(self.files),
            undocumented_files=len(self.undocumented_files),
        )
        return self.statistics


class ModuleOverview(BaseModel):
    """Short view of a module handed to the generator for assignment."""

    slug: str
    name: str
    summary: str = ""
    file_count: int = 0

    @computed_field
    @property
    def label(self) -> str:
        """Human-readable label."""
        return f"{self.name} ({self.slug})"
