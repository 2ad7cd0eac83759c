"""
Generator Interface.

The engine treats content generation as an injected collaborator: a prompt
goes in, structured tier content or module document text comes out. Any
backend implementing the Generator protocol can be plugged in.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol

from pydantic import BaseModel, Field

from docsync.config.models import Tier
from docsync.modules.models import ModuleOverview


class ProviderError(Exception):
    """Base exception for generation failures.

    Plain ProviderErrors are retried by the unit scheduler up to its
    attempt limit.
    """

    pass


class TransientProviderError(ProviderError):
    """Raised when the provider signals rate limiting.

    The unit is requeued after a delay without touching any state.
    """

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class PermanentProviderError(ProviderError):
    """Raised for responses that retrying cannot fix.

    Malformed or placeholder output, or a prompt over the context limit.
    """

    pass


@dataclass
class FileDoc:
    """Documentation of one file handed to module regeneration."""

    path: str
    doc: str


class RecommendationAction(str, Enum):
    """What an assignment recommendation asks for."""

    ASSIGN_TO_EXISTING = "assign_to_existing"
    CREATE_NEW_MODULE = "create_new_module"


class AssignmentRecommendation(BaseModel):
    """A generator-suggested module assignment.

    Attributes:
        action: Assign to an existing module or create a new one
        files: Paths the recommendation covers
        module: Target slug for assign_to_existing
        module_name: Name for create_new_module
        module_slug: Slug for create_new_module
        description: Description for create_new_module
        confidence: Confidence in [0, 1]
        reasoning: Free-text justification from the generator
    """

    action: RecommendationAction
    files: list[str] = Field(default_factory=list)
    module: Optional[str] = None
    module_name: Optional[str] = None
    module_slug: Optional[str] = None
    description: Optional[str] = None
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    reasoning: str = ""


TierContent = dict[Tier, str]
TierUpdate = dict[Tier, Optional[str]]


class Generator(Protocol):
    """Protocol for documentation generators.

    Implementations raise TransientProviderError on rate limiting and
    PermanentProviderError on unusable output.
    """

    async def generate_tiers(self, source_text: str, path: str, revision: str) -> TierContent:
        """Produce all three tiers for a source file."""
        ...

    async def update_tiers(
        self,
        source_text: str,
        diff_text: str,
        existing: TierContent,
        path: str,
        revision: str,
    ) -> TierUpdate:
        """Update existing tiers for a change; None means no change needed."""
        ...

    async def regenerate_module_document(
        self,
        module_name: str,
        current_document: str,
        new_file_docs: list[FileDoc],
    ) -> str:
        """Rewrite a module narrative to cover new files."""
        ...

    async def recommend_assignments(
        self,
        unassigned: list[str],
        modules: list[ModuleOverview],
    ) -> list[AssignmentRecommendation]:
        """Suggest modules for unassigned files."""
        ...
