"""
Generator: the injected content producer and its supporting policies.
"""

from docsync.generator.base import (
    AssignmentRecommendation,
    FileDoc,
    Generator,
    PermanentProviderError,
    ProviderError,
    RecommendationAction,
    TierContent,
    TierUpdate,
    TransientProviderError,
)
from docsync.generator.effort import (
    ConfiguredEffortPolicy,
    EffortPolicy,
    GenerationTask,
    ThinkingEffort,
)
from docsync.generator.llm import LLMGenerator, parse_json_object
from docsync.generator.validation import (
    SHRINKAGE_WARNING_RATIO,
    ResponseValidator,
    warn_if_shrunk,
)

__all__ = [
    # Interface
    "Generator",
    "FileDoc",
    "TierContent",
    "TierUpdate",
    "AssignmentRecommendation",
    "RecommendationAction",
    # Errors
    "ProviderError",
    "TransientProviderError",
    "PermanentProviderError",
    # Effort
    "ThinkingEffort",
    "GenerationTask",
    "EffortPolicy",
    "ConfiguredEffortPolicy",
    # Implementation
    "LLMGenerator",
    "parse_json_object",
    # Validation
    "ResponseValidator",
    "SHRINKAGE_WARNING_RATIO",
    "warn_if_shrunk",
]
