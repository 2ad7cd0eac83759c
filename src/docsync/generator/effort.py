"""
Thinking Effort Policy.

Decides how much reasoning effort the generator requests per task.
"""

import logging
from enum import Enum
from typing import Protocol

from docsync.config.models import GeneratorConfig

logger = logging.getLogger(__name__)


class ThinkingEffort(str, Enum):
    """Reasoning effort levels accepted by the provider."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @classmethod
    def from_string(cls, value: str | None) -> "ThinkingEffort":
        """Resolve a configured string; unknown values resolve to HIGH."""
        if value:
            try:
                return cls(value.strip().lower())
            except ValueError:
                logger.warning(f"Unknown thinking effort {value!r}, using high")
        return cls.HIGH


class GenerationTask(str, Enum):
    """Generator calls that can carry their own effort."""

    GENERATE_TIERS = "generate_tiers"
    UPDATE_TIERS = "update_tiers"
    MODULE_DOCUMENT = "module_document"
    ASSIGNMENTS = "assignments"


class EffortPolicy(Protocol):
    """Protocol for resolving effort per task."""

    def resolve(self, task: GenerationTask) -> ThinkingEffort:
        """Effort for a task."""
        ...


class ConfiguredEffortPolicy:
    """EffortPolicy driven by GeneratorConfig.

    Per-task overrides win over the default effort.
    """

    def __init__(self, config: GeneratorConfig) -> None:
        self._default = ThinkingEffort.from_string(config.thinking_effort)
        self._overrides = {
            task: ThinkingEffort.from_string(config.effort_overrides[task.value])
            for task in GenerationTask
            if task.value in config.effort_overrides
        }

    def resolve(self, task: GenerationTask) -> ThinkingEffort:
        return self._overrides.get(task, self._default)
