"""
LLM Generator.

Generator implementation backed by an OpenRouter-compatible chat
completion API. Client errors are mapped onto the provider error classes
the scheduler understands:

- RateLimitError -> TransientProviderError (requeue)
- ContextLengthError, AuthenticationError, unparseable output
  -> PermanentProviderError (fail the unit)
- other API errors -> ProviderError (retry)
"""

import json
import logging
import re
from typing import Any

from pydantic import ValidationError

from docsync.config.models import GeneratorConfig
from docsync.generator.base import (
    AssignmentRecommendation,
    FileDoc,
    PermanentProviderError,
    ProviderError,
    TierContent,
    TierUpdate,
    TransientProviderError,
)
from docsync.generator.effort import ConfiguredEffortPolicy, EffortPolicy, GenerationTask
from docsync.generator.prompts import (
    ASSIGNMENT_SYSTEM_PROMPT,
    MODULE_SYSTEM_PROMPT,
    TIERS_SYSTEM_PROMPT,
    UPDATE_SYSTEM_PROMPT,
    build_assignment_prompt,
    build_module_prompt,
    build_tiers_prompt,
    build_update_prompt,
)
from docsync.generator.validation import ResponseValidator
from docsync.modules.models import ModuleOverview
from docsync.utils.llm_client import (
    AsyncLLMClient,
    AuthenticationError,
    ContextLengthError,
    LLMClientError,
    Message,
    RateLimitError,
)

logger = logging.getLogger(__name__)


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse a JSON object from model output.

    Markdown code fences around the object are stripped.

    Raises:
        PermanentProviderError: If the content is not a JSON object
    """
    content = content.strip()
    if content.startswith("```"):
        content = re.sub(r"^```(?:json)?\s*\n?", "", content)
        content = re.sub(r"\n?```\s*$", "", content)
        content = content.strip()

    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        preview = content[:200] if content else "<empty>"
        raise PermanentProviderError(f"Invalid JSON from generator: {e} (preview: {preview!r})") from e

    if not isinstance(data, dict):
        raise PermanentProviderError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class LLMGenerator:
    """Generator that prompts a chat model and validates its output."""

    def __init__(
        self,
        client: AsyncLLMClient,
        config: GeneratorConfig,
        effort_policy: EffortPolicy | None = None,
    ) -> None:
        """Initialize the generator.

        Args:
            client: Chat completion client
            config: Generator configuration
            effort_policy: Reasoning effort per task (defaults to configuration)
        """
        self._client = client
        self._config = config
        self._effort = effort_policy or ConfiguredEffortPolicy(config)
        self._validator = ResponseValidator(config)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.close()

    async def _complete(self, task: GenerationTask, system_prompt: str, user_prompt: str) -> dict[str, Any]:
        effort = self._effort.resolve(task)
        try:
            response = await self._client.send_message(
                model=self._config.model,
                messages=[
                    Message(role="system", content=system_prompt),
                    Message(role="user", content=user_prompt),
                ],
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                json_mode=True,
                reasoning_effort=effort.value,
            )
        except RateLimitError as e:
            raise TransientProviderError(str(e), retry_after=e.retry_after) from e
        except (ContextLengthError, AuthenticationError) as e:
            raise PermanentProviderError(str(e)) from e
        except LLMClientError as e:
            raise ProviderError(str(e)) from e

        logger.debug(
            f"{task.value}: {response.usage.total_tokens} tokens, effort {effort.value}, "
            f"{response.latency_ms}ms"
        )
        return parse_json_object(response.content)

    async def generate_tiers(self, source_text: str, path: str, revision: str) -> TierContent:
        data = await self._complete(
            GenerationTask.GENERATE_TIERS,
            TIERS_SYSTEM_PROMPT,
            build_tiers_prompt(source_text, path, revision),
        )
        return self._validator.validate_tiers(data)

    async def update_tiers(
        self,
        source_text: str,
        diff_text: str,
        existing: TierContent,
        path: str,
        revision: str,
    ) -> TierUpdate:
        data = await self._complete(
            GenerationTask.UPDATE_TIERS,
            UPDATE_SYSTEM_PROMPT,
            build_update_prompt(source_text, diff_text, existing, path, revision),
        )
        return self._validator.validate_update(data)

    async def regenerate_module_document(
        self,
        module_name: str,
        current_document: str,
        new_file_docs: list[FileDoc],
    ) -> str:
        data = await self._complete(
            GenerationTask.MODULE_DOCUMENT,
            MODULE_SYSTEM_PROMPT,
            build_module_prompt(module_name, current_document, new_file_docs),
        )
        return self._validator.validate_module_document(data.get("document"))

    async def recommend_assignments(
        self,
        unassigned: list[str],
        modules: list[ModuleOverview],
    ) -> list[AssignmentRecommendation]:
        """Ask for module assignments.

        Individually malformed recommendations are dropped with a warning;
        the rest are returned.
        """
        data = await self._complete(
            GenerationTask.ASSIGNMENTS,
            ASSIGNMENT_SYSTEM_PROMPT,
            build_assignment_prompt(unassigned, modules),
        )
        raw = data.get("recommendations")
        if not isinstance(raw, list):
            raise PermanentProviderError("Assignment response missing 'recommendations' list")

        recommendations = []
        for item in raw:
            try:
                recommendations.append(AssignmentRecommendation.model_validate(item))
            except ValidationError as e:
                logger.warning(f"Dropping malformed recommendation: {e.error_count()} error(s)")
        return recommendations
