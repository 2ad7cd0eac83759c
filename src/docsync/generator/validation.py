"""
Generator Response Validation.

Every generator response is checked before anything is written. A response
that fails validation raises PermanentProviderError: asking again with the
same input is not expected to help.
"""

import logging
from collections.abc import Mapping
from typing import Any

from docsync.config.models import ALL_TIERS, GeneratorConfig, Tier
from docsync.generator.base import PermanentProviderError, TierContent, TierUpdate
from docsync.storage.frontmatter import FrontMatterError, parse

logger = logging.getLogger(__name__)

# Relative shrinkage of an updated tier that triggers a warning
SHRINKAGE_WARNING_RATIO = 0.05


class ResponseValidator:
    """Validates tier content and module documents."""

    def __init__(self, config: GeneratorConfig) -> None:
        self._min_lengths = dict(config.min_lengths)
        self._min_module_length = config.min_module_document_length
        self._markers = [m.lower() for m in config.placeholder_markers]

    def find_placeholder(self, text: str) -> str | None:
        """Return the first placeholder marker found in text."""
        lowered = text.lower()
        for marker in self._markers:
            if marker in lowered:
                return marker
        return None

    def _check_text(self, label: str, value: Any, min_length: int) -> str:
        if not isinstance(value, str) or not value.strip():
            raise PermanentProviderError(f"{label}: empty or non-text content")
        if len(value.strip()) < min_length:
            raise PermanentProviderError(
                f"{label}: {len(value.strip())} characters, minimum is {min_length}"
            )
        marker = self.find_placeholder(value)
        if marker:
            raise PermanentProviderError(f"{label}: contains placeholder marker {marker!r}")
        return value

    def _check_tier(self, tier: Tier, value: Any) -> str:
        text = self._check_text(f"Tier {tier.value}", value, self._min_lengths.get(tier, 1))
        if tier is Tier.EXPANSIVE:
            try:
                parse(text)
            except FrontMatterError as e:
                raise PermanentProviderError(f"Tier expansive: malformed header: {e}") from e
        return text

    def validate_tiers(self, response: Mapping[Any, Any]) -> TierContent:
        """Validate a full three-tier response.

        Raises:
            PermanentProviderError: If a tier is missing, short, or a placeholder
        """
        normalized = _normalize_keys(response)
        missing = [tier.value for tier in ALL_TIERS if tier not in normalized]
        if missing:
            raise PermanentProviderError(f"Response missing tiers: {', '.join(missing)}")
        return {tier: self._check_tier(tier, normalized[tier]) for tier in ALL_TIERS}

    def validate_update(self, response: Mapping[Any, Any]) -> TierUpdate:
        """Validate an update response where tiers may be None.

        Raises:
            PermanentProviderError: If a non-null tier is unusable
        """
        normalized = _normalize_keys(response)
        return {
            tier: None if normalized.get(tier) is None else self._check_tier(tier, normalized[tier])
            for tier in ALL_TIERS
        }

    def validate_module_document(self, text: Any) -> str:
        """Validate a regenerated module narrative.

        Raises:
            PermanentProviderError: If short, a placeholder, malformed, or
                missing the Overview section
        """
        text = self._check_text("Module document", text, self._min_module_length)
        try:
            document = parse(text)
        except FrontMatterError as e:
            raise PermanentProviderError(f"Module document: malformed header: {e}") from e
        if document.section("Overview") is None:
            raise PermanentProviderError("Module document: missing '## Overview' section")
        return text


def _normalize_keys(response: Mapping[Any, Any]) -> dict[Tier, Any]:
    if not isinstance(response, Mapping):
        raise PermanentProviderError(f"Expected an object of tiers, got {type(response).__name__}")
    normalized: dict[Tier, Any] = {}
    for key, value in response.items():
        try:
            normalized[Tier(key)] = value
        except ValueError:
            logger.debug(f"Ignoring unknown tier key {key!r}")
    return normalized


def warn_if_shrunk(path: str, tier: Tier, existing: str | None, new: str | None) -> bool:
    """Log a warning when new content is markedly shorter than existing.

    Returns:
        True if a warning was logged
    """
    if not existing or new is None:
        return False
    old_len, new_len = len(existing), len(new)
    if new_len >= old_len * (1 - SHRINKAGE_WARNING_RATIO):
        return False
    logger.warning(
        f"Tier {tier.value} of {path} is {(old_len - new_len) / old_len:.1%} shorter than "
        f"existing (was {old_len} chars, now {new_len} chars)"
    )
    return True
