"""Tests for generator response validation."""

import logging

import pytest

from docsync.config.models import GeneratorConfig, Tier
from docsync.generator.base import PermanentProviderError
from docsync.generator.validation import ResponseValidator, warn_if_shrunk


@pytest.fixture
def validator():
    return ResponseValidator(
        GeneratorConfig(
            min_lengths={Tier.MICRO: 5, Tier.STANDARD: 10, Tier.EXPANSIVE: 10},
            min_module_document_length=20,
        )
    )


VALID = {
    "micro": "Short blurb.",
    "standard": "# A\n\nStandard documentation.",
    "expansive": "---\ndoc_tier: expansive\n---\n# A\n\nExpansive documentation.",
}


class TestValidateTiers:
    """Tests for validate_tiers()."""

    def test_valid(self, validator):
        """Test valid tiers are keyed by Tier and unknown keys ignored."""
        tiers = validator.validate_tiers({**VALID, "notes": "ignored"})

        assert set(tiers) == {Tier.MICRO, Tier.STANDARD, Tier.EXPANSIVE}
        assert tiers[Tier.MICRO] == "Short blurb."

    @pytest.mark.parametrize(
        "override,message",
        [
            ({"micro": ""}, "empty"),
            ({"micro": 12}, "non-text"),
            ({"standard": "tiny"}, "minimum is 10"),
            ({"standard": "# A\n\n[To be written later]"}, "placeholder"),
            ({"expansive": "---\nbroken header line\n---\n# A\n\nBody text here."}, "malformed header"),
        ],
    )
    def test_rejected(self, validator, override, message):
        """Test each unusable tier is a permanent failure."""
        with pytest.raises(PermanentProviderError, match=message):
            validator.validate_tiers({**VALID, **override})

    def test_not_a_mapping(self, validator):
        """Test a non-object response is rejected."""
        with pytest.raises(PermanentProviderError, match="Expected an object"):
            validator.validate_tiers(["micro"])


class TestValidateUpdate:
    """Tests for validate_update()."""

    def test_nulls_pass_through(self, validator):
        """Test null tiers are allowed and others still checked."""
        update = validator.validate_update({"micro": None, "standard": VALID["standard"]})

        assert update == {Tier.MICRO: None, Tier.STANDARD: VALID["standard"], Tier.EXPANSIVE: None}

    def test_non_null_checked(self, validator):
        """Test a provided tier must still be valid."""
        with pytest.raises(PermanentProviderError):
            validator.validate_update({"standard": "[TODO]"})


class TestValidateModuleDocument:
    """Tests for validate_module_document()."""

    def test_valid(self, validator):
        """Test a document with an Overview passes."""
        text = "# Users\n\n## Overview\nUsers groups account code."
        assert validator.validate_module_document(text) == text

    def test_short(self, validator):
        """Test a document under the minimum length is rejected."""
        with pytest.raises(PermanentProviderError, match="minimum"):
            validator.validate_module_document("## Overview\nx")

    def test_find_placeholder(self, validator):
        """Test markers match case-insensitively."""
        assert validator.find_placeholder("See [Describe the flow]") == "[describe"
        assert validator.find_placeholder("All good [1]") is None


class TestWarnIfShrunk:
    """Tests for warn_if_shrunk()."""

    def test_large_shrink_warns(self, caplog):
        """Test content 50% shorter logs a warning."""
        with caplog.at_level(logging.WARNING, logger="docsync.generator.validation"):
            assert warn_if_shrunk("app/A.php", Tier.STANDARD, "x" * 100, "x" * 50)
        assert "50.0% shorter" in caplog.text

    def test_small_changes_ignored(self):
        """Test small shrinkage, growth and missing content do not warn."""
        assert not warn_if_shrunk("app/A.php", Tier.STANDARD, "x" * 100, "x" * 96)
        assert not warn_if_shrunk("app/A.php", Tier.STANDARD, "x" * 100, "x" * 200)
        assert not warn_if_shrunk("app/A.php", Tier.STANDARD, None, "x")
        assert not warn_if_shrunk("app/A.php", Tier.STANDARD, "x" * 100, None)
