"""Tests for configuration models."""

import pytest
from pydantic import ValidationError

from docsync.config.models import (
    ALL_TIERS,
    DocsyncConfig,
    GeneratorConfig,
    LoggingConfig,
    LogLevel,
    ModulesConfig,
    PathsConfig,
    ProjectConfig,
    SyncConfig,
    Tier,
)


class TestProjectConfig:
    """Tests for ProjectConfig."""

    def test_default_root(self):
        """Test the root defaults to the working directory."""
        assert ProjectConfig().root == "."

    def test_whitespace_root_rejected(self):
        """Test a blank root is rejected."""
        with pytest.raises(ValidationError):
            ProjectConfig(root="   ")


class TestPathsConfig:
    """Tests for PathsConfig."""

    def test_source_roots_get_trailing_slash(self):
        """Test roots are normalized to end in a slash."""
        paths = PathsConfig(source_roots=["app", "lib/"])
        assert paths.source_roots == ["app/", "lib/"]

    def test_empty_source_roots_rejected(self):
        """Test at least one source root is required."""
        with pytest.raises(ValidationError):
            PathsConfig(source_roots=[])


class TestModulesConfig:
    """Tests for ModulesConfig."""

    def test_defaults(self):
        """Test default assignment policy."""
        modules = ModulesConfig()
        assert modules.auto_assign is True
        assert modules.confidence_threshold == 0.7
        assert modules.min_files_per_module == 3

    def test_threshold_bounds(self):
        """Test the threshold must lie in [0, 1]."""
        with pytest.raises(ValidationError):
            ModulesConfig(confidence_threshold=1.5)
        with pytest.raises(ValidationError):
            ModulesConfig(confidence_threshold=-0.1)


class TestGeneratorConfig:
    """Tests for GeneratorConfig."""

    def test_min_lengths_cover_every_tier(self):
        """Test each tier has a default minimum length."""
        config = GeneratorConfig()
        assert set(config.min_lengths) == set(ALL_TIERS)

    def test_temperature_bounds(self):
        """Test temperature is bounded."""
        with pytest.raises(ValidationError):
            GeneratorConfig(temperature=3.0)


class TestSyncConfig:
    """Tests for SyncConfig."""

    def test_defaults(self):
        """Test default scheduling policy."""
        sync = SyncConfig()
        assert sync.max_attempts == 3
        assert sync.rate_limit_delay == 60.0
        assert sync.module_rate_limit_delay == 120.0

    def test_concurrency_must_be_positive(self):
        """Test at least one unit runs at a time."""
        with pytest.raises(ValidationError):
            SyncConfig(concurrency=0)


class TestLoggingConfig:
    """Tests for LoggingConfig."""

    def test_level_case_insensitive(self):
        """Test lower-case level names are accepted."""
        assert LoggingConfig(level="error").level == LogLevel.ERROR


class TestDocsyncConfig:
    """Tests for the root configuration."""

    def test_file_types_normalized(self):
        """Test leading dots are stripped and case folded."""
        config = DocsyncConfig(file_types=[".PHP", "vue", " "])
        assert config.file_types == ["php", "vue"]

    def test_missing_tier_rejected(self):
        """Test every tier needs a directory."""
        with pytest.raises(ValidationError, match="Missing tier directories"):
            DocsyncConfig(tiers={Tier.MICRO: "short", Tier.STANDARD: "medium"})

    def test_log_paths(self):
        """Test log paths join the logs directory and filenames."""
        config = DocsyncConfig(paths=PathsConfig(logs="logs"))
        assert config.update_log_path == "logs/documentation-update-log.json"
        assert config.assignment_log_path == "logs/module-assignment-log.json"

    def test_to_yaml_dict_round_trip(self):
        """Test the YAML dict rebuilds an equal configuration."""
        config = DocsyncConfig(modules=ModulesConfig(auto_assign=False))
        assert DocsyncConfig(**config.to_yaml_dict()) == config
