"""
Configuration Data Models.

Defines all configuration schemas using Pydantic for validation
and type safety.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Tier(str, Enum):
    """Documentation detail level generated per source file."""

    MICRO = "micro"
    STANDARD = "standard"
    EXPANSIVE = "expansive"


ALL_TIERS: tuple[Tier, ...] = (Tier.MICRO, Tier.STANDARD, Tier.EXPANSIVE)


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


class ProjectConfig(BaseModel):
    """Configuration for the repository being documented.

    Attributes:
        root: Repository root; every other path is relative to it
    """

    root: str = Field(
        default=".",
        description="Repository root",
        examples=[".", "/srv/app"],
    )

    @field_validator("root")
    @classmethod
    def validate_root(cls, v: str) -> str:
        """Validate that root is not empty."""
        if not v.strip():
            raise ValueError("Project root cannot be empty")
        return v


class PathsConfig(BaseModel):
    """Source and output locations, relative to the project root.

    Attributes:
        source_roots: Directories whose files are documented
        output: Root directory of tier artifacts
        logs: Directory holding the sync log and assignment index
        module_content: Directory of module narrative documents
        module_metadata: Directory of module metadata records
    """

    source_roots: list[str] = Field(
        default_factory=lambda: ["app/", "resources/js/"],
        description="Documented source roots",
    )
    output: str = Field(
        default="docs/source_documents/",
        description="Tier artifact root",
    )
    logs: str = Field(
        default="docs/docsync_logs/",
        description="Log directory",
    )
    module_content: str = Field(
        default="docs/source_documents/modules/content/",
        description="Module narrative documents",
    )
    module_metadata: str = Field(
        default="docs/source_documents/modules/metadata/",
        description="Module metadata records",
    )

    @field_validator("source_roots")
    @classmethod
    def validate_source_roots(cls, v: list[str]) -> list[str]:
        """Normalize roots to a trailing slash."""
        if not v:
            raise ValueError("At least one source root is required")
        return [root if root.endswith("/") else f"{root}/" for root in v]


class ModulesConfig(BaseModel):
    """Module assignment behaviour.

    Attributes:
        auto_assign: Apply generator recommendations during a sync run
        confidence_threshold: Minimum confidence for applying a recommendation
        min_files_per_module: Minimum files for a suggested or created module
        assignment_log: Assignment index filename (inside paths.logs)
        update_log: Sync log filename (inside paths.logs)
    """

    auto_assign: bool = Field(default=True, description="Apply recommendations")
    confidence_threshold: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Auto-assignment confidence threshold",
    )
    min_files_per_module: int = Field(
        default=3,
        ge=1,
        description="Minimum files per module suggestion",
    )
    assignment_log: str = Field(
        default="module-assignment-log.json",
        description="Assignment index filename",
    )
    update_log: str = Field(
        default="documentation-update-log.json",
        description="Sync log filename",
    )


class GeneratorConfig(BaseModel):
    """Configuration for the text generation backend.

    Attributes:
        model: Model identifier sent to the provider
        base_url: Provider API base URL
        temperature: Sampling temperature
        max_tokens: Maximum output tokens
        timeout_seconds: HTTP request timeout
        max_http_retries: Retries for 5xx responses inside the client
        requests_per_minute: Client side rate limit
        thinking_effort: Default reasoning effort (low, medium, high)
        effort_overrides: Per-task reasoning effort
        min_lengths: Minimum accepted length per tier
        min_module_document_length: Minimum accepted module document length
        placeholder_markers: Case-insensitive markers that reject a response
    """

    model: str = Field(
        default="openai/o3",
        description="Model identifier",
        examples=["openai/o3", "anthropic/claude-sonnet-4-5"],
    )
    base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="Provider base URL",
    )
    temperature: float = Field(default=0.3, ge=0.0, le=2.0)
    max_tokens: int = Field(default=25000, ge=1)
    timeout_seconds: float = Field(default=300.0, gt=0)
    max_http_retries: int = Field(default=3, ge=1)
    requests_per_minute: int = Field(default=60, ge=1)
    thinking_effort: str = Field(
        default="high",
        description="Default reasoning effort",
    )
    effort_overrides: dict[str, str] = Field(
        default_factory=dict,
        description="Reasoning effort per task",
    )
    min_lengths: dict[Tier, int] = Field(
        default_factory=lambda: {
            Tier.MICRO: 40,
            Tier.STANDARD: 200,
            Tier.EXPANSIVE: 400,
        },
        description="Minimum characters per tier",
    )
    min_module_document_length: int = Field(default=200, ge=0)
    placeholder_markers: list[str] = Field(
        default_factory=lambda: [
            "[insert",
            "[to be",
            "[describe",
            "[add",
            "[your",
            "[todo",
            "[placeholder",
        ],
        description="Rejected placeholder markers",
    )


class SyncConfig(BaseModel):
    """Scheduling policy for sync units.

    Attributes:
        max_attempts: Attempts per unit for retryable failures
        unit_timeout_seconds: Wall-clock limit per unit attempt
        rate_limit_delay: Requeue delay for rate-limited file units
        module_rate_limit_delay: Requeue delay for rate-limited module units
        max_requeues: Requeues per unit before it is left pending
        concurrency: Units executing at once
    """

    max_attempts: int = Field(default=3, ge=1)
    unit_timeout_seconds: float = Field(default=300.0, gt=0)
    rate_limit_delay: float = Field(default=60.0, ge=0)
    module_rate_limit_delay: float = Field(default=120.0, ge=0)
    max_requeues: int = Field(default=3, ge=0)
    concurrency: int = Field(default=4, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level for the docsync logger
        file: Optional log file
        rich: Use rich console formatting
    """

    level: LogLevel = Field(default=LogLevel.INFO)
    file: Optional[str] = Field(default=None)
    rich: bool = Field(default=True)

    @field_validator("level", mode="before")
    @classmethod
    def upper_level(cls, v: Any) -> Any:
        """Accept lower-case level names."""
        return v.upper() if isinstance(v, str) else v


class DocsyncConfig(BaseModel):
    """Root configuration for the entire system.

    Constructed once and handed to every component constructor.

    Attributes:
        project: Repository configuration
        paths: Source and output locations
        file_types: Documented file extensions
        exclude_patterns: Path substrings never documented
        tiers: Tier to directory mapping
        modules: Module assignment behaviour
        generator: Generation backend
        sync: Unit scheduling policy
        logging: Logging setup
        debug: Enable debug mode
        dry_run: Detect changes without writing
    """

    project: ProjectConfig = Field(default_factory=ProjectConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    file_types: list[str] = Field(
        default_factory=lambda: ["php", "js", "vue", "jsx", "ts", "tsx"],
        description="Documented extensions",
    )
    exclude_patterns: list[str] = Field(
        default_factory=lambda: ["tests/", "test.", "Test."],
        description="Excluded path substrings",
    )
    tiers: dict[Tier, str] = Field(
        default_factory=lambda: {
            Tier.MICRO: "short",
            Tier.STANDARD: "medium",
            Tier.EXPANSIVE: "full",
        },
        description="Tier directories",
    )
    modules: ModulesConfig = Field(default_factory=ModulesConfig)
    generator: GeneratorConfig = Field(default_factory=GeneratorConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    debug: bool = Field(default=False)
    dry_run: bool = Field(default=False)

    @field_validator("file_types")
    @classmethod
    def normalize_file_types(cls, v: list[str]) -> list[str]:
        """Strip leading dots from extensions."""
        return [ext.lstrip(".").lower() for ext in v if ext.strip()]

    @model_validator(mode="after")
    def validate_tiers(self) -> "DocsyncConfig":
        """Validate that every tier maps to a distinct directory."""
        missing = [tier.value for tier in ALL_TIERS if tier not in self.tiers]
        if missing:
            raise ValueError(f"Missing tier directories: {', '.join(missing)}")
        if len(set(self.tiers.values())) != len(self.tiers):
            raise ValueError("Tier directories must be distinct")
        return self

    @property
    def root_path(self) -> Path:
        """Repository root as a Path."""
        return Path(self.project.root)

    @property
    def update_log_path(self) -> str:
        """Sync log location relative to the root."""
        return f"{self.paths.logs.rstrip('/')}/{self.modules.update_log}"

    @property
    def assignment_log_path(self) -> str:
        """Assignment index location relative to the root."""
        return f"{self.paths.logs.rstrip('/')}/{self.modules.assignment_log}"

    def to_yaml_dict(self) -> dict[str, Any]:
        """Convert to YAML-friendly dictionary.

        Returns:
            Dict suitable for YAML serialization
        """
        return self.model_dump(mode="json", exclude_none=True)
