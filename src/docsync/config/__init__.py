"""
docsync - Configuration Management

This module provides configuration management including:
- YAML configuration loading and validation
- Environment variable handling
- Tier, module, generator and scheduling settings
"""

from docsync.config.environment import (
    EnvironmentConfig,
    ensure_dotenv_loaded,
    get_api_key,
    load_environment,
    reset_environment,
)
from docsync.config.loader import (
    CONFIG_ENV_VAR,
    DEFAULT_CONFIG_PATHS,
    ENV_VAR_OVERRIDES,
    ConfigLoader,
    ConfigurationError,
    create_default_config,
    get_config,
    load_config,
    load_config_from_env,
    reset_config,
)
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

__all__ = [
    # Config models
    "ALL_TIERS",
    "DocsyncConfig",
    "GeneratorConfig",
    "LoggingConfig",
    "LogLevel",
    "ModulesConfig",
    "PathsConfig",
    "ProjectConfig",
    "SyncConfig",
    "Tier",
    # Loader
    "ConfigLoader",
    "ConfigurationError",
    "load_config",
    "load_config_from_env",
    "get_config",
    "reset_config",
    "create_default_config",
    "CONFIG_ENV_VAR",
    "DEFAULT_CONFIG_PATHS",
    "ENV_VAR_OVERRIDES",
    # Environment
    "EnvironmentConfig",
    "load_environment",
    "ensure_dotenv_loaded",
    "get_api_key",
    "reset_environment",
]
