"""
Configuration Loader.

Reads docsync.yaml, resolves ${VAR} references against the process
environment, layers DOCSYNC_* overrides on top and validates the result
into a DocsyncConfig.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from docsync.config.environment import load_environment
from docsync.config.models import DocsyncConfig

# Searched in order when no path is given
DEFAULT_CONFIG_PATHS = [
    "docsync.yaml",
    "docsync.yml",
    ".docsync.yaml",
    ".docsync.yml",
]

CONFIG_ENV_VAR = "DOCSYNC_CONFIG"

ENV_VAR_OVERRIDES = {
    "DOCSYNC_PROJECT_ROOT": "project.root",
    "DOCSYNC_OUTPUT_PATH": "paths.output",
    "DOCSYNC_LOGS_PATH": "paths.logs",
    "DOCSYNC_MODEL": "generator.model",
    "DOCSYNC_THINKING_EFFORT": "generator.thinking_effort",
    "DOCSYNC_CONFIDENCE_THRESHOLD": "modules.confidence_threshold",
    "DOCSYNC_AUTO_ASSIGN": "modules.auto_assign",
    "DOCSYNC_CONCURRENCY": "sync.concurrency",
    "DOCSYNC_RATE_LIMIT_DELAY": "sync.rate_limit_delay",
    "DOCSYNC_LOG_LEVEL": "logging.level",
    "DOCSYNC_LOG_FILE": "logging.file",
    "DOCSYNC_DEBUG": "debug",
    "DOCSYNC_DRY_RUN": "dry_run",
}

_TRUE_WORDS = frozenset({"true", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "no", "off"})
_MAX_LISTED_ERRORS = 5


class ConfigurationError(Exception):
    """A configuration file could not be read or failed validation.

    Attributes:
        errors: Pydantic error dicts, empty for read errors
        path: The offending file, if one was involved
    """

    def __init__(
        self,
        message: str,
        errors: list[dict] | None = None,
        path: Path | None = None,
    ) -> None:
        super().__init__(message)
        self.errors = errors or []
        self.path = path

    def __str__(self) -> str:
        lines = [super().__str__() + (f" (file: {self.path})" if self.path else "")]
        for err in self.errors[:_MAX_LISTED_ERRORS]:
            field = ".".join(str(part) for part in err.get("loc", ()))
            lines.append(f"  - {field}: {err.get('msg', 'Unknown error')}")
        hidden = len(self.errors) - _MAX_LISTED_ERRORS
        if hidden > 0:
            lines.append(f"  ... and {hidden} more errors")
        return "\n".join(lines)


def coerce_scalar(value: str) -> Any:
    """Turn an environment string into the scalar it spells.

    Empty strings become None so the model default applies.
    """
    if value == "":
        return None
    lowered = value.lower()
    if lowered in _TRUE_WORDS:
        return True
    if lowered in _FALSE_WORDS:
        return False
    try:
        if "." in value or "e" in lowered:
            return float(value)
        return int(value)
    except ValueError:
        return value


def _drop_nones(data: Any) -> Any:
    if isinstance(data, dict):
        return {key: _drop_nones(val) for key, val in data.items() if val is not None}
    if isinstance(data, list):
        return [_drop_nones(item) for item in data]
    return data


def _assign_dotted(target: dict[str, Any], dotted: str, value: Any) -> None:
    *parents, leaf = dotted.split(".")
    node = target
    for name in parents:
        if not isinstance(node.get(name), dict):
            node[name] = {}
        node = node[name]
    node[leaf] = value


class ConfigLoader:
    """Builds a DocsyncConfig from a YAML file and the environment.

    References take the form ${VAR}, ${VAR:-fallback} or ${VAR:fallback}.
    A value that is nothing but one reference is coerced to bool or number;
    references embedded in longer strings are spliced in as text. Unknown
    references without a fallback are kept verbatim.

    Usage:
        config = ConfigLoader("docsync.yaml").load()
        config = ConfigLoader().load_from_env()
    """

    ENV_PATTERN = re.compile(r"\$\{(\w+)(?::-?([^}]*))?\}")

    def __init__(self, config_path: str | Path | None = None, env_file: str = ".env") -> None:
        self._config_path = Path(config_path) if config_path else None
        self._env_file = env_file
        self._config: DocsyncConfig | None = None
        self._loaded_from_path: Path | None = None

    @property
    def config_path(self) -> Path | None:
        return self._config_path

    @property
    def loaded_from_path(self) -> Path | None:
        """File the current config came from, None when built from defaults."""
        return self._loaded_from_path

    def get(self) -> DocsyncConfig:
        if self._config is None:
            raise RuntimeError("Configuration not loaded. Call load() or load_from_env() first.")
        return self._config

    def load(self, path: str | Path | None = None) -> DocsyncConfig:
        """Read, resolve and validate the configuration.

        Args:
            path: Replaces the path given at construction. With no path at
                all the model defaults plus environment overrides are used.

        Raises:
            FileNotFoundError: The config file does not exist
            ConfigurationError: The file is unreadable or fails validation
        """
        if path is not None:
            self._config_path = Path(path)

        load_environment(self._env_file)

        self._loaded_from_path = self._config_path
        raw = self._read_file() if self._config_path else {}

        resolved = self._resolve(raw)
        for env_var, dotted in ENV_VAR_OVERRIDES.items():
            override = os.environ.get(env_var)
            if override is not None:
                _assign_dotted(resolved, dotted, coerce_scalar(override))

        try:
            self._config = DocsyncConfig(**_drop_nones(resolved))
        except ValidationError as e:
            raise ConfigurationError(
                f"Configuration validation failed: {e.error_count()} errors",
                errors=e.errors(),
                path=self._loaded_from_path,
            ) from e
        return self._config

    def load_from_env(self) -> DocsyncConfig:
        """Load from $DOCSYNC_CONFIG, else the first default file present, else defaults.

        Raises:
            FileNotFoundError: DOCSYNC_CONFIG names a file that does not exist
            ConfigurationError: The chosen file fails validation
        """
        load_environment(self._env_file)

        named = os.environ.get(CONFIG_ENV_VAR)
        if named:
            if not Path(named).exists():
                raise FileNotFoundError(f"Config file specified by {CONFIG_ENV_VAR} not found: {named}")
            return self.load(named)

        found = next((Path(p) for p in DEFAULT_CONFIG_PATHS if Path(p).exists()), None)
        if found is not None:
            return self.load(found)

        self._config_path = None
        return self.load()

    def save(self, path: str | Path | None = None) -> None:
        """Write the loaded configuration back out as YAML.

        Raises:
            ValueError: Nothing loaded yet, or no destination known
        """
        if self._config is None:
            raise ValueError("No configuration loaded")
        destination = Path(path) if path else self._config_path
        if destination is None:
            raise ValueError("No path specified for saving")
        with open(destination, "w") as f:
            yaml.safe_dump(self._config.to_yaml_dict(), f, default_flow_style=False, sort_keys=False)

    def _read_file(self) -> dict[str, Any]:
        if not self._config_path.exists():
            raise FileNotFoundError(f"Config file not found: {self._config_path}")
        try:
            with open(self._config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}", path=self._config_path) from e
        if not isinstance(data, dict):
            raise ConfigurationError("Top level of config must be a mapping", path=self._config_path)
        return data

    def _resolve(self, data: Any) -> Any:
        if isinstance(data, dict):
            return {key: self._resolve(val) for key, val in data.items()}
        if isinstance(data, list):
            return [self._resolve(item) for item in data]
        if isinstance(data, str):
            return self._resolve_string(data)
        return data

    def _resolve_string(self, text: str) -> Any:
        whole = self.ENV_PATTERN.fullmatch(text)
        if whole:
            found = os.environ.get(whole.group(1), whole.group(2))
            return text if found is None else coerce_scalar(found)

        def splice(match: re.Match[str]) -> str:
            found = os.environ.get(match.group(1), match.group(2))
            return match.group(0) if found is None else found

        return self.ENV_PATTERN.sub(splice, text)


# Process-wide config for the CLI entry point
_global_loader: ConfigLoader | None = None
_global_config: DocsyncConfig | None = None


def load_config(config_path: str | Path | None = None, env_file: str = ".env") -> DocsyncConfig:
    """Load a specific file (or defaults when None) and make it the global config."""
    global _global_loader, _global_config

    _global_loader = ConfigLoader(config_path, env_file)
    _global_config = _global_loader.load()
    return _global_config


def load_config_from_env(env_file: str = ".env") -> DocsyncConfig:
    global _global_loader, _global_config

    _global_loader = ConfigLoader(env_file=env_file)
    _global_config = _global_loader.load_from_env()
    return _global_config


def get_config() -> DocsyncConfig:
    if _global_config is None:
        raise RuntimeError("Configuration not loaded. Call load_config() or load_config_from_env() first.")
    return _global_config


def reset_config() -> None:
    global _global_loader, _global_config
    _global_loader = None
    _global_config = None


def create_default_config(project_root: str = ".") -> DocsyncConfig:
    """Defaults for a project rooted at project_root."""
    from docsync.config.models import ProjectConfig

    return DocsyncConfig(project=ProjectConfig(root=project_root))
