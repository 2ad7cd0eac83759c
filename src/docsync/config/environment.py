"""
Environment Variable Handling.

API keys never live in the YAML configuration. They are read from the
process environment, optionally seeded once from a `.env` file via
python-dotenv.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr

logger = logging.getLogger(__name__)

OPENROUTER_KEY_VAR = "OPENROUTER_API_KEY"

# Track whether dotenv has been loaded
_dotenv_loaded: bool = False
_environment: "EnvironmentConfig | None" = None


def ensure_dotenv_loaded(env_file: str = ".env") -> bool:
    """Load a .env file into os.environ once per process.

    Variables already set in the environment win over the file.

    Returns:
        True if a .env file was found on this or an earlier call
    """
    global _dotenv_loaded

    if _dotenv_loaded:
        return True
    _dotenv_loaded = True

    for env_path in (Path(env_file), Path.cwd() / env_file):
        if env_path.exists():
            load_dotenv(env_path, override=False)
            logger.debug(f"Loaded environment from {env_path}")
            return True
    return False


class EnvironmentConfig(BaseModel):
    """Secrets read from the environment."""

    openrouter_api_key: SecretStr | None = Field(default=None, description="OpenRouter API key")
    env_file: str = Field(default=".env", description="Path to .env file")


def load_environment(env_file: str = ".env") -> EnvironmentConfig:
    """Read secrets from the environment, caching the result per env file."""
    global _environment

    if _environment is None or _environment.env_file != env_file:
        ensure_dotenv_loaded(env_file)
        key = os.environ.get(OPENROUTER_KEY_VAR)
        _environment = EnvironmentConfig(
            openrouter_api_key=SecretStr(key) if key else None,
            env_file=env_file,
        )
    return _environment


def get_api_key(provider: str = "openrouter") -> str | None:
    """Get the API key for a provider, or None if it is not set."""
    config = load_environment()
    if provider == "openrouter" and config.openrouter_api_key:
        return config.openrouter_api_key.get_secret_value()
    return None


def reset_environment() -> None:
    """Forget cached secrets and the dotenv load, for tests and reloads."""
    global _environment, _dotenv_loaded
    _environment = None
    _dotenv_loaded = False
