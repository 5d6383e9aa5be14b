"""Configuration defaults for llm_core, read from the environment."""

import os
from typing import List, Optional
from dotenv import load_dotenv

from .errors import ConfigurationError

load_dotenv()


def parse_list(env_value: Optional[str]) -> List[str]:
    """
    Parse a comma-separated list from an environment variable.

    Args:
        env_value: String like "anthropic,mistral, together"

    Returns:
        List of stripped, non-empty items
    """
    if not env_value:
        return []
    return [item.strip() for item in env_value.split(',') if item.strip()]


def _int_env(name: str, default: int) -> int:
    value = os.getenv(name, "")
    if not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}")


def _float_env(name: str, default: float) -> float:
    value = os.getenv(name, "")
    if not value.strip():
        return default
    try:
        return float(value)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {value!r}")


# Context window assumed for models missing from the catalog
# Example: LLM_DEFAULT_CONTEXT_LENGTH=8192
DEFAULT_CONTEXT_LENGTH = _int_env("LLM_DEFAULT_CONTEXT_LENGTH", 4096)

# Tokens reserved for the model's answer
DEFAULT_MAX_TOKENS = _int_env("LLM_DEFAULT_MAX_TOKENS", 1024)

DEFAULT_TEMPERATURE = _float_env("LLM_DEFAULT_TEMPERATURE", 0.5)

# Host process integration; empty means requests are made directly
# Example: LLM_HOST_IDE=vscode LLM_HOST_URL=http://127.0.0.1:65433
HOST_IDE = os.getenv("LLM_HOST_IDE", "")
HOST_URL = os.getenv("LLM_HOST_URL", "")


def validate_config() -> None:
    """
    Validate configuration on startup.

    Raises:
        ConfigurationError: If any configured value is unusable
    """
    errors = []

    if DEFAULT_CONTEXT_LENGTH <= 0:
        errors.append("LLM_DEFAULT_CONTEXT_LENGTH must be positive")

    if DEFAULT_MAX_TOKENS <= 0:
        errors.append("LLM_DEFAULT_MAX_TOKENS must be positive")
    elif DEFAULT_MAX_TOKENS >= DEFAULT_CONTEXT_LENGTH:
        errors.append(
            f"LLM_DEFAULT_MAX_TOKENS ({DEFAULT_MAX_TOKENS}) leaves no room for a prompt "
            f"in LLM_DEFAULT_CONTEXT_LENGTH ({DEFAULT_CONTEXT_LENGTH})"
        )

    if not 0.0 <= DEFAULT_TEMPERATURE <= 2.0:
        errors.append("LLM_DEFAULT_TEMPERATURE must be between 0 and 2")

    if HOST_IDE and not HOST_URL:
        errors.append("LLM_HOST_URL is required when LLM_HOST_IDE is set")

    if errors:
        error_msg = "Configuration validation failed:\n  " + "\n  ".join(errors)
        raise ConfigurationError(error_msg)
