"""Model metadata: known context windows and per-model default options."""

import copy
from typing import Any, Dict, Optional
from dataclasses import dataclass, field

from ..config import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE


@dataclass
class ModelInfo:
    """Metadata for a specific model."""
    id: str                    # Model name as passed to the provider (e.g., "gpt-4")
    context_length: int = 0    # Context window size (0 = unknown)
    completion_options: Dict[str, Any] = field(default_factory=dict)  # Default overrides


# Global defaults, the lowest layer of every request's options
DEFAULT_ARGS: Dict[str, Any] = {
    "max_tokens": DEFAULT_MAX_TOKENS,
    "temperature": DEFAULT_TEMPERATURE,
}


# =============================================================================
# Model Catalog
# =============================================================================
# Models not in this catalog can still be used - they get the default
# context length and no option overrides.

MODEL_CATALOG: Dict[str, ModelInfo] = {}

def _register_model(model: ModelInfo) -> None:
    """Register a model in the catalog."""
    MODEL_CATALOG[model.id] = model


# OpenAI
_register_model(ModelInfo(id="gpt-3.5-turbo", context_length=4096))
_register_model(ModelInfo(id="gpt-3.5-turbo-0613", context_length=4096))
_register_model(ModelInfo(id="gpt-3.5-turbo-16k", context_length=16_384))
_register_model(ModelInfo(id="gpt-4", context_length=8192))
_register_model(ModelInfo(id="gpt-4-32k", context_length=32_768))
_register_model(ModelInfo(id="gpt-4-turbo-preview", context_length=128_000))
_register_model(ModelInfo(id="gpt-4-vision-preview", context_length=128_000))
_register_model(ModelInfo(id="gpt-4-0125-preview", context_length=128_000))
_register_model(ModelInfo(id="gpt-4-1106-preview", context_length=128_000))

# Azure deployment names
_register_model(ModelInfo(id="gpt-35-turbo", context_length=4096))
_register_model(ModelInfo(id="gpt-35-turbo-0613", context_length=4096))
_register_model(ModelInfo(id="gpt-35-turbo-16k", context_length=16_384))

# Open models with prompt syntax quirks
_register_model(ModelInfo(
    id="codellama-70b",
    context_length=4096,
    completion_options={"stop": ["<step>", "Source:"]},
))
_register_model(ModelInfo(
    id="phind-codellama-34b",
    context_length=16_384,
    completion_options={"stop": ["### User Message"]},
))
_register_model(ModelInfo(
    id="deepseek-7b",
    context_length=16_384,
    completion_options={"stop": ["<|EOT|>"]},
))
_register_model(ModelInfo(
    id="deepseek-33b",
    context_length=16_384,
    completion_options={"stop": ["<|EOT|>"]},
))
_register_model(ModelInfo(
    id="mistral-7b",
    context_length=8192,
    completion_options={"stop": ["[INST]"]},
))

CONTEXT_LENGTH_FOR_MODEL: Dict[str, int] = {
    model_id: info.context_length
    for model_id, info in MODEL_CATALOG.items()
    if info.context_length
}


# =============================================================================
# Helper Functions
# =============================================================================

def get_model_info(model: str) -> Optional[ModelInfo]:
    """
    Get metadata for a model by name.

    Args:
        model: Model name (e.g., "gpt-4")

    Returns:
        ModelInfo if found in catalog, None otherwise
    """
    return MODEL_CATALOG.get(model)


def get_context_length(model: str) -> Optional[int]:
    """Return the catalogued context window of ``model``, if known."""
    return CONTEXT_LENGTH_FOR_MODEL.get(model)


def get_model_completion_options(model: str) -> Dict[str, Any]:
    """
    Get the default option overrides registered for a model.

    Args:
        model: Model name

    Returns:
        A copy of the overrides, empty for uncatalogued models
    """
    info = get_model_info(model)
    if info is None:
        return {}
    return copy.deepcopy(info.completion_options)
