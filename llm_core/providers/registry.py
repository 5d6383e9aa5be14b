"""Model capability registry and template family detection."""

import os
from typing import FrozenSet, Iterable, Optional, Set, Tuple

from ..config import parse_list
from .types import TemplateType


DEFAULT_TEMPLATING_PROVIDERS = frozenset({"lmstudio", "openai", "ollama", "together"})

DEFAULT_IMAGE_PROVIDERS = frozenset({"openai", "ollama", "google-palm", "free-trial"})

DEFAULT_PARALLEL_PROVIDERS = frozenset({
    "anthropic",
    "bedrock",
    "deepinfra",
    "gemini",
    "google-palm",
    "huggingface-inference-api",
    "huggingface-tgi",
    "mistral",
    "free-trial",
    "replicate",
    "together",
})

# Providers whose parallelism depends on the model being a GPT
DEFAULT_GPT_MARKER_PROVIDERS = frozenset({"openai"})

DEFAULT_VISION_MARKERS = ("llava",)

DEFAULT_VISION_MODELS = frozenset({"gpt-4-vision-preview"})

DEFAULT_PROVIDER_VISION_MODELS = frozenset({
    ("google-palm", "gemini-ultra"),
    ("free-trial", "gemini-ultra"),
})

# Markers of hosted models that take structured messages
SELF_TEMPLATING_MARKERS = ("gpt", "chat-bison", "pplx", "gemini")

# Ordered: earlier rules are more specific than later ones
_TEMPLATE_RULES: Tuple[Tuple[Tuple[str, ...], TemplateType], ...] = (
    (("llava",), TemplateType.LLAVA),
    (("xwin",), TemplateType.XWIN_CODER),
    (("dolphin",), TemplateType.CHATML),
    (("phi2",), TemplateType.PHI2),
    (("phind",), TemplateType.PHIND),
    (("llama",), TemplateType.LLAMA2),
    (("zephyr",), TemplateType.ZEPHYR),
    (("claude",), TemplateType.ANTHROPIC),
    (("alpaca", "wizard"), TemplateType.ALPACA),
    (("mistral",), TemplateType.LLAMA2),
    (("deepseek",), TemplateType.DEEPSEEK),
    (("ninja", "openchat"), TemplateType.OPENCHAT),
    (("neural-chat",), TemplateType.NEURAL_CHAT),
)


def detect_template_type(model: str) -> TemplateType:
    """
    Classify a model name into its prompt template family.

    Args:
        model: Model name, any case

    Returns:
        The matching TemplateType; TemplateType.NONE for hosted models that
        render their own prompts, TemplateType.CHATML when nothing matches
    """
    lower = model.lower()

    if "codellama" in lower and "70b" in lower:
        return TemplateType.CODELLAMA_70B

    if any(marker in lower for marker in SELF_TEMPLATING_MARKERS):
        return TemplateType.NONE

    for markers, template_type in _TEMPLATE_RULES:
        if any(marker in lower for marker in markers):
            return template_type

    return TemplateType.CHATML


class ModelCapabilityRegistry:
    """Registry of which providers and models support which features.

    Every lookup is a pure function of the registry's tables; the tables
    are only changed through the ``register_*`` methods, normally once at
    startup.
    """

    def __init__(
        self,
        templating_providers: Iterable[str] = DEFAULT_TEMPLATING_PROVIDERS,
        image_providers: Iterable[str] = DEFAULT_IMAGE_PROVIDERS,
        parallel_providers: Iterable[str] = DEFAULT_PARALLEL_PROVIDERS,
        gpt_marker_providers: Iterable[str] = DEFAULT_GPT_MARKER_PROVIDERS,
        vision_markers: Iterable[str] = DEFAULT_VISION_MARKERS,
        vision_models: Iterable[str] = DEFAULT_VISION_MODELS,
        provider_vision_models: Iterable[Tuple[str, str]] = DEFAULT_PROVIDER_VISION_MODELS,
    ):
        """Initialize the registry, by default with the built-in tables."""
        self._templating_providers: Set[str] = set(templating_providers)
        self._image_providers: Set[str] = set(image_providers)
        self._parallel_providers: Set[str] = set(parallel_providers)
        self._gpt_marker_providers: Set[str] = set(gpt_marker_providers)
        self._vision_markers: Set[str] = set(vision_markers)
        self._vision_models: Set[str] = set(vision_models)
        self._provider_vision_models: Set[Tuple[str, str]] = set(provider_vision_models)

    def register_from_env(self) -> None:
        """
        Extend the tables from environment variables.

        Looks for comma-separated lists in env:
        - LLM_TEMPLATING_PROVIDERS
        - LLM_IMAGE_PROVIDERS
        - LLM_PARALLEL_PROVIDERS
        - LLM_VISION_MODELS
        """
        self.register_templating_provider(*parse_list(os.getenv("LLM_TEMPLATING_PROVIDERS")))
        self.register_image_provider(*parse_list(os.getenv("LLM_IMAGE_PROVIDERS")))
        self.register_parallel_provider(*parse_list(os.getenv("LLM_PARALLEL_PROVIDERS")))
        self.register_vision_model(*parse_list(os.getenv("LLM_VISION_MODELS")))

    def register_templating_provider(self, *providers: str) -> None:
        """Mark providers as rendering prompts themselves."""
        self._templating_providers.update(providers)

    def register_image_provider(self, *providers: str) -> None:
        """Mark providers as able to carry image parts."""
        self._image_providers.update(providers)

    def register_parallel_provider(self, *providers: str) -> None:
        """Mark providers as tolerating concurrent in-flight requests."""
        self._parallel_providers.update(providers)

    def register_vision_model(self, *models: str, provider: Optional[str] = None) -> None:
        """
        Mark models as accepting images.

        Args:
            *models: Exact model names
            provider: Restrict the rule to one provider
        """
        if provider is None:
            self._vision_models.update(models)
        else:
            self._provider_vision_models.update((provider, model) for model in models)

    @property
    def templating_providers(self) -> FrozenSet[str]:
        return frozenset(self._templating_providers)

    @property
    def image_providers(self) -> FrozenSet[str]:
        return frozenset(self._image_providers)

    @property
    def parallel_providers(self) -> FrozenSet[str]:
        return frozenset(self._parallel_providers)

    def handles_templating(self, provider: str) -> bool:
        """True if the provider accepts structured messages and renders them itself."""
        return provider in self._templating_providers

    def supports_images(self, provider: str, model: str) -> bool:
        """
        Check if a model accepts image parts.

        Args:
            provider: Provider identifier
            model: Model name

        Returns:
            True if images can be sent to this provider/model pair
        """
        if provider not in self._image_providers:
            return False

        if any(marker in model for marker in self._vision_markers):
            return True

        if model in self._vision_models:
            return True

        return (provider, model) in self._provider_vision_models

    def supports_parallel_generation(self, provider: str, model: str) -> bool:
        """
        Check if several requests may be in flight at once.

        Advisory only: nothing in llm_core throttles on this flag.
        """
        if provider in self._gpt_marker_providers:
            return "gpt" in model

        return provider in self._parallel_providers

    def detect_template_type(self, model: str) -> TemplateType:
        """Classify ``model``; see the module-level ``detect_template_type``."""
        return detect_template_type(model)


# Global registry instance
_registry: Optional[ModelCapabilityRegistry] = None


def get_registry() -> ModelCapabilityRegistry:
    """Get the global capability registry, initializing if needed."""
    global _registry
    if _registry is None:
        _registry = ModelCapabilityRegistry()
        _registry.register_from_env()
    return _registry
