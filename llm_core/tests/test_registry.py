"""Unit tests for providers/registry module."""

import pytest
from llm_core.providers import registry as registry_module
from llm_core.providers.registry import (
    ModelCapabilityRegistry,
    detect_template_type,
    get_registry,
)
from llm_core.providers.types import TemplateType


class TestSupportsImages:
    """Tests for ModelCapabilityRegistry.supports_images."""

    def test_openai_vision_preview(self, registry):
        """gpt-4-vision-preview is an exact vision id under an image provider."""
        assert registry.supports_images("openai", "gpt-4-vision-preview")

    def test_openai_text_model(self, registry):
        """Plain GPT models do not take images."""
        assert not registry.supports_images("openai", "gpt-3.5-turbo")

    def test_gemini_ultra_under_google_palm(self, registry):
        """gemini-ultra takes images only under its own providers."""
        assert registry.supports_images("google-palm", "gemini-ultra")
        assert registry.supports_images("free-trial", "gemini-ultra")
        assert not registry.supports_images("openai", "gemini-ultra")

    def test_anthropic_never(self, registry):
        """Providers outside the multimodal set never support images."""
        assert not registry.supports_images("anthropic", "claude-2")
        assert not registry.supports_images("anthropic", "llava-13b")

    def test_llava_marker(self, registry):
        """Any model name containing llava is a vision model."""
        assert registry.supports_images("ollama", "llava:13b")
        assert registry.supports_images("ollama", "bakllava")

    def test_registered_vision_model(self, registry):
        """Vision models can be added without touching the lookup."""
        assert not registry.supports_images("ollama", "moondream")
        registry.register_vision_model("moondream")
        assert registry.supports_images("ollama", "moondream")

    def test_registered_provider_specific_vision_model(self, registry):
        """Provider-scoped vision models only match their provider."""
        registry.register_vision_model("gpt-4o", provider="openai")
        assert registry.supports_images("openai", "gpt-4o")
        assert not registry.supports_images("ollama", "gpt-4o")

    def test_deterministic(self, registry):
        """Same inputs always give the same answer."""
        answers = {registry.supports_images("openai", "gpt-4-vision-preview") for _ in range(10)}
        assert answers == {True}


class TestSupportsParallelGeneration:
    """Tests for ModelCapabilityRegistry.supports_parallel_generation."""

    def test_openai_requires_gpt_marker(self, registry):
        assert registry.supports_parallel_generation("openai", "gpt-4")
        assert not registry.supports_parallel_generation("openai", "llama2-7b")

    @pytest.mark.parametrize("provider", ["anthropic", "bedrock", "together", "mistral", "free-trial"])
    def test_allow_listed_providers(self, registry, provider):
        assert registry.supports_parallel_generation(provider, "any-model")

    @pytest.mark.parametrize("provider", ["ollama", "lmstudio", "llama.cpp"])
    def test_other_providers(self, registry, provider):
        assert not registry.supports_parallel_generation(provider, "gpt-4")

    def test_registered_parallel_provider(self, registry):
        registry.register_parallel_provider("groq")
        assert registry.supports_parallel_generation("groq", "mixtral-8x7b")


class TestDetectTemplateType:
    """Tests for detect_template_type."""

    @pytest.mark.parametrize("model,expected", [
        ("codellama-70b", TemplateType.CODELLAMA_70B),
        ("CodeLlama-70B-Instruct", TemplateType.CODELLAMA_70B),
        ("codellama-7b", TemplateType.LLAMA2),
        ("gpt-4", TemplateType.NONE),
        ("chat-bison-001", TemplateType.NONE),
        ("pplx-70b-online", TemplateType.NONE),
        ("gemini-pro", TemplateType.NONE),
        ("llava:13b", TemplateType.LLAVA),
        ("xwin-coder-34b", TemplateType.XWIN_CODER),
        ("dolphin-mixtral", TemplateType.CHATML),
        ("phi2", TemplateType.PHI2),
        ("phind-codellama-34b", TemplateType.PHIND),
        ("llama2-7b", TemplateType.LLAMA2),
        ("zephyr-7b-beta", TemplateType.ZEPHYR),
        ("claude-2", TemplateType.ANTHROPIC),
        ("wizardcoder-7b", TemplateType.ALPACA),
        ("alpaca-7b", TemplateType.ALPACA),
        ("mistral-7b", TemplateType.LLAMA2),
        ("deepseek-7b", TemplateType.DEEPSEEK),
        ("ninja-3", TemplateType.OPENCHAT),
        ("openchat-3.5", TemplateType.OPENCHAT),
        ("neural-chat-7b", TemplateType.NEURAL_CHAT),
        ("starcoder", TemplateType.CHATML),
        ("", TemplateType.CHATML),
    ])
    def test_cascade(self, model, expected):
        assert detect_template_type(model) == expected

    def test_specific_rule_beats_generic(self):
        """codellama+70b wins over the bare llama rule and the gpt short-circuit."""
        assert detect_template_type("gpt-codellama-70b") == TemplateType.CODELLAMA_70B

    def test_total_and_deterministic(self):
        """Every string maps to exactly one TemplateType, the same every time."""
        names = ["", " ", "???", "LLAMA", "Mistral-Instruct", "x" * 500, "gpt", "ünïcödé-model"]
        for name in names:
            first = detect_template_type(name)
            assert isinstance(first, TemplateType)
            assert all(detect_template_type(name) == first for _ in range(5))

    def test_registry_method_delegates(self, registry):
        assert registry.detect_template_type("zephyr") == TemplateType.ZEPHYR


class TestRegistryTables:
    """Tests for table management."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        """Clear registry-related environment variables before each test."""
        for var in ["LLM_TEMPLATING_PROVIDERS", "LLM_IMAGE_PROVIDERS",
                    "LLM_PARALLEL_PROVIDERS", "LLM_VISION_MODELS"]:
            monkeypatch.delenv(var, raising=False)

    def test_handles_templating_defaults(self, registry):
        for provider in ["lmstudio", "openai", "ollama", "together"]:
            assert registry.handles_templating(provider)
        assert not registry.handles_templating("replicate")

    def test_register_from_env(self, registry, monkeypatch):
        """Comma-separated env lists extend the tables."""
        monkeypatch.setenv("LLM_PARALLEL_PROVIDERS", "groq, llamafile")
        monkeypatch.setenv("LLM_IMAGE_PROVIDERS", "anthropic")
        monkeypatch.setenv("LLM_TEMPLATING_PROVIDERS", "groq")
        monkeypatch.setenv("LLM_VISION_MODELS", "claude-3-opus")

        registry.register_from_env()

        assert "groq" in registry.parallel_providers
        assert "llamafile" in registry.parallel_providers
        assert registry.handles_templating("groq")
        assert registry.supports_images("anthropic", "claude-3-opus")

    def test_register_from_env_no_vars(self, registry):
        """Without env vars the built-in tables are unchanged."""
        before = registry.parallel_providers
        registry.register_from_env()
        assert registry.parallel_providers == before

    def test_custom_tables(self):
        """A registry can be built from scratch for other deployments."""
        custom = ModelCapabilityRegistry(image_providers=["mine"], vision_models=["eye"])
        assert custom.supports_images("mine", "eye")
        assert not custom.supports_images("openai", "gpt-4-vision-preview")

    def test_exposed_tables_are_read_only_copies(self, registry):
        tables = registry.image_providers
        assert isinstance(tables, frozenset)


class TestGetRegistry:
    """Tests for get_registry singleton function."""

    @pytest.fixture(autouse=True)
    def reset_registry(self, monkeypatch):
        monkeypatch.setattr(registry_module, "_registry", None)

    def test_returns_registry_instance(self):
        assert isinstance(get_registry(), ModelCapabilityRegistry)

    def test_singleton_behavior(self):
        assert get_registry() is get_registry()

    def test_registry_auto_initialized(self, monkeypatch):
        """Registry should read the environment on first call."""
        monkeypatch.setenv("LLM_PARALLEL_PROVIDERS", "groq")
        assert get_registry().supports_parallel_generation("groq", "llama3-70b")
