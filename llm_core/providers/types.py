"""Core data types shared by every LLM provider."""

from dataclasses import dataclass, field, fields, asdict
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Literal, Optional, Union

import httpx


ChatMessageRole = Literal["system", "user", "assistant"]


class TemplateType(str, Enum):
    """Prompt syntax family of a model."""
    LLAMA2 = "llama2"
    ALPACA = "alpaca"
    PHI2 = "phi2"
    PHIND = "phind"
    ZEPHYR = "zephyr"
    ANTHROPIC = "anthropic"
    CHATML = "chatml"
    DEEPSEEK = "deepseek"
    OPENCHAT = "openchat"
    XWIN_CODER = "xwin-coder"
    NEURAL_CHAT = "neural-chat"
    LLAVA = "llava"
    CODELLAMA_70B = "codellama-70b"
    # Structured messages only; no flat prompt format
    NONE = "none"


@dataclass(frozen=True)
class MessagePart:
    """One typed piece of a multimodal message."""
    type: Literal["text", "imageUrl"]
    text: Optional[str] = None
    image_url: Optional[str] = None


MessageContent = Union[str, List[MessagePart]]


@dataclass
class ChatMessage:
    """A chat message."""
    role: ChatMessageRole
    content: MessageContent

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        parts = []
        for part in self.content:
            if part.type == "imageUrl":
                parts.append({"type": "imageUrl", "imageUrl": {"url": part.image_url}})
            else:
                parts.append({"type": "text", "text": part.text or ""})
        return {"role": self.role, "content": parts}


PromptTemplate = Callable[[List[ChatMessage]], str]


class StructuredMessages(str, Enum):
    """Why a model gets its chat messages unrendered instead of as one prompt."""
    # The provider applies the model's chat format itself
    PROVIDER = "provider"
    # The model's family has no flat prompt format
    FAMILY_NONE = "none"


# What chat template resolution yields: a renderer, or the reason there is none
ChatTemplate = Union[PromptTemplate, StructuredMessages]


@dataclass(frozen=True)
class ModelDescriptor:
    """Provider and model identifier of an LLM instance."""
    provider: str
    model: str

    def __str__(self) -> str:
        return f"{self.provider}:{self.model}"



def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge override into base, with override taking priority.

    For nested dicts, merges recursively. ``None`` in ``override`` means
    "not set" and leaves the base value alone. For other types, override wins.
    """
    result = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


@dataclass
class CompletionOptions:
    """Sampling parameters for a single request."""
    model: str
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    presence_penalty: Optional[float] = None
    frequency_penalty: Optional[float] = None
    mirostat: Optional[int] = None
    stop: Optional[List[str]] = None
    functions: Optional[List[Dict[str, Any]]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompletionOptions":
        """Build options from a flat dict; unknown keys are kept in ``extra``."""
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        extra = dict(values.pop("extra", None) or {})
        extra.update({k: v for k, v in data.items() if k not in known})
        return cls(extra=extra, **values)

    def to_dict(self) -> Dict[str, Any]:
        """Flatten to a dict without unset values; ``extra`` keys are inlined."""
        data = asdict(self)
        extra = data.pop("extra")
        flat = {k: v for k, v in data.items() if v is not None}
        flat.update(extra)
        return flat

    def merged(self, overrides: Dict[str, Any]) -> "CompletionOptions":
        """Return a copy with ``overrides`` deep-merged on top."""
        return CompletionOptions.from_dict(deep_merge(self.to_dict(), overrides))


@dataclass
class RequestOptions:
    """Transport settings applied to outbound HTTP requests."""
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None
    verify_ssl: bool = True
    proxy: Optional[str] = None
    extra_body_properties: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LLMOptions:
    """Construction-time configuration of an LLM instance."""
    model: str
    title: Optional[str] = None
    unique_id: Optional[str] = None
    system_message: Optional[str] = None
    context_length: Optional[int] = None
    completion_options: Dict[str, Any] = field(default_factory=dict)
    request_options: Optional[RequestOptions] = None
    template: Optional[Union[TemplateType, str]] = None
    prompt_templates: Dict[str, str] = field(default_factory=dict)
    template_messages: Optional[PromptTemplate] = None
    write_log: Optional[Callable[[str], Awaitable[None]]] = None
    llm_request_hook: Optional[Callable[[str, str], Any]] = None
    api_key: Optional[str] = None
    api_base: Optional[str] = None
    engine: Optional[str] = None
    api_version: Optional[str] = None
    api_type: Optional[str] = None
    region: Optional[str] = None
    project_id: Optional[str] = None
    # Replaces the default httpx client, e.g. for a non-interactive runtime
    http_client: Optional[httpx.AsyncClient] = None


@dataclass
class LLMReturnValue:
    """Final result of a stream: the prompt that was sent and the full output."""
    prompt: Optional[str]
    completion: Optional[str]
