"""LLM provider abstraction layer."""

from .base import BaseLLM
from .host import HostProxy, HttpHostProxy, HostCompleteRequest, HostChatRequest, HostStreamUpdate
from .registry import ModelCapabilityRegistry, detect_template_type, get_registry
from .router import RequestRouter, HostContext, get_router
from .stream import LLMStream
from .templates import (
    resolve_chat_template_function,
    resolve_edit_prompt_templates,
    render_prompt_template,
)
from .tokens import (
    count_tokens,
    count_chat_tokens,
    compile_chat_messages,
    prune_content_from_top,
    prune_raw_prompt_from_top,
    prune_string_from_top,
    strip_images,
)
from .types import (
    ChatMessage,
    CompletionOptions,
    LLMOptions,
    ChatTemplate,
    LLMReturnValue,
    MessagePart,
    ModelDescriptor,
    PromptTemplate,
    RequestOptions,
    StructuredMessages,
    TemplateType,
)
from .models import (
    ModelInfo,
    MODEL_CATALOG,
    CONTEXT_LENGTH_FOR_MODEL,
    DEFAULT_ARGS,
    get_model_info,
    get_context_length,
)

__all__ = [
    'BaseLLM',
    'LLMStream',
    # Host proxying
    'HostProxy',
    'HttpHostProxy',
    'HostCompleteRequest',
    'HostChatRequest',
    'HostStreamUpdate',
    'RequestRouter',
    'HostContext',
    'get_router',
    # Capabilities and templates
    'ModelCapabilityRegistry',
    'detect_template_type',
    'get_registry',
    'resolve_chat_template_function',
    'resolve_edit_prompt_templates',
    'render_prompt_template',
    # Token budget
    'count_tokens',
    'count_chat_tokens',
    'compile_chat_messages',
    'prune_content_from_top',
    'prune_raw_prompt_from_top',
    'prune_string_from_top',
    'strip_images',
    # Types
    'ChatMessage',
    'CompletionOptions',
    'LLMOptions',
    'ChatTemplate',
    'LLMReturnValue',
    'MessagePart',
    'ModelDescriptor',
    'PromptTemplate',
    'RequestOptions',
    'StructuredMessages',
    'TemplateType',
    # Model catalog
    'ModelInfo',
    'MODEL_CATALOG',
    'CONTEXT_LENGTH_FOR_MODEL',
    'DEFAULT_ARGS',
    'get_model_info',
    'get_context_length',
]
