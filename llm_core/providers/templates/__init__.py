"""Prompt template selection for each model family."""

from typing import Dict, Optional, Union

from ...errors import ConfigurationError
from ..registry import ModelCapabilityRegistry, detect_template_type, get_registry
from ..types import ChatTemplate, StructuredMessages, TemplateType
from .chat import CHAT_TEMPLATES
from .edit import (
    ALPACA_EDIT_PROMPT,
    CODELLAMA_70B_EDIT_PROMPT,
    CODELLAMA_EDIT_PROMPT,
    DEEPSEEK_EDIT_PROMPT,
    MISTRAL_EDIT_PROMPT,
    NEURAL_CHAT_EDIT_PROMPT,
    OPENCHAT_EDIT_PROMPT,
    PHIND_EDIT_PROMPT,
    SIMPLEST_EDIT_PROMPT,
    SIMPLIFIED_EDIT_PROMPT,
    XWIN_CODER_EDIT_PROMPT,
    ZEPHYR_EDIT_PROMPT,
    render_prompt_template,
)

_EDIT_PROMPTS: Dict[TemplateType, str] = {
    TemplateType.PHIND: PHIND_EDIT_PROMPT,
    TemplateType.PHI2: SIMPLIFIED_EDIT_PROMPT,
    TemplateType.ZEPHYR: ZEPHYR_EDIT_PROMPT,
    TemplateType.ALPACA: ALPACA_EDIT_PROMPT,
    TemplateType.DEEPSEEK: DEEPSEEK_EDIT_PROMPT,
    TemplateType.OPENCHAT: OPENCHAT_EDIT_PROMPT,
    TemplateType.XWIN_CODER: XWIN_CODER_EDIT_PROMPT,
    TemplateType.NEURAL_CHAT: NEURAL_CHAT_EDIT_PROMPT,
    TemplateType.CODELLAMA_70B: CODELLAMA_70B_EDIT_PROMPT,
}


def coerce_template_type(template: Union[TemplateType, str, None]) -> Optional[TemplateType]:
    """
    Turn a template name from configuration into a TemplateType.

    Raises:
        ConfigurationError: If the name is not a known template family
    """
    if template is None or isinstance(template, TemplateType):
        return template
    try:
        return TemplateType(template)
    except ValueError:
        known = ", ".join(t.value for t in TemplateType)
        raise ConfigurationError(f"Unknown template '{template}'. Known templates: {known}")


def resolve_chat_template_function(
    model: str,
    provider: str,
    explicit_template: Union[TemplateType, str, None] = None,
    registry: Optional[ModelCapabilityRegistry] = None,
) -> ChatTemplate:
    """
    Pick the function that renders chat messages into one prompt string.

    Args:
        model: Model name
        provider: Provider identifier
        explicit_template: Template family from configuration, wins over detection
        registry: Capability registry, defaults to the global one

    Returns:
        The render function, or a StructuredMessages member saying why the
        messages go to the provider unrendered: PROVIDER when it applies the
        chat format itself, FAMILY_NONE for the "none" family
    """
    registry = registry or get_registry()
    template_type = coerce_template_type(explicit_template)

    if template_type is None and registry.handles_templating(provider):
        return StructuredMessages.PROVIDER

    if template_type is None:
        template_type = detect_template_type(model)

    return CHAT_TEMPLATES[template_type]



def resolve_edit_prompt_templates(
    model: str,
    explicit_template: Union[TemplateType, str, None] = None,
) -> Dict[str, str]:
    """
    Pick the prompt templates used for code edits.

    Args:
        model: Model name
        explicit_template: Template family from configuration, wins over detection

    Returns:
        {"edit": template} for every family but "none", which gets {}
    """
    template_type = coerce_template_type(explicit_template) or detect_template_type(model)

    if template_type is TemplateType.NONE:
        return {}

    if template_type is TemplateType.LLAMA2:
        if "mistral" in model.lower():
            return {"edit": MISTRAL_EDIT_PROMPT}
        return {"edit": CODELLAMA_EDIT_PROMPT}

    return {"edit": _EDIT_PROMPTS.get(template_type, SIMPLEST_EDIT_PROMPT)}


__all__ = [
    'CHAT_TEMPLATES',
    'coerce_template_type',
    'resolve_chat_template_function',
    'resolve_edit_prompt_templates',
    'render_prompt_template',
]
