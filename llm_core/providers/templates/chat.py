"""Render a conversation into the flat prompt format each model family expects."""

from typing import Callable, Dict, List

from ..tokens import strip_images
from ..types import ChatMessage, ChatTemplate, PromptTemplate, StructuredMessages, TemplateType


def _text(message: ChatMessage) -> str:
    return strip_images(message.content)


def template_factory(
    system_message: Callable[[ChatMessage], str],
    user_prompt: str,
    assistant_prompt: str,
    separator: str,
    prefix: str = "",
    empty_system_message: str = "",
) -> PromptTemplate:
    """Build a template for formats that only differ in their role markers."""

    def render(messages: List[ChatMessage]) -> str:
        prompt = prefix
        remaining = list(messages)
        if remaining and remaining[0].role == "system":
            prompt += system_message(remaining.pop(0))
        else:
            prompt += empty_system_message

        for message in remaining:
            prompt += user_prompt if message.role == "user" else assistant_prompt
            prompt += _text(message)
            prompt += separator

        prompt += assistant_prompt
        return prompt

    return render


def llama2_template_messages(messages: List[ChatMessage]) -> str:
    """[INST] ... [/INST] turns with an optional <<SYS>> block."""
    if not messages:
        return ""

    remaining = list(messages)
    if remaining[0].role == "assistant":
        # Conversations must open with a user turn
        remaining = remaining[1:]
        if not remaining:
            return ""

    prompt = ""
    has_system = remaining[0].role == "system"
    if has_system and not _text(remaining[0]).strip():
        has_system = False
        remaining = remaining[1:]

    if has_system:
        system = f"<<SYS>>\n {_text(remaining[0])}\n<</SYS>>\n\n"
        if len(remaining) > 1:
            prompt += f"<s>[INST] {system} {_text(remaining[1])} [/INST]"
        else:
            return f"[INST] {system} [/INST]"

    for i in range(2 if has_system else 0, len(remaining)):
        message = remaining[i]
        if message.role == "user":
            prompt += f"[INST] {_text(message)} [/INST]"
        else:
            prompt += _text(message)
            if i < len(remaining) - 1:
                prompt += "</s>\n<s>"

    return prompt


def alpaca_template_messages(messages: List[ChatMessage]) -> str:
    remaining = list(messages)
    if remaining and remaining[0].role == "system":
        prompt = f"{_text(remaining.pop(0))}\n"
    else:
        prompt = (
            "Below is an instruction that describes a task. Write a response that "
            "appropriately completes the request.\n\n"
        )

    for message in remaining:
        prompt += "### Instruction:\n" if message.role == "user" else "### Response:\n"
        prompt += f"{_text(message)}\n\n"

    prompt += "### Response:\n"
    return prompt


def deepseek_template_messages(messages: List[ChatMessage]) -> str:
    """DeepSeek Coder instruct format; the system prompt joins the last user turn."""
    prompt = (
        "You are an AI programming assistant, utilizing the DeepSeek Coder model, "
        "developed by DeepSeek Company, and you only answer questions related to "
        "computer science. For politically sensitive questions, security and privacy "
        "issues, and other non-computer science questions, you will refuse to answer.\n"
    )
    remaining = list(messages)
    system = None
    if remaining and remaining[0].role == "system":
        system = _text(remaining.pop(0))

    for i, message in enumerate(remaining):
        is_last = i == len(remaining) - 1
        prompt += "### Instruction:\n" if message.role == "user" else "### Response:\n"
        if system and message.role == "user" and is_last:
            prompt += system + "\n"
        prompt += _text(message)
        if not is_last:
            prompt += "\n" if message.role == "user" else "<|EOT|>\n"

    return prompt + "\n### Response:\n"


def phind_template_messages(messages: List[ChatMessage]) -> str:
    remaining = list(messages)
    prompt = ""
    if remaining and remaining[0].role == "system":
        prompt += f"### System Prompt\n{_text(remaining.pop(0))}\n\n"

    for message in remaining:
        prompt += "### User Message\n" if message.role == "user" else "### Assistant\n"
        prompt += f"{_text(message)}\n\n"

    prompt += "### Assistant\n"
    return prompt


def anthropic_template_messages(messages: List[ChatMessage]) -> str:
    """Legacy Human/Assistant text completion format."""
    human_prompt = "\n\nHuman:"
    ai_prompt = "\n\nAssistant:"

    remaining = list(messages)
    prompt = ""
    if remaining and remaining[0].role == "system":
        prompt += f"{_text(remaining.pop(0))}"

    for message in remaining:
        marker = human_prompt if message.role == "user" else ai_prompt
        prompt += f"{marker} {_text(message)} "

    prompt += ai_prompt
    return prompt


def codellama70b_template_messages(messages: List[ChatMessage]) -> str:
    prompt = "<s>"
    for message in messages:
        prompt += f"Source: {message.role}\n\n {_text(message).strip()}"
        prompt += " <step> "

    prompt += "Source: assistant\nDestination: user\n\n"
    return prompt


chatml_template_messages = template_factory(
    lambda msg: f"<|im_start|>{msg.role}\n{_text(msg)}<|im_end|>\n",
    "<|im_start|>user\n",
    "<|im_start|>assistant\n",
    "<|im_end|>\n",
)

zephyr_template_messages = template_factory(
    lambda msg: f"<|system|>{_text(msg)}</s>\n",
    "<|user|>\n",
    "<|assistant|>\n",
    "</s>\n",
    empty_system_message="<|system|> </s>\n",
)

phi2_template_messages = template_factory(
    lambda msg: f"{_text(msg)}\n\n",
    "Instruct: ",
    "Output: ",
    "\n\n",
)

openchat_template_messages = template_factory(
    lambda msg: "",
    "GPT4 Correct User: ",
    "GPT4 Correct Assistant: ",
    "<|end_of_turn|>",
)

xwin_coder_template_messages = template_factory(
    lambda msg: f"<system>: {_text(msg)}",
    "\n<user>: ",
    "\n<AI>: ",
    "",
)

neural_chat_template_messages = template_factory(
    lambda msg: f"### System:\n{_text(msg)}\n\n",
    "### User:\n",
    "### Assistant:\n",
    "\n\n",
)

llava_template_messages = template_factory(
    lambda msg: f"{_text(msg)}\n",
    "USER: <image>\n",
    "ASSISTANT: ",
    "\n\n",
)


CHAT_TEMPLATES: Dict[TemplateType, ChatTemplate] = {
    TemplateType.LLAMA2: llama2_template_messages,
    TemplateType.ALPACA: alpaca_template_messages,
    TemplateType.PHI2: phi2_template_messages,
    TemplateType.PHIND: phind_template_messages,
    TemplateType.ZEPHYR: zephyr_template_messages,
    TemplateType.ANTHROPIC: anthropic_template_messages,
    TemplateType.CHATML: chatml_template_messages,
    TemplateType.DEEPSEEK: deepseek_template_messages,
    TemplateType.OPENCHAT: openchat_template_messages,
    TemplateType.XWIN_CODER: xwin_coder_template_messages,
    TemplateType.NEURAL_CHAT: neural_chat_template_messages,
    TemplateType.LLAVA: llava_template_messages,
    TemplateType.CODELLAMA_70B: codellama70b_template_messages,
    TemplateType.NONE: StructuredMessages.FAMILY_NONE,
}

_missing = set(TemplateType) - set(CHAT_TEMPLATES)
if _missing:
    raise RuntimeError(
        f"CHAT_TEMPLATES has no entry for: {', '.join(sorted(t.value for t in _missing))}"
    )
