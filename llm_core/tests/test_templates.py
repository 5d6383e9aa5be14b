"""Unit tests for providers/templates package."""

import copy

import jinja2
import pytest
from llm_core.errors import ConfigurationError
from llm_core.providers.templates import (
    CHAT_TEMPLATES,
    coerce_template_type,
    render_prompt_template,
    resolve_chat_template_function,
    resolve_edit_prompt_templates,
)
from llm_core.providers.templates import chat, edit
from llm_core.providers.types import ChatMessage, MessagePart, StructuredMessages, TemplateType


def _user(text):
    return ChatMessage(role="user", content=text)


def _system(text):
    return ChatMessage(role="system", content=text)


def _assistant(text):
    return ChatMessage(role="assistant", content=text)


class TestChatTemplates:
    """Tests for the per-family render functions."""

    def test_chatml(self):
        prompt = chat.chatml_template_messages([_system("Be brief."), _user("hi")])
        assert prompt == (
            "<|im_start|>system\nBe brief.<|im_end|>\n"
            "<|im_start|>user\nhi<|im_end|>\n"
            "<|im_start|>assistant\n"
        )

    def test_llama2_single_user(self):
        assert chat.llama2_template_messages([_user("hi")]) == "[INST] hi [/INST]"

    def test_llama2_with_system(self):
        prompt = chat.llama2_template_messages([_system("Be brief."), _user("hi")])
        assert prompt == "<s>[INST] <<SYS>>\n Be brief.\n<</SYS>>\n\n hi [/INST]"

    def test_llama2_multi_turn(self):
        prompt = chat.llama2_template_messages([_user("a"), _assistant("b"), _user("c")])
        assert prompt == "[INST] a [/INST]b</s>\n<s>[INST] c [/INST]"

    def test_llama2_blank_system_dropped(self):
        assert chat.llama2_template_messages([_system("  "), _user("hi")]) == "[INST] hi [/INST]"

    def test_llama2_leading_assistant_dropped(self):
        assert chat.llama2_template_messages([_assistant("x"), _user("hi")]) == "[INST] hi [/INST]"

    def test_llama2_empty(self):
        assert chat.llama2_template_messages([]) == ""

    def test_zephyr_without_system(self):
        prompt = chat.zephyr_template_messages([_user("hi")])
        assert prompt == "<|system|> </s>\n<|user|>\nhi</s>\n<|assistant|>\n"

    def test_anthropic(self):
        prompt = chat.anthropic_template_messages([_user("hi")])
        assert prompt == "\n\nHuman: hi \n\nAssistant:"

    def test_phind(self):
        prompt = chat.phind_template_messages([_system("S"), _user("hi")])
        assert prompt == "### System Prompt\nS\n\n### User Message\nhi\n\n### Assistant\n"

    def test_codellama70b(self):
        prompt = chat.codellama70b_template_messages([_user(" hi ")])
        assert prompt == "<s>Source: user\n\n hi <step> Source: assistant\nDestination: user\n\n"

    def test_alpaca_default_preamble(self):
        prompt = chat.alpaca_template_messages([_user("hi")])
        assert prompt.startswith("Below is an instruction that describes a task.")
        assert prompt.endswith("### Instruction:\nhi\n\n### Response:\n")

    def test_deepseek_system_joins_last_user_turn(self):
        prompt = chat.deepseek_template_messages([_system("S"), _user("hi")])
        assert prompt.endswith("### Instruction:\nS\nhi\n### Response:\n")

    def test_openchat(self):
        prompt = chat.openchat_template_messages([_user("hi")])
        assert prompt == "GPT4 Correct User: hi<|end_of_turn|>GPT4 Correct Assistant: "

    def test_image_parts_render_as_text(self):
        message = ChatMessage(role="user", content=[
            MessagePart(type="text", text="what is this"),
            MessagePart(type="imageUrl", image_url="data:image/png;base64,AAAA"),
        ])
        prompt = chat.llava_template_messages([message])
        assert "what is this" in prompt
        assert "base64" not in prompt


class TestTemplateTable:
    """Tests for CHAT_TEMPLATES as a whole."""

    def test_every_family_has_an_entry(self):
        assert set(CHAT_TEMPLATES) == set(TemplateType)

    def test_none_has_no_renderer(self):
        assert CHAT_TEMPLATES[TemplateType.NONE] is StructuredMessages.FAMILY_NONE

    def test_every_other_family_is_callable(self):
        for template_type, entry in CHAT_TEMPLATES.items():
            if template_type is not TemplateType.NONE:
                assert callable(entry), template_type

    @pytest.mark.parametrize("template_type", [t for t in TemplateType if t is not TemplateType.NONE])
    def test_renders_without_mutating_input(self, template_type):
        messages = [_system("S"), _user("first"), _assistant("reply"), _user("second")]
        snapshot = copy.deepcopy(messages)

        prompt = CHAT_TEMPLATES[template_type](messages)

        assert isinstance(prompt, str)
        assert "second" in prompt
        assert messages == snapshot

    @pytest.mark.parametrize("template_type", [t for t in TemplateType if t is not TemplateType.NONE])
    def test_deterministic(self, template_type):
        messages = [_user("hi")]
        render = CHAT_TEMPLATES[template_type]
        assert render(messages) == render(messages)


class TestResolveChatTemplateFunction:
    """Tests for resolve_chat_template_function."""

    def test_self_templating_provider(self, registry):
        result = resolve_chat_template_function("llama2-7b", "ollama", registry=registry)
        assert result is StructuredMessages.PROVIDER

    def test_detected_family(self, registry):
        render = resolve_chat_template_function("llama2-7b", "replicate", registry=registry)
        assert render is chat.llama2_template_messages

    def test_explicit_template_wins_over_provider(self, registry):
        render = resolve_chat_template_function("llama2-7b", "ollama", "chatml", registry)
        assert render is chat.chatml_template_messages

    def test_explicit_enum(self, registry):
        render = resolve_chat_template_function("x", "replicate", TemplateType.ZEPHYR, registry)
        assert render is chat.zephyr_template_messages

    def test_hosted_model_family(self, registry):
        result = resolve_chat_template_function("gpt-4", "replicate", registry=registry)
        assert result is StructuredMessages.FAMILY_NONE

    def test_provider_and_family_none_are_distinct(self, registry):
        """A self-templating provider and the "none" family are reported apart."""
        by_provider = resolve_chat_template_function("llama2-7b", "ollama", registry=registry)
        by_family = resolve_chat_template_function("gpt-4", "replicate", registry=registry)
        explicit_none = resolve_chat_template_function("llama2-7b", "ollama", "none", registry)

        assert by_provider is not by_family
        assert explicit_none is StructuredMessages.FAMILY_NONE
        assert not callable(by_provider) and not callable(by_family)

    def test_unknown_template(self, registry):
        with pytest.raises(ConfigurationError, match="Unknown template 'vicuna'"):
            resolve_chat_template_function("x", "replicate", "vicuna", registry)


class TestResolveEditPromptTemplates:
    """Tests for resolve_edit_prompt_templates."""

    @pytest.mark.parametrize("model,expected", [
        ("mistral-7b", edit.MISTRAL_EDIT_PROMPT),
        ("codellama-7b", edit.CODELLAMA_EDIT_PROMPT),
        ("phi2", edit.SIMPLIFIED_EDIT_PROMPT),
        ("phind-codellama-34b", edit.PHIND_EDIT_PROMPT),
        ("deepseek-33b", edit.DEEPSEEK_EDIT_PROMPT),
        ("codellama-70b", edit.CODELLAMA_70B_EDIT_PROMPT),
        ("starcoder", edit.SIMPLEST_EDIT_PROMPT),
        ("claude-2", edit.SIMPLEST_EDIT_PROMPT),
    ])
    def test_detected(self, model, expected):
        assert resolve_edit_prompt_templates(model) == {"edit": expected}

    def test_hosted_model_gets_none(self):
        assert resolve_edit_prompt_templates("gpt-4") == {}

    def test_explicit_none(self):
        assert resolve_edit_prompt_templates("llama2-7b", "none") == {}

    def test_explicit_llama2_checks_mistral_name(self):
        assert resolve_edit_prompt_templates("Mistral-Instruct", TemplateType.LLAMA2) == {
            "edit": edit.MISTRAL_EDIT_PROMPT
        }

    @pytest.mark.parametrize("template_type", [t for t in TemplateType if t is not TemplateType.NONE])
    def test_every_family_has_an_edit_prompt(self, template_type):
        templates = resolve_edit_prompt_templates("some-model", template_type)
        assert set(templates) == {"edit"}
        assert templates["edit"]


class TestRenderPromptTemplate:
    """Tests for render_prompt_template."""

    def test_simplest(self):
        prompt = render_prompt_template(
            edit.SIMPLEST_EDIT_PROMPT,
            language="python",
            code_to_edit="x = 1",
            user_input="rename x to y",
        )
        assert "```python\nx = 1\n```" in prompt
        assert '"rename x to y"' in prompt

    def test_values_not_escaped_or_reinterpreted(self):
        prompt = render_prompt_template(
            "{{ code_to_edit }}", code_to_edit="if a < b: print('{{ y }}')"
        )
        assert prompt == "if a < b: print('{{ y }}')"

    def test_missing_variable(self):
        with pytest.raises(jinja2.UndefinedError):
            render_prompt_template(edit.SIMPLEST_EDIT_PROMPT, language="python")

    @pytest.mark.parametrize("template", [
        edit.SIMPLEST_EDIT_PROMPT, edit.SIMPLIFIED_EDIT_PROMPT, edit.CODELLAMA_EDIT_PROMPT,
        edit.MISTRAL_EDIT_PROMPT, edit.ALPACA_EDIT_PROMPT, edit.PHIND_EDIT_PROMPT,
        edit.DEEPSEEK_EDIT_PROMPT, edit.ZEPHYR_EDIT_PROMPT, edit.OPENCHAT_EDIT_PROMPT,
        edit.XWIN_CODER_EDIT_PROMPT, edit.NEURAL_CHAT_EDIT_PROMPT, edit.CODELLAMA_70B_EDIT_PROMPT,
    ])
    def test_all_edit_prompts_render(self, template):
        prompt = render_prompt_template(
            template, language="go", code_to_edit="func main() {}", user_input="add a comment"
        )
        assert "func main() {}" in prompt or "add a comment" in prompt


class TestCoerceTemplateType:
    def test_passthrough(self):
        assert coerce_template_type(None) is None
        assert coerce_template_type(TemplateType.PHI2) is TemplateType.PHI2

    def test_string(self):
        assert coerce_template_type("neural-chat") is TemplateType.NEURAL_CHAT
