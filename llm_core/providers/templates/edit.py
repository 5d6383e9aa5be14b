"""
Prompt variants for code-editing requests.

Templates use Jinja2 syntax. Variables available when rendering:
``code_to_edit``, ``user_input``, ``language``, ``prefix`` and ``suffix``.
"""

from typing import Any

from jinja2 import Environment, StrictUndefined

_env = Environment(
    autoescape=False,  # prompts, not HTML
    keep_trailing_newline=True,
    undefined=StrictUndefined,
)


def render_prompt_template(template: str, **variables: Any) -> str:
    """
    Render an edit prompt template.

    Args:
        template: Jinja2 template source, e.g. a value from ``prompt_templates``
        **variables: Values for the template's placeholders

    Returns:
        The rendered prompt

    Raises:
        jinja2.UndefinedError: If the template uses a variable not given
    """
    return _env.from_string(template).render(**variables)


SIMPLEST_EDIT_PROMPT = """Here is the code before editing:
```{{ language }}
{{ code_to_edit }}
```

Here is the edit requested:
"{{ user_input }}"

Here is the code after editing:"""

SIMPLIFIED_EDIT_PROMPT = """Consider the following code:
```{{ language }}
{{ code_to_edit }}
```
Edit the code to perfectly satisfy the following user request:
{{ user_input }}
Output nothing except for the code. No code block, no English explanation, no start/end tags."""

CODELLAMA_EDIT_PROMPT = """```{{ language }}
{{ code_to_edit }}
```
[INST] You are an expert programmer and personal assistant. Your task is to rewrite the above code with these instructions: "{{ user_input }}"

Your answer should be given inside of a code block. It should use the same kind of indentation as above.
[/INST] Sure! Here's the rewritten code you requested:
```{{ language }}"""

MISTRAL_EDIT_PROMPT = """[INST] You are a helpful code assistant. Your task is to rewrite the following code with these instructions: "{{ user_input }}"
```{{ language }}
{{ code_to_edit }}
```

Just rewrite the code without explanations: [/INST]
```{{ language }}"""

ALPACA_EDIT_PROMPT = """Below is an instruction that describes a task, paired with an input that provides further context. Write a response that appropriately completes the request.

### Instruction: Rewrite the code to satisfy this request: "{{ user_input }}"

### Input:

```{{ language }}
{{ code_to_edit }}
```

### Response:

Sure! Here's the code you requested:
```{{ language }}
"""

PHIND_EDIT_PROMPT = """### System Prompt
You are an expert programmer and write code on the first attempt without any errors or fillers.

### User Message:
Rewrite the code to satisfy this request: "{{ user_input }}"

```{{ language }}
{{ code_to_edit }}
```

### Assistant:
Sure! Here's the code you requested:

```{{ language }}
"""

DEEPSEEK_EDIT_PROMPT = """### System Prompt
You are an AI programming assistant, utilizing the DeepSeek Coder model, developed by DeepSeek Company, and you only answer questions related to computer science.
### Instruction:
Rewrite the code to satisfy this request: "{{ user_input }}"

```{{ language }}
{{ code_to_edit }}
```<|EOT|>
### Response:
Sure! Here's the code you requested:

```{{ language }}
"""

ZEPHYR_EDIT_PROMPT = """<|system|>
You are an expert programmer and write code on the first attempt without any errors or fillers.</s>
<|user|>
Rewrite the code to satisfy this request: "{{ user_input }}"

```{{ language }}
{{ code_to_edit }}
```</s>
<|assistant|>
Sure! Here's the code you requested:

```{{ language }}
"""

OPENCHAT_EDIT_PROMPT = """GPT4 Correct User: You are an expert programmer and personal assistant. You are asked to rewrite the following code in order to {{ user_input }}.
```{{ language }}
{{ code_to_edit }}
```
Please only respond with code and put it inside of a markdown code block. Do not give any explanation, but your code should perfectly satisfy the user request.<|end_of_turn|>GPT4 Correct Assistant: Sure thing! Here is the rewritten code that you requested:
```{{ language }}
"""

XWIN_CODER_EDIT_PROMPT = """<system>: You are an AI coding assistant that helps people with programming. Write a response that appropriately completes the user's request.
<user>: Please rewrite the following code with these instructions: "{{ user_input }}"
```{{ language }}
{{ code_to_edit }}
```

Just rewrite the code without explanations:
<AI>:
```{{ language }}"""

NEURAL_CHAT_EDIT_PROMPT = """### System:
You are an expert programmer and write code on the first attempt without any errors or fillers.
### User:
Rewrite the code to satisfy this request: "{{ user_input }}"

```{{ language }}
{{ code_to_edit }}
```
### Assistant:
Sure! Here's the code you requested:

```{{ language }}
"""

CODELLAMA_70B_EDIT_PROMPT = """<s>Source: system

 You are an expert programmer and write code on the first attempt without any errors or fillers. <step> Source: user

 Rewrite the code to satisfy this request: "{{ user_input }}"

```{{ language }}
{{ code_to_edit }}
``` <step> Source: assistant
Destination: user

 """
