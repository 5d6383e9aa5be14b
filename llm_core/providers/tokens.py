"""Token counting and prompt pruning to fit a model's context window."""

import json
import math
from dataclasses import replace
from functools import lru_cache
from typing import Any, Dict, List, Optional

import tiktoken

from ..errors import BudgetError
from .types import ChatMessage, MessageContent, MessagePart

# Role markers and separators around each message
TOKENS_PER_MESSAGE = 4

# Flat cost of one image part
TOKENS_PER_IMAGE = 85

# Messages kept whole for as long as older history can be cut instead
RECENT_MESSAGE_COUNT = 5

SUMMARY_LENGTH = 100


@lru_cache(maxsize=None)
def _encoding_for_model(model: str) -> tiktoken.Encoding:
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        return tiktoken.get_encoding("cl100k_base")


def _encode(text: str, model: str) -> List[int]:
    # Special-token text in a prompt is counted as plain text, never rejected
    return _encoding_for_model(model).encode(text, disallowed_special=())


def strip_images(content: MessageContent) -> str:
    """Reduce message content to its text, dropping image parts."""
    if isinstance(content, str):
        return content
    return "\n".join(part.text or "" for part in content if part.type == "text")


def count_tokens(content: MessageContent, model: str) -> int:
    """
    Count tokens the way ``model`` would see them.

    Args:
        content: Plain text or a list of message parts
        model: Model name, selects the tokenizer

    Returns:
        Token count; each image part counts as a flat 85 tokens
    """
    if isinstance(content, str):
        return len(_encode(content, model))
    total = 0
    for part in content:
        if part.type == "imageUrl":
            total += TOKENS_PER_IMAGE
        else:
            total += len(_encode(part.text or "", model))
    return total


def count_message_tokens(model: str, message: ChatMessage) -> int:
    """Tokens taken by one message including its framing."""
    return count_tokens(message.content, model) + TOKENS_PER_MESSAGE


def count_chat_tokens(model: str, messages: List[ChatMessage]) -> int:
    """Tokens taken by a whole conversation."""
    return sum(count_message_tokens(model, message) for message in messages)


def prune_string_from_top(model: str, max_tokens: int, text: str) -> str:
    """
    Drop text from the start of ``text`` until it fits in ``max_tokens``.

    Whole lines go first. If the last remaining line is still too long it is
    cut on a token boundary, and a character split by that cut is dropped,
    so the result is always a suffix of ``text``.
    """
    if max_tokens <= 0:
        return ""
    if count_tokens(text, model) <= max_tokens:
        return text

    lines = text.splitlines(keepends=True)

    # Estimate from per-line counts, then correct against the joined text
    line_counts = [count_tokens(line, model) for line in lines]
    start = 0
    remaining = sum(line_counts)
    while start < len(lines) - 1 and remaining > max_tokens:
        remaining -= line_counts[start]
        start += 1
    while start > 0 and count_tokens("".join(lines[start - 1:]), model) <= max_tokens:
        start -= 1
    while start < len(lines) - 1 and count_tokens("".join(lines[start:]), model) > max_tokens:
        start += 1

    pruned = "".join(lines[start:])
    if count_tokens(pruned, model) <= max_tokens:
        return pruned

    encoding = _encoding_for_model(model)
    tokens = _encode(pruned, model)
    keep = max_tokens
    while True:
        suffix = encoding.decode_bytes(tokens[len(tokens) - keep:])
        candidate = suffix.decode("utf-8", errors="ignore")
        if keep <= 0 or count_tokens(candidate, model) <= max_tokens:
            return candidate
        keep -= 1


def prune_content_from_top(model: str, max_tokens: int, content: MessageContent) -> MessageContent:
    """
    Shorten message content from its top until it fits in ``max_tokens``.

    Only text is cut while the images fit. Image parts are kept ahead of the
    remaining text; if their flat cost alone exceeds the budget the earliest
    images are dropped.
    """
    if isinstance(content, str):
        return prune_string_from_top(model, max_tokens, content)

    images = [part for part in content if part.type == "imageUrl"]
    while images and len(images) * TOKENS_PER_IMAGE > max(max_tokens, 0):
        images.pop(0)

    text = prune_string_from_top(
        model, max_tokens - len(images) * TOKENS_PER_IMAGE, strip_images(content)
    )
    parts = list(images)
    if text:
        parts.append(MessagePart(type="text", text=text))
    return parts


def prune_raw_prompt_from_top(
    model: str,
    context_length: int,
    prompt: str,
    max_tokens: int,
) -> str:
    """
    Fit a flat prompt into the context window, keeping its end.

    Args:
        model: Model name
        context_length: Context window of the model
        prompt: Prompt text
        max_tokens: Tokens reserved for the completion

    Returns:
        ``prompt`` unchanged if it fits, otherwise its longest suffix that does

    Raises:
        BudgetError: If max_tokens leaves no room for any prompt
    """
    budget = context_length - max_tokens
    if budget <= 0:
        raise BudgetError(
            f"maxTokens ({max_tokens}) is not smaller than contextLength ({context_length}), "
            "which doesn't leave room for a prompt. Increase the model's context_length "
            "or lower max_tokens."
        )
    return prune_string_from_top(model, budget, prompt)


def summarize(content: MessageContent) -> str:
    """Shorten content to a fixed-length preview."""
    text = strip_images(content)
    return text[:SUMMARY_LENGTH] + "..."


def _with_content(message: ChatMessage, content: MessageContent) -> ChatMessage:
    return replace(message, content=content)


def _prune_chat_history(
    model: str,
    history: List[ChatMessage],
    keys: List[int],
    protected_key: int,
    context_length: int,
    tokens_for_completion: int,
) -> None:
    """Cut ``history`` in place until it fits, never removing ``protected_key``.

    ``keys`` runs parallel to ``history`` and identifies each message across
    replacements. Every stage runs only while still over budget:
      0. trim messages longer than a third of the window from their top
      1. summarize history older than the last few messages
      2. drop history older than the last few messages
      3. summarize the remaining messages
      4. drop every message but the protected one
      5. hard-truncate the protected message from its top
    """
    def total() -> int:
        return tokens_for_completion + count_chat_tokens(model, history)

    def shorten(index: int) -> None:
        message = history[index]
        if keys[index] == protected_key or len(strip_images(message.content)) <= SUMMARY_LENGTH:
            return
        history[index] = _with_content(message, summarize(message.content))

    def drop_oldest(keep: int) -> None:
        index = 0
        while total() > context_length and len(history) > keep and index < len(history):
            if keys[index] == protected_key:
                index += 1
                continue
            history.pop(index)
            keys.pop(index)

    # 0.
    third = context_length / 3
    sizes = {key: count_tokens(m.content, model) for key, m in zip(keys, history)}
    for key in sorted((k for k in keys if sizes[k] > third), key=lambda k: (-sizes[k], k)):
        overflow = total() - context_length
        if overflow <= 0:
            break
        target = max(math.ceil(third), sizes[key] - overflow)
        index = keys.index(key)
        message = history[index]
        history[index] = _with_content(message, prune_content_from_top(model, target, message.content))

    # 1.
    index = 0
    while total() > context_length and index < len(history) - RECENT_MESSAGE_COUNT:
        shorten(index)
        index += 1

    # 2.
    drop_oldest(RECENT_MESSAGE_COUNT)

    # 3.
    index = 0
    while total() > context_length and index < len(history):
        shorten(index)
        index += 1

    # 4.
    drop_oldest(1)

    # 5.
    if total() > context_length:
        budget = context_length - tokens_for_completion - TOKENS_PER_MESSAGE
        index = keys.index(protected_key)
        history[index] = _with_content(
            history[index], prune_content_from_top(model, budget, history[index].content)
        )


def _join_content(first: MessageContent, second: MessageContent) -> MessageContent:
    if isinstance(first, str) and isinstance(second, str):
        return f"{first}\n\n{second}"
    def as_parts(content: MessageContent) -> List[MessagePart]:
        if isinstance(content, str):
            return [MessagePart(type="text", text=content)]
        return list(content)

    return as_parts(first) + [MessagePart(type="text", text="\n\n")] + as_parts(second)


def flatten_messages(messages: List[ChatMessage]) -> List[ChatMessage]:
    """Merge consecutive messages from the same role."""
    flattened: List[ChatMessage] = []
    for message in messages:
        if flattened and flattened[-1].role == message.role:
            flattened[-1] = _with_content(
                flattened[-1], _join_content(flattened[-1].content, message.content)
            )
        else:
            flattened.append(message)
    return flattened


def compile_chat_messages(
    model: str,
    messages: Optional[List[ChatMessage]],
    context_length: int,
    max_tokens: int,
    supports_images: bool,
    prompt: Optional[str] = None,
    functions: Optional[List[Dict[str, Any]]] = None,
    system_message: Optional[str] = None,
) -> List[ChatMessage]:
    """
    Fit a conversation into ``context_length - max_tokens`` tokens.

    Args:
        model: Model name, selects the tokenizer
        messages: Conversation in order; never mutated
        context_length: Context window of the model
        max_tokens: Tokens reserved for the completion
        supports_images: Whether image parts may be kept
        prompt: Appended as a final user message when given
        functions: Function schemas sent alongside, counted against the budget
        system_message: Prepended as a system message when non-blank

    Returns:
        New list of messages. The most recent user message is always kept,
        hard-truncated from its top if it alone exceeds the budget.

    Raises:
        BudgetError: If max_tokens leaves no room for any prompt
    """
    history = [replace(message) for message in (messages or [])]
    if prompt:
        history.append(ChatMessage(role="user", content=prompt))

    function_tokens = sum(
        count_tokens(json.dumps(function), model) for function in (functions or [])
    )
    tokens_for_completion = max_tokens + function_tokens
    if tokens_for_completion + TOKENS_PER_MESSAGE >= context_length:
        raise BudgetError(
            f"maxTokens ({max_tokens}) is too close to contextLength ({context_length}), "
            "which doesn't leave room for a prompt. Increase the model's context_length "
            "or lower max_tokens."
        )

    if not supports_images:
        history = [_with_content(m, strip_images(m.content)) for m in history]

    keys = list(range(len(history)))
    user_keys = [key for key, m in zip(keys, history) if m.role == "user"]

    system_key = None
    if system_message and system_message.strip():
        # Second to last, so it outlives older history but not the final turn
        system_key = len(history)
        history.insert(max(len(history) - 1, 0), ChatMessage(role="system", content=system_message))
        keys.insert(max(len(keys) - 1, 0), system_key)

    if not history:
        return []

    protected_key = user_keys[-1] if user_keys else keys[-1]

    _prune_chat_history(model, history, keys, protected_key, context_length, tokens_for_completion)

    if system_key is not None and system_key in keys:
        position = keys.index(system_key)
        history.insert(0, history.pop(position))

    return flatten_messages(history)
