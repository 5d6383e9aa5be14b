"""Pytest configuration and shared fixtures."""

import pytest
from typing import List

from llm_core.providers.base import BaseLLM
from llm_core.providers.host import HostProxy, HostStreamUpdate
from llm_core.providers.registry import ModelCapabilityRegistry
from llm_core.providers.router import RequestRouter
from llm_core.providers.types import ChatMessage, LLMOptions


class ScriptedLLM(BaseLLM):
    """Completion-only provider that replays fixed chunks."""

    provider_name = "replicate"

    def __init__(self, options, chunks=("a", "b", "c"), error=None, **kwargs):
        super().__init__(options, **kwargs)
        self.chunks = list(chunks)
        self.error = error
        self.prompts: List[str] = []
        self.received_options = []
        self.emitted = 0
        self.cleanups = 0

    async def _stream_complete(self, prompt, options):
        self.prompts.append(prompt)
        self.received_options.append(options)
        try:
            for chunk in self.chunks:
                self.emitted += 1
                yield chunk
            if self.error is not None:
                raise self.error
        finally:
            self.cleanups += 1


class NativeChatLLM(BaseLLM):
    """Provider that takes structured messages and templates them itself."""

    provider_name = "openai"

    def __init__(self, options, chunks=("Hel", "lo"), **kwargs):
        super().__init__(options, **kwargs)
        self.chunks = list(chunks)
        self.received_messages: List[List[ChatMessage]] = []

    async def _stream_chat(self, messages, options):
        self.received_messages.append(messages)
        for chunk in self.chunks:
            yield ChatMessage(role="assistant", content=chunk)


class BareLLM(BaseLLM):
    """Provider with no transport at all."""

    provider_name = "openai"


class FakeHostProxy(HostProxy):
    """Host proxy that records requests and replays fixed updates."""

    def __init__(self, chunks=("x", "y"), final_prompt="host prompt"):
        self.chunks = list(chunks)
        self.final_prompt = final_prompt
        self.requests = []
        self.closed = 0

    async def complete(self, request):
        self.requests.append(("complete", request))
        return "".join(self.chunks)

    async def _updates(self, kind, request):
        self.requests.append((kind, request))
        try:
            for chunk in self.chunks:
                yield HostStreamUpdate(content=chunk)
            yield HostStreamUpdate(
                done=True, prompt=self.final_prompt, completion="".join(self.chunks)
            )
        finally:
            self.closed += 1

    def stream_complete(self, request):
        return self._updates("stream_complete", request)

    def stream_chat(self, request):
        return self._updates("stream_chat", request)


@pytest.fixture
def registry():
    """A registry with the built-in tables only."""
    return ModelCapabilityRegistry()


@pytest.fixture
def direct_router():
    """Router for a headless process."""
    return RequestRouter()


@pytest.fixture
def log_sink():
    """Collects write_log output in order."""
    entries: List[str] = []

    async def write_log(text: str) -> None:
        entries.append(text)

    write_log.entries = entries
    return write_log


LLM_KINDS = {
    "scripted": ScriptedLLM,
    "native": NativeChatLLM,
    "bare": BareLLM,
}


@pytest.fixture
def make_llm(registry, direct_router):
    """Factory for LLM instances wired to a fresh registry and direct routing.

    ``kind`` is "scripted" (completion transport), "native" (chat
    transport) or "bare" (no transport).
    """
    def _make(kind="scripted", model="llama2-7b", router=None, **kwargs):
        transport_kwargs = {k: kwargs.pop(k) for k in ("chunks", "error") if k in kwargs}
        options = LLMOptions(model=model, **kwargs)
        return LLM_KINDS[kind](
            options, registry=registry, router=router or direct_router, **transport_kwargs
        )
    return _make


@pytest.fixture
def make_host():
    """Factory for fake host proxies."""
    def _make(chunks=("x", "y"), final_prompt="host prompt"):
        return FakeHostProxy(chunks=chunks, final_prompt=final_prompt)
    return _make


@pytest.fixture
def sample_messages():
    """Sample conversation."""
    return [
        ChatMessage(role="user", content="Hello, how are you?"),
        ChatMessage(role="assistant", content="Fine, thanks."),
        ChatMessage(role="user", content="Write a haiku about tokens."),
    ]
