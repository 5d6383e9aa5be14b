"""Base class every LLM provider builds on.

Subclasses supply the transport by overriding ``_stream_complete`` (text
in, text fragments out) and/or ``_stream_chat`` (messages in, message
fragments out). Everything else lives here: option merging, routing to a
host process, fitting prompts into the context window, prompt templating,
and request/completion logging.
"""

import inspect
import uuid
from contextlib import asynccontextmanager
from dataclasses import fields, replace
from typing import Any, AsyncGenerator, AsyncIterator, ClassVar, Dict, List, Mapping, Optional, Tuple

import httpx

from ..config import DEFAULT_CONTEXT_LENGTH, DEFAULT_MAX_TOKENS
from ..errors import ConfigurationError, TransportError
from ..logger import StructuredLogger, get_logger
from .host import HostChatRequest, HostCompleteRequest
from .models import DEFAULT_ARGS, get_context_length, get_model_completion_options
from .registry import ModelCapabilityRegistry, get_registry
from .router import RequestRouter, get_router
from .stream import LLMStream, closing_stream
from .templates import coerce_template_type, resolve_chat_template_function, resolve_edit_prompt_templates
from .tokens import compile_chat_messages, count_tokens, prune_raw_prompt_from_top, strip_images
from .types import (
    ChatMessage,
    CompletionOptions,
    LLMOptions,
    LLMReturnValue,
    ModelDescriptor,
    PromptTemplate,
    RequestOptions,
    StructuredMessages,
    deep_merge,
)

logger = get_logger()


class BaseLLM:
    """Uniform call surface over one model of one provider."""

    provider_name: ClassVar[str] = ""
    default_options: ClassVar[Optional[Dict[str, Any]]] = None

    def __init__(
        self,
        options: LLMOptions,
        registry: Optional[ModelCapabilityRegistry] = None,
        router: Optional[RequestRouter] = None,
    ):
        """
        Initialize the LLM from its configuration.

        Args:
            options: Construction config; unset fields fall back to the
                class's ``default_options``
            registry: Capability registry, defaults to the global one
            router: Request router, defaults to the global one
        """
        options = self._apply_default_options(options)
        self.registry = registry or get_registry()
        self.router = router or get_router()

        self.title = options.title
        self.unique_id = options.unique_id or "None"
        self.model = options.model
        self.system_message = options.system_message
        self.context_length = options.context_length or DEFAULT_CONTEXT_LENGTH

        layered = deep_merge(DEFAULT_ARGS, get_model_completion_options(options.model))
        layered = deep_merge(layered, options.completion_options)
        layered["model"] = options.model or "gpt-4"
        self.completion_options = CompletionOptions.from_dict(layered)

        self.request_options = options.request_options
        self.template = coerce_template_type(options.template)
        self.prompt_templates: Dict[str, str] = {
            **resolve_edit_prompt_templates(options.model, self.template),
            **options.prompt_templates,
        }
        chat_template = options.template_messages or resolve_chat_template_function(
            options.model, self.provider_name, self.template, self.registry
        )
        self.template_messages: Optional[PromptTemplate] = None
        self.structured_messages: Optional[StructuredMessages] = None
        if isinstance(chat_template, StructuredMessages):
            self.structured_messages = chat_template
        else:
            self.template_messages = chat_template

        self.write_log = options.write_log
        self.llm_request_hook = options.llm_request_hook
        self.api_key = options.api_key
        self.api_base = options.api_base
        if self.api_base and self.api_base.endswith("/"):
            self.api_base = self.api_base[:-1]

        self.engine = options.engine
        self.api_version = options.api_version
        self.api_type = options.api_type
        self.region = options.region
        self.project_id = options.project_id
        self.http_client = options.http_client

    def _apply_default_options(self, options: LLMOptions) -> LLMOptions:
        defaults: Dict[str, Any] = {"title": self.provider_name, **(self.default_options or {})}
        overrides: Dict[str, Any] = {}
        for f in fields(options):
            if f.name in defaults and getattr(options, f.name) in (None, ""):
                overrides[f.name] = defaults[f.name]
        for name in ("completion_options", "prompt_templates"):
            if name in defaults:
                overrides[name] = deep_merge(defaults[name], getattr(options, name))
        return replace(options, **overrides)

    @property
    def descriptor(self) -> ModelDescriptor:
        return ModelDescriptor(provider=self.provider_name, model=self.model)

    def supports_images(self) -> bool:
        return self.registry.supports_images(self.provider_name, self.model)

    def can_generate_in_parallel(self) -> bool:
        return self.registry.supports_parallel_generation(self.provider_name, self.model)

    def count_tokens(self, text: str) -> int:
        return count_tokens(text, self.model)

    def collect_args(self, options: CompletionOptions) -> Dict[str, Any]:
        """Request arguments for a transport: global defaults overlaid with ``options``."""
        return {**DEFAULT_ARGS, **options.to_dict()}

    # ------------------------------------------------------------------
    # Per-call helpers
    # ------------------------------------------------------------------

    def _parse_completion_options(
        self, options: Optional[Mapping[str, Any]]
    ) -> Tuple[CompletionOptions, bool, bool]:
        overrides = dict(options or {})
        log = overrides.pop("log", True)
        raw = overrides.pop("raw", False)
        return self.completion_options.merged(overrides), log, raw

    def _call_logger(self, operation: str) -> StructuredLogger:
        return logger.bind(
            call_id=uuid.uuid4().hex[:12],
            operation=operation,
            provider=self.provider_name,
            model=self.model,
        )

    def _compile_chat_messages(
        self, options: CompletionOptions, messages: List[ChatMessage]
    ) -> List[ChatMessage]:
        context_length = self.context_length
        if options.model != self.model:
            context_length = get_context_length(options.model) or context_length

        return compile_chat_messages(
            options.model,
            messages,
            context_length,
            options.max_tokens or DEFAULT_MAX_TOKENS,
            self.supports_images(),
            functions=options.functions,
            system_message=self.system_message,
        )

    def _template_prompt_like_messages(self, prompt: str) -> str:
        if self.template_messages is None:
            return prompt

        messages = [ChatMessage(role="user", content=prompt)]
        if self.system_message:
            messages.insert(0, ChatMessage(role="system", content=self.system_message))

        return self.template_messages(messages)

    def _prepare_prompt(self, prompt: str, options: CompletionOptions, raw: bool) -> str:
        prompt = prune_raw_prompt_from_top(
            options.model,
            self.context_length,
            prompt,
            options.max_tokens or DEFAULT_MAX_TOKENS,
        )
        if not raw:
            prompt = self._template_prompt_like_messages(prompt)
        return prompt

    def _compile_log_message(self, prompt: str, options: CompletionOptions) -> str:
        settings = {"context_length": self.context_length, **options.to_dict()}
        lines = "\n".join(f"{key}: {value}" for key, value in settings.items())
        return f"Settings:\n{lines}\n\n############################################\n\n{prompt}"

    def _format_chat_messages(self, messages: List[ChatMessage]) -> str:
        return "".join(
            f"<{message.role}>\n{strip_images(message.content)}\n\n" for message in messages
        )

    async def _log_request(self, prompt: str, options: CompletionOptions, log: bool) -> None:
        if not log:
            return
        if self.write_log is not None:
            await self.write_log(self._compile_log_message(prompt, options))
        if self.llm_request_hook is not None:
            result = self.llm_request_hook(options.model, prompt)
            if inspect.isawaitable(result):
                await result

    async def _log_completion(
        self, call_logger: StructuredLogger, completion: str, log: bool
    ) -> None:
        call_logger.info("LLM request complete", tokens_generated=self.count_tokens(completion))
        if log and self.write_log is not None:
            await self.write_log(f"Completion:\n\n{completion}\n\n")

    # ------------------------------------------------------------------
    # Public call surface
    # ------------------------------------------------------------------

    async def complete(self, prompt: str, options: Optional[Mapping[str, Any]] = None) -> str:
        """
        Generate a completion and return it whole.

        Args:
            prompt: Prompt text, templated as a user message unless ``raw``
            options: Per-call overrides; ``log`` and ``raw`` flags are accepted

        Returns:
            The completion text
        """
        call_logger = self._call_logger("complete")

        if not self.router.should_request_directly():
            call_logger.info("LLM request start", path="proxy")
            request = HostCompleteRequest(
                prompt=prompt, title=self.title, completion_options=dict(options or {})
            )
            try:
                completion = await self.router.proxy.complete(request)
            except Exception as e:
                call_logger.error("LLM request failed", error=str(e), error_type=type(e).__name__)
                raise
            call_logger.info("LLM request complete")
            return completion

        completion_options, log, raw = self._parse_completion_options(options)
        prompt = self._prepare_prompt(prompt, completion_options, raw)

        call_logger.info("LLM request start", path="direct")
        await self._log_request(prompt, completion_options, log)

        try:
            completion = await self._complete(prompt, completion_options)
        except Exception as e:
            call_logger.error("LLM request failed", error=str(e), error_type=type(e).__name__)
            raise

        await self._log_completion(call_logger, completion, log)
        return completion

    def stream_complete(
        self, prompt: str, options: Optional[Mapping[str, Any]] = None
    ) -> LLMStream[str]:
        """
        Stream a completion fragment by fragment.

        Returns:
            An LLMStream of text chunks; its ``result`` holds the final
            prompt and completion once drained
        """
        stream: LLMStream[str] = LLMStream()
        return stream.attach(self._run_stream_complete(prompt, options, stream))

    async def chat(
        self, messages: List[ChatMessage], options: Optional[Mapping[str, Any]] = None
    ) -> ChatMessage:
        """Run a chat turn and return the whole assistant message."""
        completion = ""
        async with self.stream_chat(messages, options) as stream:
            async for chunk in stream:
                completion += strip_images(chunk.content)
        return ChatMessage(role="assistant", content=completion)

    def stream_chat(
        self, messages: List[ChatMessage], options: Optional[Mapping[str, Any]] = None
    ) -> LLMStream[ChatMessage]:
        """
        Stream a chat turn as assistant message fragments.

        The conversation is fitted into the context window first. Models with
        a prompt template are served through the completion transport; the
        rest receive the structured messages through ``_stream_chat``.
        """
        stream: LLMStream[ChatMessage] = LLMStream()
        return stream.attach(self._run_stream_chat(messages, options, stream))

    async def _run_stream_complete(
        self,
        prompt: str,
        options: Optional[Mapping[str, Any]],
        stream: LLMStream[str],
    ) -> AsyncGenerator[str, None]:
        call_logger = self._call_logger("stream_complete")

        if not self.router.should_request_directly():
            call_logger.info("LLM request start", path="proxy")
            request = HostCompleteRequest(
                prompt=prompt, title=self.title, completion_options=dict(options or {})
            )
            completion = ""
            final = None
            try:
                async with closing_stream(self.router.proxy.stream_complete(request)) as updates:
                    async for update in updates:
                        if update.done:
                            final = update
                            break
                        if update.content:
                            completion += update.content
                            yield update.content
            except Exception as e:
                call_logger.error("LLM request failed", error=str(e), error_type=type(e).__name__)
                raise
            call_logger.info("LLM request complete")
            stream.result = LLMReturnValue(
                prompt=final.prompt if final else prompt,
                completion=final.completion if final and final.completion is not None else completion,
            )
            return

        completion_options, log, raw = self._parse_completion_options(options)
        prompt = self._prepare_prompt(prompt, completion_options, raw)

        call_logger.info("LLM request start", path="direct")
        await self._log_request(prompt, completion_options, log)

        completion = ""
        try:
            async with closing_stream(self._stream_complete(prompt, completion_options)) as chunks:
                async for chunk in chunks:
                    completion += chunk
                    yield chunk
        except Exception as e:
            call_logger.error("LLM request failed", error=str(e), error_type=type(e).__name__)
            raise

        await self._log_completion(call_logger, completion, log)
        stream.result = LLMReturnValue(prompt=prompt, completion=completion)

    async def _run_stream_chat(
        self,
        messages: List[ChatMessage],
        options: Optional[Mapping[str, Any]],
        stream: LLMStream[ChatMessage],
    ) -> AsyncGenerator[ChatMessage, None]:
        call_logger = self._call_logger("stream_chat")

        if not self.router.should_request_directly():
            call_logger.info("LLM request start", path="proxy")
            request = HostChatRequest(
                messages=[message.to_dict() for message in messages],
                title=self.title,
                completion_options=dict(options or {}),
            )
            completion = ""
            final = None
            try:
                async with closing_stream(self.router.proxy.stream_chat(request)) as updates:
                    async for update in updates:
                        if update.done:
                            final = update
                            break
                        if update.content:
                            completion += update.content
                            yield ChatMessage(role="assistant", content=update.content)
            except Exception as e:
                call_logger.error("LLM request failed", error=str(e), error_type=type(e).__name__)
                raise
            call_logger.info("LLM request complete")
            stream.result = LLMReturnValue(
                prompt=final.prompt if final else None,
                completion=final.completion if final and final.completion is not None else completion,
            )
            return

        completion_options, log, _ = self._parse_completion_options(options)
        messages = self._compile_chat_messages(completion_options, messages)

        if self.template_messages is not None:
            prompt = self.template_messages(messages)
        else:
            prompt = self._format_chat_messages(messages)

        call_logger.info("LLM request start", path="direct")
        await self._log_request(prompt, completion_options, log)

        completion = ""
        try:
            if self.template_messages is not None:
                async with closing_stream(self._stream_complete(prompt, completion_options)) as chunks:
                    async for chunk in chunks:
                        completion += chunk
                        yield ChatMessage(role="assistant", content=chunk)
            else:
                async with closing_stream(self._stream_chat(messages, completion_options)) as parts:
                    async for message in parts:
                        completion += strip_images(message.content)
                        yield message
        except Exception as e:
            call_logger.error("LLM request failed", error=str(e), error_type=type(e).__name__)
            raise

        await self._log_completion(call_logger, completion, log)
        stream.result = LLMReturnValue(prompt=prompt, completion=completion)

    # ------------------------------------------------------------------
    # Transport, overridden by providers
    # ------------------------------------------------------------------

    async def _stream_complete(
        self, prompt: str, options: CompletionOptions
    ) -> AsyncIterator[str]:
        raise ConfigurationError(
            f"{type(self).__name__} does not implement _stream_complete"
        )
        yield  # pragma: no cover

    async def _stream_chat(
        self, messages: List[ChatMessage], options: CompletionOptions
    ) -> AsyncIterator[ChatMessage]:
        if self.template_messages is None:
            raise ConfigurationError(
                f"{type(self).__name__} must either have a prompt template or implement _stream_chat "
                f"(messages are unrendered: {self.structured_messages.value})"
            )

        async with closing_stream(
            self._stream_complete(self.template_messages(messages), options)
        ) as chunks:
            async for chunk in chunks:
                yield ChatMessage(role="assistant", content=chunk)

    async def _complete(self, prompt: str, options: CompletionOptions) -> str:
        completion = ""
        async with closing_stream(self._stream_complete(prompt, options)) as chunks:
            async for chunk in chunks:
                completion += chunk
        return completion

    # ------------------------------------------------------------------
    # HTTP helpers for transports
    # ------------------------------------------------------------------

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.http_client is not None:
            yield self.http_client
            return
        request_options = self.request_options or RequestOptions()
        async with httpx.AsyncClient(
            timeout=request_options.timeout,
            verify=request_options.verify_ssl,
            proxy=request_options.proxy,
        ) as client:
            yield client

    def _request_kwargs(
        self, headers: Optional[Dict[str, str]], json: Optional[Dict[str, Any]]
    ) -> Dict[str, Any]:
        request_options = self.request_options or RequestOptions()
        kwargs: Dict[str, Any] = {"headers": {**request_options.headers, **(headers or {})}}
        if json is not None:
            kwargs["json"] = deep_merge(json, request_options.extra_body_properties)
        return kwargs

    async def fetch(
        self,
        url: str,
        *,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        """
        Send a request with this LLM's request options applied.

        Raises:
            TransportError: On connection failures or error status codes
        """
        try:
            async with self._client() as client:
                response = await client.request(method, url, **self._request_kwargs(headers, json))
                response.raise_for_status()
                return response
        except httpx.HTTPStatusError as e:
            raise TransportError(f"{self.provider_name} API error: {e}", e.response.status_code) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{self.provider_name} request failed: {e}") from e

    @asynccontextmanager
    async def stream_request(
        self,
        url: str,
        *,
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> AsyncIterator[httpx.Response]:
        """
        Open a streaming request; the response closes when the block exits.

        Raises:
            TransportError: On connection failures or error status codes
        """
        try:
            async with self._client() as client:
                async with client.stream(method, url, **self._request_kwargs(headers, json)) as response:
                    if response.is_error:
                        await response.aread()
                    response.raise_for_status()
                    yield response
        except httpx.HTTPStatusError as e:
            raise TransportError(f"{self.provider_name} API error: {e}", e.response.status_code) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{self.provider_name} request failed: {e}") from e
