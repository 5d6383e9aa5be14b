"""Forwarding LLM calls to a host process that performs them on our behalf."""

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..errors import TransportError


class HostCompleteRequest(BaseModel):
    """Body of a proxied completion request."""
    model_config = ConfigDict(populate_by_name=True)

    prompt: str
    title: Optional[str] = None
    completion_options: Dict[str, Any] = Field(default_factory=dict, alias="completionOptions")


class HostChatRequest(BaseModel):
    """Body of a proxied chat request."""
    model_config = ConfigDict(populate_by_name=True)

    messages: List[Dict[str, Any]]
    title: Optional[str] = None
    completion_options: Dict[str, Any] = Field(default_factory=dict, alias="completionOptions")


class HostCompleteResponse(BaseModel):
    content: str = ""


class HostStreamUpdate(BaseModel):
    """One line of a proxied stream: a fragment, or the final summary."""
    content: Optional[str] = None
    done: bool = False
    prompt: Optional[str] = None
    completion: Optional[str] = None


class HostProxy(ABC):
    """Operations a host process exposes for proxied LLM calls."""

    @abstractmethod
    async def complete(self, request: HostCompleteRequest) -> str:
        """Run a completion in the host and return its full text."""
        pass

    @abstractmethod
    def stream_complete(self, request: HostCompleteRequest) -> AsyncIterator[HostStreamUpdate]:
        """Stream a completion from the host; the last update has ``done`` set."""
        pass

    @abstractmethod
    def stream_chat(self, request: HostChatRequest) -> AsyncIterator[HostStreamUpdate]:
        """Stream a chat response from the host; the last update has ``done`` set."""
        pass


class HttpHostProxy(HostProxy):
    """Host proxy speaking JSON over HTTP.

    ``POST {url}/llmComplete`` answers ``{"content": ...}``. The streaming
    endpoints ``llmStreamComplete`` and ``llmStreamChat`` answer with one
    JSON ``HostStreamUpdate`` per line.
    """

    def __init__(
        self,
        url: str,
        timeout_ms: int = 120000,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize host proxy.

        Args:
            url: Base URL of the host's messaging endpoint
            timeout_ms: Timeout in milliseconds for each request
            client: Shared httpx client; a fresh one is used per call if omitted
        """
        self.url = url.rstrip("/")
        self.timeout_ms = timeout_ms
        self._client = client

    @asynccontextmanager
    async def _client_for_call(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(timeout=self.timeout_ms / 1000.0) as client:
            yield client

    async def complete(self, request: HostCompleteRequest) -> str:
        payload = request.model_dump(by_alias=True)
        try:
            async with self._client_for_call() as client:
                response = await client.post(f"{self.url}/llmComplete", json=payload)
                response.raise_for_status()
                return HostCompleteResponse.model_validate(response.json()).content
        except httpx.HTTPStatusError as e:
            raise TransportError(f"Host request failed: {e}", e.response.status_code) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Host request failed: {e}") from e
        except ValidationError as e:
            raise TransportError(f"Host sent an invalid response: {e}") from e

    async def _stream(self, message_type: str, payload: Dict[str, Any]) -> AsyncIterator[HostStreamUpdate]:
        try:
            async with self._client_for_call() as client:
                async with client.stream("POST", f"{self.url}/{message_type}", json=payload) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line.strip():
                            continue
                        yield HostStreamUpdate.model_validate_json(line)
        except httpx.HTTPStatusError as e:
            raise TransportError(f"Host stream failed: {e}", e.response.status_code) from e
        except httpx.HTTPError as e:
            raise TransportError(f"Host stream failed: {e}") from e
        except ValidationError as e:
            raise TransportError(f"Host sent an invalid stream update: {e}") from e

    def stream_complete(self, request: HostCompleteRequest) -> AsyncIterator[HostStreamUpdate]:
        return self._stream("llmStreamComplete", request.model_dump(by_alias=True))

    def stream_chat(self, request: HostChatRequest) -> AsyncIterator[HostStreamUpdate]:
        return self._stream("llmStreamChat", request.model_dump(by_alias=True))
