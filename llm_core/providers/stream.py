"""Cancellable stream of output fragments for one LLM call."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Generic, Optional, TypeVar

from .types import LLMReturnValue

T = TypeVar("T")


@asynccontextmanager
async def closing_stream(iterator: AsyncIterator[T]) -> AsyncIterator[AsyncIterator[T]]:
    """Close ``iterator`` on exit, whether it was drained or abandoned."""
    try:
        yield iterator
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            await aclose()


class LLMStream(Generic[T]):
    """
    Async iterator over the fragments of one call.

    ``result`` holds the prompt that was sent and the accumulated completion
    once the stream has been consumed to the end. Stopping early is done by
    leaving an ``async with`` block or calling ``aclose()``; either releases
    the underlying transport immediately.

    Usage:
        async with llm.stream_complete("def fib(n):") as stream:
            async for chunk in stream:
                print(chunk, end="")
        print(stream.result.completion)
    """

    def __init__(self) -> None:
        self._source: Optional[AsyncGenerator[T, None]] = None
        self.result: Optional[LLMReturnValue] = None

    def attach(self, source: AsyncGenerator[T, None]) -> "LLMStream[T]":
        self._source = source
        return self

    def __aiter__(self) -> "LLMStream[T]":
        return self

    async def __anext__(self) -> T:
        if self._source is None:
            raise StopAsyncIteration
        return await self._source.__anext__()

    async def aclose(self) -> None:
        if self._source is not None:
            await self._source.aclose()

    async def __aenter__(self) -> "LLMStream[T]":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()
