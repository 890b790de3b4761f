"""
Completion client -- one request/response cycle against the provider.

The client owns request construction, credential lookup and response
interpretation; the injected ``CompletionBackend`` owns the transport.

    complete()            -> CompletionResult (raises ServiceError)
    stream()              -> async iterator of StreamEvent
    complete_streaming()  -> drives stream() into an ``on_event`` callback
    collect()             -> stream() folded into a CompletionResult
"""

from __future__ import annotations

import inspect
import logging
from contextlib import aclosing
from typing import AsyncIterator, Awaitable, Callable, Sequence, Union

from sentinel.credentials import CredentialResolver
from sentinel.errors import MalformedResponse, ServiceError
from sentinel.llm.backends.base import CompletionBackend
from sentinel.llm.stream_reassembler import StreamReassembler
from sentinel.llm.tool_call_accumulator import StreamCollector
from sentinel.llm.types import (
    CompletionResult,
    ConversationTurn,
    ImageAttachment,
    ModelParams,
    StreamError,
    StreamEvent,
    ToolSchema,
)
from sentinel.llm.wire import build_request, check_required, parse_completion

logger = logging.getLogger(__name__)

OnEvent = Callable[[StreamEvent], Union[None, Awaitable[None]]]


class CompletionClient:
    """
    Parameters
    ----------
    backend:
        Transport used to reach the provider.
    credentials:
        Resolver consulted for the API key on every call.
    params:
        Default model parameters; a per-call ``params`` overrides them.
    api_key:
        Explicit key that takes precedence over every credential source.
    """

    def __init__(
        self,
        backend: CompletionBackend,
        credentials: CredentialResolver,
        params: ModelParams | None = None,
        api_key: str | None = None,
    ) -> None:
        self.backend = backend
        self.credentials = credentials
        self.params = params or ModelParams()
        self._explicit_key = api_key

    def resolve_api_key(self) -> str:
        return self.credentials.resolve(self._explicit_key)

    # ------------------------------------------------------------------
    # Non-streaming
    # ------------------------------------------------------------------

    async def complete(
        self,
        turns: Sequence[ConversationTurn],
        system_prompt: str,
        tools: Sequence[ToolSchema] | None = None,
        images: Sequence[ImageAttachment] | None = None,
        params: ModelParams | None = None,
    ) -> CompletionResult:
        api_key = self.resolve_api_key()
        request = build_request(
            turns, system_prompt, tools, images, params or self.params, stream=False
        )
        data = await self.backend.complete(request, api_key)
        result = parse_completion(data)
        _check_tool_call(result, tools)
        logger.debug(
            "Completion: %d chars, tool_call=%s",
            len(result.text_content),
            result.tool_call.name if result.tool_call else None,
        )
        return result

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    async def stream(
        self,
        turns: Sequence[ConversationTurn],
        system_prompt: str,
        tools: Sequence[ToolSchema] | None = None,
        images: Sequence[ImageAttachment] | None = None,
        params: ModelParams | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """
        Yield ``StreamEvent`` objects in arrival order.

        The sequence always ends with exactly one ``Done`` or ``StreamError``
        and nothing follows it.  Closing the iterator early closes the
        underlying response.
        """
        try:
            api_key = self.resolve_api_key()
            request = build_request(
                turns, system_prompt, tools, images, params or self.params, stream=True
            )
        except ServiceError as exc:
            yield StreamError(exc)
            return

        reassembler = StreamReassembler()
        source = self.backend.stream(request, api_key)
        try:
            async for text in source:
                for event in reassembler.feed(text):
                    yield event
                if reassembler.finished:
                    break
            for event in reassembler.finish():
                yield event
        except ServiceError as exc:
            if not reassembler.finished:
                logger.warning("Stream failed: %s", exc)
                yield StreamError(exc)
        finally:
            aclose = getattr(source, "aclose", None)
            if aclose is not None:
                await aclose()

    async def complete_streaming(
        self,
        turns: Sequence[ConversationTurn],
        system_prompt: str,
        tools: Sequence[ToolSchema] | None = None,
        images: Sequence[ImageAttachment] | None = None,
        params: ModelParams | None = None,
        *,
        on_event: OnEvent,
    ) -> None:
        """
        Invoke *on_event* once per event.  The callback may be a plain
        function or a coroutine function; it should return promptly since
        the next frame is not read until it does.
        """
        async with aclosing(self.stream(turns, system_prompt, tools, images, params)) as events:
            async for event in events:
                outcome = on_event(event)
                if inspect.isawaitable(outcome):
                    await outcome

    async def collect(
        self,
        turns: Sequence[ConversationTurn],
        system_prompt: str,
        tools: Sequence[ToolSchema] | None = None,
        images: Sequence[ImageAttachment] | None = None,
        params: ModelParams | None = None,
    ) -> CompletionResult:
        """Consume a streamed completion and return its ``CompletionResult``."""
        collector = StreamCollector()
        result: CompletionResult | None = None
        async with aclosing(self.stream(turns, system_prompt, tools, images, params)) as events:
            async for event in events:
                result = collector.feed(event)
                if result is not None:
                    break
        if result is None:
            raise MalformedResponse("stream ended without a terminal event")
        _check_tool_call(result, tools)
        return result


def _check_tool_call(
    result: CompletionResult, tools: Sequence[ToolSchema] | None
) -> None:
    """Validate the called function's required fields against its schema."""
    if result.tool_call is None or not tools:
        return
    for tool in tools:
        if tool.name == result.tool_call.name:
            check_required(tool, result.tool_call.arguments)
            return
