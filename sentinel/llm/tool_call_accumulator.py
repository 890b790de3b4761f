"""
Accumulates streamed function-call fragments into a finished ``ToolCall``.

Argument fragments are individually unparseable; they are concatenated in
arrival order and the buffer is decoded exactly once, when the stream has
ended (``Done``) or the caller calls ``finish()`` explicitly.
"""

from __future__ import annotations

from sentinel.errors import ProtocolViolation
from sentinel.llm.types import (
    CompletionResult,
    Done,
    StreamError,
    StreamEvent,
    Token,
    ToolCall,
    ToolCallArgChunk,
    ToolCallStart,
)
from sentinel.llm.wire import parse_arguments


class ToolCallAccumulator:
    """Per-call buffer of argument fragments."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._fragments: list[str] = []

    def append(self, fragment: str) -> None:
        self._fragments.append(fragment)

    @property
    def raw_arguments(self) -> str:
        return "".join(self._fragments)

    def finish(self) -> ToolCall:
        """Parse the concatenated buffer; raises ``ToolCallMalformed``."""
        return ToolCall(name=self.name, arguments=parse_arguments(self.name, self.raw_arguments))


class StreamCollector:
    """
    Folds a ``StreamEvent`` sequence into a ``CompletionResult``.

    ``feed()`` returns ``None`` until ``Done`` arrives, then the result.  A
    ``StreamError`` discards everything collected so far and raises its
    cause: tokens and fragments delivered before an error are not valid.
    """

    def __init__(self) -> None:
        self._text: list[str] = []
        self._call: ToolCallAccumulator | None = None
        self.result: CompletionResult | None = None

    def feed(self, event: StreamEvent) -> CompletionResult | None:
        if self.result is not None:
            raise ProtocolViolation("event received after Done")

        if isinstance(event, Token):
            self._text.append(event.text)
        elif isinstance(event, ToolCallStart):
            if self._call is not None:
                raise ProtocolViolation(f"second function call {event.name!r}")
            self._call = ToolCallAccumulator(event.name)
        elif isinstance(event, ToolCallArgChunk):
            if self._call is None:
                raise ProtocolViolation("argument fragment before function call name")
            self._call.append(event.fragment)
        elif isinstance(event, StreamError):
            self._text.clear()
            self._call = None
            raise event.cause
        elif isinstance(event, Done):
            tool_call = self._call.finish() if self._call is not None else None
            self.result = CompletionResult(text_content="".join(self._text), tool_call=tool_call)
            return self.result
        return None
