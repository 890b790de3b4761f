"""
Scriptable backend for tests and offline demos.

Replays pre-configured responses instead of talking to a provider, and
records every request so callers can assert on what would have been sent.

Usage::

    backend = ScriptedBackend(
        responses=[completion_body(function_call=("createIncidentReport", {...}))],
        streams=[token_frames("Hello there") + [sse_done()]],
    )
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator, Iterable

from sentinel.llm.backends.base import CompletionBackend
from sentinel.llm.wire import ChatRequest


# ---------------------------------------------------------------------------
# Wire builders
# ---------------------------------------------------------------------------


def sse_frame(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def sse_done() -> str:
    return "data: [DONE]\n\n"


def delta_frame(
    content: str | None = None,
    name: str | None = None,
    arguments: str | None = None,
) -> str:
    """One streaming chunk carrying text and/or a function-call delta."""
    delta: dict[str, Any] = {}
    if content is not None:
        delta["content"] = content
    if name is not None or arguments is not None:
        func: dict[str, str] = {}
        if name is not None:
            func["name"] = name
        if arguments is not None:
            func["arguments"] = arguments
        delta["function_call"] = func
    return sse_frame({"choices": [{"index": 0, "delta": delta}]})


def token_frames(text: str) -> list[str]:
    """Split *text* on spaces into one content frame per word."""
    words = text.split(" ")
    return [
        delta_frame(content=word + (" " if i < len(words) - 1 else ""))
        for i, word in enumerate(words)
    ]


def function_call_frames(name: str, arguments: dict[str, Any], pieces: int = 3) -> list[str]:
    """A function call whose JSON arguments are spread over *pieces* frames."""
    args_json = json.dumps(arguments)
    size = max(1, -(-len(args_json) // max(1, pieces)))
    chunks = [args_json[i:i + size] for i in range(0, len(args_json), size)]
    frames = [delta_frame(name=name, arguments="")]
    frames.extend(delta_frame(arguments=chunk) for chunk in chunks)
    return frames


def completion_body(
    content: str | None = "",
    function_call: tuple[str, dict[str, Any] | str] | None = None,
) -> dict[str, Any]:
    """A non-streaming response body."""
    message: dict[str, Any] = {"role": "assistant", "content": content}
    if function_call is not None:
        name, args = function_call
        message["function_call"] = {
            "name": name,
            "arguments": args if isinstance(args, str) else json.dumps(args),
        }
    return {"choices": [{"index": 0, "message": message, "finish_reason": "stop"}]}


# ---------------------------------------------------------------------------
# Backend
# ---------------------------------------------------------------------------


class ScriptedBackend(CompletionBackend):
    """
    Parameters
    ----------
    responses:
        Bodies returned by successive ``complete`` calls.  An ``Exception``
        entry is raised instead of returned.
    streams:
        Text-slice sequences yielded by successive ``stream`` calls.  An
        ``Exception`` entry (or an exception inside a sequence) is raised at
        that point.
    """

    def __init__(
        self,
        responses: Iterable[Any] | None = None,
        streams: Iterable[Any] | None = None,
    ) -> None:
        self._responses = list(responses or [])
        self._streams = list(streams or [])
        self.requests: list[ChatRequest] = []
        self.api_keys: list[str] = []
        self.closed_early = False

    @property
    def name(self) -> str:
        return "scripted"

    @property
    def last_body(self) -> dict[str, Any]:
        return self.requests[-1].to_wire()

    async def complete(self, request: ChatRequest, api_key: str) -> Any:
        self.requests.append(request)
        self.api_keys.append(api_key)
        if not self._responses:
            raise RuntimeError("ScriptedBackend has no response left for complete()")
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    async def stream(self, request: ChatRequest, api_key: str) -> AsyncIterator[str]:
        self.requests.append(request)
        self.api_keys.append(api_key)
        if not self._streams:
            raise RuntimeError("ScriptedBackend has no stream left for stream()")
        script = self._streams.pop(0)
        if isinstance(script, Exception):
            raise script
        pieces = list(script)
        for i, piece in enumerate(pieces):
            if isinstance(piece, Exception):
                raise piece
            try:
                yield piece
            except GeneratorExit:
                if i < len(pieces) - 1:
                    self.closed_early = True
                raise
