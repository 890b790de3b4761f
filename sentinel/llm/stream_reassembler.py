"""
Turns the provider's Server-Sent Events byte stream into ``StreamEvent``s.

Each SSE frame has the form::

    data: {json}\\n\\n

and the sentinel ``data: [DONE]`` terminates the stream.  The reassembler is
transport-agnostic: feed it decoded text in whatever slices the network
delivers and it yields events as soon as a complete frame is buffered.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any

from sentinel.errors import ProtocolViolation, TransportError
from sentinel.llm.types import (
    Done,
    StreamError,
    StreamEvent,
    Token,
    ToolCallArgChunk,
    ToolCallStart,
)

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"
FRAME_DELIMITER = "\n\n"


def _provider_error(error: Any) -> TransportError:
    """Wrap the payload of an ``{"error": ...}`` frame."""
    message = error
    status_code = None
    if isinstance(error, dict):
        message = error.get("message") or error
        code = error.get("code")
        if isinstance(code, int):
            status_code = code
    return TransportError(f"Provider error mid-stream: {message}", status_code=status_code)


class StreamState(Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    DONE = "done"
    ERRORED = "errored"


class StreamReassembler:
    """
    Incremental SSE parser for chat-completion streams.

    ``feed()`` accepts raw text slices and returns the events completed by
    that slice; ``finish()`` flushes whatever is left once the transport
    closes.  After ``Done`` or ``StreamError`` has been emitted the
    reassembler is terminal and ignores further input.
    """

    def __init__(self) -> None:
        self._buffer = ""
        self._call_name: str | None = None
        self.state = StreamState.IDLE

    @property
    def finished(self) -> bool:
        return self.state in (StreamState.DONE, StreamState.ERRORED)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def feed(self, text: str) -> list[StreamEvent]:
        if self.finished:
            return []
        self.state = StreamState.STREAMING

        # A trailing "\r" waits in the buffer until its "\n" arrives.
        self._buffer = (self._buffer + text).replace("\r\n", "\n")

        events: list[StreamEvent] = []
        while FRAME_DELIMITER in self._buffer:
            frame, self._buffer = self._buffer.split(FRAME_DELIMITER, 1)
            events.extend(self._handle_frame(frame))
            if self.finished:
                self._buffer = ""
                break
        return events

    def finish(self) -> list[StreamEvent]:
        """
        Flush the residual buffer at end of transport.

        A stream that closes without the ``[DONE]`` sentinel still ends with
        ``Done`` once any complete trailing frame has been processed.
        """
        if self.finished:
            return []
        events: list[StreamEvent] = []
        residual, self._buffer = self._buffer, ""
        if residual.strip():
            events.extend(self._handle_frame(residual))
        if not self.finished:
            logger.debug("Stream closed without %s sentinel", DONE_SENTINEL)
            self.state = StreamState.DONE
            events.append(Done())
        return events

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _handle_frame(self, frame: str) -> list[StreamEvent]:
        data_lines = [
            line[len(DATA_PREFIX):].strip()
            for line in frame.split("\n")
            if line.startswith(DATA_PREFIX)
        ]
        if not data_lines:
            # Comments / keep-alives (": ping") carry no data.
            return []

        payload = "\n".join(data_lines)
        if payload == DONE_SENTINEL:
            self.state = StreamState.DONE
            return [Done()]

        try:
            data = json.loads(payload)
        except json.JSONDecodeError:
            logger.debug("Skipping unparseable SSE frame: %s", payload[:200])
            return []

        return self._delta_to_events(data)

    def _delta_to_events(self, data: Any) -> list[StreamEvent]:
        """Convert one parsed frame into events; mis-shaped frames yield none."""
        if not isinstance(data, dict):
            return []
        if "error" in data:
            logger.warning("Provider sent an in-stream error frame: %s", data["error"])
            self.state = StreamState.ERRORED
            return [StreamError(_provider_error(data["error"]))]

        choices = data.get("choices")
        if not isinstance(choices, list) or not choices or not isinstance(choices[0], dict):
            return []
        delta = choices[0].get("delta")
        if not isinstance(delta, dict):
            return []

        events: list[StreamEvent] = []

        content = delta.get("content")
        if isinstance(content, str) and content:
            events.append(Token(content))

        func = delta.get("function_call")
        if isinstance(func, dict):
            name = func.get("name")
            if isinstance(name, str) and name:
                if self._call_name is not None:
                    logger.warning(
                        "Second function_call name %r after %r", name, self._call_name
                    )
                    self.state = StreamState.ERRORED
                    events.append(
                        StreamError(
                            ProtocolViolation(
                                f"function call {name!r} started while "
                                f"{self._call_name!r} was in progress"
                            )
                        )
                    )
                    return events
                self._call_name = name
                events.append(ToolCallStart(name))

            fragment = func.get("arguments")
            if isinstance(fragment, str) and fragment:
                events.append(ToolCallArgChunk(fragment))

        return events
