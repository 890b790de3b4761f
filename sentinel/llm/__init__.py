"""LLM subsystem -- completion client, backends, and stream reassembly."""

from sentinel.llm.client import CompletionClient
from sentinel.llm.stream_reassembler import StreamReassembler, StreamState
from sentinel.llm.tool_call_accumulator import StreamCollector, ToolCallAccumulator
from sentinel.llm.types import (
    CompletionResult,
    ConversationTurn,
    Done,
    ImageAttachment,
    ModelParams,
    Role,
    StreamError,
    StreamEvent,
    Token,
    ToolCall,
    ToolCallArgChunk,
    ToolCallStart,
    ToolSchema,
    TurnKind,
)

__all__ = [
    "CompletionClient",
    "CompletionResult",
    "ConversationTurn",
    "Done",
    "ImageAttachment",
    "ModelParams",
    "Role",
    "StreamCollector",
    "StreamError",
    "StreamEvent",
    "StreamReassembler",
    "StreamState",
    "Token",
    "ToolCall",
    "ToolCallAccumulator",
    "ToolCallArgChunk",
    "ToolCallStart",
    "ToolSchema",
    "TurnKind",
]
