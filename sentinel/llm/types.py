"""Core types for the LLM subsystem."""

from __future__ import annotations

import base64
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"
    TOOL = "tool"


class TurnKind(str, Enum):
    CHAT = "chat"
    EMERGENCY = "emergency"
    IMAGE = "image"


@dataclass(frozen=True)
class ConversationTurn:
    """
    A single message in a conversation.

    Turns are immutable; they are replayed to the model oldest first.
    """

    role: Role
    content: str
    id: str = field(default_factory=_new_id)
    created_at: datetime = field(default_factory=_utcnow)
    kind: TurnKind = TurnKind.CHAT

    @classmethod
    def user(cls, content: str, kind: TurnKind = TurnKind.CHAT) -> ConversationTurn:
        return cls(role=Role.USER, content=content, kind=kind)

    @classmethod
    def assistant(cls, content: str, kind: TurnKind = TurnKind.CHAT) -> ConversationTurn:
        return cls(role=Role.ASSISTANT, content=content, kind=kind)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role.value,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
            "kind": self.kind.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConversationTurn:
        """Rebuild a turn from ``to_dict`` output; ``id`` and ``created_at`` are optional."""
        kwargs: dict[str, Any] = {
            "role": Role(data["role"]),
            "content": data.get("content", ""),
            "kind": TurnKind(data.get("kind", TurnKind.CHAT.value)),
        }
        if data.get("id"):
            kwargs["id"] = data["id"]
        ts = data.get("created_at")
        if isinstance(ts, str):
            kwargs["created_at"] = datetime.fromisoformat(ts)
        return cls(**kwargs)


def emergency_turn(level: str) -> ConversationTurn:
    """The user turn recorded when emergency assistance is requested."""
    return ConversationTurn.user(
        f"EMERGENCY: {level} assistance requested", kind=TurnKind.EMERGENCY
    )


def image_upload_turn(count: int) -> ConversationTurn:
    return ConversationTurn.user(f"Uploaded {count} image(s)", kind=TurnKind.IMAGE)


def incident_context_turn(incident_type: str) -> ConversationTurn:
    return ConversationTurn.user(f"This is a {incident_type} incident.")


@dataclass(frozen=True)
class ImageAttachment:
    """Binary image data forwarded inline with the last user turn."""

    data: bytes
    media_type: str = "image/png"

    @classmethod
    def png(cls, data: bytes) -> ImageAttachment:
        """Wrap PNG bytes, rejecting anything without a PNG signature."""
        if not data.startswith(PNG_SIGNATURE):
            raise ValueError("image data is not PNG encoded")
        return cls(data=data, media_type="image/png")

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.media_type};base64,{encoded}"


@dataclass(frozen=True)
class ToolSchema:
    """A function the model may invoke, with its JSON-Schema parameters."""

    name: str
    description: str
    parameters: dict[str, Any]

    @property
    def required(self) -> list[str]:
        return list(self.parameters.get("required", []))

    def to_wire(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


@dataclass(frozen=True)
class ModelParams:
    model: str = "gpt-4o"
    temperature: float = 0.7


@dataclass
class ToolCall:
    """A resolved function call with parsed arguments."""

    name: str
    arguments: dict[str, Any]


@dataclass
class CompletionResult:
    """
    The complete assistant answer.

    Returned directly by a non-streaming completion, or synthesized from the
    event sequence of a streaming one.
    """

    text_content: str = ""
    tool_call: ToolCall | None = None


# ---------------------------------------------------------------------------
# Stream events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Token:
    text: str

    is_terminal = False


@dataclass(frozen=True)
class ToolCallStart:
    name: str

    is_terminal = False


@dataclass(frozen=True)
class ToolCallArgChunk:
    """A fragment of the JSON-encoded argument object; not valid JSON on its own."""

    fragment: str

    is_terminal = False


@dataclass(frozen=True)
class StreamError:
    cause: Exception

    is_terminal = True


@dataclass(frozen=True)
class Done:
    is_terminal = True


StreamEvent = Union[Token, ToolCallStart, ToolCallArgChunk, StreamError, Done]
