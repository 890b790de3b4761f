"""
Typed request/response structures for the chat-completion wire protocol.

Internal turns, images and tool schemas are mapped onto an explicit
``ChatRequest`` which serializes itself with ``to_wire()``; responses are
parsed back into ``CompletionResult`` by ``parse_completion``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Sequence, Union

import jsonschema

from sentinel.errors import MalformedResponse, MissingRequiredFields, ToolCallMalformed
from sentinel.llm.types import (
    CompletionResult,
    ConversationTurn,
    ImageAttachment,
    ModelParams,
    Role,
    ToolCall,
    ToolSchema,
)

_FORWARDED_ROLES = (Role.USER, Role.ASSISTANT)


# ---------------------------------------------------------------------------
# Request structures
# ---------------------------------------------------------------------------


@dataclass
class TextPart:
    text: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "text", "text": self.text}


@dataclass
class ImagePart:
    url: str

    def to_wire(self) -> dict[str, Any]:
        return {"type": "image_url", "image_url": {"url": self.url}}


ContentPart = Union[TextPart, ImagePart]


@dataclass
class WireMessage:
    role: str
    content: str | list[ContentPart]

    def to_wire(self) -> dict[str, Any]:
        if isinstance(self.content, str):
            return {"role": self.role, "content": self.content}
        return {"role": self.role, "content": [p.to_wire() for p in self.content]}


@dataclass
class ChatRequest:
    model: str
    messages: list[WireMessage]
    temperature: float
    stream: bool = False
    functions: list[ToolSchema] = field(default_factory=list)

    def to_wire(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "model": self.model,
            "messages": [m.to_wire() for m in self.messages],
            "temperature": self.temperature,
        }
        if self.stream:
            body["stream"] = True
        if self.functions:
            body["functions"] = [f.to_wire() for f in self.functions]
            body["function_call"] = "auto"
        return body


def build_request(
    turns: Sequence[ConversationTurn],
    system_prompt: str,
    tools: Sequence[ToolSchema] | None = None,
    images: Sequence[ImageAttachment] | None = None,
    params: ModelParams | None = None,
    stream: bool = False,
) -> ChatRequest:
    """
    Map conversation turns onto a provider request.

    The system prompt is always the first message.  Only user and assistant
    turns are forwarded.  When *images* are given, the last user message is
    rewritten into a multi-part list: its text (if any) followed by one image
    part per attachment.  With no user turn at all, the images travel in a
    new trailing user message.
    """
    params = params or ModelParams()
    messages = [WireMessage(role=Role.SYSTEM.value, content=system_prompt)]
    messages.extend(
        WireMessage(role=t.role.value, content=t.content)
        for t in turns
        if t.role in _FORWARDED_ROLES
    )

    if images:
        image_parts: list[ContentPart] = [ImagePart(img.to_data_url()) for img in images]
        last_user = None
        for idx in range(len(messages) - 1, 0, -1):
            if messages[idx].role == Role.USER.value:
                last_user = idx
                break
        if last_user is None:
            messages.append(WireMessage(role=Role.USER.value, content=image_parts))
        else:
            text = messages[last_user].content
            parts: list[ContentPart] = [TextPart(text)] if text else []
            messages[last_user] = WireMessage(
                role=Role.USER.value, content=parts + image_parts
            )

    return ChatRequest(
        model=params.model,
        messages=messages,
        temperature=params.temperature,
        stream=stream,
        functions=list(tools or []),
    )


# ---------------------------------------------------------------------------
# Response parsing
# ---------------------------------------------------------------------------


def parse_arguments(name: str, raw: Any) -> dict[str, Any]:
    """Decode a function call's JSON-encoded argument string into a dict."""
    if isinstance(raw, dict):
        return raw
    if raw is None or raw == "":
        raw = "{}"
    if not isinstance(raw, str):
        raise ToolCallMalformed(name, f"unexpected argument type {type(raw).__name__}")
    try:
        args = json.loads(raw)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ToolCallMalformed(name, str(exc)) from exc
    if not isinstance(args, dict):
        raise ToolCallMalformed(name, f"decoded to {type(args).__name__}")
    return args


def parse_completion(data: Any) -> CompletionResult:
    """Convert a non-streaming response body into a ``CompletionResult``."""
    if not isinstance(data, dict):
        raise MalformedResponse("response body is not a JSON object")
    choices = data.get("choices")
    if not isinstance(choices, list) or not choices:
        raise MalformedResponse("response has no choices")
    choice = choices[0]
    message = choice.get("message") if isinstance(choice, dict) else None
    if not isinstance(message, dict):
        raise MalformedResponse("first choice has no message")

    content = message.get("content") or ""
    if not isinstance(content, str):
        raise MalformedResponse("message content is not a string")

    tool_call = None
    raw_call = message.get("function_call")
    if raw_call is not None:
        if not isinstance(raw_call, dict) or not isinstance(raw_call.get("name"), str):
            raise MalformedResponse("function_call has no name")
        name = raw_call["name"]
        tool_call = ToolCall(name=name, arguments=parse_arguments(name, raw_call.get("arguments")))

    return CompletionResult(text_content=content, tool_call=tool_call)


def check_required(tool: ToolSchema, arguments: dict[str, Any]) -> None:
    """
    Raise ``MissingRequiredFields`` if *arguments* lacks any field the tool
    declares as required.  Required fields that are present but null, or of
    the wrong JSON type, count as missing.
    """
    required = tool.required
    if not required:
        return
    props = tool.parameters.get("properties", {})
    schema = {
        "type": "object",
        "required": required,
        "properties": {
            name: {"type": props[name]["type"]}
            for name in required
            if "type" in props.get(name, {})
        },
    }
    errors = list(jsonschema.Draft7Validator(schema).iter_errors(arguments))
    if not errors:
        return
    bad = {name for name in required if name not in arguments}
    bad.update(str(err.path[0]) for err in errors if err.path)
    raise MissingRequiredFields([n for n in required if n in bad], tool=tool.name)
