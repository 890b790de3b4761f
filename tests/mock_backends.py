"""
Canned backends and fixtures for testing.

Builds ``ScriptedBackend`` instances and credential resolvers so tests can
exercise the client, the report generator and the service without hitting
a real provider.
"""

from __future__ import annotations

import struct
import zlib
from typing import Any

from sentinel.credentials import (
    BuildConfig,
    CredentialResolver,
    EnvironmentReader,
    MemoryCredentialStore,
)
from sentinel.llm.backends.scripted import (
    ScriptedBackend,
    completion_body,
    function_call_frames,
    sse_done,
    token_frames,
)
from sentinel.llm.client import CompletionClient
from sentinel.llm.types import PNG_SIGNATURE, ImageAttachment
from sentinel.prompts.catalog import REPORT_TOOL_NAME

TEST_KEY = "sk-test-1234"


def make_resolver(
    key: str | None = TEST_KEY,
    environ: dict[str, str] | None = None,
) -> CredentialResolver:
    """A resolver whose store holds *key* (or nothing) and whose environment is *environ*."""
    store = MemoryCredentialStore({"OPENAI_API_KEY": key} if key else {})
    return CredentialResolver(
        store=store,
        build_config=BuildConfig(),
        environment=EnvironmentReader(environ=environ or {}),
    )


def make_client(backend: ScriptedBackend, key: str | None = TEST_KEY) -> CompletionClient:
    return CompletionClient(backend, make_resolver(key))


def make_text_stream(text: str) -> list[str]:
    return token_frames(text) + [sse_done()]


def make_tool_call_stream(name: str, arguments: dict[str, Any], pieces: int = 3) -> list[str]:
    return function_call_frames(name, arguments, pieces=pieces) + [sse_done()]


def make_report_body(**arguments: Any) -> dict[str, Any]:
    """A non-streaming body whose message calls the report function."""
    return completion_body(content=None, function_call=(REPORT_TOOL_NAME, arguments))


def make_png(width: int = 1, height: int = 1) -> bytes:
    """A minimal valid grayscale PNG."""

    def chunk(kind: bytes, data: bytes) -> bytes:
        crc = zlib.crc32(kind + data) & 0xFFFFFFFF
        return struct.pack(">I", len(data)) + kind + data + struct.pack(">I", crc)

    header = struct.pack(">IIBBBBB", width, height, 8, 0, 0, 0, 0)
    raw = b"".join(b"\x00" + b"\x00" * width for _ in range(height))
    return (
        PNG_SIGNATURE
        + chunk(b"IHDR", header)
        + chunk(b"IDAT", zlib.compress(raw))
        + chunk(b"IEND", b"")
    )


def make_image() -> ImageAttachment:
    return ImageAttachment.png(make_png())
