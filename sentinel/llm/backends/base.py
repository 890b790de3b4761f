"""Abstract base class for completion backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator

from sentinel.llm.wire import ChatRequest


class CompletionBackend(ABC):
    """
    A backend moves one ``ChatRequest`` to the provider and hands back the
    raw answer.  Request construction and response parsing live in
    ``CompletionClient``; backends only own the transport.

    Implementations must raise ``sentinel.errors`` types
    (``InvalidEndpoint``, ``TransportError``, ``MalformedResponse``) rather
    than transport-library exceptions.
    """

    @abstractmethod
    async def complete(self, request: ChatRequest, api_key: str) -> Any:
        """Send a non-streaming request and return the decoded JSON body."""
        ...

    @abstractmethod
    def stream(self, request: ChatRequest, api_key: str) -> AsyncIterator[str]:
        """
        Send a streaming request and yield decoded text slices as they
        arrive.  Closing the iterator must release the connection.
        """
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable backend name (e.g. ``"http"``)."""
        ...
