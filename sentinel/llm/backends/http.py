"""
HTTP backend for the chat-completion endpoint.

Speaks the OpenAI ``/v1/chat/completions`` wire protocol over ``httpx``.
No ``openai`` SDK needed.  Requests are never retried here; retry policy
belongs to the caller.
"""

from __future__ import annotations

import logging
from typing import Any, AsyncIterator

import httpx

from sentinel.errors import InvalidEndpoint, MalformedResponse, TransportError
from sentinel.llm.backends.base import CompletionBackend
from sentinel.llm.wire import ChatRequest

logger = logging.getLogger(__name__)


class HTTPBackend(CompletionBackend):
    """
    Parameters
    ----------
    api_base:
        Base URL of the API, e.g. ``"https://api.openai.com/v1"``.
    connect_timeout:
        Seconds allowed to establish the connection.
    idle_timeout:
        Seconds the provider may stay silent (no bytes received) before the
        call fails with ``TransportError``.
    transport:
        Optional ``httpx`` transport; tests pass an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_base: str = "https://api.openai.com/v1",
        connect_timeout: float = 10.0,
        idle_timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_base = api_base.rstrip("/")
        self._connect_timeout = connect_timeout
        self._idle_timeout = idle_timeout
        self._transport = transport

    @property
    def name(self) -> str:
        return "http"

    @property
    def endpoint(self) -> str:
        """The full completion URL; raises ``InvalidEndpoint`` if unusable."""
        raw = f"{self._api_base}/chat/completions"
        try:
            url = httpx.URL(raw)
        except (httpx.InvalidURL, TypeError) as exc:
            raise InvalidEndpoint(raw) from exc
        if url.scheme not in ("http", "https") or not url.host:
            raise InvalidEndpoint(raw)
        return str(url)

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _headers(self, api_key: str) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {api_key}",
        }

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(self._idle_timeout, connect=self._connect_timeout)
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    def _log_request(self, body: dict, api_key: str) -> None:
        logger.info(
            "REQUEST: model=%s functions=%d messages=%d stream=%s api_key=%s...",
            body.get("model"),
            len(body.get("functions", [])),
            len(body.get("messages", [])),
            body.get("stream", False),
            api_key[:4] if api_key else "(none)",
        )

    # ------------------------------------------------------------------
    # Non-streaming request
    # ------------------------------------------------------------------

    async def complete(self, request: ChatRequest, api_key: str) -> Any:
        url = self.endpoint
        body = request.to_wire()
        self._log_request(body, api_key)

        try:
            async with self._client() as client:
                resp = await client.post(url, json=body, headers=self._headers(api_key))
        except httpx.TimeoutException as exc:
            raise TransportError("Timed out waiting for the provider", cause=exc) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Request failed: {exc}", cause=exc) from exc

        if resp.is_error:
            raise TransportError(
                f"HTTP {resp.status_code} from provider", status_code=resp.status_code
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise MalformedResponse("Response body is not JSON") from exc

    # ------------------------------------------------------------------
    # Streaming request
    # ------------------------------------------------------------------

    async def stream(self, request: ChatRequest, api_key: str) -> AsyncIterator[str]:
        url = self.endpoint
        body = request.to_wire()
        self._log_request(body, api_key)

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST", url, json=body, headers=self._headers(api_key)
                ) as response:
                    if response.is_error:
                        # Read the body so the connection is released.
                        await response.aread()
                        raise TransportError(
                            f"HTTP {response.status_code} from provider",
                            status_code=response.status_code,
                        )
                    async for text in response.aiter_text():
                        yield text
        except httpx.TimeoutException as exc:
            raise TransportError("Stream stalled past the idle timeout", cause=exc) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"Stream failed: {exc}", cause=exc) from exc
