"""Tests for sentinel.llm.backends.http.HTTPBackend using httpx.MockTransport."""

from __future__ import annotations

import json

import httpx
import pytest

from sentinel.errors import InvalidEndpoint, MalformedResponse, TransportError
from sentinel.llm.backends.http import HTTPBackend
from sentinel.llm.backends.scripted import completion_body, delta_frame, sse_done
from sentinel.llm.client import CompletionClient
from sentinel.llm.types import ConversationTurn, Done, StreamError, Token
from sentinel.llm.wire import build_request
from tests.mock_backends import TEST_KEY, make_resolver

TURNS = [ConversationTurn.user("There is smoke in the stairwell")]


def make_backend(handler, api_base: str = "https://llm.example.test/v1") -> HTTPBackend:
    return HTTPBackend(api_base=api_base, transport=httpx.MockTransport(handler))


async def drain(agen) -> list:
    return [item async for item in agen]


class TestEndpoint:

    def test_default_endpoint(self):
        assert HTTPBackend().endpoint == "https://api.openai.com/v1/chat/completions"

    def test_trailing_slash_stripped(self):
        backend = HTTPBackend(api_base="http://localhost:8080/v1/")
        assert backend.endpoint == "http://localhost:8080/v1/chat/completions"

    @pytest.mark.parametrize("api_base", ["ftp://example.com/v1", "not a url", ""])
    def test_invalid_endpoint(self, api_base):
        with pytest.raises(InvalidEndpoint):
            HTTPBackend(api_base=api_base).endpoint

    async def test_invalid_endpoint_fails_before_sending(self):
        sent = []
        backend = make_backend(lambda request: sent.append(request), api_base="ftp://nope")
        with pytest.raises(InvalidEndpoint):
            await backend.complete(build_request(TURNS, "S"), TEST_KEY)
        assert sent == []


class TestComplete:

    async def test_headers_and_body(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["auth"] = request.headers["Authorization"]
            captured["content_type"] = request.headers["Content-Type"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=completion_body(content="Evacuate now"))

        backend = make_backend(handler)
        data = await backend.complete(build_request(TURNS, "SYS"), TEST_KEY)

        assert data["choices"][0]["message"]["content"] == "Evacuate now"
        assert captured["url"] == "https://llm.example.test/v1/chat/completions"
        assert captured["auth"] == f"Bearer {TEST_KEY}"
        assert captured["content_type"].startswith("application/json")
        assert captured["body"]["messages"][0] == {"role": "system", "content": "SYS"}

    async def test_error_status(self):
        backend = make_backend(lambda request: httpx.Response(500, json={"error": "boom"}))
        with pytest.raises(TransportError) as exc_info:
            await backend.complete(build_request(TURNS, "S"), TEST_KEY)
        assert exc_info.value.status_code == 500

    async def test_unauthorized(self):
        backend = make_backend(lambda request: httpx.Response(401))
        with pytest.raises(TransportError) as exc_info:
            await backend.complete(build_request(TURNS, "S"), TEST_KEY)
        assert exc_info.value.status_code == 401

    async def test_non_json_body(self):
        backend = make_backend(lambda request: httpx.Response(200, text="<html>gateway</html>"))
        with pytest.raises(MalformedResponse):
            await backend.complete(build_request(TURNS, "S"), TEST_KEY)

    async def test_read_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(TransportError) as exc_info:
            await make_backend(handler).complete(build_request(TURNS, "S"), TEST_KEY)
        assert isinstance(exc_info.value.cause, httpx.ReadTimeout)
        assert exc_info.value.status_code is None

    async def test_connect_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(TransportError):
            await make_backend(handler).complete(build_request(TURNS, "S"), TEST_KEY)


class TestStream:

    async def test_sse_body(self):
        sse = delta_frame(content="Stay ") + delta_frame(content="low") + sse_done()
        captured = {}

        def handler(request):
            captured["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                content=sse.encode("utf-8"),
                headers={"Content-Type": "text/event-stream"},
            )

        backend = make_backend(handler)
        chunks = await drain(backend.stream(build_request(TURNS, "S", stream=True), TEST_KEY))
        assert "".join(chunks) == sse
        assert captured["body"]["stream"] is True

    async def test_error_status(self):
        backend = make_backend(lambda request: httpx.Response(503, text="unavailable"))
        with pytest.raises(TransportError) as exc_info:
            await drain(backend.stream(build_request(TURNS, "S", stream=True), TEST_KEY))
        assert exc_info.value.status_code == 503

    async def test_read_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("stalled", request=request)

        backend = make_backend(handler)
        with pytest.raises(TransportError):
            await drain(backend.stream(build_request(TURNS, "S", stream=True), TEST_KEY))

    async def test_through_client(self):
        sse = delta_frame(content="Help ") + delta_frame(content="is coming") + sse_done()
        backend = make_backend(lambda request: httpx.Response(200, content=sse.encode("utf-8")))
        client = CompletionClient(backend, make_resolver())
        events = await drain(client.stream(TURNS, "S"))
        assert events == [Token("Help "), Token("is coming"), Done()]

    async def test_client_maps_http_error_to_stream_error(self):
        backend = make_backend(lambda request: httpx.Response(429))
        client = CompletionClient(backend, make_resolver())
        events = await drain(client.stream(TURNS, "S"))
        assert len(events) == 1
        assert isinstance(events[0], StreamError)
        assert events[0].cause.status_code == 429
