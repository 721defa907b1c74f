"""Unit tests for ChatTransport."""

import json

import httpx
import pytest

from chat_client.exceptions import StreamTransportError, UsageLimitExceededError
from chat_client.models.request_models import ChatRequest
from chat_client.services.chat_transport import ChatTransport


def _transport(handler) -> ChatTransport:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return ChatTransport(base_url="https://chat.test/", client=client)


class TestChatTransport:
    """Test the streaming POST and error mapping."""

    @pytest.mark.asyncio
    async def test_streams_body_and_sends_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, content=b'{"token": "Hi"}\n{"done": true}\n')

        transport = _transport(handler)
        request = ChatRequest(
            conversation_id="conv-1", message="Hi", reasoning_effort_override="low"
        )

        async with transport.open_stream(request) as chunks:
            body = b"".join([chunk async for chunk in chunks])

        assert body == b'{"token": "Hi"}\n{"done": true}\n'
        assert seen["url"] == "https://chat.test/api/chat"
        assert seen["body"] == {
            "conversationId": "conv-1",
            "message": "Hi",
            "reasoningEffortOverride": "low",
            "attachments": [],
        }

    @pytest.mark.asyncio
    async def test_429_raises_usage_limit(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                429,
                json={
                    "error": "usage_limit_exceeded",
                    "message": "Limit reached",
                    "currentSpending": 5.2,
                    "limit": 5,
                    "planType": "free",
                },
            )

        with pytest.raises(UsageLimitExceededError) as exc_info:
            async with _transport(handler).open_stream(ChatRequest(message="Hi")):
                pass

        error = exc_info.value
        assert str(error) == "Limit reached"
        assert error.status_code == 429
        assert error.current_spending == 5.2
        assert error.limit == 5
        assert error.plan_type == "free"

    @pytest.mark.asyncio
    async def test_error_status_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, json={"error": "internal_error"})

        with pytest.raises(StreamTransportError) as exc_info:
            async with _transport(handler).open_stream(ChatRequest(message="Hi")):
                pass

        assert exc_info.value.status_code == 500
        assert "internal_error" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_non_json_error_body(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, content=b"Bad Gateway")

        with pytest.raises(StreamTransportError) as exc_info:
            async with _transport(handler).open_stream(ChatRequest(message="Hi")):
                pass

        assert "Bad Gateway" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_connection_failure_raises_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(StreamTransportError) as exc_info:
            async with _transport(handler).open_stream(ChatRequest(message="Hi")):
                pass

        assert exc_info.value.status_code is None
        assert "ConnectError" in str(exc_info.value)
