"""Unit tests for AttachmentService."""

import base64

import httpx
import pytest

from chat_client.services.attachment_service import AttachmentService


def _service(handler) -> AttachmentService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return AttachmentService(base_url="https://chat.test", client=client)


class TestAttachmentService:
    """Test extraction and payload building."""

    @pytest.mark.asyncio
    async def test_extract_success(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = request.content
            return httpx.Response(200, json={"preview": "Quarterly report", "status": "ok"})

        result = await _service(handler).extract(b"%PDF-1.4", "report.pdf", "application/pdf")

        assert result.preview == "Quarterly report"
        assert result.status == "ok"
        assert seen["path"] == "/api/files/read"
        assert b'filename="report.pdf"' in seen["body"]

    @pytest.mark.asyncio
    async def test_extract_rejected_file(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(415, json={"error": "unsupported"})

        result = await _service(handler).extract(b"...", "a.bin", "application/octet-stream")

        assert result.status == "error"
        assert result.preview is None

    @pytest.mark.asyncio
    async def test_extract_connection_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("down", request=request)

        result = await _service(handler).extract(b"x", "a.txt", "text/plain")

        assert result.status == "error"

    @pytest.mark.asyncio
    async def test_build_payload(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"preview": "hello", "status": "ok"})

        payload = await _service(handler).build_payload(b"hello", "a.txt", "text/plain")

        encoded = base64.b64encode(b"hello").decode("ascii")
        assert payload.data_url == f"data:text/plain;base64,{encoded}"
        assert payload.preview == "hello"
        assert payload.model_dump(by_alias=True)["dataUrl"].startswith("data:text/plain")
