"""
Chat Transport for the streaming inference endpoint.

Opens a single streaming POST per session and exposes the response body as
an async iterator of raw byte chunks. Transport-level failures are mapped to
the client's exception types so the controller never handles httpx errors
directly.
"""

from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from chat_client.config import config
from chat_client.config.streaming_config import StreamingConfig, streaming_config
from chat_client.exceptions import StreamTransportError, UsageLimitExceededError
from chat_client.models.request_models import ChatRequest

logger = logging.getLogger(__name__)


class ChatTransport:
    """Streaming HTTP transport for chat requests."""

    def __init__(
        self,
        base_url: str = config.CHAT_API_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        settings: StreamingConfig = streaming_config,
    ):
        self.base_url = base_url.rstrip("/")
        self.settings = settings
        self._client = client

    def _build_client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(
            self.settings.READ_TIMEOUT, connect=self.settings.CONNECT_TIMEOUT
        )
        return httpx.AsyncClient(timeout=timeout, headers=config.build_auth_headers())

    @asynccontextmanager
    async def open_stream(self, request: ChatRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        """
        Open the response stream for a chat request.

        Args:
            request: Outbound chat request

        Yields:
            Async iterator over raw body chunks

        Raises:
            UsageLimitExceededError: If the service answers 429
            StreamTransportError: On any other error status or transport failure,
                including failures raised while the body is being read
        """
        owns_client = self._client is None
        client = self._client or self._build_client()
        url = f"{self.base_url}{config.CHAT_STREAM_PATH}"

        try:
            async with client.stream("POST", url, json=request.to_payload()) as response:
                if response.status_code == 429:
                    raise UsageLimitExceededError.from_payload(
                        await self._read_error_body(response)
                    )
                if response.status_code >= 400:
                    body = await self._read_error_body(response)
                    raise StreamTransportError(
                        f"Chat request failed with status {response.status_code}: "
                        f"{body.get('error') or body.get('message') or 'unknown error'}",
                        status_code=response.status_code,
                    )

                logger.info(
                    f"📡 Stream opened for conversation {request.conversation_id or 'new'}"
                )
                yield response.aiter_bytes()
        except httpx.RequestError as e:
            raise StreamTransportError(f"{type(e).__name__}: {e}") from e
        finally:
            if owns_client:
                await client.aclose()

    @staticmethod
    async def _read_error_body(response: httpx.Response) -> dict:
        raw = await response.aread()
        try:
            body = json.loads(raw.decode("utf-8")) if raw else {}
        except (json.JSONDecodeError, UnicodeDecodeError):
            return {"error": raw.decode("utf-8", errors="replace")[:500]}
        return body if isinstance(body, dict) else {}
