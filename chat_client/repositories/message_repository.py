"""
Message Repository for Message Store access.

Provides the two operations the stream controller needs from durable storage:
reading the most recent assistant record of a conversation (recovery) and
writing message metadata back (client timing write-back).
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional, Protocol, runtime_checkable

import httpx

from chat_client.config import config
from chat_client.config.streaming_config import StreamingConfig, streaming_config
from chat_client.models.message_models import StoredMessage

logger = logging.getLogger(__name__)


@runtime_checkable
class MessageStore(Protocol):
    """Structural interface for the Message Store collaborator."""

    async def read_latest_assistant_record(
        self, conversation_id: str
    ) -> Optional[StoredMessage]:
        """Return the most recent assistant message of the conversation, if any."""
        ...

    async def write_metadata(self, message_id: str, metadata: Dict[str, Any]) -> None:
        """Replace the persisted metadata of a message."""
        ...


class HttpMessageRepository:
    """
    Message Store backed by the service's HTTP message endpoints.

    Encapsulates URL layout and payload shapes; callers only see
    :class:`StoredMessage` values.
    """

    def __init__(
        self,
        base_url: str = config.CHAT_API_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        settings: StreamingConfig = streaming_config,
    ):
        """
        Initialize the repository.

        Args:
            base_url: Service base URL
            client: Optional shared client; when omitted a client is created per call
            settings: Streaming configuration (for the store timeout)
        """
        self.base_url = base_url.rstrip("/")
        self._client = client
        self.settings = settings

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._client is not None:
            yield self._client
            return
        async with httpx.AsyncClient(
            timeout=self.settings.STORE_TIMEOUT,
            headers=config.build_auth_headers(),
        ) as client:
            yield client

    async def read_latest_assistant_record(
        self, conversation_id: str
    ) -> Optional[StoredMessage]:
        """
        Read the latest assistant message of a conversation.

        Args:
            conversation_id: Conversation ID

        Returns:
            StoredMessage or None if the conversation has no assistant message yet

        Raises:
            httpx.HTTPError: On transport failures or non-404 error statuses
        """
        url = f"{self.base_url}{config.LATEST_ASSISTANT_MESSAGE_PATH}"
        async with self._session() as client:
            response = await client.get(url, params={"conversationId": conversation_id})

        if response.status_code == 404:
            return None
        response.raise_for_status()

        body = response.json()
        record = body.get("message") if isinstance(body, dict) and "message" in body else body
        if not record:
            return None
        return StoredMessage.model_validate(record)

    async def write_metadata(self, message_id: str, metadata: Dict[str, Any]) -> None:
        """
        Persist metadata for a message.

        Args:
            message_id: Persisted message ID
            metadata: Full metadata object to store

        Raises:
            httpx.HTTPError: If the update is rejected
        """
        url = f"{self.base_url}{config.UPDATE_METADATA_PATH}"
        async with self._session() as client:
            response = await client.post(
                url, json={"messageId": message_id, "metadata": metadata}
            )
        response.raise_for_status()
        logger.debug(f"Metadata written for message {message_id}")
