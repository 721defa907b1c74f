"""
Attachment Extraction Service client.

The extraction pipeline is external; this client uploads raw bytes and
returns the opaque preview that is forwarded with the chat request.
"""

from __future__ import annotations

import base64
import logging
from typing import Optional

import httpx

from chat_client.config import config
from chat_client.config.streaming_config import StreamingConfig, streaming_config
from chat_client.models.message_models import AttachmentPreview
from chat_client.models.request_models import AttachmentPayload

logger = logging.getLogger(__name__)


class AttachmentService:
    """Client for the attachment extraction endpoint."""

    def __init__(
        self,
        base_url: str = config.CHAT_API_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
        settings: StreamingConfig = streaming_config,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = client
        self.settings = settings

    async def extract(self, data: bytes, name: str, mime_type: str) -> AttachmentPreview:
        """
        Extract a preview for an attachment.

        Args:
            data: Raw file bytes
            name: File name
            mime_type: MIME type

        Returns:
            AttachmentPreview; status "error" when the service rejects the file
        """
        url = f"{self.base_url}{config.FILE_EXTRACTION_PATH}"
        files = {"file": (name, data, mime_type)}

        try:
            if self._client is not None:
                response = await self._client.post(url, files=files)
            else:
                async with httpx.AsyncClient(
                    timeout=self.settings.STORE_TIMEOUT,
                    headers=config.build_auth_headers(),
                ) as client:
                    response = await client.post(url, files=files)
        except httpx.HTTPError as e:
            logger.warning(f"Attachment extraction failed for {name}: {e}")
            return AttachmentPreview(preview=None, status="error")

        if response.status_code >= 400:
            logger.warning(
                f"Attachment extraction for {name} returned {response.status_code}"
            )
            return AttachmentPreview(preview=None, status="error")

        return AttachmentPreview.model_validate(response.json())

    async def build_payload(
        self, data: bytes, name: str, mime_type: str
    ) -> AttachmentPayload:
        """Extract a preview and wrap the file as a request attachment."""
        preview = await self.extract(data, name, mime_type)
        encoded = base64.b64encode(data).decode("ascii")
        return AttachmentPayload(
            name=name,
            mime=mime_type,
            data_url=f"data:{mime_type};base64,{encoded}",
            preview=preview.preview,
        )
