"""
Chat client models package.

Contains the outbound request model and the collaborator response models.
"""

from chat_client.models.message_models import AttachmentPreview, StoredMessage
from chat_client.models.request_models import (
    AttachmentPayload,
    ChatRequest,
    Location,
)

__all__ = [
    # Request models
    "AttachmentPayload",
    "ChatRequest",
    "Location",
    # Collaborator models
    "AttachmentPreview",
    "StoredMessage",
]
