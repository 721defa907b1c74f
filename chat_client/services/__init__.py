"""
Chat client services package.

Contains the HTTP collaborators and the streaming controller.
"""

from chat_client.services.attachment_service import AttachmentService
from chat_client.services.chat_transport import ChatTransport
from chat_client.services.streaming import StreamController, StreamObserver

__all__ = [
    "AttachmentService",
    "ChatTransport",
    "StreamController",
    "StreamObserver",
]
