"""Repositories for persisted chat data."""

from chat_client.repositories.message_repository import (
    HttpMessageRepository,
    MessageStore,
)

__all__ = ["HttpMessageRepository", "MessageStore"]
