"""Configuration package for the chat stream client."""

from chat_client.config.streaming_config import StreamingConfig, streaming_config

__all__ = ["StreamingConfig", "streaming_config"]
