"""
Environment configuration for the chat stream client.

Values are read once at import time; a local ``.env`` file is honoured.
"""

import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

CHAT_API_BASE_URL = os.getenv("CHAT_API_BASE_URL", "http://127.0.0.1:3000")
CHAT_API_TOKEN = os.getenv("CHAT_API_TOKEN")

# Endpoint paths relative to CHAT_API_BASE_URL
CHAT_STREAM_PATH = os.getenv("CHAT_STREAM_PATH", "/api/chat")
LATEST_ASSISTANT_MESSAGE_PATH = os.getenv(
    "LATEST_ASSISTANT_MESSAGE_PATH", "/api/messages/latest-assistant"
)
UPDATE_METADATA_PATH = os.getenv(
    "UPDATE_METADATA_PATH", "/api/messages/update-metadata"
)
FILE_EXTRACTION_PATH = os.getenv("FILE_EXTRACTION_PATH", "/api/files/read")

# Logging
CHAT_CLIENT_LOG_FILE = os.getenv("CHAT_CLIENT_LOG_FILE")
CHAT_CLIENT_LOG_LEVEL = os.getenv("CHAT_CLIENT_LOG_LEVEL", "INFO").upper()


def build_auth_headers() -> dict:
    """Return the Authorization header for the configured API token, if any."""
    if not CHAT_API_TOKEN:
        return {}
    return {"Authorization": f"Bearer {CHAT_API_TOKEN}"}
