"""
Streaming Configuration for stream consumption and recovery.

Timeouts, recovery polling and indicator timing used by the stream
controller. Every field can be overridden from the environment.
"""

import os
from dataclasses import dataclass


@dataclass
class StreamingConfig:
    """Configuration for the stream controller and its HTTP collaborators."""

    # HTTP timeouts (in seconds)
    CONNECT_TIMEOUT: float = 10.0
    READ_TIMEOUT: float = 600.0  # long reasoning turns can stay silent for minutes
    STORE_TIMEOUT: float = 15.0

    # Recovery polling
    RECOVERY_MAX_ATTEMPTS: int = 8
    RECOVERY_POLL_INTERVAL: float = 0.65

    # Foreground stall detection
    STALL_THRESHOLD: float = 8.0

    # Auxiliary indicators fall back to idle this long after complete/error
    INDICATOR_EXPIRY_SECONDS: float = 5.0

    @classmethod
    def from_env(cls) -> "StreamingConfig":
        """Create configuration from environment variables."""
        return cls(
            CONNECT_TIMEOUT=float(os.getenv("CONNECT_TIMEOUT", 10.0)),
            READ_TIMEOUT=float(os.getenv("READ_TIMEOUT", 600.0)),
            STORE_TIMEOUT=float(os.getenv("STORE_TIMEOUT", 15.0)),
            RECOVERY_MAX_ATTEMPTS=int(os.getenv("RECOVERY_MAX_ATTEMPTS", 8)),
            RECOVERY_POLL_INTERVAL=float(os.getenv("RECOVERY_POLL_INTERVAL", 0.65)),
            STALL_THRESHOLD=float(os.getenv("STALL_THRESHOLD", 8.0)),
            INDICATOR_EXPIRY_SECONDS=float(os.getenv("INDICATOR_EXPIRY_SECONDS", 5.0)),
        )


# Global configuration instance
streaming_config = StreamingConfig.from_env()
