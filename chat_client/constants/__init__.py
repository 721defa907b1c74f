"""Shared constants for the chat stream client."""

# ============================================================================
# Dedup Keys
# ============================================================================

# Conversation segment used before the server has assigned a conversation id
NEW_CONVERSATION_KEY = "new"

# Hex characters of the SHA-256 prompt digest kept in a dedup key
PROMPT_FINGERPRINT_LENGTH = 16

# ============================================================================
# Message Ids
# ============================================================================

# Prefix of session-local ids, replaced on promotion
EPHEMERAL_ID_PREFIX = "local-"

# ============================================================================
# Reasoning Effort
# ============================================================================

# Effort values that never trigger the extended "thinking longer" indicator
LIGHT_REASONING_EFFORTS = frozenset({"none", "minimal", "low"})

# Effort values that show the extended indicator immediately
EXTENDED_REASONING_EFFORTS = frozenset({"medium", "high"})

# ============================================================================
# Metadata Keys
# ============================================================================

# Client-measured timing fields, merged idempotently
TIMING_FIELDS = (
    "thinkingDurationMs",
    "thoughtDurationSeconds",
    "thoughtDurationLabel",
)

__all__ = [
    "EPHEMERAL_ID_PREFIX",
    "EXTENDED_REASONING_EFFORTS",
    "LIGHT_REASONING_EFFORTS",
    "NEW_CONVERSATION_KEY",
    "PROMPT_FINGERPRINT_LENGTH",
    "TIMING_FIELDS",
]
