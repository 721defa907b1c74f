from enum import Enum


class RecoveryState(str, Enum):
    """Lifecycle of a session with respect to interruption recovery."""

    ACTIVE = "active"
    INTERRUPTED = "interrupted"
    RECOVERING = "recovering"
    RESOLVED = "resolved"
    ABANDONED = "abandoned"
