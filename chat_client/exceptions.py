"""
Exception types for the chat stream client.

Each failure condition the controller distinguishes has its own class so
callers can match on the type rather than on message text.
"""

from typing import Any, Dict, Optional


class StreamTransportError(Exception):
    """Raised when the transport fails or cannot be opened."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class MalformedFrameError(ValueError):
    """Raised by strict record parsing when a line is not a JSON object."""

    pass


class DuplicateRequestError(Exception):
    """Raised at admission when a session with the same dedup key is in flight."""

    def __init__(self, session_key: str):
        super().__init__(f"Request already in flight for key {session_key}")
        self.session_key = session_key


class UsageLimitExceededError(StreamTransportError):
    """Raised when the inference service reports the usage limit is reached."""

    def __init__(
        self,
        message: str,
        current_spending: Optional[float] = None,
        limit: Optional[float] = None,
        plan_type: Optional[str] = None,
    ):
        super().__init__(message, status_code=429)
        self.current_spending = current_spending
        self.limit = limit
        self.plan_type = plan_type

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "UsageLimitExceededError":
        """Build the error from the JSON body of a 429 response."""
        message = payload.get("message") or payload.get("error") or "Usage limit exceeded"
        return cls(
            message=str(message),
            current_spending=payload.get("currentSpending"),
            limit=payload.get("limit"),
            plan_type=payload.get("planType"),
        )

    def to_notification(self) -> Dict[str, Any]:
        """Structured payload for the application-level usage notification."""
        return {
            "type": "usage_limit_exceeded",
            "message": str(self),
            "currentSpending": self.current_spending,
            "limit": self.limit,
            "planType": self.plan_type,
        }


class RecoveryExhaustedError(Exception):
    """Describes a recovery that ran out of polling attempts."""

    def __init__(self, conversation_id: str, attempts: int):
        super().__init__(
            f"No authoritative record for conversation {conversation_id} "
            f"after {attempts} attempts"
        )
        self.conversation_id = conversation_id
        self.attempts = attempts


class DraftFinalizedError(RuntimeError):
    """Raised when a finalized assistant draft is mutated."""

    pass
