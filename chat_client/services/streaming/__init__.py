"""Streaming response consumption and recovery."""

from chat_client.services.streaming.controller import StreamController, StreamObserver
from chat_client.services.streaming.finalization import StreamOutcome, StreamStatus
from chat_client.services.streaming.recovery import RetryPolicy, poll_until_accepted
from chat_client.services.streaming.recovery_state import RecoveryState
from chat_client.services.streaming.ui_state import ConversationUIState

__all__ = [
    "ConversationUIState",
    "RecoveryState",
    "RetryPolicy",
    "StreamController",
    "StreamObserver",
    "StreamOutcome",
    "StreamStatus",
    "poll_until_accepted",
]
