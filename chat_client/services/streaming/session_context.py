"""
Per-session streaming state.

One StreamContext is built when a session is admitted and is passed to every
frame handler, the recovery coordinator and finalization. Nothing else holds
mutable state about the session.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Optional

from chat_client.models.request_models import ChatRequest
from chat_client.services.streaming.decoder import StreamDecoder
from chat_client.services.streaming.indicators import IndicatorBoard
from chat_client.services.streaming.recovery_state import RecoveryState
from chat_client.services.streaming.search_domains import SearchDomainSet
from chat_client.services.streaming.session_registry import StreamSession
from chat_client.services.streaming.timing import ThinkingIndicator, TimingTracker
from chat_client.services.streaming.transcript import (
    AssistantDraft,
    ChatMessage,
    ConversationTranscript,
)

if TYPE_CHECKING:
    from chat_client.services.streaming.finalization import StreamOutcome


@dataclass
class StreamContext:
    """Everything the handlers of one session read and write."""

    session: StreamSession
    request: ChatRequest
    draft: AssistantDraft
    user_message: ChatMessage
    transcript: ConversationTranscript
    indicators: IndicatorBoard
    timing: TimingTracker = field(default_factory=TimingTracker)
    thinking: ThinkingIndicator = field(default_factory=ThinkingIndicator)
    domains: SearchDomainSet = field(default_factory=SearchDomainSet)
    decoder: StreamDecoder = field(default_factory=StreamDecoder)
    clock: Callable[[], float] = time.monotonic

    # Progress flags
    terminal_received: bool = False
    observed_content: bool = False
    observed_meta: bool = False
    pending_write_back: bool = False
    frames_handled: int = 0

    context_usage: Optional[Dict[str, Any]] = None
    recovery_state: RecoveryState = RecoveryState.ACTIVE
    outcome: Optional[StreamOutcome] = None

    @property
    def session_key(self) -> str:
        return self.session.session_key

    @property
    def conversation_id(self) -> Optional[str]:
        return self.request.conversation_id

    @property
    def observed_length(self) -> int:
        """Length of the content displayed so far."""
        return len(self.draft.content)

    @property
    def observed_records(self) -> bool:
        return self.observed_content or self.observed_meta

    def now(self) -> float:
        return self.clock()
