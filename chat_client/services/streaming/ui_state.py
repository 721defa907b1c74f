"""
Per-conversation UI state snapshots.

Sessions keep running when the user navigates to another conversation. The
outgoing conversation's transient state is captured on every switch and the
incoming conversation's snapshot (or a clean default) is restored.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from chat_client.constants import NEW_CONVERSATION_KEY

logger = logging.getLogger(__name__)


@dataclass
class ConversationUIState:
    """Transient display state of one conversation."""

    is_streaming: bool = False
    indicator_state: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    response_timing: Dict[str, Any] = field(default_factory=dict)
    pending_thinking: Optional[str] = None
    session_key: Optional[str] = None


def _key(conversation_id: Optional[str]) -> str:
    return conversation_id or NEW_CONVERSATION_KEY


class ConversationUIStateStore:
    """
    Snapshot map keyed by conversation id.

    Owned by a single controller, which is its only writer. Values are deep
    copied on the way in and out, so a restored state never aliases a live one.
    """

    def __init__(self) -> None:
        self._snapshots: Dict[str, ConversationUIState] = {}

    def capture(self, conversation_id: Optional[str], state: ConversationUIState) -> None:
        self._snapshots[_key(conversation_id)] = copy.deepcopy(state)

    def restore(self, conversation_id: Optional[str]) -> ConversationUIState:
        """The stored snapshot, or a clean default when there is none."""
        snapshot = self._snapshots.get(_key(conversation_id))
        if snapshot is None:
            return ConversationUIState()
        return copy.deepcopy(snapshot)

    def switch(
        self,
        outgoing_id: Optional[str],
        outgoing_state: Optional[ConversationUIState],
        incoming_id: Optional[str],
    ) -> ConversationUIState:
        """
        Capture the outgoing conversation and restore the incoming one.

        Args:
            outgoing_id: Conversation being left
            outgoing_state: Its current state (None when nothing was displayed)
            incoming_id: Conversation being shown

        Returns:
            State to display for the incoming conversation
        """
        if outgoing_state is not None:
            self.capture(outgoing_id, outgoing_state)
        logger.debug(f"Switching conversation {_key(outgoing_id)} -> {_key(incoming_id)}")
        return self.restore(incoming_id)

    def discard(self, conversation_id: Optional[str]) -> None:
        self._snapshots.pop(_key(conversation_id), None)

    def __contains__(self, conversation_id: Optional[str]) -> bool:
        return _key(conversation_id) in self._snapshots
