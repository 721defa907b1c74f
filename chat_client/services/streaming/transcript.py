"""
Conversation transcript and the assistant draft of a streaming turn.

The transcript keeps messages in display order, keyed by id. Promotion swaps
a session-local id for the persisted id in a single locked step and leaves an
alias behind, so a lookup by either id returns the same entry.
"""

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from chat_client.constants import EPHEMERAL_ID_PREFIX, NEW_CONVERSATION_KEY
from chat_client.exceptions import DraftFinalizedError


def new_ephemeral_id() -> str:
    return f"{EPHEMERAL_ID_PREFIX}{uuid.uuid4()}"


@dataclass
class ChatMessage:
    """A non-streaming transcript entry (the user's prompt, or a loaded message)."""

    id: str
    role: str
    content: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    persisted_id: Optional[str] = None


@dataclass
class AssistantDraft:
    """
    The assistant message being built by a session.

    Content is append-only while the session is active; once finalized the
    draft rejects every mutation.
    """

    ephemeral_id: str
    conversation_id: Optional[str]
    content: str = ""
    preamble: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)
    persisted_id: Optional[str] = None
    finalized: bool = False
    role: str = "assistant"

    @property
    def id(self) -> str:
        return self.persisted_id or self.ephemeral_id

    def _ensure_mutable(self) -> None:
        if self.finalized:
            raise DraftFinalizedError(f"Draft {self.id} is finalized")

    def append(self, text: str) -> None:
        self._ensure_mutable()
        self.content += text

    def extend_to(self, text: str) -> bool:
        """Replace content with a version that is at least as long. Returns True if applied."""
        self._ensure_mutable()
        if len(text) < len(self.content):
            return False
        self.content = text
        return True

    def replace_content(self, text: str) -> None:
        """Explicit replacement (error text or an authoritative reconciled record)."""
        self._ensure_mutable()
        self.content = text

    def set_preamble(self, text: str, is_delta: bool) -> None:
        self._ensure_mutable()
        self.preamble = self.preamble + text if is_delta else text

    def update_metadata(self, values: Dict[str, Any]) -> None:
        self._ensure_mutable()
        self.metadata.update(values)

    def promote(self, persisted_id: str) -> None:
        self._ensure_mutable()
        self.persisted_id = persisted_id

    def finalize(self) -> None:
        self.finalized = True


TranscriptEntry = Union[ChatMessage, AssistantDraft]


class ConversationTranscript:
    """Ordered messages of one conversation."""

    def __init__(self, conversation_id: str):
        self.conversation_id = conversation_id
        self._entries: "OrderedDict[str, TranscriptEntry]" = OrderedDict()
        self._aliases: Dict[str, str] = {}
        self._lock = threading.Lock()

    def _resolve(self, message_id: str) -> str:
        return self._aliases.get(message_id, message_id)

    def add(self, entry: TranscriptEntry) -> None:
        with self._lock:
            self._entries[entry.id] = entry

    def get(self, message_id: str) -> Optional[TranscriptEntry]:
        with self._lock:
            return self._entries.get(self._resolve(message_id))

    def __contains__(self, message_id: str) -> bool:
        return self.get(message_id) is not None

    def promote(self, old_id: str, new_id: str) -> bool:
        """
        Re-key an entry from its ephemeral id to its persisted id.

        Display order is preserved. Returns False if the entry is gone.
        """
        with self._lock:
            current_key = self._resolve(old_id)
            if current_key not in self._entries:
                return False
            if current_key == new_id:
                return True
            self._entries = OrderedDict(
                (new_id if key == current_key else key, value)
                for key, value in self._entries.items()
            )
            self._aliases[old_id] = new_id
            if current_key != old_id:
                self._aliases[current_key] = new_id
            return True

    def upsert(self, entry: TranscriptEntry, *aliases: str) -> bool:
        """
        Update an entry in place if it (or one of its aliases) is present,
        otherwise append it.

        Returns:
            True if an existing entry was replaced
        """
        with self._lock:
            for key in (entry.id, *aliases):
                resolved = self._resolve(key)
                if resolved in self._entries:
                    if resolved != entry.id:
                        self._entries = OrderedDict(
                            (entry.id if k == resolved else k, v)
                            for k, v in self._entries.items()
                        )
                        self._aliases[resolved] = entry.id
                    self._entries[entry.id] = entry
                    return True
            self._entries[entry.id] = entry
            return False

    def remove(self, message_id: str) -> Optional[TranscriptEntry]:
        with self._lock:
            return self._entries.pop(self._resolve(message_id), None)

    def messages(self) -> List[TranscriptEntry]:
        with self._lock:
            return list(self._entries.values())


class TranscriptStore:
    """Transcripts of every conversation touched in this application session."""

    def __init__(self) -> None:
        self._transcripts: Dict[str, ConversationTranscript] = {}
        self._lock = threading.Lock()

    def for_conversation(self, conversation_id: Optional[str]) -> ConversationTranscript:
        key = conversation_id or NEW_CONVERSATION_KEY
        with self._lock:
            transcript = self._transcripts.get(key)
            if transcript is None:
                transcript = ConversationTranscript(key)
                self._transcripts[key] = transcript
            return transcript
