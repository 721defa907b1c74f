from __future__ import annotations

import asyncio
import hashlib
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from chat_client.constants import NEW_CONVERSATION_KEY, PROMPT_FINGERPRINT_LENGTH
from chat_client.exceptions import DuplicateRequestError

logger = logging.getLogger(__name__)


def make_session_key(conversation_id: Optional[str], message: str) -> str:
    """
    Dedup key for a submission: conversation plus a digest of the exact text.

    Args:
        conversation_id: Conversation id, or None for a conversation not yet created
        message: Prompt text exactly as submitted

    Returns:
        Key of the form ``"<conversation>:<16 hex chars>"``
    """
    digest = hashlib.sha256(message.encode("utf-8")).hexdigest()
    return f"{conversation_id or NEW_CONVERSATION_KEY}:{digest[:PROMPT_FINGERPRINT_LENGTH]}"


@dataclass
class StreamSession:
    """One in-flight request."""

    session_key: str
    conversation_id: Optional[str]
    started_at: float = field(default_factory=time.monotonic)
    last_frame_at: Optional[float] = None
    task: Optional[asyncio.Task] = None
    stop_requested: bool = False
    interrupt_requested: bool = False

    def touch(self, now: Optional[float] = None) -> None:
        self.last_frame_at = time.monotonic() if now is None else now

    @property
    def last_activity(self) -> float:
        return self.last_frame_at if self.last_frame_at is not None else self.started_at

    def cancel(self) -> bool:
        if self.task is None or self.task.done():
            return False
        return self.task.cancel()


class SessionRegistry:
    """
    In-flight sessions keyed by dedup key.

    Admission is synchronous so two submissions in the same event-loop turn
    (or from two threads) cannot both pass the duplicate check.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, StreamSession] = {}
        self._lock = threading.Lock()

    def admit(
        self, conversation_id: Optional[str], message: str, now: Optional[float] = None
    ) -> StreamSession:
        """
        Register a new session.

        Raises:
            DuplicateRequestError: If a session with the same key is in flight
        """
        key = make_session_key(conversation_id, message)
        with self._lock:
            if key in self._sessions:
                raise DuplicateRequestError(key)
            session = StreamSession(
                session_key=key,
                conversation_id=conversation_id,
                started_at=time.monotonic() if now is None else now,
            )
            self._sessions[key] = session
            active_count = len(self._sessions)
        logger.info(f"Admitted stream session {key}. Active: {active_count}")
        return session

    def get(self, session_key: str) -> Optional[StreamSession]:
        with self._lock:
            return self._sessions.get(session_key)

    def find_by_conversation(self, conversation_id: Optional[str]) -> List[StreamSession]:
        with self._lock:
            return [
                s for s in self._sessions.values() if s.conversation_id == conversation_id
            ]

    def request_stop(self, session_key: str) -> bool:
        """
        Stop a session at the user's request.

        The flag is set before the task is cancelled so the cancellation is
        never mistaken for a lost connection.
        """
        with self._lock:
            session = self._sessions.get(session_key)
            if session is None:
                return False
            session.stop_requested = True
        logger.info(f"🛑 Stop requested for session {session_key}")
        session.cancel()
        return True

    def request_interrupt(self, session_key: str) -> bool:
        """Cancel a silent session so its recovery runs."""
        with self._lock:
            session = self._sessions.get(session_key)
            if session is None or session.stop_requested:
                return False
            session.interrupt_requested = True
        logger.warning(f"Forcing interruption check for stalled session {session_key}")
        session.cancel()
        return True

    def release(self, session_key: str) -> None:
        """Remove a session. Safe to call more than once."""
        with self._lock:
            session = self._sessions.pop(session_key, None)
            active_count = len(self._sessions)
        if session is not None:
            logger.info(f"Released stream session {session_key}. Active: {active_count}")

    def stalled(self, now: float, threshold: float) -> List[StreamSession]:
        """Sessions that have been silent for longer than ``threshold`` seconds."""
        with self._lock:
            return [
                s
                for s in self._sessions.values()
                if not s.stop_requested and now - s.last_activity > threshold
            ]

    def active_sessions(self) -> List[StreamSession]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_key: str) -> bool:
        with self._lock:
            return session_key in self._sessions
