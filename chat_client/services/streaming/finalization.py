"""Session finalization."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from chat_client.services.streaming.recovery_state import RecoveryState
from chat_client.services.streaming.session_context import StreamContext
from chat_client.services.streaming.transcript import AssistantDraft

logger = logging.getLogger(__name__)


class StreamStatus(str, Enum):
    COMPLETED = "completed"
    STOPPED = "stopped"
    RECOVERED = "recovered"
    ABANDONED = "abandoned"
    FAILED = "failed"
    USAGE_LIMITED = "usage_limited"


# Outcomes whose draft is dropped from the transcript when nothing was persisted
_DISCARDING_STATUSES = (StreamStatus.FAILED, StreamStatus.USAGE_LIMITED)


@dataclass
class StreamOutcome:
    """How a session ended and what it produced."""

    session_key: str
    conversation_id: Optional[str]
    status: StreamStatus
    draft: AssistantDraft
    recovery_state: RecoveryState
    error: Optional[Exception] = None

    @property
    def content(self) -> str:
        return self.draft.content

    @property
    def message_id(self) -> str:
        return self.draft.id


def finalize_session(
    ctx: StreamContext, status: StreamStatus, error: Optional[Exception] = None
) -> StreamOutcome:
    """Freeze the draft, settle indicators and build the outcome.

    Args:
        ctx: Session context
        status: How the session ended
        error: Failure that ended the session, if any

    Returns:
        StreamOutcome for observers and callers
    """
    ctx.indicators.clear_active()
    ctx.thinking.clear()
    ctx.pending_write_back = False

    draft = ctx.draft
    if status in _DISCARDING_STATUSES and not draft.content and draft.persisted_id is None:
        ctx.transcript.remove(draft.id)
        logger.debug(f"Discarded empty draft {draft.id}")
    draft.finalize()

    outcome = StreamOutcome(
        session_key=ctx.session_key,
        conversation_id=ctx.conversation_id,
        status=status,
        draft=draft,
        recovery_state=ctx.recovery_state,
        error=error,
    )
    logger.info(
        f"🔚 Session {ctx.session_key} finalized as {status.value}, "
        f"frames={ctx.frames_handled}, chars={len(draft.content)}, "
        f"malformed={ctx.decoder.malformed_count}"
    )
    return outcome
