"""
Interrupted-stream recovery.

When a transport ends without a terminal record after content was seen, the
persisted assistant record is polled from the Message Store until it is
authoritative (it carries the terminal marker, or it has grown past what
the client already displayed) or the attempt budget runs out.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from chat_client.exceptions import RecoveryExhaustedError
from chat_client.models.message_models import StoredMessage
from chat_client.repositories.message_repository import MessageStore
from chat_client.services.streaming.recovery_state import RecoveryState
from chat_client.services.streaming.session_context import StreamContext
from chat_client.services.streaming.timing import prefer_client_timing

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryPolicy(Generic[T]):
    """How often to poll and which results end the polling."""

    max_attempts: int
    interval: float
    accept: Callable[[T], bool]


@dataclass
class PollResult(Generic[T]):
    value: Optional[T]
    attempts: int
    accepted: bool


async def poll_until_accepted(
    read: Callable[[], Awaitable[Optional[T]]],
    policy: RetryPolicy[T],
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> PollResult[T]:
    """
    Wait, read, and repeat until a result is accepted or attempts run out.

    Every attempt sleeps for the policy interval before reading. A read that
    raises counts as a failed attempt.

    Args:
        read: Async callable producing a candidate (or None)
        policy: Attempt budget, interval and acceptance predicate
        sleep: Awaitable sleep, injectable for tests

    Returns:
        PollResult with the accepted value, or the last value seen when exhausted
    """
    last_value: Optional[T] = None
    for attempt in range(1, policy.max_attempts + 1):
        await sleep(policy.interval)
        try:
            value = await read()
        except Exception as e:
            logger.warning(f"Poll attempt {attempt}/{policy.max_attempts} failed: {e}")
            continue
        if value is not None:
            last_value = value
            if policy.accept(value):
                return PollResult(value=value, attempts=attempt, accepted=True)
        logger.debug(f"Poll attempt {attempt}/{policy.max_attempts} not accepted")
    return PollResult(value=last_value, attempts=policy.max_attempts, accepted=False)


def authoritative_record_predicate(
    observed_length: int, accept_equal_length: bool = False
) -> Callable[[StoredMessage], bool]:
    """
    Acceptance rule for a polled assistant record.

    A record with the terminal marker is always authoritative. Otherwise its
    content must be longer than what was displayed; a record of equal length
    may be a snapshot of the same partial answer and is rejected unless
    ``accept_equal_length`` is set.
    """

    def accept(record: StoredMessage) -> bool:
        if record.is_terminal:
            return True
        if accept_equal_length:
            return len(record.content) >= observed_length
        return len(record.content) > observed_length

    return accept


class RecoveryCoordinator:
    """Detects interrupted sessions and reconciles them with the Message Store."""

    def __init__(
        self,
        store: Optional[MessageStore],
        max_attempts: int = 8,
        interval: float = 0.65,
        accept_equal_length: bool = False,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.max_attempts = max_attempts
        self.interval = interval
        self.accept_equal_length = accept_equal_length
        self._sleep = sleep

    @staticmethod
    def is_interrupted(ctx: StreamContext) -> bool:
        """True when the stream ended early after records arrived and nobody asked it to stop."""
        return (
            not ctx.terminal_received
            and ctx.observed_records
            and not ctx.session.stop_requested
        )

    def build_policy(self, observed_length: int) -> RetryPolicy[StoredMessage]:
        return RetryPolicy(
            max_attempts=self.max_attempts,
            interval=self.interval,
            accept=authoritative_record_predicate(observed_length, self.accept_equal_length),
        )

    async def recover(self, ctx: StreamContext) -> RecoveryState:
        """
        Poll for the authoritative record and reconcile the draft with it.

        Returns:
            RecoveryState.RESOLVED or RecoveryState.ABANDONED
        """
        ctx.recovery_state = RecoveryState.INTERRUPTED
        conversation_id = ctx.conversation_id
        logger.warning(
            f"🔌 Stream for session {ctx.session_key} ended without a terminal record "
            f"after {ctx.observed_length} characters"
        )

        if self.store is None or not conversation_id:
            logger.warning(
                f"Cannot recover session {ctx.session_key}: "
                f"{'no message store' if self.store is None else 'conversation not yet created'}"
            )
            ctx.recovery_state = RecoveryState.ABANDONED
            return ctx.recovery_state

        ctx.recovery_state = RecoveryState.RECOVERING
        result = await poll_until_accepted(
            lambda: self.store.read_latest_assistant_record(conversation_id),
            self.build_policy(ctx.observed_length),
            self._sleep,
        )

        if not result.accepted:
            logger.warning(
                f"Recovery abandoned, keeping partial content: "
                f"{RecoveryExhaustedError(conversation_id, result.attempts)}"
            )
            ctx.recovery_state = RecoveryState.ABANDONED
            return ctx.recovery_state

        self.reconcile(ctx, result.value)
        logger.info(
            f"✅ Recovered session {ctx.session_key} from record {result.value.id} "
            f"after {result.attempts} attempt(s)"
        )
        ctx.recovery_state = RecoveryState.RESOLVED
        return ctx.recovery_state

    @staticmethod
    def reconcile(ctx: StreamContext, record: StoredMessage) -> None:
        """Make the draft match an accepted record, in place or as a fresh entry."""
        draft = ctx.draft
        previous_id = draft.id
        was_present = previous_id in ctx.transcript

        draft.replace_content(record.content)
        merged, _ = prefer_client_timing(record.metadata, ctx.timing.recorded)
        if ctx.domains:
            ctx.domains.update(merged.get("searchedDomains") or [])
            merged["searchedDomains"] = ctx.domains.to_list()
        draft.update_metadata(merged)
        if draft.persisted_id != record.id:
            draft.promote(record.id)

        if was_present:
            ctx.transcript.promote(previous_id, draft.id)
            ctx.transcript.upsert(draft, previous_id)
        else:
            ctx.transcript.add(draft)
