"""
Stream Controller.

Drives one session per submitted request: admission, transport, decoding,
frame dispatch, interruption recovery and finalization. One controller is
constructed per application session and owns the registry, the transcripts
and the per-conversation UI snapshots.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable, Dict, List, Optional

from chat_client.config.streaming_config import StreamingConfig, streaming_config
from chat_client.exceptions import (
    DuplicateRequestError,
    StreamTransportError,
    UsageLimitExceededError,
)
from chat_client.models.request_models import ChatRequest
from chat_client.repositories.message_repository import MessageStore
from chat_client.services.streaming.accumulator import ResponseAccumulator
from chat_client.services.streaming.event_router import EventRouter
from chat_client.services.streaming.finalization import (
    StreamOutcome,
    StreamStatus,
    finalize_session,
)
from chat_client.services.streaming.indicators import IndicatorBoard
from chat_client.services.streaming.recovery import RecoveryCoordinator
from chat_client.services.streaming.recovery_state import RecoveryState
from chat_client.services.streaming.session_context import StreamContext
from chat_client.services.streaming.session_registry import SessionRegistry, StreamSession
from chat_client.services.streaming.transcript import (
    AssistantDraft,
    ChatMessage,
    TranscriptStore,
    new_ephemeral_id,
)
from chat_client.services.streaming.ui_state import (
    ConversationUIState,
    ConversationUIStateStore,
)

logger = logging.getLogger(__name__)


class StreamObserver:
    """Receives controller notifications. Override the hooks you need."""

    def on_update(self, conversation_id: Optional[str], draft: AssistantDraft,
                  state: ConversationUIState) -> None:
        pass

    def on_finalized(self, outcome: StreamOutcome) -> None:
        pass

    def on_error(self, outcome: StreamOutcome) -> None:
        pass

    def on_usage_limit(self, notification: Dict[str, Any]) -> None:
        pass


def ui_state_from_context(ctx: StreamContext, is_streaming: bool) -> ConversationUIState:
    """Display state derived from a session context."""
    timing = ctx.timing.recorded
    return ConversationUIState(
        is_streaming=is_streaming,
        indicator_state=ctx.indicators.snapshot(),
        response_timing=timing.to_metadata() if timing else {},
        pending_thinking=ctx.thinking.variant.value if ctx.thinking.visible else None,
        session_key=ctx.session_key,
    )


class StreamController:
    """Consumes chat response streams and keeps conversation state current."""

    def __init__(
        self,
        transport: Any,
        store: Optional[MessageStore] = None,
        observer: Optional[StreamObserver] = None,
        settings: StreamingConfig = streaming_config,
        accept_equal_length: bool = False,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Any] = asyncio.sleep,
    ):
        """
        Initialize the controller.

        Args:
            transport: Object with an ``open_stream(request)`` async context manager
                yielding raw byte chunks (see ChatTransport)
            store: Message Store used for recovery and timing write-back
            observer: Notification sink for the UI
            settings: Streaming configuration
            accept_equal_length: Accept a recovered record whose content is only
                as long as what was displayed
            clock: Monotonic clock, injectable for tests
            sleep: Recovery poll sleep, injectable for tests
        """
        self.transport = transport
        self.store = store
        self.observer = observer or StreamObserver()
        self.settings = settings
        self.clock = clock

        self.registry = SessionRegistry()
        self.transcripts = TranscriptStore()
        self.ui_states = ConversationUIStateStore()
        self.accumulator = ResponseAccumulator(store)
        self.router = EventRouter(self.accumulator)
        self.recovery = RecoveryCoordinator(
            store,
            max_attempts=settings.RECOVERY_MAX_ATTEMPTS,
            interval=settings.RECOVERY_POLL_INTERVAL,
            accept_equal_length=accept_equal_length,
            sleep=sleep,
        )

        self.active_conversation_id: Optional[str] = None
        self._contexts: Dict[str, StreamContext] = {}
        self._expiry_handles: Dict[str, asyncio.TimerHandle] = {}

    # ------------------------------------------------------------------
    # Submission and cancellation
    # ------------------------------------------------------------------

    def start(self, request: ChatRequest) -> Optional[asyncio.Task]:
        """
        Admit a request and start consuming its stream.

        Must be called from a running event loop. Admission happens before
        this method returns, so a duplicate submitted right after is rejected.

        Returns:
            The session task, or None if an identical request is in flight
        """
        try:
            session = self.registry.admit(request.conversation_id, request.message, self.clock())
        except DuplicateRequestError as e:
            logger.warning(f"⚠️ Duplicate submission ignored: {e}")
            return None

        ctx = self._build_context(session, request)
        self._contexts[session.session_key] = ctx
        try:
            task = asyncio.get_running_loop().create_task(
                self._run(ctx), name=session.session_key
            )
        except RuntimeError:
            self._contexts.pop(session.session_key, None)
            self.registry.release(session.session_key)
            raise
        session.task = task
        task.add_done_callback(lambda t: self._on_task_done(ctx, t))
        return task

    async def send(self, request: ChatRequest) -> Optional[StreamOutcome]:
        """Submit a request and wait for the session to end."""
        task = self.start(request)
        if task is None:
            return None
        ctx = self._contexts.get(task.get_name())
        try:
            return await task
        except asyncio.CancelledError:
            if task.cancelled() and ctx is not None and ctx.outcome is not None:
                # Stopped before the session task ever ran
                return ctx.outcome
            raise

    def stop(self, session_key: Optional[str] = None,
             conversation_id: Optional[str] = None) -> bool:
        """
        Stop a session by key, or every session of a conversation.

        A stopped session finalizes with its partial content and never
        triggers recovery.
        """
        if session_key is not None:
            return self.registry.request_stop(session_key)
        stopped = False
        for session in self.registry.find_by_conversation(conversation_id):
            stopped = self.registry.request_stop(session.session_key) or stopped
        return stopped

    def on_foreground(self, now: Optional[float] = None) -> List[str]:
        """
        Check for sessions silenced while the application was in the background.

        Sessions that already received records but none for longer than the
        stall threshold are cancelled with the interrupt flag set, which sends them to recovery.

        Returns:
            Keys of the sessions that were interrupted
        """
        now = self.clock() if now is None else now
        interrupted = []
        for session in self.registry.stalled(now, self.settings.STALL_THRESHOLD):
            ctx = self._contexts.get(session.session_key)
            if ctx is None or ctx.recovery_state is not RecoveryState.ACTIVE:
                continue
            if not ctx.observed_records:
                # Still waiting for the first record; a long reasoning turn is not a stall
                continue
            if self.registry.request_interrupt(session.session_key):
                interrupted.append(session.session_key)
        return interrupted

    # ------------------------------------------------------------------
    # Conversation switching
    # ------------------------------------------------------------------

    def _live_context(self, conversation_id: Optional[str]) -> Optional[StreamContext]:
        for ctx in self._contexts.values():
            if ctx.conversation_id == conversation_id:
                return ctx
        return None

    def view_state(self, conversation_id: Optional[str]) -> ConversationUIState:
        """Current display state of a conversation."""
        ctx = self._live_context(conversation_id)
        if ctx is not None:
            return ui_state_from_context(ctx, is_streaming=True)
        return self.ui_states.restore(conversation_id)

    def activate_conversation(self, conversation_id: Optional[str]) -> ConversationUIState:
        """Display another conversation, snapshotting the one being left."""
        outgoing = self.active_conversation_id
        state = self.ui_states.switch(outgoing, self.view_state(outgoing), conversation_id)
        self.active_conversation_id = conversation_id
        live = self._live_context(conversation_id)
        if live is not None:
            return ui_state_from_context(live, is_streaming=True)
        return state

    # ------------------------------------------------------------------
    # Session flow
    # ------------------------------------------------------------------

    def _build_context(self, session: StreamSession, request: ChatRequest) -> StreamContext:
        transcript = self.transcripts.for_conversation(request.conversation_id)
        user_message = ChatMessage(id=new_ephemeral_id(), role="user", content=request.message)
        draft = AssistantDraft(
            ephemeral_id=new_ephemeral_id(), conversation_id=request.conversation_id
        )
        transcript.add(user_message)
        transcript.add(draft)
        return StreamContext(
            session=session,
            request=request,
            draft=draft,
            user_message=user_message,
            transcript=transcript,
            indicators=IndicatorBoard(self.settings.INDICATOR_EXPIRY_SECONDS),
            clock=self.clock,
        )

    async def _run(self, ctx: StreamContext) -> StreamOutcome:
        session = ctx.session
        try:
            return await self._consume(ctx)
        except asyncio.CancelledError:
            if session.stop_requested:
                logger.info(f"Session {ctx.session_key} stopped by user")
                return self._finish(ctx, StreamStatus.STOPPED)
            if session.interrupt_requested:
                if self.recovery.is_interrupted(ctx):
                    return await self._recover(ctx)
                return self._fail(
                    ctx, StreamTransportError("Stream stalled before any record arrived")
                )
            self._finish(ctx, StreamStatus.STOPPED)
            raise
        except Exception as e:
            logger.exception(f"Unexpected error in session {ctx.session_key}: {e}")
            return self._fail(ctx, e)
        finally:
            self.registry.release(session.session_key)

    async def _consume(self, ctx: StreamContext) -> StreamOutcome:
        ctx.timing.start(self.clock())
        ctx.thinking.apply_effort(ctx.request.reasoning_effort_override)
        ctx.timing.note_effort(ctx.request.reasoning_effort_override)
        self._publish(ctx)

        try:
            async with self.transport.open_stream(ctx.request) as chunks:
                async for record in ctx.decoder.decode(chunks):
                    self._handle_record(ctx, record)
                    if ctx.terminal_received:
                        break
        except UsageLimitExceededError as e:
            return self._fail(ctx, e, StreamStatus.USAGE_LIMITED)
        except StreamTransportError as e:
            if self.recovery.is_interrupted(ctx):
                logger.warning(f"Transport failed mid-stream for {ctx.session_key}: {e}")
                return await self._recover(ctx)
            return self._fail(ctx, e)

        if ctx.terminal_received:
            return self._finish(ctx, StreamStatus.COMPLETED)
        if self.recovery.is_interrupted(ctx):
            return await self._recover(ctx)
        return self._fail(
            ctx, StreamTransportError("Stream closed before any record arrived")
        )

    def _handle_record(self, ctx: StreamContext, record: Dict[str, Any]) -> None:
        ctx.session.touch(self.clock())
        if self.router.route(ctx, record) is None:
            return
        self._schedule_indicator_expiry(ctx)
        self._publish(ctx)

    async def _recover(self, ctx: StreamContext) -> StreamOutcome:
        self._publish(ctx)
        state = await self.recovery.recover(ctx)
        if state is RecoveryState.RESOLVED:
            return self._finish(ctx, StreamStatus.RECOVERED)
        return self._finish(ctx, StreamStatus.ABANDONED)

    def _fail(
        self,
        ctx: StreamContext,
        error: Exception,
        status: StreamStatus = StreamStatus.FAILED,
    ) -> StreamOutcome:
        outcome = self._finish(ctx, status, error)
        if isinstance(error, UsageLimitExceededError):
            logger.warning(f"💳 Usage limit reached: {error}")
            self._notify("on_usage_limit", error.to_notification())
        else:
            logger.error(f"❌ Session {ctx.session_key} failed: {error}")
            self._notify("on_error", outcome)
        return outcome

    def _finish(
        self,
        ctx: StreamContext,
        status: StreamStatus,
        error: Optional[Exception] = None,
    ) -> StreamOutcome:
        outcome = finalize_session(ctx, status, error)
        ctx.outcome = outcome
        self._contexts.pop(ctx.session_key, None)
        self.ui_states.capture(ctx.conversation_id, ui_state_from_context(ctx, is_streaming=False))
        self._notify("on_update", ctx.conversation_id, ctx.draft,
                     self.view_state(ctx.conversation_id))
        self._notify("on_finalized", outcome)
        return outcome

    def _on_task_done(self, ctx: StreamContext, task: asyncio.Task) -> None:
        self.registry.release(ctx.session_key)
        if task.cancelled() and not ctx.draft.finalized:
            # Cancelled before the task body ran
            self._finish(ctx, StreamStatus.STOPPED)

    # ------------------------------------------------------------------
    # Indicator expiry
    # ------------------------------------------------------------------

    def _schedule_indicator_expiry(self, ctx: StreamContext) -> None:
        due = ctx.indicators.next_expiry()
        handle = self._expiry_handles.pop(ctx.session_key, None)
        if handle is not None:
            handle.cancel()
        if due is None:
            return
        delay = max(0.0, due - self.clock())
        self._expiry_handles[ctx.session_key] = asyncio.get_running_loop().call_later(
            delay, self._expire_indicators, ctx
        )

    def _expire_indicators(self, ctx: StreamContext) -> None:
        self._expiry_handles.pop(ctx.session_key, None)
        if not ctx.indicators.expire(self.clock()):
            self._schedule_indicator_expiry(ctx)
            return
        if ctx.session_key not in self._contexts:
            self.ui_states.capture(
                ctx.conversation_id, ui_state_from_context(ctx, is_streaming=False)
            )
        self._schedule_indicator_expiry(ctx)
        self._publish(ctx)

    # ------------------------------------------------------------------
    # Notification
    # ------------------------------------------------------------------

    def _publish(self, ctx: StreamContext) -> None:
        self._notify("on_update", ctx.conversation_id, ctx.draft,
                     self.view_state(ctx.conversation_id))

    def _notify(self, hook: str, *args: Any) -> None:
        try:
            getattr(self.observer, hook)(*args)
        except Exception as e:
            logger.exception(f"Observer {hook} raised: {e}")

    async def drain(self) -> None:
        """Wait for background write-backs; used on shutdown and in tests."""
        await self.accumulator.drain_write_backs()

    async def close(self) -> None:
        """Stop all sessions, wait for them, and cancel pending indicator timers."""
        tasks = [s.task for s in self.registry.active_sessions() if s.task is not None]
        for session in self.registry.active_sessions():
            self.registry.request_stop(session.session_key)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for handle in self._expiry_handles.values():
            handle.cancel()
        self._expiry_handles.clear()
        await self.drain()
