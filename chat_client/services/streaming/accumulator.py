"""
Response accumulation for a streaming session.

Applies classified frames to the session's assistant draft: appends content,
records first-content timing, merges routing and server metadata, promotes
ephemeral ids, and schedules the best-effort client-timing write-back.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional, Set

from chat_client.constants import TIMING_FIELDS
from chat_client.repositories.message_repository import MessageStore
from chat_client.services.streaming.events import (
    ContentFrame,
    DoneFrame,
    MetadataFrame,
    MetaFrame,
    ModelInfoFrame,
    PreambleFrame,
    SearchDomainFrame,
    ServerErrorFrame,
    SourcesFrame,
    StatusFrame,
)
from chat_client.services.streaming.indicators import IndicatorChannel
from chat_client.services.streaming.search_domains import domains_from_citations
from chat_client.services.streaming.session_context import StreamContext
from chat_client.services.streaming.timing import merge_timing, prefer_client_timing

logger = logging.getLogger(__name__)

# Channels retired when the answer itself starts streaming
_RETIRED_ON_CONTENT = (IndicatorChannel.WEB_SEARCH, IndicatorChannel.FILE_READING)


def timing_write_back_payload(metadata: Dict[str, Any]) -> Dict[str, Any]:
    """The timing subset of message metadata sent by the write-back."""
    payload = {key: metadata[key] for key in TIMING_FIELDS if metadata.get(key) is not None}
    thinking = metadata.get("thinking")
    if isinstance(thinking, dict) and thinking:
        payload["thinking"] = dict(thinking)
    return payload


class ResponseAccumulator:
    """Frame handlers that build the assistant draft."""

    def __init__(self, store: Optional[MessageStore] = None):
        self.store = store
        self._write_backs: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def on_content(self, ctx: StreamContext, frame: ContentFrame) -> None:
        if not frame.text:
            return
        first_fragment = not ctx.observed_content
        ctx.draft.append(frame.text)
        ctx.observed_content = True
        if first_fragment:
            self._on_first_content(ctx)

    def _on_first_content(self, ctx: StreamContext) -> None:
        now = ctx.now()
        timing = ctx.timing.record_first_content(now)
        ctx.thinking.clear()
        ctx.indicators.retire_active(_RETIRED_ON_CONTENT, now)
        if timing is None:
            return
        if ctx.observed_meta:
            # Server timing from an early meta record must not mask the client measurement
            merged, changed = prefer_client_timing(ctx.draft.metadata, timing)
            if changed:
                ctx.draft.update_metadata(merged)
        else:
            changed = merge_timing(ctx.draft.metadata, timing)
        if not changed:
            return
        if ctx.draft.persisted_id:
            self.schedule_write_back(ctx)
        else:
            ctx.pending_write_back = True

    def on_preamble(self, ctx: StreamContext, frame: PreambleFrame) -> None:
        ctx.draft.set_preamble(frame.text, frame.is_delta)

    # ------------------------------------------------------------------
    # Auxiliary channels
    # ------------------------------------------------------------------

    def on_status(self, ctx: StreamContext, frame: StatusFrame) -> None:
        ctx.indicators.apply_status(frame, ctx.now())

    def on_search_domain(self, ctx: StreamContext, frame: SearchDomainFrame) -> None:
        if ctx.domains.add(frame.domain):
            ctx.draft.update_metadata({"searchedDomains": ctx.domains.to_list()})

    def on_metadata(self, ctx: StreamContext, frame: MetadataFrame) -> None:
        if ctx.domains.update(frame.searched_domains):
            ctx.draft.update_metadata({"searchedDomains": ctx.domains.to_list()})

    def on_sources(self, ctx: StreamContext, frame: SourcesFrame) -> None:
        updates: Dict[str, Any] = {"citations": list(frame.sources)}
        if ctx.domains.update(domains_from_citations(frame.sources)):
            updates["searchedDomains"] = ctx.domains.to_list()
        ctx.draft.update_metadata(updates)

    # ------------------------------------------------------------------
    # Routing and server metadata
    # ------------------------------------------------------------------

    def _offer_effort(self, ctx: StreamContext, effort: Optional[str]) -> None:
        if effort and not ctx.observed_content:
            ctx.timing.note_effort(effort)
            ctx.thinking.apply_effort(effort)

    def on_model_info(self, ctx: StreamContext, frame: ModelInfoFrame) -> None:
        """Provisional routing info: field-level merge, timing untouched."""
        routing = frame.routing_fields()
        if routing:
            ctx.draft.update_metadata(routing)
        self._offer_effort(ctx, frame.reasoning_effort)

    def on_meta(self, ctx: StreamContext, frame: MetaFrame) -> None:
        """
        Authoritative near-final payload.

        Promotes the draft (and the user message) to their persisted ids,
        merges server metadata with client timing taking precedence, and
        schedules the timing write-back when the server lacks or disagrees
        with the client measurement.
        """
        draft = ctx.draft
        self._offer_effort(ctx, frame.reasoning_effort)

        if frame.assistant_message_row_id and draft.persisted_id != frame.assistant_message_row_id:
            ephemeral_id = draft.id
            draft.promote(frame.assistant_message_row_id)
            ctx.transcript.promote(ephemeral_id, draft.id)
            logger.debug(f"Promoted draft {ephemeral_id} -> {draft.id}")

        user_message = ctx.user_message
        if frame.user_message_row_id and user_message.persisted_id != frame.user_message_row_id:
            ctx.transcript.promote(user_message.id, frame.user_message_row_id)
            user_message.id = frame.user_message_row_id
            user_message.persisted_id = frame.user_message_row_id

        server_metadata = {**frame.metadata, **frame.routing_fields()}
        merged, overridden = prefer_client_timing(server_metadata, ctx.timing.recorded)
        if ctx.domains:
            ctx.domains.update(merged.get("searchedDomains") or [])
            merged["searchedDomains"] = ctx.domains.to_list()
        if frame.context_usage is not None:
            ctx.context_usage = frame.context_usage
            merged["contextUsage"] = frame.context_usage
        draft.update_metadata(merged)

        if frame.final_content is not None and not draft.extend_to(frame.final_content):
            logger.debug(
                f"Ignoring finalContent shorter than streamed content for {draft.id}"
            )

        ctx.observed_meta = True
        if draft.persisted_id and (overridden or ctx.pending_write_back):
            self.schedule_write_back(ctx)

    # ------------------------------------------------------------------
    # Errors and terminal
    # ------------------------------------------------------------------

    def on_server_error(self, ctx: StreamContext, frame: ServerErrorFrame) -> None:
        logger.warning(
            f"⚠️ Server reported {frame.error} for session {ctx.session_key}: "
            f"{frame.details or 'no details'}"
        )
        error: Dict[str, Any] = {"error": frame.error}
        if frame.details:
            error["details"] = frame.details
        ctx.draft.update_metadata({"serverError": error})

    def on_done(self, ctx: StreamContext, frame: DoneFrame) -> None:
        ctx.terminal_received = True

    # ------------------------------------------------------------------
    # Write-back
    # ------------------------------------------------------------------

    def schedule_write_back(self, ctx: StreamContext) -> Optional[asyncio.Task]:
        """Start the timing write-back for a promoted draft."""
        ctx.pending_write_back = False
        message_id = ctx.draft.persisted_id
        payload = timing_write_back_payload(ctx.draft.metadata)
        if self.store is None or not message_id or not payload:
            return None
        task = asyncio.get_running_loop().create_task(
            self._write_back(message_id, payload)
        )
        self._write_backs.add(task)
        task.add_done_callback(self._write_backs.discard)
        return task

    async def _write_back(self, message_id: str, payload: Dict[str, Any]) -> None:
        try:
            await self.store.write_metadata(message_id, payload)
            logger.info(f"💾 Timing written back for message {message_id}")
        except Exception as e:
            logger.warning(f"Timing write-back failed for message {message_id}: {e}")

    @property
    def pending_write_backs(self) -> int:
        return len(self._write_backs)

    async def drain_write_backs(self) -> None:
        """Wait for every scheduled write-back to finish."""
        while self._write_backs:
            pending = list(self._write_backs)
            await asyncio.gather(*pending, return_exceptions=True)
            self._write_backs.difference_update(pending)
