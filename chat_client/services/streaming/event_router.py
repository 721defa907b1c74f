import logging
from typing import Any, Callable, Dict, Optional

from chat_client.services.streaming.accumulator import ResponseAccumulator
from chat_client.services.streaming.events import FrameType, StreamFrame, classify_record
from chat_client.services.streaming.session_context import StreamContext

logger = logging.getLogger(__name__)

FrameHandler = Callable[[StreamContext, Any], None]


class EventRouter:
    """Dispatches classified frames to their handler by frame type."""

    def __init__(self, accumulator: ResponseAccumulator):
        self.accumulator = accumulator
        self._handlers: Dict[FrameType, FrameHandler] = {
            FrameType.CONTENT: accumulator.on_content,
            FrameType.PREAMBLE: accumulator.on_preamble,
            FrameType.STATUS: accumulator.on_status,
            FrameType.SEARCH_DOMAIN: accumulator.on_search_domain,
            FrameType.MODEL_INFO: accumulator.on_model_info,
            FrameType.META: accumulator.on_meta,
            FrameType.METADATA: accumulator.on_metadata,
            FrameType.SOURCES: accumulator.on_sources,
            FrameType.SERVER_ERROR: accumulator.on_server_error,
            FrameType.DONE: accumulator.on_done,
        }

    def register(self, frame_type: FrameType, handler: FrameHandler) -> None:
        """Replace the handler of a frame type."""
        self._handlers[frame_type] = handler

    def dispatch(self, ctx: StreamContext, frame: StreamFrame) -> None:
        handler = self._handlers.get(frame.frame_type)
        if handler is None:
            logger.debug(f"No handler for {frame.frame_type.value} frame")
            return
        handler(ctx, frame)
        ctx.frames_handled += 1

    def route(self, ctx: StreamContext, record: Dict[str, Any]) -> Optional[StreamFrame]:
        """
        Classify a parsed record and dispatch it.

        Returns:
            The dispatched frame, or None if the record was not recognised
        """
        frame = classify_record(record)
        if frame is None:
            logger.debug(f"Ignoring unrecognised record with keys {sorted(record)}")
            return None
        self.dispatch(ctx, frame)
        return frame
