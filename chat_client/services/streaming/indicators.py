"""
Auxiliary activity indicators (web search, file reading, code execution).

Each channel runs its own state machine:
idle -> active -> (complete | error) -> idle after the expiry window,
unless a new start event re-triggers it first. Channels never affect each
other.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from chat_client.services.streaming.events import StatusFrame, StatusType

logger = logging.getLogger(__name__)


class IndicatorChannel(str, Enum):
    WEB_SEARCH = "web_search"
    FILE_READING = "file_reading"
    CODE_EXECUTION = "code_execution"


class IndicatorPhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    COMPLETE = "complete"
    ERROR = "error"


# status type -> (channel, phase, default message)
STATUS_TRANSITIONS: Dict[StatusType, Tuple[IndicatorChannel, IndicatorPhase, Optional[str]]] = {
    StatusType.SEARCH_START: (
        IndicatorChannel.WEB_SEARCH, IndicatorPhase.ACTIVE, "Searching the web…"
    ),
    StatusType.SEARCH_COMPLETE: (
        IndicatorChannel.WEB_SEARCH, IndicatorPhase.COMPLETE, None
    ),
    StatusType.SEARCH_ERROR: (
        IndicatorChannel.WEB_SEARCH,
        IndicatorPhase.ERROR,
        "Web search failed. Using prior data.",
    ),
    StatusType.FILE_SEARCH_START: (
        IndicatorChannel.FILE_READING, IndicatorPhase.ACTIVE, "Searching files…"
    ),
    StatusType.FILE_SEARCH_COMPLETE: (
        IndicatorChannel.FILE_READING, IndicatorPhase.COMPLETE, None
    ),
    StatusType.FILE_READING_START: (
        IndicatorChannel.FILE_READING, IndicatorPhase.ACTIVE, "Reading files…"
    ),
    StatusType.FILE_READING_COMPLETE: (
        IndicatorChannel.FILE_READING, IndicatorPhase.COMPLETE, None
    ),
    StatusType.FILE_READING_ERROR: (
        IndicatorChannel.FILE_READING,
        IndicatorPhase.ERROR,
        "Could not read the attached files.",
    ),
    StatusType.CODE_EXECUTION_START: (
        IndicatorChannel.CODE_EXECUTION, IndicatorPhase.ACTIVE, "Running code…"
    ),
    StatusType.CODE_EXECUTION_COMPLETE: (
        IndicatorChannel.CODE_EXECUTION, IndicatorPhase.COMPLETE, None
    ),
    StatusType.CODE_EXECUTION_ERROR: (
        IndicatorChannel.CODE_EXECUTION,
        IndicatorPhase.ERROR,
        "Code execution failed.",
    ),
}

_SETTLED_PHASES = (IndicatorPhase.COMPLETE, IndicatorPhase.ERROR)


@dataclass
class ChannelIndicator:
    channel: IndicatorChannel
    phase: IndicatorPhase = IndicatorPhase.IDLE
    message: Optional[str] = None
    query: Optional[str] = None
    changed_at: Optional[float] = None
    expires_at: Optional[float] = None

    def snapshot(self) -> Dict[str, Any]:
        return asdict(self)


class IndicatorBoard:
    """Holds one indicator per channel for a session."""

    def __init__(self, expiry_seconds: float):
        self.expiry_seconds = expiry_seconds
        self.channels: Dict[IndicatorChannel, ChannelIndicator] = {
            channel: ChannelIndicator(channel) for channel in IndicatorChannel
        }

    def get(self, channel: IndicatorChannel) -> ChannelIndicator:
        return self.channels[channel]

    def apply_status(self, frame: StatusFrame, now: float) -> ChannelIndicator:
        """Drive the channel addressed by a status frame."""
        channel, phase, default_message = STATUS_TRANSITIONS[frame.status]
        indicator = self.channels[channel]
        indicator.phase = phase
        indicator.changed_at = now
        indicator.message = frame.message or default_message
        if frame.query:
            indicator.query = frame.query
        indicator.expires_at = (
            now + self.expiry_seconds if phase in _SETTLED_PHASES else None
        )
        logger.debug(f"Indicator {channel.value} -> {phase.value}")
        return indicator

    def retire_active(self, channels: Iterable[IndicatorChannel], now: float) -> None:
        """Move still-active channels to complete (used when content starts)."""
        for channel in channels:
            indicator = self.channels[channel]
            if indicator.phase is IndicatorPhase.ACTIVE:
                indicator.phase = IndicatorPhase.COMPLETE
                indicator.changed_at = now
                indicator.message = None
                indicator.expires_at = now + self.expiry_seconds

    def expire(self, now: float) -> List[IndicatorChannel]:
        """Return settled channels whose window has passed to idle."""
        expired = []
        for indicator in self.channels.values():
            if indicator.expires_at is not None and now >= indicator.expires_at:
                indicator.phase = IndicatorPhase.IDLE
                indicator.message = None
                indicator.query = None
                indicator.changed_at = now
                indicator.expires_at = None
                expired.append(indicator.channel)
        return expired

    def next_expiry(self) -> Optional[float]:
        pending = [i.expires_at for i in self.channels.values() if i.expires_at is not None]
        return min(pending) if pending else None

    def clear_active(self) -> None:
        """Drop running indicators when a session finalizes; settled ones keep expiring."""
        for indicator in self.channels.values():
            if indicator.phase is IndicatorPhase.ACTIVE:
                indicator.phase = IndicatorPhase.IDLE
                indicator.message = None
                indicator.expires_at = None

    def snapshot(self) -> Dict[str, Dict[str, Any]]:
        return {
            channel.value: indicator.snapshot()
            for channel, indicator in self.channels.items()
        }
