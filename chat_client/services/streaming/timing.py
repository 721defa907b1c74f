"""
Time-to-first-content tracking and the thinking indicator.

The tracker measures how long the user waited between dispatching a request
and seeing the first content fragment. The measurement happens exactly once
per session and is frozen afterwards; every later merge of timing metadata is
a no-op for fields that are already set.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from chat_client.constants import (
    EXTENDED_REASONING_EFFORTS,
    LIGHT_REASONING_EFFORTS,
    TIMING_FIELDS,
)

logger = logging.getLogger(__name__)


class TimingPhase(str, Enum):
    NOT_STARTED = "not_started"
    RUNNING = "running"
    RECORDED = "recorded"


class ThinkingVariant(str, Enum):
    NONE = "none"
    THINKING = "thinking"
    EXTENDED = "extended"


_VARIANT_RANK = {
    ThinkingVariant.NONE: 0,
    ThinkingVariant.THINKING: 1,
    ThinkingVariant.EXTENDED: 2,
}


def format_thought_duration_label(seconds: float) -> str:
    """Human-readable label for a measured thinking duration."""
    return f"Thought for {seconds:.1f} seconds"


@dataclass
class ThinkingTiming:
    """Frozen measurement of the time to first content."""

    started_at: float
    first_token_at: Optional[float] = None
    elapsed_ms: Optional[float] = None
    label: Optional[str] = None
    effort: Optional[str] = None

    @property
    def elapsed_seconds(self) -> Optional[float]:
        if self.elapsed_ms is None:
            return None
        return self.elapsed_ms / 1000

    def to_metadata(self) -> Dict[str, Any]:
        """Timing as message metadata fields."""
        if self.elapsed_ms is None:
            return {}
        thinking: Dict[str, Any] = {
            "durationMs": self.elapsed_ms,
            "durationSeconds": self.elapsed_seconds,
        }
        if self.effort is not None:
            thinking["effort"] = self.effort
        return {
            "thinkingDurationMs": self.elapsed_ms,
            "thoughtDurationSeconds": self.elapsed_seconds,
            "thoughtDurationLabel": self.label,
            "thinking": thinking,
        }


class TimingTracker:
    """Exactly-once state machine {not-started -> running -> recorded}."""

    def __init__(self) -> None:
        self.phase = TimingPhase.NOT_STARTED
        self.timing: Optional[ThinkingTiming] = None
        self.effort: Optional[str] = None

    def start(self, now: float) -> None:
        """Begin measuring at request dispatch. Later calls are ignored."""
        if self.phase is not TimingPhase.NOT_STARTED:
            return
        self.timing = ThinkingTiming(started_at=now)
        self.phase = TimingPhase.RUNNING

    def note_effort(self, effort: Optional[str]) -> None:
        """Remember the reasoning effort reported before first content."""
        if effort and self.phase is not TimingPhase.RECORDED:
            self.effort = effort

    def record_first_content(self, now: float) -> Optional[ThinkingTiming]:
        """
        Freeze the elapsed time on the first content fragment.

        Returns:
            The frozen timing on the transition, None on every later call
        """
        if self.phase is not TimingPhase.RUNNING or self.timing is None:
            return None
        elapsed_ms = max(0.0, (now - self.timing.started_at) * 1000)
        self.timing.first_token_at = now
        self.timing.elapsed_ms = elapsed_ms
        self.timing.label = format_thought_duration_label(elapsed_ms / 1000)
        self.timing.effort = self.effort
        self.phase = TimingPhase.RECORDED
        logger.debug(f"⏱️ First content after {elapsed_ms:.0f}ms")
        return self.timing

    @property
    def recorded(self) -> Optional[ThinkingTiming]:
        return self.timing if self.phase is TimingPhase.RECORDED else None


class ThinkingIndicator:
    """Effort-driven "thinking" indicator, promoted but never demoted."""

    def __init__(self) -> None:
        self.variant = ThinkingVariant.NONE
        self.cleared = False

    @property
    def visible(self) -> bool:
        return not self.cleared and self.variant is not ThinkingVariant.NONE

    @property
    def label(self) -> Optional[str]:
        if not self.visible:
            return None
        if self.variant is ThinkingVariant.EXTENDED:
            return "Thinking for longer…"
        return "Thinking"

    def apply_effort(self, effort: Optional[str]) -> ThinkingVariant:
        """Offer a reasoning effort; only escalations change the variant."""
        if self.cleared or not effort:
            return self.variant
        effort = effort.lower()
        if effort in EXTENDED_REASONING_EFFORTS:
            target = ThinkingVariant.EXTENDED
        elif effort in LIGHT_REASONING_EFFORTS:
            target = ThinkingVariant.THINKING
        else:
            logger.debug(f"Ignoring unknown reasoning effort {effort!r}")
            return self.variant
        if _VARIANT_RANK[target] > _VARIANT_RANK[self.variant]:
            self.variant = target
        return self.variant

    def clear(self) -> None:
        """Hide the indicator once content starts arriving."""
        self.cleared = True


def _is_unset(value: Any) -> bool:
    return value is None or value == ""


def merge_timing(metadata: Dict[str, Any], timing: ThinkingTiming) -> bool:
    """
    Merge client timing into metadata without overwriting set fields.

    Args:
        metadata: Message metadata, updated in place
        timing: Client timing to merge

    Returns:
        True if any field was filled in
    """
    incoming = timing.to_metadata()
    changed = False
    for key in TIMING_FIELDS:
        if _is_unset(metadata.get(key)) and not _is_unset(incoming.get(key)):
            metadata[key] = incoming[key]
            changed = True

    incoming_thinking = incoming.get("thinking") or {}
    thinking = dict(metadata.get("thinking") or {})
    for key, value in incoming_thinking.items():
        if _is_unset(thinking.get(key)) and not _is_unset(value):
            thinking[key] = value
            changed = True
    if thinking:
        metadata["thinking"] = thinking
    return changed


def prefer_client_timing(
    server_metadata: Dict[str, Any], timing: Optional[ThinkingTiming]
) -> Tuple[Dict[str, Any], bool]:
    """
    Combine server-reported metadata with client-observed timing.

    Client timing wins wherever it is present: it reflects the latency the
    user actually perceived.

    Returns:
        (merged metadata, True if client timing replaced or filled server values)
    """
    merged = dict(server_metadata)
    if timing is None or timing.elapsed_ms is None:
        return merged, False

    client = timing.to_metadata()
    overridden = False
    for key in TIMING_FIELDS:
        if merged.get(key) != client[key]:
            merged[key] = client[key]
            overridden = True

    thinking = dict(merged.get("thinking") or {})
    for key in ("durationMs", "durationSeconds"):
        if thinking.get(key) != client["thinking"][key]:
            thinking[key] = client["thinking"][key]
            overridden = True
    if _is_unset(thinking.get("effort")) and timing.effort:
        thinking["effort"] = timing.effort
    merged["thinking"] = thinking
    return merged, overridden
