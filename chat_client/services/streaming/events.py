"""
Stream frame types and record classification.

Every parsed NDJSON record is classified exactly once into one member of a
closed set of frame types. Records that match no frame type (or carry a
recognised field with the wrong shape) classify to ``None`` and are dropped,
which keeps the client forward compatible with newer producers.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Union

logger = logging.getLogger(__name__)


class FrameType(str, Enum):
    CONTENT = "content"
    PREAMBLE = "preamble"
    STATUS = "status"
    SEARCH_DOMAIN = "search_domain"
    MODEL_INFO = "model_info"
    META = "meta"
    METADATA = "metadata"
    SOURCES = "sources"
    SERVER_ERROR = "server_error"
    DONE = "done"


class StatusType(str, Enum):
    SEARCH_START = "search-start"
    SEARCH_COMPLETE = "search-complete"
    SEARCH_ERROR = "search-error"
    FILE_SEARCH_START = "file-search-start"
    FILE_SEARCH_COMPLETE = "file-search-complete"
    FILE_READING_START = "file-reading-start"
    FILE_READING_COMPLETE = "file-reading-complete"
    FILE_READING_ERROR = "file-reading-error"
    CODE_EXECUTION_START = "code-execution-start"
    CODE_EXECUTION_COMPLETE = "code-execution-complete"
    CODE_EXECUTION_ERROR = "code-execution-error"


def _routing_fields(frame: Any) -> Dict[str, Any]:
    values = {
        "model": frame.model,
        "resolvedFamily": frame.resolved_family,
        "speedModeUsed": frame.speed_mode_used,
        "reasoningEffort": frame.reasoning_effort,
    }
    return {k: v for k, v in values.items() if v is not None}


@dataclass(frozen=True)
class ContentFrame:
    frame_type: ClassVar[FrameType] = FrameType.CONTENT
    text: str


@dataclass(frozen=True)
class PreambleFrame:
    frame_type: ClassVar[FrameType] = FrameType.PREAMBLE
    text: str
    is_delta: bool


@dataclass(frozen=True)
class StatusFrame:
    frame_type: ClassVar[FrameType] = FrameType.STATUS
    status: StatusType
    query: Optional[str] = None
    message: Optional[str] = None


@dataclass(frozen=True)
class SearchDomainFrame:
    frame_type: ClassVar[FrameType] = FrameType.SEARCH_DOMAIN
    domain: str


@dataclass(frozen=True)
class ModelInfoFrame:
    frame_type: ClassVar[FrameType] = FrameType.MODEL_INFO
    model: Optional[str] = None
    resolved_family: Optional[str] = None
    speed_mode_used: Optional[str] = None
    reasoning_effort: Optional[str] = None

    def routing_fields(self) -> Dict[str, Any]:
        """Routing values keyed by their metadata names, unset values omitted."""
        return _routing_fields(self)


@dataclass(frozen=True)
class MetaFrame:
    frame_type: ClassVar[FrameType] = FrameType.META
    assistant_message_row_id: Optional[str] = None
    user_message_row_id: Optional[str] = None
    model: Optional[str] = None
    reasoning_effort: Optional[str] = None
    resolved_family: Optional[str] = None
    speed_mode_used: Optional[str] = None
    context_usage: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    final_content: Optional[str] = None

    def routing_fields(self) -> Dict[str, Any]:
        return _routing_fields(self)


@dataclass(frozen=True)
class MetadataFrame:
    frame_type: ClassVar[FrameType] = FrameType.METADATA
    searched_domains: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class SourcesFrame:
    frame_type: ClassVar[FrameType] = FrameType.SOURCES
    sources: List[Dict[str, Any]] = field(default_factory=list)
    message_id: Optional[str] = None


@dataclass(frozen=True)
class ServerErrorFrame:
    frame_type: ClassVar[FrameType] = FrameType.SERVER_ERROR
    error: str
    details: Optional[str] = None


@dataclass(frozen=True)
class DoneFrame:
    frame_type: ClassVar[FrameType] = FrameType.DONE


StreamFrame = Union[
    ContentFrame,
    PreambleFrame,
    StatusFrame,
    SearchDomainFrame,
    ModelInfoFrame,
    MetaFrame,
    MetadataFrame,
    SourcesFrame,
    ServerErrorFrame,
    DoneFrame,
]


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) and value else None


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, str)]


def _parse_status(value: Any) -> Optional[StatusFrame]:
    if not isinstance(value, dict):
        return None
    try:
        status = StatusType(value.get("type"))
    except ValueError:
        logger.debug(f"Unknown status type dropped: {value.get('type')!r}")
        return None
    return StatusFrame(
        status=status,
        query=_optional_str(value.get("query")),
        message=_optional_str(value.get("message")),
    )


def _parse_model_info(value: Any) -> Optional[ModelInfoFrame]:
    if not isinstance(value, dict):
        return None
    return ModelInfoFrame(
        model=_optional_str(value.get("model")),
        resolved_family=_optional_str(value.get("resolvedFamily")),
        speed_mode_used=_optional_str(value.get("speedModeUsed")),
        reasoning_effort=_optional_str(value.get("reasoningEffort")),
    )


def _parse_meta(value: Any) -> Optional[MetaFrame]:
    if not isinstance(value, dict):
        return None
    metadata = value.get("metadata")
    context_usage = value.get("contextUsage")
    final_content = value.get("finalContent")
    return MetaFrame(
        assistant_message_row_id=_optional_str(value.get("assistantMessageRowId")),
        user_message_row_id=_optional_str(value.get("userMessageRowId")),
        model=_optional_str(value.get("model")),
        reasoning_effort=_optional_str(value.get("reasoningEffort")),
        resolved_family=_optional_str(value.get("resolvedFamily")),
        speed_mode_used=_optional_str(value.get("speedModeUsed")),
        context_usage=context_usage if isinstance(context_usage, dict) else None,
        metadata=dict(metadata) if isinstance(metadata, dict) else {},
        final_content=final_content if isinstance(final_content, str) else None,
    )


def classify_record(record: Dict[str, Any]) -> Optional[StreamFrame]:
    """
    Classify a parsed record into a frame.

    A record carries at most one primary signal in practice; when several
    fields are present the highest-priority one wins:
    content > preamble > status > search domain > model info > meta >
    metadata chunk > sources > server error > done.

    Args:
        record: One parsed NDJSON object

    Returns:
        The frame, or None for unknown or malformed records
    """
    if isinstance(record.get("token"), str):
        return ContentFrame(text=record["token"])

    if isinstance(record.get("preamble_delta"), str):
        return PreambleFrame(text=record["preamble_delta"], is_delta=True)
    if isinstance(record.get("preamble"), str):
        return PreambleFrame(text=record["preamble"], is_delta=False)

    if "status" in record:
        return _parse_status(record["status"])

    if record.get("type") == "web_search_domain":
        domain = record.get("domain")
        if isinstance(domain, str) and domain.strip():
            return SearchDomainFrame(domain=domain.strip())
        return None

    if "model_info" in record:
        return _parse_model_info(record["model_info"])

    if "meta" in record:
        return _parse_meta(record["meta"])

    if isinstance(record.get("metadata"), dict):
        return MetadataFrame(
            searched_domains=_string_list(record["metadata"].get("searchedDomains"))
        )

    if record.get("type") == "sources":
        sources = record.get("sources")
        if not isinstance(sources, list):
            return None
        return SourcesFrame(
            sources=[s for s in sources if isinstance(s, dict)],
            message_id=_optional_str(record.get("messageId")),
        )

    if isinstance(record.get("error"), str):
        details = record.get("details")
        return ServerErrorFrame(
            error=record["error"],
            details=details if isinstance(details, str) else None,
        )

    if record.get("done") is True:
        return DoneFrame()

    return None
