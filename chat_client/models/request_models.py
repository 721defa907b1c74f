"""
Request models for the inference service.

Defines the outbound chat request sent when a prompt is submitted.
Field aliases match the service's camelCase wire format.
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class AttachmentPayload(BaseModel):
    """An attachment forwarded to the inference service as an opaque data URL."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(default=None, description="Original file name")
    mime: Optional[str] = Field(default=None, description="MIME type")
    data_url: str = Field(..., alias="dataUrl", description="Base64 data URL")
    preview: Optional[str] = Field(
        default=None, description="Extracted text preview, when available"
    )


class Location(BaseModel):
    """Approximate user location used for localized answers."""

    lat: float
    lng: float
    city: str


class ChatRequest(BaseModel):
    """Request model for submitting a prompt to the streaming chat endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    conversation_id: Optional[str] = Field(
        default=None,
        alias="conversationId",
        description="Target conversation; None starts a new conversation",
    )
    message: str = Field(..., description="The exact prompt text submitted")
    model_family_override: Optional[str] = Field(
        default=None, alias="modelFamilyOverride"
    )
    speed_mode_override: Optional[str] = Field(
        default=None, alias="speedModeOverride"
    )
    reasoning_effort_override: Optional[
        Literal["none", "minimal", "low", "medium", "high"]
    ] = Field(default=None, alias="reasoningEffortOverride")
    attachments: List[AttachmentPayload] = Field(default_factory=list)
    location: Optional[Location] = None
    context_mode: Optional[str] = Field(
        default=None,
        alias="contextMode",
        description="Context selection mode (e.g. 'simple', 'advanced')",
    )

    def to_payload(self) -> Dict[str, Any]:
        """Serialize to the JSON body expected by the service."""
        return self.model_dump(by_alias=True, exclude_none=True)
