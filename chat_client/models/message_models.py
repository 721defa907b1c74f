"""
Message Store and attachment service response models.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class StoredMessage(BaseModel):
    """A persisted assistant message as returned by the Message Store."""

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Persisted message id")
    content: str = Field(default="", description="Persisted message text")
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    terminal_marker: Optional[str] = Field(
        default=None,
        alias="terminalMarker",
        description=(
            "Backend-only completion marker (e.g. the upstream response id); "
            "present only once the server considers the response complete"
        ),
    )

    @property
    def is_terminal(self) -> bool:
        return bool(self.terminal_marker)


class AttachmentPreview(BaseModel):
    """Result of the attachment extraction service."""

    preview: Optional[str] = Field(default=None, description="Extracted text preview")
    status: str = Field(default="ok", description="Extraction status")
