"""Artifact data model."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field


class ArtifactKind(str, Enum):
    """Kinds of finished media an event can hold."""
    SINGLE = "single"
    STRIP = "strip"
    GIF = "gif"
    BOOMERANG = "boomerang"
    AI = "ai"
    FILTERED = "filtered"

    @property
    def extension(self) -> str:
        """File extension of the stored object."""
        if self in (ArtifactKind.GIF, ArtifactKind.BOOMERANG):
            return ".gif"
        return ".jpg"

    @property
    def content_type(self) -> str:
        """MIME type of the stored object."""
        if self in (ArtifactKind.GIF, ArtifactKind.BOOMERANG):
            return "image/gif"
        return "image/jpeg"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Artifact(BaseModel):
    """A finished, persisted media object owned by an event."""

    id: str = Field(..., description="Unique artifact identifier")
    event_id: str = Field(..., description="Owning event")
    session_id: Optional[str] = Field(None, description="Capture session, if any")
    kind: ArtifactKind = Field(..., description="Kind of media")
    storage_key: str = Field(..., description="Object storage key")
    url: str = Field(..., description="Public URL of the stored object")
    thumb_url: Optional[str] = Field(None, description="Public URL of the thumbnail")
    thumb_key: Optional[str] = Field(None, description="Object storage key of the thumbnail")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Kind-specific details")
    created_at: datetime = Field(default_factory=utcnow, description="Creation time")

    class Config:
        """Pydantic config."""
        frozen = True

    def to_response(self) -> dict:
        """Shape used by the HTTP API."""
        return {
            "id": self.id,
            "eventId": self.event_id,
            "sessionId": self.session_id,
            "mode": self.kind.value,
            "url": self.url,
            "thumbUrl": self.thumb_url,
            "downloadUrl": self.url,
            "metadata": dict(self.metadata),
            "createdAt": self.created_at.isoformat(),
        }
