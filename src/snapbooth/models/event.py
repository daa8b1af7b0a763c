"""Event record model."""

from typing import Any, Dict
from pydantic import BaseModel, Field

from .branding import BrandingSpec


class EventRecord(BaseModel):
    """Read-only view of an event owned by the configuration store."""

    id: str = Field(..., description="Event identifier")
    name: str = Field(..., description="Display name")
    slug: str = Field(..., description="URL-safe identifier")
    branding: BrandingSpec = Field(default_factory=BrandingSpec, description="Branding config")
    settings: Dict[str, Any] = Field(default_factory=dict, description="Booth settings")

    def effective_branding(self) -> BrandingSpec:
        """Branding with the event name filled in when the store omits it."""
        if "event_name" in self.branding.model_fields_set:
            return self.branding
        return self.branding.model_copy(update={"event_name": self.name})
