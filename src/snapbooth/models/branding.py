"""Branding data model."""

from typing import Optional
from pydantic import BaseModel, Field, field_validator


class BrandingSpec(BaseModel):
    """Per-event branding read from the event configuration.

    Text fields come from event organisers and are untrusted. Everything
    defaults to "off" so that a new event stamps nothing on its photos.
    ``logo_url`` and ``frame_url`` are stored and returned to clients but
    never composited.
    """

    event_name: str = Field(default="SnapBooth", alias="eventName")
    overlay_text: str = Field(default="", alias="overlayText")
    footer_text: str = Field(default="", alias="footerText")
    show_date: bool = Field(default=False, alias="showDate")
    primary_color: str = Field(default="#1a1a2e", alias="primaryColor")
    secondary_color: str = Field(default="#ffffff", alias="secondaryColor")
    logo_url: Optional[str] = Field(default=None, alias="logoUrl")
    frame_url: Optional[str] = Field(default=None, alias="frameUrl")

    class Config:
        """Pydantic config."""
        frozen = True
        populate_by_name = True
        extra = "ignore"

    @field_validator("overlay_text", "footer_text", mode="before")
    @classmethod
    def _none_as_blank(cls, value):
        return "" if value is None else value


def has_visible_branding(spec: Optional[BrandingSpec]) -> bool:
    """Return True if compositing ``spec`` would change a photo.

    A footer band is drawn for non-blank footer text or an explicit date
    flag; a top band for non-blank overlay text. Colours alone never count.
    """
    if spec is None:
        return False
    return bool(
        spec.footer_text.strip()
        or spec.overlay_text.strip()
        or spec.show_date is True
    )
