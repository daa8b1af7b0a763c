"""Data models for the photo booth media core."""

from .artifact import Artifact, ArtifactKind
from .branding import BrandingSpec, has_visible_branding
from .event import EventRecord
from .style import STYLES, StyleSpec

__all__ = [
    "Artifact",
    "ArtifactKind",
    "BrandingSpec",
    "has_visible_branding",
    "EventRecord",
    "STYLES",
    "StyleSpec",
]
