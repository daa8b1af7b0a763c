"""Image editing and encoding module."""

from .compositor import (
    ComposedImage,
    compose_single,
    apply_branding,
    resize_frame,
    make_thumbnail,
    load_image,
    encode_jpeg,
)
from .overlays import (
    TextStyle,
    STYLES,
    sanitize_text,
    format_date,
    apply_bands,
)
from .strip import compose_strip, strip_height
from .sequence import (
    boomerang_frames,
    encode_gif,
    encode_boomerang,
)
from .filters import FILTERS, apply_filter

__all__ = [
    # Compositor
    "ComposedImage",
    "compose_single",
    "apply_branding",
    "resize_frame",
    "make_thumbnail",
    "load_image",
    "encode_jpeg",
    # Overlays
    "TextStyle",
    "STYLES",
    "sanitize_text",
    "format_date",
    "apply_bands",
    # Strip
    "compose_strip",
    "strip_height",
    # Sequences
    "boomerang_frames",
    "encode_gif",
    "encode_boomerang",
    # Filters
    "FILTERS",
    "apply_filter",
]
