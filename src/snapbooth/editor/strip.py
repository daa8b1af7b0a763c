"""Classic photo-booth strip layout."""

import logging
from datetime import date
from typing import List, Optional, Sequence

from PIL import Image, ImageDraw, ImageOps

from ..errors import ValidationError
from ..models import BrandingSpec
from .compositor import encode_jpeg, load_image
from .overlays import format_date, load_font, parse_color, sanitize_text

logger = logging.getLogger(__name__)

STRIP_WIDTH = 640
PHOTO_HEIGHT = 480
PADDING = 20
HEADER_HEIGHT = 80
FOOTER_HEIGHT = 80
MAX_FRAMES = 4
STRIP_QUALITY = 95
DEFAULT_BACKGROUND = "#1a1a2e"


def strip_height(frame_count: int) -> int:
    """Height of a strip holding ``frame_count`` photos."""
    n = min(frame_count, MAX_FRAMES)
    return HEADER_HEIGHT + FOOTER_HEIGHT + PADDING * (n + 1) + PHOTO_HEIGHT * n


def _background(branding: BrandingSpec) -> tuple:
    try:
        return parse_color(branding.primary_color or DEFAULT_BACKGROUND)[:3]
    except ValueError:
        logger.warning(f"Invalid strip colour {branding.primary_color!r}, using default")
        return parse_color(DEFAULT_BACKGROUND)[:3]


def compose_strip(
    frames: Sequence[bytes],
    branding: Optional[BrandingSpec] = None,
    today: Optional[date] = None,
) -> bytes:
    """Lay out up to four frames in a vertical strip.

    Frames beyond the fourth are ignored. Each frame is center-cropped to
    fill its slot.

    Args:
        frames: Raw captured image bytes, in display order.
        branding: Event branding for the header and footer.
        today: Date shown when there is no footer text.

    Returns:
        JPEG bytes of the composed strip.

    Raises:
        ValidationError: If no frames are given or one is unreadable.
    """
    if not frames:
        raise ValidationError("No photos provided")

    branding = branding or BrandingSpec()
    used: List[bytes] = list(frames[:MAX_FRAMES])
    if len(frames) > MAX_FRAMES:
        logger.info(f"Strip received {len(frames)} frames, using first {MAX_FRAMES}")

    height = strip_height(len(used))
    canvas = Image.new("RGB", (STRIP_WIDTH, height), _background(branding))
    slot = (STRIP_WIDTH - PADDING * 2, PHOTO_HEIGHT)

    for i, data in enumerate(used):
        photo = ImageOps.fit(load_image(data), slot, Image.Resampling.LANCZOS, centering=(0.5, 0.5))
        canvas.paste(photo, (PADDING, HEADER_HEIGHT + PADDING + i * (PHOTO_HEIGHT + PADDING)))

    draw = ImageDraw.Draw(canvas)
    header = sanitize_text(branding.event_name).upper()
    if header:
        draw.text(
            (STRIP_WIDTH / 2, HEADER_HEIGHT / 2),
            header,
            font=load_font(32),
            fill=(255, 255, 255),
            anchor="mm",
        )
    footer = sanitize_text(branding.footer_text) or format_date(today or date.today())
    draw.text(
        (STRIP_WIDTH / 2, height - FOOTER_HEIGHT / 2),
        footer,
        font=load_font(18),
        fill=(230, 230, 230),
        anchor="mm",
    )

    return encode_jpeg(canvas, STRIP_QUALITY)
