"""Branding bands drawn onto photos and strips."""

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFont

from ..config import config
from ..models import BrandingSpec

logger = logging.getLogger(__name__)

MAX_TEXT_LENGTH = 120
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f-\x9f\u200b-\u200f\u2028-\u202e\u2066-\u2069]")


@dataclass
class TextStyle:
    """Configuration for a branding band."""

    fill: str = "black"
    fill_opacity: float = 0.3
    text_color: str = "white"
    text_opacity: float = 0.9
    font_scale: float = 0.4


# Preset styles
STYLES = {
    "overlay": TextStyle(),
    "footer": TextStyle(fill_opacity=0.88, text_opacity=1.0, font_scale=0.45),
    "footer_date": TextStyle(fill_opacity=0.88, text_opacity=0.75, font_scale=0.28),
}

OVERLAY_BAND_HEIGHT = 60
FOOTER_BAND_RATIO = 0.08


def sanitize_text(text: Optional[str], max_length: int = MAX_TEXT_LENGTH) -> str:
    """Make organiser-supplied text safe to draw.

    Control and bidi-override characters are removed, whitespace runs are
    collapsed and the result is truncated.
    """
    if not text:
        return ""
    cleaned = _CONTROL_CHARS.sub(" ", str(text))
    cleaned = " ".join(cleaned.split())
    if len(cleaned) > max_length:
        cleaned = cleaned[: max_length - 1].rstrip() + "…"
    return cleaned


def format_date(day: date) -> str:
    """Long US-style date, e.g. ``October 18, 2026``."""
    return f"{day.strftime('%B')} {day.day}, {day.year}"


def load_font(size: int) -> ImageFont.ImageFont:
    """Load the branding font at ``size`` pixels.

    Falls back to Pillow's bundled font when the configured TrueType file is
    not installed.
    """
    size = max(1, int(size))
    try:
        return ImageFont.truetype(config.font_path, size)
    except OSError:
        logger.debug(f"Font {config.font_path} unavailable, using default")
        return ImageFont.load_default(size=size)


def parse_color(value: str, opacity: float = 1.0) -> Tuple[int, int, int, int]:
    """Parse a CSS colour into an RGBA tuple.

    Raises:
        ValueError: If the colour cannot be parsed.
    """
    rgb = ImageColor.getrgb(value)
    alpha = int(round(255 * max(0.0, min(1.0, opacity))))
    return rgb[0], rgb[1], rgb[2], alpha


def draw_text(
    draw: ImageDraw.ImageDraw,
    text: str,
    center: Tuple[float, float],
    font: ImageFont.ImageFont,
    fill: Tuple[int, int, int, int],
    anchor: str = "mm",
) -> None:
    """Draw ``text`` anchored at ``center``."""
    if text:
        draw.text(center, text, font=font, fill=fill, anchor=anchor)


def render_overlay_band(layer: Image.Image, text: str, style_name: str = "overlay") -> None:
    """Draw the top watermark band onto an RGBA layer."""
    style = STYLES[style_name]
    width = layer.width
    height = min(OVERLAY_BAND_HEIGHT, layer.height)
    draw = ImageDraw.Draw(layer)
    draw.rectangle((0, 0, width, height), fill=parse_color(style.fill, style.fill_opacity))
    font = load_font(height * style.font_scale)
    draw_text(
        draw,
        sanitize_text(text),
        (20, height / 2),
        font,
        parse_color(style.text_color, style.text_opacity),
        anchor="lm",
    )


def render_footer_band(
    layer: Image.Image,
    branding: BrandingSpec,
    today: date,
) -> None:
    """Draw the footer band with footer text and/or the date."""
    width, height = layer.size
    band = max(1, round(height * FOOTER_BAND_RATIO))
    top = height - band

    footer_text = sanitize_text(branding.footer_text)
    date_text = format_date(today) if branding.show_date else ""
    primary = footer_text or date_text

    main_style = STYLES["footer"]
    draw = ImageDraw.Draw(layer)
    draw.rectangle(
        (0, top, width, height),
        fill=parse_color(branding.primary_color, main_style.fill_opacity),
    )

    text_color = branding.secondary_color
    if footer_text and date_text:
        # Two lines: footer text above, smaller date below.
        draw_text(
            draw,
            primary,
            (width / 2, top + band * 0.4),
            load_font(band * main_style.font_scale),
            parse_color(text_color, main_style.text_opacity),
        )
        date_style = STYLES["footer_date"]
        draw_text(
            draw,
            date_text,
            (width / 2, top + band * 0.8),
            load_font(band * date_style.font_scale),
            parse_color(text_color, date_style.text_opacity),
        )
    else:
        draw_text(
            draw,
            primary,
            (width / 2, top + band / 2),
            load_font(band * main_style.font_scale),
            parse_color(text_color, main_style.text_opacity),
        )


def apply_bands(image: Image.Image, branding: BrandingSpec, today: date) -> Image.Image:
    """Return ``image`` with the bands ``branding`` asks for composited on."""
    base = image.convert("RGBA")
    layer = Image.new("RGBA", base.size, (0, 0, 0, 0))

    if branding.footer_text.strip() or branding.show_date is True:
        render_footer_band(layer, branding, today)
    if branding.overlay_text.strip():
        render_overlay_band(layer, branding.overlay_text)

    return Image.alpha_composite(base, layer).convert("RGB")
