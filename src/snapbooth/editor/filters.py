"""Instant colour filters that need no external model."""

from typing import Callable, Dict

from PIL import Image, ImageEnhance, ImageOps

from ..errors import ValidationError
from .compositor import MAX_DIMENSIONS, encode_jpeg, fit_inside, load_image

FILTER_QUALITY = 95


def _modulate(image: Image.Image, brightness: float = 1.0, saturation: float = 1.0) -> Image.Image:
    image = ImageEnhance.Brightness(image).enhance(brightness)
    return ImageEnhance.Color(image).enhance(saturation)


def _tint(image: Image.Image, rgb: tuple) -> Image.Image:
    overlay = Image.new("RGB", image.size, rgb)
    return Image.blend(image, overlay, 0.12)


def _bw(image: Image.Image) -> Image.Image:
    return ImageEnhance.Brightness(ImageOps.grayscale(image)).enhance(1.1).convert("RGB")


def _warm(image: Image.Image) -> Image.Image:
    return _tint(_modulate(image, 1.05, 1.2), (255, 240, 220))


def _cool(image: Image.Image) -> Image.Image:
    return _tint(_modulate(image, 1.05, 1.1), (220, 235, 255))


def _vivid(image: Image.Image) -> Image.Image:
    return _modulate(image, 1.1, 1.8)


def _fade(image: Image.Image) -> Image.Image:
    return _modulate(image, 1.15, 0.6)


def _dramatic(image: Image.Image) -> Image.Image:
    image = _modulate(image, 0.9, 1.3)
    return ImageEnhance.Contrast(image).enhance(1.2)


FILTERS: Dict[str, Callable[[Image.Image], Image.Image]] = {
    "bw": _bw,
    "warm": _warm,
    "cool": _cool,
    "vivid": _vivid,
    "fade": _fade,
    "dramatic": _dramatic,
}


def apply_filter(frame: bytes, filter_name: str) -> bytes:
    """Apply a named colour filter to a frame.

    Raises:
        ValidationError: If the filter is unknown or the frame unreadable.
    """
    if filter_name not in FILTERS:
        raise ValidationError(
            f"Unknown filter: {filter_name}. Available: {', '.join(FILTERS)}"
        )
    image = fit_inside(load_image(frame), MAX_DIMENSIONS)
    return encode_jpeg(FILTERS[filter_name](image), FILTER_QUALITY)
