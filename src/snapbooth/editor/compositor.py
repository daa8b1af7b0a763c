"""Single-photo compositor: resize, branding and thumbnails."""

import io
import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional, Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from ..errors import ValidationError
from ..models import BrandingSpec, has_visible_branding
from .overlays import apply_bands

logger = logging.getLogger(__name__)

MAX_DIMENSIONS = (2048, 2048)
THUMBNAIL_DIMENSIONS = (400, 400)
PHOTO_QUALITY = 95
BRANDED_QUALITY = 96
THUMBNAIL_QUALITY = 80


@dataclass
class ComposedImage:
    """Output of the single-photo compositor."""

    image: bytes
    thumbnail: bytes
    branded: bool = False


def load_image(data: bytes) -> Image.Image:
    """Decode image bytes into an upright RGB image.

    Raises:
        ValidationError: If the bytes are empty or not a decodable image.
    """
    if not data:
        raise ValidationError("No photo provided")
    try:
        image = Image.open(io.BytesIO(data))
        image = ImageOps.exif_transpose(image)
        return image.convert("RGB")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ValidationError(f"Unreadable image: {e}") from e


def encode_jpeg(image: Image.Image, quality: int = PHOTO_QUALITY) -> bytes:
    """Encode an image as JPEG bytes."""
    buffer = io.BytesIO()
    image.convert("RGB").save(buffer, format="JPEG", quality=quality)
    return buffer.getvalue()


def fit_inside(image: Image.Image, max_size: Tuple[int, int]) -> Image.Image:
    """Shrink ``image`` to fit ``max_size`` keeping aspect ratio.

    Images already inside the bounds are returned unchanged; nothing is
    ever upscaled.
    """
    resized = image.copy()
    resized.thumbnail(max_size, Image.Resampling.LANCZOS)
    return resized


def resize_frame(
    data: bytes,
    max_size: Tuple[int, int] = MAX_DIMENSIONS,
    quality: int = PHOTO_QUALITY,
) -> bytes:
    """Normalize a captured frame to a capped-size JPEG."""
    return encode_jpeg(fit_inside(load_image(data), max_size), quality)


def make_thumbnail(data: bytes) -> bytes:
    """Derive a thumbnail from an encoded image."""
    return encode_jpeg(fit_inside(load_image(data), THUMBNAIL_DIMENSIONS), THUMBNAIL_QUALITY)


def apply_branding(
    data: bytes,
    branding: BrandingSpec,
    today: Optional[date] = None,
) -> bytes:
    """Composite branding bands onto an encoded image.

    Returns the input unchanged when ``branding`` has nothing visible.
    """
    if not has_visible_branding(branding):
        return data
    image = load_image(data)
    branded = apply_bands(image, branding, today or date.today())
    return encode_jpeg(branded, BRANDED_QUALITY)


def compose_single(
    frame: bytes,
    branding: Optional[BrandingSpec] = None,
    today: Optional[date] = None,
) -> ComposedImage:
    """Resize a frame, brand it if configured, and derive its thumbnail.

    Branding failures never fail the photo: the resized, unbranded image is
    returned instead.

    Args:
        frame: Raw captured image bytes.
        branding: Event branding; ``None`` means no branding.
        today: Date stamped in the footer. Defaults to the current date.

    Returns:
        ComposedImage with the final JPEG and a thumbnail derived from it.

    Raises:
        ValidationError: If the frame is not a readable image.
    """
    resized = resize_frame(frame)
    image = resized
    branded = False

    if has_visible_branding(branding):
        try:
            image = apply_branding(resized, branding, today)
            branded = True
        except Exception as e:
            logger.warning(f"Branding overlay failed (continuing without): {e}")
            image = resized

    return ComposedImage(image=image, thumbnail=make_thumbnail(image), branded=branded)
