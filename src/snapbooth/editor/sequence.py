"""Animated GIF and boomerang encoding through ffmpeg."""

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence, TypeVar

from PIL import Image, ImageOps

from ..config import config
from ..errors import EncodingFailure, ValidationError
from .compositor import load_image

logger = logging.getLogger(__name__)

T = TypeVar("T")

GIF_FPS = 4
BOOMERANG_FPS = 8
GIF_WIDTH = 800
INFINITE_LOOP = 0
FRAME_QUALITY = 85
FRAME_PATTERN = "frame_%04d.jpg"


def boomerang_frames(frames: Sequence[T]) -> List[T]:
    """Play ``frames`` forward, then in reverse."""
    return list(frames) + list(reversed(frames))


def palette_filter(fps: int, width: int) -> str:
    """ffmpeg filter graph: one palette for the whole clip, then dither onto it."""
    return (
        f"fps={fps},scale={width}:-1:flags=lanczos,split[s0][s1];"
        f"[s0]palettegen=max_colors=256[p];[s1][p]paletteuse=dither=bayer"
    )


def _write_frames(frames: Sequence[bytes], workdir: Path, width: int) -> List[Path]:
    """Resize frames to a common width and write them as a numbered sequence.

    Frames whose height differs from the first are center-cropped to match,
    since a palette pass needs a constant frame size.
    """
    paths: List[Path] = []
    size = None
    for i, data in enumerate(frames):
        image = load_image(data)
        height = max(1, round(image.height * width / image.width))
        image = image.resize((width, height), Image.Resampling.LANCZOS)
        if size is None:
            size = image.size
        elif image.size != size:
            image = ImageOps.fit(image, size, Image.Resampling.LANCZOS)
        path = workdir / (FRAME_PATTERN % i)
        image.save(path, format="JPEG", quality=FRAME_QUALITY)
        paths.append(path)
    return paths


def encode_gif(
    frames: Sequence[bytes],
    fps: int = GIF_FPS,
    width: int = GIF_WIDTH,
    loop: int = INFINITE_LOOP,
    ffmpeg: Optional[str] = None,
    timeout: Optional[float] = None,
) -> bytes:
    """Encode frames into a looping palette GIF.

    All intermediate files live in a private temporary directory that is
    removed however this function exits.

    Args:
        frames: Raw captured image bytes in playback order.
        fps: Playback frame rate.
        width: Output width in pixels; height keeps the aspect ratio.
        loop: ffmpeg ``-loop`` value, 0 loops forever.
        ffmpeg: ffmpeg executable. Defaults to config.ffmpeg_binary.
        timeout: Seconds before the encoder is killed.

    Returns:
        GIF bytes.

    Raises:
        ValidationError: If no frames are given or one is unreadable.
        EncodingFailure: If ffmpeg is missing, fails or times out.
    """
    if not frames:
        raise ValidationError("No frames provided")

    ffmpeg = ffmpeg or config.ffmpeg_binary
    timeout = timeout or config.ffmpeg_timeout

    with tempfile.TemporaryDirectory(prefix="snapbooth_seq_") as tmp:
        workdir = Path(tmp)
        _write_frames(frames, workdir, width)
        output_path = workdir / "output.gif"

        cmd = [
            ffmpeg,
            "-y",
            "-loglevel", "error",
            "-framerate", str(fps),
            "-i", str(workdir / FRAME_PATTERN),
            "-vf", palette_filter(fps, width),
            "-loop", str(loop),
            str(output_path),
        ]
        logger.debug(f"Running encoder: {' '.join(cmd)}")

        try:
            subprocess.run(cmd, check=True, capture_output=True, timeout=timeout)
        except FileNotFoundError as e:
            raise EncodingFailure(f"ffmpeg not found: {ffmpeg}") from e
        except subprocess.TimeoutExpired as e:
            raise EncodingFailure(f"ffmpeg timed out after {timeout}s") from e
        except subprocess.CalledProcessError as e:
            stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
            raise EncodingFailure(f"ffmpeg exited with {e.returncode}: {stderr[-500:]}") from e

        if not output_path.exists():
            raise EncodingFailure("ffmpeg completed but produced no output")

        gif = output_path.read_bytes()

    logger.info(f"Encoded {len(frames)} frames at {fps}fps into {len(gif)} byte GIF")
    return gif


def encode_boomerang(
    frames: Sequence[bytes],
    fps: int = BOOMERANG_FPS,
    width: int = GIF_WIDTH,
    loop: int = INFINITE_LOOP,
    ffmpeg: Optional[str] = None,
    timeout: Optional[float] = None,
) -> bytes:
    """Encode a forward-then-reverse loop."""
    if not frames:
        raise ValidationError("No frames provided")
    return encode_gif(
        boomerang_frames(frames),
        fps=fps,
        width=width,
        loop=loop,
        ffmpeg=ffmpeg,
        timeout=timeout,
    )
