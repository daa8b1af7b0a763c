"""AI style table."""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Mapping


@dataclass(frozen=True)
class StyleSpec:
    """Prompt and model used for one restyle preset."""

    key: str
    name: str
    emoji: str
    model: str
    prompt: str
    negative_prompt: str


def _build_styles(*specs: StyleSpec) -> Mapping[str, StyleSpec]:
    return MappingProxyType({spec.key: spec for spec in specs})


STYLES: Mapping[str, StyleSpec] = _build_styles(
    StyleSpec(
        key="anime",
        name="Anime Art",
        emoji="🎌",
        model="Linaqruf/anything-v3.0",
        prompt="anime style illustration, high quality, detailed, vibrant colors",
        negative_prompt="ugly, blurry, low quality",
    ),
    StyleSpec(
        key="vintage",
        name="Vintage Film",
        emoji="📷",
        model="runwayml/stable-diffusion-v1-5",
        prompt="vintage film photography, retro aesthetic, grain, warm tones, 1970s style",
        negative_prompt="modern, digital, sharp, oversaturated",
    ),
    StyleSpec(
        key="watercolor",
        name="Watercolor",
        emoji="🎨",
        model="runwayml/stable-diffusion-v1-5",
        prompt="beautiful watercolor painting, artistic, soft colors, paper texture",
        negative_prompt="photo, realistic, digital art",
    ),
    StyleSpec(
        key="cyberpunk",
        name="Cyberpunk",
        emoji="🌆",
        model="runwayml/stable-diffusion-v1-5",
        prompt="cyberpunk style, neon lights, futuristic city, dramatic lighting, blade runner aesthetic",
        negative_prompt="natural, daytime, bright",
    ),
    StyleSpec(
        key="oilpainting",
        name="Oil Painting",
        emoji="🖼️",
        model="runwayml/stable-diffusion-v1-5",
        prompt="oil painting style, impressionist, brushstrokes, classical art, museum quality",
        negative_prompt="photo, modern, digital",
    ),
    StyleSpec(
        key="comic",
        name="Comic Book",
        emoji="💥",
        model="ogkalu/comic-shazam",
        prompt="comic book style, bold outlines, bright colors, halftone dots, action style",
        negative_prompt="realistic, photograph",
    ),
)
