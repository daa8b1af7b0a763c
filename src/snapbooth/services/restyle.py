"""AI restyle gateway over a hosted diffusion endpoint."""

import base64
import io
import logging
import random
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, List, Mapping, Optional

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from ..config import config
from ..errors import RestyleCancelled, RestyleFailed, UpstreamUnavailable, ValidationError
from ..models import STYLES, StyleSpec
from ..editor.compositor import encode_jpeg, load_image

logger = logging.getLogger(__name__)

INPUT_SIZE = (512, 512)
OUTPUT_SIZE = (1024, 1024)
INPUT_QUALITY = 90
OUTPUT_QUALITY = 95
RANDOM_KEYS = ("", "random", "surprise")


class RestyleState(str, Enum):
    """States of one restyle request."""

    ATTEMPT = "attempt"
    WAIT = "wait"
    DONE = "done"
    FAILED = "failed"
    UNAVAILABLE = "unavailable"
    CANCELLED = "cancelled"


class ModelLoading(Exception):
    """The endpoint answered that the model is still warming up."""

    def __init__(self, estimated_wait: Optional[float] = None) -> None:
        self.estimated_wait = estimated_wait
        super().__init__(f"model loading (estimated {estimated_wait}s)")


@dataclass
class RestyleOutcome:
    """Terminal result of a restyle run."""

    state: RestyleState
    style: StyleSpec
    image: Optional[bytes] = None
    attempts: int = 0
    waits: List[float] = field(default_factory=list)
    error: Optional[str] = None


class Sleeper:
    """Suspends between attempts, waking early on cancellation."""

    def wait(self, seconds: float, cancel: Optional[threading.Event] = None) -> bool:
        """Wait up to ``seconds``.

        Returns:
            True if ``cancel`` was set before the wait elapsed.
        """
        return (cancel or threading.Event()).wait(seconds)


def resolve_style(
    style_key: Optional[str],
    rng: Optional[random.Random] = None,
    styles: Mapping[str, StyleSpec] = STYLES,
) -> StyleSpec:
    """Look up a style, picking one at random for the surprise keys.

    Raises:
        ValidationError: If the key names no known style.
    """
    key = (style_key or "").strip().lower()
    if key in RANDOM_KEYS:
        return (rng or random).choice(list(styles.values()))
    if key not in styles:
        raise ValidationError(
            f"Unknown style: {style_key}. Available: {', '.join(styles)}"
        )
    return styles[key]


def _parse_wait(response: requests.Response) -> Optional[float]:
    try:
        body = response.json()
        if isinstance(body, dict) and body.get("estimated_time") is not None:
            return float(body["estimated_time"])
    except ValueError:
        pass
    header = response.headers.get("x-wait-estimated-time")
    if header:
        try:
            return float(header)
        except ValueError:
            logger.debug(f"Ignoring malformed wait header: {header!r}")
    return None


class InferenceClient:
    """Client for the hosted image-to-image inference API."""

    DEFAULT_STRENGTH = 0.65
    DEFAULT_GUIDANCE = 7.5
    DEFAULT_STEPS = 25

    def __init__(
        self,
        api_url: Optional[str] = None,
        api_token: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        """Initialize the inference client.

        Args:
            api_url: Base URL; the model id is appended. Defaults to
                config.hf_api_url.
            api_token: Bearer token. Defaults to HUGGINGFACE_API_TOKEN.
            timeout: Seconds allowed for one request.
            session: requests session to use.
        """
        self._api_url = (api_url or config.hf_api_url).rstrip("/")
        self._api_token = api_token if api_token is not None else config.hf_api_token
        self._timeout = timeout or config.ai_request_timeout
        self._session = session or requests.Session()

    def generate(self, image: bytes, style: StyleSpec, prompt: str) -> bytes:
        """Submit one generation request.

        Returns:
            Raw image bytes from the endpoint.

        Raises:
            ModelLoading: On HTTP 503 while the model warms up.
            RestyleFailed: On any other failure.
        """
        payload = {
            "inputs": prompt,
            "parameters": {
                "negative_prompt": style.negative_prompt,
                "image": base64.b64encode(image).decode("ascii"),
                "strength": self.DEFAULT_STRENGTH,
                "guidance_scale": self.DEFAULT_GUIDANCE,
                "num_inference_steps": self.DEFAULT_STEPS,
            },
        }
        headers = {"Accept": "image/jpeg"}
        if self._api_token:
            headers["Authorization"] = f"Bearer {self._api_token}"

        try:
            response = self._session.post(
                f"{self._api_url}/{style.model}",
                json=payload,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.exceptions.RequestException as e:
            raise RestyleFailed(f"Inference request failed: {e}") from e

        if response.status_code == 503:
            raise ModelLoading(_parse_wait(response))
        if not response.ok:
            raise RestyleFailed(
                f"Inference endpoint returned {response.status_code}: {response.text[:200]}"
            )
        if not response.headers.get("content-type", "").startswith("image/"):
            raise RestyleFailed("Inference endpoint did not return an image")
        return response.content


class RestyleGateway:
    """Runs a restyle through warm-up waits to a terminal state.

    Transitions:
    - ATTEMPT -> DONE on an image response
    - ATTEMPT -> WAIT -> ATTEMPT while the model is loading
    - ATTEMPT -> FAILED on any other error
    - ATTEMPT -> UNAVAILABLE once the attempt ceiling is spent
    - WAIT -> CANCELLED if the cancel event fires
    """

    def __init__(
        self,
        client: Optional[InferenceClient] = None,
        sleeper: Optional[Sleeper] = None,
        max_attempts: Optional[int] = None,
        default_wait: Optional[float] = None,
        max_wait: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._client = client or InferenceClient()
        self._sleeper = sleeper or Sleeper()
        self._max_attempts = max(1, max_attempts or config.ai_max_attempts)
        self._default_wait = default_wait if default_wait is not None else config.ai_default_wait
        self._max_wait = max_wait if max_wait is not None else config.ai_max_wait
        self._rng = rng or random.Random()

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def resolve(self, style_key: Optional[str]) -> StyleSpec:
        return resolve_style(style_key, self._rng)

    def wait_seconds(self, estimated: Optional[float]) -> float:
        """Seconds to wait before the next attempt."""
        wait = estimated if estimated is not None and estimated > 0 else self._default_wait
        return min(wait, self._max_wait)

    def run(
        self,
        frame: bytes,
        style: StyleSpec,
        custom_prompt: Optional[str] = None,
        on_progress: Optional[Callable[[dict], None]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> RestyleOutcome:
        """Drive the state machine until it reaches a terminal state.

        Args:
            frame: Source image bytes.
            style: Resolved style preset.
            custom_prompt: Replaces the preset prompt when given.
            on_progress: Called with a status payload before every wait.
            cancel: Set by the caller when the owning session goes away.

        Returns:
            RestyleOutcome with the final state and, when DONE, the image.
        """
        prompt = (custom_prompt or "").strip() or style.prompt
        prepared = prepare_input(frame)
        outcome = RestyleOutcome(state=RestyleState.ATTEMPT, style=style)
        wait_for = 0.0

        while True:
            if outcome.state is RestyleState.ATTEMPT:
                if cancel is not None and cancel.is_set():
                    outcome.state = RestyleState.CANCELLED
                    continue
                outcome.attempts += 1
                logger.debug(
                    f"Restyle {style.key}: attempt {outcome.attempts}/{self._max_attempts}"
                )
                try:
                    outcome.image = finish_output(self._client.generate(prepared, style, prompt))
                    outcome.state = RestyleState.DONE
                except ModelLoading as e:
                    if outcome.attempts >= self._max_attempts:
                        outcome.error = f"Model still loading after {outcome.attempts} attempts"
                        outcome.state = RestyleState.UNAVAILABLE
                    else:
                        wait_for = self.wait_seconds(e.estimated_wait)
                        outcome.state = RestyleState.WAIT
                except RestyleFailed as e:
                    outcome.error = str(e)
                    outcome.state = RestyleState.FAILED

            elif outcome.state is RestyleState.WAIT:
                logger.info(f"Model for {style.key} is loading, retrying in {wait_for:.0f}s")
                if on_progress is not None:
                    on_progress({
                        "type": "ai-status",
                        "status": "loading",
                        "style": style.key,
                        "message": f"AI model is warming up, retrying in {wait_for:.0f}s",
                        "waitTime": wait_for,
                    })
                outcome.waits.append(wait_for)
                cancelled = self._sleeper.wait(wait_for, cancel)
                outcome.state = RestyleState.CANCELLED if cancelled else RestyleState.ATTEMPT

            else:
                logger.info(
                    f"Restyle {style.key} finished as {outcome.state.value} "
                    f"after {outcome.attempts} attempts"
                )
                return outcome

    def restyle(
        self,
        frame: bytes,
        style: StyleSpec,
        custom_prompt: Optional[str] = None,
        on_progress: Optional[Callable[[dict], None]] = None,
        cancel: Optional[threading.Event] = None,
    ) -> bytes:
        """Run the state machine and raise on any non-DONE outcome.

        Raises:
            UpstreamUnavailable: The model never finished loading.
            RestyleFailed: The endpoint returned a hard error.
            RestyleCancelled: ``cancel`` was set while waiting.
        """
        outcome = self.run(frame, style, custom_prompt, on_progress, cancel)
        if outcome.state is RestyleState.DONE:
            return outcome.image
        if outcome.state is RestyleState.UNAVAILABLE:
            raise UpstreamUnavailable(
                "AI model is loading. Please try again in a moment."
            )
        if outcome.state is RestyleState.CANCELLED:
            raise RestyleCancelled("Restyle cancelled")
        raise RestyleFailed(outcome.error or "AI generation failed")


def prepare_input(frame: bytes) -> bytes:
    """Cover-crop the frame to the model's input size."""
    image = ImageOps.fit(load_image(frame), INPUT_SIZE, Image.Resampling.LANCZOS)
    return encode_jpeg(image, INPUT_QUALITY)


def finish_output(data: bytes) -> bytes:
    """Cover-crop the generated image to the delivered size.

    Raises:
        RestyleFailed: If the endpoint's bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as generated:
            image = generated.convert("RGB")
    except (UnidentifiedImageError, OSError) as e:
        raise RestyleFailed(f"Inference endpoint returned an unreadable image: {e}") from e
    image = ImageOps.fit(image, OUTPUT_SIZE, Image.Resampling.LANCZOS)
    return encode_jpeg(image, OUTPUT_QUALITY)
