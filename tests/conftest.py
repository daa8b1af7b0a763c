"""Shared fixtures for the media core tests."""

import io
from typing import Dict, List, Optional

import pytest
from PIL import Image

from snapbooth.errors import FetchFailureReason
from snapbooth.models import BrandingSpec, EventRecord
from snapbooth.services import (
    ArchiveStreamer,
    FetchResult,
    LocalLiveChannel,
    MediaService,
    MemoryArtifactStore,
    MemoryEventStore,
    MemoryStorage,
    RestyleGateway,
)


def make_jpeg(size=(320, 240), color=(200, 60, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()


def image_size(data: bytes):
    with Image.open(io.BytesIO(data)) as image:
        return image.size


class FakeFetcher:
    """Answers fetches from a table of url -> bytes or failure reason."""

    def __init__(self, answers: Optional[Dict[str, object]] = None) -> None:
        self.answers = answers or {}
        self.calls: List[str] = []

    def fetch_result(self, url: str) -> FetchResult:
        self.calls.append(url)
        answer = self.answers.get(url, FetchFailureReason.STATUS)
        if isinstance(answer, FetchFailureReason):
            return FetchResult.failure(url, answer, "scripted failure")
        return FetchResult.success(url, answer)


class FakeSleeper:
    """Records waits instead of sleeping."""

    def __init__(self, cancel_after: Optional[int] = None, log: Optional[list] = None) -> None:
        self.waits: List[float] = []
        self.cancel_after = cancel_after
        self.log = log if log is not None else []

    def wait(self, seconds, cancel=None) -> bool:
        self.waits.append(seconds)
        self.log.append(("wait", seconds))
        return self.cancel_after is not None and len(self.waits) >= self.cancel_after


class ScriptedClient:
    """Inference client replaying a list of results or exceptions."""

    def __init__(self, script: list) -> None:
        self.script = list(script)
        self.inputs: List[bytes] = []
        self.prompts: List[str] = []

    def generate(self, image, style, prompt):
        self.inputs.append(image)
        self.prompts.append(prompt)
        step = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(step, Exception):
            raise step
        return step


@pytest.fixture
def jpeg() -> bytes:
    return make_jpeg()


@pytest.fixture
def event() -> EventRecord:
    return EventRecord(
        id="evt-1",
        name="Sam & Alex Wedding",
        slug="sam-alex",
        branding=BrandingSpec(footerText="Sam & Alex", showDate=True),
    )


@pytest.fixture
def events(event) -> MemoryEventStore:
    return MemoryEventStore([
        event,
        EventRecord(id="evt-plain", name="Plain Party", slug="plain"),
    ])


@pytest.fixture
def artifact_store() -> MemoryArtifactStore:
    return MemoryArtifactStore()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def live() -> LocalLiveChannel:
    return LocalLiveChannel()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()


@pytest.fixture
def sleeper() -> FakeSleeper:
    return FakeSleeper()


@pytest.fixture
def client() -> ScriptedClient:
    return ScriptedClient([make_jpeg((512, 512), (10, 120, 200))])


@pytest.fixture
def service(events, artifact_store, storage, live, fetcher, client, sleeper) -> MediaService:
    return MediaService(
        events=events,
        artifacts=artifact_store,
        storage=storage,
        live=live,
        gateway=RestyleGateway(client=client, sleeper=sleeper, max_attempts=3, default_wait=30, max_wait=60),
        archiver=ArchiveStreamer(events, artifact_store, fetcher, workers=2),
    )
