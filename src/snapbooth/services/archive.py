"""Streaming ZIP export of an event's artifacts."""

import io
import itertools
import logging
import re
import zipfile
from collections import deque
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Deque, Iterator, List, Optional, Sequence, Tuple

from ..config import config
from ..errors import FetchFailureReason, NothingToExport
from ..models import Artifact
from .artifacts import ArtifactStore
from .events import EventStore
from .fetcher import FetchResult, ResilientFetcher

logger = logging.getLogger(__name__)

COMPRESS_LEVEL = 1
_UNSAFE_NAME = re.compile(r"[^A-Za-z0-9_-]+")


def entry_name(position: int, artifact: Artifact) -> str:
    """Archive member name: list position, kind and an id fragment."""
    return f"{position:03d}_{artifact.kind.value}_{artifact.id[:8]}{artifact.kind.extension}"


def archive_filename(event_name: str) -> str:
    """Download name for an event's archive."""
    base = _UNSAFE_NAME.sub("", re.sub(r"\s+", "_", event_name.strip())) or "event"
    return f"{base}_photos.zip"


class _ChunkSink(io.RawIOBase):
    """Write-only, non-seekable buffer drained after every archive entry.

    zipfile detects that it cannot seek and writes data descriptors
    instead of rewinding to patch local headers.
    """

    def __init__(self) -> None:
        self._chunks: List[bytes] = []

    def writable(self) -> bool:
        return True

    def write(self, b) -> int:
        self._chunks.append(bytes(b))
        return len(b)

    def drain(self) -> bytes:
        data = b"".join(self._chunks)
        self._chunks.clear()
        return data


@dataclass
class SkippedEntry:
    """An artifact left out of the archive."""

    artifact_id: str
    url: str
    reason: FetchFailureReason
    detail: str = ""


@dataclass
class ArchiveStream:
    """A ready-to-send archive.

    Iterating yields the ZIP bytes. ``included`` and ``skipped`` fill in as
    the iteration progresses.
    """

    event_id: str
    filename: str
    artifacts: List[Artifact]
    included: int = 0
    skipped: List[SkippedEntry] = field(default_factory=list)
    finished: bool = False
    _chunks: Optional[Iterator[bytes]] = field(default=None, repr=False)

    media_type = "application/zip"

    def __iter__(self) -> Iterator[bytes]:
        if self._chunks is None:
            raise RuntimeError("Archive stream already consumed")
        chunks, self._chunks = self._chunks, None
        return chunks


class ArchiveStreamer:
    """Builds archives entry by entry while fetching ahead in parallel."""

    def __init__(
        self,
        events: EventStore,
        artifacts: ArtifactStore,
        fetcher: Optional[ResilientFetcher] = None,
        workers: Optional[int] = None,
        window: Optional[int] = None,
    ) -> None:
        """Initialize the streamer.

        Args:
            events: Event lookup, used for the download name.
            artifacts: Artifact records to export.
            fetcher: Fetcher for stored objects.
            workers: Concurrent fetches. Defaults to config.export_workers.
            window: Fetches in flight or buffered ahead of the writer.
                Defaults to twice the worker count.
        """
        self._events = events
        self._artifacts = artifacts
        self._fetcher = fetcher or ResilientFetcher()
        self._workers = max(1, workers or config.export_workers)
        self._window = max(1, window or self._workers * 2)

    def open(self, event_id: str) -> ArchiveStream:
        """Resolve the event and its artifacts, then return a lazy stream.

        Raises:
            NotFoundError: If the event does not exist.
            NothingToExport: If the event has no artifacts.
        """
        event = self._events.get(event_id)
        artifacts = self._artifacts.list_for_event(event.id)
        if not artifacts:
            raise NothingToExport(f"No photos found for event {event.id}")

        stream = ArchiveStream(
            event_id=event.id,
            filename=archive_filename(event.name),
            artifacts=artifacts,
        )
        stream._chunks = self._generate(stream)
        logger.info(f"Exporting {len(artifacts)} artifacts for event {event.id}")
        return stream

    def _fetch(self, artifact: Artifact) -> FetchResult:
        try:
            return self._fetcher.fetch_result(artifact.url)
        except Exception as e:
            logger.error(f"Unexpected error fetching {artifact.url}: {e}")
            return FetchResult.failure(artifact.url, FetchFailureReason.CONNECTION, str(e))

    def _fetch_in_order(self, artifacts: Sequence[Artifact]) -> Iterator[Tuple[Artifact, FetchResult]]:
        pending: Deque = deque()
        remaining = iter(artifacts)
        executor = ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="snapbooth-export")
        try:
            for artifact in itertools.islice(remaining, self._window):
                pending.append((artifact, executor.submit(self._fetch, artifact)))

            while pending:
                artifact, future = pending.popleft()
                result = future.result()
                upcoming = next(remaining, None)
                if upcoming is not None:
                    pending.append((upcoming, executor.submit(self._fetch, upcoming)))
                yield artifact, result
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _generate(self, stream: ArchiveStream) -> Iterator[bytes]:
        sink = _ChunkSink()
        with zipfile.ZipFile(sink, mode="w", compression=zipfile.ZIP_DEFLATED, compresslevel=COMPRESS_LEVEL) as archive:
            for position, (artifact, result) in enumerate(self._fetch_in_order(stream.artifacts), start=1):
                if not result.ok:
                    logger.warning(
                        f"Skipping {artifact.id} in export of {stream.event_id}: "
                        f"{result.reason.value} ({result.detail})"
                    )
                    stream.skipped.append(
                        SkippedEntry(artifact.id, artifact.url, result.reason, result.detail)
                    )
                    continue

                info = zipfile.ZipInfo(
                    entry_name(position, artifact),
                    date_time=artifact.created_at.timetuple()[:6],
                )
                info.external_attr = 0o644 << 16
                archive.writestr(
                    info,
                    result.data,
                    compress_type=zipfile.ZIP_DEFLATED,
                    compresslevel=COMPRESS_LEVEL,
                )
                stream.included += 1
                chunk = sink.drain()
                if chunk:
                    yield chunk

        tail = sink.drain()
        if tail:
            yield tail
        stream.finished = True
        logger.info(
            f"Export of {stream.event_id} finished: {stream.included} included, "
            f"{len(stream.skipped)} skipped"
        )
