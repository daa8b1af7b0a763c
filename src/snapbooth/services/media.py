"""Media operations exposed to the API and CLI."""

import logging
import threading
import time
import uuid
from datetime import date
from typing import List, Optional, Sequence

from ..editor import (
    apply_filter,
    compose_single,
    compose_strip,
    encode_boomerang,
    encode_gif,
    make_thumbnail,
)
from ..editor.sequence import BOOMERANG_FPS, GIF_FPS
from ..editor.strip import MAX_FRAMES
from ..errors import ValidationError
from ..models import Artifact, ArtifactKind, BrandingSpec
from .archive import ArchiveStream, ArchiveStreamer
from .artifacts import ArtifactStore, SqliteArtifactStore
from .events import EventStore, YamlEventStore
from .fetcher import ResilientFetcher
from .live import LiveChannel, LocalLiveChannel, publish_safely
from .restyle import RestyleGateway
from .storage import ObjectStorage, build_storage

logger = logging.getLogger(__name__)

SEQUENCE_KINDS = (ArtifactKind.GIF, ArtifactKind.BOOMERANG)


def new_artifact_id() -> str:
    return str(uuid.uuid4())


def storage_key(event_id: str, kind: ArtifactKind, artifact_id: str) -> str:
    """Object key for an artifact. Unique because the id is."""
    if kind is ArtifactKind.SINGLE:
        return f"events/{event_id}/photos/{artifact_id}_{int(time.time() * 1000)}.jpg"
    folder = {
        ArtifactKind.STRIP: "strips",
        ArtifactKind.GIF: "gifs",
        ArtifactKind.BOOMERANG: "gifs",
        ArtifactKind.AI: "ai",
        ArtifactKind.FILTERED: "filtered",
    }[kind]
    return f"events/{event_id}/{folder}/{artifact_id}{kind.extension}"


def thumbnail_key(event_id: str, artifact_id: str) -> str:
    return f"events/{event_id}/thumbs/{artifact_id}_thumb.jpg"


class MediaService:
    """Turns frames into stored artifacts and exports them again.

    Collaborators are injected so the API, the CLI and the tests can pick
    their own backends. ``MediaService.from_config()`` builds the default set.
    """

    def __init__(
        self,
        events: EventStore,
        artifacts: ArtifactStore,
        storage: ObjectStorage,
        live: Optional[LiveChannel] = None,
        gateway: Optional[RestyleGateway] = None,
        archiver: Optional[ArchiveStreamer] = None,
    ) -> None:
        self.events = events
        self.artifacts = artifacts
        self.storage = storage
        self.live = live or LocalLiveChannel()
        self._gateway = gateway
        self.archiver = archiver or ArchiveStreamer(events, artifacts, ResilientFetcher())

    @classmethod
    def from_config(cls) -> "MediaService":
        """Build a service from environment configuration."""
        events = YamlEventStore()
        artifacts = SqliteArtifactStore()
        return cls(
            events=events,
            artifacts=artifacts,
            storage=build_storage(),
            live=LocalLiveChannel(),
        )

    @property
    def gateway(self) -> RestyleGateway:
        # Built on first use so the service starts without an inference token.
        if self._gateway is None:
            self._gateway = RestyleGateway()
        return self._gateway

    def _store(
        self,
        data: bytes,
        event_id: str,
        kind: ArtifactKind,
        session_id: Optional[str] = None,
        thumbnail: Optional[bytes] = None,
        metadata: Optional[dict] = None,
    ) -> Artifact:
        artifact_id = new_artifact_id()
        key = storage_key(event_id, kind, artifact_id)
        url = self.storage.put(data, key, kind.content_type)

        thumb_url = None
        thumb_key = None
        if thumbnail is not None:
            try:
                thumb_key = thumbnail_key(event_id, artifact_id)
                thumb_url = self.storage.put(thumbnail, thumb_key, "image/jpeg")
            except Exception as e:
                logger.warning(f"Thumbnail upload failed for {artifact_id} (continuing without): {e}")
                thumb_key = None

        artifact = self.artifacts.add(
            Artifact(
                id=artifact_id,
                event_id=event_id,
                session_id=session_id,
                kind=kind,
                storage_key=key,
                url=url,
                thumb_url=thumb_url,
                thumb_key=thumb_key,
                metadata=metadata or {},
            )
        )
        logger.info(f"Stored {kind.value} artifact {artifact_id} for event {event_id}")
        publish_safely(self.live, event_id, {
            "type": "photo-taken",
            "photoId": artifact.id,
            "thumbUrl": artifact.thumb_url or artifact.url,
            "galleryUrl": artifact.url,
            "mode": kind.value,
        })
        return artifact

    def encode_single(
        self,
        frame: bytes,
        event_id: str,
        session_id: Optional[str] = None,
        branding: Optional[BrandingSpec] = None,
        today: Optional[date] = None,
    ) -> Artifact:
        """Resize, brand and store one photo with its thumbnail.

        Args:
            frame: Raw captured image bytes.
            event_id: Owning event.
            session_id: Capture session, if any.
            branding: Overrides the event's configured branding.
            today: Date for the footer stamp.

        Returns:
            The stored Artifact.

        Raises:
            NotFoundError: If the event does not exist.
            ValidationError: If the frame is unreadable.
            StorageWriteFailure: If the photo could not be stored.
        """
        event = self.events.get(event_id)
        spec = branding if branding is not None else event.effective_branding()
        composed = compose_single(frame, spec, today)
        return self._store(
            composed.image,
            event.id,
            ArtifactKind.SINGLE,
            session_id=session_id,
            thumbnail=composed.thumbnail,
            metadata={"branded": composed.branded},
        )

    def encode_strip(
        self,
        frames: Sequence[bytes],
        event_id: str,
        session_id: Optional[str] = None,
        branding: Optional[BrandingSpec] = None,
        today: Optional[date] = None,
    ) -> Artifact:
        """Compose and store a photo strip from up to four frames."""
        event = self.events.get(event_id)
        spec = branding if branding is not None else event.effective_branding()
        data = compose_strip(frames, spec, today)
        return self._store(
            data,
            event.id,
            ArtifactKind.STRIP,
            session_id=session_id,
            thumbnail=make_thumbnail(data),
            metadata={"frameCount": min(len(frames), MAX_FRAMES)},
        )

    def encode_sequence(
        self,
        frames: Sequence[bytes],
        event_id: str,
        kind: ArtifactKind = ArtifactKind.GIF,
        session_id: Optional[str] = None,
    ) -> Artifact:
        """Encode and store a looping GIF or boomerang.

        Raises:
            ValidationError: For an empty frame list or a non-animated kind.
            EncodingFailure: If the encoder fails.
        """
        try:
            kind = ArtifactKind(kind)
        except ValueError:
            raise ValidationError(f"Unknown sequence type: {kind}") from None
        if kind not in SEQUENCE_KINDS:
            raise ValidationError(f"Not an animated kind: {kind.value}")
        if not frames:
            raise ValidationError("No frames provided")
        event = self.events.get(event_id)

        if kind is ArtifactKind.BOOMERANG:
            data = encode_boomerang(frames)
            fps = BOOMERANG_FPS
        else:
            data = encode_gif(frames)
            fps = GIF_FPS

        return self._store(
            data,
            event.id,
            kind,
            session_id=session_id,
            metadata={"frameCount": len(frames), "fps": fps},
        )

    def restyle(
        self,
        frame: bytes,
        style_key: Optional[str],
        event_id: str,
        cancel: Optional[threading.Event] = None,
        custom_prompt: Optional[str] = None,
        source_photo_id: Optional[str] = None,
    ) -> Artifact:
        """Restyle a frame through the inference endpoint and store it.

        Warm-up waits are announced on the event's live channel.

        Raises:
            ValidationError: For an unknown style key.
            UpstreamUnavailable: If the model never finished loading.
            RestyleFailed: On a hard endpoint error.
            RestyleCancelled: If ``cancel`` fires during a wait.
        """
        style = self.gateway.resolve(style_key)
        event = self.events.get(event_id)

        def on_progress(payload: dict) -> None:
            publish_safely(self.live, event.id, payload)

        data = self.gateway.restyle(frame, style, custom_prompt, on_progress, cancel)
        return self._store(
            data,
            event.id,
            ArtifactKind.AI,
            thumbnail=make_thumbnail(data),
            metadata={
                "style": style.key,
                "styleName": style.name,
                "emoji": style.emoji,
                "sourcePhotoId": source_photo_id,
            },
        )

    def encode_filtered(self, frame: bytes, filter_name: str, event_id: str) -> Artifact:
        """Apply a local colour filter and store the result."""
        event = self.events.get(event_id)
        data = apply_filter(frame, filter_name)
        return self._store(
            data,
            event.id,
            ArtifactKind.FILTERED,
            thumbnail=make_thumbnail(data),
            metadata={"filter": filter_name},
        )

    def export_archive(self, event_id: str) -> ArchiveStream:
        """Open a streamed ZIP of an event's artifacts.

        Raises:
            NotFoundError: If the event does not exist.
            NothingToExport: If the event has no artifacts.
        """
        return self.archiver.open(event_id)

    def list_artifacts(self, event_id: str) -> List[Artifact]:
        """Artifacts of an event, newest first."""
        event = self.events.get(event_id)
        return self.artifacts.list_for_event(event.id)

    def wipe_event(self, event_id: str) -> int:
        """Delete every artifact of an event, objects included.

        Object deletions that fail are logged; the records are removed
        regardless.

        Returns:
            Number of artifacts removed.
        """
        event = self.events.get(event_id)
        removed = self.artifacts.delete_for_event(event.id)
        for artifact in removed:
            for key in filter(None, (artifact.storage_key, artifact.thumb_key)):
                try:
                    self.storage.delete(key)
                except Exception as e:
                    logger.warning(f"Could not delete object {key}: {e}")
        logger.info(f"Wiped {len(removed)} artifacts from event {event.id}")
        return len(removed)
