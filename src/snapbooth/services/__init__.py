"""Media services and their external collaborators."""

from .archive import ArchiveStream, ArchiveStreamer, archive_filename, entry_name
from .artifacts import ArtifactStore, MemoryArtifactStore, SqliteArtifactStore
from .events import EventStore, MemoryEventStore, YamlEventStore
from .fetcher import FetchResult, ResilientFetcher
from .live import LiveChannel, LocalLiveChannel, publish_safely
from .media import MediaService
from .restyle import (
    InferenceClient,
    RestyleGateway,
    RestyleOutcome,
    RestyleState,
    Sleeper,
    resolve_style,
)
from .storage import DiskStorage, GCSStorage, MemoryStorage, ObjectStorage, build_storage

__all__ = [
    "ArchiveStream",
    "ArchiveStreamer",
    "archive_filename",
    "entry_name",
    "ArtifactStore",
    "MemoryArtifactStore",
    "SqliteArtifactStore",
    "EventStore",
    "MemoryEventStore",
    "YamlEventStore",
    "FetchResult",
    "ResilientFetcher",
    "LiveChannel",
    "LocalLiveChannel",
    "publish_safely",
    "MediaService",
    "InferenceClient",
    "RestyleGateway",
    "RestyleOutcome",
    "RestyleState",
    "Sleeper",
    "resolve_style",
    "DiskStorage",
    "GCSStorage",
    "MemoryStorage",
    "ObjectStorage",
    "build_storage",
]
