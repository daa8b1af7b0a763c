"""Object storage backends for finished media."""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Dict, Optional, Tuple

import requests
from google.api_core import exceptions as google_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import storage

from ..config import config
from ..errors import StorageWriteFailure, ValidationError

logger = logging.getLogger(__name__)


def validate_key(key: str) -> str:
    """Reject keys that could escape the storage root.

    Raises:
        ValidationError: If the key is empty, absolute or contains ``..``.
    """
    path = PurePosixPath(key)
    if not key or path.is_absolute() or ".." in path.parts:
        raise ValidationError(f"Invalid storage key: {key!r}")
    return key


class ObjectStorage(ABC):
    """Where encoded media is written. Writes are never retried here."""

    @abstractmethod
    def put(self, data: bytes, key: str, content_type: str) -> str:
        """Store ``data`` under ``key`` and return its public URL.

        Raises:
            StorageWriteFailure: If the backend rejects the write.
        """
        ...

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""
        ...


class DiskStorage(ObjectStorage):
    """Local filesystem storage served under a public URL prefix."""

    def __init__(self, root: Optional[Path] = None, public_base_url: Optional[str] = None) -> None:
        self._root = Path(root or config.storage_root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._public_base_url = (public_base_url or config.public_base_url).rstrip("/")

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, key: str) -> Path:
        return self._root / validate_key(key)

    def url_for(self, key: str) -> str:
        return f"{self._public_base_url}/{key}"

    def put(self, data: bytes, key: str, content_type: str) -> str:
        path = self._resolve(key)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise StorageWriteFailure(f"Could not write {key}: {e}") from e
        logger.debug(f"Stored {len(data)} bytes at {path}")
        return self.url_for(key)

    def read(self, key: str) -> bytes:
        return self._resolve(key).read_bytes()

    def delete(self, key: str) -> None:
        path = self._resolve(key)
        if path.is_file():
            path.unlink()


class GCSStorage(ObjectStorage):
    """Google Cloud Storage backend with public object URLs."""

    PUBLIC_URL = "https://storage.googleapis.com"

    def __init__(
        self,
        bucket: Optional[str] = None,
        project_id: Optional[str] = None,
        client: Optional[storage.Client] = None,
    ) -> None:
        """Initialize the GCS backend.

        Args:
            bucket: Bucket name, with or without a ``gs://`` prefix.
                Defaults to SNAPBOOTH_GCS_BUCKET.
            project_id: Google Cloud project. Defaults to GOOGLE_CLOUD_PROJECT.
            client: Pre-built storage client.
        """
        bucket = bucket or config.gcs_bucket
        if not bucket:
            raise ValueError("SNAPBOOTH_GCS_BUCKET not set")
        self._bucket_name = bucket[5:] if bucket.startswith("gs://") else bucket
        self._client = client or storage.Client(project=project_id or config.google_cloud_project or None)
        self._bucket = self._client.bucket(self._bucket_name)
        logger.info(f"Initialized GCS storage for bucket {self._bucket_name}")

    def url_for(self, key: str) -> str:
        return f"{self.PUBLIC_URL}/{self._bucket_name}/{key}"

    def put(self, data: bytes, key: str, content_type: str) -> str:
        blob = self._bucket.blob(validate_key(key))
        try:
            blob.upload_from_string(data, content_type=content_type)
        except google_exceptions.GoogleAPIError as e:
            raise StorageWriteFailure(f"GCS upload failed for {key}: {e}") from e
        except (requests.exceptions.RequestException, auth_exceptions.TransportError) as e:
            raise StorageWriteFailure(f"GCS transport error for {key}: {e}") from e
        return self.url_for(key)

    def delete(self, key: str) -> None:
        try:
            self._bucket.blob(validate_key(key)).delete()
        except google_exceptions.NotFound:
            logger.debug(f"GCS object already gone: {key}")


class MemoryStorage(ObjectStorage):
    """In-process storage for tests and dry runs."""

    def __init__(self, public_base_url: str = "memory://media") -> None:
        self._objects: Dict[str, Tuple[bytes, str]] = {}
        self._public_base_url = public_base_url.rstrip("/")
        self._lock = threading.Lock()
        self.fail_writes = False

    def url_for(self, key: str) -> str:
        return f"{self._public_base_url}/{key}"

    def put(self, data: bytes, key: str, content_type: str) -> str:
        validate_key(key)
        if self.fail_writes:
            raise StorageWriteFailure(f"Write rejected for {key}")
        with self._lock:
            self._objects[key] = (bytes(data), content_type)
        return self.url_for(key)

    def get(self, key: str) -> Tuple[bytes, str]:
        with self._lock:
            return self._objects[key]

    def keys(self) -> list:
        with self._lock:
            return sorted(self._objects)

    def delete(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)


def build_storage() -> ObjectStorage:
    """Create the backend selected by SNAPBOOTH_STORAGE_BACKEND."""
    config.validate_storage_required()
    if config.storage_backend == "gcs":
        return GCSStorage()
    return DiskStorage()
