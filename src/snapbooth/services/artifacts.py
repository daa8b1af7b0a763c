"""Persistence of artifact records."""

import json
import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from ..config import config
from ..models import Artifact, ArtifactKind

logger = logging.getLogger(__name__)


class ArtifactStore(ABC):
    """Records of finished media, one row per artifact."""

    @abstractmethod
    def add(self, artifact: Artifact) -> Artifact:
        ...

    @abstractmethod
    def get(self, artifact_id: str) -> Optional[Artifact]:
        ...

    @abstractmethod
    def list_for_event(self, event_id: str) -> List[Artifact]:
        """Artifacts of an event, newest first."""
        ...

    @abstractmethod
    def delete_for_event(self, event_id: str) -> List[Artifact]:
        """Remove and return every artifact of an event."""
        ...


class MemoryArtifactStore(ArtifactStore):
    """Artifact records held in process."""

    def __init__(self) -> None:
        self._rows: Dict[str, Artifact] = {}
        self._order: List[str] = []
        self._lock = threading.Lock()

    def add(self, artifact: Artifact) -> Artifact:
        with self._lock:
            if artifact.id not in self._rows:
                self._order.append(artifact.id)
            self._rows[artifact.id] = artifact
        return artifact

    def get(self, artifact_id: str) -> Optional[Artifact]:
        with self._lock:
            return self._rows.get(artifact_id)

    def list_for_event(self, event_id: str) -> List[Artifact]:
        with self._lock:
            rows = [
                (self._rows[i].created_at, n, self._rows[i])
                for n, i in enumerate(self._order)
                if self._rows[i].event_id == event_id
            ]
        rows.sort(key=lambda row: (row[0], row[1]), reverse=True)
        return [row[2] for row in rows]

    def delete_for_event(self, event_id: str) -> List[Artifact]:
        removed = self.list_for_event(event_id)
        with self._lock:
            for artifact in removed:
                self._rows.pop(artifact.id, None)
            self._order = [i for i in self._order if i in self._rows]
        return removed


class SqliteArtifactStore(ArtifactStore):
    """Artifact records in a local SQLite database."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        db = Path(db_path or config.database_path).expanduser()
        db.parent.mkdir(parents=True, exist_ok=True)
        self.db_path = str(db)
        self._init_db()

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        conn = sqlite3.connect(self.db_path, timeout=30, isolation_level=None)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA busy_timeout=30000;")
        try:
            yield conn
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS artifacts (
                    id TEXT PRIMARY KEY,
                    event_id TEXT NOT NULL,
                    session_id TEXT,
                    kind TEXT NOT NULL,
                    storage_key TEXT NOT NULL,
                    url TEXT NOT NULL,
                    thumb_url TEXT,
                    thumb_key TEXT,
                    metadata TEXT NOT NULL DEFAULT '{}',
                    created_at TEXT NOT NULL
                );
                """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_artifacts_event_created "
                "ON artifacts(event_id, created_at);"
            )

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Artifact:
        return Artifact(
            id=row["id"],
            event_id=row["event_id"],
            session_id=row["session_id"],
            kind=ArtifactKind(row["kind"]),
            storage_key=row["storage_key"],
            url=row["url"],
            thumb_url=row["thumb_url"],
            thumb_key=row["thumb_key"],
            metadata=json.loads(row["metadata"] or "{}"),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    def add(self, artifact: Artifact) -> Artifact:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO artifacts
                    (id, event_id, session_id, kind, storage_key, url,
                     thumb_url, thumb_key, metadata, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    artifact.id,
                    artifact.event_id,
                    artifact.session_id,
                    artifact.kind.value,
                    artifact.storage_key,
                    artifact.url,
                    artifact.thumb_url,
                    artifact.thumb_key,
                    json.dumps(artifact.metadata),
                    artifact.created_at.isoformat(),
                ),
            )
        return artifact

    def get(self, artifact_id: str) -> Optional[Artifact]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM artifacts WHERE id = ?", (artifact_id,)).fetchone()
        return self._from_row(row) if row else None

    def list_for_event(self, event_id: str) -> List[Artifact]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM artifacts
                WHERE event_id = ?
                ORDER BY created_at DESC, rowid DESC
                """,
                (event_id,),
            ).fetchall()
        return [self._from_row(row) for row in rows]

    def delete_for_event(self, event_id: str) -> List[Artifact]:
        removed = self.list_for_event(event_id)
        with self._connect() as conn:
            conn.execute("DELETE FROM artifacts WHERE event_id = ?", (event_id,))
        logger.info(f"Deleted {len(removed)} artifact rows for event {event_id}")
        return removed
