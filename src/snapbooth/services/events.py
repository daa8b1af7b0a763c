"""Read-only event configuration stores."""

import logging
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import yaml
from pydantic import ValidationError as PydanticValidationError

from ..config import config
from ..errors import NotFoundError
from ..models import EventRecord

logger = logging.getLogger(__name__)


class EventStore(ABC):
    """Source of event and branding configuration."""

    @abstractmethod
    def list(self) -> List[EventRecord]:
        """All known events."""
        ...

    def find(self, event_id: str) -> Optional[EventRecord]:
        """Look up an event by id, falling back to its slug."""
        events = self.list()
        for event in events:
            if event.id == event_id:
                return event
        for event in events:
            if event.slug == event_id:
                return event
        return None

    def get(self, event_id: str) -> EventRecord:
        """Look up an event by id or slug.

        Raises:
            NotFoundError: If no event matches.
        """
        event = self.find(event_id)
        if event is None:
            raise NotFoundError(f"Event not found: {event_id}")
        return event


class MemoryEventStore(EventStore):
    """Events held in process."""

    def __init__(self, events: Iterable[EventRecord] = ()) -> None:
        self._events: Dict[str, EventRecord] = {e.id: e for e in events}

    def add(self, event: EventRecord) -> None:
        self._events[event.id] = event

    def list(self) -> List[EventRecord]:
        return list(self._events.values())


class YamlEventStore(EventStore):
    """Events from a YAML file, reloaded when the file changes.

    Expected layout::

        events:
          - id: wedding-01
            name: Sam & Alex
            slug: sam-alex
            branding:
              overlayText: "Sam & Alex"
              showDate: true
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = Path(path or config.events_file)
        self._lock = threading.Lock()
        self._mtime: Optional[float] = None
        self._events: List[EventRecord] = []

    @property
    def path(self) -> Path:
        return self._path

    def list(self) -> List[EventRecord]:
        with self._lock:
            if not self._path.exists():
                if self._mtime is not None:
                    logger.warning(f"Events file disappeared: {self._path}")
                self._mtime = None
                self._events = []
                return []
            mtime = self._path.stat().st_mtime
            if mtime != self._mtime:
                self._events = self._load()
                self._mtime = mtime
            return list(self._events)

    def _load(self) -> List[EventRecord]:
        with open(self._path) as f:
            data = yaml.safe_load(f) or {}

        entries = data.get("events", []) if isinstance(data, dict) else data
        events: List[EventRecord] = []
        for entry in entries or []:
            try:
                events.append(EventRecord.model_validate(entry))
            except PydanticValidationError as e:
                logger.warning(f"Skipping invalid event entry in {self._path}: {e}")
        logger.info(f"Loaded {len(events)} events from {self._path}")
        return events
