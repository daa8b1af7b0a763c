"""Per-event live notification channel."""

import logging
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Dict, List

logger = logging.getLogger(__name__)

Subscriber = Callable[[dict], None]


class LiveChannel(ABC):
    """Pushes status messages to the screens attached to an event."""

    @abstractmethod
    def publish(self, event_id: str, payload: dict) -> None:
        ...


class LocalLiveChannel(LiveChannel):
    """In-process fan-out to subscriber callbacks.

    A failing subscriber is logged and skipped; publish never raises.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()

    def subscribe(self, event_id: str, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback`` for an event; returns an unsubscribe function."""
        with self._lock:
            self._subscribers[event_id].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                callbacks = self._subscribers.get(event_id, [])
                if callback in callbacks:
                    callbacks.remove(callback)

        return unsubscribe

    def publish(self, event_id: str, payload: dict) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(event_id, []))
        for callback in callbacks:
            try:
                callback(payload)
            except Exception as e:
                logger.warning(f"Live subscriber failed for event {event_id}: {e}")


def publish_safely(channel: LiveChannel, event_id: str, payload: dict) -> None:
    """Publish without letting a channel failure reach the caller."""
    try:
        channel.publish(event_id, payload)
    except Exception as e:
        logger.warning(f"Live publish failed for event {event_id}: {e}")
