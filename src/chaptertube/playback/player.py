"""Media player contract and its event stream."""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable

logger = logging.getLogger(__name__)


class PlayerUnavailableError(Exception):
    """Raised when the player cannot answer (not loaded yet, or destroyed)."""


class PlayerEvent(str, Enum):
    """State-change notifications emitted by a media player."""

    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"


EventHandler = Callable[[PlayerEvent], None]


class Subscription:
    """Handle returned by EventStream.subscribe(). Closing it is idempotent."""

    def __init__(self, stream: "EventStream", handler: EventHandler) -> None:
        self._stream = stream
        self._handler = handler

    @property
    def active(self) -> bool:
        return self._stream is not None

    def close(self) -> None:
        if self._stream is not None:
            self._stream._remove(self._handler)
            self._stream = None


class EventStream:
    """Synchronous fan-out of player events to subscribed handlers."""

    def __init__(self) -> None:
        self._handlers: list[EventHandler] = []

    def subscribe(self, handler: EventHandler) -> Subscription:
        self._handlers.append(handler)
        return Subscription(self, handler)

    def emit(self, event: PlayerEvent) -> None:
        # Copy so a handler may unsubscribe while being notified
        for handler in list(self._handlers):
            handler(event)

    def _remove(self, handler: EventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    def __len__(self) -> int:
        return len(self._handlers)


class MediaPlayer(ABC):
    """External media player driven by a PlaybackTracker.

    Implementations wrap an embedded player (e.g. the YouTube IFrame API
    bridged into Python) and publish state changes on `events`.
    """

    def __init__(self) -> None:
        self.events = EventStream()

    @abstractmethod
    def load(self, video_id: str) -> None:
        """Start loading a video. READY is emitted once a duration is known."""

    @abstractmethod
    def get_current_time(self) -> float:
        """Current playback position in seconds.

        Raises:
            PlayerUnavailableError: If the player is not loaded.
        """

    @abstractmethod
    def get_duration(self) -> float:
        """Total media duration in seconds (0 while unknown).

        Raises:
            PlayerUnavailableError: If the player is not loaded.
        """

    @abstractmethod
    def seek_to(self, seconds: float) -> None:
        """Jump to an absolute position.

        Raises:
            PlayerUnavailableError: If the player is not loaded.
        """

    @abstractmethod
    def destroy(self) -> None:
        """Release the underlying player resource."""
