"""Clock-driven player for headless playback sessions."""

import time
from typing import Callable

from chaptertube.playback.player import MediaPlayer, PlayerEvent, PlayerUnavailableError


class ClockPlayer(MediaPlayer):
    """A player whose position advances with a clock while playing.

    Used by the `watch` command to drive a PlaybackTracker without a real
    embed, and by tests with a fake clock.

    Args:
        duration: Media length in seconds, reported once loaded.
        clock: Monotonic time source in seconds.
        speed: Playback rate multiplier.
    """

    def __init__(
        self,
        duration: float,
        clock: Callable[[], float] = time.monotonic,
        speed: float = 1.0,
    ) -> None:
        super().__init__()
        self._duration = float(duration)
        self._clock = clock
        self._speed = speed
        self._loaded = False
        self._destroyed = False
        self._playing = False
        self._position = 0.0
        self._anchor = 0.0

    def load(self, video_id: str) -> None:
        self._check_alive()
        self._loaded = True
        self.events.emit(PlayerEvent.READY)

    def get_current_time(self) -> float:
        self._check_loaded()
        return self._now()

    def get_duration(self) -> float:
        self._check_loaded()
        return self._duration

    def seek_to(self, seconds: float) -> None:
        self._check_loaded()
        self._position = min(max(float(seconds), 0.0), self._duration)
        self._anchor = self._clock()

    def play(self) -> None:
        self._check_loaded()
        if self._playing:
            return
        if self._position >= self._duration:
            self._position = 0.0
        self._anchor = self._clock()
        self._playing = True
        self.events.emit(PlayerEvent.PLAYING)

    def pause(self) -> None:
        self._check_loaded()
        if not self._playing:
            return
        self._position = self._now()
        self._playing = False
        self.events.emit(PlayerEvent.PAUSED)

    def poll(self) -> None:
        """Emit ENDED once the position reaches the end of the media."""
        if not self._loaded or self._destroyed or not self._playing:
            return
        if self._now() >= self._duration:
            self._position = self._duration
            self._playing = False
            self.events.emit(PlayerEvent.ENDED)

    def destroy(self) -> None:
        self._destroyed = True
        self._playing = False

    @property
    def playing(self) -> bool:
        return self._playing

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def _now(self) -> float:
        if not self._playing:
            return self._position
        elapsed = (self._clock() - self._anchor) * self._speed
        return min(self._position + elapsed, self._duration)

    def _check_alive(self) -> None:
        if self._destroyed:
            raise PlayerUnavailableError("Player has been destroyed")

    def _check_loaded(self) -> None:
        self._check_alive()
        if not self._loaded:
            raise PlayerUnavailableError("No media loaded")
