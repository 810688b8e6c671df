"""Playback progress tracking state machine."""

import logging
from enum import Enum
from typing import Callable

from chaptertube.chapters import format_timestamp
from chaptertube.config import settings
from chaptertube.models import Chapter
from chaptertube.playback.player import MediaPlayer, PlayerEvent, PlayerUnavailableError, Subscription
from chaptertube.playback.scheduler import Scheduler, TimerHandle

logger = logging.getLogger(__name__)


class ProgressSyncError(Exception):
    """Raised by a progress sink when a write does not reach storage."""


# Called with (progress fraction, timestamp in whole seconds)
ProgressSink = Callable[[float, int], None]


class TrackerState(str, Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    PLAYING = "playing"
    PAUSED = "paused"
    ENDED = "ended"


class PlaybackTracker:
    """Samples a media player, computes progress and decides when to persist it.

    One tracker owns one player for one video. It subscribes to the player's
    event stream on start() and releases both subscription and player on
    close(), which also runs on context-manager exit.

    Periodic samples only persist once playback has moved at least
    `save_interval` seconds from the last persisted position. Pause, end,
    seek and teardown persist unconditionally. A failed write leaves the
    local position untouched and is retried by the next qualifying sample.

    Args:
        video_id: External ID of the video to load.
        player: Player to drive. Ownership passes to the tracker.
        sink: Callable receiving (progress, timestamp) writes.
        scheduler: Source of the repeating sample timer.
        saved_timestamp: Previously persisted position to resume from.
        sample_interval: Seconds between samples while playing.
        save_interval: Minimum movement in seconds between periodic writes.
        flush_epsilon: Unsaved movement tolerated at teardown without a write.
    """

    def __init__(
        self,
        video_id: str,
        player: MediaPlayer,
        sink: ProgressSink,
        scheduler: Scheduler,
        *,
        saved_timestamp: int = 0,
        sample_interval: float | None = None,
        save_interval: float | None = None,
        flush_epsilon: float | None = None,
    ) -> None:
        self._video_id = video_id
        self._player = player
        self._sink = sink
        self._scheduler = scheduler
        self._saved_timestamp = max(int(saved_timestamp), 0)
        self._sample_interval = settings.sample_interval if sample_interval is None else sample_interval
        self._save_interval = settings.save_interval if save_interval is None else save_interval
        self._flush_epsilon = settings.flush_epsilon if flush_epsilon is None else flush_epsilon

        self._state = TrackerState.UNINITIALIZED
        self._seeking = False
        self._current_time = float(self._saved_timestamp)
        self._duration = 0.0
        self._last_persisted_time = float(self._saved_timestamp)
        self._timer: TimerHandle | None = None
        self._subscription: Subscription | None = None
        self._started = False
        self._closed = False

    # --- Public state ---

    @property
    def video_id(self) -> str:
        return self._video_id

    @property
    def state(self) -> TrackerState:
        return self._state

    @property
    def seeking(self) -> bool:
        """True only while a seek is being reconciled."""
        return self._seeking

    @property
    def current_time(self) -> float:
        return self._current_time

    @property
    def duration(self) -> float:
        return self._duration

    @property
    def last_persisted_time(self) -> float:
        return self._last_persisted_time

    @property
    def progress(self) -> float | None:
        """Fraction watched in [0, 1], or None while the duration is unknown."""
        if self._duration <= 0:
            return None
        return min(max(self._current_time / self._duration, 0.0), 1.0)

    @property
    def position_label(self) -> str:
        return format_timestamp(int(self._current_time))

    @property
    def closed(self) -> bool:
        return self._closed

    # --- Lifecycle ---

    def start(self) -> None:
        """Subscribe to player events and ask the player to load the video."""
        if self._closed:
            raise RuntimeError("Tracker is closed")
        if self._started:
            return
        self._started = True
        self._subscription = self._player.events.subscribe(self.handle_event)
        self._player.load(self._video_id)

    def close(self) -> None:
        """Stop sampling, flush unsaved movement and release the player."""
        if self._closed:
            return
        try:
            self._cancel_timer()
            unsaved = abs(self._current_time - self._last_persisted_time)
            if self._state is not TrackerState.UNINITIALIZED and unsaved > self._flush_epsilon:
                logger.debug("Flushing %.1fs of unsaved progress for %s", unsaved, self._video_id)
                self._persist()
        finally:
            self._closed = True
            if self._subscription is not None:
                self._subscription.close()
                self._subscription = None
            self._player.destroy()

    def __enter__(self) -> "PlaybackTracker":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- Events ---

    def handle_event(self, event: PlayerEvent) -> None:
        """Apply a player state change."""
        if self._closed:
            return
        handler = {
            PlayerEvent.READY: self._on_ready,
            PlayerEvent.PLAYING: self._on_playing,
            PlayerEvent.PAUSED: self._on_paused,
            PlayerEvent.ENDED: self._on_ended,
        }[PlayerEvent(event)]
        handler()

    def _on_ready(self) -> None:
        if self._state is not TrackerState.UNINITIALIZED:
            return
        try:
            duration = self._player.get_duration()
        except PlayerUnavailableError:
            logger.debug("Player for %s not ready yet", self._video_id)
            return
        if duration <= 0:
            logger.debug("Duration unknown for %s; waiting", self._video_id)
            return

        self._duration = float(duration)
        self._current_time = min(self._current_time, self._duration)
        if self._saved_timestamp > 0:
            try:
                self._player.seek_to(self._current_time)
            except PlayerUnavailableError:
                logger.debug("Resume seek skipped for %s", self._video_id)
        self._state = TrackerState.READY
        logger.debug("Tracker ready: %s at %s", self._video_id, self.position_label)

    def _on_playing(self) -> None:
        if self._state is TrackerState.UNINITIALIZED:
            # Autoplay may report PLAYING before READY was handled
            self._on_ready()
            if self._state is TrackerState.UNINITIALIZED:
                return
        if self._state is TrackerState.PLAYING:
            return
        self._state = TrackerState.PLAYING
        self._arm_timer()

    def _on_paused(self) -> None:
        if self._state is not TrackerState.PLAYING:
            return
        self._cancel_timer()
        self._state = TrackerState.PAUSED
        # Catch-up: the last periodic sample may be stale
        self._read_player()
        self._persist()

    def _on_ended(self) -> None:
        if self._state not in (TrackerState.PLAYING, TrackerState.PAUSED):
            return
        self._cancel_timer()
        self._state = TrackerState.ENDED
        self._current_time = self._duration
        self._persist()

    # --- Sampling ---

    def sample(self) -> None:
        """Read the player and persist if the throttle allows it."""
        if self._closed or self._state is TrackerState.UNINITIALIZED:
            return
        if not self._read_player():
            return
        if abs(self._current_time - self._last_persisted_time) >= self._save_interval:
            self._persist()

    def _read_player(self) -> bool:
        try:
            current = self._player.get_current_time()
            duration = self._player.get_duration()
        except PlayerUnavailableError:
            logger.debug("Sample skipped for %s: player unavailable", self._video_id)
            return False
        if duration <= 0:
            return False
        self._duration = float(duration)
        self._current_time = min(max(float(current), 0.0), self._duration)
        return True

    def _arm_timer(self) -> None:
        self._cancel_timer()
        self._timer = self._scheduler.call_repeating(self._sample_interval, self.sample)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    # --- Seeking ---

    def seek(self, seconds: float) -> None:
        """Jump to a position at the user's request.

        The displayed position updates at once, the sample timer restarts
        so its cadence does not drift, and the new position is persisted
        regardless of the throttle.
        """
        if self._closed or self._state is TrackerState.UNINITIALIZED:
            logger.debug("Seek ignored for %s: player not ready", self._video_id)
            return

        target = min(max(float(seconds), 0.0), self._duration)
        self._seeking = True
        try:
            try:
                self._player.seek_to(target)
            except PlayerUnavailableError:
                logger.debug("Seek skipped for %s: player unavailable", self._video_id)
                return
            self._current_time = target
            if self._state is TrackerState.PLAYING:
                self._arm_timer()
            self._persist()
        finally:
            self._seeking = False

    def seek_to_chapter(self, chapter: Chapter) -> None:
        self.seek(chapter.start_time)

    def current_chapter(self, chapters: list[Chapter]) -> Chapter | None:
        """Return the chapter containing the current position, if any."""
        position = int(self._current_time)
        found = None
        for chapter in chapters:
            if chapter.start_time > position:
                break
            found = chapter
        return found

    # --- Persistence ---

    def _persist(self) -> bool:
        progress = self.progress
        if progress is None:
            return False
        timestamp = int(self._current_time)
        try:
            self._sink(progress, timestamp)
        except ProgressSyncError as e:
            logger.warning("Progress sync failed for %s at %ss: %s", self._video_id, timestamp, e)
            return False
        self._last_persisted_time = self._current_time
        return True
