# tests/conftest.py
"""Shared fixtures for chaptertube tests."""

from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from chaptertube.ingestion.policy import IngestionPolicy
from chaptertube.models import Video
from chaptertube.playback.scheduler import Scheduler, TimerHandle
from chaptertube.playback.simulated import ClockPlayer
from chaptertube.playback.tracker import PlaybackTracker, ProgressSyncError
from chaptertube.storage.sqlite import SQLiteVideoRepository


SAMPLE_DESCRIPTION = """Learn Python from scratch in this full course.

Timestamps:
0:00 Introduction
12:15 Variables and types
5:30 Installing Python
1:02:03 Functions
Follow me on twitter, new videos at 18:00 every Friday
"""


@pytest.fixture
def sample_video():
    """Catalog candidate as returned by the YouTube extractor (no chapters yet)."""
    return Video(
        video_id="dQw4w9WgXcQ",
        title="Python Tutorial for Beginners",
        description=SAMPLE_DESCRIPTION,
        channel="TechChannel",
        duration=4500,
        thumbnail_url="https://i.ytimg.com/vi/dQw4w9WgXcQ/maxresdefault.jpg",
        published_at="2025-06-15",
        added_at=datetime(2025, 6, 15, 12, 0, 0, tzinfo=timezone.utc),
    )


@pytest.fixture
def plain_video():
    """Candidate whose description carries no timestamps."""
    return Video(
        video_id="abc12345678",
        title="Complete Course on Linear Algebra",
        description="A long lecture with no chapter markers.",
        channel="MathChannel",
        duration=3600,
        added_at=datetime(2025, 7, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def sqlite_repo():
    """SQLiteVideoRepository backed by in-memory database."""
    repo = SQLiteVideoRepository(":memory:")
    yield repo
    repo.close()


@pytest.fixture
def mock_extractor(sample_video):
    """YouTubeExtractor with mocked yt-dlp returning sample_video."""
    from chaptertube.ingestion.youtube import YouTubeExtractor

    extractor = YouTubeExtractor()
    with patch.object(extractor, "extract", return_value=sample_video) as mock:
        extractor._mock = mock
        yield extractor


@pytest.fixture
def policy():
    return IngestionPolicy(min_duration=1800, keywords=["tutorial", "course"], enabled=True)


@pytest.fixture
def service(sqlite_repo, mock_extractor, policy):
    """Fully wired ChapterTubeService with mocked extraction."""
    from chaptertube.service import ChapterTubeService

    return ChapterTubeService(
        repository=sqlite_repo,
        extractor=mock_extractor,
        policy=policy,
        chapter_count=5,
    )


# --- Playback fakes ---


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class ManualTimer(TimerHandle):
    def __init__(self, interval, callback, now):
        self.interval = interval
        self.callback = callback
        self.next_fire = now + interval
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    @property
    def cancelled(self):
        return self._cancelled


class ManualScheduler(Scheduler):
    """Fires repeating timers in order as the fake clock is advanced."""

    def __init__(self, clock: FakeClock) -> None:
        self.clock = clock
        self.timers: list[ManualTimer] = []

    def call_repeating(self, interval, callback):
        timer = ManualTimer(interval, callback, self.clock.now)
        self.timers.append(timer)
        return timer

    @property
    def active(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.clock.now + seconds
        while True:
            due = [t for t in self.active if t.next_fire <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: t.next_fire)
            self.clock.now = timer.next_fire
            timer.next_fire += timer.interval
            timer.callback()
        self.clock.now = target


class RecordingSink:
    """Progress sink that records writes and can be told to fail."""

    def __init__(self) -> None:
        self.calls: list[tuple[float, int]] = []
        self.attempts = 0
        self.failures_left = 0

    def __call__(self, progress: float, timestamp: int) -> None:
        self.attempts += 1
        if self.failures_left > 0:
            self.failures_left -= 1
            raise ProgressSyncError("network down")
        self.calls.append((progress, timestamp))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scheduler(clock):
    return ManualScheduler(clock)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def player(clock):
    """600-second ClockPlayer driven by the fake clock."""
    return ClockPlayer(600, clock=clock)


@pytest.fixture
def make_tracker(player, sink, scheduler):
    """Factory for trackers wired to the fake player, sink and scheduler."""

    def factory(saved_timestamp: int = 0, **kwargs) -> PlaybackTracker:
        return PlaybackTracker(
            "dQw4w9WgXcQ",
            kwargs.pop("player", player),
            sink,
            scheduler,
            saved_timestamp=saved_timestamp,
            sample_interval=0.25,
            save_interval=15.0,
            flush_epsilon=1.0,
            **kwargs,
        )

    return factory
