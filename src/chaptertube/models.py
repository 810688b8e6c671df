"""Domain models for chaptertube."""

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field, computed_field, field_validator

from chaptertube.config import settings


def format_duration(seconds: int) -> str:
    """Render whole seconds as M:SS (minutes are not rolled into hours)."""
    minutes, secs = divmod(int(seconds), 60)
    return f"{minutes}:{secs:02d}"


class Chapter(BaseModel):
    """A named sub-interval of a video's timeline."""

    title: str
    start_time: int = Field(ge=0)  # seconds
    end_time: int | None = None  # None means the chapter runs to the end of the video

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("chapter title must not be empty")
        return value


class Video(BaseModel):
    """Catalog entry for a YouTube video and its chapter set."""

    video_id: str  # YouTube video ID (e.g. "dQw4w9WgXcQ")
    title: str
    description: str = ""
    channel: str = ""
    duration: int = Field(default=0, ge=0)  # total duration in whole seconds
    thumbnail_url: str = ""
    published_at: str | None = None
    chapters: list[Chapter] = Field(default_factory=list)
    chapters_derived: bool = False  # True when parsed from the description
    added_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field
    @property
    def url(self) -> str:
        """Full YouTube URL derived from video_id."""
        return f"https://www.youtube.com/watch?v={self.video_id}"

    @computed_field
    @property
    def duration_label(self) -> str:
        return format_duration(self.duration)


class WatchStatus(str, Enum):
    """Library bucket a video falls into for one user."""

    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @classmethod
    def from_progress(cls, progress: float, threshold: float | None = None) -> "WatchStatus":
        threshold = settings.completion_threshold if threshold is None else threshold
        if progress >= threshold:
            return cls.COMPLETED
        if progress > 0:
            return cls.IN_PROGRESS
        return cls.NOT_STARTED


class WatchProgress(BaseModel):
    """Resume position and completion fraction for one (user, video) pair."""

    user_id: str
    video_id: str
    progress: float = Field(default=0.0, ge=0.0, le=1.0)
    current_timestamp: int = Field(default=0, ge=0)  # seconds
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @computed_field
    @property
    def percent(self) -> int:
        return int(self.progress * 100)

    @computed_field
    @property
    def status(self) -> WatchStatus:
        return WatchStatus.from_progress(self.progress)


class LibraryEntry(BaseModel):
    """A video as it appears in one user's library."""

    video: Video
    progress: WatchProgress
    added_at: datetime
