"""Abstract repository interface for video, chapter and progress storage."""

from abc import ABC, abstractmethod

from chaptertube.models import Chapter, LibraryEntry, Video, WatchProgress


class VideoRepository(ABC):
    """Abstract base class defining the storage contract.

    All concrete storage implementations (SQLite, PostgreSQL, etc.)
    must implement this interface. This ensures the service layer
    depends on abstractions, not concrete implementations (DIP).
    """

    @abstractmethod
    def create(self, video: Video, owner: str | None = None) -> None:
        """Insert a new catalog entry together with its chapter set.

        When `owner` is given, the video is added to that user's library in
        the same transaction.

        Raises:
            ValueError: If a video with the same video_id already exists.
        """

    @abstractmethod
    def get(self, video_id: str) -> Video | None:
        """Retrieve a video by external ID, including chapters. Returns None if not found."""

    @abstractmethod
    def exists(self, video_id: str) -> bool:
        """Check whether a video with the given ID is in the catalog."""

    @abstractmethod
    def list_all(self) -> list[Video]:
        """List all catalog entries, most recently added first.

        Returns metadata only — chapters are excluded. Use get() to
        load the full video.
        """

    @abstractmethod
    def replace_chapters(self, video_id: str, chapters: list[Chapter], derived: bool) -> None:
        """Atomically discard a video's chapter set and install a new one.

        Readers never observe a partial or empty set mid-update.
        """

    @abstractmethod
    def get_chapters(self, video_id: str) -> list[Chapter]:
        """Return a video's chapters ordered by start time."""

    @abstractmethod
    def get_or_create_progress(self, user_id: str, video_id: str) -> WatchProgress:
        """Return the user's progress for a video, creating it at 0 if absent."""

    @abstractmethod
    def get_progress(self, user_id: str, video_id: str) -> WatchProgress | None:
        """Return the user's progress for a video, or None if not associated."""

    @abstractmethod
    def set_progress(self, user_id: str, video_id: str, progress: float, timestamp: int) -> None:
        """Overwrite the user's progress with absolute values."""

    @abstractmethod
    def list_library(self, user_id: str) -> list[LibraryEntry]:
        """List the user's videos with progress, most recently added first."""
