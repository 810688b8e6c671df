"""Core business logic for chaptertube."""

import logging
import sqlite3

from chaptertube.chapters import extract_chapters
from chaptertube.config import settings
from chaptertube.ingestion.policy import IngestionPolicy
from chaptertube.ingestion.youtube import YouTubeExtractor
from chaptertube.models import LibraryEntry, Video, WatchProgress, WatchStatus
from chaptertube.playback.tracker import ProgressSink, ProgressSyncError
from chaptertube.storage.repository import VideoRepository

logger = logging.getLogger(__name__)


class VideoNotFoundError(Exception):
    """Raised when a requested video is not in the catalog."""


class AmbiguousVideoError(Exception):
    """Raised when a query matches multiple videos and cannot be disambiguated."""


class ChapterTubeService:
    """Core service layer — single orchestration point for all chaptertube operations.

    Both the CLI and MCP server are thin wrappers over this class.
    Dependencies are injected via constructor for testability and
    backend swappability (DIP).
    """

    def __init__(
        self,
        repository: VideoRepository,
        extractor: YouTubeExtractor | None = None,
        policy: IngestionPolicy | None = None,
        chapter_count: int | None = None,
    ) -> None:
        self._repo = repository
        self._extractor = extractor or YouTubeExtractor()
        self._policy = policy or IngestionPolicy()
        self._chapter_count = chapter_count or settings.fallback_chapter_count

    def add_video(self, url: str, user_id: str) -> Video:
        """Add a YouTube video to a user's library.

        New videos are fetched, checked against the ingestion policy and
        stored with their chapters. Videos already in the catalog are not
        fetched again; their chapter set is re-derived from the stored
        description and replaced atomically.

        Args:
            url: YouTube video URL in any standard format.
            user_id: User whose library receives the video.

        Returns:
            The cataloged Video with chapters.

        Raises:
            ExtractionError: If the URL is malformed or extraction fails.
            IngestionRejectedError: If a new video fails the policy gate.
        """
        video_id = YouTubeExtractor.parse_video_id(url)

        video = self._repo.get(video_id)
        if video is None:
            logger.info("Ingesting video: %s", url)
            candidate = self._extractor.extract(url)
            self._policy.check(candidate)
            chapters, derived = extract_chapters(
                candidate.description, candidate.duration, self._chapter_count
            )
            video = candidate.model_copy(update={"chapters": chapters, "chapters_derived": derived})
            try:
                self._repo.create(video, owner=user_id)
            except ValueError:
                # Another writer cataloged it between the lookup and the insert
                video = self._repo.get(video_id)
                if video is None:
                    raise
                logger.info("Video already cataloged concurrently: %s", video_id)
            else:
                logger.info(
                    "Video added: %s — %s (%d %s chapters)",
                    video.video_id, video.title, len(chapters),
                    "derived" if derived else "generated",
                )
                return video

        video = self._refresh(video)
        self._repo.get_or_create_progress(user_id, video.video_id)
        return video

    def refresh_chapters(self, video_id: str) -> Video:
        """Re-derive a cataloged video's chapters from its stored description.

        Raises:
            VideoNotFoundError: If the video is not in the catalog.
        """
        return self._refresh(self.get_video(video_id))

    def _refresh(self, video: Video) -> Video:
        chapters, derived = extract_chapters(video.description, video.duration, self._chapter_count)
        self._repo.replace_chapters(video.video_id, chapters, derived)
        logger.info("Chapters replaced: %s (%d)", video.video_id, len(chapters))
        return video.model_copy(update={"chapters": chapters, "chapters_derived": derived})

    def get_video(self, video_id: str) -> Video:
        """Get a cataloged video with its chapters.

        Raises:
            VideoNotFoundError: If the video is not in the catalog.
        """
        video = self._repo.get(video_id)
        if video is None:
            raise VideoNotFoundError(f"Video not found: {video_id}")
        return video

    def list_videos(self) -> list[Video]:
        """List the whole catalog (metadata only, no chapters)."""
        return self._repo.list_all()

    def list_library(
        self,
        user_id: str,
        hidden: set[str] | None = None,
        status: WatchStatus | None = None,
    ) -> list[LibraryEntry]:
        """List a user's videos with progress, most recently added first.

        Args:
            user_id: Library owner.
            hidden: Video IDs to leave out.
            status: Keep only videos in this bucket.
        """
        entries = self._repo.list_library(user_id)
        if hidden:
            entries = [e for e in entries if e.video.video_id not in hidden]
        if status is not None:
            entries = [e for e in entries if e.progress.status is WatchStatus(status)]
        return entries

    def get_progress(self, user_id: str, video_id: str) -> WatchProgress:
        """Get the user's progress, associating the user with the video if needed.

        Raises:
            VideoNotFoundError: If the video is not in the catalog.
        """
        if not self._repo.exists(video_id):
            raise VideoNotFoundError(f"Video not found: {video_id}")
        return self._repo.get_or_create_progress(user_id, video_id)

    def update_progress(self, user_id: str, video_id: str, progress: float, timestamp: int) -> WatchProgress:
        """Store an absolute (progress, timestamp) pair for the user.

        Raises:
            VideoNotFoundError: If the video is not in the catalog.
            ValueError: If progress is outside [0, 1] or timestamp is negative.
        """
        if not 0.0 <= progress <= 1.0:
            raise ValueError(f"progress must be within [0, 1], got {progress}")
        if timestamp < 0:
            raise ValueError(f"timestamp must be non-negative, got {timestamp}")

        self.get_progress(user_id, video_id)
        self._repo.set_progress(user_id, video_id, progress, int(timestamp))
        logger.debug("Progress %s/%s: %.3f at %ds", user_id, video_id, progress, timestamp)
        return self._repo.get_progress(user_id, video_id)

    def mark_completed(self, user_id: str, video_id: str) -> WatchProgress:
        """Record the video as fully watched.

        Raises:
            VideoNotFoundError: If the video is not in the catalog.
        """
        video = self.get_video(video_id)
        return self.update_progress(user_id, video_id, 1.0, video.duration)

    def progress_sink(self, user_id: str, video_id: str) -> ProgressSink:
        """Build a tracker sink that writes through this service.

        Storage and validation failures surface as ProgressSyncError so the
        tracker can keep its local position and retry.
        """

        def sink(progress: float, timestamp: int) -> None:
            try:
                self.update_progress(user_id, video_id, progress, timestamp)
            except (VideoNotFoundError, ValueError, KeyError, sqlite3.Error) as e:
                raise ProgressSyncError(str(e)) from e

        return sink

    def resolve_video(self, query: str) -> Video:
        """Smart video resolver — tiered resolution strategy.

        Tier 1: Exact video ID match
        Tier 2: Numeric index from list (most recent first)
        Tier 3: Exact case-insensitive substring match on title/channel

        Args:
            query: Video ID, numeric index, or search text.

        Returns:
            Resolved Video.

        Raises:
            VideoNotFoundError: If no video can be resolved.
            AmbiguousVideoError: If multiple videos match.
        """
        # Tier 1: Exact video ID
        video = self._repo.get(query)
        if video is not None:
            return video

        # Tier 2: Numeric index
        if query.isdigit():
            videos = self._repo.list_all()
            idx = int(query) - 1  # 1-based for humans
            if 0 <= idx < len(videos):
                return self._repo.get(videos[idx].video_id)
            raise VideoNotFoundError(
                f"Index {query} out of range. Catalog has {len(videos)} video(s)."
            )

        # Tier 3: Exact substring match (case-insensitive)
        videos = self._repo.list_all()
        q = query.lower()
        matches = [v for v in videos if q in v.title.lower() or q in v.channel.lower()]

        if len(matches) == 1:
            return self._repo.get(matches[0].video_id)
        if len(matches) > 1:
            raise AmbiguousVideoError(
                f"Multiple videos match '{query}':\n"
                + "\n".join(f"  {i+1}. {v.title}" for i, v in enumerate(matches))
            )

        raise VideoNotFoundError(f"No video matching: {query}")
