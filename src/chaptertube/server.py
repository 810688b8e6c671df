"""FastMCP server — thin wrapper exposing ChapterTubeService as MCP tools."""

from fastmcp import FastMCP

from chaptertube.chapters import extract_chapters as run_extractor
from chaptertube.config import settings
from chaptertube.ingestion.policy import IngestionRejectedError
from chaptertube.ingestion.youtube import ExtractionError, YouTubeExtractor
from chaptertube.models import LibraryEntry, Video, WatchStatus
from chaptertube.service import ChapterTubeService, VideoNotFoundError
from chaptertube.storage.sqlite import SQLiteVideoRepository


mcp = FastMCP(
    name="chaptertube",
    instructions=(
        "chaptertube keeps a library of long YouTube videos with chapters "
        "and resume positions. Use add_video to add a YouTube URL, then "
        "list_videos, get_video, and update_progress to follow along."
    ),
)

_service: ChapterTubeService | None = None


def _get_service() -> ChapterTubeService:
    """Lazy-initialise the service singleton with default dependencies."""
    global _service
    if _service is None:
        settings.ensure_dirs()
        _service = ChapterTubeService(
            repository=SQLiteVideoRepository(),
            extractor=YouTubeExtractor(),
        )
    return _service


@mcp.tool(annotations={"readOnlyHint": False, "idempotentHint": True})
def add_video(url: str, user_id: str = settings.default_user) -> dict:
    """Add a YouTube video to a user's library.

    New videos get chapters parsed from their description, or evenly
    spaced chapters when the description has no timestamps. Adding a
    video again re-derives its chapters.

    Args:
        url: YouTube video URL (supports youtube.com/watch, youtu.be, /embed/).
        user_id: Library owner.
    """
    try:
        video = _get_service().add_video(url, user_id)
        return _video_detail(video)
    except (ExtractionError, IngestionRejectedError, ValueError) as e:
        return {"error": str(e)}


@mcp.tool(annotations={"readOnlyHint": True})
def list_videos(user_id: str = settings.default_user, status: str | None = None) -> list[dict]:
    """List the videos in a user's library with watch progress.

    Args:
        user_id: Library owner.
        status: Optional filter: "not_started", "in_progress" or "completed".
    """
    try:
        wanted = WatchStatus(status) if status else None
    except ValueError:
        return [{"error": f"Unknown status: {status}"}]
    entries = _get_service().list_library(user_id, status=wanted)
    return [_library_summary(e) for e in entries]


@mcp.tool(annotations={"readOnlyHint": True})
def get_video(video_id: str) -> dict:
    """Get a video with its chapters.

    Args:
        video_id: The YouTube video ID (11-character string).
    """
    try:
        return _video_detail(_get_service().get_video(video_id))
    except VideoNotFoundError as e:
        return {"error": str(e)}


@mcp.tool(annotations={"readOnlyHint": False, "idempotentHint": True})
def update_progress(
    video_id: str, progress: float, current_timestamp: int, user_id: str = settings.default_user
) -> dict:
    """Store a user's resume position for a video.

    Args:
        video_id: The YouTube video ID.
        progress: Fraction watched, between 0 and 1.
        current_timestamp: Position in whole seconds.
        user_id: Library owner.
    """
    try:
        wp = _get_service().update_progress(user_id, video_id, progress, current_timestamp)
        return wp.model_dump(mode="json")
    except (VideoNotFoundError, ValueError) as e:
        return {"error": str(e)}


@mcp.tool(annotations={"readOnlyHint": False, "idempotentHint": True})
def mark_completed(video_id: str, user_id: str = settings.default_user) -> dict:
    """Mark a video as fully watched.

    Args:
        video_id: The YouTube video ID.
        user_id: Library owner.
    """
    try:
        return _get_service().mark_completed(user_id, video_id).model_dump(mode="json")
    except VideoNotFoundError as e:
        return {"error": str(e)}


@mcp.tool(annotations={"readOnlyHint": True})
def extract_chapters(description: str, duration: int, count: int = settings.fallback_chapter_count) -> dict:
    """Derive chapters from description text without storing anything.

    Args:
        description: Video description containing lines like "5:30 Setup".
        duration: Video length in whole seconds.
        count: Number of evenly spaced chapters when no timestamps are found.
    """
    try:
        found, derived = run_extractor(description, duration, count)
    except ValueError as e:
        return {"error": str(e)}
    return {
        "derived": derived,
        "chapters": [ch.model_dump() for ch in found],
    }


def _video_detail(video: Video) -> dict:
    """Create a dict for tool responses (excludes the raw description)."""
    return {
        "video_id": video.video_id,
        "title": video.title,
        "channel": video.channel,
        "duration": video.duration,
        "duration_label": video.duration_label,
        "url": video.url,
        "thumbnail_url": video.thumbnail_url,
        "published_at": video.published_at,
        "chapters_derived": video.chapters_derived,
        "chapters": [ch.model_dump() for ch in video.chapters],
        "added_at": video.added_at.isoformat() if video.added_at else None,
    }


def _library_summary(entry: LibraryEntry) -> dict:
    return {
        "video_id": entry.video.video_id,
        "title": entry.video.title,
        "duration": entry.video.duration,
        "url": entry.video.url,
        "progress": entry.progress.progress,
        "current_timestamp": entry.progress.current_timestamp,
        "status": entry.progress.status.value,
        "added_at": entry.added_at.isoformat(),
    }
