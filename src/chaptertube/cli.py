"""CLI interface — thin wrapper over ChapterTubeService and FastMCP server."""

import asyncio
import sys
from pathlib import Path

import typer

from chaptertube.chapters import extract_chapters, format_timestamp
from chaptertube.config import settings
from chaptertube.ingestion.policy import IngestionRejectedError
from chaptertube.ingestion.youtube import ExtractionError
from chaptertube.models import Chapter, LibraryEntry, Video, WatchStatus
from chaptertube.playback.scheduler import AsyncioScheduler
from chaptertube.playback.simulated import ClockPlayer
from chaptertube.playback.state import JsonStateStore, StateStore
from chaptertube.playback.tracker import PlaybackTracker
from chaptertube.service import (
    AmbiguousVideoError,
    ChapterTubeService,
    VideoNotFoundError,
)
from chaptertube.storage.sqlite import SQLiteVideoRepository


app = typer.Typer(
    name="chaptertube",
    help="Chapter long YouTube videos and resume them where you left off.",
    no_args_is_help=True,
)


def _get_service() -> ChapterTubeService:
    """Create a service instance with default dependencies."""
    settings.ensure_dirs()
    return ChapterTubeService(repository=SQLiteVideoRepository())


def _get_state() -> StateStore:
    """Open the client-side state store."""
    settings.ensure_dirs()
    return JsonStateStore()


def _resolve_or_exit(svc: ChapterTubeService, query: str) -> Video:
    """Resolve a video from human-friendly input or exit with error."""
    try:
        return svc.resolve_video(query)
    except VideoNotFoundError as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)
    except AmbiguousVideoError as e:
        typer.echo(f"⚠️  {e}", err=True)
        raise typer.Exit(code=1)


def _echo_chapters(chapters: list[Chapter], derived: bool) -> None:
    source = "from description" if derived else "auto-generated"
    typer.echo(f"Chapters ({source}):")
    for ch in chapters:
        end = format_timestamp(ch.end_time) if ch.end_time is not None else "end"
        typer.echo(f"  [{format_timestamp(ch.start_time):>8s} - {end:>8s}] {ch.title}")


_STATUS_LABELS = {
    WatchStatus.NOT_STARTED: "Not started",
    WatchStatus.IN_PROGRESS: "In progress",
    WatchStatus.COMPLETED: "Completed",
}


def _echo_entries(entries: list[LibraryEntry]) -> None:
    for i, e in enumerate(entries, 1):
        v = e.video
        typer.echo(
            f"  {i}. {v.video_id}  {v.duration_label:>8s}  {e.progress.percent:>3d}%  "
            f"@{format_timestamp(e.progress.current_timestamp):>8s}  {v.title}"
        )


@app.command()
def add(
    url: str = typer.Argument(..., help="YouTube video URL to add."),
    user: str | None = typer.Option(None, "--user", "-u", help="Library owner (defaults to active user)."),
) -> None:
    """Add a YouTube video to your library, deriving its chapters."""
    svc = _get_service()
    user_id = user or _get_state().active_user()
    try:
        video = svc.add_video(url, user_id)
    except (ExtractionError, IngestionRejectedError, ValueError) as e:
        typer.echo(f"❌ {e}", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"✅ Added: {video.title}")
    typer.echo(f"   ID:       {video.video_id}")
    typer.echo(f"   Channel:  {video.channel}")
    typer.echo(f"   Duration: {video.duration_label}")
    typer.echo(f"   Chapters: {len(video.chapters)} ({'from description' if video.chapters_derived else 'auto-generated'})")


@app.command(name="list")
def list_videos(
    user: str | None = typer.Option(None, "--user", "-u", help="Library owner (defaults to active user)."),
    show_hidden: bool = typer.Option(False, "--all", "-a", help="Include hidden videos."),
    status: WatchStatus | None = typer.Option(None, "--status", "-s", help="Only videos in this bucket."),
) -> None:
    """List the videos in your library with watch progress."""
    svc = _get_service()
    state = _get_state()
    user_id = user or state.active_user()
    hidden = None if show_hidden else state.hidden_videos(user_id)
    entries = svc.list_library(user_id, hidden=hidden, status=status)
    if not entries:
        if status is None:
            typer.echo("Library is empty. Use 'chaptertube add <url>' to add a video.")
        else:
            typer.echo(f"No videos are {_STATUS_LABELS[status].lower()}.")
        return
    _echo_entries(entries)


@app.command()
def tasks(
    user: str | None = typer.Option(None, "--user", "-u", help="Library owner (defaults to active user)."),
) -> None:
    """Group your library into not started, in progress and completed."""
    svc = _get_service()
    state = _get_state()
    user_id = user or state.active_user()
    entries = svc.list_library(user_id, hidden=state.hidden_videos(user_id))
    for status in (WatchStatus.IN_PROGRESS, WatchStatus.NOT_STARTED, WatchStatus.COMPLETED):
        bucket = [e for e in entries if e.progress.status is status]
        typer.echo(f"{_STATUS_LABELS[status]} ({len(bucket)})")
        _echo_entries(bucket)


@app.command()
def info(query: str = typer.Argument(..., help="Video ID, index number, or search text.")) -> None:
    """Show full details for a video."""
    svc = _get_service()
    video = _resolve_or_exit(svc, query)
    typer.echo(f"Title:       {video.title}")
    typer.echo(f"Channel:     {video.channel}")
    typer.echo(f"Duration:    {video.duration_label}")
    typer.echo(f"URL:         {video.url}")
    typer.echo(f"Thumbnail:   {video.thumbnail_url}")
    typer.echo(f"Published:   {video.published_at or '(unknown)'}")
    typer.echo(f"Added:       {video.added_at}")
    typer.echo("")
    _echo_chapters(video.chapters, video.chapters_derived)


@app.command()
def chapters(query: str = typer.Argument(..., help="Video ID, index number, or search text.")) -> None:
    """Show a video's chapters."""
    svc = _get_service()
    video = _resolve_or_exit(svc, query)
    _echo_chapters(video.chapters, video.chapters_derived)


@app.command()
def refresh(query: str = typer.Argument(..., help="Video ID, index number, or search text.")) -> None:
    """Re-derive a video's chapters from its stored description."""
    svc = _get_service()
    video = _resolve_or_exit(svc, query)
    video = svc.refresh_chapters(video.video_id)
    typer.echo(f"🔄 Refreshed: {video.title}")
    _echo_chapters(video.chapters, video.chapters_derived)


@app.command()
def extract(
    duration: int = typer.Option(..., "--duration", "-d", min=0, help="Video duration in seconds."),
    source: Path | None = typer.Argument(None, help="Description file (reads stdin if omitted)."),
    count: int = typer.Option(settings.fallback_chapter_count, "--count", "-n", min=1, help="Fallback chapter count."),
) -> None:
    """Extract chapters from description text without touching the catalog."""
    text = source.read_text(encoding="utf-8") if source else sys.stdin.read()
    found, derived = extract_chapters(text, duration, count)
    _echo_chapters(found, derived)


@app.command()
def progress(
    query: str = typer.Argument(..., help="Video ID, index number, or search text."),
    set_to: int | None = typer.Option(None, "--set", "-s", min=0, help="Store a new position in seconds."),
    user: str | None = typer.Option(None, "--user", "-u", help="Library owner (defaults to active user)."),
) -> None:
    """Show or set your resume position for a video."""
    svc = _get_service()
    user_id = user or _get_state().active_user()
    video = _resolve_or_exit(svc, query)
    if set_to is not None:
        position = min(set_to, video.duration)
        fraction = position / video.duration if video.duration else 0.0
        wp = svc.update_progress(user_id, video.video_id, fraction, position)
    else:
        wp = svc.get_progress(user_id, video.video_id)
    typer.echo(f"⏱️  {video.title}: {wp.percent}% @ {format_timestamp(wp.current_timestamp)}")


@app.command()
def complete(
    query: str = typer.Argument(..., help="Video ID, index number, or search text."),
    user: str | None = typer.Option(None, "--user", "-u", help="Library owner (defaults to active user)."),
) -> None:
    """Mark a video as fully watched."""
    svc = _get_service()
    user_id = user or _get_state().active_user()
    video = _resolve_or_exit(svc, query)
    svc.mark_completed(user_id, video.video_id)
    typer.echo(f"🏁 Completed: {video.title}")


@app.command()
def watch(
    query: str = typer.Argument(..., help="Video ID, index number, or search text."),
    seconds: float = typer.Option(10.0, "--seconds", "-t", min=0.0, help="Wall-clock seconds to play for."),
    speed: float = typer.Option(1.0, "--speed", min=0.1, help="Playback rate multiplier."),
    chapter: int | None = typer.Option(None, "--chapter", "-c", min=1, help="Start at this chapter number."),
    user: str | None = typer.Option(None, "--user", "-u", help="Library owner (defaults to active user)."),
) -> None:
    """Play a headless session that resumes and records your position."""
    svc = _get_service()
    user_id = user or _get_state().active_user()
    video = _resolve_or_exit(svc, query)
    if chapter is not None and chapter > len(video.chapters):
        typer.echo(f"❌ Video has {len(video.chapters)} chapter(s).", err=True)
        raise typer.Exit(code=1)
    saved = svc.get_progress(user_id, video.video_id)

    async def session() -> PlaybackTracker:
        player = ClockPlayer(video.duration, speed=speed)
        tracker = PlaybackTracker(
            video.video_id,
            player,
            svc.progress_sink(user_id, video.video_id),
            AsyncioScheduler(),
            saved_timestamp=saved.current_timestamp,
        )
        with tracker:
            if chapter is not None:
                tracker.seek_to_chapter(video.chapters[chapter - 1])
            player.play()
            loop = asyncio.get_running_loop()
            deadline = loop.time() + seconds
            while loop.time() < deadline and player.playing:
                await asyncio.sleep(0.1)
                player.poll()
            player.pause()
        return tracker

    typer.echo(f"▶️  {video.title} from {format_timestamp(saved.current_timestamp)}")
    tracker = asyncio.run(session())
    now = tracker.current_chapter(video.chapters)
    typer.echo(
        f"⏸️  Stopped at {tracker.position_label} ({int((tracker.progress or 0) * 100)}%)"
        + (f" in '{now.title}'" if now else "")
    )


@app.command()
def hide(
    query: str = typer.Argument(..., help="Video ID, index number, or search text."),
    user: str | None = typer.Option(None, "--user", "-u", help="Library owner (defaults to active user)."),
) -> None:
    """Hide a video from your library listing."""
    svc = _get_service()
    state = _get_state()
    video = _resolve_or_exit(svc, query)
    state.set_hidden(user or state.active_user(), video.video_id, True)
    typer.echo(f"🙈 Hidden: {video.title}")


@app.command()
def unhide(
    query: str = typer.Argument(..., help="Video ID, index number, or search text."),
    user: str | None = typer.Option(None, "--user", "-u", help="Library owner (defaults to active user)."),
) -> None:
    """Show a previously hidden video again."""
    svc = _get_service()
    state = _get_state()
    video = _resolve_or_exit(svc, query)
    state.set_hidden(user or state.active_user(), video.video_id, False)
    typer.echo(f"👀 Visible: {video.title}")


@app.command()
def user(name: str | None = typer.Argument(None, help="User to switch to.")) -> None:
    """Show or switch the active user."""
    state = _get_state()
    if name:
        state.set_active_user(name)
    typer.echo(f"👤 Active user: {state.active_user()}")


@app.command()
def serve(
    stdio: bool = typer.Option(False, "--stdio", help="Use stdio transport instead of HTTP."),
    host: str = typer.Option(settings.host, "--host", help="Host to bind to."),
    port: int = typer.Option(settings.port, "--port", help="Port to bind to."),
) -> None:
    """Start the chaptertube MCP server."""
    from chaptertube.server import mcp

    if stdio:
        typer.echo("Starting chaptertube MCP server (stdio)...", err=True)
        mcp.run(transport="stdio")
    else:
        typer.echo(f"Starting chaptertube MCP server on http://{host}:{port}/mcp")
        mcp.run(transport="streamable-http", host=host, port=port)
