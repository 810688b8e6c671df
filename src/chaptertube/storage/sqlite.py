"""SQLite implementation of the video repository."""

import sqlite3
from datetime import datetime, timezone

from chaptertube.config import settings
from chaptertube.models import Chapter, LibraryEntry, Video, WatchProgress
from chaptertube.storage.repository import VideoRepository


class SQLiteVideoRepository(VideoRepository):
    """SQLite-backed catalog and progress storage.

    Implements VideoRepository interface using stdlib sqlite3.
    Chapters live in their own table so a chapter set can be swapped
    inside one transaction without rewriting the video row.
    """

    _CREATE_TABLES = (
        """
        CREATE TABLE IF NOT EXISTS videos (
            video_id         TEXT PRIMARY KEY,
            title            TEXT NOT NULL,
            description      TEXT DEFAULT '',
            channel          TEXT DEFAULT '',
            duration         INTEGER DEFAULT 0,
            thumbnail_url    TEXT DEFAULT '',
            published_at     TEXT,
            chapters_derived INTEGER DEFAULT 0,
            added_at         TEXT NOT NULL
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS chapters (
            video_id   TEXT NOT NULL REFERENCES videos(video_id),
            title      TEXT NOT NULL,
            start_time INTEGER NOT NULL,
            end_time   INTEGER,
            PRIMARY KEY (video_id, start_time)
        )
        """,
        """
        CREATE TABLE IF NOT EXISTS watch_progress (
            user_id           TEXT NOT NULL,
            video_id          TEXT NOT NULL REFERENCES videos(video_id),
            progress          REAL NOT NULL DEFAULT 0,
            current_time_sec  INTEGER NOT NULL DEFAULT 0,
            added_at          TEXT NOT NULL,
            updated_at        TEXT NOT NULL,
            PRIMARY KEY (user_id, video_id)
        )
        """,
    )

    def __init__(self, db_path: str | None = None) -> None:
        """Initialize the repository.

        Args:
            db_path: Path to SQLite database file. Defaults to settings.db_path.
                     Use ":memory:" for testing.
        """
        self._db_path = db_path or str(settings.db_path)
        self._conn = sqlite3.connect(self._db_path)
        self._conn.row_factory = sqlite3.Row
        self._conn.execute("PRAGMA foreign_keys = ON")
        self._init_db()

    def _init_db(self) -> None:
        """Create tables if they don't exist."""
        with self._conn:
            for statement in self._CREATE_TABLES:
                self._conn.execute(statement)

    def create(self, video: Video, owner: str | None = None) -> None:
        """Insert a catalog entry, its chapters and optionally the owner's progress row."""
        sql = """
            INSERT INTO videos (
                video_id, title, description, channel, duration,
                thumbnail_url, published_at, chapters_derived, added_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """
        try:
            with self._conn:
                self._conn.execute(sql, (
                    video.video_id,
                    video.title,
                    video.description,
                    video.channel,
                    video.duration,
                    video.thumbnail_url,
                    video.published_at,
                    int(video.chapters_derived),
                    video.added_at.isoformat(),
                ))
                self._insert_chapters(video.video_id, video.chapters)
                if owner is not None:
                    self._insert_progress(owner, video.video_id)
        except sqlite3.IntegrityError as e:
            raise ValueError(f"Video already in catalog: {video.video_id}") from e

    def get(self, video_id: str) -> Video | None:
        """Retrieve a video by ID with its chapters. Returns None if not found."""
        sql = "SELECT * FROM videos WHERE video_id = ?"
        row = self._conn.execute(sql, (video_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_video(row, chapters=self.get_chapters(video_id))

    def exists(self, video_id: str) -> bool:
        """Check whether a video with the given ID is in storage."""
        sql = "SELECT 1 FROM videos WHERE video_id = ? LIMIT 1"
        return self._conn.execute(sql, (video_id,)).fetchone() is not None

    def list_all(self) -> list[Video]:
        """List all videos — metadata only, no chapters."""
        sql = "SELECT * FROM videos ORDER BY added_at DESC, rowid DESC"
        rows = self._conn.execute(sql).fetchall()
        return [self._row_to_video(row, chapters=[]) for row in rows]

    def replace_chapters(self, video_id: str, chapters: list[Chapter], derived: bool) -> None:
        """Delete the old chapter set and insert the new one in a single transaction."""
        with self._conn:
            cursor = self._conn.execute(
                "UPDATE videos SET chapters_derived = ? WHERE video_id = ?",
                (int(derived), video_id),
            )
            if cursor.rowcount == 0:
                raise KeyError(video_id)
            self._conn.execute("DELETE FROM chapters WHERE video_id = ?", (video_id,))
            self._insert_chapters(video_id, chapters)

    def get_chapters(self, video_id: str) -> list[Chapter]:
        sql = "SELECT * FROM chapters WHERE video_id = ? ORDER BY start_time ASC"
        rows = self._conn.execute(sql, (video_id,)).fetchall()
        return [
            Chapter(title=r["title"], start_time=r["start_time"], end_time=r["end_time"])
            for r in rows
        ]

    def get_or_create_progress(self, user_id: str, video_id: str) -> WatchProgress:
        with self._conn:
            self._insert_progress(user_id, video_id)
        return self.get_progress(user_id, video_id)

    def get_progress(self, user_id: str, video_id: str) -> WatchProgress | None:
        sql = "SELECT * FROM watch_progress WHERE user_id = ? AND video_id = ?"
        row = self._conn.execute(sql, (user_id, video_id)).fetchone()
        if row is None:
            return None
        return self._row_to_progress(row)

    def set_progress(self, user_id: str, video_id: str, progress: float, timestamp: int) -> None:
        """Overwrite progress with absolute values. Last write wins.

        Raises:
            KeyError: If the user is not associated with the video.
        """
        sql = """
            UPDATE watch_progress
            SET progress = ?, current_time_sec = ?, updated_at = ?
            WHERE user_id = ? AND video_id = ?
        """
        with self._conn:
            cursor = self._conn.execute(sql, (
                progress,
                timestamp,
                datetime.now(timezone.utc).isoformat(),
                user_id,
                video_id,
            ))
        if cursor.rowcount == 0:
            raise KeyError((user_id, video_id))

    def list_library(self, user_id: str) -> list[LibraryEntry]:
        sql = """
            SELECT v.*,
                   wp.user_id, wp.progress, wp.current_time_sec,
                   wp.updated_at, wp.added_at AS associated_at
            FROM watch_progress wp
            JOIN videos v ON wp.video_id = v.video_id
            WHERE wp.user_id = ?
            ORDER BY wp.added_at DESC, wp.rowid DESC
        """
        rows = self._conn.execute(sql, (user_id,)).fetchall()
        return [
            LibraryEntry(
                video=self._row_to_video(row, chapters=[]),
                progress=self._row_to_progress(row),
                added_at=row["associated_at"],
            )
            for row in rows
        ]

    def close(self) -> None:
        self._conn.close()

    def _insert_progress(self, user_id: str, video_id: str) -> None:
        now = datetime.now(timezone.utc).isoformat()
        self._conn.execute(
            """
            INSERT INTO watch_progress (user_id, video_id, progress, current_time_sec, added_at, updated_at)
            VALUES (?, ?, 0, 0, ?, ?)
            ON CONFLICT(user_id, video_id) DO NOTHING
            """,
            (user_id, video_id, now, now),
        )

    def _insert_chapters(self, video_id: str, chapters: list[Chapter]) -> None:
        self._conn.executemany(
            "INSERT INTO chapters (video_id, title, start_time, end_time) VALUES (?, ?, ?, ?)",
            [(video_id, ch.title, ch.start_time, ch.end_time) for ch in chapters],
        )

    @staticmethod
    def _row_to_video(row: sqlite3.Row, *, chapters: list[Chapter]) -> Video:
        """Convert a database row to a Video model."""
        return Video(
            video_id=row["video_id"],
            title=row["title"],
            description=row["description"],
            channel=row["channel"],
            duration=row["duration"],
            thumbnail_url=row["thumbnail_url"],
            published_at=row["published_at"],
            chapters=chapters,
            chapters_derived=bool(row["chapters_derived"]),
            added_at=row["added_at"],
        )

    @staticmethod
    def _row_to_progress(row: sqlite3.Row) -> WatchProgress:
        return WatchProgress(
            user_id=row["user_id"],
            video_id=row["video_id"],
            progress=row["progress"],
            current_timestamp=row["current_time_sec"],
            updated_at=row["updated_at"],
        )
