"""YouTube catalog ingestion via yt-dlp."""

import logging
import re
from datetime import datetime
from urllib.parse import parse_qs, urlparse

import yt_dlp

from chaptertube.models import Video

logger = logging.getLogger(__name__)

_VIDEO_ID = r"([\w-]{11})"

# watch?...v=ID, youtu.be/ID, /embed/ID, /v/ID
_ID_IN_URL = re.compile(
    r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/(?:embed|v)/)" + _VIDEO_ID
)

_YDL_OPTS = {
    "quiet": True,
    "no_warnings": True,
    "skip_download": True,
    "noplaylist": True,
}


class ExtractionError(Exception):
    """Raised when video extraction fails."""


class YouTubeExtractor:
    """Looks up catalog metadata for a YouTube URL.

    Only what the catalog stores is kept: title, channel, whole-second
    duration, thumbnail, upload date and the raw description. Chapters are
    left empty because the service derives them from the description,
    ignoring any chapter list yt-dlp reports.
    """

    def extract(self, url: str) -> Video:
        """Fetch metadata for a YouTube video URL.

        Raises:
            ExtractionError: If the URL is malformed or yt-dlp fails.
        """
        video_id = self.parse_video_id(url)
        info = self._fetch_info(url)
        logger.debug("Fetched metadata for %s", video_id)
        return self._to_video(video_id, info)

    @classmethod
    def parse_video_id(cls, url: str) -> str:
        """Extract the 11-character video ID from a YouTube URL.

        Raises:
            ExtractionError: If the URL cannot be parsed.
        """
        match = _ID_IN_URL.search(url)
        if match:
            return match.group(1)

        candidates = parse_qs(urlparse(url).query).get("v", [])
        if candidates and re.fullmatch(_VIDEO_ID, candidates[0]):
            return candidates[0]

        raise ExtractionError(f"Could not extract video ID from URL: {url}")

    def _fetch_info(self, url: str) -> dict:
        try:
            with yt_dlp.YoutubeDL(_YDL_OPTS) as ydl:
                info = ydl.extract_info(url, download=False)
        except yt_dlp.utils.DownloadError as e:
            raise ExtractionError(f"Failed to extract video info: {e}") from e
        if info is None:
            raise ExtractionError(f"yt-dlp returned no info for: {url}")
        return info

    @classmethod
    def _to_video(cls, video_id: str, info: dict) -> Video:
        return Video(
            video_id=video_id,
            title=info.get("title") or "",
            description=info.get("description") or "",
            channel=info.get("channel") or info.get("uploader") or "",
            duration=int(info.get("duration") or 0),
            thumbnail_url=info.get("thumbnail") or "",
            published_at=cls._parse_upload_date(info.get("upload_date")),
        )

    @staticmethod
    def _parse_upload_date(value: str | None) -> str | None:
        """Convert yt-dlp's YYYYMMDD upload_date to ISO format."""
        if not value:
            return None
        try:
            return datetime.strptime(value, "%Y%m%d").date().isoformat()
        except ValueError:
            logger.warning("Unrecognised upload_date: %s", value)
            return None
