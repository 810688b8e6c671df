# tests/test_youtube.py
"""Tests for YouTube catalog extraction."""

from unittest.mock import MagicMock, patch

import pytest
import yt_dlp

from chaptertube.ingestion.youtube import ExtractionError, YouTubeExtractor


class TestParseVideoId:
    def test_watch_url(self):
        assert YouTubeExtractor.parse_video_id("https://www.youtube.com/watch?v=BpibZSMGtdY") == "BpibZSMGtdY"

    def test_short_url(self):
        assert YouTubeExtractor.parse_video_id("https://youtu.be/BpibZSMGtdY") == "BpibZSMGtdY"

    def test_embed_url(self):
        assert YouTubeExtractor.parse_video_id("https://www.youtube.com/embed/BpibZSMGtdY") == "BpibZSMGtdY"

    def test_v_path_url(self):
        assert YouTubeExtractor.parse_video_id("https://www.youtube.com/v/BpibZSMGtdY") == "BpibZSMGtdY"

    def test_watch_url_with_extras(self):
        url = "https://www.youtube.com/watch?v=BpibZSMGtdY&t=120&list=PLxyz"
        assert YouTubeExtractor.parse_video_id(url) == "BpibZSMGtdY"

    def test_invalid_url(self):
        with pytest.raises(ExtractionError):
            YouTubeExtractor.parse_video_id("https://example.com/not-youtube")


class TestExtract:
    def _make_info(self, **overrides):
        info = {
            "id": "BpibZSMGtdY",
            "title": "Test Video",
            "description": "0:00 Intro\n1:00 Main",
            "channel": "TestChannel",
            "uploader": "TestUploader",
            "duration": 2400,
            "thumbnail": "https://i.ytimg.com/vi/BpibZSMGtdY/maxresdefault.jpg",
            "upload_date": "20250615",
            "chapters": [{"title": "Uploader chapter", "start_time": 0}],
        }
        info.update(overrides)
        return info

    def _mock_ydl(self, mock_ydl_class, info=None, error=None):
        mock_ydl = MagicMock()
        if error is not None:
            mock_ydl.extract_info.side_effect = error
        else:
            mock_ydl.extract_info.return_value = info
        mock_ydl_class.return_value.__enter__ = lambda s: mock_ydl
        mock_ydl_class.return_value.__exit__ = MagicMock(return_value=False)
        return mock_ydl

    @patch("chaptertube.ingestion.youtube.yt_dlp.YoutubeDL")
    def test_extract_returns_video(self, mock_ydl_class):
        self._mock_ydl(mock_ydl_class, self._make_info())

        video = YouTubeExtractor().extract("https://www.youtube.com/watch?v=BpibZSMGtdY")

        assert video.video_id == "BpibZSMGtdY"
        assert video.title == "Test Video"
        assert video.channel == "TestChannel"
        assert video.duration == 2400
        assert video.description.startswith("0:00 Intro")
        assert video.published_at == "2025-06-15"

    @patch("chaptertube.ingestion.youtube.yt_dlp.YoutubeDL")
    def test_chapters_left_for_the_service(self, mock_ydl_class):
        self._mock_ydl(mock_ydl_class, self._make_info())
        video = YouTubeExtractor().extract("https://youtu.be/BpibZSMGtdY")
        assert video.chapters == []

    @patch("chaptertube.ingestion.youtube.yt_dlp.YoutubeDL")
    def test_fractional_duration_truncated(self, mock_ydl_class):
        self._mock_ydl(mock_ydl_class, self._make_info(duration=2400.7))
        video = YouTubeExtractor().extract("https://youtu.be/BpibZSMGtdY")
        assert video.duration == 2400

    @patch("chaptertube.ingestion.youtube.yt_dlp.YoutubeDL")
    def test_missing_fields_defaulted(self, mock_ydl_class):
        info = {"title": "Bare", "description": None, "duration": None, "channel": None, "uploader": "Up"}
        self._mock_ydl(mock_ydl_class, info)
        video = YouTubeExtractor().extract("https://youtu.be/BpibZSMGtdY")
        assert video.description == ""
        assert video.duration == 0
        assert video.channel == "Up"
        assert video.published_at is None

    @patch("chaptertube.ingestion.youtube.yt_dlp.YoutubeDL")
    def test_bad_upload_date_ignored(self, mock_ydl_class):
        self._mock_ydl(mock_ydl_class, self._make_info(upload_date="2025-06"))
        video = YouTubeExtractor().extract("https://youtu.be/BpibZSMGtdY")
        assert video.published_at is None

    @patch("chaptertube.ingestion.youtube.yt_dlp.YoutubeDL")
    def test_extract_download_error(self, mock_ydl_class):
        self._mock_ydl(mock_ydl_class, error=yt_dlp.utils.DownloadError("Network error"))
        with pytest.raises(ExtractionError, match="Failed to extract"):
            YouTubeExtractor().extract("https://www.youtube.com/watch?v=BpibZSMGtdY")

    @patch("chaptertube.ingestion.youtube.yt_dlp.YoutubeDL")
    def test_extract_no_info(self, mock_ydl_class):
        self._mock_ydl(mock_ydl_class, None)
        with pytest.raises(ExtractionError, match="no info"):
            YouTubeExtractor().extract("https://www.youtube.com/watch?v=BpibZSMGtdY")
