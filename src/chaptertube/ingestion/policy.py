"""Catalog admission policy applied before chapters are extracted."""

import logging

from chaptertube.config import settings
from chaptertube.models import Video

logger = logging.getLogger(__name__)


class IngestionRejectedError(Exception):
    """Raised when a video does not satisfy the ingestion policy."""


class IngestionPolicy:
    """Minimum-length and topical keyword gate for new catalog entries.

    Both constants are injected so deployments can tune or disable them;
    defaults come from settings.
    """

    def __init__(
        self,
        min_duration: int | None = None,
        keywords: list[str] | None = None,
        enabled: bool | None = None,
    ) -> None:
        self._min_duration = settings.min_duration_seconds if min_duration is None else min_duration
        self._keywords = [k.lower() for k in (settings.topic_keywords if keywords is None else keywords)]
        self._enabled = settings.enforce_policy if enabled is None else enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def is_topical(self, video: Video) -> bool:
        """Keyword heuristic over title and description. No keywords means no topic gate."""
        if not self._keywords:
            return True
        text = f"{video.title}\n{video.description}".lower()
        return any(keyword in text for keyword in self._keywords)

    def check(self, video: Video) -> None:
        """Validate a candidate video.

        Raises:
            IngestionRejectedError: If the video is too short or off-topic.
        """
        if not self._enabled:
            return
        if video.duration < self._min_duration:
            raise IngestionRejectedError(
                f"Video is too short: {video.duration}s "
                f"(minimum {self._min_duration}s)."
            )
        if not self.is_topical(video):
            raise IngestionRejectedError(
                f"Video does not look educational: {video.title}"
            )
        logger.debug("Policy accepted: %s", video.video_id)
