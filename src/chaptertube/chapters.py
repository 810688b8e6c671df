"""Chapter extraction from free-text video descriptions."""

import logging
import re

from chaptertube.config import settings
from chaptertube.models import Chapter

logger = logging.getLogger(__name__)

# H:MM:SS, HH:MM:SS, M:SS or MM:SS at the start of a line, then whitespace and a title
_TIMESTAMP_LINE = re.compile(
    r"^\s*(?P<time>(?:\d{1,2}:)?\d{1,2}:\d{2})\s+(?P<title>.+)$"
)
_LEADING_TIME = re.compile(r"^\s*\d{1,2}:\d{2}")
_BARE_TIME = re.compile(r"\d{1,2}:\d{2}")
_HEADING_WORDS = ("time", "stamp")


def parse_timestamp(token: str) -> int:
    """Convert an `H:MM:SS` or `M:SS` token to whole seconds.

    Raises:
        ValueError: If the token is malformed or a minutes/seconds
                    field is 60 or above.
    """
    parts = token.strip().split(":")
    if len(parts) not in (2, 3) or not all(p.isdigit() for p in parts):
        raise ValueError(f"Not a timestamp: {token!r}")

    values = [int(p) for p in parts]
    if values[-1] >= 60 or (len(values) == 3 and values[1] >= 60):
        raise ValueError(f"Timestamp field out of range: {token!r}")

    if len(values) == 3:
        hours, minutes, seconds = values
        return hours * 3600 + minutes * 60 + seconds
    minutes, seconds = values
    return minutes * 60 + seconds


def format_timestamp(seconds: int) -> str:
    """Render seconds as `M:SS`, or `H:MM:SS` past the hour."""
    hours, rest = divmod(int(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def _is_heading(line: str) -> bool:
    lowered = line.lower()
    return any(word in lowered for word in _HEADING_WORDS) and not _LEADING_TIME.match(line)


def parse_description(description: str) -> list[Chapter]:
    """Parse timestamped lines into chapters ordered by start time.

    Source order is not trusted: entries are sorted by start time, and a
    repeated start time keeps the first entry seen. Non-last chapters end one
    second before the next one starts; the last chapter is open-ended.
    """
    entries: list[tuple[int, str]] = []

    for line in description.splitlines():
        if not line.strip() or _is_heading(line):
            continue

        match = _TIMESTAMP_LINE.match(line)
        if match is not None:
            title = match.group("title").strip()
            try:
                start = parse_timestamp(match.group("time"))
            except ValueError:
                start = None
            if start is not None and title:
                entries.append((start, title))
                continue

        if _BARE_TIME.search(line):
            logger.debug("Skipping near-miss timestamp line: %r", line)

    entries.sort(key=lambda entry: entry[0])

    unique: list[tuple[int, str]] = []
    for start, title in entries:
        if unique and unique[-1][0] == start:
            logger.debug("Dropping duplicate start time %ds: %r", start, title)
            continue
        unique.append((start, title))

    chapters = []
    for i, (start, title) in enumerate(unique):
        end = unique[i + 1][0] - 1 if i + 1 < len(unique) else None
        chapters.append(Chapter(title=title, start_time=start, end_time=end))
    return chapters


def generate_uniform_chapters(duration_seconds: int, count: int) -> list[Chapter]:
    """Split a video into `count` evenly spaced chapters.

    The last chapter ends at the full duration to absorb the rounding
    remainder. Videos shorter than `count` seconds get one chapter per
    second (at least one) so start times stay unique.
    """
    if duration_seconds < 0:
        raise ValueError(f"duration must be non-negative, got {duration_seconds}")
    if count < 1:
        raise ValueError(f"chapter count must be positive, got {count}")

    count = min(count, max(duration_seconds, 1))
    step = duration_seconds // count
    return [
        Chapter(
            title=f"Chapter {i + 1}",
            start_time=i * step,
            end_time=duration_seconds if i == count - 1 else (i + 1) * step - 1,
        )
        for i in range(count)
    ]


def extract_chapters(
    description: str, duration_seconds: int, count: int | None = None
) -> tuple[list[Chapter], bool]:
    """Derive a chapter list for a video.

    Args:
        description: Raw video description text.
        duration_seconds: Total video duration in whole seconds.
        count: Number of uniform chapters to generate when the description
               has no timestamps. Defaults to settings.fallback_chapter_count.

    Returns:
        Tuple of (chapters, derived). `derived` is True when the chapters
        were parsed from the description, False for the uniform fallback.

    Raises:
        ValueError: If duration is negative or count is not positive.
    """
    if duration_seconds < 0:
        raise ValueError(f"duration must be non-negative, got {duration_seconds}")

    chapters = parse_description(description or "")
    if chapters:
        return chapters, True

    count = settings.fallback_chapter_count if count is None else count
    return generate_uniform_chapters(duration_seconds, count), False
