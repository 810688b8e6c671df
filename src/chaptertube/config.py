"""Configuration management for chaptertube."""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings with environment variable overrides.

    All settings can be overridden via environment variables
    prefixed with CHAPTERTUBE_ (e.g. CHAPTERTUBE_DATA_DIR, CHAPTERTUBE_SAVE_INTERVAL).
    """

    model_config = {"env_prefix": "CHAPTERTUBE_"}

    # Storage
    data_dir: Path = Field(
        default_factory=lambda: Path.home() / ".chaptertube",
        description="Root directory for all chaptertube data",
    )

    # Server
    host: str = "127.0.0.1"
    port: int = 9093

    # Used when no user has been selected with `chaptertube user`
    default_user: str = "local"

    # Chapters
    fallback_chapter_count: int = Field(default=5, ge=1)

    # Playback tracking (seconds)
    sample_interval: float = Field(default=0.25, gt=0)
    save_interval: float = Field(default=15.0, gt=0)
    flush_epsilon: float = Field(default=1.0, ge=0)

    # Library status buckets: progress at or above this counts as completed
    completion_threshold: float = Field(default=1.0, gt=0, le=1.0)

    # Ingestion policy
    enforce_policy: bool = True
    min_duration_seconds: int = 30 * 60
    topic_keywords: list[str] = Field(
        default_factory=lambda: [
            "tutorial", "course", "lecture", "lesson", "learn", "guide",
            "explained", "introduction", "class", "workshop", "bootcamp",
        ],
    )

    @property
    def db_path(self) -> Path:
        """SQLite database path."""
        return self.data_dir / "chaptertube.db"

    @property
    def state_path(self) -> Path:
        """JSON file backing the client-side state store."""
        return self.data_dir / "state.json"

    def ensure_dirs(self) -> None:
        """Create all required directories if they don't exist."""
        self.data_dir.mkdir(parents=True, exist_ok=True)


# Module-level singleton — import this throughout the app
settings = Settings()
