"""Client-side key/value state (active user, hidden videos)."""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from chaptertube.config import settings

logger = logging.getLogger(__name__)


class StateStore(ABC):
    """Explicit, injectable replacement for ambient client storage."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value, or `default` if absent."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serialisable value."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. No-op if absent."""

    # Convenience accessors shared by all backends

    def active_user(self) -> str:
        return self.get("user") or settings.default_user

    def set_active_user(self, user_id: str) -> None:
        self.set("user", user_id)

    def hidden_videos(self, user_id: str) -> set[str]:
        return set(self.get(f"hidden:{user_id}", []))

    def set_hidden(self, user_id: str, video_id: str, hidden: bool = True) -> None:
        ids = self.hidden_videos(user_id)
        if hidden:
            ids.add(video_id)
        else:
            ids.discard(video_id)
        self.set(f"hidden:{user_id}", sorted(ids))


class MemoryStateStore(StateStore):
    """Dict-backed store for tests and short-lived sessions."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonStateStore(StateStore):
    """Store persisted as a single JSON file, rewritten on every change.

    Args:
        path: JSON file location. Defaults to settings.state_path.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = Path(path or settings.state_path)
        self._data = self._load()

    def _load(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            logger.warning("Ignoring unreadable state file %s: %s", self._path, e)
            return {}
        return data if isinstance(data, dict) else {}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(self._data, indent=2), encoding="utf-8")

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._flush()

    def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()
