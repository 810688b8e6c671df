# tests/test_state.py
"""Tests for client-side state stores and the player event stream."""

from typing import get_type_hints

from chaptertube.config import settings
from chaptertube.playback.player import EventStream, PlayerEvent
from chaptertube.playback.state import JsonStateStore, MemoryStateStore, StateStore


class TestMemoryStateStore:
    def test_get_set_delete(self):
        store = MemoryStateStore()
        assert store.get("x") is None
        assert store.get("x", 5) == 5
        store.set("x", 1)
        assert store.get("x") == 1
        store.delete("x")
        store.delete("x")
        assert store.get("x") is None

    def test_active_user_defaults(self):
        store = MemoryStateStore()
        assert store.active_user() == settings.default_user
        store.set_active_user("alice")
        assert store.active_user() == "alice"

    def test_hidden_videos_per_user(self):
        store = MemoryStateStore()
        store.set_hidden("alice", "v1")
        store.set_hidden("alice", "v2")
        store.set_hidden("alice", "v1", False)
        assert store.hidden_videos("alice") == {"v2"}
        assert store.hidden_videos("bob") == set()


class TestJsonStateStore:
    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "state.json"
        JsonStateStore(path).set_active_user("alice")
        assert JsonStateStore(path).active_user() == "alice"

    def test_missing_file_is_empty(self, tmp_path):
        store = JsonStateStore(tmp_path / "nested" / "state.json")
        assert store.get("user") is None
        store.set("user", "bob")
        assert (tmp_path / "nested" / "state.json").exists()

    def test_corrupt_file_ignored(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")
        assert JsonStateStore(path).get("user") is None


class TestEventStream:
    def test_fan_out_and_unsubscribe(self):
        stream = EventStream()
        seen_a, seen_b = [], []
        sub_a = stream.subscribe(seen_a.append)
        stream.subscribe(seen_b.append)

        stream.emit(PlayerEvent.PLAYING)
        sub_a.close()
        sub_a.close()
        stream.emit(PlayerEvent.PAUSED)

        assert seen_a == [PlayerEvent.PLAYING]
        assert seen_b == [PlayerEvent.PLAYING, PlayerEvent.PAUSED]
        assert sub_a.active is False
        assert len(stream) == 1

    def test_handler_may_unsubscribe_during_emit(self):
        stream = EventStream()
        calls = []

        def handler(event):
            calls.append(event)
            sub.close()

        sub = stream.subscribe(handler)
        stream.emit(PlayerEvent.ENDED)
        stream.emit(PlayerEvent.ENDED)
        assert calls == [PlayerEvent.ENDED]


class TestStateStoreAnnotations:
    def test_hidden_videos_returns_builtin_set(self):
        # `set` is also a method name on the store
        assert get_type_hints(StateStore.hidden_videos)["return"] == set[str]

    def test_cli_imports(self):
        import chaptertube.cli

        assert chaptertube.cli.app is not None
