"""Tests for DecisionStore."""
import json

import pytest

from sources.decision_store import DecisionStore
from tests._fakes import candidate


class TestInMemory:
    def test_mark_seen(self):
        store = DecisionStore()
        assert not store.is_seen("a")
        store.mark_seen(candidate("a"))
        assert store.is_seen("a")

    def test_mark_seen_is_idempotent(self):
        store = DecisionStore()
        store.mark_seen(candidate("a"))
        first = store._seen["a"].created_at
        store.mark_seen(candidate("a"))
        assert store.seen_ids() == {"a"}
        assert store._seen["a"].created_at == first

    def test_unmark_seen(self):
        store = DecisionStore()
        store.mark_seen(candidate("a"))
        store.unmark_seen("a")
        assert not store.is_seen("a")
        store.unmark_seen("missing")

    def test_favorites_idempotent_and_newest_first(self):
        store = DecisionStore()
        store.add_favorite(candidate("a"))
        store.add_favorite(candidate("b"))
        store.add_favorite(candidate("a"))
        assert [r.id for r in store.favorites()] == ["b", "a"]
        assert store.is_favorite("a")

    def test_favorite_does_not_imply_seen(self):
        store = DecisionStore()
        store.add_favorite(candidate("a"))
        assert not store.is_seen("a")

    def test_remove_favorite(self):
        store = DecisionStore()
        store.add_favorite(candidate("a"))
        store.remove_favorite("a")
        assert not store.is_favorite("a")

    def test_clear_all(self):
        store = DecisionStore()
        store.mark_seen(candidate("a"))
        store.add_favorite(candidate("b"))
        store.clear_all()
        assert store.seen_ids() == set()
        assert store.favorites() == []


class TestPersistence:
    def test_round_trip_through_file(self, tmp_path):
        path = tmp_path / "decisions.json"
        store = DecisionStore(path)
        store.mark_seen(candidate("a"))
        store.add_favorite(candidate("b"))

        reloaded = DecisionStore(path)
        assert reloaded.is_seen("a")
        assert reloaded.is_favorite("b")
        assert reloaded.favorites()[0].url == "https://img.test/b.jpg"

    def test_file_layout(self, tmp_path):
        path = tmp_path / "decisions.json"
        DecisionStore(path).mark_seen(candidate("a"))
        data = json.loads(path.read_text())
        assert data["favorites"] == []
        assert data["seen"][0]["id"] == "a"
        assert data["seen"][0]["created_at"]

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "decisions.json"
        path.write_text("[[[")
        store = DecisionStore(path)
        assert not store.is_seen("a")
        store.mark_seen(candidate("a"))
        assert DecisionStore(path).is_seen("a")

    def test_unwritable_path_does_not_raise(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("file")
        store = DecisionStore(blocker / "decisions.json")
        store.mark_seen(candidate("a"))
        assert store.is_seen("a")

    def test_preload_happens_once(self, tmp_path):
        path = tmp_path / "decisions.json"
        DecisionStore(path).mark_seen(candidate("a"))
        store = DecisionStore(path)
        store.preload()
        path.unlink()
        assert store.is_seen("a")

    def test_autosave_off_defers_writes_until_save(self, tmp_path):
        path = tmp_path / "decisions.json"
        store = DecisionStore(path, autosave=False)
        store.mark_seen(candidate("a"))
        store.add_favorite(candidate("a"))
        assert not path.exists()

        store.save()

        data = json.loads(path.read_text())
        assert [r["id"] for r in data["favorites"]] == ["a"]
        assert DecisionStore(path).is_seen("a")


@pytest.mark.parametrize("ids", [["x"], ["x", "y", "z"]])
def test_stats(ids):
    store = DecisionStore()
    for cid in ids:
        store.mark_seen(candidate(cid))
    assert store.get_stats()['seen'] == len(ids)
