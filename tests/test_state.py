"""Tests for state module."""

import threading

import pytest

from fim.models import DIR
from fim.state import RuntimeState


class TestRuntimeState:
    """Tests for RuntimeState class."""

    def test_initial_entries_are_copied(self):
        initial = {"a.txt": "h1"}
        state = RuntimeState(initial)
        initial["b.txt"] = "h2"

        assert len(state) == 1
        assert state.get("a.txt") == "h1"

    def test_set_get_remove(self):
        state = RuntimeState()
        state.set("a.txt", "h1")

        assert "a.txt" in state
        assert state.remove("a.txt") == "h1"
        assert state.remove("a.txt") is None
        assert state.get("a.txt") is None

    def test_root_is_never_tracked(self):
        with pytest.raises(ValueError):
            RuntimeState().set("", DIR)

    def test_is_dir(self):
        state = RuntimeState({"docs": DIR, "docs/a.txt": "h1"})

        assert state.is_dir("docs") is True
        assert state.is_dir("docs/a.txt") is False
        assert state.is_dir("missing") is False

    def test_has_descendants(self):
        state = RuntimeState({"docs/a.txt": "h1", "docs2": DIR})

        assert state.has_descendants("docs") is True
        assert state.has_descendants("docs2") is False
        assert state.has_descendants("doc") is False

    def test_descendants(self):
        state = RuntimeState({
            "docs": DIR,
            "docs/b.txt": "h2",
            "docs/a.txt": "h1",
            "docs2/c.txt": "h3",
        })

        assert state.descendants("docs") == ["docs/a.txt", "docs/b.txt"]
        assert state.descendants("docs/a.txt") == []

    def test_remap_subtree(self):
        state = RuntimeState({
            "old": DIR,
            "old/a.txt": "h1",
            "old/sub": DIR,
            "old/sub/b.txt": "h2",
            "older.txt": "h3",
        })

        assert state.remap_subtree("old", "new") == 4
        assert state.snapshot() == {
            "new": DIR,
            "new/a.txt": "h1",
            "new/sub": DIR,
            "new/sub/b.txt": "h2",
            "older.txt": "h3",
        }

    def test_remove_subtree(self):
        state = RuntimeState({"docs": DIR, "docs/a.txt": "h1", "docsx": DIR})

        removed = state.remove_subtree("docs")

        assert sorted(removed) == ["docs", "docs/a.txt"]
        assert state.snapshot() == {"docsx": DIR}

    def test_snapshot_is_a_copy(self):
        state = RuntimeState({"a.txt": "h1"})
        snap = state.snapshot()
        snap["b.txt"] = "h2"

        assert "b.txt" not in state

    def test_iteration_while_writing(self):
        state = RuntimeState({f"f{i}.txt": "h" for i in range(100)})

        def writer():
            for i in range(100, 300):
                state.set(f"f{i}.txt", "h")

        thread = threading.Thread(target=writer)
        thread.start()
        for _ in range(20):
            list(state)
        thread.join()

        assert len(state) == 300
