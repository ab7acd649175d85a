"""Tests for the undo/redo snapshot history."""
import pytest

from mindmap_engine.history import HistoryManager
from mindmap_engine.models import Node


def snapshot(doc, text):
    return doc.with_root(Node("root", text=text))


class TestHistoryManager:
    def test_empty_history(self):
        history = HistoryManager()
        assert not history.can_undo
        assert not history.can_redo
        assert history.undo() is None
        assert history.redo() is None
        assert history.current() is None
        assert history.index == -1

    def test_undo_redo_symmetry(self, sample_document):
        history = HistoryManager()
        states = [snapshot(sample_document, f"v{i}") for i in range(4)]
        for state in states:
            history.push(state)

        assert history.undo() == states[2]
        assert history.undo() == states[1]
        assert history.redo() == states[2]
        assert history.redo() == states[3]
        assert not history.can_redo

    def test_push_after_undo_drops_redo_states(self, sample_document):
        history = HistoryManager()
        for i in range(3):
            history.push(snapshot(sample_document, f"v{i}"))
        history.undo()
        history.push(snapshot(sample_document, "branch"))
        assert not history.can_redo
        assert len(history) == 3
        assert history.current().root_node.text == "branch"

    def test_eviction_keeps_last_max_size(self, sample_document):
        history = HistoryManager(max_size=50)
        for i in range(60):
            history.push(snapshot(sample_document, f"v{i}"))
        assert len(history) == 50
        assert history.index == 49
        while history.can_undo:
            oldest = history.undo()
        assert oldest.root_node.text == "v10"

    def test_snapshots_are_isolated(self, sample_document):
        history = HistoryManager()
        history.push(sample_document)
        sample_document.root_node.text = "mutated after push"
        restored = history.current()
        assert restored.root_node.text == "ROOT"
        restored.root_node.text = "mutated after read"
        assert history.current().root_node.text == "ROOT"

    def test_clear(self, sample_document):
        history = HistoryManager()
        history.push(sample_document)
        history.clear()
        assert len(history) == 0
        assert history.current() is None

    def test_timeline_marks_current(self, sample_document):
        history = HistoryManager()
        history.push(sample_document)
        history.push(snapshot(sample_document, "v1"))
        history.undo()
        timeline = history.timeline()
        assert [entry["current"] for entry in timeline] == [True, False]
        assert timeline[0]["nodeCount"] == 7

    def test_invalid_max_size(self):
        with pytest.raises(ValueError):
            HistoryManager(max_size=0)
