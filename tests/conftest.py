"""
Pytest configuration: puts the project root on sys.path and provides
small mind map trees shared by the test modules.
"""
import sys
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent.absolute()
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from mindmap_engine.models import Document, DocumentSettings, Node  # noqa: E402


def make_tree(spec):
    """Builds a Node tree from nested (id, [children]) tuples."""
    node_id, children = spec
    return Node(node_id, text=node_id.upper(), children=[make_tree(child) for child in children])


def chain(count: int) -> Node:
    """Root with `count - 1` direct children, `count` nodes in total."""
    return Node("root", text="Root", children=[Node(f"n{i}", text=f"Node {i}") for i in range(1, count)])


@pytest.fixture
def sample_tree():
    # root -> a -> (a1, a2), b, c -> c1
    return make_tree(("root", [("a", [("a1", []), ("a2", [])]), ("b", []), ("c", [("c1", [])])]))


@pytest.fixture
def sample_document(sample_tree):
    return Document("map_test", "Test Map", sample_tree,
                    settings=DocumentSettings(auto_save=False, auto_layout=False),
                    created_at="2024-01-01T00:00:00+00:00", updated_at="2024-01-01T00:00:00+00:00")


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Points the default map location at a temporary directory."""
    monkeypatch.setenv("MINDMAP_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("NO_COLOR", "1")
    return tmp_path
