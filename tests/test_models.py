"""Tests for the Node / Document data model and its JSON form."""
import pytest

from mindmap_engine import constants
from mindmap_engine.models import (
    Document, Node, calculate_node_position, create_initial_document, create_new_node,
    generate_map_id, generate_node_id, is_valid_document_dict, is_valid_node_dict,
)


class TestNodeSerialization:
    """Node.to_dict / Node.from_dict."""

    def test_round_trip_keeps_structure_and_order(self, sample_tree):
        restored = Node.from_dict(sample_tree.to_dict())
        assert restored == sample_tree
        assert [c.id for c in restored.children] == ["a", "b", "c"]
        assert [c.id for c in restored.children[0].children] == ["a1", "a2"]

    def test_style_fields_use_camel_case_keys(self):
        node = Node("n1", text="Styled", font_size=14, background_color="#fff", border_width=2)
        data = node.to_dict()
        assert data["fontSize"] == 14
        assert data["backgroundColor"] == "#fff"
        assert data["borderWidth"] == 2
        assert "fontStyle" not in data

    def test_unknown_keys_are_preserved(self):
        data = {"id": "n1", "text": "x", "x": 1, "y": 2, "children": [], "customFlag": {"a": 1}}
        assert Node.from_dict(data).to_dict()["customFlag"] == {"a": 1}

    def test_missing_coordinates_default_to_center(self):
        node = Node.from_dict({"id": "n1"})
        assert (node.x, node.y) == (constants.DEFAULT_CENTER_X, constants.DEFAULT_CENTER_Y)
        assert node.text == ""

    def test_missing_id_raises_key_error(self):
        with pytest.raises(KeyError):
            Node.from_dict({"text": "no id"})

    def test_unknown_style_attribute_rejected(self):
        with pytest.raises(TypeError):
            Node("n1", sparkle=True)

    def test_deep_tree_does_not_hit_recursion_limit(self):
        root = Node("root")
        current = root
        for i in range(5000):
            child = Node(f"n{i}")
            current.children.append(child)
            current = child
        assert sum(1 for _ in Node.from_dict(root.to_dict()).iter_nodes()) == 5001

    def test_clone_is_independent(self, sample_tree):
        copy = sample_tree.clone()
        copy.children[0].text = "changed"
        assert sample_tree.children[0].text == "A"

    def test_shallow_copy_drops_children(self, sample_tree):
        assert sample_tree.shallow_copy().children == []


class TestDocument:
    """Document serialization and helpers."""

    def test_round_trip(self, sample_document):
        assert Document.from_dict(sample_document.to_dict()) == sample_document

    def test_json_keys(self, sample_document):
        data = sample_document.to_dict()
        assert {"id", "title", "createdAt", "updatedAt", "rootNode", "settings"} <= set(data)
        assert data["settings"] == {"autoSave": False, "autoLayout": False}

    def test_with_root_keeps_metadata(self, sample_document):
        new_doc = sample_document.with_root(Node("root", text="Other"))
        assert new_doc.id == sample_document.id
        assert new_doc.created_at == sample_document.created_at
        assert new_doc.updated_at != sample_document.updated_at
        assert sample_document.root_node.text == "ROOT"

    def test_initial_document(self):
        doc = create_initial_document()
        assert doc.title == constants.NEW_MAP_TITLE
        assert doc.root_node.id == constants.ROOT_ID
        assert (doc.root_node.x, doc.root_node.y) == (constants.ROOT_NODE_X, constants.ROOT_NODE_Y)
        assert doc.root_node.children == []
        assert doc.settings.auto_save and doc.settings.auto_layout


class TestFactories:
    def test_generated_ids_are_unique(self):
        ids = {generate_node_id() for _ in range(1000)}
        assert len(ids) == 1000
        assert all(i.startswith("node_") for i in ids)
        assert generate_map_id().startswith("map_")

    def test_new_node_sits_right_of_parent(self):
        parent = Node("p", x=100, y=50)
        node = create_new_node("child", parent)
        assert node.x == 100 + constants.RADIAL_BASE_RADIUS
        assert node.y == 50
        assert node.font_size == constants.DEFAULT_FONT_SIZE - 2

    def test_single_child_position_is_straight_up(self):
        x, y = calculate_node_position(Node("p", x=0, y=0), 0, 1)
        assert x == pytest.approx(0)
        assert y == pytest.approx(-constants.RADIAL_BASE_RADIUS)

    def test_position_without_parent_is_center(self):
        assert calculate_node_position(None, 0, 3) == (constants.DEFAULT_CENTER_X, constants.DEFAULT_CENTER_Y)


class TestValidationPredicates:
    def test_valid_document(self, sample_document):
        assert is_valid_document_dict(sample_document.to_dict())

    def test_root_must_have_canonical_id(self, sample_document):
        data = sample_document.to_dict()
        data["rootNode"]["id"] = "main"
        assert not is_valid_document_dict(data)

    def test_node_with_string_coordinates_is_invalid(self):
        assert not is_valid_node_dict({"id": "n", "text": "t", "x": "1", "y": 2, "children": []})
