"""Tests for the shared command actions."""
import os

import pytest

from mindmap_engine import commands_core as core
from mindmap_engine.commands_core import CommandStatus
from mindmap_engine.history import HistoryManager
from mindmap_engine.models import DocumentSettings


class TestMapActions:
    def test_new_map_refuses_to_overwrite(self, tmp_path):
        path = str(tmp_path / "map.json")
        status, document, _ = core.new_map_action(path, force=False, title="Plans")
        assert status == CommandStatus.SUCCESS
        assert document.title == "Plans"
        assert os.path.exists(path)

        status, document, msg = core.new_map_action(path, force=False)
        assert status == CommandStatus.ALREADY_EXISTS
        assert document is None
        assert "--force" in msg

        status, _, _ = core.new_map_action(path, force=True)
        assert status == CommandStatus.SUCCESS

    def test_load_missing(self, tmp_path):
        status, document, _ = core.load_map_action(str(tmp_path / "nope.json"))
        assert status == CommandStatus.NOT_FOUND
        assert document is None

    def test_save_refuses_invalid_document(self, tmp_path, sample_document):
        sample_document.root_node.children[1].id = "a"
        path = tmp_path / "bad.json"
        status, _, _ = core.save_map_action(sample_document, str(path))
        assert status == CommandStatus.ERROR
        assert not path.exists()


class TestNodeActions:
    def test_add_under_root_by_default(self, sample_document):
        status, (new_doc, node), _ = core.add_node_action(sample_document, "New idea")
        assert status == CommandStatus.SUCCESS
        assert new_doc.root_node.children[-1].id == node.id
        assert len(sample_document.root_node.children) == 3

    def test_add_with_explicit_and_duplicate_id(self, sample_document):
        status, (new_doc, _), _ = core.add_node_action(sample_document, "x", "b", node_id="fixed")
        assert status == CommandStatus.SUCCESS
        status, data, _ = core.add_node_action(new_doc, "y", "root", node_id="fixed")
        assert status == CommandStatus.ALREADY_EXISTS
        assert data is None

    def test_add_unknown_parent(self, sample_document):
        status, data, _ = core.add_node_action(sample_document, "x", "ghost")
        assert status == CommandStatus.NOT_FOUND
        assert data is None

    def test_edit_patch(self, sample_document):
        status, new_doc, _ = core.edit_node_action(sample_document, "b", {"text": "Bee", "color": "red"})
        assert status == CommandStatus.SUCCESS
        b = new_doc.root_node.children[1]
        assert (b.text, b.color) == ("Bee", "red")

    def test_edit_rejects_id_change(self, sample_document):
        status, new_doc, _ = core.edit_node_action(sample_document, "b", {"id": "c"})
        assert status == CommandStatus.INVALID_OPERATION
        assert new_doc is None

    def test_toggle_collapse(self, sample_document):
        status, new_doc, msg = core.toggle_collapse_action(sample_document, "a")
        assert status == CommandStatus.SUCCESS
        assert new_doc.root_node.children[0].collapsed
        assert "collapsed" in msg
        _, again, msg = core.toggle_collapse_action(new_doc, "a")
        assert not again.root_node.children[0].collapsed
        assert "expanded" in msg

    def test_toggle_collapse_passes_on_edit_failure(self, sample_document, monkeypatch):
        monkeypatch.setattr(core, "edit_node_action",
                            lambda document, node_id, patch: (CommandStatus.ERROR, None, "disk full"))
        status, new_doc, msg = core.toggle_collapse_action(sample_document, "a")
        assert status == CommandStatus.ERROR
        assert new_doc is None
        assert msg == "disk full"

    def test_toggle_collapse_missing_node(self, sample_document):
        status, new_doc, _ = core.toggle_collapse_action(sample_document, "ghost")
        assert status == CommandStatus.NOT_FOUND
        assert new_doc is None

    @pytest.mark.parametrize("patch", [{"text": 5}, {"collapsed": "yes"}, {"color": 3}])
    def test_edit_rejects_wrong_value_types(self, sample_document, patch):
        status, new_doc, msg = core.edit_node_action(sample_document, "b", patch)
        assert status == CommandStatus.INVALID_OPERATION
        assert new_doc is None
        assert "Invalid value" in msg

    def test_delete_root_is_invalid(self, sample_document):
        status, new_doc, _ = core.delete_node_action(sample_document, "root")
        assert status == CommandStatus.INVALID_OPERATION
        assert new_doc is None

    def test_delete_counts_subtree(self, sample_document):
        status, new_doc, msg = core.delete_node_action(sample_document, "a")
        assert status == CommandStatus.SUCCESS
        assert "3 node(s)" in msg
        assert [c.id for c in new_doc.root_node.children] == ["b", "c"]

    def test_move_into_descendant(self, sample_document):
        status, _, _ = core.move_node_action(sample_document, "c", "c1")
        assert status == CommandStatus.INVALID_OPERATION

    def test_reorder(self, sample_document):
        status, new_doc, _ = core.reorder_node_action(sample_document, "c", 0)
        assert status == CommandStatus.SUCCESS
        assert [c.id for c in new_doc.root_node.children] == ["c", "a", "b"]

    def test_auto_layout_keeps_root_in_place(self, sample_document):
        sample_document.settings = DocumentSettings(auto_save=False, auto_layout=True)
        sample_document.root_node.x, sample_document.root_node.y = 10, 20
        _, (new_doc, node), _ = core.add_node_action(sample_document, "laid out")
        assert (new_doc.root_node.x, new_doc.root_node.y) == (10, 20)
        placed = new_doc.root_node.children[-1]
        assert placed.id == node.id
        assert placed.x != 10

    def test_auto_layout_places_children_around_root(self, sample_document):
        sample_document.settings = DocumentSettings(auto_save=False, auto_layout=True)
        sample_document.root_node.x, sample_document.root_node.y = 100, 500
        _, new_doc, _ = core.edit_node_action(sample_document, "b", {"text": "Bee"})
        a, b, c = new_doc.root_node.children
        assert (a.x, a.y) == (280, 470)
        assert b.x == -80
        assert c.x == 280


class TestLayoutAndIntegrityActions:
    def test_layout_auto_reports_choice(self, sample_document):
        status, new_doc, msg = core.layout_action(sample_document)
        assert status == CommandStatus.SUCCESS
        assert "'mindmap'" in msg
        assert new_doc.root_node.x == 400

    def test_unknown_layout(self, sample_document):
        status, new_doc, _ = core.layout_action(sample_document, "spiral")
        assert status == CommandStatus.INVALID_OPERATION
        assert new_doc is None

    def test_bad_layout_option(self, sample_document):
        status, _, msg = core.layout_action(sample_document, "hierarchical", direction="sideways")
        assert status == CommandStatus.ERROR
        assert "Invalid layout options" in msg

    @pytest.mark.parametrize("options", [{"center_x": "left"}, {"base_radius": None}, {"level_spacing": "200"}])
    def test_non_numeric_layout_option(self, sample_document, options):
        status, new_doc, msg = core.layout_action(sample_document, "radial", **options)
        assert status == CommandStatus.ERROR
        assert new_doc is None
        assert "must be a number" in msg

    def test_check_and_repair(self):
        status, result, _ = core.check_map_action({"id": "m", "title": "T"})
        assert status == CommandStatus.ERROR
        assert not result.is_valid
        status, document, msg = core.repair_map_action({"id": "m", "title": "T"})
        assert status == CommandStatus.SUCCESS
        assert document.root_node.id == "root"
        assert "Repaired 1 problem(s)" in msg

    def test_repair_nothing(self):
        status, document, _ = core.repair_map_action(None)
        assert status == CommandStatus.ERROR
        assert document is None


class TestOutputActions:
    def test_search_returns_paths(self, sample_document):
        status, results, msg = core.search_map_action(sample_document, "c1")
        assert status == CommandStatus.SUCCESS
        node, path = results[0]
        assert node.id == "c1"
        assert [n.id for n in path] == ["root", "c", "c1"]
        assert "Found 1" in msg

    def test_search_no_match(self, sample_document):
        _, results, msg = core.search_map_action(sample_document, "zzz")
        assert results == []
        assert "No nodes found" in msg

    def test_render_tree_lines(self, sample_document):
        lines = core.render_tree_lines(sample_document.root_node)
        assert lines[0] == "ROOT (ID: root)"
        assert lines[1] == "├── A (ID: a)"
        assert lines[2] == "│   ├── A1 (ID: a1)"
        assert lines[-1] == "    └── C1 (ID: c1)"

    def test_export_to_file(self, tmp_path, sample_document):
        out = tmp_path / "out.txt"
        status, content, _ = core.export_map_action(sample_document, str(out))
        assert status == CommandStatus.SUCCESS
        assert content is None
        assert out.read_text(encoding="utf-8").startswith("# Test Map\nROOT (ID: root)")


class TestUndoRedoActions:
    def test_nothing_to_undo(self):
        status, document, msg = core.undo_action(HistoryManager())
        assert status == CommandStatus.INVALID_OPERATION
        assert document is None
        assert msg == "Nothing to undo."

    def test_undo_then_redo(self, sample_document):
        history = HistoryManager()
        history.push(sample_document)
        _, (changed, _), _ = core.add_node_action(sample_document, "extra")
        history.push(changed)
        status, document, _ = core.undo_action(history)
        assert status == CommandStatus.SUCCESS
        assert document == sample_document
        status, document, _ = core.redo_action(history)
        assert document == changed
        assert core.redo_action(history)[0] == CommandStatus.INVALID_OPERATION


class TestHelp:
    @pytest.mark.parametrize("alias,target", [("ls", "list"), ("z", "undo"), ("mv", "move")])
    def test_aliases_resolve(self, alias, target):
        assert core.get_specific_help_text(alias).startswith(core.detailed_help_messages[target].split("\n")[0])

    def test_unknown_command(self):
        assert "Unknown command" in core.get_specific_help_text("fly")

    def test_general_help_lists_commands(self):
        text = core.get_general_help_text()
        for name in ("add", "layout", "undo", "repair"):
            assert f"  {name}" in text
