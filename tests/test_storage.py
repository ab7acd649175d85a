"""Tests for JSON persistence."""
import json

from mindmap_engine import storage
from mindmap_engine.models import Document


class TestDefaultPath:
    def test_env_var_overrides_data_dir(self, data_dir):
        assert storage.get_default_filepath() == str(data_dir / storage.DEFAULT_FILENAME)


class TestSaveAndLoad:
    def test_round_trip(self, tmp_path, sample_document):
        path = tmp_path / "nested" / "map.json"
        ok, msg = storage.save_map_to_file(sample_document, str(path))
        assert ok, msg
        loaded, msg = storage.load_map_from_file(str(path))
        assert loaded == sample_document
        assert "loaded successfully" in msg

    def test_missing_file(self, tmp_path):
        document, msg = storage.load_map_from_file(str(tmp_path / "absent.json"))
        assert document is None
        assert "not found" in msg

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        document, msg = storage.load_map_from_file(str(path))
        assert document is None
        assert "Could not decode JSON" in msg

    def test_empty_file_gives_fresh_document(self, tmp_path):
        path = tmp_path / "empty.json"
        path.write_text("", encoding="utf-8")
        document, _ = storage.load_map_from_file(str(path))
        assert isinstance(document, Document)
        assert document.root_node.children == []

    def test_repairs_on_load(self, tmp_path):
        path = tmp_path / "legacy.json"
        path.write_text(json.dumps({"title": "Old", "rootNode": {"id": "main", "text": "Main", "x": 1, "y": 2}}),
                        encoding="utf-8")
        document, msg = storage.load_map_from_file(str(path))
        assert document is not None
        assert document.root_node.id == "root"
        assert document.id.startswith("map_")
        assert "Repaired" in msg

    def test_unrepairable_duplicates_fail_to_load(self, tmp_path, sample_document):
        data = sample_document.to_dict()
        data["rootNode"]["children"].append({"id": "a", "text": "dup", "x": 0, "y": 0, "children": []})
        path = tmp_path / "dup.json"
        path.write_text(json.dumps(data), encoding="utf-8")
        document, msg = storage.load_map_from_file(str(path))
        assert document is None
        assert "corrupted" in msg

    def test_raw_data_is_returned_unchecked(self, tmp_path):
        path = tmp_path / "raw.json"
        path.write_text(json.dumps({"title": "only"}), encoding="utf-8")
        data, _ = storage.load_raw_map_data(str(path))
        assert data == {"title": "only"}
