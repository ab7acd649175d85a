"""Tests for the Flask JSON API, using the Flask test client."""
import json

import pytest

from mindmap_engine.api import create_app


@pytest.fixture
def client(tmp_path, data_dir):
    app = create_app(filepath=str(tmp_path / "api_map.json"))
    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def loaded(client):
    response = client.post("/map/new", json={"title": "API Map"})
    assert response.status_code == 201
    return client


def root_children(client):
    return [c["id"] for c in client.get("/map").get_json()["map"]["rootNode"]["children"]]


class TestMapEndpoints:
    def test_status(self, client):
        body = client.get("/status").get_json()
        assert body["status"] == "ok"
        assert body["isLoaded"] is False

    def test_get_map_without_map(self, client):
        assert client.get("/map").get_json()["map"] is None

    def test_node_ops_require_a_map(self, client):
        response = client.post("/node/add", json={"text": "x"})
        assert response.status_code == 400

    def test_new_twice_conflicts(self, loaded):
        response = loaded.post("/map/new", json={"title": "Again"})
        assert response.status_code == 409
        assert loaded.post("/map/new", json={"title": "Again", "force": True}).status_code == 201

    def test_load_missing_file(self, client, tmp_path):
        response = client.post("/map/load", json={"filepath": str(tmp_path / "missing.json")})
        assert response.status_code == 404

    def test_save_and_load(self, loaded, tmp_path):
        target = str(tmp_path / "copy.json")
        assert loaded.post("/map/save", json={"filepath": target}).status_code == 200
        body = loaded.post("/map/load", json={"filepath": target}).get_json()
        assert body["map"]["title"] == "API Map"
        assert body["filepath"] == target

    def test_cors_header(self, client):
        response = client.get("/status", headers={"Origin": "http://localhost:3000"})
        assert response.headers.get("Access-Control-Allow-Origin") in ("*", "http://localhost:3000")


class TestNodeEndpoints:
    def test_add_edit_delete(self, loaded):
        response = loaded.post("/node/add", json={"text": "Idea", "id": "idea"})
        assert response.status_code == 201
        assert response.get_json()["node_id"] == "idea"

        response = loaded.put("/node/idea", json={"text": "Better idea", "color": "blue"})
        assert response.status_code == 200
        node = response.get_json()["map"]["rootNode"]["children"][0]
        assert (node["text"], node["color"]) == ("Better idea", "blue")

        assert loaded.delete("/node/idea").status_code == 200
        assert root_children(loaded) == []

    def test_add_duplicate_id(self, loaded):
        loaded.post("/node/add", json={"text": "A", "id": "a"})
        assert loaded.post("/node/add", json={"text": "A", "id": "a"}).status_code == 409

    def test_add_missing_text(self, loaded):
        assert loaded.post("/node/add", json={}).status_code == 400

    def test_edit_unknown_node(self, loaded):
        assert loaded.put("/node/ghost", json={"text": "x"}).status_code == 404

    @pytest.mark.parametrize("patch", [{"text": 5}, {"collapsed": "yes"}, {"x": "left"}])
    def test_edit_with_wrong_value_type(self, loaded, patch):
        loaded.post("/node/add", json={"text": "Idea", "id": "idea"})
        response = loaded.put("/node/idea", json=patch)
        assert response.status_code == 409
        assert "Invalid value" in response.get_json()["message"]
        assert loaded.get("/map").get_json()["map"]["rootNode"]["children"][0]["text"] == "Idea"

    def test_delete_root_conflicts(self, loaded):
        assert loaded.delete("/node/root").status_code == 409

    def test_move_and_cycle(self, loaded):
        loaded.post("/node/add", json={"text": "A", "id": "a"})
        loaded.post("/node/add", json={"text": "B", "id": "b", "parent_id": "a"})
        assert loaded.post("/node/move", json={"node_id": "a", "new_parent_id": "b"}).status_code == 409
        assert loaded.post("/node/move", json={"node_id": "b", "new_parent_id": "root"}).status_code == 200
        assert root_children(loaded) == ["a", "b"]


class TestHistoryAndTools:
    def test_undo_redo(self, loaded):
        loaded.post("/node/add", json={"text": "A", "id": "a"})
        body = loaded.post("/map/undo").get_json()
        assert body["map"]["rootNode"]["children"] == []
        assert body["canRedo"] is True
        assert loaded.post("/map/redo").status_code == 200
        assert root_children(loaded) == ["a"]
        assert loaded.post("/map/redo").status_code == 409

    def test_undo_is_auto_saved(self, loaded, tmp_path):
        loaded.post("/node/add", json={"text": "A", "id": "a"})
        loaded.post("/map/undo")
        with open(tmp_path / "api_map.json", encoding="utf-8") as f:
            assert json.load(f)["rootNode"]["children"] == []

    def test_layout(self, loaded):
        loaded.post("/node/add", json={"text": "A", "id": "a"})
        response = loaded.post("/map/layout", json={"name": "circular"})
        assert response.status_code == 200
        assert loaded.post("/map/layout", json={"name": "spiral"}).status_code == 409

    def test_layout_with_non_numeric_option(self, loaded):
        loaded.post("/node/add", json={"text": "A", "id": "a"})
        response = loaded.post("/map/layout", json={"name": "radial", "center_x": "left"})
        assert response.status_code == 400
        assert "center_x" in response.get_json()["message"]

    def test_check_and_repair(self, loaded):
        body = loaded.get("/map/check").get_json()
        assert body["result"]["isValid"] is True

        response = loaded.post("/map/repair", json={"map": {"id": "m1", "title": "Broken"}})
        assert response.status_code == 200
        assert response.get_json()["map"]["rootNode"]["id"] == "root"

    def test_repair_nothing(self, client):
        assert client.post("/map/repair", json={"map": {}}).status_code == 400

    def test_search_and_export(self, loaded):
        loaded.post("/node/add", json={"text": "Budget", "id": "budget"})
        results = loaded.get("/map/search?text=budg").get_json()["results"]
        assert results[0]["node"]["id"] == "budget"
        assert results[0]["path"] == ["root", "budget"]
        assert loaded.get("/map/search").status_code == 400

        content = loaded.get("/map/export").get_json()["content"]
        assert content.startswith("# API Map")
