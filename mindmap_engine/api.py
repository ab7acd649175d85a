# mindmap_engine/api.py
import logging
import os
from typing import Any, Dict, Optional

from flask import Flask, request, jsonify
from flask_cors import CORS # For Cross-Origin Resource Sharing

from .history import HistoryManager
from .models import Document
from .storage import get_default_filepath, load_raw_map_data
from .commands_core import (
    CommandStatus,
    new_map_action,
    load_map_action,
    save_map_action,
    add_node_action,
    edit_node_action,
    delete_node_action,
    move_node_action,
    layout_action,
    check_map_action,
    repair_map_action,
    search_map_action,
    export_map_action,
    undo_action,
    redo_action,
)

logger = logging.getLogger(__name__)

HTTP_STATUS_FOR = {
    CommandStatus.SUCCESS: 200,
    CommandStatus.ERROR: 400,
    CommandStatus.NOT_FOUND: 404,
    CommandStatus.ALREADY_EXISTS: 409,
    CommandStatus.INVALID_OPERATION: 409,
}


class MapSession:
    """The document the API is working on, where it lives on disk, and its history."""
    def __init__(self, filepath: Optional[str] = None):
        self.document: Optional[Document] = None
        self.filepath: Optional[str] = filepath
        self.history = HistoryManager()

    def replace(self, document: Document, filepath: Optional[str] = None) -> None:
        """Starts over with `document`, e.g. after new/load/repair."""
        self.document = document
        if filepath:
            self.filepath = filepath
        self.history.clear()
        self.history.push(document)

    def commit(self, document: Document) -> str:
        """Records a change. Returns a warning to append to the message, or ''."""
        self.history.push(document)
        return self.restore(document)

    def restore(self, document: Document) -> str:
        """Makes `document` current without touching history, e.g. after undo/redo."""
        self.document = document
        if not document.settings.auto_save:
            return ""
        if not self.filepath:
            return " | Warning: Map not auto-saved (no filepath)."
        s_status, _, s_msg = save_map_action(document, self.filepath)
        if s_status != CommandStatus.SUCCESS:
            return f" | Warning: Failed to auto-save: {s_msg}"
        return ""

    def state(self) -> Dict[str, Any]:
        return {
            "filepath": self.filepath,
            "canUndo": self.history.can_undo,
            "canRedo": self.history.can_redo,
        }


def _error(status: str, message: str, http_status: Optional[int] = None):
    return jsonify({"status": status, "message": message}), http_status or HTTP_STATUS_FOR.get(status, 400)


def _no_map():
    return _error(CommandStatus.ERROR, "No map loaded. Use /map/new or /map/load first.")


def _body() -> Dict[str, Any]:
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def create_app(filepath: Optional[str] = None, load_existing: bool = False) -> Flask:
    """
    Builds the API app around a single in-memory MapSession.

    With `load_existing`, the map at `filepath` (or the default path) is
    loaded on startup if it exists.
    """
    app = Flask(__name__)
    CORS(app) # This will enable CORS for all routes
    session = MapSession(filepath=filepath)
    app.config["MINDMAP_SESSION"] = session

    if load_existing:
        startup_path = filepath or get_default_filepath()
        if os.path.exists(startup_path):
            status, document, msg = load_map_action(startup_path)
            if status == CommandStatus.SUCCESS and document:
                session.replace(document, startup_path)
                logger.info("Loaded map on startup: %s", msg)
            else:
                logger.warning("Could not load map on startup: %s", msg)

    def map_response(status: str, message: str, http_status: int = 200, **extra: Any):
        payload = {"status": status, "message": message,
                   "map": session.document.to_dict() if session.document else None}
        payload.update(session.state())
        payload.update(extra)
        return jsonify(payload), http_status

    def apply_change(status: str, new_document: Optional[Document], msg: str, http_status: int = 200, **extra: Any):
        if status != CommandStatus.SUCCESS or new_document is None:
            return _error(status, msg)
        warning = session.commit(new_document)
        return map_response(status, msg + warning, http_status, **extra)

    @app.route('/status', methods=['GET'])
    def api_status_check():
        """A simple endpoint to check if the API is running."""
        return jsonify({"status": "ok", "message": "MindMap API is running.",
                        "isLoaded": session.document is not None}), 200

    @app.route('/map/new', methods=['POST'])
    def api_new_map():
        data = _body()
        target = data.get('filepath') or session.filepath or get_default_filepath()
        status, document, msg = new_map_action(target, bool(data.get('force', False)), title=data.get('title'))
        if status == CommandStatus.SUCCESS and document:
            session.replace(document, target)
            return map_response(status, msg, 201)
        return _error(status, msg)

    @app.route('/map/load', methods=['POST'])
    def api_load_map():
        target = _body().get('filepath') or session.filepath or get_default_filepath()
        status, document, msg = load_map_action(target)
        if status == CommandStatus.SUCCESS and document:
            session.replace(document, target)
            return map_response(status, msg)
        return _error(status, msg)

    @app.route('/map/save', methods=['POST'])
    def api_save_map():
        if not session.document:
            return _no_map()
        save_path = _body().get('filepath') or session.filepath
        if not save_path:
            return _error(CommandStatus.ERROR, "No filepath specified or previously set to save.")
        status, _, msg = save_map_action(session.document, save_path)
        if status != CommandStatus.SUCCESS:
            return _error(status, msg, 500)
        session.filepath = save_path
        return jsonify({"status": status, "message": msg, "filepath": save_path}), 200

    @app.route('/map', methods=['GET'])
    def api_get_map():
        if not session.document:
            return jsonify({"status": CommandStatus.SUCCESS, "message": "No map loaded.", "map": None}), 200
        return map_response(CommandStatus.SUCCESS, "Current map data.")

    @app.route('/node/add', methods=['POST'])
    def api_add_node():
        if not session.document:
            return _no_map()
        data = _body()
        if 'text' not in data:
            return _error(CommandStatus.ERROR, "Missing 'text' in request body")
        status, result, msg = add_node_action(session.document, data['text'], data.get('parent_id'),
                                              node_id=data.get('id'))
        new_document, new_node = result if result else (None, None)
        return apply_change(status, new_document, msg, 201, node_id=new_node.id if new_node else None)

    @app.route('/node/<node_id>', methods=['PUT'])
    def api_edit_node(node_id: str):
        if not session.document:
            return _no_map()
        patch = _body()
        if 'new_text' in patch: # older clients
            patch['text'] = patch.pop('new_text')
        if not patch:
            return _error(CommandStatus.ERROR, "Request body must hold the fields to change, e.g. {'text': ...}")
        status, new_document, msg = edit_node_action(session.document, node_id, patch)
        return apply_change(status, new_document, msg)

    @app.route('/node/<node_id>', methods=['DELETE'])
    def api_delete_node(node_id: str):
        if not session.document:
            return _no_map()
        status, new_document, msg = delete_node_action(session.document, node_id)
        return apply_change(status, new_document, msg)

    @app.route('/node/move', methods=['POST'])
    def api_move_node():
        if not session.document:
            return _no_map()
        data = _body()
        if 'node_id' not in data or 'new_parent_id' not in data:
            return _error(CommandStatus.ERROR, "Missing 'node_id' or 'new_parent_id' in request body")
        status, new_document, msg = move_node_action(session.document, data['node_id'], data['new_parent_id'])
        return apply_change(status, new_document, msg)

    @app.route('/map/layout', methods=['POST'])
    def api_layout_map():
        if not session.document:
            return _no_map()
        options = dict(_body())
        name = options.pop('name', 'auto')
        status, new_document, msg = layout_action(session.document, name, **options)
        return apply_change(status, new_document, msg)

    @app.route('/map/undo', methods=['POST'])
    def api_undo():
        status, document, msg = undo_action(session.history)
        if document is None:
            return _error(status, msg)
        warning = session.restore(document)
        return map_response(status, msg + warning)

    @app.route('/map/redo', methods=['POST'])
    def api_redo():
        status, document, msg = redo_action(session.history)
        if document is None:
            return _error(status, msg)
        warning = session.restore(document)
        return map_response(status, msg + warning)

    @app.route('/map/check', methods=['GET'])
    def api_check_map():
        if session.document:
            data = session.document
        elif session.filepath:
            data, load_msg = load_raw_map_data(session.filepath)
            if data is None:
                return _error(CommandStatus.NOT_FOUND, load_msg)
        else:
            return _no_map()
        status, result, msg = check_map_action(data)
        return jsonify({"status": status, "message": msg, "result": result.to_dict()}), 200

    @app.route('/map/repair', methods=['POST'])
    def api_repair_map():
        data = _body().get('map')
        if data is None:
            if session.document:
                data = session.document.to_dict()
            elif session.filepath:
                data, load_msg = load_raw_map_data(session.filepath)
                if data is None:
                    return _error(CommandStatus.NOT_FOUND, load_msg)
            else:
                return _no_map()
        status, document, msg = repair_map_action(data)
        if status != CommandStatus.SUCCESS or document is None:
            return _error(status, msg)
        session.replace(document)
        return map_response(status, msg)

    @app.route('/map/search', methods=['GET'])
    def api_search_map():
        if not session.document:
            return _no_map()
        search_text = request.args.get('text')
        if not search_text:
            return _error(CommandStatus.ERROR, "Missing 'text' query parameter")
        status, results, msg = search_map_action(session.document, search_text)
        api_results = [
            {
                "node": {k: v for k, v in node.to_dict().items() if k != "children"},
                "path": [n.id for n in path_nodes] if path_nodes else [],
            }
            for node, path_nodes in results
        ]
        return jsonify({"status": status, "message": msg, "results": api_results}), 200

    @app.route('/map/export', methods=['GET'])
    def api_export_map():
        if not session.document:
            return _no_map()
        status, content, msg = export_map_action(session.document, export_filepath=None)
        if status != CommandStatus.SUCCESS:
            return _error(status, msg, 500)
        return jsonify({"status": status, "message": msg, "content": content or ""}), 200

    return app


if __name__ == '__main__':
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    create_app(load_existing=True).run(debug=True, host='0.0.0.0', port=5001) # 5001 avoids common conflicts
