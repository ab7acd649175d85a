# mindmap_engine/storage.py
import json
import logging
import os
import sys
from typing import Any, Optional, Tuple

from . import integrity
from .models import Document, create_initial_document, is_valid_document_dict

logger = logging.getLogger(__name__)

DEFAULT_DATA_SUBDIR_NAME = "data"
DEFAULT_FILENAME = "my_map.json"
DATA_DIR_ENV_VAR = "MINDMAP_DATA_DIR"


def get_default_filepath() -> str:
    """
    Returns the default mind map file path.

    Uses $MINDMAP_DATA_DIR when set, otherwise a 'data' directory next to the
    executed script. The directory is created by save_map_to_file if needed.
    """
    data_dir_path = os.environ.get(DATA_DIR_ENV_VAR)
    if not data_dir_path:
        try:
            script_dir = os.path.dirname(os.path.abspath(sys.argv[0]))
        except (IndexError, TypeError):
            script_dir = os.getcwd()
        data_dir_path = os.path.join(script_dir, DEFAULT_DATA_SUBDIR_NAME)
    return os.path.join(data_dir_path, DEFAULT_FILENAME)


def save_map_to_file(document: Document, filepath: str) -> Tuple[bool, str]:
    """Saves the document as JSON. Returns (success_status, message)."""
    try:
        map_data = document.to_dict()
        dir_name = os.path.dirname(filepath)
        if dir_name:
            os.makedirs(dir_name, exist_ok=True)
        with open(filepath, 'w', encoding='utf-8') as f:
            json.dump(map_data, f, indent=4, ensure_ascii=False)
        logger.debug("Saved map %s to %s", document.id, filepath)
        return True, f"Mind map saved successfully to '{filepath}'"
    except OSError as e:
        return False, f"Error: Could not write to file '{filepath}'. {e}"
    except TypeError as e: # data that json.dump cannot serialize
        return False, f"Error: Could not serialize mind map data. {e}"


def load_raw_map_data(filepath: str) -> Tuple[Optional[Any], str]:
    """Reads the parsed JSON without any checks. An empty file yields an empty dict."""
    if not os.path.exists(filepath):
        return None, f"Info: File '{filepath}' not found. Starting with an empty map or create new."
    if not os.path.isfile(filepath):
        return None, f"Error: Path '{filepath}' is not a file."

    try:
        with open(filepath, 'r', encoding='utf-8') as f:
            if os.fstat(f.fileno()).st_size == 0:
                return {}, f"Info: File '{filepath}' is empty."
            return json.load(f), f"Read '{filepath}'."
    except json.JSONDecodeError as e:
        return None, f"Error: Could not decode JSON from '{filepath}'. Invalid format? {e}"
    except OSError as e:
        return None, f"Error: Could not read file '{filepath}'. {e}"


def load_map_from_file(filepath: str) -> Tuple[Optional[Document], str]:
    """
    Loads a document from a JSON file. Returns (document_or_None, message).

    The raw data goes through the integrity checker first; an invalid map is
    repaired when possible and rejected otherwise.
    """
    map_data, msg = load_raw_map_data(filepath)
    if map_data is None:
        return None, msg
    if map_data == {}:
        return create_initial_document(), f"Info: File '{filepath}' is empty. Loaded a new mind map."

    result = integrity.check(map_data)
    note = ""
    if not result.is_valid or not is_valid_document_dict(map_data):
        integrity.log_integrity_report(result, map_data)
        repair_result = integrity.repair(map_data)
        if repair_result.repaired is None:
            return None, f"Error: Invalid map data format in '{filepath}' and it could not be repaired."
        recheck = integrity.check(repair_result.repaired)
        if not recheck.is_valid:
            problems = "; ".join(issue.description for issue in recheck.issues if issue.severity == integrity.CRITICAL)
            return None, f"Error: Map data in '{filepath}' is corrupted beyond automatic repair: {problems}"
        map_data = repair_result.repaired
        if repair_result.issues:
            note = f" Repaired {len(repair_result.issues)} problem(s)."

    try:
        document = Document.from_dict(map_data)
    except (KeyError, TypeError, ValueError) as e:
        return None, f"Error: Invalid map data format in '{filepath}'. {e}"
    return document, f"Mind map loaded successfully from '{filepath}'.{note}"
