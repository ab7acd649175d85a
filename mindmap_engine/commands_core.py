# mindmap_engine/commands_core.py
"""
Command actions shared by the CLI, the interactive shell and the web API.

Every action takes the current Document and returns a
(status, data, message) tuple. Mutating actions go through the normalized
store and hand back a *new* Document in `data`; on failure the caller keeps
its previous document, which is never modified.
"""
import logging
import os
from typing import Optional, List, Tuple, Any, Dict

from . import constants
from . import integrity
from . import layout
from . import normalized_store as store
from .errors import MindMapError, NotFoundError, DuplicateIdError, InvalidOperationError
from .history import HistoryManager
from .models import Document, Node, create_initial_document, create_new_node, calculate_node_position
from .storage import save_map_to_file, load_map_from_file, get_default_filepath

logger = logging.getLogger(__name__)


class CommandStatus:
    SUCCESS = "success"
    ERROR = "error"
    NOT_FOUND = "not_found"
    ALREADY_EXISTS = "already_exists"
    INVALID_OPERATION = "invalid_operation" # moving/deleting the root, cycles


# Result tuple structure: (status: CommandStatus, data: Any, message: str)

def _status_for_error(error: MindMapError) -> str:
    if isinstance(error, NotFoundError):
        return CommandStatus.NOT_FOUND
    if isinstance(error, DuplicateIdError):
        return CommandStatus.ALREADY_EXISTS
    if isinstance(error, InvalidOperationError):
        return CommandStatus.INVALID_OPERATION
    return CommandStatus.ERROR


def commit_tree(document: Document, normalized: store.NormalizedDocument) -> Document:
    """Turns a mutated normalized tree back into a Document, re-laying it out when autoLayout is on."""
    tree = store.denormalize(normalized)
    if document.settings.auto_layout:
        tree = layout.mindmap_layout_preserve_root(
            tree,
            center_x=tree.x or constants.DEFAULT_CENTER_X,
            center_y=tree.y or constants.DEFAULT_CENTER_Y,
            base_radius=constants.RADIAL_BASE_RADIUS + 30,
            level_spacing=constants.LEVEL_SPACING,
            min_vertical_spacing=constants.VERTICAL_SPACING_MIN,
        )
    return document.with_root(tree)


def new_map_action(filepath: str, force: bool, title: Optional[str] = None) -> Tuple[str, Optional[Document], str]:
    """Creates a new document holding only a root node and saves it to `filepath`."""
    if os.path.exists(filepath) and not force:
        display_path = filepath
        default_data_dir = os.path.dirname(get_default_filepath())
        if os.path.abspath(os.path.dirname(filepath)) == os.path.abspath(default_data_dir):
            display_path = os.path.basename(filepath)
        return CommandStatus.ALREADY_EXISTS, None, f"File '{display_path}' already exists. Use --force to overwrite."

    document = create_initial_document(title) if title else create_initial_document()
    success, msg = save_map_to_file(document, filepath)
    if success:
        return CommandStatus.SUCCESS, document, f"Created new mind map '{document.title}' in '{filepath}'."
    return CommandStatus.ERROR, document, f"New map created in memory, but failed to save: {msg}"


def load_map_action(filepath: str) -> Tuple[str, Optional[Document], str]:
    document, msg = load_map_from_file(filepath)
    if document:
        return CommandStatus.SUCCESS, document, msg
    if "not found" in msg.lower():
        return CommandStatus.NOT_FOUND, None, msg
    return CommandStatus.ERROR, None, msg


def save_map_action(document: Optional[Document], filepath: str) -> Tuple[str, None, str]:
    """Saves the document after an integrity check; an invalid document is not written."""
    if not document:
        return CommandStatus.ERROR, None, "Error: No mind map provided to save."
    if not integrity.validate_before_operation(document, "save"):
        return CommandStatus.ERROR, None, "Error: Mind map failed the integrity check and was not saved."
    success, msg = save_map_to_file(document, filepath)
    return (CommandStatus.SUCCESS if success else CommandStatus.ERROR), None, msg


def add_node_action(document: Document, text: str, parent_id: Optional[str] = None,
                    node_id: Optional[str] = None) -> Tuple[str, Optional[Tuple[Document, Node]], str]:
    """Adds a node as the last child of `parent_id` (the root when omitted). Data is (new_document, new_node)."""
    normalized = store.normalize(document.root_node)
    parent_id = parent_id or normalized.root_id
    parent = store.get(normalized, parent_id)
    if parent is None:
        return CommandStatus.NOT_FOUND, None, f"Parent node with ID '{parent_id}' not found."

    new_node = create_new_node(text, parent, node_id=node_id)
    sibling_count = len(normalized.children_map.get(parent_id, []))
    new_node.x, new_node.y = calculate_node_position(parent, sibling_count, sibling_count + 1)
    try:
        normalized = store.add(normalized, parent_id, new_node)
        new_document = commit_tree(document, normalized)
    except MindMapError as e:
        return _status_for_error(e), None, str(e)

    return (CommandStatus.SUCCESS, (new_document, new_node),
            f"Added node '{text}' (ID: {new_node.id}) under '{parent.text}' (ID: {parent.id}).")


def edit_node_action(document: Document, node_id: str, patch: Dict[str, Any]) -> Tuple[str, Optional[Document], str]:
    """Applies a partial update (e.g. {'text': ...}, {'color': ...}) to one node."""
    if not patch:
        return CommandStatus.ERROR, None, "Nothing to change."
    try:
        normalized = store.update(store.normalize(document.root_node), node_id, patch)
        new_document = commit_tree(document, normalized)
    except MindMapError as e:
        return _status_for_error(e), None, str(e)
    return CommandStatus.SUCCESS, new_document, f"Node ID '{node_id}' updated ({', '.join(sorted(patch))})."


def toggle_collapse_action(document: Document, node_id: str) -> Tuple[str, Optional[Document], str]:
    normalized = store.normalize(document.root_node)
    node = store.get(normalized, node_id)
    if node is None:
        return CommandStatus.NOT_FOUND, None, f"Node with ID '{node_id}' not found."
    status, new_document, msg = edit_node_action(document, node_id, {"collapsed": not node.collapsed})
    if status != CommandStatus.SUCCESS:
        return status, None, msg
    state = "collapsed" if not node.collapsed else "expanded"
    return status, new_document, f"Node '{node.text}' (ID: {node_id}) {state}."


def delete_node_action(document: Document, node_id: str) -> Tuple[str, Optional[Document], str]:
    """Deletes a node and all of its descendants. The root cannot be deleted."""
    normalized = store.normalize(document.root_node)
    removed = 1 + len(store.descendants(normalized, node_id)) if node_id in normalized else 0
    try:
        normalized = store.delete(normalized, node_id)
        new_document = commit_tree(document, normalized)
    except MindMapError as e:
        return _status_for_error(e), None, str(e)
    return CommandStatus.SUCCESS, new_document, f"Deleted node ID '{node_id}' and its children ({removed} node(s))."


def move_node_action(document: Document, node_id: str, new_parent_id: str) -> Tuple[str, Optional[Document], str]:
    try:
        normalized = store.move(store.normalize(document.root_node), node_id, new_parent_id)
        new_document = commit_tree(document, normalized)
    except MindMapError as e:
        return _status_for_error(e), None, str(e)
    return CommandStatus.SUCCESS, new_document, f"Moved node ID '{node_id}' under '{new_parent_id}'."


def reorder_node_action(document: Document, node_id: str, new_index: int) -> Tuple[str, Optional[Document], str]:
    try:
        normalized = store.reorder_child(store.normalize(document.root_node), node_id, new_index)
        new_document = commit_tree(document, normalized)
    except MindMapError as e:
        return _status_for_error(e), None, str(e)
    return CommandStatus.SUCCESS, new_document, f"Moved node ID '{node_id}' to position {new_index} among its siblings."


def layout_action(document: Document, layout_name: str = "auto", **options: Any) -> Tuple[str, Optional[Document], str]:
    """Re-lays out the whole document with the named preset."""
    try:
        new_root = layout.apply_layout(document.root_node, layout_name, **options)
    except MindMapError as e:
        return _status_for_error(e), None, str(e)
    except (TypeError, ValueError) as e:
        return CommandStatus.ERROR, None, f"Invalid layout options: {e}"
    used = layout.select_layout_name(document.root_node) if layout_name == "auto" else layout_name
    return CommandStatus.SUCCESS, document.with_root(new_root), f"Applied '{used}' layout."


def check_map_action(data: Any) -> Tuple[str, integrity.IntegrityCheckResult, str]:
    result = integrity.check(data)
    if result.is_valid:
        return CommandStatus.SUCCESS, result, f"Mind map is valid ({len(result.issues)} non-critical issue(s))."
    critical = sum(1 for issue in result.issues if issue.severity == integrity.CRITICAL)
    return CommandStatus.ERROR, result, f"Mind map has {critical} critical issue(s)."


def repair_map_action(data: Any) -> Tuple[str, Optional[Document], str]:
    """Repairs what can be repaired. Fails when nothing can be rebuilt or critical corruption remains."""
    result = integrity.repair(data)
    if result.repaired is None:
        return CommandStatus.ERROR, None, "Mind map data is empty and cannot be repaired."
    recheck = integrity.check(result.repaired)
    if not recheck.is_valid:
        problems = "; ".join(i.description for i in recheck.issues if i.severity == integrity.CRITICAL)
        return CommandStatus.ERROR, None, f"Mind map still has critical problems after repair: {problems}"
    try:
        document = Document.from_dict(result.repaired)
    except (KeyError, TypeError, ValueError) as e:
        return CommandStatus.ERROR, None, f"Repaired data could not be loaded: {e}"
    if not result.issues:
        return CommandStatus.SUCCESS, document, "Nothing to repair."
    fixed = ", ".join(issue.description for issue in result.issues)
    return CommandStatus.SUCCESS, document, f"Repaired {len(result.issues)} problem(s): {fixed}."


def search_map_action(document: Document, search_text: str) -> Tuple[str, List[Tuple[Node, Optional[List[Node]]]], str]:
    """Returns a list of (node, path_nodes) tuples for nodes containing `search_text`."""
    normalized = store.normalize(document.root_node)
    found_nodes = store.find_by_text(normalized, search_text)
    if not found_nodes:
        return CommandStatus.SUCCESS, [], f"No nodes found containing text '{search_text}'."
    results = [(node, store.get_path(normalized, node.id)) for node in found_nodes]
    return CommandStatus.SUCCESS, results, f"Found {len(results)} node(s) containing '{search_text}'."


def render_tree_lines(root: Node) -> List[str]:
    """Text tree of the subtree under `root`, one line per node."""
    lines = [f"{root.text} (ID: {root.id})"]
    # (node, indent, is_last)
    stack: List[Tuple[Node, str, bool]] = [
        (child, "", i == len(root.children) - 1) for i, child in reversed(list(enumerate(root.children)))
    ]
    while stack:
        node, indent, is_last = stack.pop()
        connector = "└── " if is_last else "├── "
        marker = " [+]" if node.collapsed and node.children else ""
        lines.append(f"{indent}{connector}{node.text} (ID: {node.id}){marker}")
        child_indent = indent + ("    " if is_last else "│   ")
        for i in range(len(node.children) - 1, -1, -1):
            stack.append((node.children[i], child_indent, i == len(node.children) - 1))
    return lines


def export_map_action(document: Document, export_filepath: Optional[str]) -> Tuple[str, Optional[str], str]:
    """Exports the map as a text tree, to a file or as returned content."""
    export_content = "\n".join([f"# {document.title}"] + render_tree_lines(document.root_node))
    if export_filepath:
        try:
            with open(export_filepath, 'w', encoding='utf-8') as f:
                f.write(export_content)
            return CommandStatus.SUCCESS, None, f"Mind map exported as text tree to: {export_filepath}"
        except OSError as e:
            return CommandStatus.ERROR, None, f"Error writing export file '{export_filepath}': {e}"
    return CommandStatus.SUCCESS, export_content, "Mind map export content generated."


def undo_action(history: HistoryManager) -> Tuple[str, Optional[Document], str]:
    document = history.undo()
    if document is None:
        return CommandStatus.INVALID_OPERATION, None, "Nothing to undo."
    return CommandStatus.SUCCESS, document, f"Undone ({history.index + 1}/{len(history)})."


def redo_action(history: HistoryManager) -> Tuple[str, Optional[Document], str]:
    document = history.redo()
    if document is None:
        return CommandStatus.INVALID_OPERATION, None, "Nothing to redo."
    return CommandStatus.SUCCESS, document, f"Redone ({history.index + 1}/{len(history)})."


# --- Help Messages ---
detailed_help_messages = {
    "new": """Usage: new ["Title"] [--force]\nCreates a new mind map with a single root node.""",
    "load": """Usage: load [<path>]\nLoads a mind map from a JSON file (checked and repaired if needed).""",
    "save": """Usage: save [-f <filepath>]\nSaves the current mind map.
    save               : Saves to the current active file.
    save -f <filepath> : Saves to a different file path.""",
    "add": """Usage: add "Text" [-p PARENT_ID] [--id NODE_ID]\nAdds a new node. Defaults to the root (or, in interactive mode, the current node).""",
    "edit": """Usage: edit <NODE_ID> "New Text"\nChanges the text of a node.""",
    "collapse": """Usage: collapse <NODE_ID>\nToggles whether a node's children are collapsed.""",
    "move": """Usage: move <NODE_ID> <NEW_PARENT_ID>\nMoves a node (and its subtree) under a new parent.""",
    "order": """Usage: order <NODE_ID> <INDEX>\nMoves a node to another position among its siblings.""",
    "delete": """Usage: delete <NODE_ID>\nDeletes a node and its children. The root cannot be deleted.""",
    "list": """Usage: list\nDisplays the mind map as a tree.""",
    "tree": """Usage: tree\nDisplays the full mind map from the root (interactive mode).""",
    "go": """Usage: go [<node_id> | .. | /]\nIn interactive mode, changes the current node.
    go <node_id> : Navigates to the specified node.
    go ..        : Navigates to the parent of the current node.
    go /         : Navigates to the root node.
    go           : Shows the current node and its path.""",
    "search": """Usage: search "Text"\nFinds nodes whose text contains the given text.""",
    "export": """Usage: export [<output.txt>]\nExports the mind map as a text tree.""",
    "layout": """Usage: layout [NAME] [--seed N]\nRecomputes node positions. Names: """ + ", ".join(layout.LAYOUT_PRESETS) + ".",
    "check": """Usage: check\nRuns the integrity checker and lists any issues.""",
    "repair": """Usage: repair\nRepairs a missing root, map id or title and a non-canonical root id.""",
    "undo": """Usage: undo\nReverts the last change (interactive mode).""",
    "redo": """Usage: redo\nRe-applies the last undone change (interactive mode).""",
    "history": """Usage: history\nLists the undo history, marking the current snapshot (interactive mode).""",
    "file": """Usage: file\nShows current file info. Alias: pwd""",
    "help": """Usage: help [<command>]\nDisplays help.""",
    "exit": """Usage: exit\nExits the application. Alias: quit""",
    "quit": """Usage: quit\nExits the application. Alias: exit""",
}

help_aliases = {
    "ls": "list",
    "cd": "go",
    "del": "delete",
    "find": "search",
    "mv": "move",
    "pwd": "file",
    "h": "help",
    "z": "undo",
    "y": "redo",
}


def get_general_help_text() -> str:
    lines = ["\nMindMap Engine - Available Commands", "Type 'help <command>' for more details."]
    main_commands = sorted(detailed_help_messages.keys())
    all_command_names = list(detailed_help_messages.keys()) + list(help_aliases.keys())
    max_len = max(len(cmd) for cmd in all_command_names)

    for cmd_name in main_commands:
        summary = detailed_help_messages[cmd_name].split('\n')[0]
        aliases_for_this_cmd = sorted([alias for alias, target in help_aliases.items() if target == cmd_name])
        alias_info = f" (Aliases: {', '.join(aliases_for_this_cmd)})" if aliases_for_this_cmd else ""
        lines.append(f"  {cmd_name:<{max_len + 2}} {summary.replace('Usage: ', '')}{alias_info}")

    lines.append("\nThe root node always has the ID 'root'.")
    lines.append("Maps with autoLayout enabled are re-laid out after every change.")
    return "\n".join(lines)


def get_specific_help_text(command_name: str) -> str:
    command_name = command_name.lower()
    main_command_name = help_aliases.get(command_name, command_name)
    if main_command_name in detailed_help_messages:
        help_text = detailed_help_messages[main_command_name].strip()
        aliases_for_this_cmd = sorted([alias for alias, target in help_aliases.items() if target == main_command_name])
        if aliases_for_this_cmd:
            help_text += f"\n(Aliases: {', '.join(aliases_for_this_cmd)})"
        return help_text
    return f"Unknown command '{command_name}'. Type 'help' for a list."
