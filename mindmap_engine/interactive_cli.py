# mindmap_engine/interactive_cli.py
import logging
import os
import shlex
import sys
from typing import Callable, Dict, List, Optional

from . import normalized_store as store
from .history import HistoryManager
from .models import Document, create_initial_document
from .storage import get_default_filepath
from .commands_core import (
    new_map_action, load_map_action, save_map_action, add_node_action, edit_node_action,
    toggle_collapse_action, delete_node_action, move_node_action, reorder_node_action,
    search_map_action, export_map_action, layout_action, check_map_action, repair_map_action,
    undo_action, redo_action, render_tree_lines, get_general_help_text, get_specific_help_text,
    CommandStatus,
)
from .display_utils import Colors, formatted_print, USE_COLORS

try:
    import readline
except ImportError:
    readline = None # Tab completion is disabled without readline

logger = logging.getLogger(__name__)


class InteractiveSession:
    """
    REPL state: the current document, its file, the node the user is "in",
    and the undo/redo history. Every change goes through `_commit`, which
    records a snapshot and auto-saves when the map has autoSave enabled.
    """
    def __init__(self, filepath: Optional[str] = None, history: Optional[HistoryManager] = None):
        self.document: Optional[Document] = None
        self.filepath: Optional[str] = filepath
        self.current_node_id: Optional[str] = None
        self.history: HistoryManager = history if history is not None else HistoryManager()
        self.commands: Dict[str, Callable[[List[str]], None]] = {
            "new": self.cmd_new, "load": self.cmd_load, "save": self.cmd_save,
            "add": self.cmd_add, "edit": self.cmd_edit, "collapse": self.cmd_collapse,
            "delete": self.cmd_delete, "del": self.cmd_delete,
            "move": self.cmd_move, "mv": self.cmd_move, "order": self.cmd_order,
            "list": self.cmd_list, "ls": self.cmd_list, "tree": self.cmd_tree,
            "go": self.cmd_go, "cd": self.cmd_go,
            "search": self.cmd_search, "find": self.cmd_search,
            "export": self.cmd_export, "layout": self.cmd_layout,
            "check": self.cmd_check, "repair": self.cmd_repair,
            "undo": self.cmd_undo, "z": self.cmd_undo, "redo": self.cmd_redo, "y": self.cmd_redo,
            "history": self.cmd_history, "file": self.cmd_file, "pwd": self.cmd_file,
            "help": self.cmd_help, "h": self.cmd_help,
        }

    # --- state helpers ---

    def _set_document(self, document: Document, reset_history: bool = True) -> None:
        self.document = document
        if reset_history:
            self.history.clear()
            self.history.push(document)
        if self.current_node_id and not self._find_node(self.current_node_id):
            self.current_node_id = None

    def _find_node(self, node_id: str):
        if not self.document:
            return None
        return store.get(store.normalize(self.document.root_node), node_id)

    def _commit(self, new_document: Document, operation: str) -> None:
        self._set_document(new_document, reset_history=False)
        self.history.push(new_document)
        if new_document.settings.auto_save:
            self._autosave(operation)

    def _autosave(self, operation: str) -> None:
        if self.document and self.filepath:
            status, _, msg = save_map_action(self.document, self.filepath)
            if status != CommandStatus.SUCCESS:
                formatted_print(f"Error saving map after {operation}: {msg}", level="ERROR")
        elif self.document:
            formatted_print(f"Map modified by {operation} but no file path set. Use 'save -f <filepath>'.", level="WARNING")

    def _require_map(self) -> bool:
        if not self.document:
            formatted_print("No map loaded. Use 'new' or 'load'.", level="WARNING")
            return False
        return True

    def _report(self, status: str, new_document: Optional[Document], msg: str, operation: str) -> None:
        if status == CommandStatus.SUCCESS and new_document is not None:
            formatted_print(msg, level="SUCCESS")
            self._commit(new_document, operation)
        else:
            formatted_print(msg, level="ERROR")

    def _usage(self, command: str) -> None:
        formatted_print(get_specific_help_text(command), level="NONE", use_prefix=False)

    # --- commands ---

    def cmd_new(self, args_list: List[str]) -> None:
        force = "--force" in args_list
        title_parts = [arg for arg in args_list if arg != "--force"]
        title = " ".join(title_parts) or None
        if title and not self.filepath:
            safe_chars = "abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789_-"
            sanitized = "".join(c if c in safe_chars else '_' for c in title.strip())[:50] or "untitled"
            filepath = os.path.join(os.path.dirname(get_default_filepath()), f"{sanitized}.json")
        else:
            filepath = self.filepath or get_default_filepath()
        status, document, msg = new_map_action(filepath, force, title=title)
        if status == CommandStatus.SUCCESS and document:
            formatted_print(msg, level="SUCCESS")
            self.filepath = filepath
            self.current_node_id = None
            self._set_document(document)
        else:
            formatted_print(msg, level="ERROR")

    def cmd_load(self, args_list: List[str]) -> None:
        if len(args_list) > 1:
            self._usage("load")
            return
        filepath = os.path.abspath(args_list[0] if args_list else get_default_filepath())
        status, document, msg = load_map_action(filepath)
        if status == CommandStatus.SUCCESS and document:
            formatted_print(msg, level="SUCCESS")
            self.filepath = filepath
            self.current_node_id = None
            self._set_document(document)
        elif status == CommandStatus.NOT_FOUND:
            formatted_print(msg, level="INFO")
            self.filepath = filepath
            self.current_node_id = None
            self._set_document(create_initial_document())
        else:
            formatted_print(msg, level="ERROR")

    def cmd_save(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        save_path = self.filepath
        if args_list:
            if len(args_list) == 2 and args_list[0] == "-f":
                save_path = os.path.abspath(args_list[1])
            else:
                formatted_print("Invalid arguments for save.", level="ERROR")
                self._usage("save")
                return
        if not save_path:
            formatted_print("No filepath specified to save. Use 'save -f <filepath>'.", level="ERROR")
            return
        status, _, msg = save_map_action(self.document, save_path)
        if status == CommandStatus.SUCCESS:
            formatted_print(msg, level="SUCCESS")
            self.filepath = save_path
        else:
            formatted_print(msg, level="ERROR")

    def cmd_add(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        parent_id = self.current_node_id
        node_id = None
        text_parts: List[str] = []
        i = 0
        while i < len(args_list):
            if args_list[i] in ("-p", "--id") and i + 1 < len(args_list):
                if args_list[i] == "-p":
                    parent_id = args_list[i + 1]
                else:
                    node_id = args_list[i + 1]
                i += 2
                continue
            text_parts.append(args_list[i])
            i += 1
        if not text_parts:
            self._usage("add")
            return
        status, data, msg = add_node_action(self.document, " ".join(text_parts), parent_id, node_id=node_id)
        self._report(status, data[0] if data else None, msg, "add")

    def cmd_edit(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        if len(args_list) < 2:
            self._usage("edit")
            return
        status, new_document, msg = edit_node_action(self.document, args_list[0], {"text": " ".join(args_list[1:])})
        self._report(status, new_document, msg, "edit")

    def cmd_collapse(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        node_id = args_list[0] if args_list else self.current_node_id
        if not node_id:
            self._usage("collapse")
            return
        status, new_document, msg = toggle_collapse_action(self.document, node_id)
        self._report(status, new_document, msg, "collapse")

    def cmd_delete(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        if len(args_list) != 1:
            self._usage("delete")
            return
        status, new_document, msg = delete_node_action(self.document, args_list[0])
        self._report(status, new_document, msg, "delete")

    def cmd_move(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        if len(args_list) != 2:
            self._usage("move")
            return
        status, new_document, msg = move_node_action(self.document, args_list[0], args_list[1])
        self._report(status, new_document, msg, "move")

    def cmd_order(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        if len(args_list) != 2 or not args_list[1].lstrip("-").isdigit():
            self._usage("order")
            return
        status, new_document, msg = reorder_node_action(self.document, args_list[0], int(args_list[1]))
        self._report(status, new_document, msg, "order")

    def cmd_list(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        start = self._find_node(self.current_node_id) if self.current_node_id else None
        if start is None:
            self.cmd_tree(args_list)
            return
        for line in render_tree_lines(start):
            formatted_print(line, level="NONE", use_prefix=False)

    def cmd_tree(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        formatted_print(self.document.title, level="HEADER", use_prefix=False)
        for line in render_tree_lines(self.document.root_node):
            formatted_print(line, level="NONE", use_prefix=False)

    def cmd_go(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        normalized = store.normalize(self.document.root_node)
        if not args_list:
            node_id = self.current_node_id or normalized.root_id
            path = store.get_path(normalized, node_id) or []
            formatted_print(f"Current node: {' / '.join(n.text for n in path)} (ID: {node_id})", level="INFO")
            return
        target = args_list[0]
        if target == "/":
            self.current_node_id = None
        elif target == "..":
            if self.current_node_id:
                self.current_node_id = normalized.parent_map.get(self.current_node_id)
                if self.current_node_id == normalized.root_id:
                    self.current_node_id = None
        elif store.get(normalized, target):
            self.current_node_id = None if target == normalized.root_id else target
        else:
            formatted_print(f"Node with ID '{target}' not found.", level="ERROR")

    def cmd_search(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        if not args_list:
            self._usage("search")
            return
        status, results, msg = search_map_action(self.document, " ".join(args_list))
        formatted_print(msg, level="INFO")
        for node, path_nodes in results:
            path_str = " -> ".join(n.text for n in path_nodes) if path_nodes else "N/A"
            formatted_print(f"Node: '{node.text}' (ID: {node.id})", level="RESULT", use_prefix=False, indent=1)
            formatted_print(f"Path: {path_str}", level="DETAIL", use_prefix=False, indent=2)

    def cmd_export(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        status, content, msg = export_map_action(self.document, args_list[0] if args_list else None)
        if content:
            formatted_print(content, level="NONE", use_prefix=False)
        else:
            formatted_print(msg, level="INFO" if status == CommandStatus.SUCCESS else "ERROR")

    def cmd_layout(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        options = {}
        if "--seed" in args_list:
            seed_index = args_list.index("--seed")
            try:
                options["seed"] = int(args_list[seed_index + 1])
            except (IndexError, ValueError):
                self._usage("layout")
                return
            args_list = args_list[:seed_index] + args_list[seed_index + 2:]
        name = args_list[0] if args_list else "auto"
        status, new_document, msg = layout_action(self.document, name, **options)
        self._report(status, new_document, msg, "layout")

    def cmd_check(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        status, result, msg = check_map_action(self.document)
        for issue in result.issues:
            formatted_print(f"{issue.severity}: {issue.type}: {issue.description}", level="WARNING", indent=1)
        formatted_print(msg, level="SUCCESS" if status == CommandStatus.SUCCESS else "ERROR")

    def cmd_repair(self, args_list: List[str]) -> None:
        if not self._require_map():
            return
        status, new_document, msg = repair_map_action(self.document)
        self._report(status, new_document, msg, "repair")

    def cmd_undo(self, args_list: List[str]) -> None:
        status, document, msg = undo_action(self.history)
        if document is None:
            formatted_print(msg, level="WARNING")
            return
        formatted_print(msg, level="SUCCESS")
        self._set_document(document, reset_history=False)
        if document.settings.auto_save:
            self._autosave("undo")

    def cmd_redo(self, args_list: List[str]) -> None:
        status, document, msg = redo_action(self.history)
        if document is None:
            formatted_print(msg, level="WARNING")
            return
        formatted_print(msg, level="SUCCESS")
        self._set_document(document, reset_history=False)
        if document.settings.auto_save:
            self._autosave("redo")

    def cmd_history(self, args_list: List[str]) -> None:
        entries = self.history.timeline()
        if not entries:
            formatted_print("History is empty.", level="INFO")
            return
        for entry in entries:
            marker = "*" if entry["current"] else " "
            formatted_print(f"{marker} {entry['index']:>3}  {entry['updatedAt']}  {entry['nodeCount']} node(s)",
                            level="RESULT" if entry["current"] else "DETAIL", use_prefix=False, indent=1)

    def cmd_file(self, args_list: List[str]) -> None:
        formatted_print(f"File: {self.filepath or 'none'}", level="INFO")
        if self.document:
            formatted_print(f"Map: '{self.document.title}' (ID: {self.document.id})", level="INFO")
            formatted_print(f"Undo: {'yes' if self.history.can_undo else 'no'}, redo: {'yes' if self.history.can_redo else 'no'}",
                            level="INFO")
        if self.current_node_id:
            formatted_print(f"Current node: {self.current_node_id}", level="INFO")

    def cmd_help(self, args_list: List[str]) -> None:
        if args_list:
            help_text = get_specific_help_text(args_list[0])
            level = "ERROR" if "Unknown command" in help_text else "NONE"
            formatted_print(help_text, level=level, use_prefix=False)
        else:
            formatted_print(get_general_help_text(), level="NONE", use_prefix=False)

    # --- loop ---

    def execute(self, line: str) -> None:
        """Runs one command line."""
        if not line.strip():
            return
        try:
            parts = shlex.split(line)
        except ValueError as e:
            formatted_print(f"Could not parse command: {e}", level="ERROR")
            return
        command_name, command_args = parts[0].lower(), parts[1:]
        handler = self.commands.get(command_name)
        if handler is None:
            formatted_print(f"Unknown command: '{command_name}'. Type 'help'.", level="ERROR")
            return
        handler(command_args)

    def prompt(self) -> str:
        file_part = os.path.basename(self.filepath) if self.filepath else "no file"
        path_part = ""
        if self.document and self.current_node_id:
            path = store.get_path(store.normalize(self.document.root_node), self.current_node_id)
            if path:
                path_display = " / ".join(n.text for n in path)
                if len(path_display) > 30:
                    path_display = ".../" + " / ".join(n.text for n in path[-2:])
                path_part = f":{path_display}"
        if USE_COLORS and sys.stdout.isatty():
            return (f"{Colors.OKGREEN}mindmap{Colors.ENDC} [{Colors.OKCYAN}{file_part}{Colors.ENDC}"
                    f"{Colors.HEADER}{path_part}{Colors.ENDC}]> ")
        return f"mindmap [{file_part}{path_part}]> "

    def setup_readline_completion(self) -> None:
        if not readline:
            return
        command_names = sorted(self.commands) + ["exit", "quit"]
        matches: List[str] = []

        def completer(text: str, state: int) -> Optional[str]:
            if state == 0:
                matches[:] = [cmd for cmd in command_names if cmd.startswith(text)]
            return matches[state] if state < len(matches) else None

        readline.set_completer(completer)
        readline.parse_and_bind("tab: complete")
        readline.set_completer_delims(" \t\n;")

    def run(self) -> None:
        if self.filepath:
            self.cmd_load([self.filepath])
        elif os.path.exists(get_default_filepath()):
            self.cmd_load([get_default_filepath()])

        self.setup_readline_completion()
        formatted_print("\nWelcome to MindMap Interactive Mode!", level="HEADER", use_prefix=False)
        if self.document:
            formatted_print(f"Currently: '{self.document.title}' from '{self.filepath}'", level="INFO")

        while True:
            try:
                line = input(self.prompt())
                if line.strip().lower() in ("exit", "quit"):
                    break
                self.execute(line)
            except EOFError:
                formatted_print("\nExiting...", level="INFO")
                break
            except KeyboardInterrupt:
                formatted_print("\nInterrupted. Type 'exit' or 'quit'.", level="WARNING")


def interactive_session(initial_filepath: Optional[str] = None) -> None:
    InteractiveSession(filepath=os.path.abspath(initial_filepath) if initial_filepath else None).run()


if __name__ == "__main__":
    logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    interactive_session(sys.argv[1] if len(sys.argv) > 1 else None)
