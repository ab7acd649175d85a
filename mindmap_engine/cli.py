# mindmap_engine/cli.py
import argparse
import functools
import logging
import os
import sys
from typing import Optional, Callable, List

from .storage import get_default_filepath, load_map_from_file, load_raw_map_data, save_map_to_file
from .models import Document, create_initial_document
from .commands_core import (
    new_map_action, add_node_action, edit_node_action, toggle_collapse_action,
    delete_node_action, move_node_action, reorder_node_action, search_map_action,
    export_map_action, layout_action, check_map_action, repair_map_action,
    render_tree_lines, get_general_help_text, get_specific_help_text, CommandStatus
)
from .display_utils import formatted_print


def _resolve_filepath(args: argparse.Namespace) -> str:
    filepath_arg: Optional[str] = getattr(args, 'file', None)
    if filepath_arg:
        formatted_print(f"Operating on specified file: '{os.path.abspath(filepath_arg)}'", level="INFO")
        return os.path.abspath(filepath_arg)
    fpath = get_default_filepath()
    formatted_print(f"No file specified (-f), using default: '{os.path.abspath(fpath)}'", level="INFO")
    return os.path.abspath(fpath)


def _fail(msg: str) -> None:
    formatted_print(msg, level="ERROR")
    sys.exit(1)


# Decorator for commands that operate on a mind map
def mindmap_command(func: Callable[[Document, str, argparse.Namespace], Optional[Document]]):
    """
    Loads the mind map from args.file (or the default path), calls the
    handler, and saves the document it returns. A handler returning None
    made no change. A missing file starts a new in-memory map.
    """
    @functools.wraps(func)
    def wrapper(args: argparse.Namespace) -> None:
        fpath_abs = _resolve_filepath(args)
        document, load_msg = load_map_from_file(fpath_abs)

        if not document and "not found" in load_msg.lower():
            formatted_print(load_msg, level="INFO")
            formatted_print(f"Operations will be on a new in-memory map. Save to persist to '{fpath_abs}'.", level="INFO")
            document = create_initial_document()
        elif not document:
            _fail(load_msg)
        else:
            formatted_print(load_msg, level="SUCCESS")

        new_document = func(document, fpath_abs, args)

        if new_document is not None:
            save_success, save_msg = save_map_to_file(new_document, fpath_abs)
            if not save_success:
                _fail(f"Error saving after command: {save_msg}")
    return wrapper


def _report(status: str, msg: str) -> None:
    if status == CommandStatus.SUCCESS:
        formatted_print(msg, level="SUCCESS")
    else:
        _fail(msg)


def handle_new(args):
    filepath = os.path.abspath(args.file) if args.file else get_default_filepath()
    status, _, msg = new_map_action(filepath, args.force, title=args.title)
    _report(status, msg)


@mindmap_command
def handle_add(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    status, data, msg = add_node_action(document, args.text, args.parent_id, node_id=args.id)
    _report(status, msg)
    new_document, _ = data
    return new_document


@mindmap_command
def handle_edit(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    status, new_document, msg = edit_node_action(document, args.node_id, {"text": args.new_text})
    _report(status, msg)
    return new_document


@mindmap_command
def handle_collapse(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    status, new_document, msg = toggle_collapse_action(document, args.node_id)
    _report(status, msg)
    return new_document


@mindmap_command
def handle_delete(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    status, new_document, msg = delete_node_action(document, args.node_id)
    _report(status, msg)
    return new_document


@mindmap_command
def handle_move(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    status, new_document, msg = move_node_action(document, args.node_id, args.new_parent_id)
    _report(status, msg)
    return new_document


@mindmap_command
def handle_order(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    status, new_document, msg = reorder_node_action(document, args.node_id, args.index)
    _report(status, msg)
    return new_document


@mindmap_command
def handle_list(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    formatted_print(document.title, level="HEADER", use_prefix=False)
    for line in render_tree_lines(document.root_node):
        formatted_print(line, level="NONE", use_prefix=False)
    return None


@mindmap_command
def handle_search(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    status, results, msg = search_map_action(document, args.text)
    formatted_print(msg, level="INFO")
    for node, path_nodes in results:
        path_str = " -> ".join(n.text for n in path_nodes) if path_nodes else "N/A"
        formatted_print(f"Node: '{node.text}' (ID: {node.id})", level="RESULT", use_prefix=False, indent=1)
        formatted_print(f"Path: {path_str}", level="DETAIL", use_prefix=False, indent=2)
    return None


@mindmap_command
def handle_export(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    status, content, msg = export_map_action(document, args.output_file)
    if status != CommandStatus.SUCCESS:
        _fail(msg)
    if content:
        formatted_print(content, level="NONE", use_prefix=False)
    else:
        formatted_print(msg, level="INFO")
    return None


@mindmap_command
def handle_layout(document: Document, filepath: str, args: argparse.Namespace) -> Optional[Document]:
    options = {}
    if args.seed is not None:
        options["seed"] = args.seed
    status, new_document, msg = layout_action(document, args.name, **options)
    _report(status, msg)
    return new_document


def handle_check(args):
    fpath_abs = _resolve_filepath(args)
    data, msg = load_raw_map_data(fpath_abs)
    if data is None:
        _fail(msg)
    status, result, msg = check_map_action(data)
    for issue in result.issues:
        level = "ERROR" if issue.severity == "critical" else "WARNING" if issue.severity == "warning" else "INFO"
        formatted_print(f"{issue.type}: {issue.description}", level=level, indent=1)
    for suggestion in result.repair_suggestions:
        formatted_print(f"Suggestion: {suggestion}", level="DETAIL", use_prefix=False, indent=2)
    _report(status, msg)


def handle_repair(args):
    fpath_abs = _resolve_filepath(args)
    data, msg = load_raw_map_data(fpath_abs)
    if data is None:
        _fail(msg)
    status, document, msg = repair_map_action(data)
    _report(status, msg)
    save_success, save_msg = save_map_to_file(document, fpath_abs)
    if not save_success:
        _fail(save_msg)
    formatted_print(save_msg, level="SUCCESS")


def handle_help(args):
    if args.command_name:
        help_text = get_specific_help_text(args.command_name[0])
        if "Unknown command" in help_text:
            formatted_print(help_text, level="ERROR")
            return
        for line_content in help_text.strip().split('\n'):
            if line_content.lower().startswith("usage:"):
                formatted_print(line_content, level="USAGE", use_prefix=True)
            else:
                formatted_print(line_content, level="NONE", use_prefix=False, indent=1)
    else:
        lines = get_general_help_text().strip().split('\n')
        formatted_print(lines[0], level="HEADER", use_prefix=False)
        formatted_print(lines[1], level="INFO", use_prefix=False, indent=1)
        for line_content in lines[2:]:
            if line_content.startswith("  "):
                formatted_print(line_content, level="COMMAND_NAME", use_prefix=False)
            elif line_content.strip():
                formatted_print(line_content.strip(), level="INFO", use_prefix=False, indent=1)


def _summary(command: str) -> str:
    return get_specific_help_text(command).split('\n')[1]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="mindmap", description="MindMap engine CLI (one-shot)")
    parser.add_argument("-f", "--file", help="Path to the mind map file (JSON).")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", title="Available commands")
    subparsers.required = True

    p_new = subparsers.add_parser("new", help=_summary("new"))
    p_new.add_argument("title", nargs="?", help="Map title.")
    p_new.add_argument("--force", action="store_true", help="Overwrite if file exists.")
    p_new.set_defaults(func=handle_new)

    p_add = subparsers.add_parser("add", help=_summary("add"))
    p_add.add_argument("text", help="Node text.")
    p_add.add_argument("-p", "--parent-id", help="Parent node ID. Defaults to the root.")
    p_add.add_argument("--id", help="Explicit node ID (generated when omitted).")
    p_add.set_defaults(func=handle_add)

    p_edit = subparsers.add_parser("edit", help=_summary("edit"))
    p_edit.add_argument("node_id", help="ID of node to edit.")
    p_edit.add_argument("new_text", help="New text for the node.")
    p_edit.set_defaults(func=handle_edit)

    p_collapse = subparsers.add_parser("collapse", help=_summary("collapse"))
    p_collapse.add_argument("node_id", help="ID of node to collapse or expand.")
    p_collapse.set_defaults(func=handle_collapse)

    p_del = subparsers.add_parser("delete", help=_summary("delete"))
    p_del.add_argument("node_id", help="ID of node to delete.")
    p_del.set_defaults(func=handle_delete)

    p_move = subparsers.add_parser("move", help=_summary("move"))
    p_move.add_argument("node_id", help="ID of node to move.")
    p_move.add_argument("new_parent_id", help="ID of new parent node.")
    p_move.set_defaults(func=handle_move)

    p_order = subparsers.add_parser("order", help=_summary("order"))
    p_order.add_argument("node_id", help="ID of node to reorder.")
    p_order.add_argument("index", type=int, help="New position among its siblings (0-based).")
    p_order.set_defaults(func=handle_order)

    p_list = subparsers.add_parser("list", help=_summary("list"))
    p_list.set_defaults(func=handle_list)

    p_search = subparsers.add_parser("search", help=_summary("search"))
    p_search.add_argument("text", help="Text to search.")
    p_search.set_defaults(func=handle_search)

    p_export = subparsers.add_parser("export", help=_summary("export"))
    p_export.add_argument("output_file", nargs="?", help="Optional .txt file to save export.")
    p_export.set_defaults(func=handle_export)

    p_layout = subparsers.add_parser("layout", help=_summary("layout"))
    p_layout.add_argument("name", nargs="?", default="auto", help="Layout preset name.")
    p_layout.add_argument("--seed", type=int, help="Random seed for the organic layout.")
    p_layout.set_defaults(func=handle_layout)

    p_check = subparsers.add_parser("check", help=_summary("check"))
    p_check.set_defaults(func=handle_check)

    p_repair = subparsers.add_parser("repair", help=_summary("repair"))
    p_repair.set_defaults(func=handle_repair)

    p_help = subparsers.add_parser("help", help="Show help.", add_help=False)
    p_help.add_argument('command_name', nargs='*', help="Command to get help for.")
    p_help.set_defaults(func=handle_help)
    return parser


def main_cli(argv: Optional[List[str]] = None) -> None:
    argv = sys.argv[1:] if argv is None else argv
    if not argv:
        formatted_print(get_general_help_text(), level="NONE", use_prefix=False)
        sys.exit(0)

    parsed_args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    parsed_args.func(parsed_args)


if __name__ == "__main__":
    main_cli()
