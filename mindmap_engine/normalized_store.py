# mindmap_engine/normalized_store.py
"""
Flat, id-indexed representation of a mind map tree.

Every operation takes a NormalizedDocument and returns a new one; the input is
never modified. Node objects are shared between the old and new value, so
callers must treat the nodes they get back as read-only and go through
`update` to change them.
"""
import logging
from typing import Dict, Optional, List, Any, Iterator

from .errors import NotFoundError, DuplicateIdError, InvalidOperationError
from .models import Node, NODE_JSON_FIELDS, _is_number

logger = logging.getLogger(__name__)

_PATCHABLE_ATTRS = frozenset(NODE_JSON_FIELDS.values()) - {"id"}

_NUMBER_ATTRS = frozenset(["x", "y"])
_OPTIONAL_NUMBER_ATTRS = frozenset(["font_size", "border_width"])
_OPTIONAL_STRING_ATTRS = frozenset(["font_weight", "font_style", "color", "background_color", "border_style"])
_LIST_ATTRS = frozenset(["attachments", "map_links"])


class NormalizedDocument:
    """nodes: id -> Node (children stripped); parent_map: child -> parent; children_map: parent -> ordered child ids."""
    def __init__(self, nodes: Dict[str, Node], root_id: str,
                 parent_map: Dict[str, str], children_map: Dict[str, List[str]]):
        self.nodes: Dict[str, Node] = nodes
        self.root_id: str = root_id
        self.parent_map: Dict[str, str] = parent_map
        self.children_map: Dict[str, List[str]] = children_map

    def _replace(self, nodes: Optional[Dict[str, Node]] = None,
                 parent_map: Optional[Dict[str, str]] = None,
                 children_map: Optional[Dict[str, List[str]]] = None) -> 'NormalizedDocument':
        return NormalizedDocument(
            nodes=nodes if nodes is not None else self.nodes,
            root_id=self.root_id,
            parent_map=parent_map if parent_map is not None else self.parent_map,
            children_map=children_map if children_map is not None else self.children_map,
        )

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.nodes

    def __len__(self) -> int:
        return len(self.nodes)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, NormalizedDocument):
            return NotImplemented
        return (self.root_id == other.root_id
                and self.parent_map == other.parent_map
                and self.children_map == other.children_map
                and self.nodes.keys() == other.nodes.keys()
                and all(self.nodes[k] == other.nodes[k] for k in self.nodes))

    def __repr__(self) -> str:
        return f"NormalizedDocument(root_id={self.root_id}, nodes={len(self.nodes)})"


def normalize(tree: Node) -> NormalizedDocument:
    """Flattens a node tree. Children order is kept in children_map."""
    nodes: Dict[str, Node] = {}
    parent_map: Dict[str, str] = {}
    children_map: Dict[str, List[str]] = {}

    for node in tree.iter_nodes():
        nodes[node.id] = node.shallow_copy()
        children_map[node.id] = [child.id for child in node.children]
        for child in node.children:
            parent_map[child.id] = node.id

    return NormalizedDocument(nodes, tree.id, parent_map, children_map)


def denormalize(doc: NormalizedDocument) -> Node:
    """
    Rebuilds the nested tree from root_id. Raises NotFoundError on a dangling
    child reference and InvalidOperationError when a node is reached twice.
    """
    if doc.root_id not in doc.nodes:
        raise NotFoundError(f"Root node '{doc.root_id}' not found.", doc.root_id)

    root = doc.nodes[doc.root_id].shallow_copy()
    visited = {doc.root_id}
    stack = [root]
    while stack:
        parent = stack.pop()
        for child_id in doc.children_map.get(parent.id, []):
            if child_id in visited:
                raise InvalidOperationError(
                    f"Node '{child_id}' is reachable more than once from the root (cycle or shared child).", child_id)
            visited.add(child_id)
            stored = doc.nodes.get(child_id)
            if stored is None:
                raise NotFoundError(f"Node '{child_id}' referenced by '{parent.id}' not found.", child_id)
            child = stored.shallow_copy()
            parent.children.append(child)
            stack.append(child)
    return root


def get(doc: NormalizedDocument, node_id: str) -> Optional[Node]:
    return doc.nodes.get(node_id)


def _resolve_patch_field(key: str) -> str:
    if key in ("id", "children"):
        raise InvalidOperationError(f"Field '{key}' cannot be changed with update.")
    attr = NODE_JSON_FIELDS.get(key, key)
    if attr not in _PATCHABLE_ATTRS:
        raise InvalidOperationError(f"Unknown node field '{key}'.")
    return attr


def _check_patch_value(attr: str, value: Any, node_id: str) -> None:
    if attr == "text":
        valid = isinstance(value, str)
    elif attr == "collapsed":
        valid = isinstance(value, bool)
    elif attr in _NUMBER_ATTRS:
        valid = _is_number(value)
    elif attr in _OPTIONAL_NUMBER_ATTRS:
        valid = value is None or _is_number(value)
    elif attr in _OPTIONAL_STRING_ATTRS:
        valid = value is None or isinstance(value, str)
    elif attr in _LIST_ATTRS:
        valid = isinstance(value, list)
    else:
        valid = True
    if not valid:
        raise InvalidOperationError(f"Invalid value {value!r} for field '{attr}'.", node_id)


def update(doc: NormalizedDocument, node_id: str, patch: Dict[str, Any]) -> NormalizedDocument:
    """Merges `patch` field by field into the node. Accepts attribute names or JSON keys."""
    existing = doc.nodes.get(node_id)
    if existing is None:
        raise NotFoundError(f"Node '{node_id}' not found.", node_id)

    resolved = {_resolve_patch_field(key): value for key, value in patch.items()}
    for attr, value in resolved.items():
        _check_patch_value(attr, value, node_id)

    updated = existing.shallow_copy()
    for attr, value in resolved.items():
        setattr(updated, attr, value)

    new_nodes = dict(doc.nodes)
    new_nodes[node_id] = updated
    logger.debug("Updated node %s fields %s", node_id, sorted(resolved))
    return doc._replace(nodes=new_nodes)


def add(doc: NormalizedDocument, parent_id: str, node: Node) -> NormalizedDocument:
    """Appends `node` (without its children) as the last child of `parent_id`."""
    if node.id in doc.nodes:
        raise DuplicateIdError(f"Node '{node.id}' already exists.", node.id)
    if parent_id not in doc.nodes:
        raise NotFoundError(f"Parent node '{parent_id}' not found.", parent_id)

    new_nodes = dict(doc.nodes)
    new_nodes[node.id] = node.shallow_copy()
    new_parent_map = dict(doc.parent_map)
    new_parent_map[node.id] = parent_id
    new_children_map = dict(doc.children_map)
    new_children_map[parent_id] = doc.children_map.get(parent_id, []) + [node.id]
    new_children_map[node.id] = []
    logger.debug("Added node %s under %s", node.id, parent_id)
    return doc._replace(nodes=new_nodes, parent_map=new_parent_map, children_map=new_children_map)


def descendants(doc: NormalizedDocument, node_id: str) -> List[str]:
    """Ids of every node below `node_id` (not including it), in pre-order."""
    result: List[str] = []
    stack = list(reversed(doc.children_map.get(node_id, [])))
    seen = {node_id}
    while stack:
        current = stack.pop()
        if current in seen: # corrupted maps could loop
            continue
        seen.add(current)
        result.append(current)
        stack.extend(reversed(doc.children_map.get(current, [])))
    return result


def delete(doc: NormalizedDocument, node_id: str) -> NormalizedDocument:
    """Removes the node and its whole subtree."""
    if node_id == doc.root_id:
        raise InvalidOperationError("The root node cannot be deleted.", node_id)
    if node_id not in doc.nodes:
        raise NotFoundError(f"Node '{node_id}' not found.", node_id)

    to_delete = [node_id] + descendants(doc, node_id)
    new_nodes = dict(doc.nodes)
    new_parent_map = dict(doc.parent_map)
    new_children_map = dict(doc.children_map)
    for removed_id in to_delete:
        new_nodes.pop(removed_id, None)
        new_parent_map.pop(removed_id, None)
        new_children_map.pop(removed_id, None)

    parent_id = doc.parent_map.get(node_id)
    if parent_id is not None and parent_id in new_children_map:
        new_children_map[parent_id] = [cid for cid in new_children_map[parent_id] if cid != node_id]

    logger.debug("Deleted node %s (%d nodes removed)", node_id, len(to_delete))
    return doc._replace(nodes=new_nodes, parent_map=new_parent_map, children_map=new_children_map)


def is_descendant(doc: NormalizedDocument, ancestor_id: str, candidate_id: str) -> bool:
    """True if `candidate_id` lies somewhere below `ancestor_id`."""
    return candidate_id in set(descendants(doc, ancestor_id))


def move(doc: NormalizedDocument, node_id: str, new_parent_id: str) -> NormalizedDocument:
    """Detaches `node_id` from its parent and appends it to `new_parent_id`'s children."""
    if node_id == doc.root_id:
        raise InvalidOperationError("The root node cannot be moved.", node_id)
    if node_id == new_parent_id:
        raise InvalidOperationError("A node cannot be moved under itself.", node_id)
    if node_id not in doc.nodes:
        raise NotFoundError(f"Node '{node_id}' not found.", node_id)
    if new_parent_id not in doc.nodes:
        raise NotFoundError(f"New parent node '{new_parent_id}' not found.", new_parent_id)
    if is_descendant(doc, node_id, new_parent_id):
        raise InvalidOperationError(
            f"Cannot move '{node_id}' under its own descendant '{new_parent_id}'.", node_id)

    old_parent_id = doc.parent_map.get(node_id)
    new_parent_map = dict(doc.parent_map)
    new_parent_map[node_id] = new_parent_id
    new_children_map = dict(doc.children_map)
    if old_parent_id is not None:
        new_children_map[old_parent_id] = [cid for cid in doc.children_map.get(old_parent_id, []) if cid != node_id]
    new_children_map[new_parent_id] = new_children_map.get(new_parent_id, []) + [node_id]
    logger.debug("Moved node %s from %s to %s", node_id, old_parent_id, new_parent_id)
    return doc._replace(parent_map=new_parent_map, children_map=new_children_map)


def reorder_child(doc: NormalizedDocument, node_id: str, new_index: int) -> NormalizedDocument:
    """Moves `node_id` to position `new_index` among its siblings (clamped to the valid range)."""
    if node_id == doc.root_id:
        raise InvalidOperationError("The root node has no siblings.", node_id)
    parent_id = doc.parent_map.get(node_id)
    if parent_id is None:
        raise NotFoundError(f"Node '{node_id}' not found.", node_id)

    siblings = [cid for cid in doc.children_map.get(parent_id, []) if cid != node_id]
    new_index = max(0, min(new_index, len(siblings)))
    siblings.insert(new_index, node_id)
    new_children_map = dict(doc.children_map)
    new_children_map[parent_id] = siblings
    return doc._replace(children_map=new_children_map)


def depth_of(doc: NormalizedDocument, node_id: str) -> int:
    path = get_path(doc, node_id)
    if path is None:
        raise NotFoundError(f"Node '{node_id}' not found.", node_id)
    return len(path) - 1


def get_path(doc: NormalizedDocument, node_id: str) -> Optional[List[Node]]:
    """Returns the nodes from the root down to `node_id`, or None if missing or the parent chain is broken."""
    node = doc.nodes.get(node_id)
    if node is None:
        return None

    path: List[Node] = []
    current_id: Optional[str] = node_id
    visited = set()
    while current_id is not None:
        if current_id in visited:
            logger.warning("Circular parent chain detected for node %s", node_id)
            return None
        visited.add(current_id)
        current = doc.nodes.get(current_id)
        if current is None:
            logger.warning("Parent %s of node %s not found", current_id, node_id)
            return None
        path.append(current)
        current_id = doc.parent_map.get(current_id)
    return path[::-1]


def iter_preorder(doc: NormalizedDocument) -> Iterator[Node]:
    yield doc.nodes[doc.root_id]
    for node_id in descendants(doc, doc.root_id):
        yield doc.nodes[node_id]


def find_by_text(doc: NormalizedDocument, search_text: str) -> List[Node]:
    """Case-insensitive substring search, in document order."""
    search_lower = search_text.lower()
    return [node for node in iter_preorder(doc) if search_lower in node.text.lower()]
