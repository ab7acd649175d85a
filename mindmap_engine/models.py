# mindmap_engine/models.py
import copy
import itertools
import math
import time
import uuid
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional, Tuple

from . import constants

# Python attribute name -> JSON key for the optional style attributes.
STYLE_FIELDS: Dict[str, str] = {
    "font_size": "fontSize",
    "font_weight": "fontWeight",
    "font_style": "fontStyle",
    "color": "color",
    "background_color": "backgroundColor",
    "border_style": "borderStyle",
    "border_width": "borderWidth",
}

# Every JSON key a Node understands, mapped to its attribute name.
NODE_JSON_FIELDS: Dict[str, str] = {
    "id": "id",
    "text": "text",
    "x": "x",
    "y": "y",
    "collapsed": "collapsed",
    "attachments": "attachments",
    "mapLinks": "map_links",
    **{json_key: attr for attr, json_key in STYLE_FIELDS.items()},
}

_id_counter = itertools.count()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _new_id(prefix: str) -> str:
    millis = time.time_ns() // 1_000_000
    return f"{prefix}_{millis}_{next(_id_counter)}_{uuid.uuid4().hex[:12]}"


def generate_node_id() -> str:
    return _new_id("node")


def generate_map_id() -> str:
    return _new_id("map")


class Node:
    """A single labeled, positioned vertex of the mind map tree."""
    def __init__(self, node_id: str, text: str = "", x: float = constants.DEFAULT_CENTER_X,
                 y: float = constants.DEFAULT_CENTER_Y, children: Optional[List['Node']] = None,
                 collapsed: bool = False, attachments: Optional[List[Any]] = None,
                 map_links: Optional[List[Any]] = None, extra: Optional[Dict[str, Any]] = None,
                 **style: Any):
        unknown = set(style) - set(STYLE_FIELDS)
        if unknown:
            raise TypeError(f"Unknown style attribute(s): {', '.join(sorted(unknown))}")
        self.id: str = node_id
        self.text: str = text
        self.x: float = x
        self.y: float = y
        self.children: List['Node'] = children if children is not None else []
        self.collapsed: bool = collapsed
        self.attachments: List[Any] = attachments if attachments is not None else []
        self.map_links: List[Any] = map_links if map_links is not None else []
        self.extra: Dict[str, Any] = extra if extra is not None else {}
        for attr in STYLE_FIELDS:
            setattr(self, attr, style.get(attr))

    def _own_fields(self) -> Dict[str, Any]:
        data: Dict[str, Any] = dict(copy.deepcopy(self.extra))
        data.update({
            "id": self.id,
            "text": self.text,
            "x": self.x,
            "y": self.y,
        })
        for attr, json_key in STYLE_FIELDS.items():
            value = getattr(self, attr)
            if value is not None:
                data[json_key] = value
        if self.collapsed:
            data["collapsed"] = True
        data["attachments"] = copy.deepcopy(self.attachments)
        data["mapLinks"] = copy.deepcopy(self.map_links)
        return data

    def to_dict(self) -> Dict[str, Any]:
        """Serializes the node and its whole subtree to JSON-compatible dictionaries."""
        result = self._own_fields()
        stack: List[Tuple['Node', Dict[str, Any]]] = [(self, result)]
        while stack:
            node, data = stack.pop()
            data["children"] = []
            for child in node.children:
                child_data = child._own_fields()
                data["children"].append(child_data)
                stack.append((child, child_data))
        return result

    @classmethod
    def _from_fields(cls, data: Dict[str, Any]) -> 'Node':
        style = {attr: data[json_key] for attr, json_key in STYLE_FIELDS.items() if json_key in data}
        extra = {k: copy.deepcopy(v) for k, v in data.items()
                 if k not in NODE_JSON_FIELDS and k != "children"}
        return cls(
            node_id=data['id'],
            text=data.get('text') or "",
            x=data['x'] if _is_number(data.get('x')) else constants.DEFAULT_CENTER_X,
            y=data['y'] if _is_number(data.get('y')) else constants.DEFAULT_CENTER_Y,
            collapsed=bool(data.get('collapsed', False)),
            attachments=copy.deepcopy(data.get('attachments') or []),
            map_links=copy.deepcopy(data.get('mapLinks') or []),
            extra=extra,
            **style,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Node':
        """Deserializes a node tree. Raises KeyError if a node has no 'id'."""
        root = cls._from_fields(data)
        stack: List[Tuple['Node', Dict[str, Any]]] = [(root, data)]
        while stack:
            node, node_data = stack.pop()
            for child_data in node_data.get('children') or []:
                child = cls._from_fields(child_data)
                node.children.append(child)
                stack.append((child, child_data))
        return root

    def clone(self) -> 'Node':
        """Deep copy of the subtree."""
        return Node.from_dict(self.to_dict())

    def shallow_copy(self) -> 'Node':
        """Copy of this node's own content with an empty children list."""
        return Node._from_fields(self._own_fields())

    def iter_nodes(self):
        """Yields the subtree in pre-order (the node itself first)."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Node(id={self.id}, text='{self.text}', x={self.x}, y={self.y}, children={len(self.children)})"


class DocumentSettings:
    """Per-document flags consumed by collaborators (auto save, auto layout)."""
    def __init__(self, auto_save: bool = True, auto_layout: bool = True, extra: Optional[Dict[str, Any]] = None):
        self.auto_save: bool = auto_save
        self.auto_layout: bool = auto_layout
        self.extra: Dict[str, Any] = extra if extra is not None else {}

    def to_dict(self) -> Dict[str, Any]:
        data = dict(self.extra)
        data.update({"autoSave": self.auto_save, "autoLayout": self.auto_layout})
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'DocumentSettings':
        data = data or {}
        extra = {k: v for k, v in data.items() if k not in ("autoSave", "autoLayout")}
        return cls(auto_save=bool(data.get("autoSave", True)),
                   auto_layout=bool(data.get("autoLayout", True)),
                   extra=extra)


class Document:
    """The full mind map: metadata, settings and the root node."""
    def __init__(self, doc_id: str, title: str, root_node: Node,
                 settings: Optional[DocumentSettings] = None, category: Optional[str] = None,
                 theme: Optional[str] = None, created_at: Optional[str] = None,
                 updated_at: Optional[str] = None):
        now = _now_iso()
        self.id: str = doc_id
        self.title: str = title
        self.root_node: Node = root_node
        self.settings: DocumentSettings = settings if settings is not None else DocumentSettings()
        self.category: Optional[str] = category
        self.theme: Optional[str] = theme
        self.created_at: str = created_at or now
        self.updated_at: str = updated_at or now

    def with_root(self, root_node: Node) -> 'Document':
        """Returns a copy of this document holding `root_node`, with a fresh updatedAt."""
        doc = Document(
            doc_id=self.id,
            title=self.title,
            root_node=root_node,
            settings=DocumentSettings.from_dict(self.settings.to_dict()),
            category=self.category,
            theme=self.theme,
            created_at=self.created_at,
            updated_at=_now_iso(),
        )
        return doc

    def clone(self) -> 'Document':
        return Document.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "rootNode": self.root_node.to_dict(),
            "settings": self.settings.to_dict(),
        }
        if self.category is not None:
            data["category"] = self.category
        if self.theme is not None:
            data["theme"] = self.theme
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Document':
        """Deserializes a document. Raises KeyError when 'id' or 'rootNode' is missing."""
        return cls(
            doc_id=data['id'],
            title=data.get('title') or constants.REPAIRED_MAP_TITLE,
            root_node=Node.from_dict(data['rootNode']),
            settings=DocumentSettings.from_dict(data.get('settings')),
            category=data.get('category'),
            theme=data.get('theme'),
            created_at=data.get('createdAt'),
            updated_at=data.get('updatedAt'),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Document):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Document(id={self.id}, title='{self.title}')"


def create_initial_document(title: str = constants.NEW_MAP_TITLE) -> Document:
    """A fresh document holding a single root node at the default position."""
    root = Node(
        node_id=constants.ROOT_ID,
        text=constants.ROOT_NODE_TEXT,
        x=constants.ROOT_NODE_X,
        y=constants.ROOT_NODE_Y,
        font_size=constants.DEFAULT_FONT_SIZE,
        font_weight=constants.DEFAULT_FONT_WEIGHT,
    )
    return Document(
        doc_id=generate_map_id(),
        title=title,
        root_node=root,
        settings=DocumentSettings(auto_save=True, auto_layout=True),
        category=constants.DEFAULT_CATEGORY,
        theme=constants.DEFAULT_THEME,
    )


def create_new_node(text: str = "", parent: Optional[Node] = None, node_id: Optional[str] = None) -> Node:
    """Creates a child node placed to the right of its parent (children get a smaller font)."""
    return Node(
        node_id=node_id or generate_node_id(),
        text=text,
        x=parent.x + constants.RADIAL_BASE_RADIUS if parent else constants.DEFAULT_CENTER_X,
        y=parent.y if parent else constants.DEFAULT_CENTER_Y,
        font_size=constants.DEFAULT_FONT_SIZE - 2,
        font_weight=constants.DEFAULT_FONT_WEIGHT,
    )


def calculate_node_position(parent: Optional[Node], child_index: int, total_children: int) -> Tuple[float, float]:
    """Fans `total_children` over a half circle right of the parent (-90° .. +90°)."""
    if parent is None:
        return float(constants.DEFAULT_CENTER_X), float(constants.DEFAULT_CENTER_Y)
    angle_step = 180 / (total_children - 1) if total_children > 1 else 0
    radian = math.radians(-90 + angle_step * child_index)
    return (parent.x + math.cos(radian) * constants.RADIAL_BASE_RADIUS,
            parent.y + math.sin(radian) * constants.RADIAL_BASE_RADIUS)


# --- Validation predicates over the JSON form ---

def is_valid_node_dict(data: Any) -> bool:
    """True when every node in the subtree has a string id/text, numeric x/y and a list of children."""
    stack = [data]
    while stack:
        node = stack.pop()
        if not isinstance(node, dict):
            return False
        if not isinstance(node.get("id"), str) or not node["id"]:
            return False
        if not isinstance(node.get("text"), str):
            return False
        if not (_is_number(node.get("x")) and _is_number(node.get("y"))):
            return False
        children = node.get("children", [])
        if not isinstance(children, list):
            return False
        stack.extend(children)
    return True


def is_valid_document_dict(data: Any) -> bool:
    if not isinstance(data, dict):
        return False
    if not data.get("id") or not isinstance(data.get("title"), str):
        return False
    root = data.get("rootNode")
    if not isinstance(root, dict) or root.get("id") != constants.ROOT_ID:
        return False
    return is_valid_node_dict(root)
