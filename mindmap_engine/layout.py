# mindmap_engine/layout.py
"""
Auto-layout algorithms for mind map trees.

Each layout takes a root Node and keyword options and returns a new tree with
recomputed x/y coordinates. The input tree is never modified and no field
other than x/y changes. Collapsed nodes are laid out like any other node.

All layouts except `organic_layout` are deterministic. The organic layout
draws its randomness from a `random.Random(seed)`, so a fixed seed reproduces
its output exactly.
"""
import inspect
import logging
import math
import random
from collections import namedtuple
from typing import Dict, List, Optional, Tuple, Any, Callable

from . import constants
from .errors import InvalidOperationError
from .models import Node, _is_number

logger = logging.getLogger(__name__)

LayoutPreset = namedtuple("LayoutPreset", ["name", "description", "func"])

HORIZONTAL = "horizontal"
VERTICAL = "vertical"

# Options that must be numbers whichever layout receives them.
NUMERIC_OPTIONS = frozenset([
    "center_x", "center_y", "base_radius", "radius_increment", "angle_offset", "level_spacing",
    "node_spacing", "min_vertical_spacing", "radius_variation", "repulsion_force", "grid_spacing",
    "radius", "iterations", "columns",
])


# --- Shared geometry helpers ---

def count_nodes(root: Node) -> int:
    return sum(1 for _ in root.iter_nodes())


def _leaf_counts(root: Node) -> Dict[int, int]:
    """Leaf count of every subtree, keyed by id() of the node object."""
    counts: Dict[int, int] = {}
    order = list(root.iter_nodes())
    for node in reversed(order): # children before parents
        if node.children:
            counts[id(node)] = sum(counts[id(child)] for child in node.children)
        else:
            counts[id(node)] = 1
    return counts


def subtree_size(node: Node) -> int:
    """Number of leaves under `node` (a leaf counts as 1)."""
    return _leaf_counts(node)[id(node)]


def node_bounds(text: str) -> Tuple[int, int]:
    """Approximate (width, height) of a rendered node, used for collision spacing."""
    width = max(constants.NODE_MIN_WIDTH, len(text or "") * constants.NODE_CHAR_WIDTH)
    return width, constants.NODE_HEIGHT


def _shift_subtree(node: Node, delta_y: float) -> None:
    for descendant in node.iter_nodes():
        descendant.y += delta_y


# --- Radial ---

def radial_layout(root: Node, center_x: float = constants.DEFAULT_CENTER_X,
                  center_y: float = constants.DEFAULT_CENTER_Y,
                  base_radius: float = constants.RADIAL_BASE_RADIUS,
                  radius_increment: float = constants.RADIAL_RADIUS_INCREMENT,
                  angle_offset: float = 0.0) -> Node:
    """Root at the center, children spread over the angular span inherited from their parent."""
    new_root = root.clone()
    new_root.x = center_x
    new_root.y = center_y

    # (node, depth, parent_angle, angle_span)
    stack: List[Tuple[Node, int, float, float]] = [(new_root, 0, 0.0, 2 * math.pi)]
    while stack:
        node, depth, parent_angle, angle_span = stack.pop()
        if not node.children:
            continue
        radius = base_radius + depth * radius_increment
        angle_step = angle_span / len(node.children)
        start_angle = parent_angle - angle_span / 2 + angle_step / 2
        for index, child in enumerate(node.children):
            angle = start_angle + index * angle_step + angle_offset
            child.x = node.x + math.cos(angle) * radius
            child.y = node.y + math.sin(angle) * radius
            if child.children:
                stack.append((child, depth + 1, angle, angle_step * 0.8))
    return new_root


# --- Hierarchical ---

def hierarchical_layout(root: Node, center_x: float = constants.DEFAULT_CENTER_X,
                        center_y: float = constants.DEFAULT_CENTER_Y,
                        level_spacing: float = constants.LEVEL_SPACING,
                        node_spacing: float = constants.VERTICAL_SPACING_MIN,
                        direction: str = HORIZONTAL,
                        relative_to_parent: bool = False) -> Node:
    """
    Depth drives one axis, sibling order the other.

    With `direction="horizontal"` odd depths go right of the center and even
    depths left; with `"vertical"` levels stack downwards. Siblings get space
    in proportion to their leaf counts. Each sibling group is spread around
    the center line, or around its parent with `relative_to_parent=True`.
    """
    if direction not in (HORIZONTAL, VERTICAL):
        raise ValueError(f"direction must be '{HORIZONTAL}' or '{VERTICAL}', got '{direction}'")

    new_root = root.clone()
    leaves = _leaf_counts(new_root)
    new_root.x = center_x
    new_root.y = center_y

    stack: List[Tuple[Node, int]] = [(new_root, 0)]
    while stack:
        node, depth = stack.pop()
        if not node.children:
            continue
        total = sum(leaves[id(child)] for child in node.children)
        child_depth = depth + 1
        current_offset = 0.0
        for child in node.children:
            size = leaves[id(child)]
            spread = (current_offset + size / 2 - total / 2) * node_spacing
            if direction == HORIZONTAL:
                side = 1 if child_depth % 2 == 1 else -1
                child.x = center_x + child_depth * level_spacing * side
                child.y = (node.y if relative_to_parent else center_y) + spread
            else:
                child.x = (node.x if relative_to_parent else center_x) + spread
                child.y = center_y + child_depth * level_spacing
            current_offset += size
            stack.append((child, child_depth))
    return new_root


# --- Mindmap ---

def _resolve_collisions(root: Node) -> None:
    """Pushes same-depth nodes (with their subtrees) apart until each adjacent pair has the minimum gap."""
    by_depth: Dict[int, List[Node]] = {}
    stack: List[Tuple[Node, int]] = [(root, 0)]
    while stack:
        node, depth = stack.pop()
        by_depth.setdefault(depth, []).append(node)
        stack.extend((child, depth + 1) for child in reversed(node.children))

    for depth in sorted(by_depth):
        level = by_depth[depth]
        if len(level) <= 1:
            continue
        level.sort(key=lambda n: n.y)
        for prev_node, current_node in zip(level, level[1:]):
            _, prev_height = node_bounds(prev_node.text)
            _, current_height = node_bounds(current_node.text)
            min_distance = (prev_height + current_height) / 2 + constants.COLLISION_MARGIN
            distance = current_node.y - prev_node.y
            if distance < min_distance:
                _shift_subtree(current_node, min_distance - distance)


def mindmap_layout(root: Node, center_x: float = constants.DEFAULT_CENTER_X,
                   center_y: float = constants.DEFAULT_CENTER_Y,
                   base_radius: float = constants.RADIAL_BASE_RADIUS + 30,
                   level_spacing: float = constants.LEVEL_SPACING,
                   min_vertical_spacing: float = constants.VERTICAL_SPACING_MIN - 20,
                   preserve_root_position: bool = False,
                   anchor_on_root: bool = False) -> Node:
    """
    Two-sided mind map layout.

    Root children alternate right (even index) and left (odd index). Each side
    is stacked vertically by subtree height, and deeper nodes keep their
    side, moving outwards by `level_spacing` per level. A collision pass then
    enforces a minimum vertical gap between nodes of the same depth.

    `preserve_root_position` leaves the root where it is; the other nodes are
    still placed around (center_x, center_y) unless `anchor_on_root` is set.
    """
    new_root = root.clone()
    if not preserve_root_position:
        new_root.x = center_x
        new_root.y = center_y
    if preserve_root_position and anchor_on_root:
        anchor_x, anchor_y = new_root.x, new_root.y
    else:
        anchor_x, anchor_y = center_x, center_y

    leaves = _leaf_counts(new_root)

    def place_children(children: List[Node], depth: int, side: int, base_offset: float,
                       pending: List[Tuple[Node, int, int, float]]) -> None:
        total = sum(leaves[id(child)] for child in children)
        current_offset = 0.0
        for child in children:
            height = leaves[id(child)]
            y_offset = base_offset + (current_offset + height / 2 - total / 2) * min_vertical_spacing
            pending.append((child, depth, side, y_offset))
            current_offset += height

    # (node, depth, side, y_offset); side is +1 for right, -1 for left
    pending: List[Tuple[Node, int, int, float]] = []
    right_children = new_root.children[0::2]
    left_children = new_root.children[1::2]
    place_children(right_children, 1, 1, 0.0, pending)
    place_children(left_children, 1, -1, 0.0, pending)

    while pending:
        node, depth, side, y_offset = pending.pop()
        x_distance = base_radius + (depth - 1) * level_spacing
        node.x = anchor_x + x_distance * side
        node.y = anchor_y + y_offset
        if node.children:
            place_children(node.children, depth + 1, side, y_offset, pending)

    _resolve_collisions(new_root)
    return new_root


def mindmap_layout_preserve_root(root: Node, **options: Any) -> Node:
    return _call_layout(mindmap_layout, root, {**options, "preserve_root_position": True})


# --- Organic ---

def organic_layout(root: Node, center_x: float = constants.DEFAULT_CENTER_X,
                   center_y: float = constants.DEFAULT_CENTER_Y,
                   base_radius: float = constants.ORGANIC_BASE_RADIUS,
                   radius_variation: float = constants.ORGANIC_RADIUS_VARIATION,
                   repulsion_force: float = constants.ORGANIC_REPULSION_FORCE,
                   iterations: int = constants.ORGANIC_ITERATIONS,
                   seed: Optional[int] = None) -> Node:
    """
    Force-directed relaxation starting from a jittered radial layout.

    Every iteration applies inverse-square repulsion between node pairs closer
    than the interaction radius plus a small random jitter, damped by a fixed
    factor. The root stays pinned. Runs exactly `iterations` rounds.
    """
    if not isinstance(iterations, int) or isinstance(iterations, bool) or iterations < 0:
        raise ValueError(f"iterations must be a non-negative integer, got {iterations!r}")

    rng = random.Random(seed)
    new_root = radial_layout(root, center_x=center_x, center_y=center_y,
                             base_radius=base_radius + rng.random() * radius_variation)
    all_nodes = list(new_root.iter_nodes())
    interaction_radius = constants.ORGANIC_INTERACTION_RADIUS
    damping = constants.ORGANIC_DAMPING
    jitter = constants.ORGANIC_JITTER

    for _ in range(iterations):
        for node in all_nodes:
            if node is new_root:
                continue
            force_x = 0.0
            force_y = 0.0
            for other in all_nodes:
                if other is node:
                    continue
                dx = node.x - other.x
                dy = node.y - other.y
                distance = math.sqrt(dx * dx + dy * dy)
                if 0 < distance < interaction_radius:
                    force = repulsion_force / (distance * distance)
                    force_x += (dx / distance) * force
                    force_y += (dy / distance) * force
            force_x += (rng.random() - 0.5) * jitter
            force_y += (rng.random() - 0.5) * jitter
            node.x += force_x * damping
            node.y += force_y * damping
    return new_root


# --- Grid / Circular ---

def grid_layout(root: Node, center_x: float = constants.DEFAULT_CENTER_X,
                center_y: float = constants.DEFAULT_CENTER_Y,
                grid_spacing: float = constants.GRID_SPACING,
                columns: int = constants.GRID_COLUMNS) -> Node:
    """Root at the center; every other node in pre-order on a grid starting one row below it."""
    if columns < 1:
        raise ValueError("columns must be at least 1")
    new_root = root.clone()
    all_nodes = list(new_root.iter_nodes())
    new_root.x = center_x
    new_root.y = center_y

    start_x = center_x - (columns - 1) * grid_spacing / 2
    start_y = center_y + grid_spacing
    for index, node in enumerate(all_nodes[1:]):
        row, col = divmod(index, columns)
        node.x = start_x + col * grid_spacing
        node.y = start_y + row * grid_spacing
    return new_root


def circular_layout(root: Node, center_x: float = constants.DEFAULT_CENTER_X,
                    center_y: float = constants.DEFAULT_CENTER_Y,
                    radius: float = constants.CIRCULAR_RADIUS) -> Node:
    """Root at the center; every other node evenly spaced on one circle in pre-order."""
    new_root = root.clone()
    all_nodes = list(new_root.iter_nodes())
    new_root.x = center_x
    new_root.y = center_y

    others = all_nodes[1:]
    if others:
        angle_step = 2 * math.pi / len(others)
        for index, node in enumerate(others):
            angle = index * angle_step
            node.x = center_x + math.cos(angle) * radius
            node.y = center_y + math.sin(angle) * radius
    return new_root


# --- Selection ---

def select_layout_name(root: Node) -> str:
    """Picks a layout from the total node count."""
    node_count = count_nodes(root)
    if node_count <= constants.AUTO_RADIAL_MAX_NODES:
        return "radial"
    if node_count <= constants.AUTO_MINDMAP_MAX_NODES:
        return "mindmap"
    if node_count <= constants.AUTO_HIERARCHICAL_MAX_NODES:
        return "hierarchical"
    return "organic"


def _call_layout(func: Callable[..., Node], root: Node, options: Dict[str, Any]) -> Node:
    """Calls `func` with only the options it accepts."""
    params = inspect.signature(func).parameters
    if any(p.kind == inspect.Parameter.VAR_KEYWORD for p in params.values()):
        return func(root, **options)
    return func(root, **{k: v for k, v in options.items() if k in params})


def auto_select_layout(root: Node, **options: Any) -> Node:
    name = select_layout_name(root)
    logger.debug("Auto-selected '%s' layout for %d nodes", name, count_nodes(root))
    return _call_layout(LAYOUT_PRESETS[name].func, root, options)


LAYOUT_PRESETS: Dict[str, LayoutPreset] = {
    "radial": LayoutPreset("Radial", "Children arranged in circles around the root", radial_layout),
    "mindmap": LayoutPreset("Mind map", "Branches split between the left and right of the root", mindmap_layout),
    "mindmapPreserve": LayoutPreset("Mind map (keep root)", "Mind map layout that leaves the root where it is",
                                    mindmap_layout_preserve_root),
    "hierarchical": LayoutPreset("Hierarchical", "Levels of the tree aligned in columns", hierarchical_layout),
    "organic": LayoutPreset("Organic", "Natural spacing from a force simulation", organic_layout),
    "grid": LayoutPreset("Grid", "Every node on a regular grid", grid_layout),
    "circular": LayoutPreset("Circular", "Every node on one circle around the root", circular_layout),
    "auto": LayoutPreset("Auto", "Chosen from the number of nodes", auto_select_layout),
}


def apply_layout(root: Node, name: str, **options: Any) -> Node:
    """
    Runs the preset `name`, ignoring options that layout does not take.
    Raises ValueError when a numeric option is given a non-number.
    """
    preset = LAYOUT_PRESETS.get(name)
    if preset is None:
        raise InvalidOperationError(
            f"Unknown layout '{name}'. Available: {', '.join(LAYOUT_PRESETS)}")
    for key, value in options.items():
        if key in NUMERIC_OPTIONS and not _is_number(value):
            raise ValueError(f"{key} must be a number, got {value!r}")
    return _call_layout(preset.func, root, options)
