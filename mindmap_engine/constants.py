# mindmap_engine/constants.py
"""Shared constants for coordinates, layout spacing and history limits."""

# --- Coordinates ---
DEFAULT_CENTER_X = 400
DEFAULT_CENTER_Y = 300
ROOT_NODE_X = 400
ROOT_NODE_Y = 300

# --- Layout ---
RADIAL_BASE_RADIUS = 150
RADIAL_RADIUS_INCREMENT = 120
LEVEL_SPACING = 200
VERTICAL_SPACING_MIN = 80
VERTICAL_SPACING_MAX = 130

NODE_MIN_WIDTH = 120
NODE_CHAR_WIDTH = 8
NODE_HEIGHT = 40
COLLISION_MARGIN = 20

ORGANIC_BASE_RADIUS = 120
ORGANIC_RADIUS_VARIATION = 40
ORGANIC_REPULSION_FORCE = 1000
ORGANIC_ITERATIONS = 50
ORGANIC_INTERACTION_RADIUS = 200
ORGANIC_DAMPING = 0.1
ORGANIC_JITTER = 10

GRID_SPACING = 120
GRID_COLUMNS = 5
CIRCULAR_RADIUS = 200

# Auto-select thresholds (inclusive upper bounds on total node count)
AUTO_RADIAL_MAX_NODES = 5
AUTO_MINDMAP_MAX_NODES = 15
AUTO_HIERARCHICAL_MAX_NODES = 30

# --- Typography ---
DEFAULT_FONT_SIZE = 16
DEFAULT_FONT_WEIGHT = "normal"

# --- Documents ---
ROOT_ID = "root"
NEW_MAP_TITLE = "New Mind Map"
ROOT_NODE_TEXT = "Main Topic"
REPAIRED_MAP_TITLE = "Untitled Map"
REPAIRED_ROOT_TEXT = "Root"
DEFAULT_CATEGORY = "Uncategorized"
DEFAULT_THEME = "default"

# --- History ---
MAX_HISTORY_SIZE = 50
