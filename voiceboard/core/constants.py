"""Constants for whiteboard graph operations."""

# Action types accepted from the action-translation collaborator
ACTION_TYPES = ("create_node", "update_node", "delete_node", "create_edge", "delete_edge")

# Node types
SEMANTIC_NODE_TYPES = ("database", "server", "client", "storage", "network")
SHAPE_NODE_TYPES = ("box", "circle", "cloud", "diamond", "hexagon", "person", "process", "data")
FRAME_TYPE = "frame"
ANNOTATION_NODE_TYPES = ("text", "note")
NODE_TYPES = SEMANTIC_NODE_TYPES + SHAPE_NODE_TYPES + (FRAME_TYPE,) + ANNOTATION_NODE_TYPES

# Relative placement keywords for annotation nodes
POSITION_KEYWORDS = (
    "above", "below", "left", "right", "top", "bottom",
    "top-left", "top-right", "bottom-left", "bottom-right",
)
DEFAULT_POSITION = "right"

# Default color per node type (overridable per node)
NODE_COLORS = {
    "server": "blue",
    "client": "light-blue",
    "network": "light-violet",
    "database": "green",
    "storage": "light-green",
    "data": "light-green",
    "cloud": "light-blue",
    "box": "blue",
    "person": "violet",
    "process": "orange",
    "hexagon": "light-red",
    "diamond": "yellow",
    "text": "grey",
    "note": "yellow",
    "circle": "grey",
    "frame": "grey",
}
FALLBACK_COLOR = "grey"

# Node dimensions (width, height)
NODE_WIDTH = 200
NODE_HEIGHT = 100
NODE_SIZES = {
    "text": (200, 50),
    "note": (200, 200),
}

# Layout
HINT_GAP = 40
NODE_SPACING = 80
LAYER_SPACING = 100
FRAME_PADDING = 40
LAYOUT_TIMEOUT_SECONDS = 10.0

# Presentation-layer ids
SHAPE_PREFIX = "shape:"
ARROW_PREFIX = "arrow_"
NODE_SHAPE_TYPES = ("diagram-node", "frame", "text", "note")
CONNECTOR_SHAPE_TYPE = "arrow"

# Sync message
GRAPH_SYNC_TYPE = "graph_sync"

# Session
SESSION_ID_LENGTH = 8
SESSION_TTL_SECONDS = 24 * 60 * 60  # 24 hours

# Backup retention
MAX_RECENT_BACKUPS = 3
BACKUP_INTERVAL_SECONDS = 3600  # Minimum 1 hour between backups
