"""Utility functions for whiteboard graph operations."""

from .constants import (
    ANNOTATION_NODE_TYPES,
    ARROW_PREFIX,
    FALLBACK_COLOR,
    FRAME_TYPE,
    NODE_COLORS,
    NODE_HEIGHT,
    NODE_SIZES,
    NODE_WIDTH,
    SHAPE_PREFIX,
)


def edge_id_for(source_id: str, target_id: str) -> str:
    """Generate the default id of an edge."""
    return f"{source_id}->{target_id}"


def shape_id(node_id: str) -> str:
    """Presentation-layer id for a node."""
    return f"{SHAPE_PREFIX}{node_id}"


def arrow_id(edge_id: str) -> str:
    """Presentation-layer id for an edge connector."""
    return f"{SHAPE_PREFIX}{ARROW_PREFIX}{edge_id}"


def strip_shape_prefix(presentation_id: str) -> str:
    """Strip the presentation prefix from a node shape id."""
    if presentation_id.startswith(SHAPE_PREFIX):
        return presentation_id[len(SHAPE_PREFIX):]
    return presentation_id


def strip_arrow_prefix(presentation_id: str) -> str:
    """Strip the presentation prefix from a connector id."""
    edge_id = strip_shape_prefix(presentation_id)
    if edge_id.startswith(ARROW_PREFIX):
        return edge_id[len(ARROW_PREFIX):]
    return edge_id


def is_frame(node: dict | None) -> bool:
    """Check if a node is a frame."""
    return node is not None and node.get("type") == FRAME_TYPE


def is_annotation(node: dict) -> bool:
    """Check if a node is an annotation (text or note)."""
    return node.get("type") in ANNOTATION_NODE_TYPES


def effective_color(node: dict) -> str:
    """Color override if set, otherwise the default for the node type."""
    return node.get("color") or NODE_COLORS.get(node.get("type"), FALLBACK_COLOR)


def node_size(node: dict) -> tuple[int, int]:
    """Width and height used for layout of a non-frame node."""
    return NODE_SIZES.get(node.get("type"), (NODE_WIDTH, NODE_HEIGHT))


def creates_cycle(nodes: dict, node_id: str, parent_id: str | None) -> bool:
    """
    Check whether parenting node_id under parent_id would close a containment cycle.
    Walks the ancestor chain of parent_id looking for node_id.
    """
    seen = set()
    current = parent_id
    while current is not None:
        if current == node_id:
            return True
        if current in seen:
            # Pre-existing cycle above us; refuse to extend it
            return True
        seen.add(current)
        parent = nodes.get(current)
        if parent is None:
            return False
        current = parent.get("parentId")
    return False
