"""
Rebuilding graph state from a visual canvas snapshot.

The snapshot is whatever the canvas last persisted: shapes may be mid-drag,
arrows half-bound, ids stale. Extraction never raises; anything that cannot
be read as a node or a fully-bound edge is dropped.
"""

import json
import logging
from typing import Any

from .constants import (
    ANNOTATION_NODE_TYPES,
    CONNECTOR_SHAPE_TYPE,
    FRAME_TYPE,
    NODE_COLORS,
    NODE_TYPES,
    SHAPE_PREFIX,
)
from .graph import cleanup_graph_state, create_graph_state
from .types import Edge, GraphState, Node
from .utils import is_frame, strip_arrow_prefix, strip_shape_prefix

logger = logging.getLogger(__name__)

_FALLBACK_NODE_TYPE = "box"


def _records(snapshot: Any) -> list[dict]:
    """Flatten the known snapshot envelopes into a list of records."""
    if isinstance(snapshot, (str, bytes)):
        try:
            snapshot = json.loads(snapshot)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning("Snapshot is not valid JSON, treating as empty")
            return []

    if isinstance(snapshot, dict):
        if isinstance(snapshot.get("document"), dict):
            snapshot = snapshot["document"]
        if isinstance(snapshot.get("store"), dict):
            snapshot = list(snapshot["store"].values())
        elif isinstance(snapshot.get("records"), list):
            snapshot = snapshot["records"]

    if not isinstance(snapshot, list):
        return []
    return [record for record in snapshot if isinstance(record, dict)]


def rich_text_to_plain(rich_text: Any) -> str:
    """Flatten a rich-text document into plain text, one line per block."""
    if rich_text is None:
        return ""
    if isinstance(rich_text, str):
        return rich_text
    if not isinstance(rich_text, dict):
        return ""
    if rich_text.get("type") == "text":
        return str(rich_text.get("text", ""))

    children = rich_text.get("content") or []
    parts = [rich_text_to_plain(child) for child in children if isinstance(child, dict)]
    if rich_text.get("type") in ("doc", None):
        return "\n".join(parts)
    return "".join(parts)


def _split_text(text: str) -> tuple[str, str]:
    """Annotation text renders as label, blank line, description."""
    lines = text.strip().split("\n")
    label = lines[0].strip() if lines else ""
    description = "\n".join(lines[1:]).strip()
    return label, description


def _shape_node(shape: dict, frame_shape_ids: set[str]) -> Node | None:
    """Read a node from a shape record, or None when it is not a graph node."""
    shape_type = shape.get("type")
    raw_id = shape.get("id")
    if not isinstance(raw_id, str) or not raw_id.startswith(SHAPE_PREFIX):
        return None
    props = shape.get("props") if isinstance(shape.get("props"), dict) else {}

    if shape_type == "diagram-node":
        node_type = props.get("nodeType")
        if node_type not in NODE_TYPES or node_type in ANNOTATION_NODE_TYPES:
            node_type = _FALLBACK_NODE_TYPE
        label = props.get("label") or ""
        description = props.get("description") or ""
    elif shape_type == FRAME_TYPE:
        node_type = FRAME_TYPE
        label = props.get("name") or ""
        description = ""
    elif shape_type in ANNOTATION_NODE_TYPES:
        node_type = shape_type
        text = rich_text_to_plain(props.get("richText")) or str(props.get("text") or "")
        label, description = _split_text(text)
    else:
        return None

    node_id = strip_shape_prefix(raw_id)
    node: Node = {
        "id": node_id,
        "label": str(label) or node_id,
        "description": str(description),
        "type": node_type,
    }

    parent = shape.get("parentId")
    if isinstance(parent, str) and parent in frame_shape_ids and parent != raw_id:
        node["parentId"] = strip_shape_prefix(parent)

    color = props.get("color")
    if isinstance(color, str) and color and color != NODE_COLORS.get(node_type):
        node["color"] = color

    opacity = shape.get("opacity")
    if isinstance(opacity, (int, float)) and 0.0 <= opacity < 1.0:
        node["opacity"] = float(opacity)

    meta = shape.get("meta") if isinstance(shape.get("meta"), dict) else {}
    if node_type in ANNOTATION_NODE_TYPES:
        if isinstance(meta.get("position"), str):
            node["position"] = meta["position"]
        if isinstance(meta.get("relativeTo"), str):
            node["relativeTo"] = meta["relativeTo"]

    return node


def _arrow_terminals(arrow: dict, bindings: list[dict]) -> dict[str, str]:
    """Map terminal ("start"/"end") to the bound shape id."""
    terminals = {}
    for binding in bindings:
        props = binding.get("props") if isinstance(binding.get("props"), dict) else {}
        terminal = props.get("terminal")
        to_id = binding.get("toId")
        if terminal in ("start", "end") and isinstance(to_id, str):
            terminals.setdefault(terminal, to_id)

    # Older snapshots keep the binding inside the arrow's own props
    props = arrow.get("props") if isinstance(arrow.get("props"), dict) else {}
    for terminal in ("start", "end"):
        handle = props.get(terminal)
        if isinstance(handle, dict) and isinstance(handle.get("boundShapeId"), str):
            terminals.setdefault(terminal, handle["boundShapeId"])
    return terminals


def _arrow_edge(arrow: dict, bindings: list[dict], nodes: dict[str, Node]) -> Edge | None:
    terminals = _arrow_terminals(arrow, bindings)
    if "start" not in terminals or "end" not in terminals:
        return None

    source_id = strip_shape_prefix(terminals["start"])
    target_id = strip_shape_prefix(terminals["end"])
    source = nodes.get(source_id)
    target = nodes.get(target_id)
    if source is None or target is None or is_frame(source) or is_frame(target):
        return None

    props = arrow.get("props") if isinstance(arrow.get("props"), dict) else {}
    head_start = props.get("arrowheadStart") or "none"
    head_end = props.get("arrowheadEnd") or "arrow"

    return {
        "id": strip_arrow_prefix(arrow["id"]),
        "sourceId": source_id,
        "targetId": target_id,
        "bidirectional": head_start != "none" and head_end != "none",
    }


def extract_graph_state(snapshot: Any) -> GraphState:
    """
    Extract graph state from a canvas snapshot.

    Pure and total: malformed input yields a best-effort partial state,
    never an exception.
    """
    state = create_graph_state()
    records = _records(snapshot)

    shapes = [r for r in records if r.get("typeName", "shape") == "shape" and "type" in r]
    bindings_by_arrow: dict[str, list[dict]] = {}
    for record in records:
        if record.get("typeName") == "binding" and record.get("type") == CONNECTOR_SHAPE_TYPE:
            from_id = record.get("fromId")
            if isinstance(from_id, str):
                bindings_by_arrow.setdefault(from_id, []).append(record)

    frame_shape_ids = {
        shape["id"] for shape in shapes
        if shape.get("type") == FRAME_TYPE and isinstance(shape.get("id"), str)
    }

    dropped = 0
    for shape in shapes:
        if shape.get("type") == CONNECTOR_SHAPE_TYPE:
            continue
        try:
            node = _shape_node(shape, frame_shape_ids)
        except (TypeError, ValueError, AttributeError) as e:
            logger.debug(f"Skipping unreadable shape {shape.get('id')!r}: {e}")
            node = None
        if node is None:
            dropped += 1
            continue
        state["nodes"][node["id"]] = node

    for shape in shapes:
        if shape.get("type") != CONNECTOR_SHAPE_TYPE or not isinstance(shape.get("id"), str):
            continue
        try:
            edge = _arrow_edge(shape, bindings_by_arrow.get(shape["id"], []), state["nodes"])
        except (TypeError, ValueError, AttributeError) as e:
            logger.debug(f"Skipping unreadable connector {shape.get('id')!r}: {e}")
            edge = None
        if edge is None:
            dropped += 1
            logger.debug(f"Dropped connector {shape['id']} without two bound endpoints")
            continue
        state["edges"][edge["id"]] = edge

    cleanup_graph_state(state)

    logger.info(
        f"Extracted graph from snapshot: {len(state['nodes'])} nodes, "
        f"{len(state['edges'])} edges, {dropped} records dropped"
    )
    return state
