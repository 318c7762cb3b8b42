"""
Layout coordination.

Frames and regular nodes are laid out by an external hierarchical layout
engine speaking the ELK JSON graph format. Annotation nodes carrying a
position hint are placed afterwards, relative to one node or to the whole
drawing.
"""

import asyncio
import logging
from typing import Any, Protocol

from .constants import (
    ANNOTATION_NODE_TYPES,
    DEFAULT_POSITION,
    FRAME_PADDING,
    HINT_GAP,
    LAYER_SPACING,
    LAYOUT_TIMEOUT_SECONDS,
    NODE_SPACING,
)
from .exceptions import LayoutError, LayoutTimeoutError
from .types import Edge, GraphState, LayoutNode, LayoutResult, Node
from .utils import creates_cycle, effective_color, is_frame, node_size

logger = logging.getLogger(__name__)

Box = tuple[float, float, float, float]  # x, y, width, height

ROOT_ID = "root"

ROOT_LAYOUT_OPTIONS = {
    "elk.algorithm": "layered",
    "elk.direction": "RIGHT",
    "elk.hierarchyHandling": "INCLUDE_CHILDREN",
    "elk.spacing.nodeNode": str(NODE_SPACING),
    "elk.layered.spacing.nodeNodeBetweenLayers": str(LAYER_SPACING),
}

FRAME_LAYOUT_OPTIONS = {
    "elk.padding": f"[top={FRAME_PADDING + 20},left={FRAME_PADDING},bottom={FRAME_PADDING},right={FRAME_PADDING}]",
}

# keyword -> (horizontal rule, vertical rule)
_POSITION_RULES = {
    "above": ("center", "top"),
    "top": ("center", "top"),
    "below": ("center", "bottom"),
    "bottom": ("center", "bottom"),
    "left": ("left", "center"),
    "right": ("right", "center"),
    "top-left": ("left", "top"),
    "top-right": ("right", "top"),
    "bottom-left": ("left", "bottom"),
    "bottom-right": ("right", "bottom"),
}


class LayoutEngine(Protocol):
    """External hierarchical layout engine (ELK JSON in, ELK JSON out)."""

    async def layout(self, graph: dict[str, Any]) -> dict[str, Any]:
        ...


def is_hint_positioned(node: Node) -> bool:
    """Annotation nodes with a position keyword skip automatic placement."""
    return node.get("type") in ANNOTATION_NODE_TYPES and bool(node.get("position"))


def bounding_box(boxes: list[Box]) -> Box | None:
    """Smallest box containing all boxes, or None when there are none."""
    if not boxes:
        return None
    left = min(b[0] for b in boxes)
    top = min(b[1] for b in boxes)
    right = max(b[0] + b[2] for b in boxes)
    bottom = max(b[1] + b[3] for b in boxes)
    return left, top, right - left, bottom - top


def resolve_hint_position(
    position: str | None,
    reference: Box,
    width: float,
    height: float,
    gap: float = HINT_GAP,
) -> tuple[float, float]:
    """Absolute top-left corner for a box of (width, height) placed by keyword next to reference."""
    horizontal, vertical = _POSITION_RULES.get(position or DEFAULT_POSITION, _POSITION_RULES[DEFAULT_POSITION])
    ref_x, ref_y, ref_w, ref_h = reference

    if horizontal == "left":
        x = ref_x - gap - width
    elif horizontal == "right":
        x = ref_x + ref_w + gap
    else:
        x = ref_x + ref_w / 2 - width / 2

    if vertical == "top":
        y = ref_y - gap - height
    elif vertical == "bottom":
        y = ref_y + ref_h + gap
    else:
        y = ref_y + ref_h / 2 - height / 2

    return x, y


def layout_edges(state: GraphState) -> list[Edge]:
    """Edges eligible for layout: both endpoints exist and neither is a frame."""
    nodes = state["nodes"]
    eligible = []
    for edge in state["edges"].values():
        source = nodes.get(edge["sourceId"])
        target = nodes.get(edge["targetId"])
        if source is None or target is None or is_frame(source) or is_frame(target):
            continue
        eligible.append(edge)
    return eligible


def build_engine_graph(state: GraphState) -> dict[str, Any]:
    """
    Build the hierarchical engine input: frames as containers, children nested
    by parentId. The root container takes an id no node uses.
    """
    nodes = state["nodes"]

    elk_nodes: dict[str, dict[str, Any]] = {}
    for node_id, node in nodes.items():
        elk_node: dict[str, Any] = {"id": node_id, "labels": [{"text": node["label"]}]}
        if is_frame(node):
            elk_node["layoutOptions"] = dict(FRAME_LAYOUT_OPTIONS)
            elk_node["children"] = []
        else:
            elk_node["width"], elk_node["height"] = node_size(node)
        elk_nodes[node_id] = elk_node

    root_children = []
    for node_id, node in nodes.items():
        parent_id = node.get("parentId")
        if (
            parent_id is not None
            and is_frame(nodes.get(parent_id))
            and not creates_cycle(nodes, node_id, parent_id)
        ):
            elk_nodes[parent_id]["children"].append(elk_nodes[node_id])
        else:
            root_children.append(elk_nodes[node_id])

    root_id = ROOT_ID
    while root_id in nodes:
        root_id = f"_{root_id}"

    edges = [
        {"id": edge["id"], "sources": [edge["sourceId"]], "targets": [edge["targetId"]]}
        for edge in layout_edges(state)
    ]

    return {
        "id": root_id,
        "layoutOptions": dict(ROOT_LAYOUT_OPTIONS),
        "children": root_children,
        "edges": edges,
    }


def _absolute_boxes(graph: dict[str, Any]) -> dict[str, Box]:
    """Flatten engine output (child coordinates relative to parent) into absolute boxes."""
    boxes: dict[str, Box] = {}
    pending = [(child, 0.0, 0.0) for child in graph.get("children") or []]
    while pending:
        elk_node, offset_x, offset_y = pending.pop()
        x = offset_x + float(elk_node.get("x") or 0)
        y = offset_y + float(elk_node.get("y") or 0)
        boxes[elk_node["id"]] = (x, y, float(elk_node.get("width") or 0), float(elk_node.get("height") or 0))
        pending.extend((child, x, y) for child in elk_node.get("children") or [])
    return boxes


class LayoutCoordinator:
    """Computes a positioned LayoutResult from a graph state."""

    def __init__(self, engine: LayoutEngine, timeout: float = LAYOUT_TIMEOUT_SECONDS, gap: float = HINT_GAP):
        self.engine = engine
        self.timeout = timeout
        self.gap = gap

    async def _run_engine(self, graph: dict[str, Any]) -> dict[str, Any]:
        try:
            return await asyncio.wait_for(self.engine.layout(graph), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Layout engine timed out after {self.timeout}s")
            raise LayoutTimeoutError(self.timeout) from e
        except LayoutError:
            raise
        except Exception as e:
            logger.error(f"Layout engine failed: {e}", exc_info=True)
            raise LayoutError(f"Layout engine failed: {e}") from e

    async def layout(self, state: GraphState) -> LayoutResult:
        """
        Lay out the graph. Raises LayoutError (or LayoutTimeoutError) when the
        engine fails; no partial result is ever returned.
        """
        nodes = state["nodes"]
        graph = build_engine_graph(state)
        edges = [dict(edge) for edge in layout_edges(state)]

        result = await self._run_engine(graph)
        try:
            boxes = _absolute_boxes(result)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise LayoutError(f"Malformed layout engine result: {e}") from e

        missing = [node_id for node_id in nodes if node_id not in boxes]
        if missing:
            raise LayoutError(f"Layout engine result is missing nodes: {', '.join(missing)}")

        # Hint-positioned nodes were laid out only so edges have endpoints
        hinted = [node_id for node_id, node in nodes.items() if is_hint_positioned(node)]
        hinted_ids = set(hinted)
        placed = {node_id: box for node_id, box in boxes.items() if node_id not in hinted_ids}
        drawing = bounding_box(list(placed.values())) or (0.0, 0.0, 0.0, 0.0)

        for node_id in hinted:
            node = nodes[node_id]
            _, _, width, height = boxes[node_id]
            relative_to = node.get("relativeTo")
            if relative_to and relative_to != node_id and relative_to in placed:
                reference = placed[relative_to]
            else:
                reference = drawing
            x, y = resolve_hint_position(node.get("position"), reference, width, height, self.gap)
            placed[node_id] = (x, y, width, height)

        layout_nodes: list[LayoutNode] = []
        for node_id, node in nodes.items():
            x, y, width, height = placed[node_id]
            layout_node: LayoutNode = {
                **node,
                "x": x,
                "y": y,
                "width": width,
                "height": height,
                "effectiveColor": effective_color(node),
            }
            layout_nodes.append(layout_node)

        logger.info(f"Layout computed: {len(layout_nodes)} nodes, {len(edges)} edges, {len(hinted)} hint-positioned")
        return {"nodes": layout_nodes, "edges": edges}
