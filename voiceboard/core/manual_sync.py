"""Projecting direct canvas edits (deletes, reparenting) back onto graph state."""

import logging
from dataclasses import dataclass, field
from typing import Any

from .constants import SHAPE_PREFIX
from .exceptions import InvalidMessageError
from .graph import delete_node_cascade
from .types import GraphState
from .utils import creates_cycle, is_frame, strip_arrow_prefix, strip_shape_prefix

logger = logging.getLogger(__name__)


@dataclass
class SurfaceShape:
    """A shape currently on the canvas."""
    id: str
    kind: str | None = None
    parent_id: str | None = None


@dataclass
class SurfaceConnector:
    """A connector currently on the canvas and the shapes its ends are bound to."""
    id: str
    start_id: str | None = None
    end_id: str | None = None


@dataclass
class SurfaceState:
    """Live enumeration of what exists on the canvas, keyed by node/edge ids."""
    shapes: dict[str, SurfaceShape] = field(default_factory=dict)
    connectors: dict[str, SurfaceConnector] = field(default_factory=dict)

    @classmethod
    def from_message(cls, message: dict[str, Any]) -> "SurfaceState":
        """
        Build from a transport message:
        {"shapes": [{"id", "kind", "parentId"}], "connectors": [{"id", "startId", "endId"}]}

        Ids may be node/edge ids or presentation ids; parents that are not
        shapes (a page, for example) are treated as no parent.
        """
        if not isinstance(message, dict):
            raise InvalidMessageError("Surface message must be an object")

        surface = cls()
        for raw in message.get("shapes") or []:
            if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
                continue
            parent = raw.get("parentId")
            parent_id = None
            if isinstance(parent, str) and (parent.startswith(SHAPE_PREFIX) or ":" not in parent):
                parent_id = strip_shape_prefix(parent)
            shape = SurfaceShape(
                id=strip_shape_prefix(raw["id"]),
                kind=raw.get("kind"),
                parent_id=parent_id,
            )
            surface.shapes[shape.id] = shape

        for raw in message.get("connectors") or []:
            if not isinstance(raw, dict) or not isinstance(raw.get("id"), str):
                continue
            start, end = raw.get("startId"), raw.get("endId")
            connector = SurfaceConnector(
                id=strip_arrow_prefix(raw["id"]),
                start_id=strip_shape_prefix(start) if isinstance(start, str) else None,
                end_id=strip_shape_prefix(end) if isinstance(end, str) else None,
            )
            surface.connectors[connector.id] = connector
        return surface


@dataclass
class ManualEditResult:
    """What a manual-edit sync changed."""
    deleted_nodes: list[str] = field(default_factory=list)
    deleted_edges: list[str] = field(default_factory=list)
    reparented: list[str] = field(default_factory=list)
    rebound: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.deleted_nodes or self.deleted_edges or self.reparented or self.rebound)


def sync_manual_edits(state: GraphState, surface: SurfaceState) -> ManualEditResult:
    """
    Apply the minimal diff between graph state and the live canvas.

    Surface to model only. Geometry is never read or stored.
    """
    nodes = state["nodes"]
    edges = state["edges"]
    result = ManualEditResult()

    # Deleted shapes; frames are kept even when their shape is missing
    missing = [
        node_id for node_id, node in nodes.items()
        if node_id not in surface.shapes and not is_frame(node)
    ]
    for node_id in missing:
        deleted, edges_deleted = delete_node_cascade(state, node_id)
        result.deleted_nodes.extend(deleted)
        result.deleted_edges.extend(edges_deleted)
        if deleted:
            logger.info(f"Node '{node_id}' removed on canvas, dropped {len(edges_deleted)} edges")

    # Deleted connectors
    for edge_id in [e for e in edges if e not in surface.connectors]:
        del edges[edge_id]
        result.deleted_edges.append(edge_id)
        logger.info(f"Edge '{edge_id}' removed on canvas")

    # Reparenting; only frames count as parents
    for node_id, node in nodes.items():
        shape = surface.shapes.get(node_id)
        if shape is None:
            continue
        live_parent = shape.parent_id if is_frame(nodes.get(shape.parent_id)) else None
        if live_parent == node.get("parentId"):
            continue
        if live_parent is not None and (live_parent == node_id or creates_cycle(nodes, node_id, live_parent)):
            logger.warning(f"Ignoring reparent of '{node_id}' under '{live_parent}': containment cycle")
            continue
        if live_parent is None:
            node.pop("parentId", None)
        else:
            node["parentId"] = live_parent
        result.reparented.append(node_id)
        logger.info(f"Node '{node_id}' moved to parent {live_parent!r} on canvas")

    # Connectors re-attached to other shapes
    for edge_id, edge in edges.items():
        connector = surface.connectors[edge_id]
        if connector.start_id is None or connector.end_id is None:
            continue
        source, target = nodes.get(connector.start_id), nodes.get(connector.end_id)
        if source is None or target is None or is_frame(source) or is_frame(target):
            continue
        if (connector.start_id, connector.end_id) != (edge["sourceId"], edge["targetId"]):
            edge["sourceId"] = connector.start_id
            edge["targetId"] = connector.end_id
            result.rebound.append(edge_id)
            logger.info(f"Edge '{edge_id}' re-attached to {connector.start_id} -> {connector.end_id}")

    return result
