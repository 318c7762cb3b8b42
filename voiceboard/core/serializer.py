"""Graph sync message: the flat wire/persistence form of a graph state."""

import json
import logging
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, ValidationError

from .constants import GRAPH_SYNC_TYPE
from .exceptions import InvalidMessageError
from .graph import create_graph_state
from .types import Edge, GraphState, Node

logger = logging.getLogger(__name__)


class SerializedNode(BaseModel):
    """Node record in a sync message."""
    model_config = ConfigDict(extra="ignore")

    id: str
    label: str
    description: str = ""
    type: str
    parentId: str | None = None
    color: str | None = None
    position: str | None = None
    relativeTo: str | None = None
    opacity: float | None = None


class SerializedEdge(BaseModel):
    """Edge record in a sync message."""
    model_config = ConfigDict(extra="ignore")

    id: str
    sourceId: str
    targetId: str
    bidirectional: bool = False


class GraphSyncMessage(BaseModel):
    """Flat, order-independent list of node and edge records."""
    type: Literal["graph_sync"] = GRAPH_SYNC_TYPE
    nodes: list[SerializedNode] = []
    edges: list[SerializedEdge] = []


def serialize_graph_state(state: GraphState) -> dict[str, Any]:
    """Serialize a graph state into a JSON-ready sync message."""
    message = GraphSyncMessage(
        nodes=[SerializedNode(**node) for node in state["nodes"].values()],
        edges=[SerializedEdge(**edge) for edge in state["edges"].values()],
    )
    return message.model_dump()


def deserialize_graph_state(message: dict[str, Any] | str | bytes) -> GraphState:
    """
    Rebuild a graph state from a sync message.

    Only the node and edge maps are populated: records that fail to parse
    are skipped, but orphan edges and bad parent references are left as-is.
    Run the result through cleanup_graph_state when the message is not
    trusted. Raises InvalidMessageError when the message itself is unreadable.
    """
    if isinstance(message, (str, bytes)):
        try:
            message = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidMessageError(f"Sync message is not JSON: {e}") from e

    if not isinstance(message, dict):
        raise InvalidMessageError("Sync message must be an object")
    if message.get("type", GRAPH_SYNC_TYPE) != GRAPH_SYNC_TYPE:
        raise InvalidMessageError(f"Unexpected message type: {message.get('type')!r}")

    raw_nodes = message.get("nodes") or []
    raw_edges = message.get("edges") or []
    if not isinstance(raw_nodes, list) or not isinstance(raw_edges, list):
        raise InvalidMessageError("Sync message nodes and edges must be lists")

    state = create_graph_state()
    skipped = 0

    for raw in raw_nodes:
        try:
            record = SerializedNode.model_validate(raw)
        except ValidationError:
            skipped += 1
            continue
        node: Node = record.model_dump(exclude_none=True)
        state["nodes"][node["id"]] = node

    for raw in raw_edges:
        try:
            record = SerializedEdge.model_validate(raw)
        except ValidationError:
            skipped += 1
            continue
        edge: Edge = record.model_dump()
        state["edges"][edge["id"]] = edge

    if skipped:
        logger.warning(f"Skipped {skipped} unreadable records in sync message")
    return state
