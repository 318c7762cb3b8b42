"""In-memory whiteboard graph and the invariants every mutation path shares."""

import logging
from dataclasses import dataclass, field

from .types import GraphState
from .utils import is_frame

logger = logging.getLogger(__name__)


def _on_cycle(nodes: dict, node_id: str) -> bool:
    """Check whether following parentId links from node_id leads back to it."""
    seen = set()
    current = nodes[node_id].get("parentId")
    while current is not None and current not in seen:
        if current == node_id:
            return True
        seen.add(current)
        parent = nodes.get(current)
        current = parent.get("parentId") if parent else None
    return False


@dataclass
class CleanupResult:
    """What a cleanup pass repaired."""
    removed_edges: list[str] = field(default_factory=list)
    detached_nodes: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.removed_edges or self.detached_nodes)


def create_graph_state() -> GraphState:
    """Create an empty graph state."""
    return {"nodes": {}, "edges": {}}


def delete_node_cascade(state: GraphState, node_id: str) -> tuple[list[str], list[str]]:
    """
    Delete a node, every node nested under it, and every edge touching them.

    Nested frames are handled with a work list, so arbitrarily deep
    hierarchies never grow the stack.
    Returns (deleted_node_ids, deleted_edge_ids).
    """
    nodes = state["nodes"]
    edges = state["edges"]

    deleted = []
    pending = [node_id]
    while pending:
        current = pending.pop()
        if current not in nodes:
            continue
        del nodes[current]
        deleted.append(current)
        pending.extend(
            child_id for child_id, child in nodes.items()
            if child.get("parentId") == current
        )

    gone = set(deleted)
    edges_to_delete = [
        edge_id for edge_id, edge in edges.items()
        if edge["sourceId"] in gone or edge["targetId"] in gone
    ]
    for edge_id in edges_to_delete:
        del edges[edge_id]

    return deleted, edges_to_delete


def cleanup_graph_state(state: GraphState) -> CleanupResult:
    """
    Restore graph invariants after a batch of mutations.

    - Edges whose source or target no longer exists are purged.
    - Edges touching a frame are purged (frames are not connectable).
    - parentId references to missing nodes, non-frames, or that close a
      containment cycle are detached.
    """
    nodes = state["nodes"]
    edges = state["edges"]
    result = CleanupResult()

    for edge_id, edge in list(edges.items()):
        source = nodes.get(edge["sourceId"])
        target = nodes.get(edge["targetId"])
        if source is None or target is None:
            del edges[edge_id]
            result.removed_edges.append(edge_id)
            logger.info(f"Removed orphaned edge '{edge_id}' ({edge['sourceId']} -> {edge['targetId']})")
        elif is_frame(source) or is_frame(target):
            del edges[edge_id]
            result.removed_edges.append(edge_id)
            logger.info(f"Removed edge '{edge_id}' attached to a frame")

    for node_id, node in nodes.items():
        parent_id = node.get("parentId")
        if parent_id is None:
            continue
        if not is_frame(nodes.get(parent_id)):
            del node["parentId"]
            result.detached_nodes.append(node_id)
            logger.info(f"Detached node '{node_id}' from missing or non-frame parent '{parent_id}'")

    # Cycles can only remain among frames that all still exist
    for node_id, node in nodes.items():
        parent_id = node.get("parentId")
        if parent_id is not None and _on_cycle(nodes, node_id):
            del node["parentId"]
            result.detached_nodes.append(node_id)
            logger.info(f"Detached node '{node_id}' to break containment cycle through '{parent_id}'")

    return result


def graph_summary(state: GraphState) -> str:
    """Compact textual summary of the graph for the action-translation prompt."""
    nodes = state["nodes"]
    if not nodes:
        return "Empty graph"

    node_list = ", ".join(f"{node['id']}:{node['label']}" for node in nodes.values())
    edge_list = ", ".join(
        f"{edge['sourceId']}{'<->' if edge.get('bidirectional') else '->'}{edge['targetId']}"
        for edge in state["edges"].values()
    )

    summary = f"Nodes: {node_list}"
    if edge_list:
        summary += f" | Edges: {edge_list}"
    return summary
