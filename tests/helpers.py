"""Builders for graph fixtures shared across test modules."""

from voiceboard.core import create_graph_state


def make_node(node_id, node_type="box", label=None, **extra):
    node = {"id": node_id, "label": label or node_id.upper(), "description": "", "type": node_type}
    node.update(extra)
    return node


def make_edge(source_id, target_id, edge_id=None, bidirectional=False):
    return {
        "id": edge_id or f"{source_id}->{target_id}",
        "sourceId": source_id,
        "targetId": target_id,
        "bidirectional": bidirectional,
    }


def make_state(nodes=(), edges=()):
    state = create_graph_state()
    for node in nodes:
        state["nodes"][node["id"]] = node
    for edge in edges:
        state["edges"][edge["id"]] = edge
    return state
