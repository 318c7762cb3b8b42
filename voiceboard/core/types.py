"""Type definitions for the whiteboard graph."""

from typing import TypedDict, NotRequired


class Node(TypedDict):
    """Node in the whiteboard graph. Never carries coordinates."""
    id: str
    label: str
    description: str
    type: str
    parentId: NotRequired[str]
    color: NotRequired[str]
    opacity: NotRequired[float]
    position: NotRequired[str]
    relativeTo: NotRequired[str]


class Edge(TypedDict):
    """Edge between two non-frame nodes."""
    id: str
    sourceId: str
    targetId: str
    bidirectional: bool


class GraphState(TypedDict):
    """Complete graph structure for one session."""
    nodes: dict[str, Node]
    edges: dict[str, Edge]


class LayoutNode(Node):
    """Node with computed absolute geometry."""
    x: float
    y: float
    width: float
    height: float
    effectiveColor: str


class LayoutEdge(Edge):
    """Edge carried through to the renderer."""
    pass


class LayoutResult(TypedDict):
    """Positioned graph handed to the renderer."""
    nodes: list[LayoutNode]
    edges: list[LayoutEdge]
