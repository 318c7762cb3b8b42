"""
Layout engines speaking the ELK JSON graph format.

ElkHttpLayoutEngine delegates to an elkjs service over HTTP. LayeredLayoutEngine
is a small in-process layered layout used when no service is configured.
"""

import asyncio
import copy
import logging
import re
from typing import Any

import httpx
import networkx as nx

from .constants import LAYER_SPACING, NODE_HEIGHT, NODE_SPACING, NODE_WIDTH
from .exceptions import LayoutError

logger = logging.getLogger(__name__)

_PADDING_RE = re.compile(r"(top|left|bottom|right)\s*=\s*(-?\d+(?:\.\d+)?)")


def _padding(elk_node: dict[str, Any]) -> dict[str, float]:
    options = elk_node.get("layoutOptions") or {}
    padding = {"top": 0.0, "left": 0.0, "bottom": 0.0, "right": 0.0}
    for side, value in _PADDING_RE.findall(str(options.get("elk.padding", ""))):
        padding[side] = float(value)
    return padding


class ElkHttpLayoutEngine:
    """Posts the ELK graph to an elkjs HTTP service and returns its answer."""

    def __init__(self, url: str, timeout: float = 30.0, transport: httpx.AsyncBaseTransport | None = None):
        self.url = url
        self.timeout = timeout
        self.transport = transport

    async def is_available(self) -> bool:
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self.transport) as client:
                response = await client.get(self.url)
                return response.status_code < 500
        except httpx.HTTPError:
            return False

    async def layout(self, graph: dict[str, Any]) -> dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.url, json=graph)
        except httpx.TimeoutException as e:
            raise LayoutError(f"ELK service timeout at {self.url}") from e
        except httpx.HTTPError as e:
            raise LayoutError(f"Cannot reach ELK service at {self.url}: {e}") from e

        if response.status_code != 200:
            raise LayoutError(f"ELK service error {response.status_code}: {response.text}")
        return response.json()


class LayeredLayoutEngine:
    """
    Left-to-right layered layout with nested containers.

    Each container is laid out on its own: an edge between descendants of two
    different children counts as an edge between those children. Inside a
    cycle, edges running against the input order are dropped; layers are then
    longest paths over the remaining DAG, and nodes keep their input order
    within a layer. layout() runs compute() in a worker thread.
    """

    def __init__(self, node_spacing: float = NODE_SPACING, layer_spacing: float = LAYER_SPACING):
        self.node_spacing = node_spacing
        self.layer_spacing = layer_spacing

    async def layout(self, graph: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self.compute, graph)

    def compute(self, graph: dict[str, Any]) -> dict[str, Any]:
        """Lay out a copy of the ELK graph synchronously."""
        result = copy.deepcopy(graph)
        edges = [
            (source, target)
            for edge in result.get("edges") or []
            for source in edge.get("sources") or []
            for target in edge.get("targets") or []
        ]

        owner: dict[str, str] = {}  # node id -> id of its container

        def index(container: dict[str, Any]):
            for child in container.get("children") or []:
                owner[child["id"]] = container["id"]
                index(child)

        index(result)
        self._layout_container(result, edges, owner, is_root=True)
        return result

    @staticmethod
    def _acyclic(graph: nx.DiGraph, order: list[str]) -> nx.DiGraph:
        """Copy of graph without the edges that run backwards inside a strongly connected component."""
        position = {node_id: i for i, node_id in enumerate(order)}
        dag = graph.copy()
        for component in nx.strongly_connected_components(graph):
            if len(component) < 2:
                continue
            for source, target in graph.subgraph(component).edges():
                if position[source] > position[target]:
                    dag.remove_edge(source, target)
        return dag

    def _layers(self, children: list[dict], edges: list[tuple[str, str]], owner: dict[str, str], container_id: str) -> dict[str, int]:
        child_ids = [child["id"] for child in children]
        members = set(child_ids)

        def local(node_id: str) -> str | None:
            # Climb to the direct child of this container containing node_id
            current = node_id
            seen = set()
            while current not in members:
                if current in seen:
                    return None
                seen.add(current)
                parent = owner.get(current)
                if parent is None or parent == container_id or parent == current:
                    return None
                current = parent
            return current

        graph = nx.DiGraph()
        graph.add_nodes_from(child_ids)
        for source, target in edges:
            a, b = local(source), local(target)
            if a is not None and b is not None and a != b:
                graph.add_edge(a, b)

        dag = self._acyclic(graph, child_ids)
        layer = dict.fromkeys(child_ids, 0)
        for node_id in nx.topological_sort(dag):
            for nxt in dag.successors(node_id):
                layer[nxt] = max(layer[nxt], layer[node_id] + 1)
        return layer

    def _layout_container(self, container: dict[str, Any], edges: list[tuple[str, str]], owner: dict[str, str], is_root: bool = False):
        children = container.get("children") or []
        for child in children:
            if child.get("children") is not None:
                self._layout_container(child, edges, owner)
            else:
                child.setdefault("width", NODE_WIDTH)
                child.setdefault("height", NODE_HEIGHT)

        padding = _padding(container)
        layers = self._layers(children, edges, owner, container["id"])

        columns: dict[int, list[dict]] = {}
        for child in children:
            columns.setdefault(layers[child["id"]], []).append(child)

        x = padding["left"]
        content_bottom = padding["top"]
        for column_index in sorted(columns):
            column = columns[column_index]
            y = padding["top"]
            for child in column:
                child["x"] = x
                child["y"] = y
                y += child["height"] + self.node_spacing
            content_bottom = max(content_bottom, y - self.node_spacing)
            x += max(child["width"] for child in column) + self.layer_spacing

        content_right = x - self.layer_spacing if columns else padding["left"]
        if not is_root:
            container["width"] = max(content_right + padding["right"], NODE_WIDTH)
            container["height"] = max(content_bottom + padding["bottom"], NODE_HEIGHT)
        else:
            container["width"] = content_right
            container["height"] = content_bottom
        container.setdefault("x", 0)
        container.setdefault("y", 0)
        logger.debug(f"Laid out container {container['id']}: {len(children)} children in {len(columns)} layers")
