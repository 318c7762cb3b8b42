"""Tests for projecting manual canvas edits onto graph state."""

import pytest

from voiceboard.core import InvalidMessageError, SurfaceState, sync_manual_edits

from tests.helpers import make_edge, make_node, make_state


def surface(shapes, connectors=()):
    """shapes: {node_id: parent_id}; connectors: [(edge_id, start, end)]"""
    return SurfaceState.from_message({
        "shapes": [
            {"id": f"shape:{node_id}", "kind": "geo", "parentId": f"shape:{parent}" if parent else "page:page"}
            for node_id, parent in shapes.items()
        ],
        "connectors": [
            {"id": f"shape:arrow_{edge_id}", "startId": f"shape:{start}", "endId": f"shape:{end}"}
            for edge_id, start, end in connectors
        ],
    })


@pytest.fixture
def state():
    return make_state(
        [
            make_node("f", "frame"),
            make_node("a", "server", parentId="f", color="red"),
            make_node("b"),
            make_node("c"),
        ],
        [make_edge("a", "b"), make_edge("b", "c")],
    )


ALL_CONNECTORS = [("a->b", "a", "b"), ("b->c", "b", "c")]


class TestSurfaceState:

    def test_strips_presentation_prefixes(self):
        live = surface({"a": "f"}, [("a->b", "a", "b")])
        assert live.shapes["a"].parent_id == "f"
        assert live.connectors["a->b"].start_id == "a"
        assert live.connectors["a->b"].end_id == "b"

    def test_page_parent_is_no_parent(self):
        assert surface({"a": None}).shapes["a"].parent_id is None

    def test_non_object_message_raises(self):
        with pytest.raises(InvalidMessageError):
            SurfaceState.from_message(["shape:a"])


class TestManualEdits:

    def test_unchanged_surface_changes_nothing(self, state):
        result = sync_manual_edits(state, surface({"f": None, "a": "f", "b": None, "c": None}, ALL_CONNECTORS))
        assert not result.changed
        assert len(state["nodes"]) == 4
        assert len(state["edges"]) == 2

    def test_missing_shape_deletes_node_and_its_edges(self, state):
        result = sync_manual_edits(state, surface({"f": None, "a": "f", "c": None}, ALL_CONNECTORS))
        assert "b" not in state["nodes"]
        assert state["edges"] == {}
        assert result.deleted_nodes == ["b"]
        assert sorted(result.deleted_edges) == ["a->b", "b->c"]

    def test_missing_frame_shape_keeps_frame(self, state):
        sync_manual_edits(state, surface({"a": "f", "b": None, "c": None}, ALL_CONNECTORS))
        assert "f" in state["nodes"]

    def test_missing_connector_deletes_edge(self, state):
        result = sync_manual_edits(state, surface({"f": None, "a": "f", "b": None, "c": None}, [("b->c", "b", "c")]))
        assert list(state["edges"]) == ["b->c"]
        assert result.deleted_edges == ["a->b"]

    def test_reparenting_updates_parent_only(self, state):
        result = sync_manual_edits(state, surface({"f": None, "a": None, "b": "f", "c": None}, ALL_CONNECTORS))
        assert "parentId" not in state["nodes"]["a"]
        assert state["nodes"]["b"]["parentId"] == "f"
        assert state["nodes"]["a"]["color"] == "red"
        assert state["nodes"]["a"]["type"] == "server"
        assert sorted(result.reparented) == ["a", "b"]

    def test_non_frame_visual_parent_is_not_a_parent(self, state):
        sync_manual_edits(state, surface({"f": None, "a": "f", "b": "c", "c": None}, ALL_CONNECTORS))
        assert "parentId" not in state["nodes"]["b"]

    def test_reparent_closing_a_cycle_is_ignored(self):
        state = make_state([make_node("f1", "frame"), make_node("f2", "frame", parentId="f1")])
        result = sync_manual_edits(state, surface({"f1": "f2", "f2": "f1"}))
        assert "parentId" not in state["nodes"]["f1"]
        assert state["nodes"]["f2"]["parentId"] == "f1"
        assert result.reparented == []

    def test_rebound_connector_moves_edge(self, state):
        result = sync_manual_edits(
            state,
            surface({"f": None, "a": "f", "b": None, "c": None}, [("a->b", "a", "c"), ("b->c", "b", "c")]),
        )
        assert state["edges"]["a->b"]["targetId"] == "c"
        assert result.rebound == ["a->b"]

    def test_connector_rebound_to_frame_is_ignored(self, state):
        sync_manual_edits(
            state,
            surface({"f": None, "a": "f", "b": None, "c": None}, [("a->b", "a", "f"), ("b->c", "b", "c")]),
        )
        assert state["edges"]["a->b"]["targetId"] == "b"

    def test_never_writes_geometry(self, state):
        sync_manual_edits(state, surface({"f": None, "a": None, "b": "f", "c": None}, ALL_CONNECTORS))
        for node in state["nodes"].values():
            assert not {"x", "y", "width", "height"} & set(node)
