"""Tests for the graph model and the invariant-restoring cleanup pass."""

from voiceboard.core import cleanup_graph_state, create_graph_state, delete_node_cascade, graph_summary

from tests.helpers import make_edge, make_node, make_state


class TestGraphModel:

    def test_create_is_empty(self):
        assert create_graph_state() == {"nodes": {}, "edges": {}}

    def test_create_returns_independent_states(self):
        first = create_graph_state()
        first["nodes"]["a"] = make_node("a")
        assert create_graph_state()["nodes"] == {}


class TestCascadeDelete:

    def test_returns_deleted_ids(self):
        state = make_state(
            [make_node("f", "frame"), make_node("a", parentId="f"), make_node("b")],
            [make_edge("a", "b")],
        )
        deleted, edges_deleted = delete_node_cascade(state, "f")
        assert sorted(deleted) == ["a", "f"]
        assert edges_deleted == ["a->b"]
        assert list(state["nodes"]) == ["b"]

    def test_missing_node_deletes_nothing(self):
        state = make_state([make_node("a")])
        assert delete_node_cascade(state, "ghost") == ([], [])

    def test_deep_nesting_does_not_recurse(self):
        nodes = [make_node("f0", "frame")]
        for i in range(1, 2000):
            nodes.append(make_node(f"f{i}", "frame", parentId=f"f{i - 1}"))
        state = make_state(nodes)

        deleted, _ = delete_node_cascade(state, "f0")
        assert len(deleted) == 2000
        assert state["nodes"] == {}


class TestCleanup:

    def test_removes_orphaned_edges_only(self):
        state = make_state(
            [make_node("a"), make_node("b")],
            [make_edge("a", "b"), make_edge("a", "gone"), make_edge("gone", "b")],
        )
        result = cleanup_graph_state(state)
        assert list(state["edges"]) == ["a->b"]
        assert sorted(result.removed_edges) == ["a->gone", "gone->b"]
        assert result.changed

    def test_removes_edges_touching_frames(self):
        state = make_state([make_node("a"), make_node("f", "frame")], [make_edge("a", "f")])
        cleanup_graph_state(state)
        assert state["edges"] == {}

    def test_detaches_missing_and_non_frame_parents(self):
        state = make_state([
            make_node("box"),
            make_node("a", parentId="ghost"),
            make_node("b", parentId="box"),
        ])
        result = cleanup_graph_state(state)
        assert "parentId" not in state["nodes"]["a"]
        assert "parentId" not in state["nodes"]["b"]
        assert sorted(result.detached_nodes) == ["a", "b"]

    def test_breaks_containment_cycles(self):
        state = make_state([
            make_node("f1", "frame", parentId="f2"),
            make_node("f2", "frame", parentId="f1"),
            make_node("c", parentId="f2"),
        ])
        result = cleanup_graph_state(state)
        assert result.detached_nodes == ["f1"]
        assert state["nodes"]["f2"]["parentId"] == "f1"
        assert state["nodes"]["c"]["parentId"] == "f2"

    def test_valid_state_is_unchanged(self):
        state = make_state(
            [make_node("f", "frame"), make_node("a", parentId="f"), make_node("b")],
            [make_edge("a", "b")],
        )
        result = cleanup_graph_state(state)
        assert not result.changed
        assert state["nodes"]["a"]["parentId"] == "f"


class TestGraphSummary:

    def test_empty(self):
        assert graph_summary(create_graph_state()) == "Empty graph"

    def test_nodes_and_edges(self):
        state = make_state(
            [make_node("a", label="Web"), make_node("b", label="API")],
            [make_edge("a", "b"), make_edge("b", "a", bidirectional=True)],
        )
        assert graph_summary(state) == "Nodes: a:Web, b:API | Edges: a->b, b<->a"

    def test_nodes_without_edges(self):
        state = make_state([make_node("a", label="Web")])
        assert graph_summary(state) == "Nodes: a:Web"
