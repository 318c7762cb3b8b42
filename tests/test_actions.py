"""
Tests for applying edit actions to a graph state.

Batches are per-action atomic: a rejected action leaves the state untouched
and the remaining actions of the batch still apply.
"""

import copy

import pytest

from voiceboard.core import SketchAction, apply_action, apply_actions, create_graph_state

from tests.helpers import make_edge, make_node, make_state


class TestCreateNode:

    def test_requires_id_label_and_type(self):
        state = create_graph_state()
        assert not apply_action(state, {"action": "create_node", "id": "n1", "label": "A"})
        assert not apply_action(state, {"action": "create_node", "id": "n1", "type": "server"})
        assert not apply_action(state, {"action": "create_node", "label": "A", "type": "server"})
        assert not apply_action(state, {"action": "create_node", "id": "", "label": "A", "type": "server"})
        assert state == create_graph_state()

    def test_defaults_description_to_empty(self):
        state = create_graph_state()
        assert apply_action(state, {"action": "create_node", "id": "n1", "label": "API", "type": "server"})
        assert state["nodes"]["n1"] == {"id": "n1", "label": "API", "description": "", "type": "server"}

    def test_carries_optional_fields(self):
        state = make_state([make_node("f", "frame")])
        assert apply_action(state, {
            "action": "create_node", "id": "t", "label": "Hi", "type": "text",
            "parent_id": "f", "color": "red", "opacity": 0.5,
            "position": "above", "relative_to": "f",
        })
        node = state["nodes"]["t"]
        assert node["parentId"] == "f"
        assert node["color"] == "red"
        assert node["opacity"] == 0.5
        assert node["position"] == "above"
        assert node["relativeTo"] == "f"

    def test_replaces_whole_node_on_id_collision(self):
        state = create_graph_state()
        apply_action(state, {"action": "create_node", "id": "n1", "label": "A", "type": "server", "color": "red"})
        apply_action(state, {"action": "create_node", "id": "n1", "label": "B", "type": "client"})
        assert state["nodes"]["n1"] == {"id": "n1", "label": "B", "description": "", "type": "client"}

    def test_ignores_position_hints_on_non_annotation_nodes(self):
        state = create_graph_state()
        apply_action(state, {"action": "create_node", "id": "n1", "label": "A", "type": "server", "position": "above"})
        assert "position" not in state["nodes"]["n1"]

    def test_never_stores_coordinates(self):
        state = create_graph_state()
        apply_action(state, {"action": "create_node", "id": "n1", "label": "A", "type": "box", "x": 10, "y": 20})
        assert "x" not in state["nodes"]["n1"]
        assert "y" not in state["nodes"]["n1"]

    def test_rejects_non_frame_parent(self):
        state = make_state([make_node("b", "box")])
        assert not apply_action(state, {"action": "create_node", "id": "c", "label": "C", "type": "box", "parentId": "b"})
        assert "c" not in state["nodes"]

    def test_rejects_out_of_range_opacity(self):
        state = create_graph_state()
        assert not apply_action(state, {"action": "create_node", "id": "n1", "label": "A", "type": "box", "opacity": 1.5})
        assert state["nodes"] == {}


class TestUpdateNode:

    def test_merges_present_fields_only(self):
        state = make_state([{"id": "n1", "label": "A", "description": "d", "type": "server"}])
        assert apply_action(state, {"action": "update_node", "id": "n1", "label": "B"})
        assert state["nodes"]["n1"] == {"id": "n1", "label": "B", "description": "d", "type": "server"}

    def test_single_field_update_keeps_everything_else(self):
        state = make_state([make_node("n1", "server", color="red")])
        apply_action(state, {"action": "update_node", "id": "n1", "opacity": 0.3})
        node = state["nodes"]["n1"]
        assert node["opacity"] == 0.3
        assert node["color"] == "red"
        assert node["label"] == "N1"

    def test_requires_existing_node(self):
        state = create_graph_state()
        assert not apply_action(state, {"action": "update_node", "id": "ghost", "label": "B"})
        assert state["nodes"] == {}

    def test_explicit_null_clears_override(self):
        state = make_state([make_node("n1", "server", color="red")])
        assert apply_action(state, {"action": "update_node", "id": "n1", "color": None})
        assert "color" not in state["nodes"]["n1"]

    def test_null_label_is_treated_as_absent(self):
        state = make_state([make_node("n1", "server", label="A")])
        assert apply_action(state, {"action": "update_node", "id": "n1", "label": None})
        assert state["nodes"]["n1"]["label"] == "A"

    def test_invalid_update_leaves_node_untouched(self):
        state = make_state([make_node("n1", "server"), make_node("b", "box")])
        before = copy.deepcopy(state)
        assert not apply_action(state, {"action": "update_node", "id": "n1", "label": "Z", "parentId": "b"})
        assert state == before

    def test_rejects_self_parent(self):
        state = make_state([make_node("f", "frame")])
        assert not apply_action(state, {"action": "update_node", "id": "f", "parentId": "f"})
        assert "parentId" not in state["nodes"]["f"]

    def test_rejects_containment_cycle(self):
        state = make_state([make_node("f1", "frame"), make_node("f2", "frame", parentId="f1")])
        assert not apply_action(state, {"action": "update_node", "id": "f1", "parentId": "f2"})
        assert "parentId" not in state["nodes"]["f1"]


class TestDeleteNode:

    def test_deleting_missing_node_is_a_successful_no_op(self):
        state = make_state([make_node("n1")])
        before = copy.deepcopy(state)
        assert apply_action(state, {"action": "delete_node", "id": "ghost"})
        assert state == before

    def test_deleting_twice_equals_deleting_once(self):
        state = make_state([make_node("n1"), make_node("n2")], [make_edge("n1", "n2")])
        apply_action(state, {"action": "delete_node", "id": "n1"})
        once = copy.deepcopy(state)
        assert apply_action(state, {"action": "delete_node", "id": "n1"})
        assert state == once

    def test_requires_id(self):
        state = make_state([make_node("n1")])
        assert not apply_action(state, {"action": "delete_node"})
        assert "n1" in state["nodes"]

    def test_cascades_to_edges(self):
        state = make_state(
            [make_node("n1"), make_node("n2")],
            [make_edge("n1", "n2"), make_edge("n2", "n1")],
        )
        apply_action(state, {"action": "delete_node", "id": "n1"})
        assert list(state["nodes"]) == ["n2"]
        assert state["edges"] == {}

    def test_frame_delete_removes_children(self):
        state = make_state([make_node("f", "frame"), make_node("c", parentId="f")])
        apply_action(state, {"action": "delete_node", "id": "f"})
        assert state["nodes"] == {}

    def test_frame_delete_cascades_through_nested_frames(self):
        state = make_state(
            [
                make_node("outer", "frame"),
                make_node("inner", "frame", parentId="outer"),
                make_node("leaf", parentId="inner"),
                make_node("other"),
            ],
            [make_edge("leaf", "other")],
        )
        apply_action(state, {"action": "delete_node", "id": "outer"})
        assert list(state["nodes"]) == ["other"]
        assert state["edges"] == {}


class TestCreateEdge:

    def test_synthesizes_id_from_endpoints(self):
        state = make_state([make_node("a"), make_node("b")])
        assert apply_action(state, {"action": "create_edge", "source_id": "a", "target_id": "b"})
        assert state["edges"] == {"a->b": make_edge("a", "b")}

    def test_uses_supplied_id_and_bidirectional(self):
        state = make_state([make_node("a"), make_node("b")])
        apply_action(state, {"action": "create_edge", "id": "e1", "sourceId": "a", "targetId": "b", "bidirectional": True})
        assert state["edges"]["e1"]["bidirectional"] is True

    def test_requires_both_endpoints(self):
        state = make_state([make_node("a")])
        assert not apply_action(state, {"action": "create_edge", "source_id": "a"})
        assert state["edges"] == {}

    def test_tolerates_endpoints_that_do_not_exist_yet(self):
        state = create_graph_state()
        assert apply_action(state, {"action": "create_edge", "source_id": "a", "target_id": "b"})
        assert "a->b" in state["edges"]

    def test_rejects_frame_endpoints(self):
        state = make_state([make_node("f", "frame"), make_node("a")])
        assert not apply_action(state, {"action": "create_edge", "source_id": "a", "target_id": "f"})
        assert not apply_action(state, {"action": "create_edge", "source_id": "f", "target_id": "a"})
        assert state["edges"] == {}


class TestDeleteEdge:

    def test_matches_by_id(self):
        state = make_state([make_node("a"), make_node("b")], [make_edge("a", "b", "e1")])
        assert apply_action(state, {"action": "delete_edge", "id": "e1"})
        assert state["edges"] == {}

    def test_pair_match_deletes_only_first_parallel_edge(self):
        state = make_state(
            [make_node("a"), make_node("b")],
            [make_edge("a", "b", "e1"), make_edge("a", "b", "e2")],
        )
        assert apply_action(state, {"action": "delete_edge", "source_id": "a", "target_id": "b"})
        assert list(state["edges"]) == ["e2"]

    def test_does_not_match_endpoint_ids(self):
        state = make_state([make_node("a"), make_node("b")], [make_edge("a", "b")])
        assert not apply_action(state, {"action": "delete_edge", "id": "a"})
        assert "a->b" in state["edges"]

    def test_unresolvable_is_rejected(self):
        state = make_state([make_node("a"), make_node("b")], [make_edge("a", "b")])
        assert not apply_action(state, {"action": "delete_edge"})
        assert not apply_action(state, {"action": "delete_edge", "source_id": "b", "target_id": "a"})
        assert len(state["edges"]) == 1


class TestApplyActions:

    BUILD = [
        {"action": "create_node", "id": "n1", "label": "Web", "type": "client"},
        {"action": "create_node", "id": "n2", "label": "API", "type": "server"},
        {"action": "create_edge", "source_id": "n1", "target_id": "n2"},
    ]

    def test_sequential_and_batched_application_agree(self):
        sequential = create_graph_state()
        for action in self.BUILD:
            apply_actions(sequential, [action])

        batched = create_graph_state()
        apply_actions(batched, self.BUILD)

        assert sequential == batched
        assert len(batched["nodes"]) == 2
        assert batched["edges"]["n1->n2"]["sourceId"] == "n1"
        assert batched["edges"]["n1->n2"]["targetId"] == "n2"

    def test_applies_in_order(self):
        state = create_graph_state()
        result = apply_actions(state, [
            {"action": "create_node", "id": "n1", "label": "A", "type": "box"},
            {"action": "update_node", "id": "n1", "label": "B"},
            {"action": "delete_node", "id": "n1"},
            {"action": "create_node", "id": "n1", "label": "C", "type": "box"},
        ])
        assert result.applied == 4
        assert state["nodes"]["n1"]["label"] == "C"

    def test_orphan_purge_removes_only_dangling_edges(self):
        state = make_state([make_node("a"), make_node("b")], [make_edge("a", "b")])
        result = apply_actions(state, [
            {"action": "create_edge", "source_id": "a", "target_id": "ghost"},
        ])
        assert list(state["edges"]) == ["a->b"]
        assert result.cleanup.removed_edges == ["a->ghost"]

    def test_rejected_action_does_not_stop_the_batch(self):
        state = create_graph_state()
        result = apply_actions(state, [
            {"action": "update_node", "id": "ghost", "label": "X"},
            {"action": "create_node", "id": "n1", "label": "A", "type": "box"},
        ])
        assert result.applied == 1
        assert result.rejected == 1
        assert "n1" in state["nodes"]

    def test_hallucinated_actions_are_filtered_and_counted(self):
        state = create_graph_state()
        result = apply_actions(state, [
            {"action": "explode", "id": "n1"},
            {"action": "create_node", "id": "n1", "label": "A", "type": "spaceship"},
            {"action": "create_node", "id": "n2", "label": "B", "type": "database"},
        ])
        assert result.filtered == 2
        assert result.applied == 1
        assert list(state["nodes"]) == ["n2"]
        assert result.summary() == "1 commands understood, 2 ignored"

    def test_upstream_filtered_count_is_included(self):
        result = apply_actions(create_graph_state(), [], filtered=3)
        assert result.ignored == 3
        assert result.summary() == "0 commands understood, 3 ignored"

    def test_unreadable_entries_are_rejected(self):
        state = create_graph_state()
        result = apply_actions(state, [{"id": "n1"}, {"action": "create_node", "opacity": "lots"}])
        assert result.rejected == 2
        assert state == create_graph_state()

    def test_accepts_models_and_camel_case_keys(self):
        state = create_graph_state()
        apply_actions(state, [
            SketchAction(action="create_node", id="a", label="A", type="box"),
            {"actionType": "create_node", "id": "b", "label": "B", "nodeType": "box"},
            {"actionType": "create_edge", "sourceId": "a", "targetId": "b"},
        ])
        assert set(state["nodes"]) == {"a", "b"}
        assert "a->b" in state["edges"]


@pytest.mark.parametrize("node_type", ["database", "server", "client", "storage", "network", "box",
                                       "circle", "cloud", "diamond", "hexagon", "person", "process",
                                       "data", "frame", "text", "note"])
def test_every_node_type_is_accepted(node_type):
    state = create_graph_state()
    assert apply_action(state, {"action": "create_node", "id": "n", "label": "N", "type": node_type})
