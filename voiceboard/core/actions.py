"""
Applying structured edit actions to a graph state.

Each action is validated and applied on its own: an invalid action is
rejected without touching the state, and the rest of the batch carries on.
A batch is therefore best-effort per action, never all-or-nothing.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from .constants import ACTION_TYPES, ANNOTATION_NODE_TYPES, NODE_TYPES
from .graph import CleanupResult, cleanup_graph_state, delete_node_cascade
from .types import GraphState, Node
from .utils import creates_cycle, edge_id_for, is_frame

logger = logging.getLogger(__name__)


class SketchAction(BaseModel):
    """
    One edit instruction produced by the action-translation collaborator.

    All fields besides the action type are optional; whether a field was
    supplied at all (see ``model_fields_set``) matters for update_node.
    """
    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)

    action: str = Field(validation_alias=AliasChoices("action", "actionType", "action_type"))
    id: str | None = None
    label: str | None = None
    description: str | None = None
    type: str | None = Field(None, validation_alias=AliasChoices("type", "nodeType", "node_type"))
    source_id: str | None = Field(None, validation_alias=AliasChoices("source_id", "sourceId"))
    target_id: str | None = Field(None, validation_alias=AliasChoices("target_id", "targetId"))
    bidirectional: bool | None = None
    parent_id: str | None = Field(None, validation_alias=AliasChoices("parent_id", "parentId"))
    color: str | None = None
    opacity: float | None = None
    position: str | None = None
    relative_to: str | None = Field(None, validation_alias=AliasChoices("relative_to", "relativeTo"))

    def has(self, name: str) -> bool:
        """Whether the field was supplied, even as an explicit null."""
        return name in self.model_fields_set


# Optional node attributes: (action field, node key)
_OPTIONAL_NODE_FIELDS = (
    ("parent_id", "parentId"),
    ("color", "color"),
    ("opacity", "opacity"),
    ("position", "position"),
    ("relative_to", "relativeTo"),
)


def is_hallucinated(action: SketchAction) -> bool:
    """True when the action names an action type or node type outside the closed enumerations."""
    if action.action not in ACTION_TYPES:
        return True
    return action.type is not None and action.type not in NODE_TYPES


def coerce_action(action: SketchAction | dict[str, Any]) -> SketchAction | None:
    """Accept a model or a raw dict; None when the dict cannot be read as an action."""
    if isinstance(action, SketchAction):
        return action
    try:
        return SketchAction.model_validate(action)
    except ValidationError as e:
        logger.warning(f"Unreadable action {action!r}: {e.error_count()} validation errors")
        return None


def _valid_opacity(value: float | None) -> bool:
    return value is None or 0.0 <= value <= 1.0


def _valid_parent(state: GraphState, node_id: str, parent_id: str | None) -> bool:
    """parent_id may name a frame that does not exist yet, but never a non-frame or a cycle."""
    if parent_id is None:
        return True
    if parent_id == node_id:
        return False
    parent = state["nodes"].get(parent_id)
    if parent is not None and not is_frame(parent):
        return False
    return not creates_cycle(state["nodes"], node_id, parent_id)


def _strip_hints(node: Node):
    """Position hints only mean something on annotation nodes."""
    if node["type"] not in ANNOTATION_NODE_TYPES:
        node.pop("position", None)
        node.pop("relativeTo", None)


def _create_node(state: GraphState, action: SketchAction) -> bool:
    if not action.id or not action.label or not action.type:
        return False
    if action.type not in NODE_TYPES:
        return False
    if not _valid_parent(state, action.id, action.parent_id) or not _valid_opacity(action.opacity):
        return False

    node: Node = {
        "id": action.id,
        "label": action.label,
        "description": action.description or "",
        "type": action.type,
    }
    for attr, key in _OPTIONAL_NODE_FIELDS:
        value = getattr(action, attr)
        if value not in (None, ""):
            node[key] = value
    _strip_hints(node)

    # Whole-object replace on id collision
    state["nodes"][action.id] = node
    return True


def _update_node(state: GraphState, action: SketchAction) -> bool:
    if not action.id or action.id not in state["nodes"]:
        return False
    if action.type is not None and action.type not in NODE_TYPES:
        return False

    node: Node = dict(state["nodes"][action.id])
    if action.label:
        node["label"] = action.label
    if action.description is not None:
        node["description"] = action.description
    if action.type:
        node["type"] = action.type

    for attr, key in _OPTIONAL_NODE_FIELDS:
        if not action.has(attr):
            continue
        value = getattr(action, attr)
        if value in (None, ""):
            node.pop(key, None)
        else:
            node[key] = value

    if not _valid_parent(state, action.id, node.get("parentId")) or not _valid_opacity(node.get("opacity")):
        return False
    _strip_hints(node)

    state["nodes"][action.id] = node
    return True


def _delete_node(state: GraphState, action: SketchAction) -> bool:
    if not action.id:
        return False
    deleted, edges_deleted = delete_node_cascade(state, action.id)
    if deleted:
        logger.debug(f"Deleted nodes {deleted} and {len(edges_deleted)} edges")
    return True


def _create_edge(state: GraphState, action: SketchAction) -> bool:
    if not action.source_id or not action.target_id:
        return False
    nodes = state["nodes"]
    if is_frame(nodes.get(action.source_id)) or is_frame(nodes.get(action.target_id)):
        return False

    edge_id = action.id or edge_id_for(action.source_id, action.target_id)
    state["edges"][edge_id] = {
        "id": edge_id,
        "sourceId": action.source_id,
        "targetId": action.target_id,
        "bidirectional": bool(action.bidirectional),
    }
    return True


def _delete_edge(state: GraphState, action: SketchAction) -> bool:
    edges = state["edges"]
    if action.id and action.id in edges:
        del edges[action.id]
        return True

    if action.source_id and action.target_id:
        for edge_id, edge in edges.items():
            if edge["sourceId"] == action.source_id and edge["targetId"] == action.target_id:
                del edges[edge_id]
                return True
    return False


_HANDLERS = {
    "create_node": _create_node,
    "update_node": _update_node,
    "delete_node": _delete_node,
    "create_edge": _create_edge,
    "delete_edge": _delete_edge,
}


def apply_action(state: GraphState, action: SketchAction | dict[str, Any]) -> bool:
    """
    Apply one action to state.

    Returns True if the action was valid and applied. Invalid actions are
    rejected without mutating state.
    """
    action = coerce_action(action)
    if action is None:
        return False

    handler = _HANDLERS.get(action.action)
    if handler is None:
        logger.warning(f"Unknown action type: {action.action}")
        return False
    return handler(state, action)


@dataclass
class BatchResult:
    """Outcome of applying the actions of one utterance."""
    applied: int = 0
    rejected: int = 0
    filtered: int = 0
    cleanup: CleanupResult = field(default_factory=CleanupResult)

    @property
    def ignored(self) -> int:
        return self.rejected + self.filtered

    def summary(self) -> str:
        """Single user-facing signal for the whole batch."""
        return f"{self.applied} commands understood, {self.ignored} ignored"


def apply_actions(
    state: GraphState,
    actions: Iterable[SketchAction | dict[str, Any]],
    filtered: int = 0,
) -> BatchResult:
    """
    Apply a batch in order, then restore graph invariants.

    filtered carries the count of actions already dropped upstream by the
    decode step so the summary covers the whole utterance.
    """
    result = BatchResult(filtered=filtered)

    for raw in actions:
        action = coerce_action(raw)
        if action is None:
            result.rejected += 1
            continue
        if is_hallucinated(action):
            result.filtered += 1
            logger.warning(f"Filtered hallucinated action: {action.action} (type={action.type})")
            continue

        if apply_action(state, action):
            result.applied += 1
            logger.info(f"Applied action {action.action} id={action.id}")
        else:
            result.rejected += 1
            logger.warning(f"Rejected action: {action.model_dump(exclude_none=True)}")

    result.cleanup = cleanup_graph_state(state)
    logger.info(f"Batch applied: {result.summary()}")
    return result
