"""Core whiteboard graph components."""

from .types import Node, Edge, GraphState, LayoutNode, LayoutEdge, LayoutResult
from .constants import *
from .exceptions import *
from .graph import CleanupResult, create_graph_state, delete_node_cascade, cleanup_graph_state, graph_summary
from .actions import SketchAction, BatchResult, apply_action, apply_actions, is_hallucinated
from .action_decoder import DecodedActions, decode_actions, extract_json_text
from .reconciler import extract_graph_state
from .manual_sync import SurfaceShape, SurfaceConnector, SurfaceState, ManualEditResult, sync_manual_edits
from .layout import LayoutCoordinator, LayoutEngine, build_engine_graph, resolve_hint_position
from .layout_engines import ElkHttpLayoutEngine, LayeredLayoutEngine
from .serializer import GraphSyncMessage, serialize_graph_state, deserialize_graph_state
from .persistence import WhiteboardRepository, empty_board
from .config import BoardConfig
from .utils import edge_id_for, shape_id, arrow_id, strip_shape_prefix, strip_arrow_prefix, is_frame, effective_color

__all__ = [
    # Types
    "Node",
    "Edge",
    "GraphState",
    "LayoutNode",
    "LayoutEdge",
    "LayoutResult",
    # Constants
    "ACTION_TYPES",
    "NODE_TYPES",
    "FRAME_TYPE",
    "ANNOTATION_NODE_TYPES",
    "POSITION_KEYWORDS",
    "NODE_COLORS",
    "GRAPH_SYNC_TYPE",
    "SESSION_ID_LENGTH",
    "SESSION_TTL_SECONDS",
    "LAYOUT_TIMEOUT_SECONDS",
    # Exceptions
    "BoardError",
    "SessionNotFoundError",
    "SessionClosedError",
    "LayoutError",
    "LayoutTimeoutError",
    "InvalidMessageError",
    # Graph model
    "CleanupResult",
    "create_graph_state",
    "delete_node_cascade",
    "cleanup_graph_state",
    "graph_summary",
    # Actions
    "SketchAction",
    "BatchResult",
    "apply_action",
    "apply_actions",
    "is_hallucinated",
    "DecodedActions",
    "decode_actions",
    "extract_json_text",
    # Snapshot and manual edits
    "extract_graph_state",
    "SurfaceShape",
    "SurfaceConnector",
    "SurfaceState",
    "ManualEditResult",
    "sync_manual_edits",
    # Layout
    "LayoutCoordinator",
    "LayoutEngine",
    "build_engine_graph",
    "resolve_hint_position",
    "ElkHttpLayoutEngine",
    "LayeredLayoutEngine",
    # Sync and persistence
    "GraphSyncMessage",
    "serialize_graph_state",
    "deserialize_graph_state",
    "WhiteboardRepository",
    "empty_board",
    "BoardConfig",
    # Utils
    "edge_id_for",
    "shape_id",
    "arrow_id",
    "strip_shape_prefix",
    "strip_arrow_prefix",
    "is_frame",
    "effective_color",
]
