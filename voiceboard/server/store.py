"""Per-user whiteboard store for the HTTP/WebSocket server."""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from ..core import (
    BatchResult,
    BoardConfig,
    GraphState,
    InvalidMessageError,
    LayoutCoordinator,
    LayoutResult,
    ManualEditResult,
    SessionClosedError,
    SessionNotFoundError,
    SurfaceState,
    WhiteboardRepository,
    apply_actions,
    cleanup_graph_state,
    decode_actions,
    deserialize_graph_state,
    empty_board,
    extract_graph_state,
    graph_summary,
    serialize_graph_state,
    sync_manual_edits,
)
from .session_manager import SessionManager

logger = logging.getLogger(__name__)


@dataclass
class BoardSession:
    """
    One user's live whiteboard.

    turn_lock serializes voice turns, manual edits and snapshot syncs for the
    board, so at most one layout is in flight per board.
    """
    user_id: str
    state: GraphState
    snapshot: Any = None
    turn_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    closed: bool = False
    dirty: bool = False
    last_layout: LayoutResult | None = None


def layout_frame(layout: LayoutResult) -> dict:
    """Layout payload for the renderer, with the ids it should keep."""
    return {
        "layout": layout,
        "currentNodeIds": [node["id"] for node in layout["nodes"]],
        "currentEdgeIds": [edge["id"] for edge in layout["edges"]],
    }


class BoardStore:
    """
    Explicit registry of live whiteboards keyed by user id.

    Sessions attach to a board when registered; the board is loaded from the
    repository on first use and saved when its last session is torn down.
    Graph mutations run on the event loop under self.lock, which the
    background saver thread also takes while serializing.
    """

    def __init__(
        self,
        config: BoardConfig,
        session_manager: SessionManager,
        coordinator: LayoutCoordinator,
        repository: WhiteboardRepository | None = None,
        start_saver: bool = True,
    ):
        self.config = config
        self.session_manager = session_manager
        self.coordinator = coordinator
        self.repository = repository or WhiteboardRepository(config.data_dir)

        self.boards: dict[str, BoardSession] = {}

        # Thread safety
        self.lock = threading.RLock()

        # Background saver
        self._stop = threading.Event()
        self.saver_thread = threading.Thread(target=self._periodic_save, daemon=True)
        if start_saver:
            self.saver_thread.start()

        logger.info(f"Board store initialized (data dir: {self.repository.data_dir})")

    # ========================================================================
    # Sessions
    # ========================================================================

    def register(self, user_id: str) -> dict:
        """Register a session for user_id and attach it to the user's board."""
        with self.lock:
            result = self.session_manager.register(user_id)
            self._get_or_create(user_id)
        return result

    def _get_or_create(self, user_id: str) -> BoardSession:
        """Load a board if not already live. Caller must hold lock."""
        board = self.boards.get(user_id)
        if board is not None:
            return board

        loaded = self.repository.load(user_id)
        state, snapshot = loaded if loaded is not None else empty_board()
        board = BoardSession(user_id=user_id, state=state, snapshot=snapshot)
        self.boards[user_id] = board

        logger.info(f"Opened board for {user_id}: {len(state['nodes'])} nodes, {len(state['edges'])} edges")
        return board

    def get_board(self, session_id: str) -> BoardSession:
        """Board attached to a session. Raises SessionNotFoundError."""
        user_id = self.session_manager.get_user_id(session_id)
        with self.lock:
            board = self.boards.get(user_id)
            if board is None:
                raise SessionNotFoundError(session_id)
            return board

    def attached_sessions(self, session_id: str) -> list[str]:
        """All sessions editing the same board as session_id (itself included)."""
        try:
            board = self.get_board(session_id)
        except SessionNotFoundError:
            return []
        with self.lock:
            return self.session_manager.sessions_for(board.user_id)

    def teardown(self, session_id: str) -> bool:
        """
        Detach a session from its board.

        When the last session leaves, the board is closed (any layout still in
        flight for it is discarded), saved and dropped from memory.
        Returns True if the session was known.
        """
        with self.lock:
            user_id = self.session_manager.remove(session_id)
            if user_id is None:
                return False

            board = self.boards.get(user_id)
            if board is not None and not self.session_manager.sessions_for(user_id):
                board.closed = True
                self._save_board(board)
                del self.boards[board.user_id]
                logger.info(f"Closed board for {board.user_id}")

        logger.info(f"Session torn down: {session_id}")
        return True

    # ========================================================================
    # Board operations
    # ========================================================================

    def _check_open(self, board: BoardSession, session_id: str):
        if board.closed or not self.session_manager.is_attached(session_id):
            raise SessionClosedError(session_id)

    async def _layout(self, board: BoardSession, session_id: str) -> LayoutResult:
        """Lay out the board; results for a board closed meanwhile are discarded."""
        layout = await self.coordinator.layout(board.state)
        self._check_open(board, session_id)
        board.last_layout = layout
        return layout

    def read_graph(self, session_id: str) -> dict:
        """Current graph of a session's board as a sync message."""
        board = self.get_board(session_id)
        with self.lock:
            return serialize_graph_state(board.state)

    def summary(self, session_id: str) -> str:
        """Textual graph summary for the action-translation prompt."""
        board = self.get_board(session_id)
        with self.lock:
            return graph_summary(board.state)

    async def process_actions(
        self,
        session_id: str,
        actions: list[dict] | None = None,
        text: str | None = None,
    ) -> dict:
        """
        Apply one voice turn and lay out the result.

        Either actions (already structured) or text (raw model output) must be
        given. Raises InvalidMessageError when text cannot be decoded, and
        LayoutError when layout fails; applied actions are kept either way.
        """
        board = self.get_board(session_id)
        async with board.turn_lock:
            self._check_open(board, session_id)

            filtered = 0
            if text is not None:
                decoded = decode_actions(text)
                actions, filtered = decoded.actions, decoded.filtered
            if not isinstance(actions, list):
                raise InvalidMessageError("Either an actions list or text is required")

            with self.lock:
                result: BatchResult = apply_actions(board.state, actions, filtered=filtered)
                board.dirty = True

            layout = await self._layout(board, session_id)

        return {
            **layout_frame(layout),
            "summary": result.summary(),
            "applied": result.applied,
            "ignored": result.ignored,
        }

    async def apply_sync(self, session_id: str, message: dict | str) -> dict:
        """Replace the board's graph with a graph sync message from another process."""
        board = self.get_board(session_id)
        async with board.turn_lock:
            self._check_open(board, session_id)
            state = deserialize_graph_state(message)
            cleanup_graph_state(state)
            with self.lock:
                board.state = state
                board.dirty = True
                logger.info(f"Board {board.user_id} replaced from sync message")
                return serialize_graph_state(board.state)

    async def apply_snapshot(self, session_id: str, snapshot: Any) -> dict:
        """Rebuild the board's graph from a canvas snapshot and keep the snapshot."""
        board = self.get_board(session_id)
        async with board.turn_lock:
            self._check_open(board, session_id)
            state = extract_graph_state(snapshot)
            with self.lock:
                board.state = state
                board.snapshot = snapshot
                board.dirty = True
                return serialize_graph_state(board.state)

    async def apply_surface(self, session_id: str, message: dict) -> tuple[ManualEditResult, dict]:
        """Project manual canvas edits onto the board's graph."""
        board = self.get_board(session_id)
        surface = SurfaceState.from_message(message)
        async with board.turn_lock:
            self._check_open(board, session_id)
            with self.lock:
                result = sync_manual_edits(board.state, surface)
                if result.changed:
                    board.dirty = True
                return result, serialize_graph_state(board.state)

    # ========================================================================
    # Persistence
    # ========================================================================

    def _save_board(self, board: BoardSession) -> bool:
        """Save a board to disk. Caller must hold lock."""
        success = self.repository.save(board.user_id, board.state, board.snapshot)
        if success:
            board.dirty = False
        return success

    def _periodic_save(self):
        """Background thread for periodic saves and session expiry."""
        while not self._stop.wait(self.config.save_interval):
            self.save_dirty()
            self.expire_sessions()

    def expire_sessions(self) -> list[str]:
        """Tear down sessions idle past their TTL. Returns their ids."""
        with self.lock:
            expired = self.session_manager.expired_sessions()
            for session_id in expired:
                logger.info(f"Session expired: {session_id}")
                self.teardown(session_id)
        return expired

    def save_dirty(self) -> int:
        """Save every board with unsaved changes. Returns how many were saved."""
        saved = 0
        with self.lock:
            for board in self.boards.values():
                if board.dirty and self._save_board(board):
                    saved += 1
        if saved:
            logger.debug(f"Saved {saved} boards")
        return saved

    def shutdown(self):
        """Gracefully shutdown the store."""
        logger.info("Shutting down board store...")
        self._stop.set()
        if self.saver_thread.is_alive():
            self.saver_thread.join(timeout=5)

        self.save_dirty()
        logger.info("Board store shutdown complete")
