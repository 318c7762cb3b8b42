"""FastAPI server for voice-editable whiteboards."""

import json
import logging
import sys
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, HTTPException, Request, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from .. import __version__
from ..core import (
    BoardConfig,
    BoardError,
    ElkHttpLayoutEngine,
    InvalidMessageError,
    LayeredLayoutEngine,
    LayoutCoordinator,
    LayoutError,
    LayoutTimeoutError,
    SessionClosedError,
    SessionNotFoundError,
    WhiteboardRepository,
)
from .session_manager import SessionManager
from .store import BoardStore
from .websocket import ConnectionManager

config = BoardConfig.from_env()

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.log_level, logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    stream=sys.stderr
)
logger = logging.getLogger(__name__)


# ============================================================================
# Request/Response Models
# ============================================================================

class SessionRegisterRequest(BaseModel):
    """Request to register a new session."""
    user_id: str = Field(..., min_length=1, description="User whose whiteboard the session edits")


class SessionRegisterResponse(BaseModel):
    """Response from session registration."""
    session_id: str
    start_ts: float


class ActionsRequest(BaseModel):
    """One voice turn: structured actions, or raw model output to decode."""
    actions: list[dict[str, Any]] | None = Field(None, description="Ordered edit actions")
    text: str | None = Field(None, description="Raw action-translation output (JSON, possibly fenced)")


class SnapshotRequest(BaseModel):
    """Full canvas snapshot."""
    snapshot: Any = Field(..., description="Canvas document as persisted by the visual surface")


class SurfaceRequest(BaseModel):
    """Live enumeration of what is on the canvas."""
    shapes: list[dict[str, Any]] = Field(default_factory=list, description="[{id, kind, parentId}]")
    connectors: list[dict[str, Any]] = Field(default_factory=list, description="[{id, startId, endId}]")


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    active_sessions: int
    open_boards: int
    connections: int


# ============================================================================
# Global State
# ============================================================================

store: BoardStore | None = None
session_manager: SessionManager | None = None
connection_manager: ConnectionManager | None = None


def create_layout_engine(board_config: BoardConfig):
    """ELK service when a URL is configured, otherwise the in-process engine."""
    if board_config.elk_url:
        logger.info(f"Using ELK layout service at {board_config.elk_url}")
        return ElkHttpLayoutEngine(board_config.elk_url, timeout=board_config.layout_timeout)
    logger.info("Using in-process layered layout engine")
    return LayeredLayoutEngine()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle."""
    global store, session_manager, connection_manager

    # Startup
    logger.info("Starting Voiceboard server...")

    board_config = BoardConfig.from_env()
    session_manager = SessionManager(session_ttl=board_config.session_ttl)
    connection_manager = ConnectionManager()
    coordinator = LayoutCoordinator(create_layout_engine(board_config), timeout=board_config.layout_timeout)

    store = BoardStore(
        board_config,
        session_manager,
        coordinator,
        WhiteboardRepository(board_config.data_dir),
    )

    logger.info("Server ready")

    yield

    # Shutdown
    if store:
        store.shutdown()

    logger.info("Server stopped")


app = FastAPI(
    title="Voiceboard Server",
    description="Graph reconciliation engine for voice-editable whiteboards",
    version=__version__,
    lifespan=lifespan
)

# CORS configuration (allow browser canvases)
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(BoardError)
async def board_error_handler(request: Request, exc: BoardError):
    """Fallback for board errors an endpoint did not map itself."""
    status_code = 404 if isinstance(exc, SessionNotFoundError) else 400
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def _require_store() -> BoardStore:
    if not store:
        raise HTTPException(status_code=500, detail="Store not initialized")
    return store


def _layout_http_error(e: LayoutError) -> HTTPException:
    status_code = 504 if isinstance(e, LayoutTimeoutError) else 502
    return HTTPException(status_code=status_code, detail=str(e))


# ============================================================================
# API Endpoints
# ============================================================================

@app.get("/api/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint."""
    return {
        "status": "ok",
        "version": __version__,
        "active_sessions": session_manager.count() if session_manager else 0,
        "open_boards": len(store.boards) if store else 0,
        "connections": connection_manager.count() if connection_manager else 0,
    }


@app.post("/api/sessions/register", response_model=SessionRegisterResponse)
async def register_session(request: SessionRegisterRequest):
    """
    Register a new session for a user, opening the user's whiteboard.
    Returns session_id and start_ts.
    """
    board_store = _require_store()
    return board_store.register(request.user_id)


@app.delete("/api/sessions/{session_id}")
async def teardown_session(session_id: str):
    """End a session; the board is saved when its last session leaves."""
    board_store = _require_store()
    if not board_store.teardown(session_id):
        raise HTTPException(status_code=404, detail=f"Unknown session: {session_id}")
    return {"status": "closed", "session_id": session_id}


@app.get("/api/boards/{session_id}/graph")
async def read_graph(session_id: str):
    """Current graph of the session's board as a graph sync message."""
    board_store = _require_store()
    message = board_store.read_graph(session_id)
    message["summary"] = board_store.summary(session_id)
    return message


@app.post("/api/boards/{session_id}/actions")
async def process_actions(session_id: str, request: ActionsRequest):
    """
    Apply one voice turn and return the new layout.
    Returns {layout, currentNodeIds, currentEdgeIds, summary, applied, ignored}.
    """
    board_store = _require_store()
    if request.actions is None and request.text is None:
        raise HTTPException(status_code=400, detail="Either actions or text is required")

    try:
        result = await board_store.process_actions(session_id, actions=request.actions, text=request.text)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionClosedError as e:
        raise HTTPException(status_code=410, detail=str(e))
    except InvalidMessageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except LayoutError as e:
        raise _layout_http_error(e)
    except BoardError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error processing actions: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    if connection_manager:
        await connection_manager.broadcast_to_sessions(
            board_store.attached_sessions(session_id),
            {"type": "layout", **result},
        )
    return result


@app.post("/api/boards/{session_id}/sync")
async def sync_graph(session_id: str, message: dict[str, Any]):
    """Replace the board's graph with a graph sync message."""
    board_store = _require_store()
    try:
        return await board_store.apply_sync(session_id, message)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionClosedError as e:
        raise HTTPException(status_code=410, detail=str(e))
    except InvalidMessageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error syncing graph: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/boards/{session_id}/snapshot")
async def sync_snapshot(session_id: str, request: SnapshotRequest):
    """Rebuild the board's graph from a canvas snapshot."""
    board_store = _require_store()
    try:
        return await board_store.apply_snapshot(session_id, request.snapshot)
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionClosedError as e:
        raise HTTPException(status_code=410, detail=str(e))
    except Exception as e:
        logger.error(f"Error applying snapshot: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/boards/{session_id}/surface")
async def sync_surface(session_id: str, request: SurfaceRequest):
    """Project manual canvas edits onto the board's graph."""
    board_store = _require_store()
    try:
        result, graph = await board_store.apply_surface(session_id, request.model_dump())
    except SessionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except SessionClosedError as e:
        raise HTTPException(status_code=410, detail=str(e))
    except InvalidMessageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error applying surface edits: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=str(e))

    return {
        "graph": graph,
        "deletedNodes": result.deleted_nodes,
        "deletedEdges": result.deleted_edges,
        "reparented": result.reparented,
        "rebound": result.rebound,
    }


# ============================================================================
# WebSocket
# ============================================================================

async def _handle_frame(session_id: str, frame: dict) -> dict:
    """Dispatch one client frame and build the reply frame."""
    frame_type = frame.get("type")

    if frame_type == "ping":
        return {"type": "pong"}

    if frame_type == "actions":
        result = await store.process_actions(session_id, actions=frame.get("actions"), text=frame.get("text"))
        await connection_manager.broadcast_to_sessions(
            store.attached_sessions(session_id),
            {"type": "layout", **result},
            exclude_session=session_id,
        )
        return {"type": "layout", **result}

    if frame_type == "graph_sync":
        graph = await store.apply_sync(session_id, frame)
        return {"type": "synced", "graph": graph}

    if frame_type == "snapshot":
        graph = await store.apply_snapshot(session_id, frame.get("snapshot"))
        return {"type": "synced", "graph": graph}

    if frame_type == "surface":
        result, graph = await store.apply_surface(session_id, frame)
        return {
            "type": "synced",
            "graph": graph,
            "deletedNodes": result.deleted_nodes,
            "deletedEdges": result.deleted_edges,
            "reparented": result.reparented,
            "rebound": result.rebound,
        }

    raise InvalidMessageError(f"Unknown frame type: {frame_type!r}")


@app.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, session_id: str):
    """
    WebSocket endpoint for canvases.
    Clients connect with: ws://localhost:8080/ws?session_id=xxx
    """
    if not connection_manager or not session_manager or not store:
        await websocket.close(code=1011, reason="Server not initialized")
        return

    # Verify session exists
    if not session_manager.is_valid(session_id):
        await websocket.close(code=1008, reason="Invalid session_id")
        return

    await connection_manager.connect(websocket, session_id)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                frame = json.loads(data)
                if not isinstance(frame, dict):
                    raise InvalidMessageError("Frame must be a JSON object")
                reply = await _handle_frame(session_id, frame)
            except json.JSONDecodeError as e:
                reply = {"type": "error", "message": f"Frame is not JSON: {e}"}
            except SessionClosedError:
                logger.info(f"Discarding result for closed session {session_id}")
                break
            except BoardError as e:
                reply = {"type": "error", "message": str(e)}
            await websocket.send_json(reply)

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected: {session_id}")
    except Exception as e:
        logger.error(f"WebSocket error for {session_id}: {e}", exc_info=True)
    finally:
        connection_manager.disconnect(session_id)
        store.teardown(session_id)


# ============================================================================
# Main
# ============================================================================

if __name__ == "__main__":
    import uvicorn

    logger.info(f"Starting server on {config.host}:{config.port}")

    uvicorn.run(
        app,
        host=config.host,
        port=config.port,
        log_level=config.log_level.lower(),
    )
