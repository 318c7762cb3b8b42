"""HTTP/WebSocket server components for the whiteboard engine."""

from .session_manager import SessionManager
from .store import BoardSession, BoardStore
from .websocket import ConnectionManager

__all__ = [
    "SessionManager",
    "BoardSession",
    "BoardStore",
    "ConnectionManager",
]
