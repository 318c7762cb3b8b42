"""WebSocket connection manager for pushing layouts to canvases."""

import logging
from typing import Iterable

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages WebSocket connections keyed by session id."""

    def __init__(self):
        # Map: session_id -> WebSocket
        self.active_connections: dict[str, WebSocket] = {}

    async def connect(self, websocket: WebSocket, session_id: str):
        """Accept and register a WebSocket connection."""
        await websocket.accept()
        self.active_connections[session_id] = websocket
        logger.info(f"WebSocket connected: {session_id}")

    def disconnect(self, session_id: str):
        """Remove a WebSocket connection."""
        if session_id in self.active_connections:
            del self.active_connections[session_id]
            logger.info(f"WebSocket disconnected: {session_id}")

    async def send_personal(self, session_id: str, message: dict):
        """Send message to a specific session."""
        if session_id in self.active_connections:
            try:
                await self.active_connections[session_id].send_json(message)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.error(f"Error sending to {session_id}: {e}")
                self.disconnect(session_id)

    async def broadcast_to_sessions(
        self,
        session_ids: Iterable[str],
        message: dict,
        exclude_session: str | None = None,
    ):
        """
        Send message to every connected session in session_ids.

        Used to keep several canvases of the same board in step; the session
        that caused the change is usually excluded since it already got a reply.
        """
        targets = [
            sid for sid in session_ids
            if sid != exclude_session and sid in self.active_connections
        ]
        for session_id in targets:
            await self.send_personal(session_id, message)

        if targets:
            logger.debug(f"Broadcast to {len(targets)} sessions: {message.get('type')}")

    def count(self) -> int:
        """Return number of active connections."""
        return len(self.active_connections)
