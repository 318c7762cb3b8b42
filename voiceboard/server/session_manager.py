"""Session registry binding short-lived session ids to users' whiteboards."""

import logging
import time
import uuid
from dataclasses import dataclass

from ..core.constants import SESSION_ID_LENGTH, SESSION_TTL_SECONDS
from ..core.exceptions import SessionNotFoundError

logger = logging.getLogger(__name__)


@dataclass
class SessionRecord:
    user_id: str
    start_ts: float
    last_seen: float


class SessionManager:
    """
    Tracks which user's whiteboard each session edits.

    A user may hold several sessions at once (several tabs or devices); they
    all edit the same board, so the registry also answers which sessions are
    attached to a user. A session idle for longer than session_ttl is no longer
    valid, but stays attached until the store tears it down.
    """

    def __init__(self, session_ttl: int = SESSION_TTL_SECONDS):
        self.session_ttl = session_ttl
        self._sessions: dict[str, SessionRecord] = {}
        self._by_user: dict[str, set[str]] = {}

    def register(self, user_id: str) -> dict:
        """
        Attach a new session to user_id's board.
        Returns {"session_id": str, "start_ts": float}.
        """
        session_id = uuid.uuid4().hex[:SESSION_ID_LENGTH]
        while session_id in self._sessions:
            session_id = uuid.uuid4().hex[:SESSION_ID_LENGTH]

        now = time.time()
        self._sessions[session_id] = SessionRecord(user_id=user_id, start_ts=now, last_seen=now)
        self._by_user.setdefault(user_id, set()).add(session_id)

        logger.info(f"Session registered: {session_id} (user: {user_id})")
        return {"session_id": session_id, "start_ts": now}

    def get_user_id(self, session_id: str) -> str:
        """User whose board the session edits. Raises SessionNotFoundError if unknown or expired."""
        if not self.is_valid(session_id):
            raise SessionNotFoundError(session_id)

        record = self._sessions[session_id]
        record.last_seen = time.time()
        return record.user_id

    def is_valid(self, session_id: str) -> bool:
        record = self._sessions.get(session_id)
        return record is not None and time.time() - record.last_seen <= self.session_ttl

    def is_attached(self, session_id: str) -> bool:
        """True until the session is removed, even after it expired."""
        return session_id in self._sessions

    def sessions_for(self, user_id: str) -> list[str]:
        return sorted(self._by_user.get(user_id, ()))

    def remove(self, session_id: str) -> str | None:
        """Detach a session. Returns the user it was attached to, or None if unknown."""
        record = self._sessions.pop(session_id, None)
        if record is None:
            return None

        remaining = self._by_user.get(record.user_id)
        if remaining is not None:
            remaining.discard(session_id)
            if not remaining:
                del self._by_user[record.user_id]

        logger.info(f"Session removed: {session_id}")
        return record.user_id

    def expired_sessions(self) -> list[str]:
        """Sessions idle for longer than the TTL and not yet removed."""
        now = time.time()
        return [
            session_id for session_id, record in self._sessions.items()
            if now - record.last_seen > self.session_ttl
        ]

    def count(self) -> int:
        return len(self._sessions)
