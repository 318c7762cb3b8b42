"""Custom exceptions for whiteboard operations."""


class BoardError(Exception):
    """Base exception for whiteboard operations."""
    pass


class SessionNotFoundError(BoardError):
    """Raised when a session is not found."""
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Unknown session: {session_id}")


class SessionClosedError(BoardError):
    """Raised when a result arrives for a session that was torn down."""
    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} was closed")


class LayoutError(BoardError):
    """Raised when the layout engine fails."""
    pass


class LayoutTimeoutError(LayoutError):
    """Raised when the layout engine does not answer in time."""
    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"Layout timed out after {timeout:.1f}s")


class InvalidMessageError(BoardError):
    """Raised when a transport payload cannot be decoded."""
    pass
