"""
Error taxonomy for the session engine.

NotFound is "start fresh", fetch failures block rendering, and write,
recorder and bookmark failures are surfaced as notifications without
blocking progression. Nothing here is retried automatically.
"""

from __future__ import annotations


class SessionEngineError(Exception):
    """Base class for engine errors."""


class SessionNotFound(SessionEngineError):
    """Session is missing, expired, or owned by someone else."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class TransientWriteFailure(SessionEngineError):
    """A store write failed; local state is kept and the next mutation re-sends it."""


class FetchFailure(SessionEngineError):
    """Session or item content could not be loaded; the session cannot render."""


class RecorderFailure(SessionEngineError):
    """Forwarding an attempt or summary to the scheduler failed."""


class BookmarkSyncError(SessionEngineError):
    """Remote bookmark toggle failed and local membership was restored."""


class RemoteCallError(SessionEngineError):
    """A platform API call failed (transport error or non-2xx status)."""

    def __init__(self, message: str, status_code: int | None = None):
        self.status_code = status_code
        super().__init__(message)


class UnknownModeError(SessionEngineError, ValueError):
    """Mode name has no policy entry."""
