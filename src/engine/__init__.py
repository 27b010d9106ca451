"""
Study session engine.

Components:
- session_manager: durable session documents and the owner's active pointer
- modes: per-mode behaviour policy
- controller: the interactive state machine for one session
- timer, recorder, bookmarks, navigator: controller collaborators
- engine: start-or-resume facade
"""

from .controller import ControllerState, SessionController, SessionSnapshot
from .engine import StudyEngine
from .errors import (
    BookmarkSyncError,
    FetchFailure,
    RecorderFailure,
    RemoteCallError,
    SessionEngineError,
    SessionNotFound,
    TransientWriteFailure,
    UnknownModeError,
)
from .models import ConfidenceRating, Item, ItemType, Mode, Session, SessionSummary
from .modes import ModePolicy, TimerScope, get_policy
from .notifications import NotificationCenter, NotificationLevel
from .session_manager import SessionManager

__all__ = [
    "BookmarkSyncError",
    "ConfidenceRating",
    "ControllerState",
    "FetchFailure",
    "Item",
    "ItemType",
    "Mode",
    "ModePolicy",
    "NotificationCenter",
    "NotificationLevel",
    "RecorderFailure",
    "RemoteCallError",
    "Session",
    "SessionController",
    "SessionEngineError",
    "SessionManager",
    "SessionNotFound",
    "SessionSnapshot",
    "SessionSummary",
    "StudyEngine",
    "TimerScope",
    "TransientWriteFailure",
    "UnknownModeError",
    "get_policy",
]
