"""
Engine facade: wires collaborators into controllers.

Usage:
    engine = StudyEngine(manager, content=client, attempts=client, bookmarks=client)
    controller = await engine.start("user-1", "quiz", ["q1", "q2"])
    await controller.answer("B")
"""

from __future__ import annotations

from collections.abc import Sequence

from loguru import logger

from src.engine.bookmarks import BookmarkSynchronizer
from src.engine.collaborators import AttemptSink, BookmarkRemote, ContentSource, HintProvider
from src.engine.controller import SessionController
from src.engine.models import Mode
from src.engine.modes import get_policy
from src.engine.notifications import NotificationCenter
from src.engine.recorder import AttemptRecorder
from src.engine.session_manager import SessionManager


class StudyEngine:
    """
    Start-or-resume entry point for interactive sessions.

    One engine serves one owner-facing surface: it shares a notification
    center and the bookmark membership across the controllers it creates.
    """

    def __init__(
        self,
        manager: SessionManager,
        content: ContentSource,
        attempts: AttemptSink,
        bookmarks: BookmarkRemote,
        hints: HintProvider | None = None,
        timer_overrides: dict[str, float] | None = None,
        notifications: NotificationCenter | None = None,
    ):
        self.manager = manager
        self.content = content
        self.hints = hints
        self.timer_overrides = timer_overrides
        self.notifications = notifications or NotificationCenter()
        self.recorder = AttemptRecorder(attempts, self.notifications)
        self.bookmarks = BookmarkSynchronizer(bookmarks, self.notifications)

    def controller(self, session_id: str, owner_id: str, timer_seconds: float | None = None) -> SessionController:
        """Build an unloaded controller for an existing session id."""
        return SessionController(
            session_id=session_id,
            owner_id=owner_id,
            manager=self.manager,
            content=self.content,
            recorder=self.recorder,
            bookmarks=self.bookmarks,
            notifications=self.notifications,
            hints=self.hints,
            timer_seconds=timer_seconds,
            seconds_overrides=self.timer_overrides,
        )

    async def start(
        self,
        owner_id: str,
        mode: Mode | str,
        item_ids: Sequence[str],
        session_id: str | None = None,
        timer_seconds: float | None = None,
    ) -> SessionController:
        """
        Load `session_id` if it is still live, otherwise create a new session.

        Raises:
            UnknownModeError: If `mode` has no policy
            TransientWriteFailure: If a new session document cannot be written
        """
        policy = get_policy(mode, self.timer_overrides)

        if session_id:
            existing = await self.manager.get(session_id, owner_id)
            if existing is not None and not existing.is_finished:
                logger.info(f"Continuing session {session_id} for {owner_id}")
                controller = self.controller(session_id, owner_id, timer_seconds)
                await controller.load()
                return controller
            logger.info(f"Session {session_id} is gone; starting a new {policy.mode.value} session")

        new_id = await self.manager.create(owner_id, policy.mode, list(item_ids))
        controller = self.controller(new_id, owner_id, timer_seconds)
        await controller.load()
        return controller

    async def resume(self, owner_id: str, timer_seconds: float | None = None) -> SessionController | None:
        """Reopen the owner's active session, or None if there is nothing to continue."""
        session = await self.manager.resume(owner_id)
        if session is None:
            return None
        controller = self.controller(session.id, owner_id, timer_seconds)
        await controller.load()
        return controller

    async def refresh_bookmarks(self) -> bool:
        return await self.bookmarks.refresh()
