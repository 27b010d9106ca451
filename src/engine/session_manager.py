"""
Session persistence for study sessions.

Creates, reads, updates and deletes session documents, and keeps the owner's
`activeSessionId` pointer in step so a session can be resumed after a reload.
Expiry is detected lazily on `get()`; nothing polls in the background.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from src.engine.errors import FetchFailure, TransientWriteFailure, UnknownModeError
from src.engine.models import Mode, Session, utcnow
from src.store.base import DELETE_FIELD, SERVER_TIMESTAMP, SESSIONS, USERS, DocumentStore

ACTIVE_SESSION_FIELD = "activeSessionId"


class SessionManager:
    """
    Owns session documents and the user's active-session pointer.

    The store checks ownership on read only; writes trust the single writer
    (the session's controller).
    """

    def __init__(
        self,
        store: DocumentStore,
        ttl_hours: float = 4.0,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.ttl = timedelta(hours=ttl_hours)
        self.clock = clock

    # =========================================================================
    # Store access
    # =========================================================================

    async def _read(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        try:
            return await self.store.get(collection, doc_id)
        except Exception as e:  # Store backends raise their own error types
            raise FetchFailure(f"Failed to read {collection}/{doc_id}: {e}") from e

    async def _write(self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = True) -> None:
        try:
            await self.store.set(collection, doc_id, data, merge=merge)
        except Exception as e:
            raise TransientWriteFailure(f"Failed to write {collection}/{doc_id}: {e}") from e

    async def _remove(self, collection: str, doc_id: str) -> None:
        try:
            await self.store.delete(collection, doc_id)
        except Exception as e:
            raise TransientWriteFailure(f"Failed to delete {collection}/{doc_id}: {e}") from e

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def create(self, owner_id: str, mode: Mode | str, item_ids: list[str]) -> str:
        """
        Write a new session and point the owner's record at it.

        The two writes are issued together but not transactionally: if only
        the pointer write fails the session still exists and its id is
        returned; if the session write fails, TransientWriteFailure is raised.
        """
        try:
            mode = Mode(mode)
        except ValueError:
            raise UnknownModeError(f"Unknown session mode: {mode!r}") from None
        if not item_ids:
            raise ValueError("A session needs at least one item")

        await self._discard_previous(owner_id)

        session_id = self.store.new_id()
        now = self.clock()
        session = Session(
            id=session_id,
            owner_id=owner_id,
            mode=mode,
            item_ids=list(item_ids),
            created_at=now,
            expires_at=now + self.ttl,
        )
        body = session.to_document()
        body["createdAt"] = SERVER_TIMESTAMP
        body["updatedAt"] = SERVER_TIMESTAMP

        session_result, pointer_result = await asyncio.gather(
            self._write(SESSIONS, session_id, body, merge=False),
            self._write(USERS, owner_id, {ACTIVE_SESSION_FIELD: session_id}),
            return_exceptions=True,
        )
        if isinstance(session_result, BaseException):
            if not isinstance(pointer_result, BaseException):
                logger.warning(f"Session write failed but {owner_id} now points at missing {session_id}")
            raise session_result
        if isinstance(pointer_result, BaseException):
            logger.warning(f"Created session {session_id} but could not link it to {owner_id}: {pointer_result}")

        logger.info(f"Created {mode.value} session {session_id} for {owner_id} ({len(item_ids)} items)")
        return session_id

    async def _discard_previous(self, owner_id: str) -> None:
        """Delete the session the owner's pointer still references, if it exists."""
        try:
            previous = await self.active_session_id(owner_id)
            if previous and await self._read(SESSIONS, previous) is not None:
                await self._remove(SESSIONS, previous)
                logger.info(f"Discarded previous active session {previous} for {owner_id}")
        except (FetchFailure, TransientWriteFailure) as e:
            logger.warning(f"Could not clean up previous session for {owner_id}: {e}")

    async def get(self, session_id: str, owner_id: str) -> Session | None:
        """
        Load a session owned by `owner_id`.

        Returns None when the document is missing, owned by someone else, or
        expired; an expired document is deleted and the pointer cleared.

        Raises:
            FetchFailure: If the store cannot be read
        """
        data = await self._read(SESSIONS, session_id)
        if data is None or data.get("ownerId") != owner_id:
            return None

        session = Session.from_document(session_id, data)
        if session.is_expired(self.clock()):
            logger.info(f"Session {session_id} for {owner_id} expired. Deleting.")
            try:
                await self.delete(session_id)
                await self.clear_active(owner_id, session_id)
            except (FetchFailure, TransientWriteFailure) as e:
                logger.warning(f"Expired session {session_id} cleanup incomplete: {e}")
            return None
        return session

    async def update(self, session_id: str, fields: dict[str, Any]) -> None:
        """Merge-write partial fields. Invariants are the caller's responsibility."""
        await self._write(SESSIONS, session_id, {**fields, "updatedAt": SERVER_TIMESTAMP})

    async def delete(self, session_id: str) -> None:
        await self._remove(SESSIONS, session_id)

    # =========================================================================
    # Active session pointer
    # =========================================================================

    async def active_session_id(self, owner_id: str) -> str | None:
        user = await self._read(USERS, owner_id)
        if not user:
            return None
        return user.get(ACTIVE_SESSION_FIELD)

    async def clear_active(self, owner_id: str, session_id: str | None = None) -> bool:
        """
        Clear the owner's pointer.

        With `session_id`, only clears when the pointer still references it,
        so finishing an old session never unlinks a newer one.
        """
        current = await self.active_session_id(owner_id)
        if current is None or (session_id is not None and current != session_id):
            return False
        await self._write(USERS, owner_id, {ACTIVE_SESSION_FIELD: DELETE_FIELD})
        logger.debug(f"Cleared active session {current} for {owner_id}")
        return True

    async def resume(self, owner_id: str) -> Session | None:
        """Return the owner's live, unfinished active session, if any."""
        session_id = await self.active_session_id(owner_id)
        if not session_id:
            return None
        session = await self.get(session_id, owner_id)
        if session is None or session.is_finished:
            try:
                await self.clear_active(owner_id, session_id)
            except (FetchFailure, TransientWriteFailure) as e:
                logger.warning(f"Could not clear dangling pointer for {owner_id}: {e}")
            return None
        return session
