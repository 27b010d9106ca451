"""
Bookmark Synchronizer.

Bookmarks flip locally first and are then committed remotely. A failed commit
restores the exact membership snapshot taken before the flip.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable
from typing import TypeVar

from loguru import logger

from src.engine.collaborators import BookmarkRemote
from src.engine.errors import BookmarkSyncError
from src.engine.models import ItemType
from src.engine.notifications import NotificationCenter

S = TypeVar("S")
R = TypeVar("R")


async def optimistic_mutation(
    snapshot: Callable[[], S],
    apply: Callable[[], None],
    commit: Callable[[], Awaitable[R]],
    restore: Callable[[S], None],
) -> R:
    """
    Snapshot, apply locally, commit remotely; restore the snapshot on failure.

    The local change is visible before the commit is awaited. The commit's
    exception is re-raised after restoring.
    """
    saved = snapshot()
    apply()
    try:
        return await commit()
    except Exception:
        restore(saved)
        raise


class BookmarkSynchronizer:
    """Local bookmark membership kept in step with the remote list."""

    def __init__(
        self,
        remote: BookmarkRemote,
        notifications: NotificationCenter,
        initial: Iterable[str] = (),
    ):
        self.remote = remote
        self.notifications = notifications
        self._bookmarks: set[str] = set(initial)

    @property
    def bookmarks(self) -> frozenset[str]:
        return frozenset(self._bookmarks)

    def is_bookmarked(self, item_id: str) -> bool:
        return item_id in self._bookmarks

    async def toggle(self, item_id: str, item_type: ItemType | str = ItemType.MCQ) -> bool:
        """
        Flip bookmark membership for an item.

        Returns:
            Membership after the call (the restored value if the commit failed)
        """
        kind = ItemType(item_type)

        def apply() -> None:
            self._bookmarks ^= {item_id}

        def restore(saved: set[str]) -> None:
            self._bookmarks = saved

        try:
            await optimistic_mutation(
                snapshot=lambda: set(self._bookmarks),
                apply=apply,
                commit=lambda: self.remote.toggle_bookmark(item_id, kind),
                restore=restore,
            )
        except Exception as e:
            error = BookmarkSyncError(f"Failed to update bookmark: {e}")
            logger.warning(f"Bookmark toggle for {kind.value} {item_id} rolled back: {e}")
            self.notifications.error(str(error))
            return self.is_bookmarked(item_id)

        logger.debug(f"Bookmark {kind.value} {item_id} -> {self.is_bookmarked(item_id)}")
        return self.is_bookmarked(item_id)

    async def refresh(self) -> bool:
        """Reconcile local membership with the remote list."""
        try:
            remote = await self.remote.list_bookmarks()
        except Exception as e:
            logger.warning(f"Bookmark refresh failed: {e}")
            self.notifications.error(f"Failed to load bookmarks: {e}")
            return False
        self._bookmarks = set(remote)
        return True
