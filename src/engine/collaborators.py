"""
Interfaces of the external collaborators the engine consumes.

The HTTP PlatformClient implements all of them; tests use in-memory fakes.
"""

from __future__ import annotations

from typing import Protocol

from src.engine.models import AttemptRecord, Item, ItemType, SessionSummary


class ContentSource(Protocol):
    async def fetch_items(self, item_ids: list[str]) -> list[Item]:
        """Return items in request order, silently omitting unknown ids."""
        ...


class AttemptSink(Protocol):
    """Scheduling collaborator: owns all spaced-repetition math."""

    async def record_attempt(self, record: AttemptRecord) -> None: ...

    async def submit_summary(self, summary: SessionSummary) -> None: ...


class BookmarkRemote(Protocol):
    async def toggle_bookmark(self, item_id: str, item_type: ItemType) -> bool:
        """Flip membership remotely and return the new state."""
        ...

    async def list_bookmarks(self) -> set[str]: ...


class HintProvider(Protocol):
    async def get_hint(self, item_id: str) -> str: ...
