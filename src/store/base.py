"""
Document store interface.

The engine talks to durable storage through three primitives: get,
merge-set and delete. Writes may carry two sentinels that the store resolves
itself: SERVER_TIMESTAMP (the store's clock) and DELETE_FIELD (remove the key).
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Protocol


class _Sentinel:
    def __init__(self, name: str):
        self._name = name

    def __repr__(self) -> str:
        return self._name

    # Identity is the contract: copies must stay the same object
    def __copy__(self) -> "_Sentinel":
        return self

    def __deepcopy__(self, memo: dict) -> "_Sentinel":
        return self


SERVER_TIMESTAMP: Any = _Sentinel("SERVER_TIMESTAMP")
DELETE_FIELD: Any = _Sentinel("DELETE_FIELD")

SESSIONS = "sessions"
USERS = "users"


class DocumentStore(Protocol):
    """Durable key/value document store."""

    def new_id(self) -> str: ...

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None: ...

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...


def generate_id() -> str:
    """Opaque document id."""
    return uuid.uuid4().hex[:20]


def apply_write(
    existing: dict[str, Any] | None,
    data: dict[str, Any],
    merge: bool,
    now: datetime,
) -> dict[str, Any]:
    """
    Compute the document body after a write.

    Merge is top-level: each key in `data` replaces the stored value, and
    keys not mentioned are kept.
    """
    body = dict(existing or {}) if merge else {}
    for key, value in data.items():
        if value is DELETE_FIELD:
            body.pop(key, None)
        elif value is SERVER_TIMESTAMP:
            body[key] = now
        else:
            body[key] = value
    return body
