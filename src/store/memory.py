"""In-process document store for tests and offline runs."""

from __future__ import annotations

import copy
from collections.abc import Callable
from datetime import datetime
from typing import Any

from src.engine.models import utcnow
from src.store.base import apply_write, generate_id


class MemoryDocumentStore:
    """Dict-backed store; documents are deep-copied in and out."""

    def __init__(self, clock: Callable[[], datetime] = utcnow):
        self._clock = clock
        self._docs: dict[tuple[str, str], dict[str, Any]] = {}

    def new_id(self) -> str:
        return generate_id()

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._docs.get((collection, doc_id))
        return copy.deepcopy(doc) if doc is not None else None

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        key = (collection, doc_id)
        self._docs[key] = apply_write(self._docs.get(key), copy.deepcopy(data), merge, self._clock())

    async def delete(self, collection: str, doc_id: str) -> None:
        self._docs.pop((collection, doc_id), None)

    def ids(self, collection: str) -> list[str]:
        return [doc_id for (coll, doc_id) in self._docs if coll == collection]
