"""
SQLAlchemy-backed document store.

Documents live in a single table keyed by (collection, doc_id) with a JSON
body. Calls run the synchronous engine in a worker thread so the event loop
(and its timers) keep running during I/O.
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Generator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger
from sqlalchemy import DateTime, String, Text, create_engine, delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker

from src.engine.models import utcnow
from src.store.base import apply_write, generate_id


class Base(DeclarativeBase):
    pass


class DocumentRow(Base):
    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(64), primary_key=True)
    doc_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


def _encode(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Unserializable value in document: {type(value).__name__}")


class SqlDocumentStore:
    """Document store on any SQLAlchemy URL (sqlite by default)."""

    def __init__(self, database_url: str, clock: Callable[[], datetime] = utcnow, echo: bool = False):
        connect_args: dict[str, Any] = {}
        if database_url.startswith("sqlite:///"):
            connect_args["check_same_thread"] = False
            db_file = database_url.removeprefix("sqlite:///")
            if db_file and db_file != ":memory:":
                Path(db_file).parent.mkdir(parents=True, exist_ok=True)

        self._clock = clock
        self.engine = create_engine(database_url, echo=echo, pool_pre_ping=True, connect_args=connect_args)
        self._sessions = sessionmaker(bind=self.engine, autocommit=False, autoflush=False)
        Base.metadata.create_all(bind=self.engine)
        logger.info(f"SqlDocumentStore initialized at {database_url}")

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self._sessions()
        try:
            yield session
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            raise
        finally:
            session.close()

    def new_id(self) -> str:
        return generate_id()

    # ------------------------------------------------------------------
    # Sync implementations
    # ------------------------------------------------------------------

    def _get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        with self.session_scope() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            return json.loads(row.body) if row is not None else None

    def _set(self, collection: str, doc_id: str, data: dict[str, Any], merge: bool) -> None:
        now = self._clock()
        with self.session_scope() as session:
            row = session.get(DocumentRow, (collection, doc_id))
            existing = json.loads(row.body) if row is not None else None
            body = json.dumps(apply_write(existing, data, merge, now), default=_encode)
            if row is None:
                session.add(DocumentRow(collection=collection, doc_id=doc_id, body=body, updated_at=now))
            else:
                row.body = body
                row.updated_at = now

    def _delete(self, collection: str, doc_id: str) -> None:
        with self.session_scope() as session:
            session.execute(
                delete(DocumentRow).where(
                    DocumentRow.collection == collection,
                    DocumentRow.doc_id == doc_id,
                )
            )

    def list_ids(self, collection: str) -> list[str]:
        with self.session_scope() as session:
            rows = session.execute(
                select(DocumentRow.doc_id).where(DocumentRow.collection == collection)
            )
            return [r[0] for r in rows]

    # ------------------------------------------------------------------
    # Async surface
    # ------------------------------------------------------------------

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        return await asyncio.to_thread(self._get, collection, doc_id)

    async def set(
        self,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
        merge: bool = True,
    ) -> None:
        await asyncio.to_thread(self._set, collection, doc_id, data, merge)

    async def delete(self, collection: str, doc_id: str) -> None:
        await asyncio.to_thread(self._delete, collection, doc_id)

    def close(self) -> None:
        self.engine.dispose()
