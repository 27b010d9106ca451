"""
Durable document stores for session state.

- MemoryDocumentStore: in-process, for tests and throwaway runs
- SqlDocumentStore: SQLAlchemy table of JSON documents (sqlite by default)
"""

from src.store.base import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    SESSIONS,
    USERS,
    DocumentStore,
    apply_write,
)
from src.store.memory import MemoryDocumentStore
from src.store.sql import SqlDocumentStore

__all__ = [
    "DELETE_FIELD",
    "SERVER_TIMESTAMP",
    "SESSIONS",
    "USERS",
    "DocumentStore",
    "MemoryDocumentStore",
    "SqlDocumentStore",
    "apply_write",
]
