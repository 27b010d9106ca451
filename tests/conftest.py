"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests:
an in-memory document store on a controllable clock and in-memory fakes for
the platform collaborators.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.engine.bookmarks import BookmarkSynchronizer
from src.engine.engine import StudyEngine
from src.engine.errors import RemoteCallError
from src.engine.models import Item, ItemType
from src.engine.notifications import NotificationCenter
from src.engine.recorder import AttemptRecorder
from src.engine.session_manager import SessionManager
from src.store.memory import MemoryDocumentStore


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (in-memory collaborators)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


# ============================================================================
# Fakes
# ============================================================================


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class FlakyStore(MemoryDocumentStore):
    """Memory store whose reads and writes can be switched to fail."""

    def __init__(self, clock):
        super().__init__(clock)
        self.fail_reads = False
        self.fail_writes = False
        self.fail_collections: set[str] = set()
        self.writes: list[tuple[str, str, dict]] = []

    def _should_fail(self, collection: str) -> bool:
        return self.fail_writes and (not self.fail_collections or collection in self.fail_collections)

    async def get(self, collection, doc_id):
        if self.fail_reads:
            raise ConnectionError("store unavailable")
        return await super().get(collection, doc_id)

    async def set(self, collection, doc_id, data, merge=True):
        if self._should_fail(collection):
            raise ConnectionError("store unavailable")
        self.writes.append((collection, doc_id, dict(data)))
        await super().set(collection, doc_id, data, merge=merge)

    async def delete(self, collection, doc_id):
        if self._should_fail(collection):
            raise ConnectionError("store unavailable")
        await super().delete(collection, doc_id)


class FakeContent:
    """Content source serving a fixed catalogue."""

    def __init__(self, items: list[Item]):
        self.catalogue = {item.id: item for item in items}
        self.fail = False
        self.calls: list[list[str]] = []

    async def fetch_items(self, item_ids):
        self.calls.append(list(item_ids))
        if self.fail:
            raise RemoteCallError("content service down", 503)
        return [self.catalogue[i] for i in item_ids if i in self.catalogue]


class FakeSink:
    """Attempt sink recording everything it is sent."""

    def __init__(self):
        self.attempts = []
        self.summaries = []
        self.fail_attempts = False
        self.fail_summaries = False

    async def record_attempt(self, record):
        if self.fail_attempts:
            raise RemoteCallError("attempts endpoint down", 500)
        self.attempts.append(record)

    async def submit_summary(self, summary):
        if self.fail_summaries:
            raise RemoteCallError("results endpoint down", 500)
        self.summaries.append(summary)


class FakeBookmarkRemote:
    def __init__(self, initial=()):
        self.remote = set(initial)
        self.fail = False
        self.calls: list[tuple[str, ItemType]] = []

    async def toggle_bookmark(self, item_id, item_type):
        self.calls.append((item_id, item_type))
        if self.fail:
            raise RemoteCallError("bookmark service down", 503)
        self.remote ^= {item_id}
        return item_id in self.remote

    async def list_bookmarks(self):
        if self.fail:
            raise RemoteCallError("bookmark service down", 503)
        return set(self.remote)


class FakeHints:
    def __init__(self):
        self.fail = False

    async def get_hint(self, item_id):
        if self.fail:
            raise RemoteCallError("hint service down", 503)
        return f"Think about {item_id}"


def make_item(item_id: str, correct: str = "Paris", **kwargs) -> Item:
    return Item(
        id=item_id,
        question=f"Question {item_id}?",
        options=["London", "Paris", "Rome", "Berlin"],
        correct_answer=correct,
        explanation=f"Because {correct}.",
        topic_id=kwargs.pop("topic_id", "topic-geo"),
        chapter_id=kwargs.pop("chapter_id", "chapter-1"),
        **kwargs,
    )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return FlakyStore(clock)


@pytest.fixture
def manager(store, clock):
    return SessionManager(store, ttl_hours=4, clock=clock)


@pytest.fixture
def notifications():
    return NotificationCenter()


@pytest.fixture
def items():
    return [make_item("q1"), make_item("q2"), make_item("q3"), make_item("q4", correct="Rome")]


@pytest.fixture
def content(items):
    return FakeContent(items)


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def bookmark_remote():
    return FakeBookmarkRemote()


@pytest.fixture
def hints():
    return FakeHints()


@pytest.fixture
def recorder(sink, notifications):
    return AttemptRecorder(sink, notifications)


@pytest.fixture
def bookmarks(bookmark_remote, notifications):
    return BookmarkSynchronizer(bookmark_remote, notifications)


@pytest.fixture
def engine(manager, content, sink, bookmark_remote, hints, notifications):
    return StudyEngine(
        manager,
        content=content,
        attempts=sink,
        bookmarks=bookmark_remote,
        hints=hints,
        notifications=notifications,
    )


@pytest.fixture
def item_factory():
    return make_item
