"""
Integration tests for full study session flows.

Runs the engine end-to-end on a shared document store, simulating page
reloads by building a fresh engine over the same store.
"""

import pytest

from src.engine.controller import ControllerState
from src.engine.engine import StudyEngine
from src.engine.errors import UnknownModeError
from src.store.base import SESSIONS


@pytest.fixture
def reload_engine(manager, content, sink, bookmark_remote, hints):
    """Build a fresh engine (a "page reload") over the same store and services."""

    def build():
        return StudyEngine(manager, content=content, attempts=sink, bookmarks=bookmark_remote, hints=hints)

    return build


@pytest.mark.asyncio
async def test_practice_session_survives_reload(engine, reload_engine, sink, store):
    controller = await engine.start("u1", "practice", ["q1", "q2", "q3"])
    await controller.answer("Paris")
    await controller.rate("good")
    await controller.answer("Rome")
    await controller.dispose()

    resumed = await reload_engine().resume("u1")

    assert resumed.session_id == controller.session_id
    assert resumed.current_index == 1
    assert resumed.session.answers == {0: "Paris", 1: "Rome"}
    # Answered but not yet rated: back in review
    assert resumed.state is ControllerState.REVIEWING

    await resumed.rate("hard")
    await resumed.answer("Paris")
    await resumed.rate("easy")
    await resumed.drain()

    assert resumed.state is ControllerState.FINISHED
    assert resumed.score == 2
    assert len(sink.summaries) == 1
    assert [a.confidence_rating.value for a in sink.attempts if a.confidence_rating] == ["good", "hard", "easy"]
    assert store.ids(SESSIONS) == []


@pytest.mark.asyncio
async def test_start_with_live_session_id_continues_it(engine, reload_engine):
    controller = await engine.start("u1", "custom", ["q1", "q2"])
    await controller.navigate(1)
    await controller.dispose()

    again = await reload_engine().start("u1", "custom", ["q1", "q2"], session_id=controller.session_id)

    assert again.session_id == controller.session_id
    assert again.current_index == 1


@pytest.mark.asyncio
async def test_start_with_expired_session_id_creates_new(engine, reload_engine, clock, store):
    controller = await engine.start("u1", "quiz", ["q1", "q2"])
    await controller.dispose()
    clock.advance(hours=5)

    fresh = await reload_engine().start("u1", "quiz", ["q1", "q2"], session_id=controller.session_id)

    assert fresh.session_id != controller.session_id
    assert await store.get(SESSIONS, controller.session_id) is None
    assert fresh.state is ControllerState.IN_PROGRESS
    await fresh.dispose()


@pytest.mark.asyncio
async def test_new_session_replaces_active_one(engine, manager, store):
    first = await engine.start("u1", "practice", ["q1"])
    await first.dispose()
    second = await engine.start("u1", "warmup", ["q2"])

    assert await manager.active_session_id("u1") == second.session_id
    assert await store.get(SESSIONS, first.session_id) is None


@pytest.mark.asyncio
async def test_owners_are_isolated(engine, manager):
    mine = await engine.start("u1", "practice", ["q1"])
    theirs = await engine.start("u2", "practice", ["q2"])

    assert await manager.get(mine.session_id, "u2") is None
    assert (await engine.resume("u2")).session_id == theirs.session_id


@pytest.mark.asyncio
async def test_unknown_mode_rejected_before_any_write(engine, store):
    with pytest.raises(UnknownModeError):
        await engine.start("u1", "speedrun", ["q1"])

    assert store.writes == []


@pytest.mark.asyncio
async def test_mock_exam_review_after_finish(engine, sink):
    controller = await engine.start("u1", "mock", ["q1", "q2", "q3", "q4"])
    for option in ("Paris", "Rome", "Paris", "Rome"):
        await controller.answer(option)
        await controller.advance()
    await controller.drain()

    assert controller.state is ControllerState.FINISHED
    assert controller.score == 3
    statuses = [c.status.value for c in controller.navigator.cells()]
    assert statuses == ["correct", "incorrect", "correct", "correct"]
    assert sink.summaries[0].to_payload()["mcqAttempts"][1]["isCorrect"] is False
