"""
Unit tests for the best-effort attempt recorder.
"""

import pytest

from src.engine.errors import RecorderFailure
from src.engine.models import ConfidenceRating, Mode, SessionSummary
from src.engine.notifications import NotificationLevel


@pytest.mark.asyncio
async def test_submit_forwards_record(recorder, sink):
    ok = await recorder.submit("q1", "Paris", True, "s1")

    assert ok is True
    record = sink.attempts[0]
    assert record.item_id == "q1"
    assert record.selected_answer == "Paris"
    assert record.is_correct is True
    assert record.session_id == "s1"
    assert record.confidence_rating is None


@pytest.mark.asyncio
async def test_submit_with_rating(recorder, sink):
    await recorder.submit("q1", "Rome", False, "s1", "hard")

    assert sink.attempts[0].confidence_rating is ConfidenceRating.HARD
    assert sink.attempts[0].to_payload()["confidenceRating"] == "hard"


@pytest.mark.asyncio
async def test_failure_notifies_and_does_not_raise(recorder, sink, notifications):
    sink.fail_attempts = True

    ok = await recorder.submit("q1", "Paris", True, "s1")

    assert ok is False
    assert recorder.failures == 1
    assert isinstance(recorder.last_failure, RecorderFailure)
    assert notifications.active[-1].level is NotificationLevel.ERROR
    assert "Failed to save attempt" in notifications.active[-1].message


@pytest.mark.asyncio
async def test_summary_failure_is_non_blocking(recorder, sink, notifications):
    sink.fail_summaries = True
    summary = SessionSummary(session_id="s1", owner_id="u1", mode=Mode.QUIZ, total_questions=2, score=1)

    assert await recorder.submit_summary(summary) is False
    assert "quiz results" in notifications.active[-1].message


@pytest.mark.asyncio
async def test_summary_forwarded(recorder, sink):
    summary = SessionSummary(session_id="s1", owner_id="u1", mode=Mode.MOCK, total_questions=3, score=3)

    assert await recorder.submit_summary(summary) is True
    assert sink.summaries == [summary]
    assert summary.to_payload()["totalQuestions"] == 3
