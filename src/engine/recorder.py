"""
Attempt Recorder: best-effort forwarding of graded answers.

All spaced-repetition scheduling happens in the attempt sink. A failed
forward is logged and surfaced as a notification; it never raises into the
controller and never blocks progression.
"""

from __future__ import annotations

from loguru import logger

from src.engine.collaborators import AttemptSink
from src.engine.errors import RecorderFailure
from src.engine.models import AttemptRecord, ConfidenceRating, SessionSummary
from src.engine.notifications import NotificationCenter


class AttemptRecorder:
    """Forwards attempts and session summaries to the scheduling collaborator."""

    def __init__(self, sink: AttemptSink, notifications: NotificationCenter):
        self.sink = sink
        self.notifications = notifications
        self.failures = 0
        self.last_failure: RecorderFailure | None = None

    async def submit(
        self,
        item_id: str,
        selected_answer: str | None,
        is_correct: bool,
        session_id: str,
        confidence_rating: ConfidenceRating | str | None = None,
    ) -> bool:
        """
        Forward one attempt record.

        Returns:
            True if the sink accepted it, False if the forward failed
        """
        rating = ConfidenceRating(confidence_rating) if confidence_rating else None
        record = AttemptRecord(
            item_id=item_id,
            selected_answer=selected_answer,
            is_correct=is_correct,
            session_id=session_id,
            confidence_rating=rating,
        )
        try:
            await self.sink.record_attempt(record)
        except Exception as e:  # Sink transport errors vary; all are non-blocking here
            self.failures += 1
            self.last_failure = RecorderFailure(f"Failed to save attempt: {e}")
            logger.warning(f"Failed to record attempt for {item_id} in {session_id}: {e}")
            self.notifications.error(str(self.last_failure))
            return False

        logger.debug(
            f"Recorded attempt {item_id}: correct={is_correct}"
            + (f" rating={rating.value}" if rating else "")
        )
        return True

    async def submit_summary(self, summary: SessionSummary) -> bool:
        """Forward the final session summary with the same best-effort rules."""
        try:
            await self.sink.submit_summary(summary)
        except Exception as e:
            self.failures += 1
            self.last_failure = RecorderFailure(f"Failed to save quiz results: {e}")
            logger.warning(f"Failed to submit summary for {summary.session_id}: {e}")
            self.notifications.error(str(self.last_failure))
            return False

        logger.info(
            f"Submitted summary for {summary.session_id}: "
            f"{summary.score}/{summary.total_questions} ({summary.mode.value})"
        )
        return True
