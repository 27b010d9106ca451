"""
Session Controller: the state machine driving one interactive session.

States:
    LOADING -> IN_PROGRESS <-> REVIEWING -> FINISHING -> FINISHED
    ERROR is reachable from LOADING on unrecoverable I/O failure.

The controller is the only writer of its session. Every operation updates
local state synchronously first; store writes and attempt forwards are then
issued as background tasks (writes are serialized in issue order). Local state
is authoritative for the live view, the store only for resumption.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from src.engine.bookmarks import BookmarkSynchronizer
from src.engine.collaborators import ContentSource, HintProvider
from src.engine.errors import FetchFailure, SessionNotFound, TransientWriteFailure
from src.engine.models import ConfidenceRating, Item, ItemType, Session, SessionSummary
from src.engine.modes import ModePolicy, TimerScope, get_policy
from src.engine.navigator import QuestionNavigator
from src.engine.notifications import NotificationCenter, NotificationLevel
from src.engine.recorder import AttemptRecorder
from src.engine.scoring import StreakScore, grade_session
from src.engine.session_manager import SessionManager
from src.engine.timer import CountdownTimer


class ControllerState(str, Enum):
    LOADING = "loading"
    IN_PROGRESS = "in_progress"
    REVIEWING = "reviewing"
    FINISHING = "finishing"
    FINISHED = "finished"
    ERROR = "error"


@dataclass(frozen=True)
class SessionSnapshot:
    """Read-only view handed to the interactive surface."""

    session_id: str
    state: ControllerState
    current_index: int
    answers: dict[int, str | None]
    marked_for_review: frozenset[int]
    is_finished: bool


class SessionController:
    """
    Drives one session end-to-end.

    Collaborators are injected; nothing is read from module-level state.
    """

    def __init__(
        self,
        session_id: str,
        owner_id: str,
        manager: SessionManager,
        content: ContentSource,
        recorder: AttemptRecorder,
        bookmarks: BookmarkSynchronizer,
        notifications: NotificationCenter,
        hints: HintProvider | None = None,
        timer_seconds: float | None = None,
        seconds_overrides: dict[str, float] | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.session_id = session_id
        self.owner_id = owner_id
        self.manager = manager
        self.content = content
        self.recorder = recorder
        self.bookmarks = bookmarks
        self.notifications = notifications
        self.hints = hints
        self._timer_seconds = timer_seconds
        self._seconds_overrides = seconds_overrides
        self._clock = clock or manager.clock

        self.state = ControllerState.LOADING
        self.session: Session | None = None
        self.policy: ModePolicy | None = None
        self.items: dict[str, Item] = {}
        self.missing_item_ids: list[str] = []
        self.revealed: set[int] = set()
        self.hint: str | None = None
        self.last_error: Exception | None = None
        self.score: int | None = None
        self.summary: SessionSummary | None = None
        self.streak = StreakScore()
        self.navigator = QuestionNavigator(self)

        self._timer: CountdownTimer | None = None
        self._tasks: set[asyncio.Task] = set()
        self._write_lock = asyncio.Lock()
        self._unsaved: set[str] = set()
        self._document_deleted = False

    # =========================================================================
    # Read-only surface
    # =========================================================================

    @property
    def current_index(self) -> int:
        return self.session.current_index if self.session else 0

    @property
    def current_item(self) -> Item | None:
        if self.session is None or not 0 <= self.session.current_index < len(self.session):
            return None
        return self.items.get(self.session.item_ids[self.session.current_index])

    @property
    def timer(self) -> CountdownTimer | None:
        return self._timer

    def is_revealed(self, index: int | None = None) -> bool:
        """Whether correctness and explanation are visible for an index."""
        if self.session is None or self.policy is None:
            return False
        index = self.current_index if index is None else index
        if self._is_flashcard(index):
            return self.session.is_finished or index in self.revealed
        if not self.session.is_answered(index):
            return self.session.is_finished
        return self.session.is_finished or self.policy.reveal_immediately or index in self.revealed

    def snapshot(self) -> SessionSnapshot:
        session = self.session
        return SessionSnapshot(
            session_id=self.session_id,
            state=self.state,
            current_index=session.current_index if session else 0,
            answers=dict(session.answers) if session else {},
            marked_for_review=frozenset(session.marked_for_review) if session else frozenset(),
            is_finished=session.is_finished if session else False,
        )

    # =========================================================================
    # Loading
    # =========================================================================

    async def load(self) -> None:
        """
        Hydrate the session and batch-fetch its items.

        Raises:
            SessionNotFound: Missing, expired, or foreign session (start fresh)
        """
        self._set_state(ControllerState.LOADING)
        self.last_error = None

        if self.session is None:
            try:
                session = await self.manager.get(self.session_id, self.owner_id)
            except FetchFailure as e:
                self._fail(e)
                return
            if session is None:
                raise SessionNotFound(self.session_id)
            self.session = session
            self.policy = get_policy(session.mode, self._seconds_overrides)

        session = self.session
        try:
            fetched = await self.content.fetch_items(session.item_ids)
        except Exception as e:  # Content backends raise their own transport errors
            self._fail(FetchFailure(f"Failed to load questions: {e}"))
            return

        self.items = {item.id: item for item in fetched}
        self.missing_item_ids = [i for i in session.item_ids if i not in self.items]
        if not self.items:
            self._fail(FetchFailure(f"None of the {len(session)} session items could be loaded"))
            return
        if self.missing_item_ids:
            logger.warning(f"Session {self.session_id}: {len(self.missing_item_ids)} items not found")

        logger.info(f"Loaded {session.mode.value} session {self.session_id} at {session.current_index + 1}/{len(session)}")

        if session.is_finished:
            self._set_state(ControllerState.FINISHED)
            return
        if session.current_index >= len(session):
            await self._finish()
            return

        self._arm_session_timer()
        self._enter_index()

    async def retry(self) -> None:
        """Manual retry after a load failure; already-hydrated local state is kept."""
        if self.state is not ControllerState.ERROR:
            return
        await self.load()

    def _fail(self, error: Exception) -> None:
        self.last_error = error
        self._set_state(ControllerState.ERROR)
        logger.error(f"Session {self.session_id} failed to load: {error}")

    # =========================================================================
    # Operations
    # =========================================================================

    async def answer(self, option: str) -> bool:
        """
        Record an answer for the current index.

        Returns:
            True if the answer was recorded, False if the call was a no-op
        """
        if not self._accepting():
            return False
        session, policy = self.session, self.policy
        index = session.current_index
        item = self.current_item
        if item is None or item.type is ItemType.FLASHCARD:
            return False

        if self.state is ControllerState.IN_PROGRESS:
            if session.is_answered(index):
                return False
        elif self.state is ControllerState.REVIEWING:
            # Overwrite allowed until the rating is in
            if not (policy.requires_confidence_rating and index not in session.rated):
                return False
        else:
            return False

        session.answers[index] = option
        is_correct = item.is_correct(option)
        logger.debug(f"Session {self.session_id} q{index + 1}: {option!r} correct={is_correct}")

        self._spawn(self.recorder.submit(item.id, option, is_correct, self.session_id))
        self._spawn(self._persist("answers"))

        if policy.uses_streak_multiplier:
            self._score_streak(is_correct)
        if policy.reveal_immediately:
            self._set_state(ControllerState.REVIEWING)
        if policy.auto_advance_on_answer:
            await self._move_to(index + 1)
        return True

    async def reveal(self) -> bool:
        """Expose correctness for the answered current item in deferred-reveal modes."""
        if not self._accepting() or self.state is not ControllerState.IN_PROGRESS:
            return False
        if self._is_flashcard(self.current_index):
            return await self.flip()
        if self.policy.reveal_immediately or not self.session.is_answered(self.current_index):
            return False
        self.revealed.add(self.current_index)
        self._set_state(ControllerState.REVIEWING)
        return True

    async def flip(self) -> bool:
        """Turn the current flashcard over. The card then waits for a rating."""
        if not self._accepting() or self.state is not ControllerState.IN_PROGRESS:
            return False
        index = self.current_index
        if not self._is_flashcard(index) or index in self.session.rated:
            return False
        self.revealed.add(index)
        self._set_state(ControllerState.REVIEWING)
        return True

    async def rate(self, rating: ConfidenceRating | str) -> bool:
        """
        Submit a confidence rating for the reviewed item and advance.

        Flashcards are rated after a flip and are never graded: the rating
        alone decides the forwarded `is_correct` (good or easy).
        """
        if not self._accepting() or self.state is not ControllerState.REVIEWING:
            return False
        session = self.session
        index = session.current_index
        item = self.current_item
        rating = ConfidenceRating(rating)

        if self._is_flashcard(index):
            if index not in self.revealed or index in session.rated:
                return False
            selected = None
            is_correct = rating in (ConfidenceRating.GOOD, ConfidenceRating.EASY)
        else:
            if not self.policy.requires_confidence_rating or not session.is_answered(index):
                return False
            selected = session.answers[index]
            is_correct = item is not None and item.is_correct(selected)

        session.rated.add(index)
        if item is not None:
            self._spawn(self.recorder.submit(item.id, selected, is_correct, self.session_id, rating))
        self._spawn(self._persist("rated"))
        await self._move_to(index + 1)
        return True

    async def advance(self) -> bool:
        """Go to the next item (skipping it where the mode allows)."""
        if not self._accepting():
            return False
        session, policy = self.session, self.policy
        index = session.current_index

        if self.state is ControllerState.REVIEWING:
            needs_rating = policy.requires_confidence_rating or self._is_flashcard(index)
            if needs_rating and index not in session.rated:
                return False
        elif self.state is ControllerState.IN_PROGRESS:
            answered = session.is_answered(index)
            if not (answered or policy.allow_skip or self.current_item is None):
                return False
            if not answered and policy.uses_streak_multiplier:
                self.streak.skip()
        else:
            return False

        await self._move_to(index + 1)
        return True

    async def navigate(self, index: int) -> bool:
        """Jump to an index. Changes only `current_index`."""
        if not self._accepting() or not self.policy.allow_free_navigation:
            return False
        if not 0 <= index < len(self.session):
            return False
        if index != self.session.current_index:
            self._set_index(index)
            self._spawn(self._persist("current_index"))
        return True

    async def toggle_mark(self) -> bool:
        """Flip the marked-for-review flag of the current index."""
        if not self._accepting():
            return False
        self.session.marked_for_review ^= {self.current_index}
        self._spawn(self._persist("marked_for_review"))
        return self.current_index in self.session.marked_for_review

    async def request_hint(self) -> str | None:
        """Best-effort hint for the current item."""
        if not self._accepting():
            return None
        item = self.current_item
        if item is None:
            return None
        if self.hints is None:
            self.notifications.push("Hints are not available.", NotificationLevel.WARNING)
            return None

        index = self.current_index
        try:
            hint = await self.hints.get_hint(item.id)
        except Exception as e:
            logger.warning(f"Hint lookup for {item.id} failed: {e}")
            self.notifications.error(f"Failed to get hint: {e}")
            return None
        if self.session is not None and self.current_index == index:
            self.hint = hint
        return hint

    async def toggle_bookmark(self, item_id: str | None = None, item_type: ItemType | str | None = None) -> bool:
        """Toggle a bookmark (the current item by default)."""
        item = self.current_item
        if item_id is None:
            if item is None:
                return False
            item_id = item.id
        if item_type is None:
            known = self.items.get(item_id)
            item_type = known.type if known else ItemType.MCQ
        return await self.bookmarks.toggle(item_id, item_type)

    async def finish(self) -> bool:
        """
        Grade, submit the summary, and tear the session down.

        Only a live (InProgress or Reviewing) session can be finished; a
        session stuck in Error stays intact for `retry()`. Idempotent:
        returns False if the session is already finishing or done.
        """
        if not self._accepting():
            return False
        return await self._finish()

    async def _finish(self) -> bool:
        session = self.session
        if session is None or session.is_finished:
            return False
        if self.state in (ControllerState.FINISHING, ControllerState.FINISHED):
            return False
        self._set_state(ControllerState.FINISHING)
        await self._complete_finish()
        return True

    async def _complete_finish(self) -> None:
        """Grade, submit and tear down. The state is already FINISHING."""
        session = self.session
        await self._drain(cancel=False)

        score, outcomes = grade_session(session.item_ids, self.items, session.answers)
        fetched = [self.items[i] for i in session.item_ids if i in self.items]
        summary = SessionSummary(
            session_id=self.session_id,
            owner_id=self.owner_id,
            mode=session.mode,
            total_questions=len(outcomes),
            score=score,
            attempts=outcomes,
            duration_seconds=(
                (self._clock() - session.created_at).total_seconds() if session.created_at else None
            ),
            topic_ids=sorted({i.topic_id for i in fetched if i.topic_id}),
            chapter_ids=sorted({i.chapter_id for i in fetched if i.chapter_id}),
        )
        if self.policy.uses_streak_multiplier:
            summary.game_score = self.streak.points
            summary.xp_earned = self.streak.xp
        self.score = score
        self.summary = summary

        await self.recorder.submit_summary(summary)

        session.is_finished = True
        async with self._write_lock:
            await self._teardown_document()
        self._set_state(ControllerState.FINISHED)
        logger.info(f"Finished session {self.session_id}: {score}/{len(outcomes)}")

    async def drain(self) -> None:
        """Wait for pending background writes and forwards to settle."""
        await self._drain(cancel=False)

    async def dispose(self) -> None:
        """Cancel the timer and let pending writes finish."""
        if self._timer is not None:
            self._timer.cancel()
        await self._drain(cancel=False)

    # =========================================================================
    # Internals
    # =========================================================================

    def _accepting(self) -> bool:
        return (
            self.session is not None
            and not self.session.is_finished
            and self.state in (ControllerState.IN_PROGRESS, ControllerState.REVIEWING)
        )

    def _is_flashcard(self, index: int) -> bool:
        if self.session is None or not 0 <= index < len(self.session):
            return False
        item = self.items.get(self.session.item_ids[index])
        return item is not None and item.type is ItemType.FLASHCARD

    def _set_state(self, state: ControllerState) -> None:
        previous, self.state = self.state, state
        if self._timer is not None:
            if state is ControllerState.IN_PROGRESS:
                self._timer.resume()
            elif state is ControllerState.REVIEWING:
                self._timer.pause()
            else:
                self._timer.cancel()
        if previous is not state:
            logger.debug(f"Session {self.session_id}: {previous.value} -> {state.value}")

    def _set_index(self, index: int) -> None:
        self.session.current_index = index
        self.hint = None
        self._enter_index()

    def _enter_index(self) -> None:
        """Settle state (and the per-question timer) for the current index."""
        session, policy = self.session, self.policy
        index = session.current_index
        if self._is_flashcard(index):
            awaiting_rating = index in self.revealed and index not in session.rated
        else:
            awaiting_rating = (
                policy.requires_confidence_rating
                and session.is_answered(index)
                and index not in session.rated
            )
        if policy.timer_scope is TimerScope.PER_QUESTION:
            self._replace_timer(self._timer_seconds or policy.timer_duration(len(session)), self._on_question_timeout)
        self._set_state(ControllerState.REVIEWING if awaiting_rating else ControllerState.IN_PROGRESS)

    async def _move_to(self, index: int) -> None:
        if index >= len(self.session):
            await self._finish()
            return
        self._set_index(index)
        self._spawn(self._persist("current_index"))

    def _score_streak(self, is_correct: bool) -> None:
        multiplier = self.streak.multiplier
        earned = self.streak.record(is_correct)
        if is_correct:
            self.notifications.push(f"Correct! +{earned} points", NotificationLevel.SUCCESS)
            if self.streak.multiplier > multiplier:
                self.notifications.push(f"Multiplier x{self.streak.multiplier}!")
        else:
            self.notifications.push("Incorrect. Multiplier reset.", NotificationLevel.WARNING)

    # ----- timers -------------------------------------------------------------

    def _arm_session_timer(self) -> None:
        policy, session = self.policy, self.session
        if policy.timer_scope is not TimerScope.PER_SESSION:
            return
        duration = self._timer_seconds or policy.timer_duration(len(session))
        if duration is None:
            return
        if session.created_at is not None:
            elapsed = (self._clock() - session.created_at).total_seconds()
            duration = max(0.0, duration - max(0.0, elapsed))
        self._replace_timer(duration, self._on_session_timeout)

    def _replace_timer(self, duration: float | None, handler: Callable[[CountdownTimer], None]) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if duration is None:
            return
        timer: CountdownTimer | None = None

        def on_expire() -> None:
            handler(timer)

        timer = CountdownTimer(duration, on_expire, label=f"session {self.session_id}")
        self._timer = timer

    def _on_session_timeout(self, timer: CountdownTimer | None) -> None:
        if timer is not self._timer or self.state is not ControllerState.IN_PROGRESS:
            return
        logger.info(f"Session {self.session_id}: time is up")
        self.notifications.push("Time's up!", NotificationLevel.WARNING)
        self._begin_finish()

    def _on_question_timeout(self, timer: CountdownTimer | None) -> None:
        """Count the expired question as a skip and leave it before any await."""
        if timer is not self._timer or self.state is not ControllerState.IN_PROGRESS:
            return
        index = self.current_index
        logger.debug(f"Session {self.session_id}: question {index + 1} timed out")
        self.streak.skip()
        if index + 1 < len(self.session):
            self._set_index(index + 1)
            self._spawn(self._persist("current_index"))
        else:
            self._begin_finish()

    def _begin_finish(self) -> None:
        # Leaves the live states synchronously so nothing lands in between
        self._set_state(ControllerState.FINISHING)
        self._spawn(self._complete_finish())

    # ----- background work ----------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.opt(exception=task.exception()).error(f"Background task failed in session {self.session_id}")

    async def _drain(self, cancel: bool) -> None:
        current = asyncio.current_task()
        while True:
            pending = [t for t in self._tasks if t is not current and not t.done()]
            if not pending:
                return
            if cancel:
                for task in pending:
                    task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

    async def _persist(self, *fields: str) -> None:
        """Merge-write fields (plus anything a previous failed write left unsaved)."""
        async with self._write_lock:
            if self._document_deleted or self.session is None:
                return
            names = self._unsaved | set(fields)
            try:
                await self.manager.update(self.session_id, self.session.to_document(*sorted(names)))
            except TransientWriteFailure as e:
                self._unsaved = names
                logger.warning(f"Session {self.session_id}: write failed, will resend on next change: {e}")
                self.notifications.error("Failed to save progress. It will be retried on your next action.")
                return
            self._unsaved = set()

    async def _teardown_document(self) -> None:
        """Mark finished, unlink from the owner, delete the document."""
        steps = (
            ("mark finished", lambda: self.manager.update(self.session_id, self.session.to_document("is_finished", "answers"))),
            ("clear active session", lambda: self.manager.clear_active(self.owner_id, self.session_id)),
            ("delete session", lambda: self.manager.delete(self.session_id)),
        )
        for name, step in steps:
            try:
                await step()
            except (TransientWriteFailure, FetchFailure) as e:
                logger.warning(f"Session {self.session_id}: could not {name}: {e}")
                self.notifications.error(f"Failed to {name}: {e}")
        self._document_deleted = True
