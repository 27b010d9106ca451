"""
Question Navigator: read-only per-index progress view.

The projection never grades, reveals or scores anything; jumping delegates to
the controller's `navigate()`, which enforces the mode's navigation rule.
"""

from __future__ import annotations

from collections.abc import Collection, Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from src.engine.models import Item, ItemType
from src.engine.modes import ModePolicy

if TYPE_CHECKING:
    from src.engine.controller import SessionController


class QuestionStatus(str, Enum):
    UNANSWERED = "unanswered"
    ANSWERED = "answered"  # awaiting reveal
    CORRECT = "correct"
    INCORRECT = "incorrect"
    MARKED = "marked"


@dataclass(frozen=True)
class NavigatorCell:
    index: int
    status: QuestionStatus
    marked: bool
    current: bool

    @property
    def display_status(self) -> QuestionStatus:
        """Marked items show as marked regardless of answer state."""
        return QuestionStatus.MARKED if self.marked else self.status


def project(
    item_ids: Sequence[str],
    items: Mapping[str, Item],
    answers: Mapping[int, str | None],
    marked_for_review: Collection[int],
    current_index: int,
    policy: ModePolicy,
    is_finished: bool = False,
    revealed: Collection[int] = (),
    rated: Collection[int] = (),
) -> list[NavigatorCell]:
    """
    Compute the display status of every index.

    Flashcards are never graded: a rated card shows as answered.
    """
    cells = []
    for index, item_id in enumerate(item_ids):
        item = items.get(item_id)
        selected = answers.get(index)
        if item is not None and item.type is ItemType.FLASHCARD:
            status = QuestionStatus.ANSWERED if index in rated else QuestionStatus.UNANSWERED
        elif selected is None:
            status = QuestionStatus.UNANSWERED
        elif is_finished or policy.reveal_immediately or index in revealed:
            status = (
                QuestionStatus.CORRECT
                if item is not None and item.is_correct(selected)
                else QuestionStatus.INCORRECT
            )
        else:
            status = QuestionStatus.ANSWERED
        cells.append(
            NavigatorCell(
                index=index,
                status=status,
                marked=index in marked_for_review,
                current=index == current_index,
            )
        )
    return cells


class QuestionNavigator:
    """Navigator bound to one controller."""

    def __init__(self, controller: SessionController):
        self.controller = controller

    def cells(self) -> list[NavigatorCell]:
        c = self.controller
        if c.session is None:
            return []
        return project(
            item_ids=c.session.item_ids,
            items=c.items,
            answers=c.session.answers,
            marked_for_review=c.session.marked_for_review,
            current_index=c.session.current_index,
            policy=c.policy,
            is_finished=c.session.is_finished,
            revealed=c.revealed,
            rated=c.session.rated,
        )

    def summary(self) -> dict[str, int]:
        counts = {status.value: 0 for status in QuestionStatus}
        for cell in self.cells():
            counts[cell.status.value] += 1
            if cell.marked:
                counts[QuestionStatus.MARKED.value] += 1
        return counts

    @property
    def can_jump(self) -> bool:
        return self.controller.policy.allow_free_navigation

    async def jump(self, index: int) -> bool:
        return await self.controller.navigate(index)
