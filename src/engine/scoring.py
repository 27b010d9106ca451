"""Session scoring: aggregate correctness and the quick-fire streak multiplier."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from src.engine.models import Item, ItemOutcome, ItemType

POINTS_PER_CORRECT = 100
XP_PER_CORRECT = 20
STREAK_STEP = 3


def grade_session(
    item_ids: Sequence[str],
    items: Mapping[str, Item],
    answers: Mapping[int, str | None],
) -> tuple[int, list[ItemOutcome]]:
    """
    Grade every index of a session.

    Returns the count of indices whose recorded answer equals the known
    correct answer, and the per-item outcomes. Items missing from content
    never count as correct. Flashcards are self-rated and left out.
    """
    outcomes: list[ItemOutcome] = []
    for index, item_id in enumerate(item_ids):
        item = items.get(item_id)
        if item is not None and item.type is ItemType.FLASHCARD:
            continue
        selected = answers.get(index)
        correct = item.correct_option if item else ""
        is_correct = item is not None and item.is_correct(selected)
        outcomes.append(
            ItemOutcome(
                item_id=item_id,
                selected_answer=selected,
                correct_answer=correct,
                is_correct=is_correct,
            )
        )
    return sum(1 for o in outcomes if o.is_correct), outcomes


@dataclass
class StreakScore:
    """Running arcade score for quick-fire sessions."""

    points: int = 0
    xp: int = 0
    multiplier: int = 1
    streak: int = 0

    def record(self, is_correct: bool) -> int:
        """
        Apply one answer and return the points it earned.

        A correct answer scores at the current multiplier; every third
        consecutive correct answer then bumps the multiplier.
        """
        if not is_correct:
            self.reset_streak()
            return 0
        earned = POINTS_PER_CORRECT * self.multiplier
        self.points += earned
        self.xp += XP_PER_CORRECT * self.multiplier
        self.streak += 1
        if self.streak % STREAK_STEP == 0:
            self.multiplier += 1
        return earned

    def skip(self) -> None:
        self.reset_streak()

    def reset_streak(self) -> None:
        self.streak = 0
        self.multiplier = 1
