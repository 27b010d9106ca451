"""
Mode Policy: the single lookup table for mode-dependent behaviour.

Every branch on session mode elsewhere in the engine reads a flag from the
policy returned by `get_policy`; nothing else compares mode names.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from src.engine.errors import UnknownModeError
from src.engine.models import Mode


class TimerScope(str, Enum):
    """What a mode's countdown is attached to."""

    NONE = "none"
    PER_QUESTION = "per_question"
    PER_SESSION = "per_session"


@dataclass(frozen=True)
class ModePolicy:
    """Fixed tuple of behaviour flags for one mode."""

    mode: Mode
    auto_advance_on_answer: bool
    reveal_immediately: bool
    requires_confidence_rating: bool
    timer_scope: TimerScope
    allow_free_navigation: bool
    allow_skip: bool
    seconds_per_item: float | None = None
    uses_streak_multiplier: bool = False

    @property
    def has_timer(self) -> bool:
        return self.timer_scope is not TimerScope.NONE

    def timer_duration(self, item_count: int) -> float | None:
        """Total seconds for one armed countdown, or None for untimed modes."""
        if not self.has_timer or self.seconds_per_item is None:
            return None
        if self.timer_scope is TimerScope.PER_SESSION:
            return self.seconds_per_item * item_count
        return self.seconds_per_item


def _immediate(mode: Mode, rating: bool = True) -> ModePolicy:
    return ModePolicy(
        mode=mode,
        auto_advance_on_answer=False,
        reveal_immediately=True,
        requires_confidence_rating=rating,
        timer_scope=TimerScope.NONE,
        allow_free_navigation=True,
        allow_skip=False,
    )


def _deferred(mode: Mode, scope: TimerScope = TimerScope.NONE, seconds: float | None = None) -> ModePolicy:
    # Free navigation is allowed before the current item is answered.
    return ModePolicy(
        mode=mode,
        auto_advance_on_answer=False,
        reveal_immediately=False,
        requires_confidence_rating=False,
        timer_scope=scope,
        allow_free_navigation=True,
        allow_skip=True,
        seconds_per_item=seconds,
    )


POLICIES: dict[Mode, ModePolicy] = {
    Mode.PRACTICE: _immediate(Mode.PRACTICE),
    Mode.INCORRECT: _immediate(Mode.INCORRECT),
    Mode.REVIEW_DUE: _immediate(Mode.REVIEW_DUE),
    Mode.DAILY_GRIND: _immediate(Mode.DAILY_GRIND),
    Mode.WARMUP: _immediate(Mode.WARMUP, rating=False),
    Mode.QUIZ: _deferred(Mode.QUIZ, TimerScope.PER_SESSION, 60.0),
    Mode.MOCK: _deferred(Mode.MOCK, TimerScope.PER_SESSION, 72.0),
    Mode.CUSTOM: _deferred(Mode.CUSTOM),
    Mode.WEAKNESS: _deferred(Mode.WEAKNESS),
    Mode.QUICK_FIRE: ModePolicy(
        mode=Mode.QUICK_FIRE,
        auto_advance_on_answer=True,
        reveal_immediately=False,
        requires_confidence_rating=False,
        timer_scope=TimerScope.PER_QUESTION,
        allow_free_navigation=False,
        allow_skip=True,
        seconds_per_item=10.0,
        uses_streak_multiplier=True,
    ),
}


def get_policy(mode: Mode | str, seconds_overrides: dict[str, float] | None = None) -> ModePolicy:
    """
    Look up the policy for a mode.

    Args:
        mode: Mode enum or its string value
        seconds_overrides: Optional per-mode timer budget (mode value -> seconds)

    Raises:
        UnknownModeError: If the mode has no policy
    """
    try:
        key = Mode(mode)
    except ValueError:
        raise UnknownModeError(f"Unknown session mode: {mode!r}") from None

    policy = POLICIES[key]
    if seconds_overrides and policy.has_timer and key.value in seconds_overrides:
        policy = replace(policy, seconds_per_item=seconds_overrides[key.value])
    return policy
