"""
Cancellable countdown on the asyncio event loop.

One CountdownTimer covers one armed duration: its expiry callback fires at
most once, and `cancel()` removes the scheduled loop handle so a superseded
timer can never fire. Per-question timers are replaced, not re-armed.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from loguru import logger


class CountdownTimer:
    """Pausable countdown that invokes `on_expire` once when it runs out."""

    def __init__(self, duration: float, on_expire: Callable[[], None], label: str = "timer"):
        self.duration = max(0.0, float(duration))
        self.label = label
        self._on_expire = on_expire
        self._remaining = self.duration
        self._loop: asyncio.AbstractEventLoop | None = None
        self._handle: asyncio.TimerHandle | None = None
        self._armed_at: float | None = None
        self._fired = False
        self._cancelled = False

    @property
    def running(self) -> bool:
        return self._handle is not None

    @property
    def expired(self) -> bool:
        return self._fired

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def remaining(self) -> float:
        """Seconds left, accounting for time elapsed since the last arm."""
        if self._handle is not None and self._loop is not None and self._armed_at is not None:
            return max(0.0, self._remaining - (self._loop.time() - self._armed_at))
        return self._remaining

    def start(self) -> None:
        """Arm the countdown. No-op if already running, expired, or cancelled."""
        if self._handle is not None or self._fired or self._cancelled:
            return
        self._loop = asyncio.get_running_loop()
        self._armed_at = self._loop.time()
        self._handle = self._loop.call_later(self._remaining, self._fire)
        logger.debug(f"{self.label}: armed with {self._remaining:.1f}s left")

    resume = start

    def pause(self) -> None:
        """Stop the countdown, keeping the remaining time."""
        if self._handle is None:
            return
        self._remaining = self.remaining
        self._handle.cancel()
        self._handle = None
        self._armed_at = None
        logger.debug(f"{self.label}: paused with {self._remaining:.1f}s left")

    def cancel(self) -> None:
        """Permanently disarm; the expiry callback will never run."""
        if self._handle is not None:
            self._remaining = self.remaining
            self._handle.cancel()
            self._handle = None
        self._cancelled = True

    def _fire(self) -> None:
        self._handle = None
        if self._fired or self._cancelled:
            return
        self._fired = True
        self._remaining = 0.0
        logger.debug(f"{self.label}: expired")
        self._on_expire()
