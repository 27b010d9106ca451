"""
Unit tests for the cancellable countdown timer.
"""

import asyncio

import pytest

from src.engine.timer import CountdownTimer


class Counter:
    def __init__(self):
        self.count = 0

    def __call__(self):
        self.count += 1


@pytest.mark.asyncio
async def test_fires_once_after_duration():
    fired = Counter()
    timer = CountdownTimer(0.02, fired)
    timer.start()

    await asyncio.sleep(0.08)

    assert fired.count == 1
    assert timer.expired is True
    assert timer.remaining == 0.0


@pytest.mark.asyncio
async def test_start_twice_does_not_double_fire():
    fired = Counter()
    timer = CountdownTimer(0.02, fired)
    timer.start()
    timer.start()

    await asyncio.sleep(0.08)
    timer.start()
    await asyncio.sleep(0.05)

    assert fired.count == 1


@pytest.mark.asyncio
async def test_cancel_prevents_firing():
    fired = Counter()
    timer = CountdownTimer(0.02, fired)
    timer.start()
    timer.cancel()

    await asyncio.sleep(0.06)

    assert fired.count == 0
    assert timer.cancelled is True
    assert timer.running is False


@pytest.mark.asyncio
async def test_cancelled_timer_cannot_restart():
    fired = Counter()
    timer = CountdownTimer(0.01, fired)
    timer.cancel()
    timer.start()

    await asyncio.sleep(0.04)

    assert fired.count == 0


@pytest.mark.asyncio
async def test_pause_keeps_remaining_time():
    fired = Counter()
    timer = CountdownTimer(1.0, fired)
    timer.start()
    await asyncio.sleep(0.05)
    timer.pause()
    remaining = timer.remaining

    await asyncio.sleep(0.05)

    assert timer.running is False
    assert timer.remaining == remaining
    assert 0.8 < remaining < 1.0


@pytest.mark.asyncio
async def test_resume_after_pause_fires():
    fired = Counter()
    timer = CountdownTimer(0.03, fired)
    timer.start()
    timer.pause()
    await asyncio.sleep(0.06)
    assert fired.count == 0

    timer.resume()
    await asyncio.sleep(0.08)

    assert fired.count == 1


def test_negative_duration_clamped():
    timer = CountdownTimer(-5, lambda: None)

    assert timer.duration == 0.0
    assert timer.remaining == 0.0
