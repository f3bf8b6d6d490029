"""Tests for deadlines and cancellable sleeps."""

import asyncio

import pytest

from autosignin_core.exceptions import LoginCancelledError, PhaseTimeoutError
from autosignin_core.timing import Deadline


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_remaining_and_expiry():
    clock = FakeClock()
    deadline = Deadline(5.0, phase="detection", clock=clock)
    assert deadline.remaining() == 5.0
    clock.now += 3
    assert deadline.remaining() == 2.0
    assert not deadline.expired
    clock.now += 2
    assert deadline.expired
    with pytest.raises(PhaseTimeoutError) as exc_info:
        deadline.check()
    assert exc_info.value.phase == "detection"


def test_unbounded_never_expires():
    deadline = Deadline.unbounded()
    assert deadline.remaining() is None
    assert not deadline.expired
    deadline.check()


def test_child_never_outlives_parent():
    clock = FakeClock()
    parent = Deadline(4.0, clock=clock)
    assert parent.child(10.0).remaining() == 4.0
    assert parent.child(1.0).remaining() == 1.0
    assert parent.child(None).remaining() == 4.0


async def test_sleep_raises_when_deadline_passes():
    deadline = Deadline(0.02, phase="verification")
    with pytest.raises(PhaseTimeoutError):
        await deadline.sleep(1.0)


async def test_sleep_wakes_on_cancellation():
    stop = asyncio.Event()
    deadline = Deadline(5.0, cancel_event=stop)

    async def cancel_soon():
        await asyncio.sleep(0.01)
        stop.set()

    asyncio.get_running_loop().create_task(cancel_soon())
    with pytest.raises(LoginCancelledError):
        await deadline.sleep(5.0)


async def test_cancelled_before_sleep():
    stop = asyncio.Event()
    stop.set()
    with pytest.raises(LoginCancelledError):
        await Deadline(5.0, cancel_event=stop).sleep(0)
