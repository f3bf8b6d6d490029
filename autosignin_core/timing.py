"""
Deadlines and cancellable waits.

Every poll loop in the engine sleeps through a Deadline so that a phase
timeout or the caller's cancellation signal is noticed at the next tick
instead of after an unbounded wait.

Usage:
    deadline = Deadline(5.0, phase="detection", cancel_event=stop)
    while not found:
        await deadline.sleep(0.25)   # raises PhaseTimeoutError / LoginCancelledError
"""

import asyncio
import time
from typing import Callable, Optional

from .exceptions import LoginCancelledError, PhaseTimeoutError


class Deadline:
    """Monotonic deadline for one phase, optionally bound to a cancellation event."""

    def __init__(
        self,
        seconds: Optional[float],
        phase: str = "attempt",
        cancel_event: Optional[asyncio.Event] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.phase = phase
        self.cancel_event = cancel_event
        self._clock = clock
        self.started = clock()
        self.expires_at = None if seconds is None else self.started + max(0.0, seconds)

    @classmethod
    def unbounded(cls, phase: str = "attempt", cancel_event: Optional[asyncio.Event] = None) -> "Deadline":
        return cls(None, phase=phase, cancel_event=cancel_event)

    def child(self, seconds: Optional[float], phase: Optional[str] = None) -> "Deadline":
        """A nested deadline that never outlives this one."""
        remaining = self.remaining()
        if seconds is None:
            seconds = remaining
        elif remaining is not None:
            seconds = min(seconds, remaining)
        return Deadline(seconds, phase=phase or self.phase, cancel_event=self.cancel_event, clock=self._clock)

    def remaining(self) -> Optional[float]:
        if self.expires_at is None:
            return None
        return max(0.0, self.expires_at - self._clock())

    def elapsed(self) -> float:
        return self._clock() - self.started

    @property
    def expired(self) -> bool:
        return self.expires_at is not None and self._clock() >= self.expires_at

    @property
    def cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    def _timeout(self) -> PhaseTimeoutError:
        return PhaseTimeoutError(
            f"{self.phase} phase exceeded its deadline",
            phase=self.phase,
            context={"elapsed_ms": int(self.elapsed() * 1000)},
        )

    def check(self) -> None:
        """Raise if cancelled or expired."""
        if self.cancelled:
            raise LoginCancelledError("Login attempt cancelled", phase=self.phase)
        if self.expired:
            raise self._timeout()

    async def sleep(self, seconds: float) -> None:
        """
        Sleep up to `seconds`, waking early on cancellation.

        Raises LoginCancelledError when cancelled and PhaseTimeoutError when
        the deadline is reached before or during the sleep.
        """
        self.check()
        remaining = self.remaining()
        wait = max(0.0, seconds if remaining is None else min(seconds, remaining))
        if self.cancel_event is None:
            await asyncio.sleep(wait)
        else:
            try:
                await asyncio.wait_for(self.cancel_event.wait(), timeout=wait)
            except asyncio.TimeoutError:
                pass
        self.check()
        # the loop may wake a hair before the clock reaches expires_at
        if remaining is not None and seconds >= remaining:
            raise self._timeout()
