"""
One-shot cancelable timers.

Sessions schedule their timers through a ``Scheduler``. An asyncio event
loop already is one (``loop.call_later`` returns a cancelable handle), so
the terminal front end passes its running loop. ``ManualScheduler`` is a
virtual clock for tests and offline simulations: nothing fires until
``advance()`` moves time forward.
"""

from __future__ import annotations

import heapq
import itertools
from collections.abc import Callable
from typing import Any, Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything with asyncio-style ``time`` and ``call_later``."""

    def time(self) -> float: ...

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class ManualTimer:
    """Handle returned by ManualScheduler.call_later."""

    def __init__(self, when: float, callback: Callable[..., Any], args: tuple):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "pending"
        return f"<ManualTimer at={self.when:.3f} {state}>"


class ManualScheduler:
    """Deterministic scheduler driven by explicit clock advances."""

    def __init__(self) -> None:
        self.now = 0.0
        self._queue: list[tuple[float, int, ManualTimer]] = []
        self._counter = itertools.count()

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> ManualTimer:
        timer = ManualTimer(self.now + max(0.0, delay), callback, args)
        heapq.heappush(self._queue, (timer.when, next(self._counter), timer))
        return timer

    @property
    def pending(self) -> int:
        """Number of timers that are scheduled and not cancelled."""
        return sum(1 for _, _, t in self._queue if not t.cancelled)

    def advance(self, seconds: float) -> int:
        """
        Move the clock forward, firing every timer that comes due.

        Timers scheduled by callbacks fire too if they fall inside the
        window. Returns the number of callbacks run.
        """
        target = self.now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            when, _, timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self.now = when
            timer.callback(*timer.args)
            fired += 1
        self.now = target
        return fired

    def run_all(self, limit: int = 1000) -> int:
        """Fire timers in order until none are left (bounded by ``limit``)."""
        fired = 0
        while fired < limit:
            live = [entry for entry in self._queue if not entry[2].cancelled]
            if not live:
                break
            fired += self.advance(min(entry[0] for entry in live) - self.now)
        return fired
