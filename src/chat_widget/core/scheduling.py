"""Timer abstraction used for animation delays and scripted bot prompts.

Controllers never sleep directly; they ask a :class:`Scheduler` to run a
callback later. Production code uses :class:`AsyncioScheduler`, tests inject
a :class:`VirtualClock` and advance it explicitly.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
import logging
from typing import Callable, List, Optional, Protocol, Tuple

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs callbacks after a delay expressed in seconds."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class _ImmediateHandle:
    def cancel(self) -> None:
        pass


class AsyncioScheduler:
    """Schedules callbacks on the running asyncio loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        loop = self._loop
        if loop is None:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                loop = None
        if loop is None or loop.is_closed():
            # Synchronous hosts have no loop to defer to.
            logger.debug("scheduler.immediate delay=%s", delay)
            callback()
            return _ImmediateHandle()
        return loop.call_later(delay, callback)


class VirtualTimer:
    def __init__(self, due: float, callback: Callable[[], None]) -> None:
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class VirtualClock:
    """Deterministic scheduler whose time only moves through :meth:`advance`."""

    def __init__(self) -> None:
        self.now = 0.0
        self._sequence = itertools.count()
        self._queue: List[Tuple[float, int, VirtualTimer]] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> VirtualTimer:
        timer = VirtualTimer(self.now + max(0.0, delay), callback)
        heapq.heappush(self._queue, (timer.due, next(self._sequence), timer))
        return timer

    @property
    def pending(self) -> int:
        return sum(1 for _, _, timer in self._queue if not timer.cancelled)

    def advance(self, seconds: float) -> None:
        """Move time forward, firing due timers in order, including ones they schedule."""

        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, timer = heapq.heappop(self._queue)
            self.now = max(self.now, due)
            if not timer.cancelled:
                timer.callback()
        self.now = target
