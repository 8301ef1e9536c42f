"""Cancellable timers for the calibration flow.

Callbacks never run on their own thread. The owner calls run_due() from the
same place frames are handled, so timer continuations and classification
are never concurrent.
"""

import heapq
import itertools
import logging
import time
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger("TimerScheduler")


class TimerHandle:
    """A scheduled callback that can be cancelled any number of times."""

    __slots__ = ('deadline', 'callback', 'cancelled', '_scheduler')

    def __init__(self, deadline: float, callback: Callable[[], None],
                 scheduler: 'TimerScheduler') -> None:
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False
        self._scheduler = scheduler

    def cancel(self) -> None:
        if not self.cancelled:
            self.cancelled = True
            self._scheduler._live -= 1


class TimerScheduler:
    """Deadline-ordered timer queue driven by an injectable clock.

    Attributes:
        clock: Zero-argument callable returning the current time in seconds
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._queue: List[Tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()
        self._live = 0

    @property
    def pending(self) -> int:
        """Number of scheduled callbacks that are neither fired nor cancelled."""
        return self._live

    def call_later(self, delay_s: float, callback: Callable[[], None]) -> TimerHandle:
        handle = TimerHandle(self.clock() + max(0.0, delay_s), callback, self)
        heapq.heappush(self._queue, (handle.deadline, next(self._sequence), handle))
        self._live += 1
        return handle

    def cancel_all(self) -> None:
        if self._live:
            logger.debug("Cancelling %d pending timer(s)", self._live)
        for _, _, handle in self._queue:
            handle.cancel()
        self._queue.clear()

    def run_due(self, now: Optional[float] = None) -> int:
        """Fire every callback whose deadline has passed.

        Only callbacks that were due when the call started are fired. Timers
        scheduled by them count their delay from the clock and wait for a
        later call, so a chain advances at most one step per call even after
        a long gap between calls.

        Args:
            now: Time to run up to; defaults to the clock

        Returns:
            Number of callbacks fired
        """
        now = self.clock() if now is None else now
        due = []
        while self._queue and self._queue[0][0] <= now:
            due.append(heapq.heappop(self._queue)[2])

        fired = 0
        for index, handle in enumerate(due):
            # An earlier callback in this batch may have cancelled it
            if handle.cancelled:
                continue
            handle.cancel()
            try:
                handle.callback()
            except Exception:
                self._requeue(due[index + 1:])
                raise
            fired += 1
        return fired

    def _requeue(self, handles: List[TimerHandle]) -> None:
        for handle in handles:
            if not handle.cancelled:
                heapq.heappush(self._queue, (handle.deadline, next(self._sequence), handle))
