"""
Cooperative single-threaded timer queue.

The registry only needs ``call_later(delay, callback) -> handle`` with
``handle.cancel()``; an asyncio event loop satisfies that contract directly.
TimerQueue is the bundled implementation for hosts that drive their own event
loop (and for tests): nothing fires until the owner calls ``advance`` or
``run_due``, so every callback runs on the owner's thread between events.
"""

import heapq
import itertools
import time
from typing import Any, Callable, List, Optional, Tuple


class TimerHandle:
    """Handle returned by TimerQueue.call_later."""

    __slots__ = ('when', 'callback', 'args', 'cancelled')

    def __init__(self, when: float, callback: Callable[..., Any], args: Tuple[Any, ...]):
        self.when = when
        self.callback = callback
        self.args = args
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def __repr__(self) -> str:
        state = "cancelled" if self.cancelled else "pending"
        return f"<TimerHandle when={self.when:.3f} {state} {self.callback!r}>"


class TimerQueue:
    """Min-heap of pending callbacks ordered by due time.

    Args:
        clock: Time source in seconds. Defaults to time.monotonic. When
            ``advance`` is used the queue keeps its own virtual time on top
            of the clock reading taken at construction.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.monotonic
        self._offset = 0.0
        self._heap: List[Tuple[float, int, TimerHandle]] = []
        self._sequence = itertools.count()

    def time(self) -> float:
        """Current time as seen by the queue."""
        return self._clock() + self._offset

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Schedule callback to run once ``delay`` seconds from now."""
        handle = TimerHandle(self.time() + max(0.0, delay), callback, args)
        heapq.heappush(self._heap, (handle.when, next(self._sequence), handle))
        return handle

    def pending(self) -> int:
        """Number of scheduled callbacks that have not been cancelled."""
        return sum(1 for _, _, handle in self._heap if not handle.cancelled)

    def run_due(self) -> int:
        """Run every callback whose due time has passed.

        Callbacks scheduled while running are picked up in the same pass if
        they are already due. Exceptions propagate to the caller after the
        failing handle has been removed from the queue.

        Returns:
            Number of callbacks run.
        """
        ran = 0
        while self._heap and self._heap[0][0] <= self.time():
            _, _, handle = heapq.heappop(self._heap)
            if handle.cancelled:
                continue
            handle.callback(*handle.args)
            ran += 1
        return ran

    def advance(self, seconds: float) -> int:
        """Move virtual time forward and run whatever became due."""
        self._offset += seconds
        return self.run_due()

    def clear(self) -> None:
        """Drop every pending callback without running it."""
        for _, _, handle in self._heap:
            handle.cancel()
        self._heap.clear()
