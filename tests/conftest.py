"""
Shared fixtures: headless matplotlib and a virtual-time event loop.
"""

import heapq
import itertools

import matplotlib

matplotlib.use("Agg")

import pytest


class _Handle:
    def __init__(self, when, callback):
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeLoop:
    """
    Minimal stand-in for an asyncio loop: `call_later` queues callbacks on a
    virtual clock that only moves when `advance()` is called.
    """

    def __init__(self):
        self.now = 0.0
        self._queue = []
        self._seq = itertools.count()

    def call_later(self, delay, callback):
        handle = _Handle(self.now + delay, callback)
        heapq.heappush(self._queue, (handle.when, next(self._seq), handle))
        return handle

    def pending(self):
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def advance(self, seconds):
        """Run every callback due within the next `seconds`, in order."""
        end = self.now + seconds
        while self._queue and self._queue[0][0] <= end + 1e-12:
            when, _, handle = heapq.heappop(self._queue)
            self.now = when
            if not handle.cancelled:
                handle.callback()
        self.now = end


@pytest.fixture
def fake_loop():
    return FakeLoop()
