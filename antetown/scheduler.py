"""
Clocks and the per-round phase timer.

A timer never mutates round state by itself. When it fires it hands a
TimerFired message to the round's inbox, which routes it through the same
serialized dispatch as player actions.
"""

import asyncio
import heapq
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class ActionMessage:
    participant_id: str
    action: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TimerFired:
    token: int
    label: str


class LoopClock:
    """Clock backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return time.time()

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(max(delay, 0.0), callback)


class _ManualHandle:
    def __init__(self, deadline: float, callback: Callable[[], None]):
        self.deadline = deadline
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualClock:
    """Fake clock for tests. Nothing fires until advance() is called."""

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: List[Tuple[float, int, _ManualHandle]] = []
        self._counter = itertools.count()

    def now(self) -> float:
        return self._now

    def call_later(self, delay: float, callback: Callable[[], None]) -> _ManualHandle:
        handle = _ManualHandle(self._now + max(delay, 0.0), callback)
        heapq.heappush(self._queue, (handle.deadline, next(self._counter), handle))
        return handle

    def pending(self) -> int:
        return sum(1 for _, _, h in self._queue if not h.cancelled)

    def advance(self, seconds: float) -> int:
        """Move time forward, firing due callbacks in deadline order. Returns how many fired."""
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0][0] <= target:
            deadline, _, handle = heapq.heappop(self._queue)
            if handle.cancelled:
                continue
            self._now = deadline
            handle.callback()
            fired += 1
        self._now = target
        return fired


class PhaseTimer:
    """Holds at most one live timer handle for a round.

    arm() always clears the previous handle first. Each arming gets a fresh
    token; claim() only honours the token of the live arming, so a firing
    that raced a cancel is dropped.
    """

    def __init__(self, clock, deliver: Callable[[TimerFired], None]):
        self.clock = clock
        self._deliver = deliver
        self._tokens = itertools.count(1)
        self._handle = None
        self._token: Optional[int] = None
        self._label: Optional[str] = None
        self._callback: Optional[Callable[[], None]] = None
        self.deadline: Optional[float] = None

    @property
    def armed(self) -> bool:
        return self._token is not None

    @property
    def label(self) -> Optional[str]:
        return self._label

    def arm(self, delay: float, callback: Callable[[], None], label: str) -> int:
        self.cancel()
        token = next(self._tokens)
        self._token = token
        self._label = label
        self._callback = callback
        self.deadline = self.clock.now() + delay
        self._handle = self.clock.call_later(delay, lambda: self._deliver(TimerFired(token, label)))
        logging.debug(f"Timer armed: {label} in {delay}s (token {token})")
        return token

    def cancel(self):
        if self._handle is not None:
            self._handle.cancel()
            logging.debug(f"Timer cancelled: {self._label} (token {self._token})")
        self._handle = None
        self._token = None
        self._label = None
        self._callback = None
        self.deadline = None

    def claim(self, token: int) -> Optional[Callable[[], None]]:
        """Return the callback for a live token and disarm, or None if stale."""
        if token != self._token or self._callback is None:
            return None
        callback = self._callback
        self._handle = None
        self._token = None
        self._label = None
        self._callback = None
        self.deadline = None
        return callback

    def remaining(self) -> Optional[float]:
        if self.deadline is None:
            return None
        return max(self.deadline - self.clock.now(), 0.0)
