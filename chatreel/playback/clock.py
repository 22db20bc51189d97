"""Timer capability for the reveal scheduler."""

import heapq
import itertools
import logging
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class Clock(Protocol):
    def now(self) -> float: ...

    def set_timeout(self, ms: float, fn: Callable[[], None]) -> int: ...

    def clear(self, handle: int) -> None: ...


class ManualClock:
    """A clock that only moves when told to. Timers fire in due order, FIFO on ties."""

    def __init__(self, start: float = 0.0) -> None:
        self._now = start
        self._seq = itertools.count()
        self._timers: list[tuple[float, int, Callable[[], None]]] = []
        self._cancelled: set[int] = set()

    def now(self) -> float:
        return self._now

    def set_timeout(self, ms: float, fn: Callable[[], None]) -> int:
        handle = next(self._seq)
        heapq.heappush(self._timers, (self._now + max(ms, 0), handle, fn))
        return handle

    def clear(self, handle: int) -> None:
        self._cancelled.add(handle)

    @property
    def pending(self) -> int:
        return sum(1 for _, h, _ in self._timers if h not in self._cancelled)

    def next_due(self) -> float | None:
        while self._timers and self._timers[0][1] in self._cancelled:
            _, handle, _ = heapq.heappop(self._timers)
            self._cancelled.discard(handle)
        return self._timers[0][0] if self._timers else None

    def advance(self, ms: float) -> int:
        """Move time forward by `ms`, firing every timer that comes due. Returns timers fired."""
        target = self._now + ms
        fired = 0
        while True:
            due = self.next_due()
            if due is None or due > target:
                break
            due, handle, fn = heapq.heappop(self._timers)
            self._now = due
            fn()
            fired += 1
        self._now = target
        return fired

    def run_until_idle(self, limit: int = 10_000) -> int:
        """Fire timers until none remain. `limit` guards against self-rescheduling loops."""
        fired = 0
        while fired < limit:
            due = self.next_due()
            if due is None:
                return fired
            fired += self.advance(due - self._now)
        logger.warning("ManualClock stopped after %d timers with work still pending", limit)
        return fired
