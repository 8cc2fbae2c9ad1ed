from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, Iterable, List, Optional, Tuple


# Strava default application limits: 100 requests / 15 min, 1000 / day
STRAVA_LIMITS: Tuple[Tuple[int, float], ...] = ((100, 900.0), (1000, 86400.0))


class RateLimitError(RuntimeError):
    """Raised when a non-blocking acquire would exceed the rate limit."""


@dataclass
class _Window:
    max_calls: int
    per_seconds: float
    events: Deque[float] = field(default_factory=deque)

    def prune(self, now: float) -> None:
        window_start = now - self.per_seconds
        while self.events and self.events[0] <= window_start:
            self.events.popleft()

    def delay(self, now: float) -> float:
        if len(self.events) < self.max_calls:
            return 0.0
        return max(0.0, (self.events[0] + self.per_seconds) - now)


class SlidingWindowRateLimiter:
    """
    Sliding-window limiter enforcing several windows at once.

    - A call is admitted only when every window has a free slot.
    - `blocking=True` sleeps until admitted; `blocking=False` raises `RateLimitError`.
    - `sync_usage()` seeds a window from the server's reported usage so a fresh
      process does not overrun a quota consumed by earlier runs.

    Single-process only; not a distributed limiter.
    """

    def __init__(
        self,
        limits: Iterable[Tuple[int, float]] = STRAVA_LIMITS,
        *,
        clock=time.monotonic,
        sleep=time.sleep,
    ) -> None:
        self._windows: List[_Window] = []
        for max_calls, per_seconds in limits:
            if max_calls <= 0:
                raise ValueError("max_calls must be > 0")
            if per_seconds <= 0:
                raise ValueError("per_seconds must be > 0")
            self._windows.append(_Window(max_calls=max_calls, per_seconds=per_seconds))
        if not self._windows:
            raise ValueError("at least one limit is required")
        self._clock = clock
        self._sleep = sleep

    def _next_delay(self, now: float) -> float:
        for w in self._windows:
            w.prune(now)
        return max(w.delay(now) for w in self._windows)

    def acquire(self, *, blocking: bool = True) -> None:
        while True:
            now = self._clock()
            delay = self._next_delay(now)
            if delay == 0.0:
                for w in self._windows:
                    w.events.append(now)
                return
            if not blocking:
                raise RateLimitError("rate limit exceeded; no slot available")
            self._sleep(min(delay, 5.0))

    def sync_usage(self, used: Iterable[Optional[int]]) -> None:
        """Record server-side usage counts, one per window, as events at the current time."""
        now = self._clock()
        for w, count in zip(self._windows, used):
            if count is None:
                continue
            w.prune(now)
            missing = min(count, w.max_calls) - len(w.events)
            for _ in range(max(0, missing)):
                w.events.append(now)
