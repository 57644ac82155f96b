"""Token bucket with lazy refill.

The bucket holds up to ``capacity`` tokens and gains ``rate`` tokens per
second. Refill is computed on each allow() call from the time elapsed since
the previous call; there is no timer or background task.

Not thread-safe on its own: RateLimiterRegistry calls allow() under its lock.
"""

from __future__ import annotations

import time
from typing import Callable

Clock = Callable[[], float]


class TokenBucket:
    __slots__ = ("rate", "capacity", "tokens", "last_refill", "_clock")

    def __init__(self, rate: float, capacity: int, clock: Clock = time.monotonic) -> None:
        if rate < 0:
            raise ValueError("rate must be >= 0")
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.rate = float(rate)
        self.capacity = capacity
        self.tokens = float(capacity)
        self._clock = clock
        self.last_refill = clock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self.last_refill
        if elapsed > 0:
            self.tokens = min(float(self.capacity), self.tokens + elapsed * self.rate)
        self.last_refill = now

    def allow(self) -> bool:
        """Consume one token if one is available."""
        self._refill()
        if self.tokens >= 1.0:
            self.tokens -= 1.0
            return True
        return False
