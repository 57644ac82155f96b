"""RateLimiterRegistry: one token bucket per client IP.

Buckets are created lazily on a client's first request (full burst available)
and kept in an LRU-ordered map bounded by ``max_clients``. When the bound is
reached the least-recently-seen client's bucket is dropped; if that client
returns it starts again from a full bucket.

One ``threading.Lock`` guards the map AND every bucket's refill/consume, so
two concurrent requests from the same IP can never spend the same token. The
registry is an ordinary instance owned by the application (app.state), not a
module global: two apps in one process never share limiter state.
"""

from __future__ import annotations

import threading
import time
from collections import OrderedDict

from cosign.constants import DEFAULT_BURST, DEFAULT_MAX_CLIENTS, DEFAULT_RATE_PER_SECOND
from cosign.ratelimit.bucket import Clock, TokenBucket
from cosign.utils.logger import get_logger

logger = get_logger(__name__)


class RateLimiterRegistry:
    """Per-client token buckets.

    Args:
        rate:        Tokens added per second to each bucket.
        burst:       Bucket capacity.
        max_clients: Upper bound on tracked clients (LRU eviction beyond it).
        clock:       Monotonic clock in seconds; injectable for tests.
    """

    def __init__(
        self,
        rate: float = DEFAULT_RATE_PER_SECOND,
        burst: int = DEFAULT_BURST,
        max_clients: int = DEFAULT_MAX_CLIENTS,
        clock: Clock = time.monotonic,
    ) -> None:
        if max_clients < 1:
            raise ValueError("max_clients must be >= 1")
        self.rate = rate
        self.burst = burst
        self.max_clients = max_clients
        self._clock = clock
        self._buckets: OrderedDict[str, TokenBucket] = OrderedDict()
        self._lock = threading.Lock()

    def allow(self, client: str) -> bool:
        """Consume one token from ``client``'s bucket. False means rate limited."""
        with self._lock:
            bucket = self._buckets.get(client)
            if bucket is None:
                if len(self._buckets) >= self.max_clients:
                    evicted, _ = self._buckets.popitem(last=False)
                    logger.debug("Rate limiter evicted idle client", client=evicted)
                bucket = TokenBucket(self.rate, self.burst, clock=self._clock)
                self._buckets[client] = bucket
            else:
                self._buckets.move_to_end(client)
            return bucket.allow()

    def __len__(self) -> int:
        with self._lock:
            return len(self._buckets)

    def __contains__(self, client: object) -> bool:
        with self._lock:
            return client in self._buckets

    def reset(self) -> None:
        """Forget every client."""
        with self._lock:
            self._buckets.clear()
