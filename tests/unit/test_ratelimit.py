"""Unit tests for cosign/ratelimit - TokenBucket and RateLimiterRegistry.

Time is driven by a fake monotonic clock, so refill never depends on wall time.
"""

from __future__ import annotations

import random
import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from cosign.ratelimit.bucket import TokenBucket
from cosign.ratelimit.registry import RateLimiterRegistry


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ─── TokenBucket ──────────────────────────────────────────────────────────────


class TestTokenBucket:
    def test_starts_full(self, clock: FakeClock) -> None:
        bucket = TokenBucket(rate=10, capacity=20, clock=clock)
        assert all(bucket.allow() for _ in range(20))
        assert bucket.allow() is False

    def test_refills_at_rate(self, clock: FakeClock) -> None:
        bucket = TokenBucket(rate=10, capacity=20, clock=clock)
        for _ in range(20):
            bucket.allow()
        clock.advance(0.1)
        assert bucket.allow() is True
        assert bucket.allow() is False

    def test_refill_capped_at_capacity(self, clock: FakeClock) -> None:
        bucket = TokenBucket(rate=10, capacity=5, clock=clock)
        clock.advance(3600)
        assert sum(bucket.allow() for _ in range(10)) == 5

    def test_partial_tokens_accumulate(self, clock: FakeClock) -> None:
        bucket = TokenBucket(rate=10, capacity=1, clock=clock)
        assert bucket.allow() is True
        clock.advance(0.05)
        assert bucket.allow() is False
        clock.advance(0.05)
        assert bucket.allow() is True

    def test_clock_going_backwards_adds_nothing(self, clock: FakeClock) -> None:
        bucket = TokenBucket(rate=10, capacity=1, clock=clock)
        bucket.allow()
        clock.advance(-5)
        assert bucket.allow() is False

    @pytest.mark.parametrize("rate,capacity", [(-1, 1), (1, 0)])
    def test_invalid_parameters(self, rate: float, capacity: int) -> None:
        with pytest.raises(ValueError):
            TokenBucket(rate=rate, capacity=capacity)


# ─── RateLimiterRegistry ──────────────────────────────────────────────────────


class TestRegistry:
    def test_burst_then_deny_then_refill_one(self, clock: FakeClock) -> None:
        registry = RateLimiterRegistry(rate=10, burst=20, clock=clock)
        results = [registry.allow("1.2.3.4") for _ in range(21)]
        assert results[:20] == [True] * 20
        assert results[20] is False

        clock.advance(0.1)
        assert registry.allow("1.2.3.4") is True
        assert registry.allow("1.2.3.4") is False

    def test_clients_are_independent(self, clock: FakeClock) -> None:
        registry = RateLimiterRegistry(rate=10, burst=2, clock=clock)
        assert registry.allow("a") and registry.allow("a")
        assert registry.allow("a") is False
        assert registry.allow("b") is True

    def test_defaults(self) -> None:
        registry = RateLimiterRegistry()
        assert registry.rate == 10
        assert registry.burst == 20
        assert registry.max_clients == 10_000

    def test_bucket_created_lazily(self, clock: FakeClock) -> None:
        registry = RateLimiterRegistry(clock=clock)
        assert "a" not in registry
        registry.allow("a")
        assert "a" in registry
        assert len(registry) == 1

    def test_lru_eviction_bounds_memory(self, clock: FakeClock) -> None:
        registry = RateLimiterRegistry(rate=10, burst=1, max_clients=2, clock=clock)
        registry.allow("a")
        registry.allow("b")
        registry.allow("a")  # a is now most recently seen
        registry.allow("c")

        assert len(registry) == 2
        assert "b" not in registry
        assert "a" in registry and "c" in registry

    def test_evicted_client_returns_with_full_bucket(self, clock: FakeClock) -> None:
        registry = RateLimiterRegistry(rate=10, burst=1, max_clients=1, clock=clock)
        assert registry.allow("a") is True
        assert registry.allow("a") is False
        registry.allow("b")
        assert registry.allow("a") is True

    def test_reset(self, clock: FakeClock) -> None:
        registry = RateLimiterRegistry(rate=10, burst=1, clock=clock)
        registry.allow("a")
        registry.reset()
        assert len(registry) == 0
        assert registry.allow("a") is True

    def test_invalid_max_clients(self) -> None:
        with pytest.raises(ValueError):
            RateLimiterRegistry(max_clients=0)

    def test_two_registries_share_nothing(self, clock: FakeClock) -> None:
        first = RateLimiterRegistry(rate=10, burst=1, clock=clock)
        second = RateLimiterRegistry(rate=10, burst=1, clock=clock)
        assert first.allow("a") is True
        assert second.allow("a") is True


class TestConcurrency:
    @pytest.mark.parametrize("round_", range(5))
    @pytest.mark.parametrize("workers", [2, 3, 17, 64])
    def test_no_double_spend(self, clock: FakeClock, workers: int, round_: int) -> None:
        """N concurrent requests from one client against N-1 tokens: exactly one denied.

        A random sub-millisecond delay after the barrier varies the interleaving
        from round to round.
        """
        registry = RateLimiterRegistry(rate=10, burst=workers - 1, clock=clock)
        barrier = threading.Barrier(workers)
        rng = random.Random(workers * 100 + round_)
        delays = [rng.uniform(0, 0.001) for _ in range(workers)]

        def hit(index: int) -> bool:
            barrier.wait()
            time.sleep(delays[index])
            return registry.allow("10.0.0.1")

        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = list(pool.map(hit, range(workers)))

        assert results.count(True) == workers - 1
        assert results.count(False) == 1

    def test_many_clients_concurrently(self, clock: FakeClock) -> None:
        registry = RateLimiterRegistry(rate=10, burst=5, max_clients=1000, clock=clock)

        def hammer(client: int) -> int:
            return sum(registry.allow(f"client-{client}") for _ in range(10))

        with ThreadPoolExecutor(max_workers=16) as pool:
            allowed = list(pool.map(hammer, range(100)))

        assert allowed == [5] * 100
        assert len(registry) == 100
