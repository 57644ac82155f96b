"""Per-client token-bucket rate limiting."""

from __future__ import annotations

from cosign.ratelimit.bucket import TokenBucket
from cosign.ratelimit.middleware import client_ip, rate_limit
from cosign.ratelimit.registry import RateLimiterRegistry

__all__ = ["RateLimiterRegistry", "TokenBucket", "client_ip", "rate_limit"]
